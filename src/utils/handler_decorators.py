"""
Handler decorators for reducing boilerplate code in Lambda handlers.

These decorators factor out the authentication, error handling and request
logging shared by the scan handlers.
"""

import logging
import traceback
import time
from functools import wraps
from typing import Dict, Any, Callable

from pydantic import ValidationError

from services.subscription_scan_service import ScanError
from utils.auth import get_user_from_event
from utils.lambda_utils import create_response

logger = logging.getLogger(__name__)


def standard_error_handling(func: Callable) -> Callable:
    """
    Decorator that provides standard error handling for Lambda handlers.

    Maps common exceptions to appropriate HTTP status codes:
    - ValidationError, ValueError, KeyError -> 400 Bad Request
    - ScanError -> 502 Bad Gateway, with the partial scan result
    - Exception -> 500 Internal Server Error

    Handlers decorated with this can focus on business logic and return raw data.
    The decorator will wrap the result in a proper API Gateway response.
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            result = func(*args, **kwargs)

            # If handler returns a dict with statusCode, it's already a response
            if isinstance(result, dict) and "statusCode" in result:
                return result

            # Otherwise, wrap in success response
            return create_response(200, result)

        except (ValidationError, ValueError, KeyError) as e:
            logger.error(f"Validation error in {func.__name__}: {str(e)}")
            return create_response(400, {"message": str(e)})

        except ScanError as e:
            logger.error(f"Scan failed in {func.__name__}: {str(e)}")
            return create_response(502, {
                "message": str(e),
                "source": e.source_name,
                "partial": e.partial_result.to_payload(),
            })

        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {str(e)}")
            logger.error(f"Stacktrace: {traceback.format_exc()}")
            return create_response(500, {"message": f"Error in {func.__name__.replace('_handler', '')}"})

    return wrapper


def log_request_response(func: Callable) -> Callable:
    """
    Decorator that logs request and response details for debugging and monitoring.

    Logs:
    - Request ID, method, route
    - Request duration
    - Response status code
    """
    @wraps(func)
    def wrapper(event: Dict[str, Any], *args, **kwargs) -> Dict[str, Any]:
        request_context = event.get("requestContext") or {}
        request_id = request_context.get("requestId", "unknown")
        method = (request_context.get("http") or {}).get("method", "unknown")
        route = event.get("routeKey", "unknown")

        start_time = time.time()
        logger.info(f"[{request_id}] {method} {route} - Request started")

        try:
            result = func(event, *args, **kwargs)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"[{request_id}] {method} {route} - Error after {duration_ms:.1f}ms: {str(e)}")
            raise

        duration_ms = (time.time() - start_time) * 1000
        status_code = result.get("statusCode", "unknown") if isinstance(result, dict) else "unknown"
        logger.info(f"[{request_id}] {method} {route} - Response {status_code} in {duration_ms:.1f}ms")
        return result

    return wrapper


def require_authenticated_user(func: Callable) -> Callable:
    """
    Decorator that extracts and validates authenticated user from event.

    It extracts the user and passes its id as the second parameter to the handler.
    """
    @wraps(func)
    def wrapper(event: Dict[str, Any], context: Any, *args, **kwargs) -> Dict[str, Any]:
        user = get_user_from_event(event)
        if not user:
            logger.warning("Authentication required but no user found in event")
            return create_response(401, {"message": "Unauthorized"})

        return func(event, user["id"], *args, **kwargs)

    return wrapper


def api_handler(require_auth: bool = True, log_requests: bool = True, handle_errors: bool = True):
    """
    Convenience decorator factory that combines common handler patterns.

    Example:
        @api_handler()
        def scan_subscriptions_handler(event, user_id):
            return {"subscriptions": []}
    """
    def decorator(func: Callable) -> Callable:
        decorated_func = func

        # Apply decorators in reverse order (innermost first)
        if handle_errors:
            decorated_func = standard_error_handling(decorated_func)

        if require_auth:
            decorated_func = require_authenticated_user(decorated_func)

        if log_requests:
            decorated_func = log_request_response(decorated_func)

        return decorated_func

    return decorator
