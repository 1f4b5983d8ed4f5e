from typing import Dict, Any, List, Optional
import json
from decimal import Decimal
from enum import Enum
import uuid

class DecimalEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            # Always return as string to preserve precision and ensure consistent type
            return str(obj)
        if isinstance(obj, uuid.UUID):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        return super(DecimalEncoder, self).default(obj)

def create_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Create a standardized API response."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": "Content-Type,Authorization",
            "Access-Control-Allow-Methods": "POST,OPTIONS"
        },
        "body": json.dumps(body, cls=DecimalEncoder)
    }


def handle_error(status_code: int, message: str) -> Dict[str, Any]:
    """Create a standardized error response."""
    return create_response(status_code, {"message": message})


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the JSON body of the event.
    Raises ValueError if the body is not a JSON object.
    """
    raw_body = event.get('body') or '{}'
    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError as e:
        raise ValueError(f"Request body is not valid JSON: {e.msg}") from e
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body

# extract parameters from json payload body
def optional_body_parameter(body: Dict[str, Any], parameter_name: str, default: Any = None) -> Any:
    """Extract a parameter from an already decoded body."""
    value = body.get(parameter_name)
    return default if value is None else value

def optional_list_parameter(body: Dict[str, Any], parameter_name: str) -> List[Any]:
    """Extract a list body parameter; a missing parameter is an empty list."""
    value = optional_body_parameter(body, parameter_name, [])
    if not isinstance(value, list):
        raise ValueError(f"Body parameter {parameter_name} must be a list")
    return value

def optional_int_parameter(body: Dict[str, Any], parameter_name: str) -> Optional[int]:
    """Extract an integer body parameter."""
    value = optional_body_parameter(body, parameter_name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Body parameter {parameter_name} must be an integer")
    return value
