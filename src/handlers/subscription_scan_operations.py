"""
Subscription Scan Operations Handler.

This module provides the non-streaming API endpoint for subscription
detection over already fetched emails and bank transactions.
"""

import logging
import os
from typing import Dict, Any, List

from services.record_sources import (
    ScanContext,
    StaticEmailSource,
    StaticTransactionSource,
    TRANSACTION_PARSERS,
)
from services.subscription_scan_service import ScanError, SourceConnection, SubscriptionScanService
from utils.handler_decorators import api_handler
from utils.lambda_utils import (
    handle_error,
    optional_body_parameter,
    optional_int_parameter,
    optional_list_parameter,
    parse_json_body,
)

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

SCAN_PAGE_SIZE = int(os.environ.get("SCAN_PAGE_SIZE", "100"))


def _build_connections(body: Dict[str, Any], user_id: str) -> List[SourceConnection]:
    connections: List[SourceConnection] = []

    emails = optional_list_parameter(body, "emails")
    if emails:
        connections.append(SourceConnection(
            source=StaticEmailSource(emails, page_size=SCAN_PAGE_SIZE, name="gmail"),
            context=ScanContext(
                user_id=user_id,
                account_label=optional_body_parameter(body, "emailAccount", ""),
            ),
        ))

    transactions = optional_list_parameter(body, "transactions")
    if transactions:
        transaction_format = optional_body_parameter(body, "transactionFormat", "raw")
        if transaction_format not in TRANSACTION_PARSERS:
            raise ValueError(
                f"transactionFormat must be one of {sorted(TRANSACTION_PARSERS)}"
            )
        connections.append(SourceConnection(
            source=StaticTransactionSource(transactions, item_format=transaction_format, name=transaction_format),
            context=ScanContext(
                user_id=user_id,
                account_label=optional_body_parameter(body, "bankAccount", transaction_format),
            ),
        ))

    return connections


# ============================================================================
# Handler Functions
# ============================================================================

@api_handler()
def scan_subscriptions_handler(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """
    Detect subscriptions in the submitted records.

    POST /subscriptions/scan

    Request body:
    {
        "emails": [...],                  # Gmail API message JSON (format=full)
        "emailAccount": "me@example.com", # Optional label prefixed to email source refs
        "transactions": [...],            # Provider transaction items
        "transactionFormat": "nordigen",  # nordigen | plaid | raw (default: raw)
        "bankAccount": "Main account",    # Optional label for transaction source refs
        "maxEmails": 50                   # Optional limit (default: SCAN_MAX_EMAILS)
    }

    Returns:
    {
        "subscriptions": [...],
        "count": 3,
        "sources": [{"connectionId": "...", "success": true, "count": 2, ...}]
    }
    """
    body = parse_json_body(event)
    connections = _build_connections(body, user_id)
    if not connections:
        raise ValueError("At least one of emails or transactions is required")

    max_emails = optional_int_parameter(body, "maxEmails")
    if max_emails is not None and max_emails < 1:
        raise ValueError("maxEmails must be at least 1")

    service = SubscriptionScanService(max_records=max_emails)
    result = service.sync(connections)
    if all(not c.success for c in result.connections):
        raise ScanError("Every source failed", result)

    logger.info(f"Scan for user {user_id} found {result.total_found} subscriptions")
    return result.to_payload()


# ============================================================================
# Main Handler
# ============================================================================

def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main handler for subscription scan operations.

    Routes requests to appropriate handler functions based on route.
    """
    route_map = {
        "POST /subscriptions/scan": scan_subscriptions_handler,
    }

    route = event.get("routeKey")
    handler_func = route_map.get(route)
    if not handler_func:
        logger.warning(f"Unsupported route: {route}")
        return handle_error(400, f"Unsupported route: {route}")

    return handler_func(event, context)

