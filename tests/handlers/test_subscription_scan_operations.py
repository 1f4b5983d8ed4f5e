"""
Unit tests for subscription scan operation handlers.
"""

import json
from typing import Any, Dict, Optional
from unittest.mock import patch

import pytest

from handlers.subscription_scan_operations import handler, scan_subscriptions_handler
from services.subscription_scan_service import ScanError, ScanResult
from tests.fixtures.subscription_fixtures import (
    NETFLIX_RECEIPT,
    SPOTIFY_YEARLY,
    create_gmail_message,
    create_nordigen_item,
    create_plaid_item,
)


def _event(body: Optional[Dict[str, Any]] = None, user_id: Optional[str] = "user-123",
           raw_body: Optional[str] = None) -> Dict[str, Any]:
    event: Dict[str, Any] = {
        "routeKey": "POST /subscriptions/scan",
        "requestContext": {
            "requestId": "req-1",
            "http": {"method": "POST"},
            "authorizer": {"jwt": {"claims": {"sub": user_id}}} if user_id else {},
        },
        "body": raw_body if raw_body is not None else json.dumps(body or {}),
    }
    return event


class TestScanSubscriptionsHandler:
    """Tests for POST /subscriptions/scan."""

    def test_emails_only(self):
        body = {
            "emails": [
                create_gmail_message(message_id="m1", **NETFLIX_RECEIPT),
                create_gmail_message(message_id="m2", **SPOTIFY_YEARLY),
            ],
            "emailAccount": "me@example.com",
        }

        response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 200
        payload = json.loads(response["body"])
        assert payload["count"] == 2
        assert [s["name"] for s in payload["subscriptions"]] == ["Netflix", "Spotify"]
        assert payload["subscriptions"][0]["sourceRefs"] == ["me@example.com/m1"]
        assert payload["sources"][0]["success"] is True

    def test_malformed_email_does_not_fail_request(self):
        body = {"emails": [create_gmail_message(message_id="m1", **NETFLIX_RECEIPT), "garbage"]}

        response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 200
        payload = json.loads(response["body"])
        assert [s["name"] for s in payload["subscriptions"]] == ["Netflix"]
        assert payload["subscriptions"][0]["lastSeen"].startswith("2024-01-15T10:00:00")
        assert payload["sources"][0]["success"] is True

    def test_emails_and_plaid_transactions_merge(self):
        body = {
            "emails": [create_gmail_message(message_id="m1", **NETFLIX_RECEIPT)],
            "transactions": [
                create_plaid_item("Netflix", 17.99, "2024-01-05"),
                create_plaid_item("Netflix", 17.99, "2024-02-04"),
                create_plaid_item("Netflix", 17.99, "2024-03-05"),
            ],
            "transactionFormat": "plaid",
            "bankAccount": "Chase",
        }

        payload = json.loads(scan_subscriptions_handler(_event(body), None)["body"])

        assert payload["count"] == 1
        netflix = payload["subscriptions"][0]
        assert netflix["price"] == 17.99
        assert netflix["sourceRefs"] == ["m1", "Chase:Netflix"]
        assert len(payload["sources"]) == 2

    def test_nordigen_transactions(self):
        body = {
            "transactions": [
                create_nordigen_item("Headspace", "-12.99", "2024-01-10"),
                create_nordigen_item("Headspace", "-12.99", "2024-02-09"),
            ],
            "transactionFormat": "nordigen",
        }

        payload = json.loads(scan_subscriptions_handler(_event(body), None)["body"])

        assert [s["name"] for s in payload["subscriptions"]] == ["Headspace"]
        assert payload["subscriptions"][0]["cycle"] == "monthly"

    def test_nothing_to_scan(self):
        response = scan_subscriptions_handler(_event({}), None)

        assert response["statusCode"] == 400
        assert "required" in json.loads(response["body"])["message"]

    def test_unknown_transaction_format(self):
        body = {"transactions": [{"amount": "-1.00"}], "transactionFormat": "ofx"}

        response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 400

    def test_invalid_json(self):
        response = scan_subscriptions_handler(_event(raw_body="{oops"), None)

        assert response["statusCode"] == 400

    @pytest.mark.parametrize("max_emails", [0, "ten", True])
    def test_invalid_max_emails(self, max_emails):
        body = {"emails": [create_gmail_message(**NETFLIX_RECEIPT)], "maxEmails": max_emails}

        response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 400

    def test_unauthenticated(self):
        response = scan_subscriptions_handler(_event({"emails": []}, user_id=None), None)

        assert response["statusCode"] == 401

    def test_scan_error_maps_to_bad_gateway(self):
        partial = ScanResult(scan_id="scan-1", source_name="gmail", total=5, scanned=2)
        body = {"emails": [create_gmail_message(**NETFLIX_RECEIPT)]}

        with patch(
            "handlers.subscription_scan_operations.SubscriptionScanService.sync",
            side_effect=ScanError("token expired", partial, "gmail"),
        ):
            response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 502
        payload = json.loads(response["body"])
        assert payload["source"] == "gmail"
        assert payload["partial"]["scanned"] == 2

    def test_unexpected_error_maps_to_server_error(self):
        body = {"emails": [create_gmail_message(**NETFLIX_RECEIPT)]}

        with patch(
            "handlers.subscription_scan_operations.SubscriptionScanService.sync",
            side_effect=RuntimeError("boom"),
        ):
            response = scan_subscriptions_handler(_event(body), None)

        assert response["statusCode"] == 500
        assert json.loads(response["body"])["message"] == "Error in scan_subscriptions"


class TestRouting:
    def test_routes_scan(self):
        body = {"emails": [create_gmail_message(**NETFLIX_RECEIPT)]}

        response = handler(_event(body), None)

        assert response["statusCode"] == 200

    def test_unsupported_route(self):
        event = _event({})
        event["routeKey"] = "GET /subscriptions"

        response = handler(event, None)

        assert response["statusCode"] == 400
