"""
Unit tests for raw input records.
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models.raw_records import RawEmail, RawTransaction
from tests.fixtures.subscription_fixtures import (
    create_gmail_message,
    create_nordigen_item,
    create_plaid_item,
)


class TestRawEmail:
    def test_from_gmail_message(self):
        message = create_gmail_message("a@b.com", "Receipt", "body", message_id="abc", multipart=True)

        email = RawEmail.from_gmail_message(message)

        assert email.id == "abc"
        assert email.payload.mime_type == "multipart/mixed"
        assert email.payload.parts[0].parts[1].mime_type == "text/plain"
        assert email.header("subject") == "Receipt"
        assert email.header("X-Missing") == ""

    def test_unknown_fields_are_ignored(self):
        email = RawEmail.from_gmail_message({"id": "x", "labelIds": ["INBOX"], "sizeEstimate": 10})

        assert email.id == "x"
        assert email.payload.headers == []

    def test_frozen(self):
        email = RawEmail.from_gmail_message({"id": "x"})

        with pytest.raises(ValidationError):
            email.id = "y"


class TestRawTransaction:
    def test_amount_parsing(self):
        txn = RawTransaction(amount="-12,99", bookingDate="2024-01-02")

        assert txn.amount == Decimal("-12.99")
        assert txn.booking_date == date(2024, 1, 2)
        assert txn.is_debit

    @pytest.mark.parametrize("amount", [None, True, "abc", [1]])
    def test_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            RawTransaction(amount=amount, bookingDate="2024-01-02")

    def test_blank_text_fields_become_none(self):
        txn = RawTransaction(amount="-1.00", bookingDate="2024-01-02", counterpartyName="  ", counterpartyMemo="")

        assert txn.counterparty_name is None
        assert txn.counterparty_memo is None

    def test_from_nordigen_item(self):
        item = create_nordigen_item("Spotify AB", "-9.99", "2024-03-01", memo="Spotify P12345")

        txn = RawTransaction.from_nordigen_item(item)

        assert txn.amount == Decimal("-9.99")
        assert txn.currency == "EUR"
        assert txn.counterparty_name == "Spotify AB"
        assert txn.counterparty_memo == "Spotify P12345"
        assert txn.booking_date == date(2024, 3, 1)

    def test_from_nordigen_item_remittance_array_and_value_date(self):
        item = {
            "internalTransactionId": "int-1",
            "valueDate": "2024-03-02",
            "transactionAmount": {"amount": "-4.99", "currency": "EUR"},
            "remittanceInformationUnstructuredArray": ["ICLOUD", "STORAGE"],
        }

        txn = RawTransaction.from_nordigen_item(item)

        assert txn.transaction_id == "int-1"
        assert txn.booking_date == date(2024, 3, 2)
        assert txn.counterparty_name is None
        assert txn.counterparty_memo == "ICLOUD STORAGE"

    def test_from_plaid_item_flips_sign(self):
        item = create_plaid_item("Netflix", 15.49, "2024-03-01", category="ENTERTAINMENT")

        txn = RawTransaction.from_plaid_item(item)

        assert txn.amount == Decimal("-15.49")
        assert txn.is_debit
        assert txn.currency == "USD"
        assert txn.provider_category == "ENTERTAINMENT"

    def test_from_plaid_item_refund_is_credit(self):
        txn = RawTransaction.from_plaid_item(create_plaid_item("Netflix", -15.49, "2024-03-01"))

        assert not txn.is_debit

    def test_from_plaid_item_without_amount(self):
        item = create_plaid_item("Netflix", 1.0, "2024-03-01")
        item["amount"] = None

        with pytest.raises(ValueError):
            RawTransaction.from_plaid_item(item)
