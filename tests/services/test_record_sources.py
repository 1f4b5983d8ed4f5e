"""
Unit tests for record sources and scan contexts.
"""

import pytest

from models.raw_records import RawTransaction
from services.record_sources import (
    AuthenticationExpiredError,
    CancellationToken,
    ScanContext,
    SourceFetchError,
    StaticEmailSource,
    StaticTransactionSource,
)
from tests.fixtures.subscription_fixtures import (
    create_gmail_message,
    create_nordigen_item,
    create_plaid_item,
)


class TestScanContext:
    def test_credential_lookup(self):
        context = ScanContext(user_id="u", credentials={"access_token": "tok"})

        assert context.credential("access_token") == "tok"

    def test_missing_credential_is_batch_failure(self):
        context = ScanContext(user_id="u", connection_id="conn-1")

        with pytest.raises(AuthenticationExpiredError) as exc_info:
            context.credential("access_token")

        assert isinstance(exc_info.value, SourceFetchError)
        assert "conn-1" in str(exc_info.value)

    def test_label_falls_back_to_connection_id(self):
        assert ScanContext(user_id="u", connection_id="conn-1").label == "conn-1"
        assert ScanContext(user_id="u", account_label="me@x.com").label == "me@x.com"

    def test_contexts_do_not_share_credentials(self):
        first = ScanContext(user_id="u")
        second = ScanContext(user_id="u")
        first.credentials["access_token"] = "tok"

        assert second.credentials == {}
        assert first.connection_id != second.connection_id


class TestCancellationToken:
    def test_cancel(self):
        token = CancellationToken()
        assert not token.cancelled

        token.cancel()

        assert token.cancelled


class TestStaticEmailSource:
    def test_pages(self):
        messages = [create_gmail_message("a@b.com", "s", "b", message_id=f"m{i}") for i in range(5)]
        source = StaticEmailSource(messages, page_size=2)

        pages = list(source.search(ScanContext(user_id="u")))

        assert pages == [["m0", "m1"], ["m2", "m3"], ["m4"]]
        assert source.fetch_message(ScanContext(user_id="u"), "m3")["id"] == "m3"

    def test_missing_message(self):
        source = StaticEmailSource([])

        with pytest.raises(LookupError):
            source.fetch_message(ScanContext(user_id="u"), "nope")

    def test_malformed_message_is_not_inspected_up_front(self):
        message = create_gmail_message("a@b.com", "s", "b", message_id="m1")
        source = StaticEmailSource(["garbage", message])

        assert list(source.search(ScanContext(user_id="u"))) == [["message-0", "m1"]]
        assert source.fetch_message(ScanContext(user_id="u"), "message-0") == "garbage"

    def test_duplicate_ids_keep_every_message(self):
        first = create_gmail_message("a@b.com", "first", "b", message_id="m1")
        second = create_gmail_message("a@b.com", "second", "b", message_id="m1")
        source = StaticEmailSource([first, second])
        context = ScanContext(user_id="u")

        assert list(source.search(context)) == [["m1", "message-1"]]
        assert source.fetch_message(context, "m1") is first
        assert source.fetch_message(context, "message-1") is second

    def test_invalid_page_size(self):
        with pytest.raises(ValueError):
            StaticEmailSource([], page_size=0)


class TestStaticTransactionSource:
    def test_formats(self):
        nordigen = StaticTransactionSource([create_nordigen_item("A", "-1.00", "2024-01-01")], item_format="nordigen")
        plaid = StaticTransactionSource([create_plaid_item("A", 1.0, "2024-01-01")], item_format="plaid")
        raw = StaticTransactionSource([{"amount": "-1.00", "bookingDate": "2024-01-01"}])

        for source in (nordigen, plaid, raw):
            page = next(iter(source.fetch_pages(ScanContext(user_id="u"))))
            txn = source.parse(page[0])
            assert isinstance(txn, RawTransaction)
            assert txn.is_debit

    def test_unsupported_format(self):
        with pytest.raises(ValueError, match="Unsupported transaction format"):
            StaticTransactionSource([], item_format="ofx")
