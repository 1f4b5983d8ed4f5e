"""
Record sources for subscription scans.

A record source is the collaborator that owns authentication and pagination
against an external provider (mail API, bank aggregator) and hands raw
records to the scan service. Credentials travel in an explicit ScanContext
per session/connection; sources keep no global token state.
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from models.raw_records import RawTransaction

logger = logging.getLogger(__name__)


class SourceFetchError(Exception):
    """Batch-level failure of a source (retries exhausted, provider down)"""
    def __init__(self, message: str, source_name: Optional[str] = None):
        super().__init__(message)
        self.source_name = source_name


class AuthenticationExpiredError(SourceFetchError):
    """Credentials were rejected by the provider in the middle of a scan"""


@dataclass
class ScanContext:
    """
    Per-session, per-connection context passed to record sources.

    account_label identifies the connected account in source refs
    (e.g. the mailbox address or the bank connection name).
    """
    user_id: str
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    account_label: str = ""
    credentials: Dict[str, str] = field(default_factory=dict)
    created_at: int = field(default_factory=lambda: int(datetime.now(timezone.utc).timestamp() * 1000))

    def credential(self, name: str) -> str:
        """Return a credential or raise AuthenticationExpiredError when it is missing."""
        value = self.credentials.get(name)
        if not value:
            raise AuthenticationExpiredError(f"Missing credential {name!r} for connection {self.connection_id}")
        return value

    @property
    def label(self) -> str:
        return self.account_label or self.connection_id


class CancellationToken:
    """Thread-safe cancellation flag checked by the scan loop between records."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class EmailSource(ABC):
    """
    Mail provider collaborator.

    search yields pages of message ids; fetch_message returns one message in
    the provider's JSON shape. Raising SourceFetchError from either aborts the
    scan; any other exception from fetch_message only skips that message.
    """

    name: str = "email"

    @abstractmethod
    def search(self, context: ScanContext) -> Iterator[List[str]]:
        """Yield pages of message ids matching the subscription search query."""

    @abstractmethod
    def fetch_message(self, context: ScanContext, message_id: str) -> Dict[str, Any]:
        """Fetch one message."""


class TransactionSource(ABC):
    """
    Bank provider collaborator.

    fetch_pages yields pages of provider transaction items; parse turns one
    item into a RawTransaction.
    """

    name: str = "transaction"

    @abstractmethod
    def fetch_pages(self, context: ScanContext) -> Iterator[List[Dict[str, Any]]]:
        """Yield pages of provider transaction items."""

    def parse(self, item: Dict[str, Any]) -> RawTransaction:
        return RawTransaction.model_validate(item)


def _paginate(items: List[Any], page_size: int) -> Iterator[List[Any]]:
    for start in range(0, len(items), page_size):
        yield items[start:start + page_size]


class StaticEmailSource(EmailSource):
    """
    In-memory email source over already fetched provider messages.

    Messages are not validated here; a malformed message fails when it is
    classified. Messages without an id, and repeats of an id already seen,
    are keyed by their position as message-{index}.
    """

    def __init__(self, messages: List[Any], page_size: int = 100, name: str = "email"):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.name = name
        self.page_size = page_size
        self._messages: Dict[str, Any] = {}
        self._order: List[str] = []
        for index, message in enumerate(messages):
            message_id = message.get("id") if isinstance(message, dict) else None
            if not message_id or str(message_id) in self._messages:
                message_id = f"message-{index}"
            message_id = str(message_id)
            self._messages[message_id] = message
            self._order.append(message_id)

    def search(self, context: ScanContext) -> Iterator[List[str]]:
        return _paginate(self._order, self.page_size)

    def fetch_message(self, context: ScanContext, message_id: str) -> Dict[str, Any]:
        try:
            return self._messages[message_id]
        except KeyError:
            raise LookupError(f"Message {message_id} not found") from None


TRANSACTION_PARSERS: Dict[str, Callable[[Dict[str, Any]], RawTransaction]] = {
    "nordigen": RawTransaction.from_nordigen_item,
    "plaid": RawTransaction.from_plaid_item,
    "raw": RawTransaction.model_validate,
}


class StaticTransactionSource(TransactionSource):
    """In-memory transaction source over provider items of one format."""

    def __init__(self, items: List[Dict[str, Any]], item_format: str = "raw",
                 page_size: int = 500, name: str = "transaction"):
        if item_format not in TRANSACTION_PARSERS:
            raise ValueError(
                f"Unsupported transaction format {item_format!r}; "
                f"expected one of {sorted(TRANSACTION_PARSERS)}"
            )
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.name = name
        self.items = list(items)
        self.item_format = item_format
        self.page_size = page_size

    def fetch_pages(self, context: ScanContext) -> Iterator[List[Dict[str, Any]]]:
        return _paginate(self.items, self.page_size)

    def parse(self, item: Dict[str, Any]) -> RawTransaction:
        return TRANSACTION_PARSERS[self.item_format](item)
