"""
Subscription Scan Service.

Drives record sources through the detection engine and reports progress.

## Scan flow

```mermaid
graph TD
    A[EmailSource.search] -->|status: search| B[Message ids]
    B -->|status: scan| C[fetch_message + EmailClassifier]
    C -->|progress per record| D[SubscriptionReducer]
    E[TransactionSource.fetch_pages] --> F[TransactionGrouper]
    F --> D
    D -->|complete| G[Subscriptions sorted by confidence]
```

Per-record failures are logged and counted, never aborting the batch. A
SourceFetchError aborts the batch: one error event is emitted and ScanError
is raised carrying whatever had been classified so far. Any exception raised
while paging through a provider (search or fetch_pages) is treated as a
SourceFetchError.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from models.events import (
    CompleteEvent,
    ErrorEvent,
    ProgressEvent,
    ScanEvent,
    ScanPhase,
    StatusEvent,
)
from models.raw_records import RawEmail, RawTransaction
from models.subscription import DetectionCandidate, Subscription
from services.record_sources import (
    CancellationToken,
    EmailSource,
    ScanContext,
    SourceFetchError,
    TransactionSource,
)
from services.subscription_detection import (
    DEFAULT_CONFIG,
    DetectionConfig,
    EmailClassifier,
    SubscriptionReducer,
    TransactionGrouper,
)
from utils.scan_performance import ScanPerformanceTracker

logger = logging.getLogger(__name__)

DEFAULT_MAX_EMAILS = int(os.environ.get('SCAN_MAX_EMAILS', '50'))

ScanObserver = Callable[[ScanEvent], None]


def _provider_pages(fetch: Callable[[], Iterable[List[Any]]], source_name: str) -> Iterator[List[Any]]:
    """
    Iterate a provider's pages, re-raising any provider failure as SourceFetchError.

    Only the paging calls are guarded; exceptions raised by the consumer of
    the pages are not touched.
    """
    pages = None
    while True:
        try:
            if pages is None:
                pages = iter(fetch())
            page = next(pages)
        except StopIteration:
            return
        except SourceFetchError:
            raise
        except Exception as e:
            raise SourceFetchError(f"{source_name} provider error: {e}", source_name) from e
        yield page


class ScanError(Exception):
    """Batch-level scan failure carrying the partial result"""
    def __init__(self, message: str, partial_result: Union['ScanResult', 'SyncResult'], source_name: Optional[str] = None):
        super().__init__(message)
        self.partial_result = partial_result
        self.source_name = source_name


@dataclass
class ScanResult:
    """Outcome of scanning one source."""
    scan_id: str
    source_name: str = ""
    subscriptions: List[Subscription] = field(default_factory=list)
    candidates: List[DetectionCandidate] = field(default_factory=list)
    total: int = 0
    scanned: int = 0
    rejected: int = 0
    failed: int = 0
    failed_records: List[str] = field(default_factory=list)
    cancelled: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """The synchronous equivalent of the complete event."""
        return {
            'scanId': self.scan_id,
            'subscriptions': [s.to_json_dict() for s in self.subscriptions],
            'count': len(self.subscriptions),
            'total': self.total,
            'scanned': self.scanned,
            'rejected': self.rejected,
            'failed': self.failed,
            'cancelled': self.cancelled,
        }


@dataclass
class SourceConnection:
    """A connected account: the provider collaborator plus its session context."""
    source: Union[EmailSource, TransactionSource]
    context: ScanContext


@dataclass
class ConnectionScanResult:
    """Per-connection outcome of a sync."""
    connection_id: str
    label: str
    source_name: str
    success: bool
    count: int = 0
    scanned: int = 0
    error: Optional[str] = None
    scanned_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'connectionId': self.connection_id,
            'label': self.label,
            'source': self.source_name,
            'success': self.success,
            'count': self.count,
            'scanned': self.scanned,
            'scannedAt': self.scanned_at,
        }
        if self.error:
            data['error'] = self.error
        return data


@dataclass
class SyncResult:
    """Merged outcome of scanning every connected source."""
    subscriptions: List[Subscription] = field(default_factory=list)
    connections: List[ConnectionScanResult] = field(default_factory=list)

    @property
    def total_found(self) -> int:
        return len(self.subscriptions)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'subscriptions': [s.to_json_dict() for s in self.subscriptions],
            'count': self.total_found,
            'sources': [c.to_dict() for c in self.connections],
        }


class SubscriptionScanService:
    """
    Runs scans over record sources.

    The engine itself is stateless; one service instance can run any number
    of scans, sequentially or from different threads.
    """

    def __init__(self, config: Optional[DetectionConfig] = None, max_records: Optional[int] = None):
        """
        Initialize the scan service.

        Args:
            config: Optional detection configuration. If None, uses DEFAULT_CONFIG.
            max_records: Emails classified per scan; 0 or less means no limit.
                        Defaults to SCAN_MAX_EMAILS.
        """
        self.config = config or DEFAULT_CONFIG
        self.max_records = DEFAULT_MAX_EMAILS if max_records is None else max_records
        self.email_classifier = EmailClassifier(self.config)

    # =========================================================================
    # Email scans
    # =========================================================================

    def scan_emails(
        self,
        source: EmailSource,
        context: ScanContext,
        observer: Optional[ScanObserver] = None,
        cancellation: Optional[CancellationToken] = None,
        max_records: Optional[int] = None
    ) -> ScanResult:
        """
        Scan a mailbox for subscriptions.

        Args:
            source: Mail provider collaborator
            context: Session/connection context handed to the source
            observer: Optional callback receiving status/progress/complete/error events
            cancellation: Optional token; once cancelled no further pages or
                         messages are requested
            max_records: Overrides the service-wide message limit

        Returns:
            ScanResult with canonical subscriptions sorted by confidence

        Raises:
            ScanError: When the source fails as a whole
        """
        result = ScanResult(scan_id=str(uuid.uuid4()), source_name=source.name)
        emit = self._emitter(observer, result.scan_id)
        limit = self.max_records if max_records is None else max_records
        reducer = SubscriptionReducer()

        with ScanPerformanceTracker(f"email_scan:{source.name}") as tracker:
            try:
                emit(StatusEvent("Searching for subscription emails", ScanPhase.SEARCH))
                with tracker.stage('search'):
                    message_ids = self._collect_message_ids(source, context, cancellation, limit)
                result.total = len(message_ids)
                logger.info(f"Found {result.total} potential subscription emails for {context.label}")

                emit(StatusEvent(f"Scanning {result.total} emails", ScanPhase.SCAN))
                for message_id in message_ids:
                    if self._is_cancelled(cancellation):
                        result.cancelled = True
                        logger.info(f"Email scan {result.scan_id} cancelled after {result.scanned} emails")
                        break

                    with tracker.stage('classification'):
                        candidate = self._classify_message(source, context, message_id, result)
                    if candidate is not None:
                        result.candidates.append(candidate)
                        reducer.add(candidate)

                    result.scanned += 1
                    emit(ProgressEvent(scanned=result.scanned, total=result.total, found=len(reducer)))

            except SourceFetchError as e:
                result.subscriptions = reducer.results()
                message = f"Email scan failed for {context.label}: {e}"
                logger.error(message)
                emit(ErrorEvent(message))
                raise ScanError(message, result, source.name) from e

            result.cancelled = result.cancelled or self._is_cancelled(cancellation)
            result.subscriptions = reducer.results()
            tracker.set_record_count(result.scanned)
            tracker.set_rejected_count(result.rejected)
            tracker.set_failed_count(result.failed)
            tracker.set_subscriptions_found(len(result.subscriptions))

        emit(CompleteEvent(
            [s.to_json_dict() for s in result.subscriptions],
            cancelled=result.cancelled,
        ))
        return result

    def _collect_message_ids(
        self,
        source: EmailSource,
        context: ScanContext,
        cancellation: Optional[CancellationToken],
        limit: int
    ) -> List[str]:
        message_ids: List[str] = []
        for page in _provider_pages(lambda: source.search(context), source.name):
            message_ids.extend(page)
            if limit > 0 and len(message_ids) >= limit:
                return message_ids[:limit]
            if self._is_cancelled(cancellation):
                break
        return message_ids

    def _classify_message(
        self,
        source: EmailSource,
        context: ScanContext,
        message_id: str,
        result: ScanResult
    ) -> Optional[DetectionCandidate]:
        """Fetch and classify one message; failures stay at this record's boundary."""
        try:
            message = source.fetch_message(context, message_id)
            email = RawEmail.from_gmail_message(message)
            candidate = self.email_classifier.classify(
                email, source_ref=self._source_ref(context, email.id or message_id)
            )
        except SourceFetchError:
            raise
        except Exception as e:
            logger.warning(f"Failed to process email {message_id}: {e}")
            result.failed += 1
            result.failed_records.append(message_id)
            return None

        if candidate is None:
            result.rejected += 1
        return candidate

    # =========================================================================
    # Transaction scans
    # =========================================================================

    def scan_transactions(
        self,
        source: TransactionSource,
        context: ScanContext,
        observer: Optional[ScanObserver] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> ScanResult:
        """
        Scan a bank ledger for recurring charges.

        Pages are fetched until the source is exhausted or the scan is
        cancelled; whatever was fetched is then grouped.

        Raises:
            ScanError: When the source fails as a whole
        """
        result = ScanResult(scan_id=str(uuid.uuid4()), source_name=source.name)
        emit = self._emitter(observer, result.scan_id)
        transactions: List[RawTransaction] = []

        with ScanPerformanceTracker(f"transaction_scan:{source.name}") as tracker:
            try:
                emit(StatusEvent("Fetching transactions", ScanPhase.SEARCH))
                with tracker.stage('search'):
                    for page in _provider_pages(lambda: source.fetch_pages(context), source.name):
                        for item in page:
                            result.total += 1
                            transaction = self._parse_transaction(source, item, result)
                            if transaction is not None:
                                transactions.append(transaction)
                        if self._is_cancelled(cancellation):
                            result.cancelled = True
                            logger.info(f"Transaction scan {result.scan_id} cancelled after {result.total} items")
                            break
            except SourceFetchError as e:
                message = f"Transaction scan failed for {context.label}: {e}"
                logger.error(message)
                emit(ErrorEvent(message))
                raise ScanError(message, result, source.name) from e

            emit(StatusEvent(f"Analyzing {len(transactions)} transactions", ScanPhase.SCAN))
            with tracker.stage('classification'):
                grouper = TransactionGrouper(self.config, source_label=context.label or source.name)
                result.candidates = grouper.detect(transactions)

            reducer = SubscriptionReducer()
            with tracker.stage('reduction'):
                reducer.extend(result.candidates)
            result.subscriptions = reducer.results()
            result.scanned = len(transactions)
            emit(ProgressEvent(scanned=result.scanned, total=result.total, found=len(reducer)))

            tracker.set_record_count(result.total)
            tracker.set_failed_count(result.failed)
            tracker.set_subscriptions_found(len(result.subscriptions))

        emit(CompleteEvent(
            [s.to_json_dict() for s in result.subscriptions],
            cancelled=result.cancelled,
        ))
        return result

    def _parse_transaction(
        self,
        source: TransactionSource,
        item: Any,
        result: ScanResult
    ) -> Optional[RawTransaction]:
        try:
            return source.parse(item)
        except Exception as e:
            record_id = None
            if isinstance(item, dict):
                record_id = item.get('transactionId') or item.get('transaction_id')
            record_id = str(record_id or result.total)
            logger.warning(f"Skipping unparseable transaction {record_id}: {e}")
            result.failed += 1
            result.failed_records.append(record_id)
            return None

    # =========================================================================
    # Multi-source sync
    # =========================================================================

    def sync(
        self,
        connections: List[SourceConnection],
        observer: Optional[ScanObserver] = None,
        cancellation: Optional[CancellationToken] = None
    ) -> SyncResult:
        """
        Scan every connected source and merge the detections.

        A failing connection is reported in its ConnectionScanResult and
        never stops the remaining connections. Candidates classified before a
        connection failed are still merged. Status, progress and error events
        of each connection are relayed tagged with source and connectionId.
        """
        sync_id = str(uuid.uuid4())
        emit = self._emitter(observer, sync_id)
        reducer = SubscriptionReducer()
        sync_result = SyncResult()

        for connection in connections:
            if self._is_cancelled(cancellation):
                logger.info(f"Sync {sync_id} cancelled before {connection.context.label}")
                break

            source, context = connection.source, connection.context
            emit(StatusEvent(f"Scanning {context.label}", ScanPhase.SCAN, source=source.name))
            try:
                scan = self._scan_connection(connection, self._forwarder(emit, connection), cancellation)
            except ScanError as e:
                reducer.extend(e.partial_result.candidates)
                sync_result.connections.append(ConnectionScanResult(
                    connection_id=context.connection_id,
                    label=context.label,
                    source_name=source.name,
                    success=False,
                    count=len(e.partial_result.subscriptions),
                    scanned=e.partial_result.scanned,
                    error=str(e),
                ))
                continue

            reducer.extend(scan.candidates)
            sync_result.connections.append(ConnectionScanResult(
                connection_id=context.connection_id,
                label=context.label,
                source_name=source.name,
                success=True,
                count=len(scan.subscriptions),
                scanned=scan.scanned,
            ))

        emit(StatusEvent("Merging detections", ScanPhase.REDUCE))
        sync_result.subscriptions = reducer.results()
        failed = sum(1 for c in sync_result.connections if not c.success)
        logger.info(
            f"Sync {sync_id} complete: {sync_result.total_found} subscriptions from "
            f"{len(sync_result.connections)} connections ({failed} failed)"
        )
        emit(CompleteEvent(
            [s.to_json_dict() for s in sync_result.subscriptions],
            cancelled=self._is_cancelled(cancellation),
            sources=[c.to_dict() for c in sync_result.connections],
        ))
        return sync_result

    def _scan_connection(
        self,
        connection: SourceConnection,
        observer: ScanObserver,
        cancellation: Optional[CancellationToken]
    ) -> ScanResult:
        if isinstance(connection.source, EmailSource):
            return self.scan_emails(connection.source, connection.context, observer, cancellation)
        if isinstance(connection.source, TransactionSource):
            return self.scan_transactions(connection.source, connection.context, observer, cancellation)
        raise TypeError(f"Unsupported source type: {type(connection.source).__name__}")

    @staticmethod
    def _forwarder(emit: Callable[[ScanEvent], None], connection: SourceConnection) -> ScanObserver:
        """
        Relay a connection's status, progress and error events into the sync stream.

        Per-connection complete events are dropped; the sync emits its own.
        """
        def forward(event: ScanEvent) -> None:
            if isinstance(event, CompleteEvent):
                return
            event.data = {
                **(event.data or {}),
                'source': connection.source.name,
                'connectionId': connection.context.connection_id,
            }
            emit(event)
        return forward

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _source_ref(context: ScanContext, record_id: str) -> str:
        if context.account_label:
            return f"{context.account_label}/{record_id}"
        return record_id

    @staticmethod
    def _is_cancelled(cancellation: Optional[CancellationToken]) -> bool:
        return cancellation is not None and cancellation.cancelled

    @staticmethod
    def _emitter(observer: Optional[ScanObserver], scan_id: str) -> Callable[[ScanEvent], None]:
        def emit(event: ScanEvent) -> None:
            if observer is None:
                return
            event.scan_id = scan_id
            observer(event)
        return emit
