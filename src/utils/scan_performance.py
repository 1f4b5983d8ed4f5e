"""
Performance monitoring utilities for subscription scans.

This module provides a context manager for monitoring the performance of
subscription scans, including:
- Search time (locating records at the provider)
- Classification time
- Reduction time
- Total execution time
- Record, rejection and failure counts
"""

import time
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

SLOW_SCAN_MS = 10000
VERY_SLOW_SCAN_MS = 30000


@dataclass
class ScanPerformanceMetrics:
    """Container for scan performance metrics."""
    operation_name: str
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    elapsed_ms: Optional[float] = None
    record_count: int = 0
    rejected_count: int = 0
    failed_count: int = 0
    subscriptions_found: int = 0
    stage_ms: Dict[str, float] = field(default_factory=dict)

    def finish(self):
        """Mark the operation as finished and calculate elapsed time."""
        self.end_time = time.time()
        self.elapsed_ms = (self.end_time - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for logging."""
        return {
            'operation_name': self.operation_name,
            'elapsed_ms': self.elapsed_ms,
            'record_count': self.record_count,
            'rejected_count': self.rejected_count,
            'failed_count': self.failed_count,
            'subscriptions_found': self.subscriptions_found,
            'stage_ms': dict(self.stage_ms),
            'records_per_second': (
                self.record_count / (self.elapsed_ms / 1000) if self.elapsed_ms else 0
            ),
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    def log_metrics(self):
        """Log the performance metrics."""
        metrics = self.to_dict()

        # Determine log level based on performance
        if self.elapsed_ms and self.elapsed_ms > VERY_SLOW_SCAN_MS:
            logger.error(
                f"SLOW SCAN: {self.operation_name} took {self.elapsed_ms:.2f}ms",
                extra={'scan_metrics': metrics}
            )
        elif self.elapsed_ms and self.elapsed_ms > SLOW_SCAN_MS:
            logger.warning(
                f"Slow scan: {self.operation_name} took {self.elapsed_ms:.2f}ms",
                extra={'scan_metrics': metrics}
            )
        else:
            logger.info(
                f"Scan completed: {self.operation_name} in {(self.elapsed_ms or 0):.2f}ms, "
                f"{self.record_count} records, {self.subscriptions_found} subscriptions",
                extra={'scan_metrics': metrics}
            )

        if self.stage_ms:
            breakdown = ', '.join(f"{stage}: {ms:.2f}ms" for stage, ms in self.stage_ms.items())
            logger.debug(
                f"Scan breakdown for {self.operation_name}: {breakdown}",
                extra={'scan_metrics': metrics}
            )


class _StageTimer:
    def __init__(self, metrics: ScanPerformanceMetrics, stage: str):
        self.metrics = metrics
        self.stage = stage
        self.start_time: float = 0.0

    def __enter__(self):
        self.start_time = time.time()
        logger.debug(f"Starting stage: {self.stage}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = (time.time() - self.start_time) * 1000
        # Stages may be entered repeatedly (once per page); accumulate
        self.metrics.stage_ms[self.stage] = self.metrics.stage_ms.get(self.stage, 0.0) + elapsed_ms
        logger.debug(f"Completed stage {self.stage} in {elapsed_ms:.2f}ms")


class ScanPerformanceTracker:
    """
    Context manager for scan performance tracking.

    Usage:
        with ScanPerformanceTracker("email_scan") as tracker:
            with tracker.stage('search'):
                ids = list_message_ids()
            with tracker.stage('classification'):
                candidates = classify(ids)
            tracker.set_record_count(len(ids))
    """

    def __init__(self, operation_name: str):
        self.metrics = ScanPerformanceMetrics(operation_name=operation_name)

    def __enter__(self):
        logger.info(f"Starting scan: {self.metrics.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.metrics.finish()
        if exc_type is not None:
            logger.error(
                f"Scan {self.metrics.operation_name} failed after {self.metrics.elapsed_ms:.2f}ms: {exc_val}",
                extra={'scan_metrics': self.metrics.to_dict()}
            )
        else:
            self.metrics.log_metrics()
        return False

    def stage(self, stage_name: str) -> _StageTimer:
        return _StageTimer(self.metrics, stage_name)

    def set_record_count(self, count: int):
        self.metrics.record_count = count

    def set_rejected_count(self, count: int):
        self.metrics.rejected_count = count

    def set_failed_count(self, count: int):
        self.metrics.failed_count = count

    def set_subscriptions_found(self, count: int):
        self.metrics.subscriptions_found = count
