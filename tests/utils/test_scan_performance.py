"""
Unit tests for scan performance tracking.
"""

import logging

import pytest

from utils.scan_performance import ScanPerformanceMetrics, ScanPerformanceTracker


class TestScanPerformanceTracker:
    def test_records_counts_and_stages(self):
        with ScanPerformanceTracker("email_scan:test") as tracker:
            with tracker.stage("classification"):
                pass
            with tracker.stage("classification"):
                pass
            tracker.set_record_count(10)
            tracker.set_rejected_count(4)
            tracker.set_failed_count(1)
            tracker.set_subscriptions_found(3)

        metrics = tracker.metrics.to_dict()
        assert metrics["operation_name"] == "email_scan:test"
        assert metrics["record_count"] == 10
        assert metrics["rejected_count"] == 4
        assert metrics["failed_count"] == 1
        assert metrics["subscriptions_found"] == 3
        assert list(metrics["stage_ms"]) == ["classification"]
        assert tracker.metrics.elapsed_ms is not None

    def test_failure_is_logged_and_propagated(self, caplog):
        with caplog.at_level(logging.ERROR, logger="utils.scan_performance"):
            with pytest.raises(RuntimeError):
                with ScanPerformanceTracker("email_scan:broken"):
                    raise RuntimeError("provider down")

        assert "email_scan:broken failed" in caplog.text

    def test_slow_scan_logged_as_warning(self, caplog):
        metrics = ScanPerformanceMetrics(operation_name="slow")
        metrics.elapsed_ms = 15000

        with caplog.at_level(logging.WARNING, logger="utils.scan_performance"):
            metrics.log_metrics()

        assert "Slow scan: slow" in caplog.text
