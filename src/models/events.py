"""
Event models for the streaming scan boundary.
Contains the base scan event structure and the four event kinds reported to
an observer while a scan runs: status, progress, complete and error.
"""
from dataclasses import dataclass
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from enum import Enum
import json
import uuid


class ScanPhase(str, Enum):
    """Phase of a scan reported in status events"""
    SEARCH = "search"  # Locating candidate records at the provider
    SCAN = "scan"      # Classifying fetched records
    REDUCE = "reduce"  # Merging candidates into canonical subscriptions


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass
class ScanEvent:
    """Base event structure for all scan events"""
    event_id: str
    event_type: str
    timestamp: int  # Unix timestamp in milliseconds
    scan_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape sent to streaming consumers"""
        return {
            'type': self.event_type,
            'eventId': self.event_id,
            'scanId': self.scan_id,
            'timestamp': self.timestamp,
            **(self.data or {})
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class StatusEvent(ScanEvent):
    """Published when the scan enters a new phase"""

    def __init__(self, message: str, phase: ScanPhase, scan_id: Optional[str] = None, **kwargs):
        super().__init__(
            event_id=str(uuid.uuid4()),
            event_type='status',
            timestamp=_now_ms(),
            scan_id=scan_id,
            data={
                'message': message,
                'phase': ScanPhase(phase).value,
                **kwargs
            }
        )


@dataclass
class ProgressEvent(ScanEvent):
    """Published after each record has been classified"""

    def __init__(self, scanned: int, total: int, found: int, scan_id: Optional[str] = None, **kwargs):
        super().__init__(
            event_id=str(uuid.uuid4()),
            event_type='progress',
            timestamp=_now_ms(),
            scan_id=scan_id,
            data={
                'scanned': scanned,
                'total': total,
                'found': found,
                **kwargs
            }
        )


@dataclass
class CompleteEvent(ScanEvent):
    """Published once with the final (or partial, when cancelled) subscription list"""

    def __init__(self, subscriptions: List[Dict[str, Any]], scan_id: Optional[str] = None,
                 cancelled: bool = False, **kwargs):
        super().__init__(
            event_id=str(uuid.uuid4()),
            event_type='complete',
            timestamp=_now_ms(),
            scan_id=scan_id,
            data={
                'subscriptions': subscriptions,
                'count': len(subscriptions),
                'cancelled': cancelled,
                **kwargs
            }
        )


@dataclass
class ErrorEvent(ScanEvent):
    """Published once when a scan, or one connection of a sync, fails as a whole"""

    def __init__(self, message: str, scan_id: Optional[str] = None, **kwargs):
        super().__init__(
            event_id=str(uuid.uuid4()),
            event_type='error',
            timestamp=_now_ms(),
            scan_id=scan_id,
            data={
                'message': message,
                **kwargs
            }
        )
