"""
Models package for the subscription detection engine.
"""

from .money import (
    Currency,
    parse_amount,
    to_currency_symbol,
)

from .raw_records import (
    EmailHeader,
    EmailBody,
    EmailPart,
    EmailPayload,
    RawEmail,
    RawTransaction,
)

from .subscription import (
    BillingCycle,
    DetectionSource,
    DetectionCandidate,
    Subscription,
    normalize_service_key,
)

from .events import (
    ScanPhase,
    ScanEvent,
    StatusEvent,
    ProgressEvent,
    CompleteEvent,
    ErrorEvent,
)

__all__ = [
    'Currency',
    'parse_amount',
    'to_currency_symbol',
    'EmailHeader',
    'EmailBody',
    'EmailPart',
    'EmailPayload',
    'RawEmail',
    'RawTransaction',
    'BillingCycle',
    'DetectionSource',
    'DetectionCandidate',
    'Subscription',
    'normalize_service_key',
    'ScanPhase',
    'ScanEvent',
    'StatusEvent',
    'ProgressEvent',
    'CompleteEvent',
    'ErrorEvent',
]

__all__ = sorted(list(set(__all__)))
