"""
Text and price extraction utilities for subscription detection.
"""

from services.subscription_detection.extractors.email_text import (
    EmailText,
    EmailTextExtractor,
    decode_body_data,
    encode_body_data,
    internal_date_to_datetime,
    parse_email_date,
)
from services.subscription_detection.extractors.price import (
    PriceMatch,
    PriceScanner,
    PRICE_PATTERN,
)

__all__ = [
    'EmailText',
    'EmailTextExtractor',
    'decode_body_data',
    'encode_body_data',
    'internal_date_to_datetime',
    'parse_email_date',
    'PriceMatch',
    'PriceScanner',
    'PRICE_PATTERN',
]
