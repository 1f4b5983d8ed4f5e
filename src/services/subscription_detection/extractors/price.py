"""
Price scanner.

Finds every currency amount in a block of text. Ranking and filtering of the
matches is left to the caller.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from models.money import CURRENCY_ALIASES, parse_amount

logger = logging.getLogger(__name__)

# Symbols and codes, longest alternatives first
_CURRENCY = r'US\$|USD|EUR|GBP|[$€£]'
# Two decimals required; optional thousands groups with either separator
_AMOUNT = r'\d{1,3}(?:[.,\s]\d{3})+[.,]\d{2}|\d+[.,]\d{2}'

PRICE_PATTERN = re.compile(
    rf'(?P<pre_currency>{_CURRENCY})\s*(?P<pre_amount>{_AMOUNT})(?!\d)'
    rf'|(?<![\d.,])(?P<post_amount>{_AMOUNT})\s*(?P<post_currency>{_CURRENCY})',
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PriceMatch:
    """A single currency amount found in text."""
    value: Decimal
    currency: str
    position: int


class PriceScanner:
    """
    Scans text for amounts written with a currency symbol or code before or
    after them ("$12.99", "12,99 €", "EUR 9.99", "9.99 USD").

    Matches are returned in order of appearance, duplicates included.
    """

    def __init__(self, pattern: re.Pattern = PRICE_PATTERN):
        self.pattern = pattern

    def scan(self, text: str) -> List[PriceMatch]:
        matches = []
        for match in self.pattern.finditer(text or ''):
            amount = match.group('pre_amount') or match.group('post_amount')
            code = match.group('pre_currency') or match.group('post_currency')
            try:
                value = parse_amount(amount)
            except ValueError:
                logger.debug(f"Skipping unparseable amount {amount!r}")
                continue
            matches.append(PriceMatch(
                value=value,
                currency=CURRENCY_ALIASES[code.upper()].value,
                position=match.start(),
            ))
        return matches
