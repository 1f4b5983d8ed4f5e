from decimal import Decimal, InvalidOperation
import enum
import re
from typing import Any


class Currency(str, enum.Enum):
    """Enum for the currency symbols the price scanner understands"""
    USD = "$"
    EUR = "€"
    GBP = "£"

    @property
    def iso_code(self) -> str:
        return self.name


# ISO codes and loose aliases seen in provider payloads and email text
CURRENCY_ALIASES = {
    "USD": Currency.USD,
    "US$": Currency.USD,
    "$": Currency.USD,
    "EUR": Currency.EUR,
    "€": Currency.EUR,
    "GBP": Currency.GBP,
    "£": Currency.GBP,
}

DEFAULT_CURRENCY = Currency.EUR

_SEPARATORS = re.compile(r"[.,]")


def to_currency_symbol(value: Any) -> str:
    """
    Map an ISO code or symbol to the display symbol used in subscriptions.

    Unknown codes are passed through upper-cased so that a bank transaction in
    e.g. CHF keeps its code instead of being silently relabelled.
    """
    if value is None:
        return DEFAULT_CURRENCY.value
    if isinstance(value, Currency):
        return value.value
    text = str(value).strip()
    if not text:
        return DEFAULT_CURRENCY.value
    currency = CURRENCY_ALIASES.get(text.upper())
    return currency.value if currency else text.upper()


def parse_amount(text: str) -> Decimal:
    """
    Parse an amount string using either comma or period as decimal separator.

    The last separator is treated as the decimal separator and any earlier
    ones as grouping separators, so "1.299,00" and "1,299.00" both give 1299.00.
    """
    cleaned = re.sub(r"\s", "", text or "")
    separators = list(_SEPARATORS.finditer(cleaned))
    if separators:
        last = separators[-1].start()
        integer_part = _SEPARATORS.sub("", cleaned[:last])
        cleaned = f"{integer_part}.{cleaned[last + 1:]}"
    try:
        return Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount value: {text}. Could not convert to Decimal.") from e
