"""
Unit tests for PriceScanner and PriceSelector.
"""

from decimal import Decimal

import pytest

from services.subscription_detection.analyzers import PriceSelector
from services.subscription_detection.config import PriceBand
from services.subscription_detection.extractors import PriceMatch, PriceScanner


class TestPriceScanner:
    """Test suite for PriceScanner."""

    @pytest.fixture
    def scanner(self):
        return PriceScanner()

    @pytest.mark.parametrize("text,value,currency", [
        ("You paid $12.99 today", "12.99", "$"),
        ("Montant: 12,99 €", "12.99", "€"),
        ("Total EUR 9.99", "9.99", "€"),
        ("Charged 9.99 USD", "9.99", "$"),
        ("Charged US$ 4.50", "4.50", "$"),
        ("Price £7.99/month", "7.99", "£"),
        ("amount 19.99 gbp", "19.99", "£"),
    ])
    def test_symbol_and_code_forms(self, scanner, text, value, currency):
        matches = scanner.scan(text)

        assert len(matches) == 1
        assert matches[0].value == Decimal(value)
        assert matches[0].currency == currency

    def test_symbol_followed_by_code_is_one_match(self, scanner):
        matches = scanner.scan("Thank you, charged $12.99 USD")

        assert [(m.value, m.currency) for m in matches] == [(Decimal("12.99"), "$")]

    def test_thousands_separators(self, scanner):
        matches = scanner.scan("Annual plan 1,299.00 USD or €1.299,00")

        assert [m.value for m in matches] == [Decimal("1299.00"), Decimal("1299.00")]

    def test_amounts_without_currency_are_ignored(self, scanner):
        assert scanner.scan("Order 12345 total 12.99") == []

    def test_amounts_need_two_decimals(self, scanner):
        assert scanner.scan("Only $5 a month") == []

    def test_matches_in_order_of_appearance(self, scanner):
        matches = scanner.scan("a €5.00 b $7.50")

        assert [m.value for m in matches] == [Decimal("5.00"), Decimal("7.50")]
        assert matches[0].position < matches[1].position

    def test_empty_text(self, scanner):
        assert scanner.scan("") == []
        assert scanner.scan(None) == []


def _match(value: str, position: int = 0) -> PriceMatch:
    return PriceMatch(value=Decimal(value), currency="€", position=position)


class TestPriceSelector:
    """Test suite for PriceSelector."""

    @pytest.fixture
    def selector(self):
        return PriceSelector(PriceBand())

    def test_first_plausible_amount_wins(self, selector):
        matches = [_match("0.50", 0), _match("150.00", 1), _match("12.99", 2), _match("9.99", 3)]

        assert selector.select(matches, is_billing_email=False).value == Decimal("12.99")

    def test_band_bounds_are_inclusive(self, selector):
        assert selector.select([_match("2.00")], is_billing_email=False).value == Decimal("2.00")
        assert selector.select([_match("100.00")], is_billing_email=False).value == Decimal("100.00")

    def test_fallback_to_smallest_only_for_billing_emails(self, selector):
        matches = [_match("249.00", 0), _match("120.00", 1), _match("1.50", 2)]

        assert selector.select(matches, is_billing_email=True).value == Decimal("1.50")
        assert selector.select(matches, is_billing_email=False) is None

    def test_amounts_at_or_above_ceiling_are_discarded(self, selector):
        matches = [_match("500.00"), _match("899.00")]

        assert selector.select(matches, is_billing_email=True) is None

    def test_no_matches(self, selector):
        assert selector.select([], is_billing_email=True) is None

    def test_invalid_band_rejected(self):
        with pytest.raises(ValueError):
            PriceBand(plausible_min=Decimal("50"), plausible_max=Decimal("10"))
