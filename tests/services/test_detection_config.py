"""
Unit tests for detection configuration and the signal analyzers built on it.
"""

import pytest

from services.subscription_detection import DEFAULT_CONFIG, build_email_search_query
from services.subscription_detection.analyzers import (
    CategoryClassifier,
    ConfidenceScoreCalculator,
    SenderAnalyzer,
)
from services.subscription_detection.config import (
    EmailConfidenceWeights,
    EmailHeuristics,
)


class TestEmailConfidenceWeights:
    def test_defaults_sum_to_100(self):
        weights = EmailConfidenceWeights()

        total = weights.matched_sender + weights.keyword + weights.price + weights.receipt_subject
        assert total == 100

    def test_invalid_weights(self):
        with pytest.raises(ValueError, match="sum to 100"):
            EmailConfidenceWeights(matched_sender=50)

    def test_invalid_floor(self):
        with pytest.raises(ValueError):
            EmailConfidenceWeights(suspicious_floor=0)


class TestConfidenceScoreCalculator:
    @pytest.fixture
    def calculator(self):
        return ConfidenceScoreCalculator()

    @pytest.mark.parametrize("signals,expected", [
        ((True, True, True, True, False), 100),
        ((True, False, False, False, False), 40),
        ((False, True, True, False, False), 50),
        ((True, True, True, True, True), 70),
        ((False, False, True, False, True), 10),
        ((False, False, False, False, True), 10),
    ])
    def test_email_score(self, calculator, signals, expected):
        assert calculator.email_score(*signals) == expected

    def test_normalize(self, calculator):
        assert calculator.normalize_email_score(85) == pytest.approx(0.85)
        assert calculator.normalize_email_score(150) == 1.0

    def test_transaction_confidence(self, calculator):
        assert calculator.transaction_confidence(10.0, 0.0) == 1.0
        assert calculator.transaction_confidence(10.0, 1.0) == pytest.approx(0.9)
        assert calculator.transaction_confidence(10.0, 20.0) == 0.0
        assert calculator.transaction_confidence(0.0, 0.0) == 0.0


class TestSenderAnalyzer:
    @pytest.fixture
    def analyzer(self):
        return SenderAnalyzer(EmailHeuristics())

    @pytest.mark.parametrize("sender", [
        "MAILER-DAEMON@mail.example.com",
        "Google <no-reply@accounts.google.com>",
        "Bounces <bounces@lists.example.org>",
    ])
    def test_blacklist(self, analyzer, sender):
        assert analyzer.is_blacklisted(sender)

    def test_blacklist_checks_address_only(self, analyzer):
        assert not analyzer.is_blacklisted('"postmaster@ fan club" <hello@fanclub.io>')

    def test_suspicious(self, analyzer):
        assert analyzer.is_suspicious("PayPal <service@paypal.de>", "Receipt")
        assert analyzer.is_suspicious("Shop <hello@shop.com>", "Our newsletter")
        assert not analyzer.is_suspicious("Netflix <info@netflix.com>", "Receipt")

    def test_first_known_sender_wins(self, analyzer):
        assert analyzer.match_known_sender("YouTube <noreply@youtube.com>") == "youtube"
        assert analyzer.match_known_sender("Apple <no_reply@email.apple.com>") == "apple"
        assert analyzer.match_known_sender("Someone <a@b.com>") is None

    @pytest.mark.parametrize("sender,name", [
        ("Amazon <auto-confirm@amazon.de>", "Amazon Prime"),
        ("billing@mail.acme.io", "Acme"),
        ("Receipts <receipts@shop.co.uk>", "Shop"),
        ("Fancy Service <fancy.service@gmail.com>", "Fancy"),
        ("noreply@gmail.com", "Unknown"),
        ("Team <team@outlook.com>", "Unknown"),
    ])
    def test_resolve_name(self, analyzer, sender, name):
        assert analyzer.resolve_name(sender, analyzer.match_known_sender(sender)) == name

    def test_generic_names(self, analyzer):
        assert analyzer.is_generic_name("Support")
        assert analyzer.is_generic_name("")
        assert analyzer.is_generic_name("unknown")
        assert not analyzer.is_generic_name("Acme")


class TestCategoryClassifier:
    @pytest.mark.parametrize("name,category", [
        ("Netflix", "Entertainment"),
        ("ChatGPT Plus", "AI Tools"),
        ("GitHub", "Developer Tools"),
        ("Notion", "Productivity"),
        ("Figma", "Design"),
        ("Google One", "Cloud Storage"),
        ("Acme", "Other"),
    ])
    def test_classify(self, name, category):
        assert CategoryClassifier(EmailHeuristics()).classify(name) == category


class TestSearchQuery:
    def test_query_uses_tables(self):
        query = build_email_search_query()

        assert query.startswith("(from:netflix OR from:spotify")
        assert "subject:invoice" in query
        assert "subject:rechnung" in query
        assert query.endswith("newer_than:1y")

    def test_without_time_window(self):
        assert "newer_than" not in build_email_search_query(newer_than="")

    def test_default_config_tables_are_immutable(self):
        with pytest.raises(Exception):
            DEFAULT_CONFIG.heuristics.known_senders = ()
