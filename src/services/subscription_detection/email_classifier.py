"""
Email Classifier.

Decides whether a single email documents a recurring subscription and, if so,
produces a DetectionCandidate for it.

## Decision order

1. Hard reject blacklisted senders
2. Flag payment-processor / mailing senders as suspicious
3. Match a known sender
4. Resolve the service name (known sender, domain, display name)
5. Reject generic names
6. Look for subscription keywords
7. Reject emails with no signal at all
8. Select a price; reject price-less emails that are not billing emails
9. Infer the billing cycle (yearly or monthly)
10. Score confidence
11. Infer the category

Rejections are not errors: the classifier returns None and logs the reason
at DEBUG level.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from models.money import DEFAULT_CURRENCY
from models.raw_records import RawEmail
from models.subscription import BillingCycle, DetectionCandidate, DetectionSource
from services.subscription_detection.analyzers import (
    CategoryClassifier,
    ConfidenceScoreCalculator,
    PriceSelector,
    SenderAnalyzer,
)
from services.subscription_detection.config import DEFAULT_CONFIG, DetectionConfig
from services.subscription_detection.extractors import (
    EmailText,
    EmailTextExtractor,
    PriceMatch,
    PriceScanner,
    internal_date_to_datetime,
    parse_email_date,
)

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    """Why an email produced no detection."""
    BLACKLISTED_SENDER = "blacklisted_sender"
    GENERIC_NAME = "generic_name"
    NO_SIGNAL = "no_signal"
    NO_PRICE = "no_price_not_billing"


@dataclass(frozen=True)
class EmailDecision:
    """Signals gathered for one email and the outcome of the decision tree."""
    rejection: Optional[RejectionReason] = None
    suspicious: bool = False
    matched_sender: Optional[str] = None
    name: Optional[str] = None
    has_keyword: bool = False
    is_billing: bool = False
    price: Optional[PriceMatch] = None
    cycle: Optional[BillingCycle] = None
    receipt_subject: bool = False
    score: int = 0
    category: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None


class EmailClassifier:
    """
    Classifies emails into subscription candidates.

    Stateless apart from its configuration; one instance can classify any
    number of emails.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        """
        Initialize the email classifier.

        Args:
            config: Optional detection configuration. If None, uses DEFAULT_CONFIG.
        """
        self.config = config or DEFAULT_CONFIG
        heuristics = self.config.heuristics

        self.text_extractor = EmailTextExtractor()
        self.price_scanner = PriceScanner()
        self.sender_analyzer = SenderAnalyzer(heuristics)
        self.price_selector = PriceSelector(self.config.price_band)
        self.confidence_calculator = ConfidenceScoreCalculator(self.config.email_weights)
        self.category_classifier = CategoryClassifier(heuristics)

    def classify(self, email: RawEmail, source_ref: Optional[str] = None) -> Optional[DetectionCandidate]:
        """
        Classify a raw email.

        Args:
            email: Email as supplied by the mail provider
            source_ref: Identifier stored on the candidate (defaults to the message id)

        Returns:
            DetectionCandidate, or None when the email is rejected
        """
        text = self.text_extractor.extract(email)
        last_seen = parse_email_date(text.date) or internal_date_to_datetime(email.internal_date)
        return self.classify_text(
            text,
            source_ref=source_ref if source_ref is not None else email.id,
            last_seen=last_seen,
        )

    def classify_text(
        self,
        text: EmailText,
        source_ref: str = "",
        last_seen: Optional[datetime] = None
    ) -> Optional[DetectionCandidate]:
        """Classify already extracted email text; last_seen defaults to the Date header."""
        decision = self.explain(text)
        if not decision.accepted:
            logger.debug(f"Email {source_ref or '<unknown>'} rejected: {decision.rejection.value}")
            return None

        price = decision.price
        return DetectionCandidate(
            name=decision.name,
            price=price.value if price else None,
            currency=price.currency if price else DEFAULT_CURRENCY.value,
            cycle=decision.cycle,
            category=decision.category,
            confidence=self.confidence_calculator.normalize_email_score(decision.score),
            suspicious=decision.suspicious,
            source=DetectionSource.EMAIL,
            sourceRef=source_ref or "",
            lastSeen=last_seen or parse_email_date(text.date),
        )

    def explain(self, text: EmailText) -> EmailDecision:
        """
        Run the decision tree and return every signal it evaluated.

        Args:
            text: Extracted email text

        Returns:
            EmailDecision; rejection is set when the email is not a subscription
        """
        heuristics = self.config.heuristics
        sender = text.sender

        # 1. Hard reject, bypasses every later signal
        if self.sender_analyzer.is_blacklisted(sender):
            return EmailDecision(rejection=RejectionReason.BLACKLISTED_SENDER)

        # 2. Suspicious flag
        suspicious = self.sender_analyzer.is_suspicious(sender, text.subject)

        # 3-4. Known sender and name resolution
        matched_sender = self.sender_analyzer.match_known_sender(sender)
        name = self.sender_analyzer.resolve_name(sender, matched_sender)

        # 5. Generic names never identify a service
        if self.sender_analyzer.is_generic_name(name):
            return EmailDecision(
                rejection=RejectionReason.GENERIC_NAME,
                suspicious=suspicious,
                matched_sender=matched_sender,
                name=name,
            )

        # 6. Keyword signal
        combined = text.combined
        lowered = combined.lower()
        has_keyword = any(keyword in lowered for keyword in heuristics.subscription_keywords)

        # 7. No-signal reject
        has_usable_name = len(name) >= self.config.min_name_length
        if not (matched_sender or has_keyword or has_usable_name):
            return EmailDecision(
                rejection=RejectionReason.NO_SIGNAL,
                suspicious=suspicious,
                name=name,
            )

        # 8. Price selection
        is_billing = any(keyword in lowered for keyword in heuristics.billing_keywords)
        price = self.price_selector.select(self.price_scanner.scan(combined), is_billing)
        if price is None and not is_billing:
            return EmailDecision(
                rejection=RejectionReason.NO_PRICE,
                suspicious=suspicious,
                matched_sender=matched_sender,
                name=name,
                has_keyword=has_keyword,
            )

        # 9. Cycle
        cycle = BillingCycle.YEARLY if heuristics.yearly_cycle_pattern.search(combined) else BillingCycle.MONTHLY

        # 10. Confidence
        receipt_subject = bool(heuristics.receipt_subject_pattern.search(text.subject))
        score = self.confidence_calculator.email_score(
            matched_sender=matched_sender is not None,
            has_keyword=has_keyword,
            has_price=price is not None,
            receipt_subject=receipt_subject,
            suspicious=suspicious,
        )

        # 11. Category
        category = self.category_classifier.classify(name)

        return EmailDecision(
            suspicious=suspicious,
            matched_sender=matched_sender,
            name=name,
            has_keyword=has_keyword,
            is_billing=is_billing,
            price=price,
            cycle=cycle,
            receipt_subject=receipt_subject,
            score=score,
            category=category,
        )
