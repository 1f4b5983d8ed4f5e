"""
Confidence score calculator for subscription detection.

Email detections are scored additively on a 0-100 scale and transaction
groups by amount stability on a 0-1 scale. Both are brought onto the
canonical 0-1 scale before a candidate is created.
"""

import logging
from typing import Optional

from services.subscription_detection.config import EmailConfidenceWeights

logger = logging.getLogger(__name__)

EMAIL_SCORE_MAX = 100


class ConfidenceScoreCalculator:
    """
    Calculates confidence scores for both detection sources.

    Email score considers:
    - Matched known sender
    - Subscription keyword present
    - Price found
    - Subject reads like a receipt or invoice
    minus a penalty for suspicious senders, floored above zero.
    """

    def __init__(self, weights: Optional[EmailConfidenceWeights] = None):
        """
        Initialize the confidence score calculator.

        Args:
            weights: Optional custom email weights. If None, uses default
                    weights (40, 30, 20, 10; penalty 30, floor 10)
        """
        self.weights = weights or EmailConfidenceWeights()

    def email_score(
        self,
        matched_sender: bool,
        has_keyword: bool,
        has_price: bool,
        receipt_subject: bool,
        suspicious: bool
    ) -> int:
        """
        Calculate the raw email score (0-100).

        Returns:
            Integer score between 0 and 100
        """
        score = 0
        if matched_sender:
            score += self.weights.matched_sender
        if has_keyword:
            score += self.weights.keyword
        if has_price:
            score += self.weights.price
        if receipt_subject:
            score += self.weights.receipt_subject

        if suspicious:
            score = max(score - self.weights.suspicious_penalty, self.weights.suspicious_floor)

        return min(EMAIL_SCORE_MAX, max(0, score))

    @staticmethod
    def normalize_email_score(score: int) -> float:
        """Convert a 0-100 email score to the canonical 0-1 scale."""
        return min(1.0, max(0.0, score / EMAIL_SCORE_MAX))

    @staticmethod
    def transaction_confidence(mean_amount: float, mean_deviation: float) -> float:
        """
        Confidence of a transaction group: 1 - deviation/mean, clamped to [0, 1].

        Args:
            mean_amount: Mean absolute amount of the group
            mean_deviation: Mean absolute deviation from that mean

        Returns:
            Confidence between 0.0 and 1.0
        """
        if mean_amount <= 0:
            return 0.0
        return min(1.0, max(0.0, 1.0 - mean_deviation / mean_amount))
