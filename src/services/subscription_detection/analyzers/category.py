"""
Category classifier for detected subscriptions.
"""

import logging

from services.subscription_detection.config import EmailHeuristics

logger = logging.getLogger(__name__)


class CategoryClassifier:
    """Matches a service name against the ordered category patterns; first match wins."""

    def __init__(self, heuristics: EmailHeuristics):
        self.heuristics = heuristics

    def classify(self, name: str) -> str:
        for category, pattern in self.heuristics.category_patterns:
            if pattern.search(name or ""):
                return category
        return self.heuristics.default_category
