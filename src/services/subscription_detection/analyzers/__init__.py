"""
Signal analyzers for subscription detection.

This package provides specialized analyzers that each evaluate one aspect
of a raw record: sender, price, category, amount regularity, frequency and
the resulting confidence.
"""

from services.subscription_detection.analyzers.sender import SenderAnalyzer
from services.subscription_detection.analyzers.price import PriceSelector
from services.subscription_detection.analyzers.category import CategoryClassifier
from services.subscription_detection.analyzers.confidence import ConfidenceScoreCalculator
from services.subscription_detection.analyzers.regularity import (
    AmountRegularityAnalyzer,
    AmountStatistics,
)
from services.subscription_detection.analyzers.frequency import FrequencyAnalyzer

__all__ = [
    'SenderAnalyzer',
    'PriceSelector',
    'CategoryClassifier',
    'ConfidenceScoreCalculator',
    'AmountRegularityAnalyzer',
    'AmountStatistics',
    'FrequencyAnalyzer',
]
