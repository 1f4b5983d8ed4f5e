"""
Subscription Detection Engine.

This package turns raw emails and bank transactions into canonical
subscription records.

Public API:
    - EmailClassifier: Decision tree over sender, keyword and price signals
    - TransactionGrouper: Counterparty grouping with regularity and cycle tests
    - SubscriptionReducer / merge_candidates: Merge candidates by service name
    - DetectionConfig: Heuristic tables, thresholds and weights
    - DEFAULT_CONFIG: Default configuration instance
"""

from services.subscription_detection.config import (
    DetectionConfig,
    DEFAULT_CONFIG,
    EmailHeuristics,
    PriceBand,
    EmailConfidenceWeights,
    RegularityConfig,
    FrequencyBands,
    build_email_search_query,
)
from services.subscription_detection.extractors import (
    EmailText,
    EmailTextExtractor,
    PriceMatch,
    PriceScanner,
)
from services.subscription_detection.email_classifier import (
    EmailClassifier,
    EmailDecision,
    RejectionReason,
)
from services.subscription_detection.transaction_grouper import TransactionGrouper
from services.subscription_detection.reducer import SubscriptionReducer, merge_candidates

__all__ = [
    'DetectionConfig',
    'DEFAULT_CONFIG',
    'EmailHeuristics',
    'PriceBand',
    'EmailConfidenceWeights',
    'RegularityConfig',
    'FrequencyBands',
    'build_email_search_query',
    'EmailText',
    'EmailTextExtractor',
    'PriceMatch',
    'PriceScanner',
    'EmailClassifier',
    'EmailDecision',
    'RejectionReason',
    'TransactionGrouper',
    'SubscriptionReducer',
    'merge_candidates',
]
