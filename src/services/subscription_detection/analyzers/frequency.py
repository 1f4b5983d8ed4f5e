"""
Frequency analyzer for transaction-based detection.

Analyzes booking dates to infer the billing cycle of a transaction group.
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from models.raw_records import RawTransaction
from models.subscription import BillingCycle
from services.subscription_detection.config import FrequencyBands

logger = logging.getLogger(__name__)


class FrequencyAnalyzer:
    """
    Infers the billing cycle from transaction dates.

    The average interval is the total span divided by (count - 1), not the
    mean of pairwise gaps, which tolerates one missed cycle in the middle of
    a series. The interval is then matched against fixed day-count bands.
    """

    def __init__(self, frequency_bands: FrequencyBands):
        """
        Initialize the frequency analyzer.

        Args:
            frequency_bands: Day-count bands for each billing cycle
        """
        self.frequency_bands = frequency_bands

    def detect_cycle(self, sorted_transactions: List[RawTransaction]) -> Optional[BillingCycle]:
        """
        Detect the billing cycle of a group.

        Args:
            sorted_transactions: Transactions sorted by booking date ascending

        Returns:
            BillingCycle, or None when the interval falls outside every band
        """
        interval = self.average_interval(sorted_transactions)
        if interval is None:
            return None
        return self.frequency_bands.classify(interval)

    def average_interval(self, sorted_transactions: List[RawTransaction]) -> Optional[float]:
        """Span in days divided by (count - 1); None for fewer than two transactions."""
        if len(sorted_transactions) < 2:
            return None
        span = (sorted_transactions[-1].booking_date - sorted_transactions[0].booking_date).days
        return span / (len(sorted_transactions) - 1)

    def get_interval_statistics(self, sorted_transactions: List[RawTransaction]) -> Dict[str, float]:
        """
        Calculate detailed interval statistics, used for debug logging.

        Args:
            sorted_transactions: Transactions sorted by booking date

        Returns:
            Dictionary with mean, std, min, max pairwise gaps in days
        """
        if len(sorted_transactions) < 2:
            return {
                'mean': 0.0,
                'std': 0.0,
                'min': 0.0,
                'max': 0.0
            }

        gaps = [
            (sorted_transactions[i + 1].booking_date - sorted_transactions[i].booking_date).days
            for i in range(len(sorted_transactions) - 1)
        ]

        return {
            'mean': float(np.mean(gaps)),
            'std': float(np.std(gaps)),
            'min': float(min(gaps)),
            'max': float(max(gaps))
        }
