"""
Amount regularity analyzer for transaction-based detection.

Checks whether the amounts of a counterparty group are stable enough to be
a fixed recurring charge.
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np

from models.raw_records import RawTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmountStatistics:
    """Mean absolute amount and mean absolute deviation of a group."""
    mean: float
    deviation: float
    count: int

    @property
    def deviation_ratio(self) -> float:
        if self.mean <= 0:
            return float('inf')
        return self.deviation / self.mean


class AmountRegularityAnalyzer:
    """
    Regularity test over absolute amounts.

    Uses the mean absolute deviation from the mean rather than the standard
    deviation; a group is regular when that deviation is strictly below
    max_deviation_ratio times the mean.
    """

    def __init__(self, max_deviation_ratio: float = 0.15):
        """
        Initialize the regularity analyzer.

        Args:
            max_deviation_ratio: Allowed deviation as a share of the mean (default: 0.15)
        """
        self.max_deviation_ratio = max_deviation_ratio

    def statistics(self, transactions: List[RawTransaction]) -> AmountStatistics:
        """
        Calculate amount statistics for a group.

        Args:
            transactions: Transactions of one counterparty

        Returns:
            AmountStatistics with mean, mean absolute deviation and count
        """
        if not transactions:
            return AmountStatistics(mean=0.0, deviation=0.0, count=0)

        amounts = np.abs(np.array([float(txn.amount) for txn in transactions]))
        mean = float(np.mean(amounts))
        deviation = float(np.mean(np.abs(amounts - mean)))
        return AmountStatistics(mean=mean, deviation=deviation, count=len(transactions))

    def is_regular(self, stats: AmountStatistics) -> bool:
        if stats.count == 0 or stats.mean <= 0:
            return False
        return stats.deviation < stats.mean * self.max_deviation_ratio
