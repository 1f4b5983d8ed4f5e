"""
Transaction Grouper.

Detects recurring charges in a bank-transaction ledger.

## Detection Pipeline

1. Keep debits only
2. Group by counterparty name, falling back to the memo, then to "Unknown"
3. Drop groups with fewer than two transactions
4. Regularity test on absolute amounts (mean absolute deviation < 15% of mean)
5. Average interval = span / (count - 1)
6. Map the interval to a billing cycle; intervals outside every band are dropped
7. Confidence = 1 - deviation / mean, clamped to [0, 1]
8. last_seen = the latest booking date in the group
"""

import logging
from collections import OrderedDict
from datetime import datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from models.money import to_currency_symbol
from models.raw_records import RawTransaction
from models.subscription import DetectionCandidate, DetectionSource
from services.subscription_detection.analyzers import (
    AmountRegularityAnalyzer,
    ConfidenceScoreCalculator,
    FrequencyAnalyzer,
)
from services.subscription_detection.config import DEFAULT_CONFIG, DetectionConfig

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class TransactionGrouper:
    """
    Groups bank transactions by counterparty and emits one candidate per
    group that recurs at a regular amount and interval.
    """

    def __init__(self, config: Optional[DetectionConfig] = None, source_label: str = "transaction"):
        """
        Initialize the transaction grouper.

        Args:
            config: Optional detection configuration. If None, uses DEFAULT_CONFIG.
            source_label: Prefix for candidate source refs (e.g. bank connection name)
        """
        self.config = config or DEFAULT_CONFIG
        self.source_label = source_label
        self.unknown_name = self.config.heuristics.unknown_name
        self.default_category = self.config.heuristics.default_category

        self.regularity_analyzer = AmountRegularityAnalyzer(
            max_deviation_ratio=self.config.regularity.max_deviation_ratio
        )
        self.frequency_analyzer = FrequencyAnalyzer(self.config.frequency_bands)
        self.confidence_calculator = ConfidenceScoreCalculator()

    def detect(self, transactions: List[RawTransaction]) -> List[DetectionCandidate]:
        """
        Detect recurring charges.

        Args:
            transactions: Bank transactions in any order

        Returns:
            Candidates sorted by descending confidence
        """
        groups = self.group_by_counterparty(transactions)
        logger.info(f"Analyzing {len(groups)} counterparty groups from {len(transactions)} transactions")

        candidates = []
        for counterparty, group in groups.items():
            candidate = self._analyze_group(counterparty, group)
            if candidate is not None:
                candidates.append(candidate)

        logger.info(f"Transaction detection complete: found {len(candidates)} recurring charges")
        return sorted(candidates, key=lambda c: c.confidence, reverse=True)

    def group_by_counterparty(self, transactions: List[RawTransaction]) -> Dict[str, List[RawTransaction]]:
        """Group debit transactions by counterparty, keeping first-seen order."""
        groups: Dict[str, List[RawTransaction]] = OrderedDict()
        for txn in transactions:
            if not txn.is_debit:
                continue
            key = txn.counterparty_name or txn.counterparty_memo or self.unknown_name
            groups.setdefault(key, []).append(txn)
        return groups

    def _analyze_group(self, counterparty: str, group: List[RawTransaction]) -> Optional[DetectionCandidate]:
        if len(group) < self.config.regularity.min_transactions:
            return None

        stats = self.regularity_analyzer.statistics(group)
        if not self.regularity_analyzer.is_regular(stats):
            logger.debug(
                f"Discarding {counterparty!r}: amount deviation {stats.deviation:.2f} "
                f"is not below {self.regularity_analyzer.max_deviation_ratio:.0%} of mean {stats.mean:.2f}"
            )
            return None

        sorted_group = sorted(group, key=lambda t: t.booking_date)
        cycle = self.frequency_analyzer.detect_cycle(sorted_group)
        if cycle is None:
            logger.debug(
                f"Discarding {counterparty!r}: average interval "
                f"{self.frequency_analyzer.average_interval(sorted_group):.1f} days matches no billing cycle "
                f"(gaps: {self.frequency_analyzer.get_interval_statistics(sorted_group)})"
            )
            return None

        price = Decimal(str(stats.mean)).quantize(CENTS, rounding=ROUND_HALF_UP)
        return DetectionCandidate(
            name=counterparty,
            price=price if price > 0 else None,
            currency=to_currency_symbol(sorted_group[0].currency),
            cycle=cycle,
            category=self._category_for(group),
            confidence=self.confidence_calculator.transaction_confidence(stats.mean, stats.deviation),
            suspicious=False,
            source=DetectionSource.TRANSACTION,
            sourceRef=f"{self.source_label}:{counterparty}",
            lastSeen=datetime.combine(sorted_group[-1].booking_date, time.min, tzinfo=timezone.utc),
        )

    def _category_for(self, group: List[RawTransaction]) -> str:
        """Provider category when every transaction agrees on one, otherwise the default."""
        categories = {txn.provider_category for txn in group}
        if len(categories) == 1:
            category = categories.pop()
            if category:
                return category.replace("_", " ").title()
        return self.default_category
