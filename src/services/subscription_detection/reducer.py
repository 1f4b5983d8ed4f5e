"""
Merge/dedup reducer.

Folds detection candidates into canonical subscriptions keyed by the
normalized service name.
"""

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from models.subscription import DetectionCandidate, Subscription, normalize_service_key

logger = logging.getLogger(__name__)


def _outranks(challenger: Optional[Decimal], incumbent: Optional[Decimal]) -> bool:
    """Strictly higher price wins; a missing price ranks below any price."""
    if challenger is None:
        return False
    if incumbent is None:
        return True
    return challenger > incumbent


def _latest(first: Optional[datetime], second: Optional[datetime]) -> Optional[datetime]:
    if first is None:
        return second
    if second is None:
        return first
    return max(first, second)


class SubscriptionReducer:
    """
    Incremental candidate reducer.

    Conflict policy: the candidate with the strictly higher price becomes the
    canonical record (taken as the more recent charge). Source refs of both
    records are kept, in first-seen order, and last_seen is the latest date
    either record carries.
    """

    def __init__(self):
        self._records: Dict[str, Subscription] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: str) -> bool:
        return normalize_service_key(name) in self._records

    def add(self, candidate: DetectionCandidate) -> Subscription:
        """
        Merge one candidate.

        Returns:
            The canonical subscription for the candidate's key after merging
        """
        key = candidate.dedup_key
        existing = self._records.get(key)

        if existing is None:
            merged = Subscription.from_candidate(candidate)
        elif _outranks(candidate.price, existing.price):
            logger.debug(
                f"Replacing canonical record for {key!r}: price {existing.price} -> {candidate.price}"
            )
            merged = Subscription.from_candidate(
                candidate, source_refs=existing.source_refs + [candidate.source_ref]
            )
            merged.last_seen = _latest(existing.last_seen, candidate.last_seen)
        else:
            merged = existing.model_copy(update={
                'source_refs': list(dict.fromkeys(
                    existing.source_refs + ([candidate.source_ref] if candidate.source_ref else [])
                )),
                'last_seen': _latest(existing.last_seen, candidate.last_seen),
            })

        self._records[key] = merged
        return merged

    def extend(self, candidates: Iterable[DetectionCandidate]) -> None:
        for candidate in candidates:
            self.add(candidate)

    def results(self) -> List[Subscription]:
        """Canonical subscriptions sorted by descending confidence."""
        return sorted(self._records.values(), key=lambda s: s.confidence, reverse=True)


def merge_candidates(candidates: Iterable[DetectionCandidate]) -> List[Subscription]:
    """Reduce a batch of candidates to canonical subscriptions."""
    reducer = SubscriptionReducer()
    reducer.extend(candidates)
    return reducer.results()
