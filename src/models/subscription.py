"""
Subscription Detection Models.

This module provides Pydantic models for detected subscriptions: the per-record
DetectionCandidate produced by the classifiers and the canonical Subscription
produced by merging candidates.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self

logger = logging.getLogger(__name__)

# Constants
EMAIL_PRICE_CEILING = Decimal("500")
DEFAULT_CATEGORY = "Other"
CONFIDENCE_ERROR_MESSAGE = "confidence must be between 0.0 and 1.0"

_WHITESPACE = re.compile(r"\s+")


class BillingCycle(str, Enum):
    """Recurrence period of a subscription."""
    WEEKLY = "weekly"          # < 10 days between charges
    MONTHLY = "monthly"        # ~30 days
    QUARTERLY = "quarterly"    # ~90 days
    YEARLY = "yearly"          # > 350 days


class DetectionSource(str, Enum):
    """Kind of raw record a candidate was detected from."""
    EMAIL = "email"
    TRANSACTION = "transaction"


def normalize_service_key(name: str) -> str:
    """Dedup key: lowercase with surrounding and repeated whitespace removed."""
    return _WHITESPACE.sub(" ", (name or "").strip()).lower()


class DetectionCandidate(BaseModel):
    """
    An unconfirmed detection produced from a single email or transaction group.

    Candidates are immutable; the reducer folds them into Subscription records.
    Confidence is on the canonical 0-1 scale for both sources.
    """
    name: str = Field(min_length=1)
    price: Optional[Decimal] = None
    currency: str
    cycle: BillingCycle
    category: str = DEFAULT_CATEGORY
    confidence: float = Field(ge=0.0, le=1.0)
    suspicious: bool = False
    source: DetectionSource
    source_ref: str = Field(default="", alias="sourceRef")
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_encoders={Decimal: str},
        use_enum_values=False,
    )

    @field_validator("price")
    @classmethod
    def check_positive_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("price must be strictly positive when present")
        return v

    @model_validator(mode="after")
    def check_email_price_ceiling(self) -> Self:
        if (
            self.source == DetectionSource.EMAIL
            and self.price is not None
            and self.price >= EMAIL_PRICE_CEILING
        ):
            raise ValueError(f"email price must be below {EMAIL_PRICE_CEILING}")
        return self

    @property
    def dedup_key(self) -> str:
        return normalize_service_key(self.name)


class Subscription(BaseModel):
    """
    Canonical, deduplicated record for one logical subscription.

    Identity is the normalized service name. source_refs keeps every record
    that contributed to it, in first-seen order and without duplicates.
    last_seen is the most recent record date across every merged candidate.
    """
    name: str
    price: Optional[Decimal] = None
    currency: str
    cycle: BillingCycle
    category: str = DEFAULT_CATEGORY
    confidence: float = Field(ge=0.0, le=1.0)
    suspicious: bool = False
    source_refs: List[str] = Field(default_factory=list, alias="sourceRefs")
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={Decimal: str},
        use_enum_values=False,
    )

    @field_validator("source_refs")
    @classmethod
    def unique_source_refs(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @classmethod
    def from_candidate(cls, candidate: DetectionCandidate, source_refs: Optional[List[str]] = None) -> Self:
        refs = source_refs if source_refs is not None else [candidate.source_ref]
        return cls(
            name=candidate.name,
            price=candidate.price,
            currency=candidate.currency,
            cycle=candidate.cycle,
            category=candidate.category,
            confidence=candidate.confidence,
            suspicious=candidate.suspicious,
            sourceRefs=[ref for ref in refs if ref],
            lastSeen=candidate.last_seen,
        )

    def dedup_key(self) -> str:
        return normalize_service_key(self.name)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape handed to storage and API consumers."""
        data = self.model_dump(by_alias=True, mode="json")
        data["price"] = float(self.price) if self.price is not None else None
        data["confidence"] = round(self.confidence, 4)
        return data
