"""
Raw input records supplied by the fetch collaborators.

RawEmail mirrors the Gmail API message resource (format=full) and
RawTransaction is the provider-neutral bank transaction the grouper works on.
Both are validated with Pydantic and never mutated by the engine.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Self

from models.money import parse_amount

logger = logging.getLogger(__name__)


class EmailHeader(BaseModel):
    name: str
    value: str = ""

    model_config = ConfigDict(frozen=True)


class EmailBody(BaseModel):
    """Body blob of a message or part; data is base64url encoded."""
    data: Optional[str] = None
    size: int = Field(default=0, ge=0)
    attachment_id: Optional[str] = Field(default=None, alias="attachmentId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class EmailPart(BaseModel):
    part_id: Optional[str] = Field(default=None, alias="partId")
    mime_type: str = Field(default="", alias="mimeType")
    filename: Optional[str] = None
    headers: List[EmailHeader] = Field(default_factory=list)
    body: EmailBody = Field(default_factory=EmailBody)
    parts: List["EmailPart"] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class EmailPayload(BaseModel):
    mime_type: str = Field(default="", alias="mimeType")
    headers: List[EmailHeader] = Field(default_factory=list)
    body: EmailBody = Field(default_factory=EmailBody)
    parts: List[EmailPart] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RawEmail(BaseModel):
    """
    A single email as returned by the mail provider.

    Only the payload matters to the classifier; id and thread id are carried
    along so that detections can point back at the message they came from.
    """
    id: str = ""
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    internal_date: Optional[str] = Field(default=None, alias="internalDate")
    snippet: Optional[str] = None
    payload: EmailPayload = Field(default_factory=EmailPayload)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def from_gmail_message(cls, message: Dict[str, Any]) -> Self:
        """Validate a users.messages.get response."""
        return cls.model_validate(message)

    def header(self, name: str) -> str:
        """Case-insensitive header lookup; returns an empty string when absent."""
        wanted = name.lower()
        for header in self.payload.headers:
            if header.name.lower() == wanted:
                return header.value or ""
        return ""


class RawTransaction(BaseModel):
    """
    Provider-neutral bank transaction.

    Amounts are signed from the account holder's point of view: a debit
    (money leaving the account) is negative.
    """
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    amount: Decimal
    currency: str = ""
    booking_date: date = Field(alias="bookingDate")
    counterparty_name: Optional[str] = Field(default=None, alias="counterpartyName")
    counterparty_memo: Optional[str] = Field(default=None, alias="counterpartyMemo")
    provider_category: Optional[str] = Field(default=None, alias="providerCategory")

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_encoders={Decimal: str},
    )

    @field_validator("amount", mode="before")
    @classmethod
    def ensure_amount_is_decimal(cls, v: Any) -> Decimal:
        if isinstance(v, Decimal):
            return v
        if isinstance(v, (int, float, str)) and not isinstance(v, bool):
            return parse_amount(str(v))
        raise ValueError(f"Invalid amount value: {v}. Could not convert to Decimal.")

    @field_validator("counterparty_name", "counterparty_memo", "provider_category", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @property
    def is_debit(self) -> bool:
        return self.amount < 0

    @classmethod
    def from_nordigen_item(cls, item: Dict[str, Any]) -> Self:
        """Build from an entry of the GoCardless (Nordigen) booked transactions list."""
        amount = item.get("transactionAmount") or {}
        memo = item.get("remittanceInformationUnstructured")
        if not memo and item.get("remittanceInformationUnstructuredArray"):
            memo = " ".join(item["remittanceInformationUnstructuredArray"])
        return cls(
            transactionId=item.get("transactionId") or item.get("internalTransactionId"),
            amount=amount.get("amount"),
            currency=amount.get("currency", ""),
            bookingDate=item.get("bookingDate") or item.get("valueDate"),
            counterpartyName=item.get("creditorName"),
            counterpartyMemo=memo,
        )

    @classmethod
    def from_plaid_item(cls, item: Dict[str, Any]) -> Self:
        """
        Build from a Plaid transactions/get entry.

        Plaid reports money leaving the account as a positive amount, so the
        sign is flipped to keep debits negative.
        """
        category = (item.get("personal_finance_category") or {}).get("primary")
        if item.get("amount") is None:
            raise ValueError(f"Plaid transaction {item.get('transaction_id')} has no amount")
        return cls(
            transactionId=item.get("transaction_id"),
            amount=-parse_amount(str(item["amount"])),
            currency=item.get("iso_currency_code") or item.get("unofficial_currency_code") or "USD",
            bookingDate=item.get("date"),
            counterpartyName=item.get("merchant_name"),
            counterpartyMemo=item.get("name"),
            providerCategory=category,
        )
