"""
Email text extractor.

Pulls sender, subject, date and the plain-text body out of a RawEmail.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, Optional

from models.raw_records import EmailBody, EmailPart, RawEmail

logger = logging.getLogger(__name__)

PLAIN_TEXT_MIME_TYPE = "text/plain"


@dataclass(frozen=True)
class EmailText:
    """Plain-text view of an email."""
    sender: str
    subject: str
    date: str
    body: str

    @property
    def combined(self) -> str:
        """Sender, subject and body joined, the text most heuristics run on."""
        return f"{self.sender} {self.subject} {self.body}"


def decode_body_data(data: Optional[str]) -> str:
    """
    Decode a base64url body blob to text.

    Gmail strips padding from body data, so it is restored before decoding.
    Invalid UTF-8 is replaced; invalid base64 raises ValueError.
    """
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValueError(f"Body data is not valid base64url: {e}") from e
    return raw.decode("utf-8", errors="replace")


class EmailTextExtractor:
    """
    Extracts the plain-text fields the classifier works on.

    Body resolution prefers the top-level body blob and otherwise returns the
    first text/plain part, searching nested multipart containers depth-first.
    """

    def extract(self, email: RawEmail) -> EmailText:
        return EmailText(
            sender=email.header("From"),
            subject=email.header("Subject"),
            date=email.header("Date"),
            body=self.extract_body(email),
        )

    def extract_body(self, email: RawEmail) -> str:
        if email.payload.body.data:
            return decode_body_data(email.payload.body.data)

        part = self._first_plain_text_part(email.payload.parts)
        if part is None:
            return ""
        return decode_body_data(part.body.data)

    def _first_plain_text_part(self, parts: Iterable[EmailPart]) -> Optional[EmailPart]:
        for part in parts:
            if part.mime_type.lower() == PLAIN_TEXT_MIME_TYPE and part.body.data:
                return part
            if part.parts:
                nested = self._first_plain_text_part(part.parts)
                if nested is not None:
                    return nested
        return None


def parse_email_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 2822 Date header to an aware UTC datetime.

    Returns None for a missing or malformed header; a header without a zone
    is read as UTC.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparseable Date header: {value!r}")
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def internal_date_to_datetime(value: Optional[str]) -> Optional[datetime]:
    """Convert Gmail's internalDate (epoch milliseconds as a string) to UTC."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Unparseable internalDate: {value!r}")
        return None


def encode_body_data(text: str) -> EmailBody:
    """Inverse of decode_body_data, used when building messages locally."""
    data = base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")
    return EmailBody(data=data, size=len(text.encode("utf-8")))
