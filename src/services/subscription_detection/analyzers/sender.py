"""
Sender analyzer for subscription detection.

Decides what the sender header says about an email: whether it is rejected
outright, whether it looks like a pass-through or marketing sender, which
known service sent it and what the service should be called.
"""

import logging
import re
from email.utils import parseaddr
from typing import List, Optional

from services.subscription_detection.config import EmailHeuristics

logger = logging.getLogger(__name__)

_NON_NAME_CHARS = re.compile(r"[^\w&+.' -]", re.UNICODE)


class SenderAnalyzer:
    """
    Evaluates sender-based signals against the static heuristic tables.

    All substring checks are case-insensitive.
    """

    def __init__(self, heuristics: EmailHeuristics):
        """
        Initialize the sender analyzer.

        Args:
            heuristics: Lookup tables (senders, blacklist, markers, generic terms)
        """
        self.heuristics = heuristics
        self._generic_terms = frozenset(term.lower() for term in heuristics.generic_terms)

    def is_blacklisted(self, sender: str) -> bool:
        """True when the sender address contains a hard-blacklist marker."""
        address = self._address(sender)
        return any(marker in address for marker in self.heuristics.hard_blacklist)

    def is_suspicious(self, sender: str, subject: str) -> bool:
        """True for payment-processor or bulk-mailing senders and subjects."""
        haystack = f"{sender} {subject}".lower()
        return any(marker in haystack for marker in self.heuristics.suspicious_markers)

    def match_known_sender(self, sender: str) -> Optional[str]:
        """Return the first known sender identifier contained in the sender header."""
        lowered = sender.lower()
        for identifier in self.heuristics.known_senders:
            if identifier in lowered:
                return identifier
        return None

    def display_name_for(self, identifier: str) -> str:
        """Canonical display name for an identifier, title-cased when unmapped."""
        canonical = self.heuristics.canonical_name(identifier)
        if canonical:
            return canonical
        return identifier.strip().title()

    def resolve_name(self, sender: str, matched_sender: Optional[str] = None) -> str:
        """
        Resolve the service name for an email.

        Uses the matched known sender when there is one. Otherwise the name is
        derived from the address domain, then from the display name preceding
        the address. Generic terms resolve to the unknown sentinel.
        """
        if matched_sender:
            return self.display_name_for(matched_sender)

        for label in self._domain_labels(sender):
            if not self.is_generic_name(label):
                return self.display_name_for(label)

        display_name = self._display_name(sender)
        if display_name and not self.is_generic_name(display_name):
            return self.display_name_for(display_name)

        return self.heuristics.unknown_name

    def is_generic_name(self, name: str) -> bool:
        normalized = (name or "").strip().lower()
        if not normalized:
            return True
        return normalized in self._generic_terms

    def _address(self, sender: str) -> str:
        _, address = parseaddr(sender or "")
        return (address or sender or "").lower()

    def _domain_labels(self, sender: str) -> List[str]:
        """
        Domain labels of the sender address without the top-level domain,
        registrable label first: "billing@mail.acme.io" gives ["acme", "mail"].
        """
        address = self._address(sender)
        if "@" not in address:
            return []
        domain = address.rsplit("@", 1)[1].strip(" >.")
        labels = [label for label in domain.split(".") if label]
        if len(labels) < 2:
            return []
        labels = labels[:-1]
        # Skip second-level public suffixes such as co.uk or com.au
        if len(labels) > 1 and labels[-1] in ("co", "com", "org", "net", "ac", "gov"):
            labels = labels[:-1]
        return list(reversed(labels))

    def _display_name(self, sender: str) -> str:
        name, _ = parseaddr(sender or "")
        if not name and "<" not in (sender or "") and "@" not in (sender or ""):
            name = sender or ""
        name = _NON_NAME_CHARS.sub(" ", name).strip()
        words = name.split()
        return words[0] if words else ""
