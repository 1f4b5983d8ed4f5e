"""
Price selector for email-based detection.

Chooses the subscription price among all amounts scanned from an email.
"""

import logging
from typing import List, Optional

from services.subscription_detection.config import PriceBand
from services.subscription_detection.extractors.price import PriceMatch

logger = logging.getLogger(__name__)


class PriceSelector:
    """
    Picks one price from scanned amounts.

    Amounts outside (0, ceiling) are discarded. The first amount inside the
    plausible band wins; otherwise the smallest remaining amount is used, but
    only when the email is a real billing email.
    """

    def __init__(self, price_band: PriceBand):
        self.price_band = price_band

    def select(self, matches: List[PriceMatch], is_billing_email: bool) -> Optional[PriceMatch]:
        """
        Args:
            matches: Scanned amounts in order of appearance
            is_billing_email: Whether the text matched the billing keyword set

        Returns:
            The chosen match, or None when no amount qualifies
        """
        sane = [m for m in matches if self.price_band.is_sane(m.value)]
        if not sane:
            return None

        for match in sane:
            if self.price_band.is_plausible(match.value):
                return match

        if is_billing_email:
            # min() keeps the earliest match on ties
            return min(sane, key=lambda m: m.value)

        logger.debug(
            f"No amount in plausible band among {[str(m.value) for m in sane]} "
            f"and email is not a billing email"
        )
        return None
