"""
Configuration classes for subscription detection.

Centralizes the heuristic tables, thresholds and weights used by the email
classifier and the transaction grouper. Every table is an ordered, immutable
tuple so that rule order ("first match wins") is part of the data.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Pattern, Tuple

from models.subscription import BillingCycle


# Known subscription senders, matched as substrings of the sender header.
# Order matters: the first entry contained in the sender wins.
KNOWN_SENDERS: Tuple[str, ...] = (
    'netflix', 'spotify', 'apple', 'amazon', 'disney', 'hbo', 'youtube',
    'adobe', 'microsoft', 'google', 'dropbox', 'notion', 'figma', 'slack',
    'zoom', 'openai', 'anthropic', 'github', 'vercel', 'heroku', 'aws',
    'cloudflare', 'digitalocean', 'stripe', 'paypal', 'revolut', 'n26',
    'headspace', 'calm', 'duolingo', 'strava', 'peloton', 'nytimes',
    'medium', 'substack', 'patreon', 'twitch', 'crunchyroll', 'audible',
    'canva', 'grammarly', 'todoist', 'evernote', 'lastpass', '1password',
)

# Canonical display names for sender identifiers and recognised domains
CANONICAL_NAMES: Tuple[Tuple[str, str], ...] = (
    ('netflix', 'Netflix'),
    ('spotify', 'Spotify'),
    ('apple', 'Apple'),
    ('amazon', 'Amazon Prime'),
    ('disney', 'Disney+'),
    ('disneyplus', 'Disney+'),
    ('hbo', 'HBO Max'),
    ('hbomax', 'HBO Max'),
    ('youtube', 'YouTube Premium'),
    ('adobe', 'Adobe'),
    ('microsoft', 'Microsoft 365'),
    ('google', 'Google One'),
    ('dropbox', 'Dropbox'),
    ('notion', 'Notion'),
    ('figma', 'Figma'),
    ('slack', 'Slack'),
    ('zoom', 'Zoom'),
    ('openai', 'ChatGPT Plus'),
    ('anthropic', 'Claude'),
    ('github', 'GitHub'),
    ('vercel', 'Vercel'),
    ('heroku', 'Heroku'),
    ('aws', 'AWS'),
    ('cloudflare', 'Cloudflare'),
    ('digitalocean', 'DigitalOcean'),
    ('n26', 'N26'),
    ('nytimes', 'The New York Times'),
    ('1password', '1Password'),
    ('lastpass', 'LastPass'),
    ('icloud', 'iCloud+'),
)

# Sender markers that reject an email outright, before any other signal
HARD_BLACKLIST: Tuple[str, ...] = (
    'mailer-daemon', 'postmaster@', 'bounce@', 'bounces@',
    'no-reply@accounts.', 'noreply@accounts.', 'security-noreply',
    'calendar-notification', 'drive-shares',
)

# Payment processors and bulk-mailing markers: kept, but flagged suspicious
SUSPICIOUS_MARKERS: Tuple[str, ...] = (
    'stripe', 'paypal', 'paddle', 'revolut', 'n26', 'klarna',
    'newsletter', 'marketing', 'promo', 'news@', 'digest', 'offers@', 'deals@',
)

# Names that never identify a service on their own
GENERIC_TERMS: Tuple[str, ...] = (
    'mail', 'email', 'e-mail', 'gmail', 'googlemail', 'outlook', 'hotmail', 'yahoo', 'icloudmail',
    'support', 'noreply', 'no-reply', 'no_reply', 'donotreply', 'do-not-reply',
    'accounts', 'account', 'team', 'info', 'hello', 'hi', 'contact', 'admin',
    'billing', 'payments', 'payment', 'notifications', 'notification', 'notify',
    'news', 'newsletter', 'service', 'services', 'help', 'customer', 'customerservice',
    'reply', 'system', 'alerts', 'alert', 'updates', 'unknown',
)

# Subscription / billing vocabulary (English, French, German)
SUBSCRIPTION_KEYWORDS: Tuple[str, ...] = (
    'invoice', 'receipt', 'payment', 'subscription', 'billing',
    'facture', 'reçu', 'paiement', 'abonnement',
    'rechnung', 'zahlung', 'verlängerung',
    'monthly', 'annual', 'yearly', 'renew',
)

# Tighter set: the email documents an actual charge
BILLING_KEYWORDS: Tuple[str, ...] = (
    'receipt', 'invoice', 'charged', 'auto-renew', 'auto renew', 'autorenew',
    'has been renewed', 'will renew', 'renewal', 'billed', 'payment received',
    'payment confirmation', 'your payment', 'amount paid', 'amount due',
    'facture', 'reçu', 'prélèvement', 'rechnung', 'quittung', 'abbuchung',
)

RECEIPT_SUBJECT_PATTERN = r'invoice|receipt|facture|re[çc]u|rechnung|quittung|payment confirmation'

YEARLY_CYCLE_PATTERN = (
    r'\b(?:annual(?:ly)?|yearly|per\s+year|a\s+year|every\s+year|12\s+months|'
    r'annuel(?:le)?|par\s+an|j[äa]hrlich|pro\s+jahr|jahresabo\w*)\b'
    r'|/\s*(?:year|yr)\b'
)

# Ordered category patterns matched against the resolved service name
CATEGORY_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ('Entertainment',
     r'netflix|spotify|disney|hbo|youtube|prime|apple\s*(?:music|tv)|hulu|twitch|crunchyroll|'
     r'audible|deezer|paramount|peloton|strava|headspace|calm|patreon'),
    ('AI Tools', r'openai|chatgpt|anthropic|claude|midjourney|perplexity|copilot|gemini'),
    ('Developer Tools',
     r'github|gitlab|vercel|heroku|aws|cloudflare|digitalocean|netlify|jetbrains|docker'),
    ('Productivity',
     r'notion|slack|zoom|microsoft|office|todoist|evernote|grammarly|1password|lastpass|'
     r'duolingo|medium|substack|nytimes|new york times'),
    ('Design', r'figma|canva|adobe|sketch|framer'),
    ('Cloud Storage', r'dropbox|icloud|google\s*one|onedrive|\bbox\b|pcloud|mega'),
)

UNKNOWN_NAME = 'Unknown'


def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class EmailHeuristics:
    """Static lookup tables consulted by the email classifier."""

    known_senders: Tuple[str, ...] = KNOWN_SENDERS
    """Sender identifiers, first contained match wins."""

    canonical_names: Tuple[Tuple[str, str], ...] = CANONICAL_NAMES
    """(identifier, display name) pairs used for name resolution."""

    hard_blacklist: Tuple[str, ...] = HARD_BLACKLIST
    suspicious_markers: Tuple[str, ...] = SUSPICIOUS_MARKERS
    generic_terms: Tuple[str, ...] = GENERIC_TERMS
    subscription_keywords: Tuple[str, ...] = SUBSCRIPTION_KEYWORDS
    billing_keywords: Tuple[str, ...] = BILLING_KEYWORDS

    receipt_subject_pattern: Pattern[str] = field(default_factory=lambda: _compile(RECEIPT_SUBJECT_PATTERN))
    yearly_cycle_pattern: Pattern[str] = field(default_factory=lambda: _compile(YEARLY_CYCLE_PATTERN))
    category_patterns: Tuple[Tuple[str, Pattern[str]], ...] = field(
        default_factory=lambda: tuple((name, _compile(p)) for name, p in CATEGORY_PATTERNS)
    )

    unknown_name: str = UNKNOWN_NAME
    default_category: str = 'Other'

    def canonical_name(self, identifier: str) -> Optional[str]:
        """Display name for an identifier, or None when it is not in the table."""
        return self.name_map.get(identifier.lower())

    @property
    def name_map(self) -> Dict[str, str]:
        return dict(self.canonical_names)


@dataclass(frozen=True)
class PriceBand:
    """Bounds used when choosing a price among scanned amounts."""

    plausible_min: Decimal = Decimal('2')
    """Lowest price (inclusive) considered a typical subscription charge."""

    plausible_max: Decimal = Decimal('100')
    """Highest price (inclusive) considered a typical subscription charge."""

    ceiling: Decimal = Decimal('500')
    """Amounts at or above this are never taken as a subscription price."""

    def __post_init__(self):
        if not (Decimal('0') <= self.plausible_min <= self.plausible_max < self.ceiling):
            raise ValueError(
                f"Price band must satisfy 0 <= min <= max < ceiling, got "
                f"min={self.plausible_min}, max={self.plausible_max}, ceiling={self.ceiling}"
            )

    def is_sane(self, value: Decimal) -> bool:
        return Decimal('0') < value < self.ceiling

    def is_plausible(self, value: Decimal) -> bool:
        return self.plausible_min <= value <= self.plausible_max


@dataclass(frozen=True)
class EmailConfidenceWeights:
    """
    Additive weights for the email confidence score (0-100 scale).

    The four positive weights must sum to 100 so that an email with every
    signal scores exactly the scale maximum.
    """

    matched_sender: int = 40
    keyword: int = 30
    price: int = 20
    receipt_subject: int = 10
    suspicious_penalty: int = 30
    suspicious_floor: int = 10
    """Lowest score a suspicious email can be pushed down to."""

    def __post_init__(self):
        """Validate that positive weights sum to 100."""
        total = self.matched_sender + self.keyword + self.price + self.receipt_subject
        if total != 100:
            raise ValueError(
                f"Email confidence weights must sum to 100, got {total}. "
                f"Weights: sender={self.matched_sender}, keyword={self.keyword}, "
                f"price={self.price}, receipt_subject={self.receipt_subject}"
            )
        if not (0 < self.suspicious_floor <= 100):
            raise ValueError(f"suspicious_floor must be in (0, 100], got {self.suspicious_floor}")


@dataclass(frozen=True)
class RegularityConfig:
    """Configuration for the amount regularity test."""

    max_deviation_ratio: float = 0.15
    """Mean absolute deviation must stay below this share of the mean amount."""

    min_transactions: int = 2
    """Smallest group size from which periodicity can be established."""


@dataclass(frozen=True)
class FrequencyBands:
    """
    Day-count bands for billing cycle classification.

    Bounds are exclusive. An average interval outside every band is not
    recurring and the group is discarded.
    """

    weekly_max: float = 10
    monthly: Tuple[float, float] = (25, 32)
    quarterly: Tuple[float, float] = (80, 100)
    yearly_min: float = 350

    def classify(self, interval_days: float) -> Optional[BillingCycle]:
        if interval_days < self.weekly_max:
            return BillingCycle.WEEKLY
        if self.monthly[0] < interval_days < self.monthly[1]:
            return BillingCycle.MONTHLY
        if self.quarterly[0] < interval_days < self.quarterly[1]:
            return BillingCycle.QUARTERLY
        if interval_days > self.yearly_min:
            return BillingCycle.YEARLY
        return None


class DetectionConfig:
    """
    Master configuration for subscription detection.

    Aggregates all configuration classes into a single configuration object.
    """

    def __init__(
        self,
        heuristics: Optional[EmailHeuristics] = None,
        price_band: Optional[PriceBand] = None,
        email_weights: Optional[EmailConfidenceWeights] = None,
        regularity: Optional[RegularityConfig] = None,
        frequency_bands: Optional[FrequencyBands] = None,
        min_name_length: int = 3
    ):
        """
        Initialize detection configuration.

        Args:
            heuristics: Email lookup tables (creates default if None)
            price_band: Price selection bounds (creates default if None)
            email_weights: Email confidence weights (creates default if None)
            regularity: Amount regularity config (creates default if None)
            frequency_bands: Billing cycle day bands (creates default if None)
            min_name_length: Shortest resolved name that counts as a signal on its own
        """
        self.heuristics = heuristics or EmailHeuristics()
        self.price_band = price_band or PriceBand()
        self.email_weights = email_weights or EmailConfidenceWeights()
        self.regularity = regularity or RegularityConfig()
        self.frequency_bands = frequency_bands or FrequencyBands()
        self.min_name_length = min_name_length


# Default configuration instance
DEFAULT_CONFIG = DetectionConfig()


def build_email_search_query(
    heuristics: Optional[EmailHeuristics] = None,
    newer_than: str = '1y'
) -> str:
    """
    Build the provider search query from the same tables the classifier uses.

    Returns a Gmail search expression such as
    ``(from:netflix OR from:spotify ...) OR (subject:invoice OR ...) newer_than:1y``.
    """
    heuristics = heuristics or DEFAULT_CONFIG.heuristics
    sender_query = ' OR '.join(f'from:{sender}' for sender in heuristics.known_senders)
    keyword_query = ' OR '.join(f'subject:{keyword}' for keyword in heuristics.subscription_keywords)
    query = f'({sender_query}) OR ({keyword_query})'
    if newer_than:
        query = f'{query} newer_than:{newer_than}'
    return query
