"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Single source of truth for magic values
- Each constant is documented
- No business logic here

============================================================
"""

from typing import Final, Tuple


# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME: Final[str] = "token-event-notifier"
SYSTEM_VERSION: Final[str] = "1.0.0"


# ============================================================
# DATA STORE
# ============================================================

DEFAULT_EVENTS_TABLE: Final[str] = "initialize_token_event_entity"
"""Table holding token initialization events."""

CURSOR_COLUMN: Final[str] = "vid"
"""Strictly increasing column used as change-detection watermark."""


# ============================================================
# SCHEDULING (milliseconds, as configured)
# ============================================================

DEFAULT_POLL_INTERVAL_MS: Final[int] = 30_000
DEFAULT_MESSAGE_DELAY_MS: Final[int] = 1_000


# ============================================================
# FORMATTING
# ============================================================

BASE_UNITS_PER_TOKEN: Final[float] = 1e9
"""Smallest-unit amounts (fees, mint sizes) are divided by this for display."""

UNKNOWN_NAME: Final[str] = "Unknown"
UNKNOWN_SYMBOL: Final[str] = "N/A"

LINK_ORDER: Final[Tuple[str, ...]] = (
    "website",
    "twitter",
    "telegram",
    "discord",
    "github",
    "medium",
)
"""Display order of external links; also the set of recognised link kinds."""


# ============================================================
# TELEGRAM
# ============================================================

TELEGRAM_API_BASE: Final[str] = "https://api.telegram.org/bot"
TELEGRAM_CAPTION_LIMIT: Final[int] = 1024
TELEGRAM_MESSAGE_LIMIT: Final[int] = 4096
DEFAULT_TELEGRAM_MAX_ATTEMPTS: Final[int] = 3


# ============================================================
# ENRICHMENT
# ============================================================

DEFAULT_METADATA_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_IPFS_GATEWAY_URL: Final[str] = "https://ipfs.io/ipfs/"


__all__ = [
    "SYSTEM_NAME",
    "SYSTEM_VERSION",
    "DEFAULT_EVENTS_TABLE",
    "CURSOR_COLUMN",
    "DEFAULT_POLL_INTERVAL_MS",
    "DEFAULT_MESSAGE_DELAY_MS",
    "BASE_UNITS_PER_TOKEN",
    "UNKNOWN_NAME",
    "UNKNOWN_SYMBOL",
    "LINK_ORDER",
    "TELEGRAM_API_BASE",
    "TELEGRAM_CAPTION_LIMIT",
    "TELEGRAM_MESSAGE_LIMIT",
    "DEFAULT_TELEGRAM_MAX_ATTEMPTS",
    "DEFAULT_METADATA_TIMEOUT_SECONDS",
    "DEFAULT_IPFS_GATEWAY_URL",
]
