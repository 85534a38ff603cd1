"""
Telegram Message Formatter.

============================================================
PURPOSE
============================================================
Turns a token event (plus optional metadata) into an HTML
Telegram message.

PRINCIPLES:
- Pure: no I/O, same input -> same output
- Metadata name/symbol/description override record fields
- Every dynamic value is HTML-escaped
- Formatter decides content only, never transport

============================================================
"""

import html
from datetime import datetime, timezone
from typing import List, Optional

from core.constants import (
    BASE_UNITS_PER_TOKEN,
    LINK_ORDER,
    UNKNOWN_NAME,
    UNKNOWN_SYMBOL,
)
from database.models import TokenEventRecord
from enrichment.models import TokenMetadata

from .models import NotificationMessage


STATUS_LABELS = {
    0: "🟡 Initialized",
    1: "🟢 Active",
    2: "🔴 Paused",
    3: "⚫ Ended",
}

LINK_LABELS = {
    "website": "🌐 Website",
    "twitter": "🐦 Twitter",
    "telegram": "💬 Telegram",
    "discord": "🎮 Discord",
    "github": "💻 GitHub",
    "medium": "📝 Medium",
}

HANDLE_BASE_URLS = {
    "twitter": "https://x.com/",
    "telegram": "https://t.me/",
    "github": "https://github.com/",
}

MAX_DESCRIPTION_LENGTH = 280


class TokenNotificationFormatter:
    """
    Formats token initialization events for Telegram.

    Uses HTML formatting for clarity.
    """

    @classmethod
    def format(
        cls,
        record: TokenEventRecord,
        metadata: Optional[TokenMetadata] = None,
    ) -> NotificationMessage:
        """Format one event into a notification."""
        name = (metadata.name if metadata else None) or record.token_name or UNKNOWN_NAME
        symbol = (metadata.symbol if metadata else None) or record.token_symbol or UNKNOWN_SYMBOL
        description = metadata.description if metadata else None

        lines = [
            "🚀 <b>New Token Initialized!</b>",
            "",
            "📊 <b>Token Info:</b>",
            f"• Name: {_escape(name)}",
            f"• Symbol: {_escape(symbol)}",
        ]
        if description:
            lines.append(f"• Description: {_escape(_truncate(description, MAX_DESCRIPTION_LENGTH))}")
        lines.extend([
            f"• Mint: {_code(record.mint)}",
            f"• Supply: {cls.format_number(record.supply)}",
            "",
            "⛓️ <b>Blockchain Info:</b>",
            f"• Block Height: {cls.format_count(record.block_height)}",
            f"• Transaction: {_code(record.tx_id)}",
            f"• Timestamp: {cls.format_timestamp(record.timestamp)}",
            "",
            "💰 <b>Economics:</b>",
            f"• Total Tokens: {cls.format_number(record.total_tokens)}",
            f"• Total Mint Fee: {cls.format_base_units(record.total_mint_fee)} SOL",
            f"• Fee Rate: {cls.format_base_units(record.fee_rate)} SOL",
            f"• Status: {cls.status_text(record.status)}",
            "",
            "🔗 <b>Accounts:</b>",
            f"• Admin: {_code(record.admin)}",
            f"• Config: {_code(record.config_account)}",
            f"• Token Vault: {_code(record.token_vault)}",
            "",
            "📈 <b>Current Epoch:</b>",
            f"• Era: {cls.format_count(record.current_era)}",
            f"• Epoch: {cls.format_count(record.current_epoch)}",
            f"• Mint Size: {cls.format_base_units(record.mint_size_epoch)}",
            f"• Quantity Minted: {cls.format_base_units(record.quantity_minted_epoch)}",
            f"• Target Mint Size: {cls.format_base_units(record.target_mint_size_epoch)}",
        ])

        link_lines = cls._format_links(metadata)
        if link_lines:
            lines.append("")
            lines.append("🌐 <b>Links:</b>")
            lines.extend(link_lines)

        if record.token_uri and metadata is None:
            lines.append("")
            lines.append(f"🔗 Metadata: {_escape(record.token_uri)}")

        return NotificationMessage(
            body="\n".join(lines),
            image_url=metadata.image if metadata and metadata.image else None,
        )

    @classmethod
    def format_startup(cls, table: str, poll_interval_seconds: float) -> str:
        """Format the online notification sent at startup."""
        return "\n".join([
            "🤖 <b>Token Event Notifier is online and ready!</b>",
            "",
            f"Watching {_code(table)} every {poll_interval_seconds:g}s",
        ])

    @classmethod
    def _format_links(cls, metadata: Optional[TokenMetadata]) -> List[str]:
        """One anchor per present link, in LINK_ORDER."""
        if metadata is None or not metadata.links:
            return []

        lines = []
        for kind in LINK_ORDER:
            url = _link_url(kind, metadata.links.get(kind))
            if url:
                lines.append(f'• <a href="{html.escape(url, quote=True)}">{LINK_LABELS[kind]}</a>')
        return lines

    # --------------------------------------------------------
    # Value formatting
    # --------------------------------------------------------

    @staticmethod
    def format_number(value: float) -> str:
        """Compact amount with 2 decimals and K/M/B suffix."""
        magnitude = abs(value)
        if magnitude >= 1e9:
            return f"{value / 1e9:.2f}B"
        if magnitude >= 1e6:
            return f"{value / 1e6:.2f}M"
        if magnitude >= 1e3:
            return f"{value / 1e3:.2f}K"
        return f"{value:.2f}"

    @staticmethod
    def format_base_units(value: float) -> str:
        """Smallest-unit amount scaled to whole units, 2 decimals."""
        return f"{value / BASE_UNITS_PER_TOKEN:,.2f}"

    @staticmethod
    def format_count(value: float) -> str:
        """Counters (heights, eras, epochs) without decimals."""
        if float(value).is_integer():
            return str(int(value))
        return f"{value:.2f}"

    @staticmethod
    def format_timestamp(timestamp: float) -> str:
        """Unix seconds rendered in UTC."""
        try:
            moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return str(timestamp)
        return moment.strftime("%Y-%m-%d %H:%M:%S UTC")

    @staticmethod
    def status_text(status: int) -> str:
        return STATUS_LABELS.get(status, f"Unknown ({status})")


def _escape(value: str) -> str:
    return html.escape(value, quote=False)


def _code(value: str) -> str:
    return f"<code>{_escape(value)}</code>"


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 1].rstrip() + "…"


def _link_url(kind: str, value: Optional[str]) -> Optional[str]:
    """Normalise a link value; bare handles become profile URLs."""
    if not value:
        return None
    lowered = value.lower()
    if lowered.startswith("https://") or lowered.startswith("http://"):
        return value
    if kind in HANDLE_BASE_URLS and " " not in value:
        return HANDLE_BASE_URLS[kind] + value.lstrip("@")
    return None


__all__ = ["TokenNotificationFormatter", "STATUS_LABELS", "LINK_LABELS"]
