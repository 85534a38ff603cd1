"""
Database Layer - Event Record Model.

============================================================
PURPOSE
============================================================
Immutable snapshot of one row of the token initialization
event table.

- `vid` is the store-assigned, strictly increasing cursor
- Rows are read once and never mutated by this system

============================================================
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional


def _to_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


def _to_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return _to_float(value)


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    return int(Decimal(str(value)))


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def _to_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class TokenEventRecord:
    """One row of `initialize_token_event_entity`."""

    vid: int
    block_height: float
    id: str
    tx_id: str
    admin: str
    token_id: float
    mint: str
    config_account: str
    metadata_account: str
    token_vault: str
    timestamp: float
    start_timestamp: float
    metadata_timestamp: float
    value_manager: str
    wsol_vault: str
    supply: float
    current_era: float
    current_epoch: float
    elapsed_seconds_epoch: float
    start_timestamp_epoch: float
    last_difficulty_coefficient_epoch: float
    difficulty_coefficient_epoch: float
    mint_size_epoch: float
    quantity_minted_epoch: float
    target_mint_size_epoch: float
    total_mint_fee: float
    total_referrer_fee: float
    total_tokens: float
    graduate_epoch: float
    target_seconds_per_epoch: float
    reduce_ratio: float
    initial_mint_size: float
    initial_target_mint_size_per_epoch: float
    fee_rate: float
    liquidity_tokens_ratio: float
    status: int
    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    token_uri: Optional[str] = None
    target_eras: Optional[float] = None
    epoches_per_era: Optional[float] = None

    @property
    def cursor(self) -> int:
        """Change-detection watermark."""
        return self.vid

    @property
    def display_label(self) -> str:
        """Short label for log lines."""
        return self.token_name or self.token_symbol or self.mint

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TokenEventRecord":
        """
        Build a record from a database row mapping.

        Unknown columns are ignored; numeric columns arrive as
        Decimal/str from the driver and are normalised here.
        """
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = row.get(f.name)
            if f.name in _INT_FIELDS:
                values[f.name] = _to_int(raw)
            elif f.name in _TEXT_FIELDS:
                values[f.name] = _to_text(raw)
            elif f.name in _OPTIONAL_TEXT_FIELDS:
                values[f.name] = _to_optional_text(raw)
            elif f.name in _OPTIONAL_FLOAT_FIELDS:
                values[f.name] = _to_optional_float(raw)
            else:
                values[f.name] = _to_float(raw)

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


_INT_FIELDS = frozenset({"vid", "status"})

_TEXT_FIELDS = frozenset({
    "id",
    "tx_id",
    "admin",
    "mint",
    "config_account",
    "metadata_account",
    "token_vault",
    "value_manager",
    "wsol_vault",
})

_OPTIONAL_TEXT_FIELDS = frozenset({"token_name", "token_symbol", "token_uri"})

_OPTIONAL_FLOAT_FIELDS = frozenset({"target_eras", "epoches_per_era"})


__all__ = ["TokenEventRecord"]
