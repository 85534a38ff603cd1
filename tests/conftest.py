"""
Shared test fixtures.
"""

from typing import Any, Dict

import pytest

from database.models import TokenEventRecord


BASE_ROW: Dict[str, Any] = {
    "vid": 1,
    "block_height": 245_000_000,
    "id": "evt-1",
    "tx_id": "5xTx111",
    "admin": "AdminPubkey111",
    "token_id": 7,
    "mint": "MintPubkey111",
    "config_account": "ConfigPubkey111",
    "metadata_account": "MetaPubkey111",
    "token_vault": "VaultPubkey111",
    "timestamp": 1_700_000_000,
    "start_timestamp": 1_700_000_000,
    "metadata_timestamp": 1_700_000_000,
    "value_manager": "ValueManager111",
    "wsol_vault": "WsolVault111",
    "token_name": None,
    "token_symbol": None,
    "token_uri": None,
    "supply": 1_000_000_000,
    "current_era": 1,
    "current_epoch": 3,
    "elapsed_seconds_epoch": 12,
    "start_timestamp_epoch": 1_700_000_000,
    "last_difficulty_coefficient_epoch": 1,
    "difficulty_coefficient_epoch": 1,
    "mint_size_epoch": 5_000_000_000,
    "quantity_minted_epoch": 2_500_000_000,
    "target_mint_size_epoch": 10_000_000_000,
    "total_mint_fee": 1_500_000_000,
    "total_referrer_fee": 0,
    "total_tokens": 21_000_000,
    "graduate_epoch": 10,
    "target_eras": 4,
    "epoches_per_era": 100,
    "target_seconds_per_epoch": 600,
    "reduce_ratio": 50,
    "initial_mint_size": 10_000_000_000,
    "initial_target_mint_size_per_epoch": 10_000_000_000,
    "fee_rate": 100_000_000,
    "liquidity_tokens_ratio": 20,
    "status": 1,
}


def make_record(**overrides: Any) -> TokenEventRecord:
    """Build a record from BASE_ROW with overrides."""
    row = dict(BASE_ROW)
    row.update(overrides)
    return TokenEventRecord.from_row(row)


@pytest.fixture
def record_factory():
    """Factory for token event records."""
    return make_record


@pytest.fixture
def base_row() -> Dict[str, Any]:
    """A complete database row mapping."""
    return dict(BASE_ROW)
