"""Solana ledger access via JSON-RPC."""

from ledger.accounts import MINT_ACCOUNT_SIZE, decode_mint, is_valid_address, parse_address
from ledger.connection import (
    EXPLORER_BASE,
    RPC_ENDPOINTS,
    LedgerConfig,
    LedgerConnection,
    Network,
    connect,
)

__all__ = [
    "MINT_ACCOUNT_SIZE",
    "decode_mint",
    "is_valid_address",
    "parse_address",
    "EXPLORER_BASE",
    "RPC_ENDPOINTS",
    "LedgerConfig",
    "LedgerConnection",
    "Network",
    "connect",
]
