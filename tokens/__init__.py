"""Deal token minting and transfers."""

from tokens.minting import MintOrchestrator, inspect_mint
from tokens.transfers import TransferOrchestrator

__all__ = [
    "MintOrchestrator",
    "TransferOrchestrator",
    "inspect_mint",
]
