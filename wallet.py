"""Wallet capability probing and local keypair wallets."""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from core.errors import ConfigurationError, WalletNotConnectedError
from core.result import OperationResult
from core.types import PublicAddress, WalletCapabilityDescriptor

logger = logging.getLogger(__name__)

# Lookup order: top level first, then the adapter object some integrations nest
ADDRESS_FIELDS: Tuple[str, ...] = ("public_key", "publicKey")
SIGN_FIELDS: Tuple[str, ...] = ("sign_transaction", "signTransaction")
SIGN_AND_SEND_FIELDS: Tuple[str, ...] = ("sign_and_send_transaction", "signAndSendTransaction")
NESTED_FIELD = "adapter"


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _first(obj: Any, names: Tuple[str, ...], predicate: Callable[[Any], bool]) -> Any:
    for scope in (obj, _field(obj, NESTED_FIELD)):
        for name in names:
            value = _field(scope, name)
            if predicate(value):
                return value
    return None


def _resolve_address(wallet_handle: Any) -> Optional[PublicAddress]:
    value = _first(wallet_handle, ADDRESS_FIELDS, lambda v: v is not None and str(v) != "")
    if value is None:
        return None
    return PublicAddress(str(value))


def probe(wallet_handle: Any) -> OperationResult[WalletCapabilityDescriptor]:
    """Normalize an opaque wallet handle into a capability descriptor.

    Args:
        wallet_handle: Object or mapping from the wallet integration

    Returns:
        OperationResult with the descriptor, or WalletNotConnected if no
        address is exposed. Missing methods are reported as False.
    """
    try:
        address = _resolve_address(wallet_handle)
        if address is None:
            raise WalletNotConnectedError("Wallet not connected - no public key")

        sign = _first(wallet_handle, SIGN_FIELDS, callable)
        sign_and_send = _first(wallet_handle, SIGN_AND_SEND_FIELDS, callable)
    except WalletNotConnectedError as e:
        return OperationResult.from_error(e)

    descriptor = WalletCapabilityDescriptor(
        address=address,
        can_sign_transaction=sign is not None,
        can_sign_and_send=sign_and_send is not None,
        sign_transaction=sign,
        sign_and_send=sign_and_send,
    )
    logger.debug(
        f"Probed wallet {address[:16]}...: sign={descriptor.can_sign_transaction} "
        f"sign_and_send={descriptor.can_sign_and_send}"
    )
    return OperationResult.ok(descriptor)


class KeypairWallet:
    """Wallet handle backed by a local keypair.

    Exposes the same shape as a browser wallet adapter: a public key and a
    ``sign_transaction`` coroutine. Useful for scripts and devnet testing.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self.public_key: Pubkey = keypair.pubkey()

    async def sign_transaction(self, transaction: Transaction) -> Transaction:
        """Add this wallet's signature, keeping any existing ones."""
        transaction.partial_sign([self._keypair], transaction.message.recent_blockhash)
        return transaction


def load_keypair_wallet(keyfile_path: str) -> KeypairWallet:
    """Load a wallet from a Solana CLI keypair file.

    Args:
        keyfile_path: Path to a JSON array of 64 secret key bytes

    Returns:
        KeypairWallet instance

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(keyfile_path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Keypair file not found: {path}")

    logger.info(f"Loading wallet from keyfile: {path}")

    try:
        with open(path, "r") as f:
            secret = json.load(f)
        keypair = Keypair.from_bytes(bytes(secret))
    except (OSError, ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid keypair file {path}: {e}")

    wallet = KeypairWallet(keypair)
    logger.info(f"Loaded wallet with address: {wallet.public_key}")
    return wallet
