"""Balance checks run before any transaction is built."""

import logging

from core.errors import DealError, InsufficientBalanceError
from core.result import OperationResult

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# Minting pays for a new mint account plus metadata, so it needs a larger reserve
MINT_REQUIRED_LAMPORTS = 100_000_000
TRANSFER_REQUIRED_LAMPORTS = 5_000


def format_sol(lamports: int) -> str:
    """Format lamports as SOL with four decimal places."""
    return f"{lamports / LAMPORTS_PER_SOL:.4f}"


async def ensure_balance(connection, address: str, required_lamports: int) -> int:
    """Read the balance once and raise if it is below the threshold.

    Returns:
        The balance in lamports

    Raises:
        InsufficientBalanceError: If the balance is too low
        LedgerError: If the balance could not be read
    """
    balance = await connection.get_balance(address)
    logger.debug(f"Balance of {address[:16]}...: {balance} lamports (need {required_lamports})")

    if balance < required_lamports:
        shortfall = required_lamports - balance
        raise InsufficientBalanceError(
            f"Insufficient balance. Wallet has {format_sol(balance)} SOL, "
            f"but needs at least {format_sol(required_lamports)} SOL "
            f"(short by {format_sol(shortfall)} SOL).",
            balance=balance,
            required=required_lamports,
        )
    return balance


async def check(connection, address: str, required_lamports: int) -> OperationResult[None]:
    """Gate an operation on the wallet's spendable balance.

    Args:
        connection: LedgerConnection handle
        address: Wallet address
        required_lamports: Operation threshold

    Returns:
        OperationResult; InsufficientBalance carries the shortfall in the message
    """
    try:
        await ensure_balance(connection, address, required_lamports)
    except DealError as e:
        logger.warning(f"Preflight failed for {address[:16]}...: {e}")
        return OperationResult.from_error(e)
    return OperationResult.ok()


async def get_wallet_balance(connection, address: str) -> str:
    """Balance formatted for display; "0.0000" if it cannot be read."""
    try:
        balance = await connection.get_balance(address)
        return format_sol(balance)
    except DealError as e:
        logger.error(f"Failed to get balance: {e}")
        return "0.0000"
