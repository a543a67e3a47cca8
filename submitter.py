"""Sign, send and confirm transactions through a wallet."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from core.errors import (
    ConfirmationTimeoutError,
    DealError,
    LedgerError,
    LedgerUnavailableError,
    SigningRejectedError,
    SubmissionFailedError,
    WalletIncapableError,
)
from core.result import OperationResult
from core.types import Mode, WalletCapabilityDescriptor

logger = logging.getLogger(__name__)

COMMITMENT_ORDER = ("processed", "confirmed", "finalized")
USER_REJECTED_CODE = 4001  # wallet-standard "user rejected the request"


@dataclass(frozen=True)
class SubmitOptions:
    """Retry and confirmation bounds for one submission."""
    max_retries: int = 3
    retry_delay: float = 0.5  # doubled after each failed attempt
    confirmation_timeout: float = 60.0
    poll_interval: float = 1.0
    commitment: str = "confirmed"
    skip_preflight: bool = False


def _reached(status: Optional[str], commitment: str) -> bool:
    if status not in COMMITMENT_ORDER:
        return False
    return COMMITMENT_ORDER.index(status) >= COMMITMENT_ORDER.index(commitment)


def _is_user_rejection(error: Exception) -> bool:
    if getattr(error, "code", None) == USER_REJECTED_CODE:
        return True
    return "user rejected" in str(error).lower()


async def _invoke(method, *args) -> Any:
    result = method(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def build_transaction(instructions: List[Instruction], payer: Pubkey, blockhash: Hash) -> Transaction:
    """Unsigned transaction with the wallet as fee payer."""
    message = Message.new_with_blockhash(instructions, payer, blockhash)
    return Transaction.new_unsigned(message)


class TransactionSubmitter:
    """Hands transactions to a wallet, submits them and waits for confirmation.

    Sign-then-send-raw is preferred because the signed bytes can be checked
    before they leave the process. Wallets that only offer a combined
    sign-and-send method are used as a fallback. A wallet with neither fails
    with WalletIncapable, unless the submitter was built in SIMULATED mode,
    where a placeholder signature is returned and nothing is sent.
    """

    def __init__(self, connection, mode: Mode = Mode.PRODUCTION, options: Optional[SubmitOptions] = None):
        """Initialize the submitter.

        Args:
            connection: LedgerConnection handle
            mode: PRODUCTION or SIMULATED
            options: Default retry and confirmation bounds
        """
        self.connection = connection
        self.mode = mode
        self.options = options or SubmitOptions()

    async def submit(
        self,
        wallet: WalletCapabilityDescriptor,
        transaction: Transaction,
        options: Optional[SubmitOptions] = None,
    ) -> OperationResult[str]:
        """Sign, send and confirm one transaction.

        Args:
            wallet: Descriptor from wallet.probe
            transaction: Unsigned (or partially signed) transaction
            options: Overrides for this call

        Returns:
            OperationResult with the base58 signature and explorer reference.
            ConfirmationTimeout carries the signature so the caller can re-check.
        """
        try:
            signature = await self.sign_send_confirm(wallet, transaction, options)
        except DealError as e:
            logger.error(f"Submission failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        return OperationResult.ok(signature, explorer_ref=self.connection.explorer_url(signature))

    async def sign_send_confirm(
        self,
        wallet: WalletCapabilityDescriptor,
        transaction: Transaction,
        options: Optional[SubmitOptions] = None,
    ) -> str:
        """Raising variant of submit() for orchestrators."""
        opts = options or self.options

        if wallet.can_sign_transaction:
            signed = await self._sign(wallet, transaction)
            signature = await self._send_raw(bytes(signed), opts)
        elif wallet.can_sign_and_send:
            signature = await self._sign_and_send(wallet, transaction)
        elif self.mode is Mode.SIMULATED:
            signature = str(Signature.new_unique())
            logger.warning(f"Simulated mode: returning placeholder signature {signature[:16]}...")
            return signature
        else:
            raise WalletIncapableError(
                f"Wallet {wallet.address[:16]}... can neither sign nor sign-and-send transactions"
            )

        await self._await_confirmation(signature, opts)
        return signature

    async def _sign(self, wallet: WalletCapabilityDescriptor, transaction: Transaction) -> Transaction:
        try:
            signed = await _invoke(wallet.sign_transaction, transaction)
        except Exception as e:
            raise SigningRejectedError(f"Wallet rejected signature request: {e}")

        if not isinstance(signed, Transaction):
            raise SigningRejectedError("Wallet returned no signed transaction")

        # Fee payer signs first; a default signature means the wallet did not sign
        if not signed.signatures or signed.signatures[0] == Signature.default():
            raise SigningRejectedError("Transaction is missing the fee payer signature")
        if any(sig == Signature.default() for sig in signed.signatures):
            raise SigningRejectedError("Transaction is missing a required signature")

        return signed

    async def _sign_and_send(self, wallet: WalletCapabilityDescriptor, transaction: Transaction) -> str:
        try:
            result = await _invoke(wallet.sign_and_send, transaction)
        except Exception as e:
            if _is_user_rejection(e):
                raise SigningRejectedError(f"Wallet rejected signature request: {e}")
            # The wallet may have broadcast before failing, so this is not a clean rejection
            raise SubmissionFailedError(f"Wallet sign-and-send failed: {e}")

        signature = result.get("signature") if isinstance(result, dict) else result
        if not signature:
            raise SubmissionFailedError("Wallet sign-and-send returned no signature")
        logger.info(f"Wallet sent transaction {str(signature)[:16]}...")
        return str(signature)

    async def _send_raw(self, raw: bytes, opts: SubmitOptions) -> str:
        attempts = max(opts.max_retries, 0) + 1
        delay = opts.retry_delay

        for attempt in range(1, attempts + 1):
            try:
                signature = await self.connection.send_raw_transaction(
                    raw, skip_preflight=opts.skip_preflight
                )
                logger.info(f"Sent transaction {signature[:16]}... (attempt {attempt}/{attempts})")
                return signature
            except LedgerUnavailableError as e:
                if attempt == attempts:
                    raise SubmissionFailedError(
                        f"Submission failed after {attempts} attempts: {e}"
                    )
                logger.warning(f"Send attempt {attempt}/{attempts} failed: {e}; retrying in {delay}s")
                await asyncio.sleep(delay)
                delay *= 2

        raise SubmissionFailedError("Submission was not attempted")

    async def _await_confirmation(self, signature: str, opts: SubmitOptions) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + opts.confirmation_timeout

        while True:
            try:
                statuses = await self.connection.get_signature_statuses([signature])
            except LedgerError as e:
                # Already sent: an unanswered poll leaves the outcome open
                logger.warning(f"Status poll for {signature[:16]}... failed: {e}")
                statuses = [None]

            status = statuses[0] if statuses else None
            if status is not None:
                if status.err is not None:
                    raise SubmissionFailedError(
                        f"Transaction {signature[:16]}... failed on ledger: {status.err}"
                    )
                if _reached(status.confirmation_status, opts.commitment):
                    logger.info(f"Transaction {signature[:16]}... reached {status.confirmation_status}")
                    return

            if loop.time() >= deadline:
                raise ConfirmationTimeoutError(
                    f"Transaction {signature} not confirmed within {opts.confirmation_timeout}s; "
                    f"re-check ledger state before retrying",
                    signature=signature,
                )
            await asyncio.sleep(opts.poll_interval)
