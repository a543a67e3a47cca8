"""Uniform result type returned by every public operation."""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from core import errors
from core.errors import DealError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Success value or classified error.

    On failure ``value`` may still carry data the caller needs to recover,
    such as the mint address of a partially minted token or the signature
    of a transaction whose confirmation timed out.
    """
    success: bool
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    explorer_ref: Optional[str] = None

    @classmethod
    def ok(
        cls,
        value: Optional[T] = None,
        explorer_ref: Optional[str] = None,
        message: str = "",
    ) -> "OperationResult[T]":
        return cls(success=True, value=value, explorer_ref=explorer_ref, message=message)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        value: Any = None,
        explorer_ref: Optional[str] = None,
    ) -> "OperationResult[T]":
        return cls(
            success=False,
            value=value,
            error_kind=kind,
            message=message,
            explorer_ref=explorer_ref,
        )

    @classmethod
    def from_error(cls, error: DealError, value: Any = None) -> "OperationResult[T]":
        """Convert a raised DealError at the public boundary."""
        if value is None:
            value = getattr(error, "mint_address", None) or getattr(error, "signature", None)
        return cls.fail(error.kind, str(error), value=value)

    def unwrap(self) -> T:
        """Return the value or raise the matching DealError.

        Used by internal callers that compose several public operations.
        """
        if not self.success:
            raise _ERRORS_BY_KIND.get(self.error_kind, DealError)(self.message)
        return self.value


_ERRORS_BY_KIND = {
    ErrorKind.WALLET_NOT_CONNECTED: errors.WalletNotConnectedError,
    ErrorKind.WALLET_INCAPABLE: errors.WalletIncapableError,
    ErrorKind.INSUFFICIENT_BALANCE: errors.InsufficientBalanceError,
    ErrorKind.INVALID_INPUT: errors.InvalidInputError,
    ErrorKind.INVALID_RECIPIENT: errors.InvalidRecipientError,
    ErrorKind.SIGNING_REJECTED: errors.SigningRejectedError,
    ErrorKind.SUBMISSION_FAILED: errors.SubmissionFailedError,
    ErrorKind.CONFIRMATION_TIMEOUT: errors.ConfirmationTimeoutError,
    ErrorKind.PARTIALLY_MINTED: errors.PartiallyMintedError,
    ErrorKind.INVALID_TICKET_FORMAT: errors.InvalidTicketFormatError,
    ErrorKind.TICKET_EXPIRED: errors.TicketExpiredError,
}
