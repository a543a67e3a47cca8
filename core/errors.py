"""Error types for the deal token core."""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed set of failure classes surfaced in OperationResult."""
    WALLET_NOT_CONNECTED = "WalletNotConnected"
    WALLET_INCAPABLE = "WalletIncapable"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    INVALID_INPUT = "InvalidInput"
    INVALID_RECIPIENT = "InvalidRecipient"
    SIGNING_REJECTED = "SigningRejected"
    SUBMISSION_FAILED = "SubmissionFailed"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeout"
    PARTIALLY_MINTED = "PartiallyMinted"
    INVALID_TICKET_FORMAT = "InvalidTicketFormat"
    TICKET_EXPIRED = "TicketExpired"


class DealError(Exception):
    """Base exception for all deal token errors."""
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class WalletNotConnectedError(DealError):
    """No address could be found on the wallet handle."""
    kind = ErrorKind.WALLET_NOT_CONNECTED


class WalletIncapableError(DealError):
    """Wallet exposes neither a signing nor a sign-and-send method."""
    kind = ErrorKind.WALLET_INCAPABLE


class InsufficientBalanceError(DealError):
    """Spendable balance is below the operation threshold."""
    kind = ErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, message: str, balance: int = 0, required: int = 0):
        self.balance = balance
        self.required = required
        self.shortfall = max(required - balance, 0)
        super().__init__(message)


class InvalidInputError(DealError):
    """Malformed metadata, address, price or network."""
    kind = ErrorKind.INVALID_INPUT


class InvalidRecipientError(InvalidInputError):
    """Recipient address is malformed or equal to the sender."""
    kind = ErrorKind.INVALID_RECIPIENT


class SigningRejectedError(DealError):
    """Wallet refused to sign; the transaction was never sent."""
    kind = ErrorKind.SIGNING_REJECTED


class SubmissionFailedError(DealError):
    """Submission failed after retries or the ledger rejected the transaction."""
    kind = ErrorKind.SUBMISSION_FAILED


class LedgerError(SubmissionFailedError):
    """Errors talking to the ledger RPC node."""
    pass


class LedgerUnavailableError(LedgerError):
    """Transport-level failure: the node did not answer."""
    pass


class RPCError(LedgerError):
    """Errors returned inside a JSON-RPC response."""
    def __init__(self, message: str, method: str = "", code: Optional[int] = None):
        self.method = method
        self.code = code
        super().__init__(f"RPC Error [{method}]: {message} (code {code})")


class ConfirmationTimeoutError(DealError):
    """Transaction was sent but not confirmed within the bounded wait."""
    kind = ErrorKind.CONFIRMATION_TIMEOUT

    def __init__(self, message: str, signature: str = ""):
        self.signature = signature
        super().__init__(message)


class PartiallyMintedError(DealError):
    """Mint account exists but supply was not fixed."""
    kind = ErrorKind.PARTIALLY_MINTED

    def __init__(self, message: str, mint_address: str = ""):
        self.mint_address = mint_address
        super().__init__(message)


class InvalidTicketFormatError(DealError):
    """Ticket document is malformed or its signature does not match."""
    kind = ErrorKind.INVALID_TICKET_FORMAT


class TicketExpiredError(DealError):
    """Ticket expiry has passed."""
    kind = ErrorKind.TICKET_EXPIRED


class ConfigurationError(Exception):
    """Errors related to configuration."""
    pass
