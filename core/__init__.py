"""Core types, results, and errors for deal tokens."""

from core.errors import (
    ConfigurationError,
    DealError,
    ErrorKind,
)
from core.result import OperationResult
from core.types import (
    PublicAddress,
    Mode,
    WalletCapabilityDescriptor,
    DealMetadata,
    DealTokenIdentity,
    MintState,
    TransferReceipt,
    ListingStatus,
    ListingRecord,
    DealRecord,
    RedemptionTicket,
    VerifiedRedemption,
)

__all__ = [
    "ConfigurationError",
    "DealError",
    "ErrorKind",
    "OperationResult",
    "PublicAddress",
    "Mode",
    "WalletCapabilityDescriptor",
    "DealMetadata",
    "DealTokenIdentity",
    "MintState",
    "TransferReceipt",
    "ListingStatus",
    "ListingRecord",
    "DealRecord",
    "RedemptionTicket",
    "VerifiedRedemption",
]
