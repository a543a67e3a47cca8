"""Core types for the deal token core."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, NewType, Optional, Tuple

# Type aliases
PublicAddress = NewType("PublicAddress", str)  # base58 ed25519 public key


class Mode(Enum):
    """Submission mode; SIMULATED returns placeholder signatures."""
    PRODUCTION = "production"
    SIMULATED = "simulated"


@dataclass(frozen=True)
class WalletCapabilityDescriptor:
    """What a wallet handle can do, resolved once per call.

    The resolved callables travel with the descriptor so that no other
    component needs to know where a wallet keeps its methods.
    """
    address: PublicAddress
    can_sign_transaction: bool
    can_sign_and_send: bool
    sign_transaction: Optional[Callable[..., Any]] = field(default=None, repr=False, compare=False)
    sign_and_send: Optional[Callable[..., Any]] = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class DealMetadata:
    """Descriptive attributes attached to a deal token at mint time."""
    title: str
    description: str
    merchant: str = ""
    discount_percent: str = "0"
    original_price: str = "0"
    deal_price: str = "0"
    category: str = "General"
    expiry_date: str = ""
    image_reference: str = ""

    def to_document(self, creator: str) -> Dict[str, Any]:
        """Render the NFT-style metadata document stored off-ledger."""
        return {
            "name": self.title or "Deal NFT",
            "symbol": "DEAL",
            "description": self.description,
            "image": self.image_reference,
            "attributes": [
                {"trait_type": "Merchant", "value": self.merchant or "Unknown"},
                {"trait_type": "Discount", "value": f"{self.discount_percent or 0}%"},
                {"trait_type": "Expiry", "value": self.expiry_date or "N/A"},
                {"trait_type": "Category", "value": self.category or "General"},
                {"trait_type": "Original Price", "value": f"${self.original_price or 0}"},
                {"trait_type": "Deal Price", "value": f"${self.deal_price or 0}"},
            ],
            "properties": {
                "files": [{"uri": self.image_reference, "type": "image/png"}] if self.image_reference else [],
                "category": "image",
                "creators": [{"address": creator, "share": 100}],
            },
        }


@dataclass(frozen=True)
class DealTokenIdentity:
    """A minted single-edition deal token."""
    mint_address: PublicAddress
    owner_address: PublicAddress
    metadata: DealMetadata
    token_account: Optional[PublicAddress] = None  # owner's associated account
    signatures: Tuple[str, ...] = ()  # (create+initialize, mint+revoke)

    @property
    def metadata_document(self) -> Dict[str, Any]:
        """Off-ledger NFT metadata with the owner as sole creator."""
        return self.metadata.to_document(self.owner_address)


@dataclass(frozen=True)
class MintState:
    """Decoded SPL mint account."""
    mint_address: PublicAddress
    supply: int
    decimals: int
    is_initialized: bool
    mint_authority: Optional[PublicAddress]
    freeze_authority: Optional[PublicAddress]

    @property
    def supply_fixed(self) -> bool:
        return self.mint_authority is None


@dataclass(frozen=True)
class TransferReceipt:
    """Result of moving a deal token to another owner."""
    nft_id: str
    from_address: PublicAddress
    to_address: PublicAddress
    signature: str
    transferred_at: datetime


class ListingStatus(Enum):
    """Secondary-market listing lifecycle."""
    LISTED = "listed"
    SOLD = "sold"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ListingRecord:
    """A deal token offered on the secondary market."""
    nft_id: str
    seller_address: PublicAddress
    ask_price: str  # SOL, decimal string
    status: ListingStatus
    transaction_ref: str
    buyer_address: Optional[PublicAddress] = None


@dataclass(frozen=True)
class DealRecord:
    """Deal fields packaged into a redemption ticket."""
    deal_id: str
    title: str
    merchant: str
    deal_price: str
    expiry_date: str  # YYYY-MM-DD
    redemption_type: str = "QR"


@dataclass(frozen=True)
class RedemptionTicket:
    """Signed, time-boxed redemption payload."""
    deal_id: str
    deal_title: str
    merchant: str
    discount_price: str
    expiry_date: str
    redemption_type: str
    issued_at: datetime
    expires_at: datetime
    signature_payload: str


@dataclass(frozen=True)
class VerifiedRedemption:
    """A ticket that passed verification."""
    deal_id: str
    deal_title: str
    merchant: str
    discount_price: str
    verified_at: datetime
    signature_payload: str = ""


@dataclass(frozen=True)
class AccountInfo:
    """Ledger account as returned by getAccountInfo."""
    lamports: int
    owner: str
    data: bytes
    executable: bool


@dataclass(frozen=True)
class SignatureStatus:
    """Ledger status of a submitted transaction."""
    slot: int
    confirmations: Optional[int]
    err: Optional[Any]
    confirmation_status: Optional[str]

