"""Pydantic models for API requests and responses."""

from typing import Any, Dict, Optional, Union
from pydantic import BaseModel


class TicketRequest(BaseModel):
    """Request to issue a redemption ticket for a deal."""
    deal_id: str
    title: str
    merchant: str = ""
    deal_price: str = "0"
    expiry_date: str = ""  # YYYY-MM-DD
    redemption_type: str = "QR"


class TicketResponse(BaseModel):
    """Issued ticket as its wire document plus the QR payload text."""
    ticket: Dict[str, str]
    qr_payload: str
    expires_at: str


class TicketVerifyRequest(BaseModel):
    """Scanned ticket: the wire document or the raw QR text."""
    ticket: Union[Dict[str, Any], str]


class VerifiedTicketResponse(BaseModel):
    """Verification outcome."""
    deal_id: str
    deal_title: str
    merchant: str
    discount_price: str
    verified_at: str
    redeemed: bool = False


class BalanceResponse(BaseModel):
    """Wallet balance in SOL."""
    address: str
    balance: str


class MintStateResponse(BaseModel):
    """Decoded mint account."""
    mint_address: str
    supply: int
    decimals: int
    is_initialized: bool
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None
    supply_fixed: bool


class ListingRequest(BaseModel):
    """Record a listing whose escrow transfer has already landed."""
    nft_id: str
    seller_address: str
    ask_price: str
    transaction_ref: str


class ListingResponse(BaseModel):
    """Listing state."""
    nft_id: str
    seller_address: str
    ask_price: str
    status: str  # "listed", "sold", "cancelled"
    transaction_ref: str
    buyer_address: Optional[str] = None


class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    service: str
    version: str
    network: str
