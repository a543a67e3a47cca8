"""Secondary-market listing endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Depends

from api.models import ListingRequest, ListingResponse
from api.dependencies import get_database
from core.errors import InvalidInputError
from core.types import ListingRecord, ListingStatus, PublicAddress
from database import DealDatabase
from ledger.accounts import is_valid_address
from tokens.transfers import parse_price

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])


def _listing_response(listing: ListingRecord) -> ListingResponse:
    return ListingResponse(
        nft_id=listing.nft_id,
        seller_address=listing.seller_address,
        ask_price=listing.ask_price,
        status=listing.status.value,
        transaction_ref=listing.transaction_ref,
        buyer_address=listing.buyer_address,
    )


@router.post("", response_model=ListingResponse)
async def create_listing(
    request: ListingRequest,
    db: DealDatabase = Depends(get_database)
):
    """Record a listing after the token has moved into escrow."""
    if not is_valid_address(request.nft_id) or not is_valid_address(request.seller_address):
        raise HTTPException(status_code=400, detail="Invalid token or seller address")

    try:
        price = parse_price(request.ask_price)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    existing = await db.get_listing(request.nft_id)
    if existing and existing.status is ListingStatus.LISTED:
        raise HTTPException(status_code=409, detail=f"Token {request.nft_id} is already listed")

    listing = ListingRecord(
        nft_id=request.nft_id,
        seller_address=PublicAddress(request.seller_address),
        ask_price=str(price),
        status=ListingStatus.LISTED,
        transaction_ref=request.transaction_ref,
    )
    await db.save_listing(listing)
    logger.info(f"Recorded listing {request.nft_id[:16]}... at {price} SOL")
    return _listing_response(listing)


@router.get("/{nft_id}", response_model=ListingResponse)
async def get_listing(
    nft_id: str,
    db: DealDatabase = Depends(get_database)
):
    listing = await db.get_listing(nft_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return _listing_response(listing)


@router.post("/{nft_id}/cancel", response_model=ListingResponse)
async def cancel_listing(
    nft_id: str,
    db: DealDatabase = Depends(get_database)
):
    """Withdraw a listing that has not sold."""
    listing = await db.get_listing(nft_id)
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    if listing.status is not ListingStatus.LISTED:
        raise HTTPException(status_code=409, detail=f"Listing is already {listing.status.value}")

    await db.update_listing_status(nft_id, ListingStatus.CANCELLED)
    return _listing_response(await db.get_listing(nft_id))
