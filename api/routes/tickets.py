"""Redemption ticket endpoints for point-of-sale scanners."""

import logging
from fastapi import APIRouter, HTTPException, Depends

from api.models import (
    TicketRequest,
    TicketResponse,
    TicketVerifyRequest,
    VerifiedTicketResponse,
)
from api.dependencies import get_database, get_service, raise_for_result
from core.types import DealRecord, VerifiedRedemption
from database import DealDatabase
from deals import DealService
from redemption import ticket_to_document, ticket_to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


def _verified_response(verified: VerifiedRedemption, redeemed: bool = False) -> VerifiedTicketResponse:
    return VerifiedTicketResponse(
        deal_id=verified.deal_id,
        deal_title=verified.deal_title,
        merchant=verified.merchant,
        discount_price=verified.discount_price,
        verified_at=verified.verified_at.isoformat(),
        redeemed=redeemed,
    )


@router.post("", response_model=TicketResponse)
async def issue_ticket(
    request: TicketRequest,
    service: DealService = Depends(get_service)
):
    """Issue a signed ticket for a deal the holder owns.

    The app renders qr_payload as the QR code shown at the counter.
    """
    result = service.issue_ticket(DealRecord(
        deal_id=request.deal_id,
        title=request.title,
        merchant=request.merchant,
        deal_price=request.deal_price,
        expiry_date=request.expiry_date,
        redemption_type=request.redemption_type,
    ))
    raise_for_result(result)

    ticket = result.value
    return TicketResponse(
        ticket=ticket_to_document(ticket),
        qr_payload=ticket_to_json(ticket),
        expires_at=ticket.expires_at.isoformat(),
    )


@router.post("/verify", response_model=VerifiedTicketResponse)
async def verify_ticket(
    request: TicketVerifyRequest,
    service: DealService = Depends(get_service),
    db: DealDatabase = Depends(get_database)
):
    """Check a scanned ticket without consuming it."""
    result = service.verify_ticket(request.ticket)
    raise_for_result(result)

    verified = result.value
    redeemed = await db.is_ticket_redeemed(verified.signature_payload)
    return _verified_response(verified, redeemed=redeemed)


@router.post("/redeem", response_model=VerifiedTicketResponse)
async def redeem_ticket(
    request: TicketVerifyRequest,
    service: DealService = Depends(get_service),
    db: DealDatabase = Depends(get_database)
):
    """Verify a scanned ticket and consume it. A ticket redeems once."""
    result = service.verify_ticket(request.ticket)
    raise_for_result(result)

    verified = result.value
    consumed = await db.mark_ticket_redeemed(
        verified.signature_payload, verified.deal_id, verified.merchant
    )
    if not consumed:
        raise HTTPException(status_code=409, detail="Ticket already redeemed")

    logger.info(f"Redeemed deal {verified.deal_id} at {verified.merchant or 'unknown merchant'}")
    return _verified_response(verified, redeemed=True)
