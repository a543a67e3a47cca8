"""Read-only ledger endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Depends

from api.models import BalanceResponse, MintStateResponse
from api.dependencies import get_service, raise_for_result
from deals import DealService
from ledger.accounts import is_valid_address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ledger"])


@router.get("/balance/{address}", response_model=BalanceResponse)
async def get_balance(
    address: str,
    service: DealService = Depends(get_service)
):
    """Wallet balance in SOL ("0.0000" when the node cannot be reached)."""
    if not is_valid_address(address):
        raise HTTPException(status_code=400, detail=f"Invalid address: {address}")

    balance = await service.get_wallet_balance(address)
    return BalanceResponse(address=address, balance=balance)


@router.get("/mints/{mint_address}", response_model=MintStateResponse)
async def get_mint(
    mint_address: str,
    service: DealService = Depends(get_service)
):
    """Supply and authorities of a deal token mint.

    supply_fixed is true once the mint authority has been revoked.
    """
    result = await service.inspect_mint(mint_address)
    raise_for_result(result)

    state = result.value
    return MintStateResponse(
        mint_address=state.mint_address,
        supply=state.supply,
        decimals=state.decimals,
        is_initialized=state.is_initialized,
        mint_authority=state.mint_authority,
        freeze_authority=state.freeze_authority,
        supply_fixed=state.supply_fixed,
    )
