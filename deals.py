"""Deal token service: one object wiring the ledger, wallets and ticketing."""

import logging
from typing import Optional

import preflight
from config import DealConfig
from core.result import OperationResult
from core.types import (
    DealMetadata,
    DealRecord,
    DealTokenIdentity,
    ListingRecord,
    MintState,
    RedemptionTicket,
    TransferReceipt,
    VerifiedRedemption,
)
from ledger.connection import LedgerConnection, connect
from redemption import RedemptionTicketing, TicketInput
from submitter import TransactionSubmitter
from tokens.minting import MintOrchestrator, inspect_mint
from tokens.transfers import TokenRef, TransferOrchestrator

logger = logging.getLogger(__name__)


class DealService:
    """Deal token lifecycle: mint, move, list, sell and redeem.

    Holds no wallet state. Every call takes the wallet handle it acts for.
    """

    def __init__(self, config: DealConfig, connection: Optional[LedgerConnection] = None):
        """Initialize the service.

        Args:
            config: Service configuration
            connection: Ledger handle; built from config when omitted
        """
        self.config = config
        self.connection = connection or connect(
            config.network,
            rpc_url=config.rpc_url,
            commitment=config.commitment,
            explorer_base=config.explorer_base,
        )
        self.submitter = TransactionSubmitter(
            self.connection,
            mode=config.mode,
            options=config.submit_options(),
        )
        self.minting = MintOrchestrator(
            self.connection,
            self.submitter,
            required_lamports=config.mint_required_lamports,
            resume_required_lamports=config.transfer_required_lamports,
        )
        self.transfers = TransferOrchestrator(
            self.connection,
            self.submitter,
            marketplace_address=config.marketplace_address or None,
            required_lamports=config.transfer_required_lamports,
        )
        self.ticketing = RedemptionTicketing(
            signing_key=config.signing_key(),
            ttl=config.ticket_ttl,
        )

        logger.info(
            f"Initialized deal service on {config.network.value} "
            f"({config.mode.value} mode, tickets {'signed' if self.ticketing.signing_key else 'digest-only'})"
        )

    async def start(self) -> None:
        """Start the service."""
        logger.info("Starting deal service...")
        self.config.validate()
        await self.connection.start()
        logger.info("Deal service started successfully")

    async def stop(self) -> None:
        """Stop the service."""
        logger.info("Stopping deal service...")
        await self.connection.stop()
        logger.info("Deal service stopped")

    async def __aenter__(self) -> "DealService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def mint(self, wallet_handle, metadata: DealMetadata) -> OperationResult[DealTokenIdentity]:
        return await self.minting.mint(wallet_handle, metadata)

    async def resume_mint(
        self,
        wallet_handle,
        mint_address: str,
        metadata: DealMetadata,
    ) -> OperationResult[DealTokenIdentity]:
        return await self.minting.resume(wallet_handle, mint_address, metadata)

    async def inspect_mint(self, mint_address: str) -> OperationResult[MintState]:
        return await inspect_mint(self.connection, mint_address)

    async def transfer(self, wallet_handle, token: TokenRef, to_address: str) -> OperationResult[TransferReceipt]:
        return await self.transfers.transfer(wallet_handle, token, to_address)

    async def list_for_sale(self, wallet_handle, token: TokenRef, ask_price) -> OperationResult[ListingRecord]:
        return await self.transfers.list(wallet_handle, token, ask_price)

    async def buy(self, wallet_handle, listing: ListingRecord) -> OperationResult[ListingRecord]:
        return await self.transfers.sell(wallet_handle, listing)

    async def check_balance(self, address: str, required_lamports: int) -> OperationResult[None]:
        return await preflight.check(self.connection, address, required_lamports)

    async def get_wallet_balance(self, address: str) -> str:
        """Balance in SOL, four decimals."""
        return await preflight.get_wallet_balance(self.connection, address)

    def issue_ticket(self, deal: DealRecord) -> OperationResult[RedemptionTicket]:
        return self.ticketing.issue(deal)

    def verify_ticket(self, ticket: TicketInput) -> OperationResult[VerifiedRedemption]:
        return self.ticketing.verify(ticket)
