"""Moving deal tokens between owners and through the secondary market."""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple, Union

from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer as system_transfer
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

import preflight
import wallet
from core.errors import DealError, InvalidInputError, InvalidRecipientError
from core.result import OperationResult
from core.types import (
    DealTokenIdentity,
    ListingRecord,
    ListingStatus,
    PublicAddress,
    TransferReceipt,
    WalletCapabilityDescriptor,
)
from ledger.accounts import parse_address
from submitter import TransactionSubmitter, build_transaction
from tokens.minting import DEAL_TOKEN_DECIMALS, DEAL_TOKEN_SUPPLY

logger = logging.getLogger(__name__)

TokenRef = Union[DealTokenIdentity, str]


def _mint_address(token: TokenRef) -> str:
    if isinstance(token, DealTokenIdentity):
        return token.mint_address
    return str(token)


def parse_price(ask_price) -> Decimal:
    """Parse a positive SOL amount.

    Raises:
        InvalidInputError: If the price is not a positive number
    """
    try:
        price = Decimal(str(ask_price))
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"Invalid price: {ask_price!r}")
    if not price.is_finite() or price <= 0:
        raise InvalidInputError(f"Price must be positive, got {ask_price!r}")
    return price


def sol_to_lamports(amount: Decimal) -> int:
    lamports = int(amount * preflight.LAMPORTS_PER_SOL)
    if lamports <= 0:
        raise InvalidInputError(f"Price {amount} SOL is below one lamport")
    return lamports


def _parse_recipient(sender: Pubkey, recipient) -> Pubkey:
    try:
        to = parse_address(recipient)
    except InvalidInputError as e:
        raise InvalidRecipientError(f"Invalid recipient: {e}")
    if to == sender:
        raise InvalidRecipientError("Recipient must differ from the sender")
    return to


class TransferOrchestrator:
    """Single-transaction token movements: gift, listing and sale.

    Ownership is not checked locally. If the caller does not hold the token
    the ledger rejects the transaction and the result is SubmissionFailed.
    """

    def __init__(
        self,
        connection,
        submitter: TransactionSubmitter,
        marketplace_address: Optional[str] = None,
        required_lamports: int = preflight.TRANSFER_REQUIRED_LAMPORTS,
    ):
        """Initialize the orchestrator.

        Args:
            connection: LedgerConnection handle
            submitter: TransactionSubmitter for the signing event
            marketplace_address: Escrow that holds listed tokens
            required_lamports: Fee reserve checked before every movement
        """
        self.connection = connection
        self.submitter = submitter
        self.marketplace_address = marketplace_address
        self.required_lamports = required_lamports

    async def transfer(self, wallet_handle, token: TokenRef, to_address: str) -> OperationResult[TransferReceipt]:
        """Give a deal token to another wallet."""
        try:
            descriptor, sender = self._resolve_wallet(wallet_handle)
            recipient = _parse_recipient(sender, to_address)
            mint = parse_address(_mint_address(token))

            await preflight.ensure_balance(self.connection, descriptor.address, self.required_lamports)
            signature = await self._move_token(descriptor, sender, mint, recipient)
        except DealError as e:
            logger.error(f"Transfer failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        receipt = TransferReceipt(
            nft_id=str(mint),
            from_address=descriptor.address,
            to_address=PublicAddress(str(recipient)),
            signature=signature,
            transferred_at=datetime.now(timezone.utc),
        )
        logger.info(f"Transferred {str(mint)[:16]}... to {str(recipient)[:16]}...")
        return OperationResult.ok(receipt, explorer_ref=self.connection.explorer_url(signature))

    async def list(self, wallet_handle, token: TokenRef, ask_price) -> OperationResult[ListingRecord]:
        """Move a deal token into marketplace escrow at an asking price."""
        try:
            price = parse_price(ask_price)
            if not self.marketplace_address:
                raise InvalidInputError("No marketplace address is configured")

            descriptor, seller = self._resolve_wallet(wallet_handle)
            escrow = _parse_recipient(seller, self.marketplace_address)
            mint = parse_address(_mint_address(token))

            await preflight.ensure_balance(self.connection, descriptor.address, self.required_lamports)
            signature = await self._move_token(descriptor, seller, mint, escrow)
        except DealError as e:
            logger.error(f"Listing failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        listing = ListingRecord(
            nft_id=str(mint),
            seller_address=descriptor.address,
            ask_price=str(price),
            status=ListingStatus.LISTED,
            transaction_ref=signature,
        )
        logger.info(f"Listed {str(mint)[:16]}... for {price} SOL")
        return OperationResult.ok(listing, explorer_ref=self.connection.explorer_url(signature))

    async def sell(self, wallet_handle, listing: ListingRecord) -> OperationResult[ListingRecord]:
        """Pay a listing's asking price from the buyer's wallet to the seller."""
        try:
            if listing.status is not ListingStatus.LISTED:
                raise InvalidInputError(f"Listing {listing.nft_id} is {listing.status.value}, not listed")
            price = parse_price(listing.ask_price)
            lamports = sol_to_lamports(price)

            descriptor, buyer = self._resolve_wallet(wallet_handle)
            seller = _parse_recipient(buyer, listing.seller_address)

            await preflight.ensure_balance(
                self.connection, descriptor.address, lamports + self.required_lamports
            )
            signature = await self._move_lamports(descriptor, buyer, seller, lamports)
        except DealError as e:
            logger.error(f"Purchase failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        sold = ListingRecord(
            nft_id=listing.nft_id,
            seller_address=listing.seller_address,
            ask_price=listing.ask_price,
            status=ListingStatus.SOLD,
            transaction_ref=signature,
            buyer_address=descriptor.address,
        )
        logger.info(f"Sold {listing.nft_id[:16]}... to {descriptor.address[:16]}... for {price} SOL")
        return OperationResult.ok(sold, explorer_ref=self.connection.explorer_url(signature))

    def _resolve_wallet(self, wallet_handle) -> Tuple[WalletCapabilityDescriptor, Pubkey]:
        descriptor = wallet.probe(wallet_handle).unwrap()
        return descriptor, parse_address(descriptor.address)

    async def _move_token(
        self,
        descriptor: WalletCapabilityDescriptor,
        sender: Pubkey,
        mint: Pubkey,
        recipient: Pubkey,
    ) -> str:
        source = get_associated_token_address(sender, mint)
        destination = get_associated_token_address(recipient, mint)
        existing, blockhash = await asyncio.gather(
            self.connection.get_account_info(str(destination)),
            self.connection.get_latest_blockhash(),
        )

        instructions: List[Instruction] = []
        if existing is None:
            instructions.append(create_associated_token_account(payer=sender, owner=recipient, mint=mint))
        instructions.append(transfer_checked(TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=source,
            mint=mint,
            dest=destination,
            owner=sender,
            amount=DEAL_TOKEN_SUPPLY,
            decimals=DEAL_TOKEN_DECIMALS,
        )))

        return await self._submit_movement(descriptor, sender, instructions, blockhash)

    async def _move_lamports(
        self,
        descriptor: WalletCapabilityDescriptor,
        sender: Pubkey,
        recipient: Pubkey,
        lamports: int,
    ) -> str:
        instruction = system_transfer(TransferParams(
            from_pubkey=sender,
            to_pubkey=recipient,
            lamports=lamports,
        ))
        return await self._submit_movement(descriptor, sender, [instruction])

    async def _submit_movement(
        self,
        descriptor: WalletCapabilityDescriptor,
        payer: Pubkey,
        instructions: List[Instruction],
        blockhash: Optional[Hash] = None,
    ) -> str:
        """Build, sign and confirm one movement; the only signing event per call."""
        if blockhash is None:
            blockhash = await self.connection.get_latest_blockhash()
        transaction = build_transaction(instructions, payer, blockhash)
        return await self.submitter.sign_send_confirm(descriptor, transaction)
