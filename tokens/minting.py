"""Single-edition deal token minting."""

import asyncio
import logging
from typing import List, Optional, Tuple

from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    AuthorityType,
    InitializeMintParams,
    MintToParams,
    SetAuthorityParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
    set_authority,
)

import preflight
import wallet
from core.errors import (
    ConfirmationTimeoutError,
    DealError,
    InvalidInputError,
    PartiallyMintedError,
)
from core.result import OperationResult
from core.types import (
    DealMetadata,
    DealTokenIdentity,
    MintState,
    PublicAddress,
    WalletCapabilityDescriptor,
)
from ledger.accounts import MINT_ACCOUNT_SIZE, decode_mint, parse_address
from submitter import TransactionSubmitter, build_transaction

logger = logging.getLogger(__name__)

DEAL_TOKEN_DECIMALS = 0
DEAL_TOKEN_SUPPLY = 1


def validate_metadata(metadata: DealMetadata) -> None:
    """Raise InvalidInputError unless title and description are present."""
    if not isinstance(metadata, DealMetadata):
        raise InvalidInputError("Deal metadata is required")
    if not metadata.title or not metadata.title.strip():
        raise InvalidInputError("Deal title is required")
    if not metadata.description or not metadata.description.strip():
        raise InvalidInputError("Deal description is required")


async def read_mint(connection, mint_address: str) -> MintState:
    """Fetch and decode a mint account.

    Raises:
        InvalidInputError: If the address is malformed, missing or not a mint
        LedgerError: If the account could not be read
    """
    parse_address(mint_address)
    account = await connection.get_account_info(mint_address)
    if account is None:
        raise InvalidInputError(f"Mint account {mint_address} not found")
    if account.owner != str(TOKEN_PROGRAM_ID):
        raise InvalidInputError(f"Account {mint_address} is not owned by the token program")
    return decode_mint(mint_address, account.data)


async def inspect_mint(connection, mint_address: str) -> OperationResult[MintState]:
    """Report supply, decimals and authorities of a mint.

    A mint with no mint authority has a permanently fixed supply.
    """
    try:
        state = await read_mint(connection, mint_address)
    except DealError as e:
        logger.warning(f"Could not inspect mint {str(mint_address)[:16]}...: {e}")
        return OperationResult.from_error(e)
    return OperationResult.ok(state)


class MintOrchestrator:
    """Creates a deal token in two signing events.

    The first transaction creates and initializes the mint account and is
    co-signed by a throwaway mint keypair. The second mints the single unit
    into the owner's associated token account and revokes the mint
    authority in the same transaction, so supply can never grow.
    """

    def __init__(
        self,
        connection,
        submitter: TransactionSubmitter,
        required_lamports: int = preflight.MINT_REQUIRED_LAMPORTS,
        resume_required_lamports: int = preflight.TRANSFER_REQUIRED_LAMPORTS,
    ):
        self.connection = connection
        self.submitter = submitter
        self.required_lamports = required_lamports
        self.resume_required_lamports = resume_required_lamports

    async def mint(self, wallet_handle, metadata: DealMetadata) -> OperationResult[DealTokenIdentity]:
        """Mint a new deal token owned by the connected wallet.

        Args:
            wallet_handle: Wallet object or mapping
            metadata: Deal attributes

        Returns:
            OperationResult with the DealTokenIdentity. PartiallyMinted and
            ConfirmationTimeout results carry the mint address as value.
        """
        mint_keypair: Optional[Keypair] = None
        try:
            validate_metadata(metadata)
            descriptor = wallet.probe(wallet_handle).unwrap()
            await preflight.ensure_balance(self.connection, descriptor.address, self.required_lamports)

            owner = parse_address(descriptor.address)
            mint_keypair = Keypair()
            mint_address = PublicAddress(str(mint_keypair.pubkey()))
            logger.info(f"Minting deal token '{metadata.title}' as {mint_address[:16]}...")

            create_signature = await self._create_mint(descriptor, owner, mint_keypair)
        except ConfirmationTimeoutError as e:
            mint_address = str(mint_keypair.pubkey()) if mint_keypair else None
            logger.error(f"Mint account creation not confirmed: {e}")
            return OperationResult.from_error(e, value=mint_address)
        except DealError as e:
            logger.error(f"Mint failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        try:
            token_account, finalize_signature = await self._finalize_supply(
                descriptor, owner, mint_keypair.pubkey(), mint_unit=True
            )
        except DealError as e:
            error = PartiallyMintedError(
                f"Mint account {mint_address} was created but supply was not fixed: {e}",
                mint_address=mint_address,
            )
            logger.error(str(error))
            return OperationResult.from_error(error)

        identity = DealTokenIdentity(
            mint_address=mint_address,
            owner_address=descriptor.address,
            metadata=metadata,
            token_account=PublicAddress(str(token_account)),
            signatures=(create_signature, finalize_signature),
        )
        logger.info(f"Minted deal token {mint_address[:16]}... for {descriptor.address[:16]}...")
        return OperationResult.ok(
            identity,
            explorer_ref=self.connection.explorer_url(finalize_signature),
            message=f"Minted '{metadata.title}'",
        )

    async def resume(
        self,
        wallet_handle,
        mint_address: str,
        metadata: DealMetadata,
    ) -> OperationResult[DealTokenIdentity]:
        """Finish a mint that stopped after its account was created.

        Safe to call repeatedly: a mint whose authority is already revoked
        succeeds without submitting anything, and the unit is only minted
        while supply is still zero.
        """
        try:
            validate_metadata(metadata)
            descriptor = wallet.probe(wallet_handle).unwrap()
            owner = parse_address(descriptor.address)
            state = await read_mint(self.connection, mint_address)
        except DealError as e:
            logger.error(f"Resume failed ({e.kind.value}): {e}")
            return OperationResult.from_error(e)

        mint = parse_address(mint_address)
        token_account = get_associated_token_address(owner, mint)

        if state.supply_fixed:
            logger.info(f"Mint {mint_address[:16]}... already has a fixed supply")
            return OperationResult.ok(DealTokenIdentity(
                mint_address=PublicAddress(str(mint)),
                owner_address=descriptor.address,
                metadata=metadata,
                token_account=PublicAddress(str(token_account)),
            ))

        if state.mint_authority != descriptor.address:
            return OperationResult.from_error(InvalidInputError(
                f"Mint {mint_address} is controlled by {state.mint_authority}, not the connected wallet"
            ))

        try:
            await preflight.ensure_balance(self.connection, descriptor.address, self.resume_required_lamports)
            token_account, signature = await self._finalize_supply(
                descriptor, owner, mint, mint_unit=state.supply == 0
            )
        except DealError as e:
            error = PartiallyMintedError(
                f"Supply of {mint_address} is still not fixed: {e}", mint_address=str(mint)
            )
            logger.error(str(error))
            return OperationResult.from_error(error)

        logger.info(f"Resumed mint {mint_address[:16]}..., supply is now fixed")
        return OperationResult.ok(
            DealTokenIdentity(
                mint_address=PublicAddress(str(mint)),
                owner_address=descriptor.address,
                metadata=metadata,
                token_account=PublicAddress(str(token_account)),
                signatures=(signature,),
            ),
            explorer_ref=self.connection.explorer_url(signature),
        )

    async def _create_mint(
        self,
        descriptor: WalletCapabilityDescriptor,
        owner: Pubkey,
        mint_keypair: Keypair,
    ) -> str:
        """Create and initialize the mint account (first signing event)."""
        reserve, blockhash = await asyncio.gather(
            self.connection.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE),
            self.connection.get_latest_blockhash(),
        )
        mint = mint_keypair.pubkey()

        instructions = [
            create_account(CreateAccountParams(
                from_pubkey=owner,
                to_pubkey=mint,
                lamports=reserve,
                space=MINT_ACCOUNT_SIZE,
                owner=TOKEN_PROGRAM_ID,
            )),
            initialize_mint(InitializeMintParams(
                decimals=DEAL_TOKEN_DECIMALS,
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                mint_authority=owner,
                freeze_authority=owner,
            )),
        ]

        transaction = build_transaction(instructions, owner, blockhash)
        # The new account must sign its own creation
        transaction.partial_sign([mint_keypair], blockhash)

        signature = await self.submitter.sign_send_confirm(descriptor, transaction)
        logger.info(f"Created mint account {str(mint)[:16]}... in {signature[:16]}...")
        return signature

    async def _finalize_supply(
        self,
        descriptor: WalletCapabilityDescriptor,
        owner: Pubkey,
        mint: Pubkey,
        mint_unit: bool = True,
    ) -> Tuple[Pubkey, str]:
        """Mint the single unit and revoke the mint authority (second signing event)."""
        token_account = get_associated_token_address(owner, mint)
        existing, blockhash = await asyncio.gather(
            self.connection.get_account_info(str(token_account)),
            self.connection.get_latest_blockhash(),
        )

        instructions: List[Instruction] = []
        if existing is None:
            instructions.append(create_associated_token_account(payer=owner, owner=owner, mint=mint))
        if mint_unit:
            instructions.append(mint_to(MintToParams(
                program_id=TOKEN_PROGRAM_ID,
                mint=mint,
                dest=token_account,
                mint_authority=owner,
                amount=DEAL_TOKEN_SUPPLY,
            )))
        # Must stay last: nothing may mint after the authority is gone
        instructions.append(set_authority(SetAuthorityParams(
            program_id=TOKEN_PROGRAM_ID,
            account=mint,
            authority=AuthorityType.MINT_TOKENS,
            current_authority=owner,
            new_authority=None,
        )))

        transaction = build_transaction(instructions, owner, blockhash)
        signature = await self.submitter.sign_send_confirm(descriptor, transaction)
        logger.info(f"Fixed supply of {str(mint)[:16]}... in {signature[:16]}...")
        return token_account, signature
