"""Shared fakes for deal token tests. No test touches the network."""

import struct
from typing import Dict, List, Optional

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction
from spl.token.constants import TOKEN_PROGRAM_ID

from core.errors import LedgerUnavailableError
from core.types import AccountInfo, SignatureStatus
from submitter import SubmitOptions, TransactionSubmitter
from wallet import KeypairWallet

RICH_BALANCE = 10_000_000_000  # 10 SOL
RENT_RESERVE = 1_461_600

FAST_OPTIONS = SubmitOptions(
    max_retries=2,
    retry_delay=0.0,
    confirmation_timeout=0.05,
    poll_interval=0.01,
)


def mint_account_data(
    mint_authority: Optional[Pubkey],
    supply: int = 1,
    decimals: int = 0,
    freeze_authority: Optional[Pubkey] = None,
) -> bytes:
    """Raw SPL mint account bytes."""
    return struct.pack(
        "<I32sQBBI32s",
        1 if mint_authority else 0,
        bytes(mint_authority) if mint_authority else bytes(32),
        supply,
        decimals,
        1,
        1 if freeze_authority else 0,
        bytes(freeze_authority) if freeze_authority else bytes(32),
    )


class FakeLedger:
    """In-memory stand-in for LedgerConnection.

    Records every call. Sent transactions are decoded back into solders
    Transactions so tests can inspect their instructions and signatures.
    """

    def __init__(self, balance: int = RICH_BALANCE):
        self.default_balance = balance
        self.balances: Dict[str, int] = {}
        self.accounts: Dict[str, AccountInfo] = {}
        self.calls: List[str] = []
        self.sent: List[Transaction] = []
        self.send_errors: List[Exception] = []
        self.fail_sends_from: Optional[int] = None  # 1-based send index that starts failing
        self.balance_error: Optional[Exception] = None
        self.confirmation_status: Optional[str] = "confirmed"
        self.status_err: Optional[dict] = None
        self.status_error: Optional[Exception] = None  # raised by every status poll
        self.status_errors: List[Exception] = []  # raised by the next polls, one each
        self.blockhash = Hash.new_unique()

    def explorer_url(self, signature: str) -> str:
        return f"https://explorer.solana.com/tx/{signature}?cluster=devnet"

    async def get_balance(self, address: str) -> int:
        self.calls.append("get_balance")
        if self.balance_error:
            raise self.balance_error
        return self.balances.get(str(address), self.default_balance)

    async def get_latest_blockhash(self) -> Hash:
        self.calls.append("get_latest_blockhash")
        return self.blockhash

    async def get_account_info(self, address: str) -> Optional[AccountInfo]:
        self.calls.append("get_account_info")
        return self.accounts.get(str(address))

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        self.calls.append("get_minimum_balance_for_rent_exemption")
        return RENT_RESERVE

    async def send_raw_transaction(self, raw: bytes, skip_preflight: bool = False) -> str:
        self.calls.append("send_raw_transaction")
        if self.send_errors:
            raise self.send_errors.pop(0)
        if self.fail_sends_from is not None and len(self.sent) + 1 >= self.fail_sends_from:
            raise LedgerUnavailableError("node unreachable")

        transaction = Transaction.from_bytes(raw)
        self.sent.append(transaction)
        return str(transaction.signatures[0])

    async def get_signature_statuses(self, signatures: List[str]) -> List[Optional[SignatureStatus]]:
        self.calls.append("get_signature_statuses")
        if self.status_errors:
            raise self.status_errors.pop(0)
        if self.status_error:
            raise self.status_error
        if self.confirmation_status is None and self.status_err is None:
            return [None for _ in signatures]
        return [
            SignatureStatus(
                slot=1,
                confirmations=None,
                err=self.status_err,
                confirmation_status=self.confirmation_status,
            )
            for _ in signatures
        ]

    def add_mint(self, mint: Pubkey, mint_authority: Optional[Pubkey], supply: int = 1) -> None:
        self.accounts[str(mint)] = AccountInfo(
            lamports=RENT_RESERVE,
            owner=str(TOKEN_PROGRAM_ID),
            data=mint_account_data(mint_authority, supply=supply, freeze_authority=mint_authority),
            executable=False,
        )


class RejectingWallet:
    """Wallet whose user declines every signature request."""

    def __init__(self):
        self.public_key = Keypair().pubkey()

    async def sign_transaction(self, transaction):
        raise RuntimeError("User rejected the request")


class SignAndSendWallet:
    """Wallet that only exposes the combined sign-and-send method."""

    def __init__(self, signature: str = "5" * 64, error: Optional[Exception] = None):
        self.publicKey = str(Keypair().pubkey())
        self.signature = signature
        self.error = error
        self.calls = 0

    def signAndSendTransaction(self, transaction):
        self.calls += 1
        if self.error:
            raise self.error
        return {"signature": self.signature}


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def owner_wallet() -> KeypairWallet:
    return KeypairWallet(Keypair())


@pytest.fixture
def submitter(ledger) -> TransactionSubmitter:
    return TransactionSubmitter(ledger, options=FAST_OPTIONS)
