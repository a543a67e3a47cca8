"""Database management for redeemed tickets and marketplace listings."""

import sqlite3
import logging
from typing import Optional, List
from pathlib import Path
import asyncio

from core.types import ListingRecord, ListingStatus, PublicAddress

logger = logging.getLogger(__name__)


class DealDatabase:
    """SQLite database for point-of-sale and marketplace state."""

    def __init__(self, db_path: str = "deal-tokens.db"):
        """Initialize the database.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        logger.info(f"Initialized database at {db_path}")

    async def start(self) -> None:
        """Initialize database connection and create tables."""
        # Run blocking DB operations in executor
        await asyncio.get_running_loop().run_in_executor(None, self._init_db)
        logger.info("Database started")

    def _init_db(self) -> None:
        """Internal: Initialize database connection and schema."""
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS redeemed_tickets (
                signature_payload TEXT PRIMARY KEY,
                deal_id TEXT NOT NULL,
                merchant TEXT NOT NULL,
                redeemed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_redeemed_deal
                ON redeemed_tickets(deal_id);

            CREATE TABLE IF NOT EXISTS listings (
                nft_id TEXT PRIMARY KEY,
                seller_address TEXT NOT NULL,
                ask_price TEXT NOT NULL,
                status TEXT NOT NULL,
                transaction_ref TEXT NOT NULL,
                buyer_address TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_listing_status
                ON listings(status);
        """)
        self.conn.commit()

    async def stop(self) -> None:
        """Close database connection."""
        if self.conn:
            await asyncio.get_running_loop().run_in_executor(None, self.conn.close)
            self.conn = None
        logger.info("Database stopped")

    async def mark_ticket_redeemed(self, signature_payload: str, deal_id: str, merchant: str) -> bool:
        """Consume a ticket.

        Args:
            signature_payload: Ticket signature, unique per ticket
            deal_id: Deal the ticket belongs to
            merchant: Merchant name

        Returns:
            True if this call consumed it, False if it was already redeemed
        """
        def _mark():
            try:
                self.conn.execute(
                    """INSERT INTO redeemed_tickets (signature_payload, deal_id, merchant)
                       VALUES (?, ?, ?)""",
                    (signature_payload, deal_id, merchant)
                )
                self.conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False

        consumed = await asyncio.get_running_loop().run_in_executor(None, _mark)
        if consumed:
            logger.info(f"Redeemed ticket {signature_payload[:16]}... for deal {deal_id}")
        else:
            logger.warning(f"Ticket {signature_payload[:16]}... was already redeemed")
        return consumed

    async def is_ticket_redeemed(self, signature_payload: str) -> bool:
        def _check():
            cursor = self.conn.execute(
                "SELECT 1 FROM redeemed_tickets WHERE signature_payload = ?",
                (signature_payload,)
            )
            return cursor.fetchone() is not None

        return await asyncio.get_running_loop().run_in_executor(None, _check)

    async def save_listing(self, listing: ListingRecord) -> None:
        """Insert or replace a listing."""
        def _save():
            self.conn.execute(
                """INSERT OR REPLACE INTO listings
                   (nft_id, seller_address, ask_price, status, transaction_ref, buyer_address, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                (
                    listing.nft_id,
                    listing.seller_address,
                    listing.ask_price,
                    listing.status.value,
                    listing.transaction_ref,
                    listing.buyer_address,
                )
            )
            self.conn.commit()

        await asyncio.get_running_loop().run_in_executor(None, _save)
        logger.debug(f"Saved listing {listing.nft_id[:16]}... as {listing.status.value}")

    async def get_listing(self, nft_id: str) -> Optional[ListingRecord]:
        """Get a listing by token id.

        Args:
            nft_id: Mint address of the listed token

        Returns:
            ListingRecord or None
        """
        def _get():
            cursor = self.conn.execute(
                "SELECT * FROM listings WHERE nft_id = ?",
                (nft_id,)
            )
            return cursor.fetchone()

        row = await asyncio.get_running_loop().run_in_executor(None, _get)
        return self._row_to_listing(row) if row else None

    async def get_listings(self, status: Optional[ListingStatus] = None) -> List[ListingRecord]:
        def _get():
            if status is None:
                cursor = self.conn.execute("SELECT * FROM listings ORDER BY updated_at DESC")
            else:
                cursor = self.conn.execute(
                    "SELECT * FROM listings WHERE status = ? ORDER BY updated_at DESC",
                    (status.value,)
                )
            return cursor.fetchall()

        rows = await asyncio.get_running_loop().run_in_executor(None, _get)
        return [self._row_to_listing(row) for row in rows]

    async def update_listing_status(
        self,
        nft_id: str,
        status: ListingStatus,
        transaction_ref: Optional[str] = None,
        buyer_address: Optional[str] = None,
    ) -> bool:
        """Move a listing to a new status.

        Returns:
            False if no listing exists for nft_id
        """
        def _update():
            cursor = self.conn.execute(
                """UPDATE listings
                   SET status = ?,
                       transaction_ref = COALESCE(?, transaction_ref),
                       buyer_address = COALESCE(?, buyer_address),
                       updated_at = CURRENT_TIMESTAMP
                   WHERE nft_id = ?""",
                (status.value, transaction_ref, buyer_address, nft_id)
            )
            self.conn.commit()
            return cursor.rowcount > 0

        updated = await asyncio.get_running_loop().run_in_executor(None, _update)
        if updated:
            logger.info(f"Listing {nft_id[:16]}... is now {status.value}")
        return updated

    @staticmethod
    def _row_to_listing(row: sqlite3.Row) -> ListingRecord:
        return ListingRecord(
            nft_id=row["nft_id"],
            seller_address=PublicAddress(row["seller_address"]),
            ask_price=row["ask_price"],
            status=ListingStatus(row["status"]),
            transaction_ref=row["transaction_ref"],
            buyer_address=PublicAddress(row["buyer_address"]) if row["buyer_address"] else None,
        )
