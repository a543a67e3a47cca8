"""Tests for the redemption and listing store."""

import pytest

from core.types import ListingRecord, ListingStatus
from database import DealDatabase

SELLER = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"
BUYER = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"


def _listing(nft_id: str = "mint-1", status: ListingStatus = ListingStatus.LISTED) -> ListingRecord:
    return ListingRecord(
        nft_id=nft_id,
        seller_address=SELLER,
        ask_price="0.5",
        status=status,
        transaction_ref="list-tx",
    )


@pytest.fixture
def db(tmp_path) -> DealDatabase:
    return DealDatabase(str(tmp_path / "deals.db"))


class TestRedeemedTickets:
    @pytest.mark.asyncio
    async def test_ticket_redeems_once(self, db):
        await db.start()
        try:
            assert not await db.is_ticket_redeemed("sha256:abc")
            assert await db.mark_ticket_redeemed("sha256:abc", "deal-1", "Mario's") is True
            assert await db.mark_ticket_redeemed("sha256:abc", "deal-1", "Mario's") is False
            assert await db.is_ticket_redeemed("sha256:abc")
        finally:
            await db.stop()

    @pytest.mark.asyncio
    async def test_redemptions_survive_restart(self, db):
        await db.start()
        await db.mark_ticket_redeemed("sha256:abc", "deal-1", "Mario's")
        await db.stop()

        await db.start()
        try:
            assert await db.is_ticket_redeemed("sha256:abc")
        finally:
            await db.stop()


class TestListings:
    @pytest.mark.asyncio
    async def test_save_and_get(self, db):
        await db.start()
        try:
            await db.save_listing(_listing())

            listing = await db.get_listing("mint-1")

            assert listing == _listing()
            assert await db.get_listing("missing") is None
        finally:
            await db.stop()

    @pytest.mark.asyncio
    async def test_status_update_records_sale(self, db):
        await db.start()
        try:
            await db.save_listing(_listing())

            updated = await db.update_listing_status(
                "mint-1", ListingStatus.SOLD, transaction_ref="sale-tx", buyer_address=BUYER
            )

            listing = await db.get_listing("mint-1")
            assert updated
            assert listing.status is ListingStatus.SOLD
            assert listing.transaction_ref == "sale-tx"
            assert listing.buyer_address == BUYER
        finally:
            await db.stop()

    @pytest.mark.asyncio
    async def test_cancel_keeps_transaction_ref(self, db):
        await db.start()
        try:
            await db.save_listing(_listing())
            await db.update_listing_status("mint-1", ListingStatus.CANCELLED)

            listing = await db.get_listing("mint-1")
            assert listing.status is ListingStatus.CANCELLED
            assert listing.transaction_ref == "list-tx"
        finally:
            await db.stop()

    @pytest.mark.asyncio
    async def test_update_missing_listing(self, db):
        await db.start()
        try:
            assert not await db.update_listing_status("missing", ListingStatus.SOLD)
        finally:
            await db.stop()

    @pytest.mark.asyncio
    async def test_filter_by_status(self, db):
        await db.start()
        try:
            await db.save_listing(_listing("mint-1"))
            await db.save_listing(_listing("mint-2", ListingStatus.CANCELLED))

            listed = await db.get_listings(ListingStatus.LISTED)
            everything = await db.get_listings()

            assert [l.nft_id for l in listed] == ["mint-1"]
            assert {l.nft_id for l in everything} == {"mint-1", "mint-2"}
        finally:
            await db.stop()
