"""Tests for the HTTP API. Routes run against a fake ledger and a temp database."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair

from api.dependencies import get_database, get_service
from api.main import app
from config import DealConfig
from core.types import DealRecord
from database import DealDatabase
from deals import DealService
from redemption import RedemptionTicketing, ticket_to_document

TICKET_REQUEST = {
    "deal_id": "deal-42",
    "title": "2-for-1 Pizza",
    "merchant": "Mario's",
    "deal_price": "5.00",
    "expiry_date": "2099-12-31",
}


@pytest.fixture
def service(ledger) -> DealService:
    return DealService(DealConfig(), connection=ledger)


@pytest.fixture
def database(tmp_path):
    db = DealDatabase(str(tmp_path / "api.db"))
    asyncio.run(db.start())
    yield db
    db.conn.close()


@pytest.fixture
def client(service, database):
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_database] = lambda: database
    # No context manager: the lifespan would build a live service from the environment
    yield TestClient(app)
    app.dependency_overrides.clear()


def _issue(client) -> dict:
    response = client.post("/api/tickets", json=TICKET_REQUEST)
    assert response.status_code == 200
    return response.json()


class TestHealth:
    def test_root_reports_network(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["network"] == "devnet"

    def test_root_without_service(self):
        response = TestClient(app).get("/")

        assert response.status_code == 503

    def test_health(self):
        assert TestClient(app).get("/health").json() == {"status": "healthy"}


class TestTickets:
    def test_issue(self, client):
        body = _issue(client)

        assert body["ticket"]["dealId"] == "deal-42"
        assert body["ticket"]["signaturePayload"].startswith("sha256:")
        assert json.loads(body["qr_payload"]) == body["ticket"]

    def test_issue_expired_deal(self, client):
        response = client.post("/api/tickets", json={**TICKET_REQUEST, "expiry_date": "2000-01-01"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_INPUT"

    def test_verify_does_not_consume(self, client):
        body = _issue(client)

        first = client.post("/api/tickets/verify", json={"ticket": body["ticket"]})
        second = client.post("/api/tickets/verify", json={"ticket": body["qr_payload"]})

        assert first.status_code == 200
        assert first.json()["deal_title"] == "2-for-1 Pizza"
        assert first.json()["redeemed"] is False
        assert second.status_code == 200

    def test_redeem_once(self, client):
        body = _issue(client)

        first = client.post("/api/tickets/redeem", json={"ticket": body["ticket"]})
        second = client.post("/api/tickets/redeem", json={"ticket": body["ticket"]})
        check = client.post("/api/tickets/verify", json={"ticket": body["ticket"]})

        assert first.status_code == 200
        assert first.json()["redeemed"] is True
        assert second.status_code == 409
        assert check.json()["redeemed"] is True

    def test_tampered_ticket(self, client):
        ticket = _issue(client)["ticket"]
        ticket["discountPrice"] = "0.01"

        response = client.post("/api/tickets/verify", json={"ticket": ticket})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_TICKET_FORMAT"

    def test_garbage_payload(self, client):
        response = client.post("/api/tickets/verify", json={"ticket": "not json"})

        assert response.status_code == 400

    def test_expired_ticket(self, client):
        past = RedemptionTicketing(clock=lambda: datetime(2024, 1, 1, 12, tzinfo=timezone.utc))
        ticket = past.issue(DealRecord(
            deal_id="deal-42",
            title="2-for-1 Pizza",
            merchant="Mario's",
            deal_price="5.00",
            expiry_date="2024-12-31",
        )).unwrap()

        response = client.post("/api/tickets/redeem", json={"ticket": ticket_to_document(ticket)})

        assert response.status_code == 410
        assert response.json()["detail"]["error"] == "TICKET_EXPIRED"


class TestLedger:
    def test_balance(self, client, ledger):
        address = str(Keypair().pubkey())
        ledger.balances[address] = 1_500_000_000

        response = client.get(f"/api/balance/{address}")

        assert response.status_code == 200
        assert response.json()["balance"] == "1.5000"

    def test_balance_invalid_address(self, client):
        assert client.get("/api/balance/not-an-address").status_code == 400

    def test_mint_with_fixed_supply(self, client, ledger):
        mint = Keypair().pubkey()
        ledger.add_mint(mint, mint_authority=None)

        response = client.get(f"/api/mints/{mint}")

        assert response.status_code == 200
        assert response.json()["supply"] == 1
        assert response.json()["supply_fixed"] is True

    def test_unknown_mint(self, client):
        response = client.get(f"/api/mints/{Keypair().pubkey()}")

        assert response.status_code == 400


class TestListings:
    def _request(self) -> dict:
        return {
            "nft_id": str(Keypair().pubkey()),
            "seller_address": str(Keypair().pubkey()),
            "ask_price": "0.50",
            "transaction_ref": "list-tx",
        }

    def test_create_get_cancel(self, client):
        request = self._request()

        created = client.post("/api/listings", json=request)
        fetched = client.get(f"/api/listings/{request['nft_id']}")
        cancelled = client.post(f"/api/listings/{request['nft_id']}/cancel")

        assert created.status_code == 200
        assert created.json()["status"] == "listed"
        assert fetched.json()["ask_price"] == "0.50"
        assert cancelled.json()["status"] == "cancelled"

    def test_duplicate_listing(self, client):
        request = self._request()
        client.post("/api/listings", json=request)

        assert client.post("/api/listings", json=request).status_code == 409

    def test_relist_after_cancel(self, client):
        request = self._request()
        client.post("/api/listings", json=request)
        client.post(f"/api/listings/{request['nft_id']}/cancel")

        assert client.post("/api/listings", json=request).status_code == 200

    def test_cancel_twice(self, client):
        request = self._request()
        client.post("/api/listings", json=request)
        client.post(f"/api/listings/{request['nft_id']}/cancel")

        assert client.post(f"/api/listings/{request['nft_id']}/cancel").status_code == 409

    @pytest.mark.parametrize("field,value", [
        ("ask_price", "0"),
        ("ask_price", "free"),
        ("seller_address", "nobody"),
    ])
    def test_invalid_listing(self, client, field, value):
        request = {**self._request(), field: value}

        assert client.post("/api/listings", json=request).status_code == 400

    def test_missing_listing(self, client):
        assert client.get(f"/api/listings/{Keypair().pubkey()}").status_code == 404
        assert client.post(f"/api/listings/{Keypair().pubkey()}/cancel").status_code == 404
