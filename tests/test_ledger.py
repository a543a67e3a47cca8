"""Tests for the ledger JSON-RPC client and account decoding."""

import asyncio
import base64
import json

import aiohttp
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from spl.token.constants import TOKEN_PROGRAM_ID

from conftest import mint_account_data
from core.errors import ErrorKind, InvalidInputError, LedgerUnavailableError, RPCError
from ledger.accounts import MINT_ACCOUNT_SIZE, decode_mint, is_valid_address, parse_address
from ledger.connection import RPC_ENDPOINTS, LedgerConnection, Network, connect
from preflight import check


class FakeTransport:
    """Replaces LedgerConnection._post with canned JSON-RPC responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    async def __call__(self, body):
        self.requests.append(body)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class CannedResponse:
    def __init__(self, status, body):
        self.status = status
        self.body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def json(self, content_type="application/json"):
        return json.loads(self.body)


class CannedSession:
    """Answers every POST with one fixed HTTP response."""

    def __init__(self, status, body):
        self.status = status
        self.body = body

    def post(self, url, json):
        return CannedResponse(self.status, self.body)


class RefusingSession:
    def __init__(self, error):
        self.error = error

    def post(self, url, json):
        raise self.error


@pytest.fixture
def connection() -> LedgerConnection:
    return connect(Network.DEVNET)


def _install(monkeypatch, connection, *responses) -> FakeTransport:
    transport = FakeTransport(*responses)
    monkeypatch.setattr(connection, "_post", transport)
    return transport


class TestConnect:
    @pytest.mark.parametrize("network", list(Network))
    def test_each_network_has_an_endpoint(self, network):
        connection = connect(network)

        assert connection.config.rpc_url == RPC_ENDPOINTS[network]
        assert connection.network is network

    def test_network_by_name(self):
        assert connect("mainnet-beta").network is Network.MAINNET

    def test_rpc_url_override(self):
        connection = connect("devnet", rpc_url="http://localhost:8899")

        assert connection.config.rpc_url == "http://localhost:8899"

    def test_unknown_network(self):
        with pytest.raises(InvalidInputError):
            connect("moonnet")

    def test_explorer_url(self, connection):
        assert connection.explorer_url("abc") == "https://explorer.solana.com/tx/abc?cluster=devnet"


class TestRpc:
    @pytest.mark.asyncio
    async def test_get_balance(self, monkeypatch, connection):
        transport = _install(monkeypatch, connection, {"jsonrpc": "2.0", "id": 1, "result": {"value": 42}})

        assert await connection.get_balance("addr") == 42
        assert transport.requests[0]["method"] == "getBalance"
        assert transport.requests[0]["params"][0] == "addr"

    @pytest.mark.asyncio
    async def test_get_latest_blockhash(self, monkeypatch, connection):
        blockhash = Hash.new_unique()
        _install(monkeypatch, connection, {"result": {"value": {"blockhash": str(blockhash)}}})

        assert await connection.get_latest_blockhash() == blockhash

    @pytest.mark.asyncio
    async def test_get_account_info_decodes_data(self, monkeypatch, connection):
        data = b"\x01\x02\x03"
        _install(monkeypatch, connection, {"result": {"value": {
            "lamports": 10,
            "owner": str(TOKEN_PROGRAM_ID),
            "data": [base64.b64encode(data).decode(), "base64"],
            "executable": False,
        }}})

        account = await connection.get_account_info("addr")

        assert account.lamports == 10
        assert account.owner == str(TOKEN_PROGRAM_ID)
        assert account.data == data

    @pytest.mark.asyncio
    async def test_missing_account_is_none(self, monkeypatch, connection):
        _install(monkeypatch, connection, {"result": {"value": None}})

        assert await connection.get_account_info("addr") is None

    @pytest.mark.asyncio
    async def test_send_raw_transaction_encodes_base64(self, monkeypatch, connection):
        transport = _install(monkeypatch, connection, {"result": "sig123"})

        assert await connection.send_raw_transaction(b"raw") == "sig123"
        params = transport.requests[0]["params"]
        assert params[0] == base64.b64encode(b"raw").decode()
        assert params[1]["encoding"] == "base64"

    @pytest.mark.asyncio
    async def test_signature_statuses(self, monkeypatch, connection):
        _install(monkeypatch, connection, {"result": {"value": [
            None,
            {"slot": 5, "confirmations": None, "err": None, "confirmationStatus": "finalized"},
        ]}})

        statuses = await connection.get_signature_statuses(["a", "b"])

        assert statuses[0] is None
        assert statuses[1].slot == 5
        assert statuses[1].confirmation_status == "finalized"

    @pytest.mark.asyncio
    async def test_error_object_raises_rpc_error(self, monkeypatch, connection):
        _install(monkeypatch, connection, {"error": {"code": -32002, "message": "Blockhash not found"}})

        with pytest.raises(RPCError) as excinfo:
            await connection.send_raw_transaction(b"raw")
        assert excinfo.value.code == -32002
        assert excinfo.value.method == "sendTransaction"

    @pytest.mark.asyncio
    async def test_missing_result_raises_rpc_error(self, monkeypatch, connection):
        _install(monkeypatch, connection, {"jsonrpc": "2.0", "id": 1})

        with pytest.raises(RPCError):
            await connection.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)

    @pytest.mark.asyncio
    async def test_request_ids_increase(self, monkeypatch, connection):
        transport = _install(monkeypatch, connection, {"result": 1}, {"result": 2})

        await connection.get_minimum_balance_for_rent_exemption(82)
        await connection.get_minimum_balance_for_rent_exemption(82)

        assert transport.requests[1]["id"] == transport.requests[0]["id"] + 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()])
    async def test_transport_failure_is_unavailable(self, connection, error):
        connection._session = RefusingSession(error)

        with pytest.raises(LedgerUnavailableError):
            await connection.get_balance("addr")


class TestResponseBodies:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,body", [
        (502, "<html>Bad Gateway</html>"),
        (200, "not json"),
        (200, "[1, 2, 3]"),
        (429, '{"jsonrpc": "2.0", "id": 1, "error": {"code": 429, "message": "Too many requests"}}'),
        (503, '{"jsonrpc": "2.0", "id": 1, "result": {"value": 5}}'),
    ])
    async def test_unusable_response_is_unavailable(self, connection, status, body):
        connection._session = CannedSession(status, body)

        with pytest.raises(LedgerUnavailableError):
            await connection.get_balance("addr")

    @pytest.mark.asyncio
    async def test_client_error_status_keeps_rpc_error(self, connection):
        connection._session = CannedSession(
            400, '{"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "Invalid params"}}'
        )

        with pytest.raises(RPCError) as excinfo:
            await connection.get_balance("addr")
        assert excinfo.value.code == -32602

    @pytest.mark.asyncio
    async def test_gateway_page_is_reported_by_preflight(self, connection):
        connection._session = CannedSession(502, "<html>Bad Gateway</html>")

        result = await check(connection, str(Keypair().pubkey()), 1)

        assert not result.success
        assert result.error_kind is ErrorKind.SUBMISSION_FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args,result", [
        ("get_balance", ("addr",), {"value": "lots"}),
        ("get_balance", ("addr",), []),
        ("get_latest_blockhash", (), {"value": {}}),
        ("get_minimum_balance_for_rent_exemption", (MINT_ACCOUNT_SIZE,), None),
        ("get_signature_statuses", (["sig"],), {"value": ["pending"]}),
    ])
    async def test_malformed_result_is_rpc_error(self, monkeypatch, connection, method, args, result):
        _install(monkeypatch, connection, {"jsonrpc": "2.0", "id": 1, "result": result})

        with pytest.raises(RPCError):
            await getattr(connection, method)(*args)

    @pytest.mark.asyncio
    async def test_malformed_account_is_rpc_error(self, monkeypatch, connection):
        _install(monkeypatch, connection, {"result": {"value": {"data": "AAAA"}}})

        with pytest.raises(RPCError):
            await connection.get_account_info("addr")


class TestAccounts:
    def test_parse_address(self):
        key = Keypair().pubkey()

        assert parse_address(str(key)) == key
        assert parse_address(key) is key

    @pytest.mark.parametrize("value", [None, "", "abc", "0" * 44, "l" * 32 + "!"])
    def test_malformed_addresses(self, value):
        assert not is_valid_address(value)
        with pytest.raises(InvalidInputError):
            parse_address(value)

    def test_decode_mint(self):
        authority = Keypair().pubkey()

        state = decode_mint("mint", mint_account_data(authority, supply=1, freeze_authority=None))

        assert state.supply == 1
        assert state.decimals == 0
        assert state.is_initialized
        assert state.mint_authority == str(authority)
        assert state.freeze_authority is None

    def test_short_data_is_not_a_mint(self):
        with pytest.raises(InvalidInputError):
            decode_mint("mint", b"\x00" * 10)
