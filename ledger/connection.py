"""Solana JSON-RPC client for ledger reads and transaction submission."""

import asyncio
import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import aiohttp
from solders.hash import Hash

from core.errors import InvalidInputError, LedgerUnavailableError, RPCError
from core.types import AccountInfo, SignatureStatus

logger = logging.getLogger(__name__)


class Network(Enum):
    """Solana cluster selection."""
    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET = "mainnet-beta"


RPC_ENDPOINTS: Dict[Network, str] = {
    Network.DEVNET: "https://api.devnet.solana.com",
    Network.TESTNET: "https://api.testnet.solana.com",
    Network.MAINNET: "https://api.mainnet-beta.solana.com",
}

EXPLORER_BASE = "https://explorer.solana.com"


@dataclass
class LedgerConfig:
    """Configuration for a ledger RPC connection."""
    rpc_url: str
    network: Network = Network.DEVNET
    commitment: str = "confirmed"
    timeout: float = 30.0
    explorer_base: str = EXPLORER_BASE


def _malformed(method: str, error: Exception) -> RPCError:
    return RPCError(f"Malformed result: {error!r}", method=method)


class LedgerConnection:
    """Handle for all reads and writes against one Solana cluster.

    Holds the selected endpoint and a lazily created HTTP session. Nothing
    else is kept between calls, and no call here retries.
    """

    def __init__(self, config: LedgerConfig):
        """Create a new ledger RPC client.

        Args:
            config: Endpoint and commitment settings
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0
        logger.info(f"Initializing ledger client for {config.network.value} at {config.rpc_url}")

    @property
    def network(self) -> Network:
        return self.config.network

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is not None:
            return

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info(f"Opened ledger session to {self.config.rpc_url}")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session is None:
            return

        await self._session.close()
        self._session = None
        logger.info("Closed ledger session")

    async def __aenter__(self) -> "LedgerConnection":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def explorer_url(self, signature: str) -> str:
        """Human-followable reference for a transaction signature."""
        return f"{self.config.explorer_base}/tx/{signature}?cluster={self.config.network.value}"

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None:
            await self.start()

        try:
            async with self._session.post(self.config.rpc_url, json=body) as response:
                status = response.status
                try:
                    response_data = await response.json(content_type=None)
                except ValueError:
                    response_data = None
        except aiohttp.ClientError as e:
            raise LedgerUnavailableError(f"Failed to send RPC request: {e}")
        except asyncio.TimeoutError as e:
            raise LedgerUnavailableError(f"RPC request timed out: {e}")

        # Rate limits and gateway errors are transient even when they carry a JSON body
        if status == 429 or status >= 500:
            raise LedgerUnavailableError(f"RPC node answered HTTP {status}")
        if not isinstance(response_data, dict):
            raise LedgerUnavailableError(f"RPC node returned a non-JSON-RPC body (HTTP {status})")
        return response_data

    async def _rpc_call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call to the node.

        Args:
            method: RPC method name
            params: Positional parameters

        Returns:
            The ``result`` member of the response

        Raises:
            LedgerUnavailableError: If the node could not be reached
            RPCError: If the response carries an error object
        """
        self._request_id += 1
        request_body: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
        }
        if params is not None:
            request_body["params"] = params

        response_data = await self._post(request_body)

        if "error" in response_data and response_data["error"]:
            error = response_data["error"]
            if isinstance(error, dict):
                raise RPCError(error.get("message", str(error)), method=method, code=error.get("code"))
            raise RPCError(str(error), method=method)

        if "result" not in response_data:
            raise RPCError("Missing result in RPC response", method=method)

        return response_data["result"]

    async def get_balance(self, address: str) -> int:
        """Spendable balance in lamports."""
        result = await self._rpc_call(
            "getBalance", [address, {"commitment": self.config.commitment}]
        )
        try:
            return int(result["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise _malformed("getBalance", e)

    async def get_latest_blockhash(self) -> Hash:
        """Latest reference block used to stamp new transactions."""
        result = await self._rpc_call(
            "getLatestBlockhash", [{"commitment": self.config.commitment}]
        )
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise _malformed("getLatestBlockhash", e)

    async def get_account_info(self, address: str) -> Optional[AccountInfo]:
        """Fetch an account, or None if it does not exist.

        Args:
            address: Base58 account address

        Returns:
            AccountInfo with raw data bytes, or None
        """
        result = await self._rpc_call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.config.commitment}],
        )
        try:
            value = result.get("value")
            if value is None:
                return None

            data_field = value.get("data") or ["", "base64"]
            return AccountInfo(
                lamports=int(value.get("lamports", 0)),
                owner=value.get("owner", ""),
                data=base64.b64decode(data_field[0]),
                executable=bool(value.get("executable", False)),
            )
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            raise _malformed("getAccountInfo", e)

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        """Reserve an account of ``size`` bytes must hold to persist."""
        result = await self._rpc_call(
            "getMinimumBalanceForRentExemption", [size, {"commitment": self.config.commitment}]
        )
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise _malformed("getMinimumBalanceForRentExemption", e)

    async def send_raw_transaction(self, raw: bytes, skip_preflight: bool = False) -> str:
        """Submit a fully signed transaction.

        Args:
            raw: Serialized transaction bytes
            skip_preflight: Skip the node's simulation step

        Returns:
            Base58 transaction signature
        """
        result = await self._rpc_call(
            "sendTransaction",
            [
                base64.b64encode(raw).decode(),
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self.config.commitment,
                },
            ],
        )
        return str(result)

    async def get_signature_statuses(self, signatures: List[str]) -> List[Optional[SignatureStatus]]:
        """Look up the ledger status of submitted transactions."""
        result = await self._rpc_call(
            "getSignatureStatuses", [signatures, {"searchTransactionHistory": False}]
        )
        statuses: List[Optional[SignatureStatus]] = []
        try:
            for entry in result.get("value", []):
                if entry is None:
                    statuses.append(None)
                    continue
                statuses.append(SignatureStatus(
                    slot=int(entry.get("slot", 0)),
                    confirmations=entry.get("confirmations"),
                    err=entry.get("err"),
                    confirmation_status=entry.get("confirmationStatus"),
                ))
        except (AttributeError, TypeError, ValueError) as e:
            raise _malformed("getSignatureStatuses", e)
        return statuses


def connect(
    network: Union[Network, str],
    rpc_url: Optional[str] = None,
    commitment: str = "confirmed",
    explorer_base: str = EXPLORER_BASE,
) -> LedgerConnection:
    """Select an endpoint and return a connection handle.

    Args:
        network: Network enum member or its value ("devnet", ...)
        rpc_url: Optional override of the network's public endpoint
        commitment: Commitment level for reads and preflight
        explorer_base: Base URL for explorer references

    Returns:
        LedgerConnection (session opened on first use)

    Raises:
        InvalidInputError: If the network is unknown
    """
    if not isinstance(network, Network):
        try:
            network = Network(network)
        except ValueError:
            raise InvalidInputError(f"Unknown network: {network!r}")

    config = LedgerConfig(
        rpc_url=rpc_url or RPC_ENDPOINTS[network],
        network=network,
        commitment=commitment,
        explorer_base=explorer_base,
    )
    return LedgerConnection(config)
