"""Configuration management for the deal token service."""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

import toml
from dotenv import load_dotenv
from ecdsa import SECP256k1, MalformedPointError, SigningKey

from core.errors import ConfigurationError
from core.types import Mode
from ledger.accounts import is_valid_address
from ledger.connection import EXPLORER_BASE, Network
from preflight import MINT_REQUIRED_LAMPORTS, TRANSFER_REQUIRED_LAMPORTS
from submitter import COMMITMENT_ORDER, SubmitOptions

logger = logging.getLogger(__name__)


@dataclass
class DealConfig:
    """Deal token service configuration."""

    # Ledger settings
    network: Network = Network.DEVNET
    rpc_url: Optional[str] = None  # Overrides the network's public endpoint
    commitment: str = "confirmed"
    explorer_base: str = EXPLORER_BASE

    # Submission settings
    mode: Mode = Mode.PRODUCTION
    max_retries: int = 3
    retry_delay: float = 0.5
    confirmation_timeout: float = 60.0
    poll_interval: float = 1.0

    # Preflight thresholds (lamports)
    mint_required_lamports: int = MINT_REQUIRED_LAMPORTS
    transfer_required_lamports: int = TRANSFER_REQUIRED_LAMPORTS

    # Redemption settings
    ticket_ttl_seconds: int = 86400
    ticket_signing_key: str = ""  # hex secp256k1 private key; empty = digest only

    # Marketplace escrow for listings
    marketplace_address: str = ""

    # Service settings
    database_path: str = "deal-tokens.db"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "DealConfig":
        """Load configuration from environment variables.

        Args:
            env_file: Optional dotenv file loaded first; set variables win
        """
        if env_file:
            load_dotenv(env_file)

        try:
            return cls(
                network=Network(os.getenv("SOLANA_NETWORK", "devnet")),
                rpc_url=os.getenv("SOLANA_RPC_URL") or None,
                commitment=os.getenv("SOLANA_COMMITMENT", "confirmed"),
                explorer_base=os.getenv("EXPLORER_BASE", EXPLORER_BASE),
                mode=Mode(os.getenv("DEAL_MODE", "production")),
                max_retries=int(os.getenv("MAX_RETRIES", "3")),
                retry_delay=float(os.getenv("RETRY_DELAY", "0.5")),
                confirmation_timeout=float(os.getenv("CONFIRMATION_TIMEOUT", "60")),
                poll_interval=float(os.getenv("POLL_INTERVAL", "1")),
                mint_required_lamports=int(os.getenv("MINT_REQUIRED_LAMPORTS", str(MINT_REQUIRED_LAMPORTS))),
                transfer_required_lamports=int(
                    os.getenv("TRANSFER_REQUIRED_LAMPORTS", str(TRANSFER_REQUIRED_LAMPORTS))
                ),
                ticket_ttl_seconds=int(os.getenv("TICKET_TTL_SECONDS", "86400")),
                ticket_signing_key=os.getenv("TICKET_SIGNING_KEY", ""),
                marketplace_address=os.getenv("MARKETPLACE_ADDRESS", ""),
                database_path=os.getenv("DATABASE_PATH", "deal-tokens.db"),
                api_host=os.getenv("API_HOST", "0.0.0.0"),
                api_port=int(os.getenv("API_PORT", "8000")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}")

    @classmethod
    def from_file(cls, config_path: Path) -> "DealConfig":
        """Load configuration from TOML file.

        Args:
            config_path: Path to configuration file

        Returns:
            DealConfig instance

        Raises:
            ConfigurationError: If config is invalid
        """
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        logger.info(f"Loading configuration from {config_path}")

        try:
            with open(config_path, "r") as f:
                config_data = toml.load(f)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Failed to parse configuration file: {e}")

        defaults = cls()
        try:
            return cls(
                # Ledger settings
                network=Network(config_data.get("network", defaults.network.value)),
                rpc_url=config_data.get("rpc_url") or None,
                commitment=config_data.get("commitment", defaults.commitment),
                explorer_base=config_data.get("explorer_base", defaults.explorer_base),
                # Submission settings
                mode=Mode(config_data.get("mode", defaults.mode.value)),
                max_retries=int(config_data.get("max_retries", defaults.max_retries)),
                retry_delay=float(config_data.get("retry_delay", defaults.retry_delay)),
                confirmation_timeout=float(
                    config_data.get("confirmation_timeout", defaults.confirmation_timeout)
                ),
                poll_interval=float(config_data.get("poll_interval", defaults.poll_interval)),
                # Preflight thresholds
                mint_required_lamports=int(
                    config_data.get("mint_required_lamports", defaults.mint_required_lamports)
                ),
                transfer_required_lamports=int(
                    config_data.get("transfer_required_lamports", defaults.transfer_required_lamports)
                ),
                # Redemption settings
                ticket_ttl_seconds=int(config_data.get("ticket_ttl_seconds", defaults.ticket_ttl_seconds)),
                ticket_signing_key=config_data.get("ticket_signing_key", ""),
                # Marketplace
                marketplace_address=config_data.get("marketplace_address", ""),
                # Service settings
                database_path=config_data.get("database_path", defaults.database_path),
                api_host=config_data.get("api_host", defaults.api_host),
                api_port=int(config_data.get("api_port", defaults.api_port)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.commitment not in COMMITMENT_ORDER:
            raise ConfigurationError(
                f"commitment must be one of {', '.join(COMMITMENT_ORDER)}, got {self.commitment!r}"
            )

        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative")

        if self.confirmation_timeout <= 0 or self.poll_interval <= 0:
            raise ConfigurationError("confirmation_timeout and poll_interval must be positive")

        if self.mint_required_lamports < 0 or self.transfer_required_lamports < 0:
            raise ConfigurationError("Preflight thresholds must not be negative")

        if self.ticket_ttl_seconds < 1:
            raise ConfigurationError("ticket_ttl_seconds must be at least 1")

        if self.marketplace_address and not is_valid_address(self.marketplace_address):
            raise ConfigurationError(f"marketplace_address is not a valid address: {self.marketplace_address}")

        # Fails on a malformed key
        self.signing_key()

        logger.info("Configuration validated successfully")

    @property
    def ticket_ttl(self) -> timedelta:
        return timedelta(seconds=self.ticket_ttl_seconds)

    def submit_options(self) -> SubmitOptions:
        """Submission bounds derived from this configuration."""
        return SubmitOptions(
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            confirmation_timeout=self.confirmation_timeout,
            poll_interval=self.poll_interval,
            commitment=self.commitment,
        )

    def signing_key(self) -> Optional[SigningKey]:
        """Ticket signing key, or None when tickets are digest-only.

        Raises:
            ConfigurationError: If the key is not 32 bytes of hex
        """
        if not self.ticket_signing_key:
            return None
        try:
            private_key_bytes = bytes.fromhex(self.ticket_signing_key)
            return SigningKey.from_string(private_key_bytes, curve=SECP256k1)
        except (ValueError, MalformedPointError) as e:
            raise ConfigurationError(f"Invalid ticket_signing_key: {e}")
