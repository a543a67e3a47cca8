"""Main entry point for the deal token API."""

import logging
import os
import sys
from pathlib import Path

import uvicorn

from config import DealConfig
from core.errors import ConfigurationError


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler("deal-tokens.log"),
        ],
    )


def load_config() -> DealConfig:
    """Load and validate configuration from the environment.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    env_path = Path(".env")
    config = DealConfig.from_env(str(env_path) if env_path.exists() else None)
    config.validate()
    return config


def main() -> None:
    """Main entry point."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    setup_logging(log_level)

    logger = logging.getLogger(__name__)
    logger.info("Starting deal token API...")

    try:
        config = load_config()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    uvicorn.run(
        "api.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
        log_level=log_level.lower()
    )


if __name__ == "__main__":
    main()
