#!/usr/bin/env python3
"""Configuration management for the message tracker.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

from .utils.host_throttle import BLOCK_EXPLORER_RATE_LIMIT_MS

# Get logger for this module
logger = logging.getLogger(__name__)


class Environment(Enum):
    """Deployment environment whose messages are tracked."""
    MAINNET = "mainnet"
    TESTNET = "testnet"


def _validate_http_url(url: str, name: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Invalid {name}: {url}. Expected an http(s) URL")


@dataclass(frozen=True, slots=True)
class ChainExplorerConfig:
    """Explorer API settings for one chain.

    Attributes:
        chain_id: Chain ID the explorer serves
        explorer_api_url: Explorer API endpoint, None if the chain has none
        explorer_api_key: Optional API key; queries using it skip throttling
    """

    chain_id: int
    explorer_api_url: str | None = None
    explorer_api_key: str | None = None

    def __post_init__(self) -> None:
        """Validate chain explorer configuration."""
        if self.chain_id <= 0:
            raise ValueError(f"Chain ID must be positive, got {self.chain_id}")
        if self.explorer_api_url:
            _validate_http_url(self.explorer_api_url, f"explorer URL for chain {self.chain_id}")


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for polling and explorer requests."""
    message_poll_interval: float = 10.0  # seconds between single-message refreshes
    search_poll_interval: float = 15.0  # seconds between search refreshes
    latest_query_limit: int = 12
    search_query_limit: int = 50
    request_timeout: float = 10.0  # HTTP request timeout in seconds
    explorer_rate_limit_ms: int = BLOCK_EXPLORER_RATE_LIMIT_MS
    allow_address_search: bool = True

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        for name in ("message_poll_interval", "search_poll_interval"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
            if value > 300:
                raise ValueError(f"{name} too long (max 300s), got {value}")

        if self.latest_query_limit <= 0 or self.search_query_limit <= 0:
            raise ValueError("Query limits must be positive")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Request timeout too long (max 120s), got {self.request_timeout}")

        if self.explorer_rate_limit_ms < 0:
            raise ValueError(
                f"Explorer rate limit must be non-negative, got {self.explorer_rate_limit_ms}"
            )


def parse_chain_map(raw: str, name: str) -> dict[int, str]:
    """
    Parse a `chainId=value,chainId=value` environment string.

    Args:
        raw: Raw environment value, may be empty
        name: Variable name for error messages

    Returns:
        Mapping of chain ID to value

    Raises:
        ValueError: If an entry is not of the form chainId=value
    """
    result: dict[int, str] = {}
    for entry in filter(None, (part.strip() for part in raw.split(","))):
        chain, sep, value = entry.partition("=")
        if not sep or not value.strip():
            raise ValueError(f"Invalid {name} entry: {entry!r}. Expected chainId=value")
        try:
            chain_id = int(chain.strip())
        except ValueError:
            raise ValueError(f"Invalid chain ID in {name}: {chain!r}") from None
        result[chain_id] = value.strip()
    return result


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Main configuration for the message tracker.

    Attributes:
        query_service_url: GraphQL endpoint of the message status service
        environment: Environment whose messages are tracked
        chains: Explorer settings keyed by chain ID
        monitoring: Polling and request settings
    """

    query_service_url: str | None = None
    environment: Environment = Environment.MAINNET
    chains: dict[int, ChainExplorerConfig] = field(default_factory=dict)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def __post_init__(self) -> None:
        """Validate tracker configuration."""
        if self.query_service_url:
            _validate_http_url(self.query_service_url, "query service URL")

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Load configuration from environment variables.

        Returns:
            TrackerConfig instance with loaded values

        Raises:
            ValueError: If environment variables are malformed
        """
        env_name = os.environ.get("ENVIRONMENT", Environment.MAINNET.value).lower()
        try:
            environment = Environment(env_name)
        except ValueError:
            raise ValueError(
                f"Unsupported environment: {env_name}. "
                f"Supported environments: {', '.join(e.value for e in Environment)}"
            ) from None

        urls = parse_chain_map(os.environ.get("EXPLORER_API_URLS", ""), "EXPLORER_API_URLS")
        keys = parse_chain_map(os.environ.get("EXPLORER_API_KEYS", ""), "EXPLORER_API_KEYS")
        chains = {
            chain_id: ChainExplorerConfig(
                chain_id=chain_id,
                explorer_api_url=urls.get(chain_id),
                explorer_api_key=keys.get(chain_id),
            )
            for chain_id in sorted(urls.keys() | keys.keys())
        }

        monitoring_config = MonitoringConfig(
            message_poll_interval=float(os.environ.get("MESSAGE_POLL_INTERVAL", "10")),
            search_poll_interval=float(os.environ.get("SEARCH_POLL_INTERVAL", "15")),
            request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "10")),
            explorer_rate_limit_ms=int(
                os.environ.get("EXPLORER_RATE_LIMIT_MS", str(BLOCK_EXPLORER_RATE_LIMIT_MS))
            ),
        )

        return cls(
            query_service_url=os.environ.get("QUERY_SERVICE_URL") or None,
            environment=environment,
            chains=chains,
            monitoring=monitoring_config,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format, hiding API keys."""
        logger.info("=" * 60)
        logger.info("Message Tracker Configuration")
        logger.info("=" * 60)
        logger.info(f"Environment: {self.environment.value}")
        logger.info(f"Query Service: {self.query_service_url or '[NOT SET]'}")

        logger.info("Explorers:")
        if not self.chains:
            logger.info("  (none configured)")
        for chain in self.chains.values():
            logger.info(
                f"  Chain {chain.chain_id}: {chain.explorer_api_url or '[NO URL]'} "
                f"key={'[SET]' if chain.explorer_api_key else '[NOT SET]'}"
            )

        logger.info("Monitoring Settings:")
        logger.info(f"  Message Poll Interval: {self.monitoring.message_poll_interval} seconds")
        logger.info(f"  Search Poll Interval: {self.monitoring.search_poll_interval} seconds")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")
        logger.info(f"  Explorer Rate Limit: {self.monitoring.explorer_rate_limit_ms} ms")
        logger.info("=" * 60)
