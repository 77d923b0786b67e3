#!/usr/bin/env python3
"""Tests for the configuration module."""

import logging
import os
import pytest
from unittest.mock import patch

from message_tracker.config import (
    ChainExplorerConfig,
    Environment,
    MonitoringConfig,
    TrackerConfig,
    parse_chain_map,
)


class TestChainExplorerConfig:
    """Tests for ChainExplorerConfig."""

    def test_valid_config(self):
        """Test creating a valid explorer configuration."""
        config = ChainExplorerConfig(
            chain_id=1,
            explorer_api_url="https://api.etherscan.io/api",
            explorer_api_key="key",
        )

        assert config.chain_id == 1
        assert config.explorer_api_url == "https://api.etherscan.io/api"

    def test_chain_without_explorer(self):
        """Test a chain may have no explorer at all."""
        config = ChainExplorerConfig(chain_id=42)
        assert config.explorer_api_url is None

    def test_invalid_chain_id(self):
        with pytest.raises(ValueError, match="Chain ID must be positive"):
            ChainExplorerConfig(chain_id=0)

    def test_invalid_url_scheme(self):
        """Test that non-http explorer URLs are rejected."""
        with pytest.raises(ValueError, match="Invalid explorer URL for chain 1"):
            ChainExplorerConfig(chain_id=1, explorer_api_url="ftp://api.etherscan.io")


class TestMonitoringConfig:
    """Tests for MonitoringConfig."""

    def test_defaults(self):
        """Test default intervals, limits and rate limit."""
        config = MonitoringConfig()

        assert config.message_poll_interval == 10.0
        assert config.search_poll_interval == 15.0
        assert config.latest_query_limit == 12
        assert config.search_query_limit == 50
        assert config.explorer_rate_limit_ms == 5100

    @pytest.mark.parametrize("interval", [0, -1, 301])
    def test_invalid_poll_interval(self, interval):
        with pytest.raises(ValueError, match="message_poll_interval"):
            MonitoringConfig(message_poll_interval=interval)

    def test_invalid_query_limit(self):
        with pytest.raises(ValueError, match="Query limits must be positive"):
            MonitoringConfig(search_query_limit=0)

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="Request timeout must be positive"):
            MonitoringConfig(request_timeout=0)
        with pytest.raises(ValueError, match="too long"):
            MonitoringConfig(request_timeout=121)

    def test_negative_rate_limit(self):
        with pytest.raises(ValueError, match="non-negative"):
            MonitoringConfig(explorer_rate_limit_ms=-1)


class TestParseChainMap:
    """Tests for chainId=value environment strings."""

    def test_parse(self):
        assert parse_chain_map("1=a, 137=b,", "X") == {1: "a", 137: "b"}

    def test_empty(self):
        assert parse_chain_map("", "X") == {}

    def test_missing_value(self):
        with pytest.raises(ValueError, match="Expected chainId=value"):
            parse_chain_map("1=", "EXPLORER_API_URLS")

    def test_bad_chain_id(self):
        with pytest.raises(ValueError, match="Invalid chain ID in EXPLORER_API_KEYS"):
            parse_chain_map("mainnet=abc", "EXPLORER_API_KEYS")


class TestTrackerConfig:
    """Tests for TrackerConfig."""

    def test_invalid_query_service_url(self):
        with pytest.raises(ValueError, match="Invalid query service URL"):
            TrackerConfig(query_service_url="not-a-url")

    @patch.dict(os.environ, {
        "QUERY_SERVICE_URL": "https://explorer.example.com/graphql",
        "ENVIRONMENT": "testnet",
        "EXPLORER_API_URLS": "1=https://api.etherscan.io/api,137=https://api.polygonscan.com/api",
        "EXPLORER_API_KEYS": "137=polygon-key",
        "MESSAGE_POLL_INTERVAL": "5",
        "EXPLORER_RATE_LIMIT_MS": "2000",
    }, clear=True)
    def test_from_env(self):
        """Test loading configuration from environment variables."""
        config = TrackerConfig.from_env()

        assert config.query_service_url == "https://explorer.example.com/graphql"
        assert config.environment is Environment.TESTNET
        assert list(config.chains) == [1, 137]
        assert config.chains[1].explorer_api_key is None
        assert config.chains[137].explorer_api_key == "polygon-key"
        assert config.monitoring.message_poll_interval == 5.0
        assert config.monitoring.search_poll_interval == 15.0
        assert config.monitoring.explorer_rate_limit_ms == 2000

    @patch.dict(os.environ, {}, clear=True)
    def test_from_env_defaults(self):
        """Test configuration without any variables set."""
        config = TrackerConfig.from_env()

        assert config.query_service_url is None
        assert config.environment is Environment.MAINNET
        assert config.chains == {}

    @patch.dict(os.environ, {"ENVIRONMENT": "devnet"}, clear=True)
    def test_unsupported_environment(self):
        with pytest.raises(ValueError, match="Unsupported environment: devnet"):
            TrackerConfig.from_env()

    @patch.dict(os.environ, {"EXPLORER_API_KEYS": "42=key"}, clear=True)
    def test_key_without_url(self):
        """Test a key-only chain is kept so lookups fail with a clear error."""
        config = TrackerConfig.from_env()
        assert config.chains[42].explorer_api_url is None

    def test_log_config_hides_keys(self, caplog):
        """Test that API keys never appear in the logged configuration."""
        config = TrackerConfig(
            chains={137: ChainExplorerConfig(137, "https://api.polygonscan.com/api", "secret")}
        )

        with caplog.at_level(logging.INFO, logger="message_tracker.config"):
            config.log_config()

        assert "secret" not in caplog.text
        assert "key=[SET]" in caplog.text
