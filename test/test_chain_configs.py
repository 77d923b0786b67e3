#!/usr/bin/env python3
"""Tests for the chain config store and query-string overrides."""

import base64
import json
import logging

import pytest

from message_tracker.chain_configs import (
    ChainConfigStore,
    ChainMetadata,
    decode_chain_configs,
)
from message_tracker.config import ChainExplorerConfig, Environment, TrackerConfig
from message_tracker.errors import DecodeError


def encode(value) -> str:
    return base64.b64encode(json.dumps(value).encode()).decode()


@pytest.fixture
def store():
    return ChainConfigStore([
        ChainMetadata(chain_id=1, name="ethereum", explorer_api_url="https://api.etherscan.io/api"),
    ])


class TestChainMetadata:
    """Tests for decoding untrusted chain metadata."""

    def test_api_url_from_block_explorer(self):
        chain = ChainMetadata.from_dict({
            "chainId": 8453,
            "name": "base",
            "blockExplorers": [{"url": "https://basescan.org", "apiUrl": "https://api.basescan.org/api"}],
        })

        assert chain.chain_id == 8453
        assert chain.explorer_api_url == "https://api.basescan.org/api"

    def test_api_url_falls_back_to_explorer_url(self):
        chain = ChainMetadata.from_dict({
            "chainId": 5000,
            "name": "mantle",
            "blockExplorers": [{"url": "https://explorer.mantle.xyz/"}],
        })

        assert chain.explorer_api_url == "https://explorer.mantle.xyz/api"

    def test_no_block_explorers(self):
        chain = ChainMetadata.from_dict({"chainId": 7, "name": "custom"})
        assert chain.explorer_api_url is None

    @pytest.mark.parametrize("raw", [
        None,
        {"chainId": 1},
        {"name": "x", "chainId": "1"},
        {"name": "x", "chainId": True},
        {"name": "x", "chainId": 1, "blockExplorers": "https://x"},
    ])
    def test_invalid(self, raw):
        with pytest.raises(DecodeError):
            ChainMetadata.from_dict(raw)


class TestDecodeChainConfigs:
    """Tests for the base64 query parameter format."""

    def test_decode(self):
        chains = decode_chain_configs(encode([{"chainId": 7, "name": "custom"}]))
        assert chains == [ChainMetadata(chain_id=7, name="custom")]

    def test_unpadded_urlsafe(self):
        value = base64.urlsafe_b64encode(json.dumps([{"chainId": 7, "name": "c"}]).encode())
        assert len(decode_chain_configs(value.decode().rstrip("="))) == 1

    @pytest.mark.parametrize("value", ["%%%", base64.b64encode(b"not json").decode(), encode({"a": 1})])
    def test_undecodable(self, value):
        with pytest.raises(DecodeError):
            decode_chain_configs(value)


class TestChainConfigStore:
    """Tests for store lookups and merges."""

    def test_lookups(self, store):
        assert 1 in store
        assert len(store) == 1
        assert store.try_get_explorer_api_url(1) == "https://api.etherscan.io/api"
        assert store.try_get_explorer_api_url(999) is None
        assert store.get_explorer_api_key(1) is None

    def test_from_config(self):
        config = TrackerConfig(
            environment=Environment.TESTNET,
            chains={137: ChainExplorerConfig(137, "https://api.polygonscan.com/api", "k")},
        )

        store = ChainConfigStore.from_config(config)

        assert store.environment is Environment.TESTNET
        assert store.get_explorer_api_key(137) == "k"

    def test_merge_adds_new_chains(self, store):
        added = store.merge_from_query_param(encode([
            {"chainId": 7, "name": "custom", "blockExplorers": [{"apiUrl": "https://x.io/api"}]},
        ]))

        assert [c.chain_id for c in added] == [7]
        assert store.try_get_explorer_api_url(7) == "https://x.io/api"

    def test_merge_keeps_existing_chains(self, store):
        """Test existing chains win over query-string entries with the same id or name."""
        added = store.merge_from_query_param(encode([
            {"chainId": 1, "name": "evil", "blockExplorers": [{"apiUrl": "https://evil.io/api"}]},
            {"chainId": 99, "name": "ethereum"},
        ]))

        assert added == []
        assert store.try_get_explorer_api_url(1) == "https://api.etherscan.io/api"
        assert 99 not in store

    def test_merge_invalid_value_is_dropped(self, store, caplog):
        """Test a decode failure is logged and leaves the store unchanged."""
        with caplog.at_level(logging.ERROR):
            added = store.merge_from_query_param(encode([{"chainId": 7, "name": "ok"}, {"name": 3}]))

        assert added == []
        assert 7 not in store
        assert "Invalid chain configs" in caplog.text

    def test_merge_empty_value(self, store):
        assert store.merge_from_query_param(None) == []
        assert store.merge_from_query_param("") == []

    def test_select_environment(self, store):
        assert store.select_environment("testnet") is True
        assert store.environment is Environment.TESTNET
        assert store.select_environment("testnet") is False
        assert store.select_environment(None) is False

    def test_select_unknown_environment(self, store):
        assert store.select_environment("devnet") is False
        assert store.environment is Environment.MAINNET
