#!/usr/bin/env python3
"""Tests for MessageTracker wiring."""

import gc
from unittest.mock import AsyncMock, MagicMock

import pytest

from message_tracker.config import ChainExplorerConfig, MonitoringConfig, TrackerConfig
from message_tracker.message_query import SearchFilter
from message_tracker.tracker import MessageTracker
from message_tracker.utils.host_throttle import HostThrottle, HostTimestampTable


@pytest.fixture
def config():
    return TrackerConfig(
        query_service_url="https://explorer.example.com/graphql",
        chains={1: ChainExplorerConfig(1, "https://api.etherscan.io/api")},
        monitoring=MonitoringConfig(message_poll_interval=3, search_poll_interval=7),
    )


@pytest.fixture
def throttle():
    return HostThrottle(table=HostTimestampTable())


class TestMessageTracker:
    """Tests for session creation and shutdown."""

    @pytest.mark.asyncio
    async def test_sessions_use_configured_intervals(self, config, throttle, scheduler):
        tracker = MessageTracker(config, throttle=throttle, scheduler=scheduler)

        message = tracker.message_session(MagicMock(), MagicMock())
        search = tracker.search_session(MagicMock(), MagicMock())

        assert message.interval == 3
        assert search.interval == 7
        assert message.executor is tracker.query_client
        assert tracker.explorer.chain_configs.try_get_explorer_api_url(1) == "https://api.etherscan.io/api"
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_sessions_require_query_service(self, throttle):
        tracker = MessageTracker(TrackerConfig(), throttle=throttle)

        with pytest.raises(ValueError, match="QUERY_SERVICE_URL"):
            tracker.message_session(MagicMock(), MagicMock())
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_aclose_stops_sessions(self, config, throttle, scheduler):
        tracker = MessageTracker(config, throttle=throttle, scheduler=scheduler)
        tracker.query_client.execute = AsyncMock(return_value={"messages": []})
        parser = MagicMock()
        parser.parse_message_result.return_value = []
        parser.parse_message_stub_result.return_value = []

        tracker.message_session(MagicMock(), parser).start("0x" + "ab" * 32)
        tracker.search_session(MagicMock(), parser).start(SearchFilter())
        await scheduler.advance(7)
        assert len(scheduler.pending) == 2

        await tracker.aclose()

        assert scheduler.pending == []

    @pytest.mark.asyncio
    async def test_default_throttle_leaves_shared_spacing(self):
        """Test the configured rate limit applies to this tracker only, over the shared host table."""
        shared = HostThrottle.shared()
        spacing = shared.min_spacing_ms
        config = TrackerConfig(monitoring=MonitoringConfig(explorer_rate_limit_ms=2000))

        tracker = MessageTracker(config)

        assert tracker.explorer.throttle.min_spacing_ms == 2000
        assert tracker.explorer.throttle.table is shared.table
        assert shared.min_spacing_ms == spacing
        await tracker.aclose()

    @pytest.mark.asyncio
    async def test_released_sessions_are_not_retained(self, config, throttle, scheduler):
        tracker = MessageTracker(config, throttle=throttle, scheduler=scheduler)

        session = tracker.message_session(MagicMock(), MagicMock())
        assert len(tracker._sessions) == 1

        del session
        gc.collect()

        assert len(tracker._sessions) == 0
        await tracker.aclose()
