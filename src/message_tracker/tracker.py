"""
Message tracker service.

This module wires configuration, chain metadata, the explorer client and the
message query service together, and hands out polling sessions.
"""

import logging
from typing import Any
from weakref import WeakSet

from .chain_configs import ChainConfigStore
from .config import TrackerConfig
from .message_query import MessagePollSession, MessageSearchPollSession
from .queries import MessageQueryBuilder, MessageResultParser
from .utils.explorer_client import ExplorerClient
from .utils.graphql_client import GraphQLClient
from .utils.host_throttle import HostThrottle
from .utils.polling_engine import Scheduler

logger = logging.getLogger(__name__)


class MessageTracker:
    """
    Entry point for message status polling and explorer lookups.

    Owns the HTTP clients it creates; call `aclose()` when done.
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        chain_configs: ChainConfigStore | None = None,
        throttle: HostThrottle | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            config: Tracker configuration
            chain_configs: Chain store, built from config if not provided
            throttle: Host throttle, one sharing the process-wide host table if not provided
            scheduler: Timer source for polling sessions
        """
        self.config = config
        self.chain_configs = chain_configs or ChainConfigStore.from_config(config)
        self.scheduler = scheduler

        if throttle is None:
            throttle = HostThrottle(
                config.monitoring.explorer_rate_limit_ms,
                table=HostThrottle.shared().table,
            )
        self.explorer = ExplorerClient(
            self.chain_configs,
            throttle=throttle,
            timeout=config.monitoring.request_timeout,
        )
        self.query_client: GraphQLClient | None = (
            GraphQLClient(config.query_service_url, timeout=config.monitoring.request_timeout)
            if config.query_service_url else None
        )
        # Sessions stay alive through their callers and running timers only
        self._sessions: WeakSet[MessagePollSession | MessageSearchPollSession] = WeakSet()

    @classmethod
    def from_env(cls) -> "MessageTracker":
        """
        Create a MessageTracker from environment variables.

        Raises:
            ValueError: If environment variables are malformed
        """
        config = TrackerConfig.from_env()
        config.log_config()
        return cls(config)

    def _require_query_client(self) -> GraphQLClient:
        if self.query_client is None:
            raise ValueError("QUERY_SERVICE_URL is required for message polling")
        return self.query_client

    def message_session(
        self,
        builder: MessageQueryBuilder,
        parser: MessageResultParser,
        **kwargs: Any,
    ) -> MessagePollSession:
        """Create a session following a single message until delivery."""
        session = MessagePollSession(
            self._require_query_client(),
            builder,
            parser,
            interval=self.config.monitoring.message_poll_interval,
            scheduler=self.scheduler,
            **kwargs,
        )
        self._sessions.add(session)
        return session

    def search_session(
        self,
        builder: MessageQueryBuilder,
        parser: MessageResultParser,
        **kwargs: Any,
    ) -> MessageSearchPollSession:
        """Create a session refreshing a message listing."""
        monitoring = self.config.monitoring
        session = MessageSearchPollSession(
            self._require_query_client(),
            builder,
            parser,
            interval=monitoring.search_poll_interval,
            allow_address=monitoring.allow_address_search,
            latest_limit=monitoring.latest_query_limit,
            search_limit=monitoring.search_query_limit,
            scheduler=self.scheduler,
            **kwargs,
        )
        self._sessions.add(session)
        return session

    def stop(self) -> None:
        """Stop every session handed out by this tracker."""
        for session in list(self._sessions):
            session.stop()

    async def aclose(self) -> None:
        """Stop sessions and close HTTP clients."""
        self.stop()
        await self.explorer.aclose()
        if self.query_client is not None:
            await self.query_client.aclose()
        logger.info("Message tracker stopped")
