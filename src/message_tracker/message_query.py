"""
Polling sessions for message status queries.

A message session follows one message until it is delivered. A search
session keeps a listing fresh for as long as the caller is interested.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from eth_utils import is_0x_prefixed, is_hex_address, is_hexstr

from .models import Message, MessageStub, is_terminal_status
from .queries import (
    GraphQLRequest,
    MessageIdentifierType,
    MessageQueryBuilder,
    MessageResultParser,
    QueryExecutor,
)
from .utils.polling_engine import PollingSession, PollSnapshot, Scheduler

logger = logging.getLogger(__name__)

SEARCH_AUTO_REFRESH_DELAY: float = 15.0  # seconds
MSG_AUTO_REFRESH_DELAY: float = 10.0  # seconds
LATEST_QUERY_LIMIT: int = 12
SEARCH_QUERY_LIMIT: int = 50


def is_valid_transaction_hash(value: str) -> bool:
    return len(value) == 66 and is_0x_prefixed(value) and is_hexstr(value)


def is_valid_address_fast(value: str) -> bool:
    """Address shape check without checksum validation."""
    return is_0x_prefixed(value) and is_hex_address(value)


def is_valid_search_query(search_input: str, allow_address: bool = False) -> bool:
    if not search_input:
        return False
    if is_valid_transaction_hash(search_input):
        return True
    if allow_address and is_valid_address_fast(search_input):
        return True
    return False


def messages_delivered(messages: list[Message]) -> bool:
    """Stop condition of a message session: found and delivered."""
    return bool(messages) and is_terminal_status(messages[0].status)


@dataclass(frozen=True)
class MessageQuerySnapshot:
    is_fetching: bool = False
    is_error: bool = False
    has_run: bool = False
    is_message_found: bool = False
    message: Message | None = None


@dataclass(frozen=True)
class MessageSearchSnapshot:
    is_valid_input: bool = True
    is_fetching: bool = False
    is_error: bool = False
    has_run: bool = False
    is_messages_found: bool = False
    message_list: tuple[MessageStub, ...] = ()


@dataclass(frozen=True)
class SearchFilter:
    """Search input and filters of a listing view.

    An empty input shows the latest messages.
    """
    sanitized_input: str = ""
    origin_chain_filter: str | None = None
    destination_chain_filter: str | None = None
    start_time_filter: int | None = None
    end_time_filter: int | None = None

    @property
    def has_input(self) -> bool:
        return bool(self.sanitized_input)

    @property
    def has_filters(self) -> bool:
        return any(
            value is not None
            for value in (
                self.origin_chain_filter,
                self.destination_chain_filter,
                self.start_time_filter,
                self.end_time_filter,
            )
        )


def _make_query_fn(
    executor: QueryExecutor,
    request: GraphQLRequest,
    parse: Callable[[Any], list],
) -> Callable[[bool], Any]:
    async def query_fn(bypass_cache: bool) -> list:
        data = await executor.execute(request, network_only=bypass_cache)
        return parse(data)
    return query_fn


class MessagePollSession:
    """
    Polls a single message by id until it is delivered.

    Pending and failing messages are polled at the same fixed interval for as
    long as the session runs.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        builder: MessageQueryBuilder,
        parser: MessageResultParser,
        *,
        interval: float = MSG_AUTO_REFRESH_DELAY,
        scheduler: Scheduler | None = None,
        on_update: Callable[[MessageQuerySnapshot], Any] | None = None,
    ) -> None:
        self.executor = executor
        self.builder = builder
        self.parser = parser
        self.interval = interval
        self.scheduler = scheduler
        self.on_update = on_update
        self.message_id: str | None = None
        self._session: PollingSession[list[Message]] | None = None

    @property
    def polling(self) -> PollingSession[list[Message]] | None:
        return self._session

    @property
    def snapshot(self) -> MessageQuerySnapshot:
        if self._session is None:
            return MessageQuerySnapshot()
        return self._to_snapshot(self._session.snapshot)

    def start(self, message_id: str) -> None:
        """
        Start following a message, replacing any message followed so far.

        Args:
            message_id: Id of the message to follow
        """
        if self._session is not None and self._session.is_active and message_id == self.message_id:
            return
        self.stop()

        self.message_id = message_id
        request = self.builder.build_message_query(MessageIdentifierType.ID, message_id, 1)
        self._session = PollingSession(
            _make_query_fn(self.executor, request, self.parser.parse_message_result),
            self.interval,
            stop_predicate=messages_delivered,
            scheduler=self.scheduler,
            on_update=self._notify,
            name=f"message {message_id[:10]}",
        )
        logger.info(f"Following message {message_id}")
        self._session.start()

    def stop(self) -> None:
        if self._session is not None:
            self._session.stop()

    async def drain(self) -> None:
        if self._session is not None:
            await self._session.drain()

    @staticmethod
    def _to_snapshot(snapshot: PollSnapshot[list[Message]]) -> MessageQuerySnapshot:
        messages = snapshot.result or []
        return MessageQuerySnapshot(
            is_fetching=snapshot.is_fetching,
            is_error=snapshot.is_error,
            has_run=snapshot.has_run,
            is_message_found=bool(messages),
            message=messages[0] if messages else None,
        )

    def _notify(self, snapshot: PollSnapshot[list[Message]]) -> None:
        if self.on_update is not None:
            self.on_update(self._to_snapshot(snapshot))


class MessageSearchPollSession:
    """
    Keeps a message listing fresh while the caller is interested.

    Runs for an empty input (latest messages) or a valid search input. An
    invalid input pauses the session without issuing any query.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        builder: MessageQueryBuilder,
        parser: MessageResultParser,
        *,
        interval: float = SEARCH_AUTO_REFRESH_DELAY,
        allow_address: bool = True,
        latest_limit: int = LATEST_QUERY_LIMIT,
        search_limit: int = SEARCH_QUERY_LIMIT,
        scheduler: Scheduler | None = None,
        on_update: Callable[[MessageSearchSnapshot], Any] | None = None,
    ) -> None:
        self.executor = executor
        self.builder = builder
        self.parser = parser
        self.interval = interval
        self.allow_address = allow_address
        self.latest_limit = latest_limit
        self.search_limit = search_limit
        self.scheduler = scheduler
        self.on_update = on_update
        self.search: SearchFilter | None = None
        self.is_valid_input = True
        self._session: PollingSession[list[MessageStub]] | None = None

    @property
    def polling(self) -> PollingSession[list[MessageStub]] | None:
        return self._session

    @property
    def snapshot(self) -> MessageSearchSnapshot:
        if self._session is None:
            return MessageSearchSnapshot(is_valid_input=self.is_valid_input)
        return self._to_snapshot(self._session.snapshot)

    def query_limit(self, search: SearchFilter) -> int:
        return self.search_limit if search.has_input or search.has_filters else self.latest_limit

    def start(self, search: SearchFilter) -> bool:
        """
        Start refreshing the listing for a search, replacing any previous one.

        Args:
            search: Search input and filters

        Returns:
            True if the input is valid and polling started
        """
        if self._session is not None and self._session.is_active and search == self.search:
            return True
        self.stop()

        self.search = search
        self.is_valid_input = (
            is_valid_search_query(search.sanitized_input, self.allow_address)
            if search.has_input else True
        )
        if not self.is_valid_input:
            logger.debug(f"Not searching for invalid input {search.sanitized_input!r}")
            self._session = None
            self._notify_paused()
            return False

        request = self.builder.build_search_query(
            search.sanitized_input,
            search.origin_chain_filter,
            search.destination_chain_filter,
            search.start_time_filter,
            search.end_time_filter,
            self.query_limit(search),
        )
        self._session = PollingSession(
            _make_query_fn(self.executor, request, self.parser.parse_message_stub_result),
            self.interval,
            scheduler=self.scheduler,
            on_update=self._notify,
            name=f"search {search.sanitized_input[:10] or 'latest'}",
        )
        self._session.start()
        return True

    def stop(self) -> None:
        if self._session is not None:
            self._session.stop()

    async def drain(self) -> None:
        if self._session is not None:
            await self._session.drain()

    def _to_snapshot(self, snapshot: PollSnapshot[list[MessageStub]]) -> MessageSearchSnapshot:
        messages = tuple(snapshot.result or ())
        return MessageSearchSnapshot(
            is_valid_input=self.is_valid_input,
            is_fetching=snapshot.is_fetching,
            is_error=snapshot.is_error,
            has_run=snapshot.has_run,
            is_messages_found=bool(messages),
            message_list=messages,
        )

    def _notify(self, snapshot: PollSnapshot[list[MessageStub]]) -> None:
        if self.on_update is not None:
            self.on_update(self._to_snapshot(snapshot))

    def _notify_paused(self) -> None:
        if self.on_update is not None:
            self.on_update(MessageSearchSnapshot(is_valid_input=False))
