"""
Interfaces of the message query service collaborators.

Building GraphQL query strings and parsing their responses is owned by the
query-service integration; polling sessions only depend on these protocols.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .models import Message, MessageStub


class MessageIdentifierType(Enum):
    """How a single message is looked up."""
    ID = "id"
    TX_HASH = "tx-hash"


@dataclass(frozen=True)
class GraphQLRequest:
    """Query string and variables for the message status service."""
    query: str
    variables: dict[str, Any] = field(default_factory=dict)


class MessageQueryBuilder(Protocol):
    """Builds message status service requests."""

    def build_message_query(
        self,
        id_type: MessageIdentifierType,
        value: str,
        limit: int,
    ) -> GraphQLRequest:
        ...

    def build_search_query(
        self,
        search_input: str,
        origin_chain_filter: str | None,
        destination_chain_filter: str | None,
        start_time_filter: int | None,
        end_time_filter: int | None,
        limit: int,
    ) -> GraphQLRequest:
        ...


class MessageResultParser(Protocol):
    """Turns raw service responses into message records."""

    def parse_message_result(self, data: Any) -> list[Message]:
        ...

    def parse_message_stub_result(self, data: Any) -> list[MessageStub]:
        ...


class QueryExecutor(Protocol):
    """Executes a request, going to the network when network_only is set."""

    async def execute(self, request: GraphQLRequest, *, network_only: bool = False) -> Any:
        ...
