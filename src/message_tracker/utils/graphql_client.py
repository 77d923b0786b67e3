"""
GraphQL client for the message status service.

Results are cached per (query, variables). The default policy serves a
cached result when there is one; network-only requests always go to the
service and refresh the cache. A response only replaces a cached entry
when its request was sent after the one that produced the entry, and the
least recently used entries are evicted beyond `max_cache_entries`.
"""

import json
import logging
from collections import OrderedDict
from typing import Any

import httpx

from ..errors import InvalidResultError, TransportError
from ..queries import GraphQLRequest

logger = logging.getLogger(__name__)


def cache_key(request: GraphQLRequest) -> str:
    return f"{request.query}\n{json.dumps(request.variables, sort_keys=True, default=str)}"


class GraphQLClient:
    """Async GraphQL client with a cache-first / network-only request policy."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        max_cache_entries: int = 256,
    ) -> None:
        """
        Initialize the GraphQL client.

        Args:
            url: GraphQL endpoint
            timeout: Per-request timeout in seconds
            client: HTTP client to use, one is created if not provided
            max_cache_entries: Number of distinct requests kept in the cache
        """
        if max_cache_entries <= 0:
            raise ValueError(f"Cache size must be positive, got {max_cache_entries}")
        self.url = url
        self.timeout = timeout
        self.max_cache_entries = max_cache_entries
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)
        # key -> (request seq, data)
        self._cache: OrderedDict[str, tuple[int, Any]] = OrderedDict()
        self._request_seq = 0

    async def execute(self, request: GraphQLRequest, *, network_only: bool = False) -> Any:
        """
        Execute a request and return its `data` field.

        Args:
            request: Query and variables
            network_only: Skip the cache and fetch from the service

        Raises:
            TransportError: On a non-2xx response or timeout
            InvalidResultError: If the response has errors or no data
        """
        key = cache_key(request)
        if not network_only and key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key][1]

        self._request_seq += 1
        seq = self._request_seq
        payload = {"query": request.query, "variables": request.variables}
        try:
            response = await self.client.post(self.url, json=payload, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise TransportError("Message query timed out") from e
        except httpx.TransportError as e:
            raise TransportError(f"Message query failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Message query response not okay: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise InvalidResultError("Message query returned invalid JSON", response.text) from None

        if not isinstance(body, dict) or body.get("errors") or body.get("data") is None:
            errors = body.get("errors") if isinstance(body, dict) else None
            raise InvalidResultError(f"Message query failed: {errors or 'no data'}", response.text)

        self._store(key, seq, body["data"])
        return body["data"]

    def _store(self, key: str, seq: int, data: Any) -> None:
        cached = self._cache.get(key)
        if cached is not None and cached[0] > seq:
            logger.debug(f"Not caching response #{seq}, newer response #{cached[0]} is cached")
            return
        self._cache[key] = (seq, data)
        self._cache.move_to_end(key)
        while len(self._cache) > self.max_cache_entries:
            self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()
