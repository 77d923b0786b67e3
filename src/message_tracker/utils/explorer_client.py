"""
Client for block-explorer HTTP APIs (Etherscan-style).

Every response is wrapped in a `{status, message, result}` envelope. Queries
without an API key go through a HostThrottle so unauthenticated rate limits
are respected across every caller sharing it.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..chain_configs import ChainConfigProvider
from ..errors import ConfigError, InvalidResultError, TransportError
from ..models import ExplorerLogEntry, ExplorerTarget, NormalizedLog
from .host_throttle import HostThrottle
from .log_normalizer import to_normalized_log
from .validators import validate_block, validate_explorer_logs, validate_tx, validate_tx_receipt

logger = logging.getLogger(__name__)

API_KEY_PARAM = "apikey"
DEFAULT_TIMEOUT: float = 10.0


def redact_url(url: httpx.URL) -> str:
    """Render a URL with its API key hidden."""
    if API_KEY_PARAM not in url.params:
        return str(url)
    return str(url.copy_set_param(API_KEY_PARAM, "[REDACTED]"))


class ExplorerClient:
    """
    Async client for explorer API queries.

    Chain explorer URLs and keys are resolved per query from the chain config
    provider, so configs merged at runtime are picked up immediately.
    """

    def __init__(
        self,
        chain_configs: ChainConfigProvider,
        *,
        throttle: HostThrottle | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the explorer client.

        Args:
            chain_configs: Source of explorer API URLs and keys
            throttle: Host throttle, the process-wide one if not provided
            timeout: Per-request timeout in seconds
            client: HTTP client to use, one is created if not provided
        """
        self.chain_configs = chain_configs
        self.throttle = throttle if throttle is not None else HostThrottle.shared()
        self.timeout = timeout
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    def resolve_target(self, chain_id: int, use_key: bool = False) -> ExplorerTarget:
        """
        Look up the explorer endpoint for a chain.

        Raises:
            ConfigError: If the chain has no explorer URL, or no API key when
                use_key is set
        """
        base_url = self.chain_configs.try_get_explorer_api_url(chain_id)
        if not base_url:
            raise ConfigError(f"No valid URL found for explorer for chain {chain_id}")

        api_key = None
        if use_key:
            api_key = self.chain_configs.get_explorer_api_key(chain_id)
            if not api_key:
                raise ConfigError(f"No API key for explorer for chain {chain_id}")

        return ExplorerTarget(chain_id=chain_id, base_url=base_url, api_key=api_key)

    @staticmethod
    def build_url(target: ExplorerTarget, params: Mapping[str, Any]) -> httpx.URL:
        """Merge params over the base URL's query string and attach the key."""
        url = httpx.URL(target.base_url).copy_merge_params(
            {key: str(value) for key, value in params.items()}
        )
        if target.api_key:
            url = url.copy_set_param(API_KEY_PARAM, target.api_key)
        return url

    async def query(
        self,
        chain_id: int,
        params: Mapping[str, Any],
        use_key: bool = False,
    ) -> Any:
        """
        Run an explorer query and return the envelope's result unmodified.

        Args:
            chain_id: Chain whose explorer is queried
            params: Query parameters (module, action and action parameters)
            use_key: Attach the chain's API key and skip throttling

        Returns:
            The `result` field of the response envelope

        Raises:
            ConfigError: If the explorer URL or requested key is missing
            TransportError: On a non-2xx response or timeout
            InvalidResultError: If the envelope has no usable result
        """
        target = self.resolve_target(chain_id, use_key)
        url = self.build_url(target, params)

        if target.api_key:
            logger.debug(f"Querying explorer url: {redact_url(url)}")
            return await self._execute(url)

        logger.debug(f"Querying explorer url: {url}")
        async with self.throttle.throttled(url.host):
            return await self._execute(url)

    async def _execute(self, url: httpx.URL) -> Any:
        try:
            response = await self.client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise TransportError(f"Explorer query to {url.host} timed out") from e
        except httpx.TransportError as e:
            raise TransportError(f"Explorer query to {url.host} failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Fetch response not okay: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        result = body.get("result") if isinstance(body, dict) else None
        if not result:
            raise InvalidResultError(
                f"Invalid result format: {response.text}",
                response_text=response.text,
            )
        return result

    async def query_logs(
        self,
        chain_id: int,
        params: Mapping[str, Any] | str,
        use_key: bool = False,
    ) -> list[ExplorerLogEntry]:
        """
        Query raw event logs.

        Args:
            chain_id: Chain whose explorer is queried
            params: Log query parameters as a mapping or a query string
                (e.g. `module=logs&action=getLogs&address=...&topic0=...`)
            use_key: Attach the chain's API key

        Returns:
            Validated raw log entries

        Raises:
            MalformedLogError: If the result is not a list of usable logs
        """
        query_params = httpx.QueryParams(params) if isinstance(params, str) else params
        logs = await self.query(chain_id, query_params, use_key)
        return validate_explorer_logs(logs, str(httpx.QueryParams(query_params)))

    async def query_normalized_logs(
        self,
        chain_id: int,
        params: Mapping[str, Any] | str,
        use_key: bool = False,
    ) -> list[NormalizedLog]:
        """Query logs and convert them to NormalizedLog."""
        return [to_normalized_log(log) for log in await self.query_logs(chain_id, params, use_key)]

    async def query_tx(self, chain_id: int, tx_hash: str, use_key: bool = False) -> dict[str, Any]:
        """
        Fetch a transaction by hash.

        Raises:
            MalformedTxError: If the result is not the requested transaction
        """
        params = {
            "module": "proxy",
            "action": "eth_getTransactionByHash",
            "txhash": tx_hash,
        }
        tx = await self.query(chain_id, params, use_key)
        return validate_tx(tx, tx_hash)

    async def query_tx_receipt(
        self,
        chain_id: int,
        tx_hash: str,
        use_key: bool = False,
    ) -> dict[str, Any]:
        """
        Fetch a transaction receipt by hash.

        Raises:
            MalformedReceiptError: If the result is not the requested receipt
        """
        params = {
            "module": "proxy",
            "action": "eth_getTransactionReceipt",
            "txhash": tx_hash,
        }
        receipt = await self.query(chain_id, params, use_key)
        return validate_tx_receipt(receipt, tx_hash)

    async def query_block(
        self,
        chain_id: int,
        block_number: int | str | None = None,
        use_key: bool = False,
    ) -> dict[str, Any]:
        """
        Fetch a block header (without transaction bodies).

        Args:
            chain_id: Chain whose explorer is queried
            block_number: Block number or tag, latest if not provided
            use_key: Attach the chain's API key

        Raises:
            MalformedBlockError: If the result has no positive block number
        """
        match block_number:
            case None | "":
                tag = "latest"
            case int():
                tag = hex(block_number)
            case _:
                tag = str(block_number)
        params = {
            "module": "proxy",
            "action": "eth_getBlockByNumber",
            "tag": tag,
            "boolean": "false",
        }
        block = await self.query(chain_id, params, use_key)
        return validate_block(block, tag)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()
