"""
In-process chain configuration store.

Supplies explorer API URLs and keys per chain to the explorer client, and
accepts extra chain metadata shared through a base64-encoded query parameter.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from .config import ChainExplorerConfig, Environment, TrackerConfig
from .errors import DecodeError

logger = logging.getLogger(__name__)

CHAIN_CONFIGS_KEY = "chains"
ENVIRONMENT_KEY = "env"


class ChainConfigProvider(Protocol):
    """Chain metadata lookups needed by the explorer client."""

    def try_get_explorer_api_url(self, chain_id: int) -> str | None:
        ...

    def get_explorer_api_key(self, chain_id: int) -> str | None:
        ...


@dataclass(frozen=True, slots=True)
class ChainMetadata:
    """Chain entry known to the store.

    Attributes:
        chain_id: Chain ID
        name: Chain name, unique within the store
        explorer_api_url: Explorer API endpoint if the chain has one
        explorer_api_key: API key for the explorer if configured
    """

    chain_id: int
    name: str
    explorer_api_url: str | None = None
    explorer_api_key: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "ChainMetadata":
        """
        Build chain metadata from an untrusted JSON object.

        The explorer API URL is taken from the first block explorer's apiUrl,
        falling back to its url with an /api suffix.

        Raises:
            DecodeError: If name or chainId is missing or has the wrong type
        """
        if not isinstance(raw, dict):
            raise DecodeError(f"Chain metadata must be an object, got {type(raw).__name__}")

        name = raw.get("name")
        if not isinstance(name, str) or not name:
            raise DecodeError("Chain metadata has no name")

        chain_id = raw.get("chainId")
        if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
            raise DecodeError(f"Chain {name} has an invalid chainId: {chain_id!r}")

        api_url: str | None = None
        api_key: str | None = None
        explorers = raw.get("blockExplorers") or []
        if not isinstance(explorers, list):
            raise DecodeError(f"Chain {name} blockExplorers must be a list")
        if explorers:
            explorer = explorers[0]
            if not isinstance(explorer, dict):
                raise DecodeError(f"Chain {name} has an invalid block explorer entry")
            api_url = explorer.get("apiUrl") or None
            if not api_url and explorer.get("url"):
                api_url = f"{str(explorer['url']).rstrip('/')}/api"
            api_key = explorer.get("apiKey") or None

        return cls(chain_id=chain_id, name=name, explorer_api_url=api_url, explorer_api_key=api_key)


def decode_chain_configs(value: str) -> list[ChainMetadata]:
    """
    Decode a base64 JSON list of chain metadata.

    Raises:
        DecodeError: If the value is not base64 JSON or an entry is invalid
    """
    try:
        padded = value + "=" * (-len(value) % 4)
        decoded = json.loads(base64.urlsafe_b64decode(padded.replace("+", "-").replace("/", "_")))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Unable to decode chain configs: {e}") from e

    if not isinstance(decoded, list):
        raise DecodeError("Chain configs must be a list")
    return [ChainMetadata.from_dict(item) for item in decoded]


class ChainConfigStore:
    """
    Chain metadata keyed by chain ID, plus the selected environment.
    """

    def __init__(
        self,
        chains: list[ChainMetadata] | None = None,
        environment: Environment = Environment.MAINNET,
    ) -> None:
        self._chains: dict[int, ChainMetadata] = {}
        self.environment = environment
        for chain in chains or []:
            self._chains[chain.chain_id] = chain

    @classmethod
    def from_config(cls, config: TrackerConfig) -> "ChainConfigStore":
        """Create a store from explorer settings loaded from the environment."""
        return cls(
            chains=[_from_explorer_config(c) for c in config.chains.values()],
            environment=config.environment,
        )

    def __contains__(self, chain_id: int) -> bool:
        return chain_id in self._chains

    def __len__(self) -> int:
        return len(self._chains)

    def get(self, chain_id: int) -> ChainMetadata | None:
        return self._chains.get(chain_id)

    def try_get_explorer_api_url(self, chain_id: int) -> str | None:
        chain = self._chains.get(chain_id)
        return chain.explorer_api_url if chain else None

    def get_explorer_api_key(self, chain_id: int) -> str | None:
        chain = self._chains.get(chain_id)
        return chain.explorer_api_key if chain else None

    def merge_from_query_param(self, value: str | None) -> list[ChainMetadata]:
        """
        Add chains shared through the `chains` query parameter.

        Chains already in the store are kept as they are. An undecodable or
        invalid value is logged and ignored.

        Args:
            value: Raw query parameter value

        Returns:
            Chains that were added
        """
        if not value:
            return []
        try:
            decoded = decode_chain_configs(value)
        except DecodeError as e:
            logger.error(f"Invalid chain configs in query string: {e}")
            return []

        known_names = {c.name for c in self._chains.values()}
        added = [
            c for c in decoded
            if c.chain_id not in self._chains and c.name not in known_names
        ]
        for chain in added:
            self._chains[chain.chain_id] = chain
            known_names.add(chain.name)
        if added:
            logger.info(f"Added {len(added)} chain configs from query string")
        return added

    def select_environment(self, value: str | None) -> bool:
        """
        Switch environment from the `env` query parameter.

        Returns:
            True if the environment changed
        """
        if not value or value == self.environment.value:
            return False
        try:
            environment = Environment(value)
        except ValueError:
            logger.warning(f"Ignoring unknown environment in query string: {value}")
            return False
        self.environment = environment
        logger.info(f"Environment set to {environment.value}")
        return True


def _from_explorer_config(config: ChainExplorerConfig) -> ChainMetadata:
    return ChainMetadata(
        chain_id=config.chain_id,
        name=str(config.chain_id),
        explorer_api_url=config.explorer_api_url,
        explorer_api_key=config.explorer_api_key,
    )
