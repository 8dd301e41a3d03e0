"""Configuration for Diamond inspection runs.

Addresses, endpoints and credentials are read from the environment (and a
``.env`` file when present) so that nothing in the library hardcodes a
deployment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_RPC_URL = "https://arb1.arbitrum.io/rpc"
DEFAULT_CHAIN_ID = 42161
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENCY = 4

TENDERLY_API_BASE = "https://api.tenderly.co/api/v1"

TENDERLY_NETWORK_SLUGS: Dict[int, str] = {
    1: "mainnet",
    137: "polygon",
    42161: "arbitrum",
    8453: "base",
}

BLOCKSCOUT_APIS: Dict[int, str] = {
    1: "https://eth.blockscout.com/api",
    137: "https://polygon.blockscout.com/api",
    42161: "https://arbitrum.blockscout.com/api",
    8453: "https://base.blockscout.com/api",
}


def tenderly_gateway_url(chain_id: int, node_access_key: str) -> str:
    slug = TENDERLY_NETWORK_SLUGS.get(chain_id, "mainnet")
    return f"https://{slug}.gateway.tenderly.co/{node_access_key}"


def blockscout_api(chain_id: int, overrides: Optional[Mapping[int, str]] = None) -> str:
    """Return the Blockscout API root for ``chain_id`` (Arbitrum when unknown)."""

    apis = dict(BLOCKSCOUT_APIS)
    if overrides:
        apis.update(overrides)
    return apis.get(chain_id) or apis[DEFAULT_CHAIN_ID]


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(str(raw).strip(), 0)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return float(str(raw).strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _parse_addresses(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class TenderlyCredentials:
    access_key: str
    username: str
    project: str


@dataclass(frozen=True)
class InspectorConfig:
    """Resolved settings for one inspection run."""

    rpc_url: str = DEFAULT_RPC_URL
    chain_id: int = DEFAULT_CHAIN_ID
    diamond_addresses: Tuple[str, ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    tenderly: Optional[TenderlyCredentials] = None
    blockscout_apis: Mapping[int, str] = field(default_factory=lambda: dict(BLOCKSCOUT_APIS))

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "InspectorConfig":
        """Build a configuration from ``env`` (``os.environ`` plus ``.env`` by default).

        Raises:
            ConfigError: If a numeric setting cannot be parsed or the
                concurrency limit is below one.
        """

        if env is None:
            load_dotenv()
            env = os.environ

        chain_id = _parse_int(env, "DIAMOND_CHAIN_ID", DEFAULT_CHAIN_ID)
        max_concurrency = _parse_int(env, "DIAMOND_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY)
        if max_concurrency < 1:
            raise ConfigError("DIAMOND_MAX_CONCURRENCY must be at least 1")

        rpc_url = env.get("DIAMOND_RPC_URL")
        node_key = env.get("TENDERLY_NODE_ACCESS_KEY")
        if not rpc_url:
            rpc_url = tenderly_gateway_url(chain_id, node_key) if node_key else DEFAULT_RPC_URL

        access_key = env.get("TENDERLY_ACCESS_KEY")
        username = env.get("TENDERLY_USERNAME")
        project = env.get("TENDERLY_PROJECT")
        tenderly = None
        if access_key and username and project:
            tenderly = TenderlyCredentials(access_key=access_key, username=username, project=project)

        return cls(
            rpc_url=rpc_url,
            chain_id=chain_id,
            diamond_addresses=_parse_addresses(env.get("DIAMOND_ADDRESSES")),
            timeout=_parse_float(env, "DIAMOND_RPC_TIMEOUT", DEFAULT_TIMEOUT),
            max_concurrency=max_concurrency,
            tenderly=tenderly,
        )


__all__ = [
    "BLOCKSCOUT_APIS",
    "DEFAULT_CHAIN_ID",
    "DEFAULT_RPC_URL",
    "InspectorConfig",
    "TENDERLY_API_BASE",
    "TenderlyCredentials",
    "blockscout_api",
    "tenderly_gateway_url",
]
