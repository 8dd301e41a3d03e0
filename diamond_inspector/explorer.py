"""Block explorer integrations: contract verification status and activity."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from .activity import Transaction
from .config import TENDERLY_API_BASE, TenderlyCredentials, blockscout_api
from .errors import ExplorerError

_LOGGER = logging.getLogger(__name__)

USER_AGENT = "diamond-inspector/1.0"


class Verifier(Protocol):
    """Answers whether a contract's source is verified on some explorer."""

    def is_verified(self, address: str, chain_id: int) -> bool:
        ...


def _get(session: requests.Session, url: str, *, headers: Mapping[str, str], params: Optional[Mapping[str, Any]] = None, timeout: Optional[float]) -> requests.Response:
    try:
        return session.get(url, headers=dict(headers), params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise ExplorerError(f"Error contacting {url}: {exc}") from exc


def _json(response: requests.Response, url: str) -> Any:
    try:
        response.raise_for_status()
    except requests.HTTPError as exc:
        raise ExplorerError(f"Explorer API error for {url}: {exc}") from exc
    try:
        return response.json()
    except ValueError as exc:
        raise ExplorerError(f"Explorer returned non-JSON payload for {url}") from exc


@dataclass
class TenderlyVerifier:
    """Treats a contract as verified when Tenderly's project API knows it."""

    credentials: TenderlyCredentials
    session: Optional[requests.Session] = None
    timeout: Optional[float] = 10.0

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
        self._headers = {"X-Access-Key": self.credentials.access_key, "User-Agent": USER_AGENT}

    def is_verified(self, address: str, chain_id: int) -> bool:
        creds = self.credentials
        url = f"{TENDERLY_API_BASE}/account/{creds.username}/project/{creds.project}/contracts/{chain_id}/{address}"
        response = _get(self.session, url, headers=self._headers, timeout=self.timeout)
        return 200 <= response.status_code < 300


@dataclass
class BlockscoutVerifier:
    """Reads ``is_verified`` from Blockscout's v2 smart-contract endpoint."""

    base_urls: Mapping[int, str] = field(default_factory=dict)
    session: Optional[requests.Session] = None
    timeout: Optional[float] = 10.0

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
        self._headers = {"Accept": "application/json", "User-Agent": USER_AGENT}

    def is_verified(self, address: str, chain_id: int) -> bool:
        url = f"{blockscout_api(chain_id, self.base_urls)}/v2/smart-contracts/{address}"
        response = _get(self.session, url, headers=self._headers, timeout=self.timeout)
        if response.status_code == 404:
            return False
        payload = _json(response, url)
        if not isinstance(payload, Mapping):
            raise ExplorerError(f"Unexpected payload for {address}: {payload!r}")
        return bool(payload.get("is_verified"))


@dataclass
class BlockscoutClient:
    """Lists transactions sent to a contract via the Blockscout v2 API."""

    base_urls: Mapping[int, str] = field(default_factory=dict)
    session: Optional[requests.Session] = None
    timeout: Optional[float] = 10.0

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
        self._headers = {"Accept": "application/json", "User-Agent": USER_AGENT}

    def fetch_transactions(self, address: str, chain_id: int, limit: int = 20) -> List[Transaction]:
        """Return up to ``limit`` recent transactions addressed to ``address``.

        Raises:
            ExplorerError: On network failures, HTTP errors or malformed payloads.
        """

        url = f"{blockscout_api(chain_id, self.base_urls)}/v2/addresses/{address}/transactions"
        params: Dict[str, Any] = {"filter": "to", "limit": limit}
        response = _get(self.session, url, headers=self._headers, params=params, timeout=self.timeout)
        payload = _json(response, url)
        if not isinstance(payload, Mapping):
            raise ExplorerError(f"Unexpected payload for {address}: {payload!r}")
        items = payload.get("items") or []
        if not isinstance(items, list):
            raise ExplorerError(f"Unexpected items for {address}: {items!r}")
        transactions = [Transaction.from_blockscout(item) for item in items if isinstance(item, Mapping)]
        _LOGGER.debug("Fetched %d transaction(s) for %s on chain %s", len(transactions), address, chain_id)
        return transactions[:limit]


__all__ = ["BlockscoutClient", "BlockscoutVerifier", "TenderlyVerifier", "Verifier"]
