"""Read-only JSON-RPC access used by the Diamond enumerator.

Two interchangeable implementations of the :class:`EthCaller` protocol are
provided: :class:`JsonRpcClient`, which posts raw JSON-RPC payloads through a
``requests`` session, and :class:`Web3Caller`, which delegates to an existing
:class:`web3.Web3` instance. Both surface endpoint failures as
:class:`~diamond_inspector.errors.RpcError` and network problems as
:class:`~diamond_inspector.errors.TransportError`; neither retries.

Besides ``eth_call`` both expose ``eth_getCode`` through :class:`CodeReader`.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import RpcError, TransportError

_LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class EthCaller(Protocol):
    """Anything able to perform ``eth_call`` against the ``latest`` block."""

    def call(self, to: str, data: str) -> str:
        ...


class CodeReader(Protocol):
    """Anything able to fetch deployed bytecode with ``eth_getCode``."""

    def get_code(self, address: str) -> str:
        ...


@dataclass
class CancelToken:
    """Cooperative cancellation flag with an optional monotonic deadline."""

    deadline: Optional[float] = None
    _event: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or ``None`` without one."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TransportError("Enumeration cancelled", cancelled=True)
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TransportError("Enumeration deadline exceeded", cancelled=True)


def _selector_of(data: str) -> Optional[str]:
    return data[:10].lower() if data and len(data) >= 10 else None


@dataclass
class JsonRpcClient:
    """Minimal JSON-RPC helper built on ``requests`` sessions.

    The enumerator calls one client from several worker threads. Without an
    injected ``session`` every thread lazily opens its own
    :class:`requests.Session`; an injected session is shared as-is, so it
    must tolerate concurrent use.
    """

    url: str
    session: Optional[requests.Session] = None
    timeout: Optional[float] = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self._headers = {"Content-Type": "application/json"}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._local = threading.local()

    def _next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def _session(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    def request(
        self,
        method: str,
        params: Iterable[Any],
        *,
        target: Optional[str] = None,
        selector: Optional[str] = None,
    ) -> Any:
        """Issue a single JSON-RPC request and return its ``result`` member."""

        payload = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": list(params)}
        _LOGGER.debug("POST %s %s target=%s selector=%s", self.url, method, target, selector)
        try:
            response = self._session().post(self.url, json=payload, headers=self._headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Failed to reach {self.url} for {method}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(
                f"Non-JSON reply from {self.url} for {method} (HTTP {response.status_code})"
            ) from exc

        if isinstance(body, Mapping) and isinstance(body.get("error"), Mapping):
            error = body["error"]
            raise RpcError(
                str(error.get("message") or "unknown error"),
                method=method,
                target=target,
                selector=selector,
                code=error.get("code") if isinstance(error.get("code"), int) else None,
            )

        if response.status_code >= 400:
            raise TransportError(f"HTTP {response.status_code} from {self.url} for {method}")

        if not isinstance(body, Mapping) or "result" not in body:
            raise RpcError(
                f"Response carries neither result nor error: {body!r}",
                method=method,
                target=target,
                selector=selector,
            )
        return body["result"]

    def call(self, to: str, data: str) -> str:
        selector = _selector_of(data)
        result = self.request("eth_call", [{"to": to, "data": data}, "latest"], target=to, selector=selector)
        if not isinstance(result, str):
            raise RpcError(f"eth_call returned {type(result).__name__}, expected hex string", target=to, selector=selector)
        return result

    def get_code(self, address: str) -> str:
        result = self.request("eth_getCode", [address, "latest"], target=address)
        if not isinstance(result, str):
            raise RpcError(
                f"eth_getCode returned {type(result).__name__}, expected hex string",
                method="eth_getCode",
                target=address,
            )
        return result


@dataclass
class Web3Caller:
    """Adapter exposing a :class:`web3.Web3` instance as an :class:`EthCaller`."""

    web3: Web3

    @classmethod
    def from_url(cls, url: str, timeout: float = DEFAULT_TIMEOUT) -> "Web3Caller":
        # web3's HTTPProvider retries eth_call with backoff unless told otherwise.
        provider = Web3.HTTPProvider(
            url,
            request_kwargs={"timeout": timeout},
            exception_retry_configuration=None,
        )
        return cls(Web3(provider))

    def call(self, to: str, data: str) -> str:
        selector = _selector_of(data)
        transaction = {"to": Web3.to_checksum_address(to), "data": data}
        try:
            result = self.web3.eth.call(transaction, "latest")
        except requests.RequestException as exc:
            raise TransportError(f"Failed to reach RPC endpoint for eth_call to {to}: {exc}") from exc
        except (Web3Exception, ValueError) as exc:
            raise RpcError(str(exc), target=to, selector=selector) from exc
        return "0x" + bytes(result).hex()

    def get_code(self, address: str) -> str:
        try:
            code = self.web3.eth.get_code(Web3.to_checksum_address(address), "latest")
        except requests.RequestException as exc:
            raise TransportError(f"Failed to reach RPC endpoint for eth_getCode of {address}: {exc}") from exc
        except (Web3Exception, ValueError) as exc:
            raise RpcError(str(exc), method="eth_getCode", target=address) from exc
        return "0x" + bytes(code).hex()


__all__ = ["CancelToken", "CodeReader", "EthCaller", "JsonRpcClient", "Web3Caller"]
