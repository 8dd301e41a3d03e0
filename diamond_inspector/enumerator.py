"""Rebuild a Diamond's facet routing table through the Loupe interface."""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, TypeVar

import requests

from .abi import (
    build_calldata,
    decode_address_array,
    decode_facets,
    decode_selector_array,
    normalise_address,
)
from .errors import DecodeError, DiamondInspectorError
from .explorer import Verifier
from .models import DiamondSnapshot, FacetSnapshot
from .rpc import CancelToken, EthCaller
from .selectors import FACETS_SELECTOR, FACET_ADDRESSES_SELECTOR, FACET_FUNCTION_SELECTORS_SELECTOR

_LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4
# Upper bound on how long a waiting snapshot goes without looking at its token.
POLL_INTERVAL = 0.05

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DiamondEnumerator:
    """Produces :class:`DiamondSnapshot` objects from read-only RPC calls.

    Every RPC call of a snapshot runs on a thread pool of at most
    ``max_concurrency`` workers while the calling thread watches the cancel
    token, so a deadline fires even when a call is still in flight. The
    abandoned call finishes in the background and its result is dropped.
    The enumerator never retries: RPC and transport errors propagate
    unchanged and no partial snapshot is returned. Verification status is
    advisory, so explorer and network failures of the verifier are logged and
    recorded as ``verified=False``; any other exception propagates.
    """

    rpc: EthCaller
    verifier: Optional[Verifier] = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    use_facets_call: bool = False
    clock: Callable[[], datetime] = field(default=_utcnow, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    def _call(self, to: str, data: str, token: CancelToken) -> str:
        token.raise_if_cancelled()
        result = self.rpc.call(to, data)
        token.raise_if_cancelled()
        return result

    def _verify(self, address: str, chain_id: int) -> bool:
        if self.verifier is None:
            return False
        try:
            return bool(self.verifier.is_verified(address, chain_id))
        except (DiamondInspectorError, requests.RequestException, OSError) as exc:
            _LOGGER.warning("Verification lookup failed for %s on chain %s: %s", address, chain_id, exc)
            return False

    def diamond_verified(self, diamond_address: str, chain_id: int) -> bool:
        """Return the advisory verification status of the Diamond itself."""

        return self._verify(normalise_address(diamond_address), chain_id)

    def facet_addresses(self, diamond_address: str, cancel: Optional[CancelToken] = None) -> List[str]:
        token = cancel or CancelToken()
        data = self._call(diamond_address, FACET_ADDRESSES_SELECTOR, token)
        return decode_address_array(data)

    def facet_selectors(self, diamond_address: str, facet_address: str, cancel: Optional[CancelToken] = None) -> List[str]:
        token = cancel or CancelToken()
        calldata = build_calldata(FACET_FUNCTION_SELECTORS_SELECTOR, facet_address)
        return decode_selector_array(self._call(diamond_address, calldata, token))

    def _inspect_facet(
        self,
        diamond_address: str,
        facet_address: str,
        chain_id: int,
        token: CancelToken,
        selectors: Optional[Sequence[str]] = None,
    ) -> FacetSnapshot:
        if selectors is None:
            selectors = self.facet_selectors(diamond_address, facet_address, token)
        token.raise_if_cancelled()
        verified = self._verify(facet_address, chain_id)
        _LOGGER.debug("Facet %s: %d selector(s), verified=%s", facet_address, len(selectors), verified)
        return FacetSnapshot(facet_address=facet_address, selectors=tuple(selectors), verified=verified)

    @staticmethod
    def _await(future: "Future[T]", token: CancelToken) -> T:
        while not future.done():
            token.raise_if_cancelled()
            remaining = token.remaining()
            wait([future], timeout=POLL_INTERVAL if remaining is None else min(POLL_INTERVAL, remaining))
        return future.result()

    def _gather(self, pool: ThreadPoolExecutor, tasks: Sequence[Callable[[], T]], token: CancelToken) -> List[T]:
        futures: List[Future] = [pool.submit(task) for task in tasks]
        try:
            return [self._await(future, token) for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    def snapshot(self, diamond_address: str, chain_id: int, cancel: Optional[CancelToken] = None) -> DiamondSnapshot:
        """Enumerate every facet of ``diamond_address`` on ``chain_id``.

        Raises:
            DecodeError: If a Loupe call returns malformed data or repeats a facet.
            RpcError: If the endpoint answers a call with an error object.
            TransportError: On network failure, or with ``cancelled=True`` when
                ``cancel`` fires before the snapshot is complete.
        """

        started = self.clock()
        token = cancel or CancelToken()
        diamond = normalise_address(diamond_address)
        token.raise_if_cancelled()
        _LOGGER.info("Enumerating facets of %s on chain %s", diamond, chain_id)

        pool = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="diamond-loupe")
        try:
            if self.use_facets_call:
                raw = self._await(pool.submit(self._call, diamond, FACETS_SELECTOR, token), token)
                pairs = decode_facets(raw)
                addresses = [address for address, _ in pairs]
                selector_lists: List[Optional[List[str]]] = [selectors for _, selectors in pairs]
            else:
                addresses = self._await(pool.submit(self.facet_addresses, diamond, token), token)
                selector_lists = [None] * len(addresses)

            seen: set[str] = set()
            for address in addresses:
                if address in seen:
                    raise DecodeError(f"Loupe of {diamond} lists facet {address} more than once")
                seen.add(address)

            tasks = [
                (lambda address=address, selectors=selectors: self._inspect_facet(diamond, address, chain_id, token, selectors))
                for address, selectors in zip(addresses, selector_lists)
            ]
            facets = self._gather(pool, tasks, token)
        finally:
            # Calls still in flight after a cancellation are not waited for.
            pool.shutdown(wait=False, cancel_futures=True)
        token.raise_if_cancelled()

        _LOGGER.info("Found %d facet(s) on %s", len(facets), diamond)
        return DiamondSnapshot(diamond_address=diamond, chain_id=chain_id, facets=tuple(facets), timestamp=started)


def enumerate_diamond(
    diamond_address: str,
    chain_id: int,
    rpc: EthCaller,
    *,
    verifier: Optional[Verifier] = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    cancel: Optional[CancelToken] = None,
    use_facets_call: bool = False,
) -> DiamondSnapshot:
    """Convenience wrapper around :meth:`DiamondEnumerator.snapshot`."""

    enumerator = DiamondEnumerator(
        rpc=rpc,
        verifier=verifier,
        max_concurrency=max_concurrency,
        use_facets_call=use_facets_call,
    )
    return enumerator.snapshot(diamond_address, chain_id, cancel=cancel)


__all__ = ["DEFAULT_MAX_CONCURRENCY", "DiamondEnumerator", "enumerate_diamond"]
