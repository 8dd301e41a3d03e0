"""Shared fixtures: a scripted RPC endpoint and ABI payload builders."""
from __future__ import annotations

import threading
from typing import Callable, Dict, List, Sequence, Tuple

import pytest
from eth_abi import encode

from diamond_inspector.abi import build_calldata
from diamond_inspector.selectors import FACET_ADDRESSES_SELECTOR, FACET_FUNCTION_SELECTORS_SELECTOR

DIAMOND = "0xf7993a8df974ad022647e63402d6315137c58abf"
FACET_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1111"
FACET_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb2222"


def encode_addresses(addresses: Sequence[str]) -> str:
    return "0x" + encode(["address[]"], [list(addresses)]).hex()


def encode_selectors(selectors: Sequence[str]) -> str:
    return "0x" + encode(["bytes4[]"], [[bytes.fromhex(s[2:]) for s in selectors]]).hex()


def encode_facets(entries: Sequence[Tuple[str, Sequence[str]]]) -> str:
    values = [(address, [bytes.fromhex(s[2:]) for s in selectors]) for address, selectors in entries]
    return "0x" + encode(["(address,bytes4[])[]"], [values]).hex()


class FakeRpc:
    """Replays canned ``eth_call`` results keyed by calldata, plus one bytecode blob."""

    def __init__(self, responses: Dict[str, object], code: str = "0x") -> None:
        self._responses = {key.lower(): value for key, value in responses.items()}
        self._code = code
        self.calls: List[Tuple[str, str]] = []
        self.code_requests: List[str] = []
        self._lock = threading.Lock()

    def get_code(self, address: str) -> str:
        with self._lock:
            self.code_requests.append(address)
        return self._code

    def call(self, to: str, data: str) -> str:
        with self._lock:
            self.calls.append((to, data))
        response = self._responses.get(data.lower())
        if response is None:
            raise AssertionError(f"Unexpected eth_call data: {data}")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response


@pytest.fixture()
def loupe_responses() -> Callable[[Dict[str, Sequence[str]]], Dict[str, object]]:
    """Build facetAddresses()/facetFunctionSelectors() responses for a routing table."""

    def _build(table: Dict[str, Sequence[str]]) -> Dict[str, object]:
        responses: Dict[str, object] = {FACET_ADDRESSES_SELECTOR: encode_addresses(list(table))}
        for facet, selectors in table.items():
            responses[build_calldata(FACET_FUNCTION_SELECTORS_SELECTOR, facet)] = encode_selectors(selectors)
        return responses

    return _build
