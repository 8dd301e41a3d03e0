"""Tests for the Tenderly and Blockscout integrations."""
from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from conftest import DIAMOND, FACET_A
from diamond_inspector.config import TenderlyCredentials
from diamond_inspector.errors import ExplorerError
from diamond_inspector.explorer import BlockscoutClient, BlockscoutVerifier, TenderlyVerifier


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        return self._payload


class FakeSession:
    def __init__(self, responses: Dict[str, Any]) -> None:
        self._responses = responses
        self.requests: List[Dict[str, Any]] = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "params": params})
        response = self._responses.get(url)
        if response is None:
            raise AssertionError(f"Unexpected URL: {url}")
        if isinstance(response, Exception):
            raise response
        return response


CREDS = TenderlyCredentials(access_key="secret", username="alice", project="diamonds")
TENDERLY_URL = f"https://api.tenderly.co/api/v1/account/alice/project/diamonds/contracts/42161/{FACET_A}"


def test_tenderly_verified_when_contract_known():
    session = FakeSession({TENDERLY_URL: FakeResponse({}, status_code=200)})
    verifier = TenderlyVerifier(CREDS, session=session)
    assert verifier.is_verified(FACET_A, 42161) is True
    assert session.requests[0]["headers"]["X-Access-Key"] == "secret"


def test_tenderly_unverified_on_not_found():
    session = FakeSession({TENDERLY_URL: FakeResponse({}, status_code=404)})
    assert TenderlyVerifier(CREDS, session=session).is_verified(FACET_A, 42161) is False


def test_tenderly_network_failure_raises_explorer_error():
    session = FakeSession({TENDERLY_URL: requests.ConnectionError("offline")})
    with pytest.raises(ExplorerError):
        TenderlyVerifier(CREDS, session=session).is_verified(FACET_A, 42161)


def test_blockscout_verifier_reads_flag():
    url = f"https://arbitrum.blockscout.com/api/v2/smart-contracts/{FACET_A}"
    session = FakeSession({url: FakeResponse({"is_verified": True, "name": "DiamondLoupeFacet"})})
    assert BlockscoutVerifier(session=session).is_verified(FACET_A, 42161) is True


def test_blockscout_verifier_treats_missing_contract_as_unverified():
    url = f"https://eth.blockscout.com/api/v2/smart-contracts/{FACET_A}"
    session = FakeSession({url: FakeResponse(None, status_code=404)})
    assert BlockscoutVerifier(session=session).is_verified(FACET_A, 1) is False


def test_blockscout_verifier_unknown_chain_falls_back_to_arbitrum():
    url = f"https://arbitrum.blockscout.com/api/v2/smart-contracts/{FACET_A}"
    session = FakeSession({url: FakeResponse({"is_verified": False})})
    assert BlockscoutVerifier(session=session).is_verified(FACET_A, 999) is False


def test_blockscout_verifier_server_error_raises():
    url = f"https://arbitrum.blockscout.com/api/v2/smart-contracts/{FACET_A}"
    session = FakeSession({url: FakeResponse({}, status_code=500)})
    with pytest.raises(ExplorerError):
        BlockscoutVerifier(session=session).is_verified(FACET_A, 42161)


def test_fetch_transactions_parses_items():
    url = f"https://base.blockscout.com/api/v2/addresses/{DIAMOND}/transactions"
    payload = {
        "items": [
            {
                "hash": "0xabc",
                "from": {"hash": "0x01"},
                "to": {"hash": DIAMOND},
                "value": "5",
                "timestamp": "2026-10-19T00:00:00Z",
                "method": "diamondCut",
                "status": "ok",
            },
            {"hash": "0xdef"},
            "garbage",
        ]
    }
    session = FakeSession({url: FakeResponse(payload)})
    client = BlockscoutClient(session=session)

    transactions = client.fetch_transactions(DIAMOND, 8453, limit=10)

    assert [tx.hash for tx in transactions] == ["0xabc", "0xdef"]
    first = transactions[0]
    assert first.sender == "0x01"
    assert first.recipient == DIAMOND
    assert first.value_wei == 5
    assert first.method == "diamondCut"
    second = transactions[1]
    assert second.value_wei == 0
    assert second.status == "unknown"
    assert second.method is None
    assert session.requests[0]["params"] == {"filter": "to", "limit": 10}


def test_fetch_transactions_honours_base_url_overrides():
    url = f"https://explorer.example/api/v2/addresses/{DIAMOND}/transactions"
    session = FakeSession({url: FakeResponse({"items": []})})
    client = BlockscoutClient(base_urls={42161: "https://explorer.example/api"}, session=session)
    assert client.fetch_transactions(DIAMOND, 42161) == []


def test_fetch_transactions_rejects_unexpected_payload():
    url = f"https://arbitrum.blockscout.com/api/v2/addresses/{DIAMOND}/transactions"
    session = FakeSession({url: FakeResponse(["not", "a", "mapping"])})
    with pytest.raises(ExplorerError):
        BlockscoutClient(session=session).fetch_transactions(DIAMOND, 42161)
