"""Tests for snapshot value objects and their JSON form."""
from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from conftest import DIAMOND, FACET_A, FACET_B
from diamond_inspector.models import DiamondSnapshot, FacetSnapshot, SnapshotDiff

TIMESTAMP = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _snapshot() -> DiamondSnapshot:
    return DiamondSnapshot(
        diamond_address=DIAMOND,
        chain_id=42161,
        facets=(
            FacetSnapshot(FACET_A, ("0x52ef6b2c", "0xadfca15e"), verified=True),
            FacetSnapshot(FACET_B, ()),
        ),
        timestamp=TIMESTAMP,
    )


def test_snapshot_serialisation_survives_json():
    snapshot = _snapshot()
    restored = DiamondSnapshot.from_dict(json.loads(json.dumps(snapshot.as_dict())))
    assert restored == snapshot


def test_as_dict_layout():
    payload = _snapshot().as_dict()
    assert payload["diamondAddress"] == DIAMOND
    assert payload["chainId"] == 42161
    assert payload["timestamp"] == "2026-01-02T03:04:05+00:00"
    assert payload["facets"][0] == {
        "address": FACET_A,
        "selectors": ["0x52ef6b2c", "0xadfca15e"],
        "verified": True,
    }


def test_from_dict_accepts_zulu_timestamps():
    snapshot = DiamondSnapshot.from_dict(
        {"diamondAddress": DIAMOND, "chainId": "42161", "timestamp": "2026-01-02T03:04:05.000Z", "facets": []}
    )
    assert snapshot.timestamp == TIMESTAMP
    assert snapshot.chain_id == 42161


def test_from_dict_requires_core_fields():
    with pytest.raises(ValueError):
        DiamondSnapshot.from_dict({"facets": []})


def test_duplicate_facets_rejected():
    with pytest.raises(ValueError):
        DiamondSnapshot(DIAMOND, 1, (FacetSnapshot(FACET_A), FacetSnapshot(FACET_A.upper().replace("0X", "0x"))))


def test_snapshot_helpers():
    snapshot = _snapshot()
    assert snapshot.facet_addresses == [FACET_A, FACET_B]
    assert snapshot.total_selectors == 2
    assert len(snapshot) == 2
    assert snapshot.is_comparable_to(DiamondSnapshot(DIAMOND.upper().replace("0X", "0x"), 42161))
    assert not snapshot.is_comparable_to(DiamondSnapshot(DIAMOND, 1))


def test_snapshots_are_immutable():
    snapshot = _snapshot()
    with pytest.raises(AttributeError):
        snapshot.chain_id = 1  # type: ignore[misc]


def test_snapshot_diff_flags_changes():
    assert not SnapshotDiff().has_changes
    changes = SnapshotDiff(added_facets=(FACET_A,))
    assert changes.has_changes
    assert changes.as_dict() == {"addedFacets": [FACET_A], "removedFacets": []}
