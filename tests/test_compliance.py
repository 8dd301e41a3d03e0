from __future__ import annotations

import pytest

from conftest import DIAMOND, FACET_A, FACET_B
from diamond_inspector.compliance import check_compliance, diff, is_compliant, selector_collisions
from diamond_inspector.errors import IncomparableSnapshots
from diamond_inspector.models import DiamondSnapshot, FacetSnapshot

FACET_C = "0xcccccccccccccccccccccccccccccccccccc3333"


def _snapshot(*facets: FacetSnapshot, address: str = DIAMOND, chain_id: int = 42161) -> DiamondSnapshot:
    return DiamondSnapshot(diamond_address=address, chain_id=chain_id, facets=tuple(facets))


def test_empty_snapshot_is_not_compliant():
    assert is_compliant(_snapshot()) is False


def test_snapshot_without_selectors_is_not_compliant():
    assert is_compliant(_snapshot(FacetSnapshot(FACET_A), FacetSnapshot(FACET_B))) is False


def test_one_routed_selector_is_enough():
    assert is_compliant(_snapshot(FacetSnapshot(FACET_A), FacetSnapshot(FACET_B, ("0x12345678",)))) is True


def test_diff_reports_added_facet():
    old = _snapshot(FacetSnapshot(FACET_A, ("0x11111111",)))
    new = _snapshot(FacetSnapshot(FACET_A, ("0x11111111",)), FacetSnapshot(FACET_B, ("0x22222222",)))
    changes = diff(old, new)
    assert changes.added_facets == (FACET_B,)
    assert changes.removed_facets == ()


def test_diff_reports_removed_facet_and_keeps_order():
    old = _snapshot(FacetSnapshot(FACET_C), FacetSnapshot(FACET_A), FacetSnapshot(FACET_B))
    new = _snapshot(FacetSnapshot(FACET_A))
    assert diff(old, new).removed_facets == (FACET_C, FACET_B)


def test_diff_ignores_selector_changes_within_a_facet():
    old = _snapshot(FacetSnapshot(FACET_A, ("0x11111111",)))
    new = _snapshot(FacetSnapshot(FACET_A, ("0x22222222", "0x33333333")))
    assert not diff(old, new).has_changes


def test_diff_compares_addresses_case_insensitively():
    old = _snapshot(FacetSnapshot(FACET_A.replace("a", "A")))
    new = _snapshot(FacetSnapshot(FACET_A), address=DIAMOND.replace("f", "F"))
    assert not diff(old, new).has_changes


def test_diff_rejects_different_diamonds():
    with pytest.raises(IncomparableSnapshots):
        diff(_snapshot(), _snapshot(address=FACET_C))


def test_diff_rejects_different_chains():
    with pytest.raises(IncomparableSnapshots):
        diff(_snapshot(chain_id=1), _snapshot(chain_id=42161))


def test_selector_collisions_lists_every_owner():
    snapshot = _snapshot(
        FacetSnapshot(FACET_A, ("0x11111111", "0x22222222")),
        FacetSnapshot(FACET_B, ("0x22222222",)),
        FacetSnapshot(FACET_C, ("0x33333333",)),
    )
    assert selector_collisions(snapshot) == {"0x22222222": (FACET_A, FACET_B)}


def test_check_compliance_summarises_snapshot():
    snapshot = _snapshot(
        FacetSnapshot(FACET_A, ("0x52ef6b2c", "0xadfca15e"), verified=True),
        FacetSnapshot(FACET_B, ("0xadfca15e",)),
    )
    report = check_compliance(snapshot)
    assert report.compliant is True
    assert report.facet_count == 2
    assert report.total_selectors == 3
    assert report.unique_selectors == 2
    assert report.unverified_facets == (FACET_B,)
    assert report.collisions == {"0xadfca15e": (FACET_A, FACET_B)}
    assert report.known_functions["0x52ef6b2c"] == "facetAddresses()"
    assert report.as_dict()["unverifiedFacets"] == [FACET_B]
