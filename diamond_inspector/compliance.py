"""Stateless checks over Diamond snapshots.

``is_compliant`` is intentionally loose: it only asks whether the contract
looks like a Diamond at all (at least one facet routing at least one
selector). It does not query ``supportsInterface`` or validate the Loupe
against EIP-2535, and ``diff`` only compares facet addresses, so selector
changes behind an unchanged facet address go unreported.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .errors import IncomparableSnapshots
from .models import DiamondSnapshot, SnapshotDiff
from .selectors import describe_selector


def is_compliant(snapshot: DiamondSnapshot) -> bool:
    """Return ``True`` when the snapshot has facets and at least one has selectors."""

    return bool(snapshot.facets) and any(facet.selectors for facet in snapshot.facets)


def diff(old: DiamondSnapshot, new: DiamondSnapshot) -> SnapshotDiff:
    """Report facet addresses added or removed between two snapshots.

    Raises:
        IncomparableSnapshots: If the snapshots describe different diamonds
            or chains.
    """

    if not old.is_comparable_to(new):
        raise IncomparableSnapshots(
            f"Cannot diff {old.diamond_address}@{old.chain_id} against {new.diamond_address}@{new.chain_id}"
        )

    old_addresses = {address.lower() for address in old.facet_addresses}
    new_addresses = {address.lower() for address in new.facet_addresses}
    added = tuple(address for address in new.facet_addresses if address.lower() not in old_addresses)
    removed = tuple(address for address in old.facet_addresses if address.lower() not in new_addresses)
    return SnapshotDiff(added_facets=added, removed_facets=removed)


def selector_collisions(snapshot: DiamondSnapshot) -> Dict[str, Tuple[str, ...]]:
    """Map each selector claimed by more than one facet to those facets."""

    owners: Dict[str, List[str]] = {}
    for facet in snapshot.facets:
        for selector in facet.selector_set:
            owners.setdefault(selector, []).append(facet.facet_address)
    return {selector: tuple(facets) for selector, facets in sorted(owners.items()) if len(facets) > 1}


@dataclass(frozen=True)
class ComplianceReport:
    """Summary of one snapshot for monitoring output."""

    diamond_address: str
    chain_id: int
    compliant: bool
    facet_count: int
    total_selectors: int
    unique_selectors: int
    unverified_facets: Tuple[str, ...] = ()
    collisions: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    known_functions: Mapping[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "diamondAddress": self.diamond_address,
            "chainId": self.chain_id,
            "compliant": self.compliant,
            "facetCount": self.facet_count,
            "totalSelectors": self.total_selectors,
            "uniqueSelectors": self.unique_selectors,
            "unverifiedFacets": list(self.unverified_facets),
            "collisions": {selector: list(facets) for selector, facets in self.collisions.items()},
            "knownFunctions": dict(self.known_functions),
        }


def check_compliance(snapshot: DiamondSnapshot) -> ComplianceReport:
    unique = sorted({selector for facet in snapshot.facets for selector in facet.selectors})
    known: Dict[str, str] = {}
    for selector in unique:
        name = describe_selector(selector)
        if name:
            known[selector] = name
    return ComplianceReport(
        diamond_address=snapshot.diamond_address,
        chain_id=snapshot.chain_id,
        compliant=is_compliant(snapshot),
        facet_count=len(snapshot.facets),
        total_selectors=snapshot.total_selectors,
        unique_selectors=len(unique),
        unverified_facets=tuple(facet.facet_address for facet in snapshot.facets if not facet.verified),
        collisions=selector_collisions(snapshot),
        known_functions=known,
    )


__all__ = ["ComplianceReport", "check_compliance", "diff", "is_compliant", "selector_collisions"]
