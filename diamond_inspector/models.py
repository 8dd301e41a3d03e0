"""Immutable snapshots of a Diamond's routing table."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Tuple


@dataclass(frozen=True)
class FacetSnapshot:
    """One facet address together with the selectors routed to it."""

    facet_address: str
    selectors: Tuple[str, ...] = ()
    verified: bool = False

    @property
    def selector_set(self) -> frozenset[str]:
        return frozenset(self.selectors)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "address": self.facet_address,
            "selectors": list(self.selectors),
            "verified": self.verified,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FacetSnapshot":
        return cls(
            facet_address=str(payload["address"]).lower(),
            selectors=tuple(str(selector).lower() for selector in payload.get("selectors") or ()),
            verified=bool(payload.get("verified", False)),
        )


@dataclass(frozen=True)
class DiamondSnapshot:
    """Facet routing table of one Diamond, as observed at ``timestamp``.

    Facet addresses are unique within a snapshot; constructing one with a
    repeated facet raises :class:`ValueError`.
    """

    diamond_address: str
    chain_id: int
    facets: Tuple[FacetSnapshot, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for facet in self.facets:
            key = facet.facet_address.lower()
            if key in seen:
                raise ValueError(f"Facet {facet.facet_address} appears twice in snapshot of {self.diamond_address}")
            seen.add(key)

    def __iter__(self) -> Iterator[FacetSnapshot]:
        return iter(self.facets)

    def __len__(self) -> int:
        return len(self.facets)

    @property
    def facet_addresses(self) -> List[str]:
        return [facet.facet_address for facet in self.facets]

    @property
    def total_selectors(self) -> int:
        return sum(len(facet.selectors) for facet in self.facets)

    def is_comparable_to(self, other: "DiamondSnapshot") -> bool:
        """Return ``True`` when both snapshots describe the same contract and chain."""

        return (
            self.chain_id == other.chain_id
            and self.diamond_address.lower() == other.diamond_address.lower()
        )

    def as_dict(self) -> Dict[str, Any]:
        """Serialise the snapshot to a JSON-friendly dictionary."""

        return {
            "diamondAddress": self.diamond_address,
            "chainId": self.chain_id,
            "timestamp": self.timestamp.isoformat(),
            "facets": [facet.as_dict() for facet in self.facets],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DiamondSnapshot":
        """Rebuild a snapshot written by :meth:`as_dict`.

        Raises:
            ValueError: If required keys are missing or malformed.
        """

        try:
            diamond_address = str(payload["diamondAddress"])
            chain_id = int(payload["chainId"])
            raw_timestamp = payload["timestamp"]
            facets = tuple(FacetSnapshot.from_dict(entry) for entry in payload.get("facets") or ())
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Snapshot payload is missing required fields: {exc}") from exc

        timestamp = datetime.fromisoformat(str(raw_timestamp).replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return cls(diamond_address=diamond_address, chain_id=chain_id, facets=facets, timestamp=timestamp)


@dataclass(frozen=True)
class SnapshotDiff:
    """Facet addresses that appeared or disappeared between two snapshots."""

    added_facets: Tuple[str, ...] = ()
    removed_facets: Tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.added_facets or self.removed_facets)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "addedFacets": list(self.added_facets),
            "removedFacets": list(self.removed_facets),
        }


__all__ = ["DiamondSnapshot", "FacetSnapshot", "SnapshotDiff"]
