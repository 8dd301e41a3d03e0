"""Classify recent Diamond transactions into monitoring alerts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

from .selectors import DIAMOND_CUT_SELECTOR

LARGE_TRANSFER_WEI = 10**18
FAILED_STATUSES = ("error", "failed")


@dataclass(frozen=True)
class Transaction:
    """A transaction sent to a monitored contract, as listed by Blockscout."""

    hash: str
    sender: str
    recipient: str
    value_wei: int
    timestamp: str
    method: Optional[str]
    status: str

    @classmethod
    def from_blockscout(cls, item: Mapping[str, Any]) -> "Transaction":
        sender = item.get("from") if isinstance(item.get("from"), Mapping) else {}
        recipient = item.get("to") if isinstance(item.get("to"), Mapping) else {}
        try:
            value_wei = int(item.get("value") or 0)
        except (TypeError, ValueError):
            value_wei = 0
        method = item.get("method")
        return cls(
            hash=str(item.get("hash") or ""),
            sender=str(sender.get("hash") or ""),
            recipient=str(recipient.get("hash") or ""),
            value_wei=value_wei,
            timestamp=str(item.get("timestamp") or ""),
            method=str(method) if method else None,
            status=str(item.get("status") or "unknown"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "from": self.sender,
            "to": self.recipient,
            "value": str(self.value_wei),
            "timestamp": self.timestamp,
            "method": self.method,
            "status": self.status,
        }


@dataclass(frozen=True)
class ActivityAlert:
    alert: bool
    reason: Optional[str] = None
    diamond_cut_count: int = 0


def is_diamond_cut(method: Optional[str]) -> bool:
    """Return ``True`` when an explorer method label denotes ``diamondCut``."""

    if not method:
        return False
    text = method.lower()
    return DIAMOND_CUT_SELECTOR[2:] in text or "diamondcut" in text


def check_for_alerts(transactions: Sequence[Transaction], previous_count: int = 0) -> ActivityAlert:
    """Decide whether recent activity on a Diamond deserves attention.

    Checks run in priority order: new transactions since ``previous_count``,
    ``diamondCut`` upgrades, transfers above one ether, then failed
    transactions. The first matching rule provides the reason.
    """

    cuts = sum(1 for tx in transactions if is_diamond_cut(tx.method))

    if len(transactions) > previous_count:
        new = len(transactions) - previous_count
        if cuts:
            reason = f"{new} new transaction(s), {cuts} DiamondCut event(s) - facet upgrade detected"
        else:
            reason = f"{new} new transaction(s) detected"
        return ActivityAlert(alert=True, reason=reason, diamond_cut_count=cuts)

    if cuts:
        return ActivityAlert(
            alert=True,
            reason="DiamondCut event(s) detected - facet upgrade on Diamond contract",
            diamond_cut_count=cuts,
        )

    for tx in transactions:
        if tx.value_wei > LARGE_TRANSFER_WEI:
            return ActivityAlert(alert=True, reason=f"Large transfer detected: {tx.value_wei} wei (tx: {tx.hash[:10]}...)")

    for tx in transactions:
        if tx.status in FAILED_STATUSES:
            return ActivityAlert(alert=True, reason=f"Failed transaction detected: {tx.hash[:10]}...")

    return ActivityAlert(alert=False)


__all__ = ["ActivityAlert", "Transaction", "check_for_alerts", "is_diamond_cut"]
