"""Exception hierarchy shared by the Diamond introspection helpers."""
from __future__ import annotations

from typing import Optional


class DiamondInspectorError(RuntimeError):
    """Base class for every error raised by :mod:`diamond_inspector`."""


class DecodeError(DiamondInspectorError, ValueError):
    """Raised when ABI return data is truncated or points outside the payload."""


class RpcError(DiamondInspectorError):
    """Raised when a JSON-RPC endpoint answers with an ``error`` object."""

    def __init__(
        self,
        message: str,
        *,
        method: str = "eth_call",
        target: Optional[str] = None,
        selector: Optional[str] = None,
        code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.method = method
        self.target = target
        self.selector = selector
        self.code = code
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [self.method]
        if self.selector:
            parts.append(f"selector={self.selector}")
        if self.target:
            parts.append(f"target={self.target}")
        prefix = " ".join(parts)
        if self.code is not None:
            return f"RPC error from {prefix} (code {self.code}): {self.message}"
        return f"RPC error from {prefix}: {self.message}"


class TransportError(DiamondInspectorError):
    """Raised when the endpoint cannot be reached or the call was cancelled."""

    def __init__(self, message: str, *, cancelled: bool = False) -> None:
        self.cancelled = cancelled
        super().__init__(message)


class IncomparableSnapshots(DiamondInspectorError):
    """Raised when diffing snapshots taken from different diamonds or chains."""


class ExplorerError(DiamondInspectorError):
    """Raised when a block explorer API returns an unexpected response."""


class ConfigError(DiamondInspectorError):
    """Raised when required configuration is missing or malformed."""


__all__ = [
    "ConfigError",
    "DecodeError",
    "DiamondInspectorError",
    "ExplorerError",
    "IncomparableSnapshots",
    "RpcError",
    "TransportError",
]
