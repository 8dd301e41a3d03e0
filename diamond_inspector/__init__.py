"""Introspection, compliance and drift helpers for EIP-2535 Diamond contracts."""
from __future__ import annotations

from .abi import decode_address_array, decode_facets, decode_selector_array, decode_tail_array
from .activity import ActivityAlert, Transaction, check_for_alerts, is_diamond_cut
from .compliance import ComplianceReport, check_compliance, diff, is_compliant, selector_collisions
from .config import InspectorConfig
from .enumerator import DiamondEnumerator, enumerate_diamond
from .errors import (
    ConfigError,
    DecodeError,
    DiamondInspectorError,
    ExplorerError,
    IncomparableSnapshots,
    RpcError,
    TransportError,
)
from .functions import CORE_FUNCTIONS, FunctionCheck, FunctionReport, check_functions
from .models import DiamondSnapshot, FacetSnapshot, SnapshotDiff
from .rpc import CancelToken, CodeReader, EthCaller, JsonRpcClient, Web3Caller

__all__ = [
    "CORE_FUNCTIONS",
    "ActivityAlert",
    "CancelToken",
    "CodeReader",
    "ComplianceReport",
    "ConfigError",
    "DecodeError",
    "DiamondEnumerator",
    "DiamondInspectorError",
    "DiamondSnapshot",
    "EthCaller",
    "ExplorerError",
    "FacetSnapshot",
    "FunctionCheck",
    "FunctionReport",
    "IncomparableSnapshots",
    "InspectorConfig",
    "JsonRpcClient",
    "RpcError",
    "SnapshotDiff",
    "Transaction",
    "TransportError",
    "Web3Caller",
    "check_compliance",
    "check_functions",
    "check_for_alerts",
    "decode_address_array",
    "decode_facets",
    "decode_selector_array",
    "decode_tail_array",
    "diff",
    "enumerate_diamond",
    "is_compliant",
    "is_diamond_cut",
    "selector_collisions",
]
