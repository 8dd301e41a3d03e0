"""Check whether a Diamond routes given function selectors.

Two signals are combined for every selector:

* the deployed bytecode of the contract contains the 4-byte selector, and
* an ``eth_call`` with the selector followed by one zeroed argument word
  either returns data or reverts. A revert still means the function exists
  and merely rejected the argument or the caller, unless the reason is the
  Diamond fallback's "function does not exist".

Both are heuristics. The bytecode scan misses selectors routed to facets
(the Diamond itself only holds the router), and a call returning no data
looks the same as a missing function.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .abi import normalise_address
from .errors import RpcError
from .rpc import CancelToken, CodeReader, EthCaller
from .selectors import (
    DIAMOND_CUT_SELECTOR,
    FACETS_SELECTOR,
    FACET_ADDRESSES_SELECTOR,
    SUPPORTS_INTERFACE_SELECTOR,
    describe_selector,
)

_LOGGER = logging.getLogger(__name__)

CORE_FUNCTIONS: Tuple[str, ...] = (
    DIAMOND_CUT_SELECTOR,
    FACETS_SELECTOR,
    FACET_ADDRESSES_SELECTOR,
    SUPPORTS_INTERFACE_SELECTOR,
)

ZERO_ARGUMENT = "0" * 64
REVERT_MARKER = "revert"
MISSING_FUNCTION_MARKER = "function does not exist"


@dataclass(frozen=True)
class FunctionCheck:
    """Outcome of checking one selector against one contract."""

    selector: str
    in_bytecode: bool
    exists: bool
    callable: bool
    error: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return describe_selector(self.selector)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "selector": self.selector,
            "name": self.name,
            "inBytecode": self.in_bytecode,
            "exists": self.exists,
            "callable": self.callable,
            "error": self.error,
        }


@dataclass(frozen=True)
class FunctionReport:
    address: str
    checks: Tuple[FunctionCheck, ...]

    @property
    def missing(self) -> List[str]:
        return [check.selector for check in self.checks if not check.exists]

    @property
    def all_present(self) -> bool:
        return not self.missing

    def as_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "allPresent": self.all_present,
            "missing": self.missing,
            "functions": [check.as_dict() for check in self.checks],
        }


def bytecode_contains(code: str, selector: str) -> bool:
    """Return ``True`` when the hex ``code`` contains the 4-byte ``selector``."""

    body = code[2:] if code.startswith(("0x", "0X")) else code
    return selector.lower().replace("0x", "", 1) in body.lower()


def call_selector(rpc: EthCaller, address: str, selector: str) -> Tuple[bool, bool, Optional[str]]:
    """Call ``selector`` with a zeroed argument word.

    Returns ``(exists, callable, error)``. Transport failures propagate since
    they say nothing about the contract.
    """

    try:
        result = rpc.call(address, selector.lower() + ZERO_ARGUMENT)
    except RpcError as exc:
        lowered = exc.message.lower()
        if REVERT_MARKER in lowered and MISSING_FUNCTION_MARKER not in lowered:
            return True, False, f"Function exists but call failed: {exc.message}"
        return False, False, exc.message
    if result and result != "0x":
        return True, True, None
    return False, False, None


def check_functions(
    rpc: EthCaller,
    code_reader: CodeReader,
    address: str,
    selectors: Optional[Iterable[str]] = None,
    *,
    cancel: Optional[CancelToken] = None,
) -> FunctionReport:
    """Check each selector (the Diamond core functions by default) on ``address``.

    A selector counts as present when it appears in the bytecode or the call
    does not fail with a non-revert error.
    """

    token = cancel or CancelToken()
    target = normalise_address(address)
    wanted: Sequence[str] = list(dict.fromkeys(s.lower() for s in (selectors or CORE_FUNCTIONS)))

    token.raise_if_cancelled()
    code = code_reader.get_code(target)
    if code in ("", "0x"):
        _LOGGER.warning("No bytecode deployed at %s", target)

    checks: List[FunctionCheck] = []
    for selector in wanted:
        token.raise_if_cancelled()
        in_bytecode = bytecode_contains(code, selector)
        exists, callable_, error = call_selector(rpc, target, selector)
        checks.append(
            FunctionCheck(
                selector=selector,
                in_bytecode=in_bytecode,
                exists=in_bytecode or exists,
                callable=callable_,
                error=error,
            )
        )
        _LOGGER.debug("%s on %s: bytecode=%s call=%s", selector, target, in_bytecode, exists)
    return FunctionReport(address=target, checks=tuple(checks))


__all__ = [
    "CORE_FUNCTIONS",
    "FunctionCheck",
    "FunctionReport",
    "bytecode_contains",
    "call_selector",
    "check_functions",
]
