"""Function selectors used to talk to EIP-2535 Diamond contracts."""
from __future__ import annotations

from typing import Dict, Optional

from eth_utils import keccak

# Diamond Loupe
FACETS_SELECTOR = "0x7a0ed627"
FACET_ADDRESSES_SELECTOR = "0x52ef6b2c"
FACET_FUNCTION_SELECTORS_SELECTOR = "0xadfca15e"
FACET_ADDRESS_SELECTOR = "0xcdffacc6"
SUPPORTS_INTERFACE_SELECTOR = "0x01ffc9a7"

# diamondCut((address,uint8,bytes4[])[],address,bytes); classification only.
DIAMOND_CUT_SELECTOR = "0x1f931c1c"

KNOWN_FUNCTIONS: Dict[str, str] = {
    FACETS_SELECTOR: "facets()",
    FACET_ADDRESSES_SELECTOR: "facetAddresses()",
    FACET_FUNCTION_SELECTORS_SELECTOR: "facetFunctionSelectors(address)",
    FACET_ADDRESS_SELECTOR: "facetAddress(bytes4)",
    SUPPORTS_INTERFACE_SELECTOR: "supportsInterface(bytes4)",
    DIAMOND_CUT_SELECTOR: "diamondCut((address,uint8,bytes4[])[],address,bytes)",
    "0x8da5cb5b": "owner()",
    "0xf2fde38b": "transferOwnership(address)",
}


def function_selector(signature: str) -> str:
    """Return the ``0x``-prefixed 4-byte selector for a canonical signature."""

    return "0x" + keccak(text=signature)[:4].hex()


def describe_selector(selector: str) -> Optional[str]:
    """Look up the signature of a well-known selector, if any."""

    return KNOWN_FUNCTIONS.get(selector.lower())


__all__ = [
    "DIAMOND_CUT_SELECTOR",
    "FACETS_SELECTOR",
    "FACET_ADDRESSES_SELECTOR",
    "FACET_ADDRESS_SELECTOR",
    "FACET_FUNCTION_SELECTORS_SELECTOR",
    "KNOWN_FUNCTIONS",
    "SUPPORTS_INTERFACE_SELECTOR",
    "describe_selector",
    "function_selector",
]
