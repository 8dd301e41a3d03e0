"""Decoding helpers for ABI-encoded Diamond Loupe return values.

Loupe getters return a single dynamic array, which the ABI lays out as a head
word holding the byte offset of the array, a length word at that offset, and
then one 32-byte word per element. :func:`decode_tail_array` walks that layout
with explicit bounds checks so malformed payloads surface as
:class:`~diamond_inspector.errors.DecodeError` instead of short or garbage
results.
"""
from __future__ import annotations

from typing import List, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from .errors import DecodeError

WORD_SIZE = 32
ADDRESS_WIDTH = 20
SELECTOR_WIDTH = 4

FACETS_RETURN_TYPE = "(address,bytes4[])[]"


def _strip_prefix(data: str) -> str:
    if data[:2] in ("0x", "0X"):
        return data[2:]
    return data


def _to_bytes(data: str) -> bytes:
    text = _strip_prefix(data)
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise DecodeError(f"Return data is not valid hex: {data[:74]!r}") from exc


def _read_word(payload: bytes, position: int, what: str) -> int:
    if position < 0 or position + WORD_SIZE > len(payload):
        raise DecodeError(
            f"Truncated ABI data: {what} at byte {position} exceeds payload length {len(payload)}"
        )
    return int.from_bytes(payload[position : position + WORD_SIZE], "big")


def decode_tail_array(data: str, width: int, *, left_aligned: bool = False) -> List[str]:
    """Decode a single dynamic array of fixed-width values from return data.

    Args:
        data: ``0x``-prefixed hex string returned by ``eth_call``.
        width: Byte width of each element (20 for addresses, 4 for selectors).
        left_aligned: Read the first ``width`` bytes of each word instead of
            the last ones. ABI ``bytesN`` values are padded on the right.

    Returns:
        The elements in order, each rendered as ``0x`` followed by
        ``2 * width`` lowercase hex digits. Payloads without a complete head
        word (``"0x"`` included) decode to an empty list.

    Raises:
        DecodeError: If the offset, length or any element word lies outside
            the payload, or if ``data`` is not hex.
    """

    if not 0 < width <= WORD_SIZE:
        raise ValueError(f"Element width must be between 1 and {WORD_SIZE} bytes, got {width}")
    if not data or len(_strip_prefix(data)) < 2 * WORD_SIZE:
        return []

    payload = _to_bytes(data)
    offset = _read_word(payload, 0, "array offset")
    length = _read_word(payload, offset, "array length")

    start = offset + WORD_SIZE
    end = start + length * WORD_SIZE
    if end > len(payload):
        raise DecodeError(
            f"Truncated ABI data: {length} elements need {end} bytes but only {len(payload)} are present"
        )

    items: List[str] = []
    for cursor in range(start, end, WORD_SIZE):
        word = payload[cursor : cursor + WORD_SIZE]
        element = word[:width] if left_aligned else word[WORD_SIZE - width :]
        items.append("0x" + element.hex())
    return items


def decode_address_array(data: str) -> List[str]:
    """Decode an ``address[]`` return value."""

    return decode_tail_array(data, ADDRESS_WIDTH)


def decode_selector_array(data: str) -> List[str]:
    """Decode a ``bytes4[]`` return value."""

    return decode_tail_array(data, SELECTOR_WIDTH, left_aligned=True)


def decode_facets(data: str) -> List[Tuple[str, List[str]]]:
    """Decode the ``facets()`` return value into ``(address, selectors)`` pairs."""

    if not data or len(_strip_prefix(data)) < 2 * WORD_SIZE:
        return []
    payload = _to_bytes(data)
    try:
        (entries,) = abi_decode([FACETS_RETURN_TYPE], payload)
    except (DecodingError, ValueError) as exc:
        raise DecodeError(f"Malformed facets() return data: {exc}") from exc

    facets: List[Tuple[str, List[str]]] = []
    for address, selectors in entries:
        facets.append((address.lower(), ["0x" + selector.hex() for selector in selectors]))
    return facets


def normalise_address(address: str) -> str:
    """Return ``address`` as a lowercase ``0x``-prefixed 40 digit hex string."""

    text = _strip_prefix(address.strip()).lower()
    if len(text) != 2 * ADDRESS_WIDTH:
        raise ValueError(f"Expected a 20-byte address, got {address!r}")
    try:
        bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError(f"Address is not valid hex: {address!r}") from exc
    return "0x" + text


def encode_address_argument(address: str) -> str:
    """Left-pad ``address`` to a 32-byte calldata word (no ``0x`` prefix)."""

    return normalise_address(address)[2:].rjust(2 * WORD_SIZE, "0")


def build_calldata(selector: str, *addresses: str) -> str:
    """Concatenate a 4-byte selector with ABI-encoded address arguments."""

    text = _strip_prefix(selector).lower()
    if len(text) != 2 * SELECTOR_WIDTH:
        raise ValueError(f"Expected a 4-byte selector, got {selector!r}")
    return "0x" + text + "".join(encode_address_argument(address) for address in addresses)


__all__ = [
    "ADDRESS_WIDTH",
    "SELECTOR_WIDTH",
    "build_calldata",
    "decode_address_array",
    "decode_facets",
    "decode_selector_array",
    "decode_tail_array",
    "encode_address_argument",
    "normalise_address",
]
