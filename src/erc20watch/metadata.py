"""Contract metadata resolver: token decimals → scale factor."""

from __future__ import annotations

import logging

from erc20watch.abi import DECIMALS_ABI, AbiFunction, encode_call
from erc20watch.core.errors import MetadataUnavailable
from erc20watch.core.interfaces import IContractCaller
from erc20watch.decoding.utils import strip_0x

logger = logging.getLogger(__name__)

WORD_BYTES = 32
# ERC-20 declares decimals() as uint8
MAX_DECIMALS = 255


def decode_uint_output(result_hex: str, fn: AbiFunction = DECIMALS_ABI) -> int:
    """Decode the first return word of `fn` as a non-negative integer."""
    if len(fn.outputs) != 1:
        raise ValueError(f"{fn.name} must declare exactly one output")
    typ = fn.outputs[0].type
    if not (typ.startswith("uint") or typ.startswith("int")):
        raise ValueError(f"{fn.name} returns {typ}, not an integer")

    raw = bytes.fromhex(strip_0x(result_hex))
    if len(raw) < WORD_BYTES:
        raise ValueError(f"{fn.name} returned {len(raw)} bytes, expected at least {WORD_BYTES}")
    word = raw[:WORD_BYTES]
    value = int.from_bytes(word, "big", signed=typ.startswith("int"))
    if value < 0:
        raise ValueError(f"{fn.name} returned a negative value ({value})")
    return value


async def resolve_decimals(caller: IContractCaller, address: str, fn: AbiFunction = DECIMALS_ABI) -> int:
    """Read the token's declared decimal places.

    Raises `MetadataUnavailable` when the call errors, the contract does not
    implement the method (empty result), or the result is not a non-negative
    integer no larger than `MAX_DECIMALS`.
    """
    try:
        result = await caller.call(address, encode_call(fn))
    except Exception as e:
        raise MetadataUnavailable(f"Failed to call {fn.name}() on {address}: {e}") from e

    if not strip_0x(result or ""):
        raise MetadataUnavailable(f"{address} returned no data for {fn.name}(); method not implemented?")

    try:
        decimals = decode_uint_output(result, fn)
    except ValueError as e:
        raise MetadataUnavailable(f"Unparseable {fn.name}() result from {address}: {e}") from e
    if decimals > MAX_DECIMALS:
        raise MetadataUnavailable(
            f"{address} declares {decimals} decimals, above the uint8 maximum of {MAX_DECIMALS}"
        )

    logger.info("Token %s declares %d decimals", address, decimals)
    return decimals


def scale_factor(decimals: int) -> int:
    """10 ** decimals, in integer arithmetic."""
    if not 0 <= decimals <= MAX_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_DECIMALS}, got {decimals}")
    return 10**decimals
