"""ERC-20 Transfer decoder.

Layout of `Transfer(address indexed from, address indexed to, uint256 value)`:
- topics[0]: keccak256 of the event signature
- topics[1]: sender, right-aligned in 32 bytes
- topics[2]: recipient, right-aligned in 32 bytes
- data: value as one big-endian uint256

`decode_transfer` is pure: same entry + same scale factor → equal record.
"""

from __future__ import annotations

from eth_utils import to_checksum_address  # type: ignore[attr-defined]

from erc20watch.core.errors import MalformedLogEntry
from erc20watch.core.models import ZERO_ADDRESS, Classification, EventLog, TransferRecord
from erc20watch.decoding.utils import data_to_uint, topic_to_address

TRANSFER_TOPIC_COUNT = 3


def scale_amount(raw_amount: int, scale_factor: int) -> int:
    """Truncating division by the scale factor; a factor below 1 leaves the amount unscaled."""
    if scale_factor <= 1:
        return raw_amount
    return raw_amount // scale_factor


def classify(sender: str) -> Classification:
    """`Mint` iff the sender is the zero address."""
    return "Mint" if sender.lower() == ZERO_ADDRESS else "Transfer"


def decode_transfer(entry: EventLog, scale_factor: int) -> TransferRecord:
    """Decode one raw Transfer log into a `TransferRecord`.

    Raises `MalformedLogEntry` when the entry has fewer than three topics,
    a topic that does not hold an address, or a missing/non-hex data payload.
    """
    topics = entry.topics
    if len(topics) < TRANSFER_TOPIC_COUNT:
        raise MalformedLogEntry(
            f"expected {TRANSFER_TOPIC_COUNT} topics, got {len(topics)} "
            f"(block {entry.block_number}, tx {entry.tx_hash or '?'})",
            entry,
        )

    try:
        sender = topic_to_address(topics[1])
        recipient = topic_to_address(topics[2])
        raw_amount = data_to_uint(entry.data_hex)
    except ValueError as e:
        raise MalformedLogEntry(
            f"{e} (block {entry.block_number}, tx {entry.tx_hash or '?'})",
            entry,
        ) from e

    return TransferRecord(
        block_number=entry.block_number,
        classification=classify(sender),
        sender=to_checksum_address(sender),
        recipient=to_checksum_address(recipient),
        amount=scale_amount(raw_amount, scale_factor),
        raw_amount=raw_amount,
        tx_hash=entry.tx_hash,
        log_index=entry.log_index,
    )
