"""Core data models for the transfer pipeline.

This module defines:
- `EventFilter`: contract address + topic0 (+ optional block range).
- `EventLog`: raw RPC log record consumed by the decoder.
- `TransferRecord`: decoded, unit-scaled ERC-20 transfer.

Design notes
------------
- Hex strings (addresses, topics, tx hashes) are lowercased on ingestion;
  only `TransferRecord` carries checksummed addresses for display.
- Amounts are Python ints end to end (uint256 never goes through float).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Literal

ZERO_ADDRESS = "0x" + "0" * 40

Classification = Literal["Transfer", "Mint"]


def to_hex_block(x: int) -> str:
    """Return a 0x-prefixed hex block number."""
    return hex(x)


# === Filter ===


@dataclass(frozen=True)
class EventFilter:
    """Log selection for one contract and one event signature hash.

    `from_block` / `to_block` set to None means "from now onward"
    (subscription); both set means a bounded historical query.
    """

    address: str
    topic0: str
    from_block: int | None = None
    to_block: int | None = None

    @property
    def is_bounded(self) -> bool:
        return self.from_block is not None and self.to_block is not None

    def with_range(self, from_block: int, to_block: int) -> EventFilter:
        """Return a copy bounded to the inclusive range [from_block, to_block]."""
        if from_block > to_block:
            raise ValueError("from_block must be <= to_block")
        return replace(self, from_block=from_block, to_block=to_block)

    def to_rpc_params(self) -> dict[str, Any]:
        """Render the filter object for eth_getLogs / eth_subscribe("logs")."""
        params: dict[str, Any] = {
            "address": [self.address.lower()],
            "topics": [self.topic0.lower()],
        }
        if self.from_block is not None:
            params["fromBlock"] = to_hex_block(self.from_block)
        if self.to_block is not None:
            params["toBlock"] = to_hex_block(self.to_block)
        return params


# === RPC record ===


@dataclass(slots=True, frozen=True)
class EventLog:
    """Raw log as fetched from RPC, minimally normalized."""

    address: str  # lowercased 0x...
    topics: tuple[str, ...]  # lowercased 0x...
    data_hex: str  # "0x..."
    block_number: int
    tx_hash: str  # lowercased 0x...
    log_index: int


# === Decoded record ===


@dataclass(slots=True, frozen=True)
class TransferRecord:
    """One decoded Transfer event, amount scaled by the token decimals."""

    block_number: int
    classification: Classification
    sender: str  # EIP-55 checksummed
    recipient: str  # EIP-55 checksummed
    amount: int  # raw_amount // 10**decimals
    raw_amount: int
    tx_hash: str = ""
    log_index: int = 0

    @property
    def is_mint(self) -> bool:
        return self.classification == "Mint"

    def to_dict(self) -> dict[str, Any]:
        """Serializable view; big ints rendered as strings."""
        d = asdict(self)
        d["amount"] = str(self.amount)
        d["raw_amount"] = str(self.raw_amount)
        return d
