from collections.abc import Sequence
from typing import Literal

from eth_utils import function_signature_to_4byte_selector
from eth_utils.abi import event_signature_to_log_topic
from pydantic import BaseModel


class AbiInput(BaseModel):
    name: str = ""
    type: str
    indexed: bool = False
    internalType: str | None = None


class AbiEvent(BaseModel):
    anonymous: bool = False
    inputs: Sequence[AbiInput]
    name: str
    type: Literal["event"]


class AbiFunction(BaseModel):
    name: str
    inputs: Sequence[AbiInput] = ()
    outputs: Sequence[AbiInput] = ()
    stateMutability: str = "view"
    type: Literal["function"] = "function"


# The only contract method we read: ERC-20 `decimals()`.
DECIMALS_ABI = AbiFunction(
    name="decimals",
    outputs=[AbiInput(type="uint256")],
)

TRANSFER_EVENT_ABI = AbiEvent(
    name="Transfer",
    type="event",
    inputs=[
        AbiInput(name="from", type="address", indexed=True),
        AbiInput(name="to", type="address", indexed=True),
        AbiInput(name="value", type="uint256"),
    ],
)


def get_signature(entry: AbiEvent | AbiFunction) -> str:
    return f"{entry.name}({','.join(entry_input.type for entry_input in entry.inputs)})"


def event_topic0(signature: str) -> str:
    """keccak256 of a canonical event signature, 0x-prefixed lowercase hex."""
    return "0x" + event_signature_to_log_topic(signature).hex()


def encode_call(fn: AbiFunction) -> str:
    """Calldata for a no-argument function: its 4-byte selector."""
    if fn.inputs:
        raise ValueError(f"{fn.name} takes arguments; only no-argument calls are supported")
    return "0x" + function_signature_to_4byte_selector(get_signature(fn)).hex()
