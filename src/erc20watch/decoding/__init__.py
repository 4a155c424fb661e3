"""ERC-20 Transfer decoding.

This package provides:
- `decode_transfer`: raw log → `TransferRecord`
- Topic / data word parsers
"""

from erc20watch.decoding.decoder import classify, decode_transfer, scale_amount
from erc20watch.decoding.utils import data_to_uint, topic_to_address

__all__ = [
    "decode_transfer",
    "classify",
    "scale_amount",
    "data_to_uint",
    "topic_to_address",
]
