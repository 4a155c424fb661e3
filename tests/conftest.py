from unittest.mock import AsyncMock

import pytest

from erc20watch.core.models import EventLog

TRANSFER_T0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
TOKEN = "0xdac17f958d2ee523a2206206994597c13d831ec7"


def address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower().removeprefix("0x")


def uint_word(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def make_transfer_log(
    sender: str,
    recipient: str,
    amount: int,
    *,
    block_number: int = 1,
    log_index: int = 0,
    tx_hash: str = "0xtx",
) -> EventLog:
    return EventLog(
        address=TOKEN,
        topics=(TRANSFER_T0, address_topic(sender), address_topic(recipient)),
        data_hex=uint_word(amount),
        block_number=block_number,
        tx_hash=tx_hash,
        log_index=log_index,
    )


@pytest.fixture
def mock_rpc():
    rpc = AsyncMock()
    rpc.get_logs = AsyncMock(return_value=[])
    rpc.latest_block = AsyncMock(return_value=100)
    rpc.call = AsyncMock(return_value=uint_word(6))
    rpc.connect = AsyncMock()
    rpc.aclose = AsyncMock()
    return rpc
