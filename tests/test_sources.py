import asyncio
from typing import Any
from unittest.mock import AsyncMock

import pytest

from conftest import TOKEN, TRANSFER_T0, make_transfer_log
from erc20watch.clients.ws import LogSubscription
from erc20watch.core.errors import ConnectionFailure, QueryFailed, SubscriptionFailure
from erc20watch.core.models import EventFilter, EventLog
from erc20watch.sources import HistoricalRange, LiveSubscription, lookback_window, transfer_filter

ALICE = "0x1234567890123456789012345678901234567890"
BOB = "0xabcdabcdabcdabcdabcdabcdabcdabcdabcdabcd"


def test_transfer_filter() -> None:
    flt = transfer_filter("0xDAC17F958D2ee523a2206206994597C13D831ec7")

    assert flt.topic0 == TRANSFER_T0
    assert flt.to_rpc_params() == {"address": [TOKEN], "topics": [TRANSFER_T0]}
    assert not flt.is_bounded


def test_bounded_filter_params() -> None:
    flt = transfer_filter(TOKEN).with_range(10, 255)

    assert flt.is_bounded
    assert flt.to_rpc_params()["fromBlock"] == "0xa"
    assert flt.to_rpc_params()["toBlock"] == "0xff"


def test_lookback_window() -> None:
    assert lookback_window(1_000) == (901, 1_000)
    assert lookback_window(99) == (0, 99)
    assert lookback_window(50) == (0, 50)
    assert lookback_window(0) == (0, 0)
    assert lookback_window(1_000, size=1) == (1_000, 1_000)


# ---------------------------------------------------------------------------
# HistoricalRange
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_historical_range_clamps_to_genesis(mock_rpc: Any) -> None:
    mock_rpc.latest_block.return_value = 50
    source = HistoricalRange(mock_rpc, transfer_filter(TOKEN))

    assert [e async for e in source.logs()] == []

    (flt,), _ = mock_rpc.get_logs.await_args
    assert (flt.from_block, flt.to_block) == (0, 50)
    assert source.window == (0, 50)


@pytest.mark.asyncio
async def test_historical_range_yields_in_node_order(mock_rpc: Any) -> None:
    logs = [make_transfer_log(ALICE, BOB, i, block_number=1_000 - i) for i in range(3)]
    mock_rpc.latest_block.return_value = 1_000
    mock_rpc.get_logs.return_value = logs
    source = HistoricalRange(mock_rpc, transfer_filter(TOKEN))

    assert [e async for e in source.logs()] == logs
    mock_rpc.latest_block.assert_awaited_once()
    (flt,), _ = mock_rpc.get_logs.await_args
    assert (flt.from_block, flt.to_block) == (901, 1_000)


@pytest.mark.asyncio
async def test_historical_range_query_error(mock_rpc: Any) -> None:
    mock_rpc.get_logs = AsyncMock(side_effect=RuntimeError("RPC error: -32005 query returned more than 10000 results"))
    source = HistoricalRange(mock_rpc, transfer_filter(TOKEN))

    with pytest.raises(QueryFailed, match="10000 results"):
        [e async for e in source.logs()]


@pytest.mark.asyncio
async def test_historical_range_head_error(mock_rpc: Any) -> None:
    mock_rpc.latest_block = AsyncMock(side_effect=OSError("connection reset"))
    source = HistoricalRange(mock_rpc, transfer_filter(TOKEN))

    with pytest.raises(QueryFailed):
        await source.fetch()
    mock_rpc.get_logs.assert_not_awaited()


# ---------------------------------------------------------------------------
# LiveSubscription
# ---------------------------------------------------------------------------


class FakeSubscriber:
    """Hands out subscriptions preloaded with `batches[i]`, optionally failed."""

    def __init__(self, batches: list[list[EventLog]], errors: list[BaseException | None] | None = None) -> None:
        self.batches = batches
        self.errors = errors or []
        self.subs: list[LogSubscription] = []
        self.unsubscribed = 0

    async def _unsubscribe(self) -> None:
        self.unsubscribed += 1

    async def subscribe_logs(self, log_filter: EventFilter) -> LogSubscription:
        i = len(self.subs)
        sub = LogSubscription(id=hex(i), on_unsubscribe=self._unsubscribe)
        for log in self.batches[i] if i < len(self.batches) else []:
            sub.logs.put_nowait(log)
        if i < len(self.errors) and self.errors[i] is not None:
            sub.fail(self.errors[i])
        self.subs.append(sub)
        return sub


@pytest.mark.asyncio
async def test_live_subscription_cancel() -> None:
    logs = [make_transfer_log(ALICE, BOB, i, block_number=i) for i in range(5)]
    subscriber = FakeSubscriber([logs])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN))

    received = []
    async for entry in source.logs():
        received.append(entry)
        if len(received) == 2:
            source.cancel()

    assert received == logs[:2]
    assert source.state == "Terminated"
    assert subscriber.unsubscribed == 1


@pytest.mark.asyncio
async def test_live_subscription_cancel_while_waiting() -> None:
    subscriber = FakeSubscriber([[]])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN))

    async def consume() -> list[EventLog]:
        return [e async for e in source.logs()]

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    assert source.state == "Listening"
    source.cancel()

    assert await asyncio.wait_for(task, timeout=1) == []
    assert source.state == "Terminated"


@pytest.mark.asyncio
async def test_live_subscription_delivers_pushed_logs() -> None:
    subscriber = FakeSubscriber([[]])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN))
    log = make_transfer_log(ALICE, BOB, 1)

    async def first() -> EventLog:
        async for entry in source.logs():
            source.cancel()
            return entry
        raise AssertionError("no entry")

    task = asyncio.create_task(first())
    await asyncio.sleep(0.01)
    subscriber.subs[0].logs.put_nowait(log)

    assert await asyncio.wait_for(task, timeout=1) == log


@pytest.mark.asyncio
async def test_live_subscription_error_is_fatal() -> None:
    log = make_transfer_log(ALICE, BOB, 1)
    subscriber = FakeSubscriber([[log]], [ConnectionFailure("websocket closed")])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN))

    received = []
    with pytest.raises(SubscriptionFailure, match="websocket closed"):
        async for entry in source.logs():
            received.append(entry)

    # queued entries are delivered before the error
    assert received == [log]
    assert source.state == "Terminated"
    assert len(subscriber.subs) == 1


@pytest.mark.asyncio
async def test_live_subscription_reconnects() -> None:
    first = make_transfer_log(ALICE, BOB, 1, block_number=1)
    second = make_transfer_log(ALICE, BOB, 2, block_number=2)
    subscriber = FakeSubscriber([[first], [second]], [ConnectionFailure("drop"), None])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN), reconnect_attempts=1, backoff_base_s=0)

    received = []
    async for entry in source.logs():
        received.append(entry)
        if entry is second:
            source.cancel()

    assert received == [first, second]
    assert len(subscriber.subs) == 2
    assert subscriber.unsubscribed == 2


@pytest.mark.asyncio
async def test_live_subscription_gives_up_after_budget() -> None:
    drop = ConnectionFailure("drop")
    subscriber = FakeSubscriber([[], [], []], [drop, drop, drop])
    source = LiveSubscription(subscriber, transfer_filter(TOKEN), reconnect_attempts=2, backoff_base_s=0)

    with pytest.raises(SubscriptionFailure):
        [e async for e in source.logs()]
    assert len(subscriber.subs) == 3


@pytest.mark.asyncio
async def test_live_subscribe_failure_is_subscription_failure() -> None:
    subscriber = AsyncMock()
    subscriber.subscribe_logs = AsyncMock(side_effect=ConnectionFailure("refused"))
    source = LiveSubscription(subscriber, transfer_filter(TOKEN))

    with pytest.raises(SubscriptionFailure, match="refused"):
        [e async for e in source.logs()]


def test_live_subscription_rejects_bounded_filter() -> None:
    with pytest.raises(ValueError):
        LiveSubscription(AsyncMock(), transfer_filter(TOKEN).with_range(0, 10))


def test_backoff_is_bounded() -> None:
    source = LiveSubscription(AsyncMock(), transfer_filter(TOKEN), backoff_base_s=2, backoff_max_s=10)
    assert [source._backoff(n) for n in range(1, 6)] == [2, 4, 8, 10, 10]
