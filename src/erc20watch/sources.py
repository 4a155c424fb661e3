"""Log sources: live subscription and bounded historical range.

Both expose the same `logs()` async iterator of `EventLog`, so the decoding
and reporting loop does not depend on the delivery mode.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Literal

from erc20watch.abi import event_topic0
from erc20watch.clients.rpc import RpcError
from erc20watch.clients.ws import LogSubscription
from erc20watch.core.config import DEFAULT_LOOKBACK_BLOCKS, TRANSFER_EVENT_SIGNATURE
from erc20watch.core.errors import Erc20WatchError, QueryFailed, SubscriptionFailure
from erc20watch.core.interfaces import IEvmLogsProvider, ILogSubscriber
from erc20watch.core.models import EventFilter, EventLog

logger = logging.getLogger(__name__)

State = Literal["Listening", "Terminated"]


def transfer_filter(address: str, signature: str = TRANSFER_EVENT_SIGNATURE) -> EventFilter:
    """Open-ended filter for `signature` events emitted by `address`."""
    return EventFilter(address=address.lower(), topic0=event_topic0(signature))


def lookback_window(latest: int, size: int = DEFAULT_LOOKBACK_BLOCKS) -> tuple[int, int]:
    """Inclusive [start, latest] window of at most `size` blocks, clamped at genesis."""
    if size < 1:
        raise ValueError("lookback size must be >= 1")
    return max(0, latest - (size - 1)), latest


# ---------------------------------------------------------------------------
# Historical range
# ---------------------------------------------------------------------------


class HistoricalRange:
    """One bounded query over the last `lookback_blocks` blocks.

    The head is resolved once; the whole window is fetched in a single call.
    Any failure raises `QueryFailed` before a single entry is yielded.
    """

    def __init__(
        self,
        provider: IEvmLogsProvider,
        log_filter: EventFilter,
        *,
        lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS,
    ) -> None:
        self.provider = provider
        self.filter = log_filter
        self.lookback_blocks = lookback_blocks
        self.window: tuple[int, int] | None = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    async def fetch(self) -> list[EventLog]:
        """Resolve the window and return all matching logs, in node order."""
        try:
            latest = await self.provider.latest_block()
            start, end = lookback_window(latest, self.lookback_blocks)
            logs = await self.provider.get_logs(self.filter.with_range(start, end))
        except Exception as e:
            raise QueryFailed(f"Failed to query logs for {self.filter.address}: {e}") from e
        self.window = (start, end)
        logger.info("Fetched %d logs in blocks %d-%d", len(logs), start, end)
        return logs

    async def logs(self) -> AsyncIterator[EventLog]:
        for entry in await self.fetch():
            if self._cancelled:
                return
            yield entry


# ---------------------------------------------------------------------------
# Live subscription
# ---------------------------------------------------------------------------

_CANCELLED = object()


class LiveSubscription:
    """Unbounded push source with two states, `Listening` and `Terminated`.

    The loop waits on whichever comes first of {next log, subscription error,
    cancel()}. A subscription error is fatal (`SubscriptionFailure`) unless
    `reconnect_attempts` allows re-subscribing after an exponential backoff
    capped at `backoff_max_s`. The budget resets after each delivered log.
    `cancel()` unsubscribes and ends iteration without raising.
    """

    def __init__(
        self,
        subscriber: ILogSubscriber,
        log_filter: EventFilter,
        *,
        reconnect_attempts: int = 0,
        backoff_base_s: float = 2.0,
        backoff_max_s: float = 60.0,
    ) -> None:
        if log_filter.is_bounded:
            raise ValueError("live subscriptions take an open-ended filter")
        self.subscriber = subscriber
        self.filter = log_filter
        self.reconnect_attempts = reconnect_attempts
        self.backoff_base_s = backoff_base_s
        self.backoff_max_s = backoff_max_s
        self.state: State = "Listening"
        self._cancel = asyncio.Event()

    def cancel(self) -> None:
        self._cancel.set()

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_base_s * (2 ** (attempt - 1)), self.backoff_max_s)

    async def _open(self) -> LogSubscription | BaseException:
        try:
            return await self.subscriber.subscribe_logs(self.filter)
        except (Erc20WatchError, RpcError, OSError, asyncio.TimeoutError) as e:
            return e

    async def _next(self, sub: LogSubscription) -> EventLog | BaseException | object:
        """Block until a log, an error, or cancel; cancel wins, then queued logs."""
        if self._cancel.is_set():
            return _CANCELLED
        if not sub.logs.empty():
            return sub.logs.get_nowait()
        if sub.err.done():
            return sub.err.result()

        get_task = asyncio.ensure_future(sub.logs.get())
        cancel_task = asyncio.ensure_future(self._cancel.wait())
        try:
            await asyncio.wait({get_task, cancel_task, sub.err}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for t in (get_task, cancel_task):
                if not t.done():
                    t.cancel()

        if self._cancel.is_set():
            return _CANCELLED
        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        return sub.err.result()

    async def _sleep_or_cancel(self, delay: float) -> bool:
        """Sleep `delay` seconds; return True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def logs(self) -> AsyncIterator[EventLog]:
        failures = 0
        try:
            while not self._cancel.is_set():
                opened = await self._open()
                if isinstance(opened, LogSubscription):
                    sub = opened
                    try:
                        while True:
                            outcome = await self._next(sub)
                            if outcome is _CANCELLED:
                                return
                            if isinstance(outcome, EventLog):
                                failures = 0
                                yield outcome
                                continue
                            error = outcome
                            break
                    finally:
                        await sub.unsubscribe()
                else:
                    error = opened

                failures += 1
                if failures > self.reconnect_attempts:
                    raise SubscriptionFailure(f"Subscription error: {error}") from error  # type: ignore[misc]
                delay = self._backoff(failures)
                logger.warning(
                    "Subscription error: %s. Retry %d/%d in %.1fs",
                    error,
                    failures,
                    self.reconnect_attempts,
                    delay,
                )
                if await self._sleep_or_cancel(delay):
                    return
        finally:
            self.state = "Terminated"
