"""JSON-RPC over a single long-lived WebSocket.

`WsRPC` multiplexes request/response calls (by JSON-RPC id) and
`eth_subscription` notifications (by subscription id) on one connection.
A background reader task owns the socket's receive side:

- responses resolve the matching pending future;
- notifications are parsed into `EventLog` and pushed onto the
  subscription's `logs` queue;
- when the connection drops, every pending call fails with
  `ConnectionFailure` and every subscription's `err` future is resolved.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import websockets

from erc20watch.clients.rpc import JsonRpcMethods, RpcError, parse_rpc_log
from erc20watch.core.errors import ConnectionFailure
from erc20watch.core.models import EventFilter, EventLog

logger = logging.getLogger(__name__)

MAX_MESSAGE_BYTES = 10 * 1024 * 1024
MAX_ORPHAN_NOTIFICATIONS = 1_000


def _new_error_future() -> asyncio.Future[BaseException]:
    return asyncio.get_running_loop().create_future()


@dataclass(eq=False)
class LogSubscription:
    """One live `eth_subscribe("logs")` channel.

    - `logs`: new entries, in the order the node pushed them.
    - `err`: resolved (with the exception as its *result*) on the first
      subscription-level failure. Never resolved on a clean unsubscribe.
    """

    id: str
    logs: asyncio.Queue[EventLog] = field(default_factory=asyncio.Queue)
    err: asyncio.Future[BaseException] = field(default_factory=_new_error_future)
    on_unsubscribe: Callable[[], Awaitable[None]] | None = None

    def fail(self, exc: BaseException) -> None:
        if not self.err.done():
            self.err.set_result(exc)

    async def unsubscribe(self) -> None:
        if self.on_unsubscribe is not None:
            await self.on_unsubscribe()


class WsRPC(JsonRpcMethods):
    """Async WebSocket RPC client.

    Parameters
    ----------
    url : str
        ws:// or wss:// endpoint.
    timeout_s : int
        Open timeout and per-request response timeout in seconds.
    """

    def __init__(self, url: str, *, timeout_s: int = 20) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._next_id = 0
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._subs: dict[str, LogSubscription] = {}
        # notifications that beat their eth_subscribe response
        self._orphans: dict[str, list[dict[str, Any]]] = {}
        self._closed_subs: set[str] = set()
        self._closed_exc: BaseException | None = None

    async def connect(self) -> None:
        """Open the socket and start the reader task."""
        try:
            self._ws = await websockets.connect(
                self.url,
                open_timeout=self.timeout_s,
                max_size=MAX_MESSAGE_BYTES,
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise ConnectionFailure(f"Failed to connect to {self.url}: {e}") from e
        self._closed_exc = None
        self._reader = asyncio.create_task(self._read_loop())
        logger.info("Connected to %s", self.url)

    # ---------- request / response ----------

    async def request(self, method: str, params: list[Any]) -> Any:
        if self._ws is None:
            raise ConnectionFailure("WebSocket client is not connected")
        if self._closed_exc is not None:
            raise ConnectionFailure(f"WebSocket connection closed: {self._closed_exc}")

        self._next_id += 1
        rid = self._next_id
        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[rid] = fut
        payload = {"jsonrpc": "2.0", "id": rid, "method": method, "params": params}
        try:
            try:
                await self._ws.send(json.dumps(payload))
            except websockets.exceptions.ConnectionClosed as e:
                raise ConnectionFailure(f"WebSocket connection closed: {e}") from e
            return await asyncio.wait_for(fut, timeout=self.timeout_s)
        finally:
            self._pending.pop(rid, None)

    # ---------- subscriptions ----------

    async def subscribe_logs(self, log_filter: EventFilter) -> LogSubscription:
        """Open a `logs` subscription scoped to `log_filter`, reconnecting a dropped socket first."""
        if self._closed_exc is not None:
            logger.info("Reconnecting to %s", self.url)
            await self.aclose()
            await self.connect()
        sub_id = str(await self.request("eth_subscribe", ["logs", log_filter.to_rpc_params()]))

        async def _unsubscribe() -> None:
            await self._unsubscribe(sub_id)

        sub = LogSubscription(id=sub_id, on_unsubscribe=_unsubscribe)
        self._closed_subs.discard(sub_id)
        self._subs[sub_id] = sub
        for params in self._orphans.pop(sub_id, []):
            self._deliver(sub, params)
        if self._closed_exc is not None:
            sub.fail(self._closed_exc)
        logger.info("Subscribed to logs (subscription id %s)", sub_id)
        return sub

    async def _unsubscribe(self, sub_id: str) -> None:
        self._subs.pop(sub_id, None)
        self._closed_subs.add(sub_id)
        self._orphans.pop(sub_id, None)
        if self._closed_exc is not None:
            return
        try:
            await self.request("eth_unsubscribe", [sub_id])
        except (RpcError, ConnectionFailure, asyncio.TimeoutError) as e:
            logger.debug("eth_unsubscribe(%s) failed: %s", sub_id, e)

    # ---------- reader ----------

    def _deliver(self, sub: LogSubscription, params: dict[str, Any]) -> None:
        if "error" in params:
            sub.fail(RpcError.from_payload(params["error"]))
            return
        result = params.get("result")
        if not isinstance(result, dict):
            return
        try:
            sub.logs.put_nowait(parse_rpc_log(result))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping unparseable log notification on %s: %s", sub.id, e)

    def _dispatch(self, msg: dict[str, Any]) -> None:
        if msg.get("method") == "eth_subscription":
            params = msg.get("params") or {}
            sub_id = str(params.get("subscription"))
            sub = self._subs.get(sub_id)
            if sub is not None:
                self._deliver(sub, params)
            elif sub_id not in self._closed_subs:
                orphans = self._orphans.setdefault(sub_id, [])
                if len(orphans) < MAX_ORPHAN_NOTIFICATIONS:
                    orphans.append(params)
            return

        fut = self._pending.get(msg.get("id"))  # type: ignore[arg-type]
        if fut is None or fut.done():
            return
        if "error" in msg:
            fut.set_exception(RpcError.from_payload(msg["error"]))
        else:
            fut.set_result(msg.get("result"))

    async def _read_loop(self) -> None:
        exc: BaseException = ConnectionFailure("WebSocket connection closed by peer")
        try:
            async for raw in self._ws:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError as e:
                    logger.warning("Invalid JSON message from %s: %s", self.url, e)
                    continue
                if isinstance(msg, dict):
                    self._dispatch(msg)
        except websockets.exceptions.ConnectionClosed as e:
            exc = ConnectionFailure(f"WebSocket connection closed: {e}")
        except asyncio.CancelledError:
            exc = ConnectionFailure("WebSocket client closed")
            raise
        finally:
            self._closed_exc = exc
            for fut in self._pending.values():
                if not fut.done():
                    fut.set_exception(ConnectionFailure(str(exc)))
            for sub in self._subs.values():
                sub.fail(exc)
            logger.info("Reader for %s stopped: %s", self.url, exc)

    async def aclose(self) -> None:
        """Stop the reader and close the socket."""
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
