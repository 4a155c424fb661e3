"""Lightweight JSON-RPC client for Ethereum-compatible nodes.

This module provides:
- `JsonRpcMethods`: the eth_* calls used by the pipeline, on top of `request`
- `RPC`: an async HTTP client with sane timeouts/connection limits
- `parse_rpc_log`: maps one JSON-RPC log object to `EventLog`

`RPC` and `WsRPC` (see `clients.ws`) share `JsonRpcMethods`, so the resolver
and the log sources do not care which transport they run on.
"""

from __future__ import annotations

from typing import Any

import httpx

from erc20watch.core.errors import ConnectionFailure
from erc20watch.core.models import EventFilter, EventLog


class RpcError(RuntimeError):
    """JSON-RPC `error` object returned by the node."""

    def __init__(self, code: Any, message: Any) -> None:
        super().__init__(f"RPC error: {code} {message}")
        self.code = code
        self.message = message

    @classmethod
    def from_payload(cls, err: Any) -> RpcError:
        if isinstance(err, dict):
            return cls(err.get("code"), err.get("message"))
        return cls(None, err)


def _hex_int(x: Any) -> int:
    if isinstance(x, int):
        return x
    return int(x, 16)


def parse_rpc_log(rl: dict[str, Any]) -> EventLog:
    """Map a raw JSON-RPC log object into an `EventLog`."""
    topics = tuple((t if isinstance(t, str) else t.decode()).lower() for t in rl.get("topics", []))
    return EventLog(
        address=str(rl.get("address") or "").lower(),
        topics=topics,
        data_hex=str(rl.get("data") or "0x"),
        block_number=_hex_int(rl["blockNumber"]),
        tx_hash=(rl.get("transactionHash") or rl.get("transaction_hash") or "").lower(),
        log_index=_hex_int(rl.get("logIndex") or 0),
    )


class JsonRpcMethods:
    """eth_* methods expressed over an abstract `request(method, params)`."""

    async def request(self, method: str, params: list[Any]) -> Any:
        raise NotImplementedError

    async def chain_id(self) -> int:
        """Return the node's chain id."""
        return int(await self.request("eth_chainId", []), 16)

    async def latest_block(self) -> int:
        """Return the latest block number as an int."""
        return int(await self.request("eth_blockNumber", []), 16)

    async def get_logs(self, log_filter: EventFilter) -> list[EventLog]:
        """Fetch logs matching a bounded filter."""
        if not log_filter.is_bounded:
            raise ValueError("get_logs requires a bounded filter (from_block and to_block)")
        result = await self.request("eth_getLogs", [log_filter.to_rpc_params()])
        return [parse_rpc_log(rl) for rl in result or []]

    async def call(self, address: str, data: str) -> str:
        """Read-only contract call at the latest block."""
        result = await self.request("eth_call", [{"to": address.lower(), "data": data}, "latest"])
        return str(result or "0x")


class RPC(JsonRpcMethods):
    """Minimal async HTTP RPC client.

    Parameters
    ----------
    url : str
        RPC endpoint URL.
    timeout_s : int
        Per-operation timeout in seconds (connect/read/write).
    max_connections : int
        Maximum concurrent connections to keep in the pool.
    client : httpx.AsyncClient | None
        Pre-built client (tests inject one backed by `httpx.MockTransport`).
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: int = 20,
        max_connections: int = 8,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self._next_id = 0
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=timeout_s,
                read=timeout_s,
                write=timeout_s,
                pool=max(30, timeout_s * 3),
            ),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            http2=True,
        )

    async def connect(self) -> None:
        """Probe the endpoint once; raise ConnectionFailure if it is unreachable."""
        try:
            await self.chain_id()
        except (httpx.HTTPError, RpcError, ValueError) as e:
            raise ConnectionFailure(f"Failed to connect to {self.url}: {e}") from e

    async def request(self, method: str, params: list[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        r = await self.client.post(self.url, json=payload)
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            raise RpcError.from_payload(data["error"])
        return data.get("result")

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
