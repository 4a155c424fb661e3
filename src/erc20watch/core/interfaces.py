from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, List, Protocol, runtime_checkable

from erc20watch.core.models import EventFilter, EventLog, TransferRecord

if TYPE_CHECKING:
    from erc20watch.clients.ws import LogSubscription


# ---------------------------------------------------------------------------
# IEvmLogsProvider
# ---------------------------------------------------------------------------

@runtime_checkable
class IEvmLogsProvider(Protocol):
    """
    Abstract provider for fetching EVM logs over a bounded range.

    Domain expectations:
    - It returns EventLog objects already mapped into internal domain models.
    - It hides the underlying RPC technology.
    """

    async def get_logs(self, log_filter: EventFilter) -> List[EventLog]:
        """
        Return all logs matching a bounded filter (both range ends set).

        Implementations:
        - HTTP JSON-RPC (`RPC`)
        - WebSocket JSON-RPC (`WsRPC`)
        - In-memory provider for testing
        """
        ...

    async def latest_block(self) -> int:
        """Return the current chain head height."""
        ...


# ---------------------------------------------------------------------------
# IContractCaller
# ---------------------------------------------------------------------------

@runtime_checkable
class IContractCaller(Protocol):
    """Read-only contract access (eth_call against the latest block)."""

    async def call(self, address: str, data: str) -> str:
        """Execute `data` (0x-hex calldata) against `address`; return the 0x-hex result."""
        ...


# ---------------------------------------------------------------------------
# ILogSubscriber
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogSubscriber(Protocol):
    """
    Push-based log delivery.

    Domain expectations:
    - Each subscription exposes a queue of new logs and a single error signal.
    - A failed subscription is not reused; callers subscribe again.
    """

    async def subscribe_logs(self, log_filter: EventFilter) -> LogSubscription:
        ...


# ---------------------------------------------------------------------------
# ILogSource
# ---------------------------------------------------------------------------

@runtime_checkable
class ILogSource(Protocol):
    """
    Mode-agnostic sequence of raw logs.

    Implementations:
    - `LiveSubscription`: unbounded, ends on cancel() or raises SubscriptionFailure
    - `HistoricalRange`: finite, raises QueryFailed before yielding anything
    """

    def logs(self) -> AsyncIterator[EventLog]:
        ...

    def cancel(self) -> None:
        ...


# ---------------------------------------------------------------------------
# ITransferReporter
# ---------------------------------------------------------------------------

@runtime_checkable
class ITransferReporter(Protocol):
    """Sink for decoded records. Must not retain or mutate the record."""

    def report(self, record: TransferRecord) -> None:
        ...
