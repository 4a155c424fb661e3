"""Error taxonomy.

Startup errors (`ConnectionFailure`, `MetadataUnavailable`) and source errors
(`SubscriptionFailure`, `QueryFailed`) end a run. `MalformedLogEntry` is
raised per log entry and is skipped by the reporting loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from erc20watch.core.models import EventLog


class Erc20WatchError(Exception):
    """Base class for all erc20watch errors."""


class ConnectionFailure(Erc20WatchError):
    """The chain client connection could not be established (or was lost)."""


class MetadataUnavailable(Erc20WatchError):
    """The token decimals could not be read or interpreted."""


class SubscriptionFailure(Erc20WatchError):
    """The live log subscription reported an error mid-stream."""


class QueryFailed(Erc20WatchError):
    """The bounded historical log query failed."""


class MalformedLogEntry(Erc20WatchError):
    """A single log entry does not match the Transfer layout."""

    def __init__(self, message: str, entry: EventLog | None = None) -> None:
        super().__init__(message)
        self.entry = entry
