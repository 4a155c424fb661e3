from __future__ import annotations

from .core.errors import (
    ConnectionFailure,
    Erc20WatchError,
    MalformedLogEntry,
    MetadataUnavailable,
    QueryFailed,
    SubscriptionFailure,
)
from .core.models import ZERO_ADDRESS, EventFilter, EventLog, TransferRecord
from .decoding.decoder import decode_transfer
from .metadata import resolve_decimals, scale_factor
from .sources import HistoricalRange, LiveSubscription, lookback_window, transfer_filter

__all__ = [
    "EventFilter",
    "EventLog",
    "TransferRecord",
    "ZERO_ADDRESS",
    "decode_transfer",
    "resolve_decimals",
    "scale_factor",
    "transfer_filter",
    "lookback_window",
    "HistoricalRange",
    "LiveSubscription",
    "Erc20WatchError",
    "ConnectionFailure",
    "MetadataUnavailable",
    "SubscriptionFailure",
    "QueryFailed",
    "MalformedLogEntry",
]
