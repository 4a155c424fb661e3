"""Core data models, configuration, errors, and interfaces.

This package provides:
- Data models (EventFilter, EventLog, TransferRecord)
- Configuration (WatchConfig)
- Error taxonomy (Erc20WatchError and subclasses)
"""

from erc20watch.core.config import WatchConfig
from erc20watch.core.models import EventFilter, EventLog, TransferRecord

__all__ = [
    "WatchConfig",
    "EventFilter",
    "EventLog",
    "TransferRecord",
]
