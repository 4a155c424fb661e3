from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from erc20watch.abi import TRANSFER_EVENT_ABI, get_signature

# Tether USD on Ethereum mainnet
USDT_ADDRESS = "0xdac17f958d2ee523a2206206994597c13d831ec7"
TRANSFER_EVENT_SIGNATURE = get_signature(TRANSFER_EVENT_ABI)
DEFAULT_LOOKBACK_BLOCKS = 100

Mode = Literal["live", "backfill"]

_INFURA_URLS: dict[str, str] = {
    "live": "wss://mainnet.infura.io/ws/v3/{project_id}",
    "backfill": "https://mainnet.infura.io/v3/{project_id}",
}


@dataclass(frozen=True)
class WatchConfig:
    """Configuration shared by the live and backfill runs."""

    rpc_url: str
    token_address: str = USDT_ADDRESS
    event_signature: str = TRANSFER_EVENT_SIGNATURE
    token_symbol: str = "USDT"
    lookback_blocks: int = DEFAULT_LOOKBACK_BLOCKS
    reconnect_attempts: int = 0  # 0 = first subscription error is fatal
    reconnect_base_delay_s: float = 2.0
    reconnect_max_delay_s: float = 60.0
    timeout_s: int = 20
    json_lines: bool = False


def resolve_rpc_url(explicit: str | None, infura_project_id: str | None, mode: Mode) -> str | None:
    """Pick the node endpoint: explicit URL first, else the Infura mainnet URL for `mode`."""
    if explicit:
        return explicit
    if infura_project_id:
        return _INFURA_URLS[mode].format(project_id=infura_project_id)
    return None
