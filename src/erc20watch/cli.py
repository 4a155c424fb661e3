import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable
from typing import Any

import click
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from .clients.rpc import RPC
from .clients.ws import WsRPC
from .core.config import TRANSFER_EVENT_SIGNATURE, USDT_ADDRESS, WatchConfig, resolve_rpc_url
from .core.errors import Erc20WatchError
from .core.use_cases.report_transfers import ReportStats, TransferReportService
from .metadata import resolve_decimals, scale_factor
from .reporting import ConsoleReporter
from .sources import HistoricalRange, LiveSubscription, transfer_filter

logger = logging.getLogger("erc20watch")


def _setup_logging(level: str, console: Console) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _common_options(f: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--rpc", "rpc_url", envvar="ERC20WATCH_RPC_URL", help="Node endpoint URL (overrides Infura)"),
        click.option(
            "--infura-project-id",
            envvar="INFURA_PROJECT_ID",
            help="Infura project id; used to build a mainnet URL when --rpc is not set",
        ),
        click.option(
            "--token",
            envvar="ERC20WATCH_TOKEN",
            default=USDT_ADDRESS,
            show_default=True,
            help="Token contract address",
        ),
        click.option("--symbol", envvar="ERC20WATCH_SYMBOL", default="USDT", show_default=True),
        click.option(
            "--event-signature",
            default=TRANSFER_EVENT_SIGNATURE,
            show_default=True,
            help="Canonical event signature to filter on",
        ),
        click.option("--json", "json_lines", is_flag=True, default=False, help="One JSON object per transfer"),
        click.option("--timeout", "timeout_s", type=int, default=20, show_default=True, help="RPC timeout (s)"),
        click.option(
            "--log-level",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
            default="WARNING",
            show_default=True,
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group()
def cli() -> None:
    """erc20watch — stream or backfill ERC-20 Transfer events."""
    load_dotenv(find_dotenv(usecwd=True))


async def _run_live(config: WatchConfig, out: Console, banner: Console) -> ReportStats:
    client = WsRPC(config.rpc_url, timeout_s=config.timeout_s)
    await client.connect()
    try:
        decimals = await resolve_decimals(client, config.token_address)
        banner.print(f"{config.token_symbol} decimal places: {decimals}")
        banner.print(f"Starting to monitor {config.token_symbol} transfers...")

        source = LiveSubscription(
            client,
            transfer_filter(config.token_address, config.event_signature),
            reconnect_attempts=config.reconnect_attempts,
            backoff_base_s=config.reconnect_base_delay_s,
            backoff_max_s=config.reconnect_max_delay_s,
        )
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, source.cancel)

        reporter = ConsoleReporter(out, symbol=config.token_symbol, json_lines=config.json_lines)
        return await TransferReportService(source, reporter, scale_factor(decimals)).run()
    finally:
        await client.aclose()


async def _run_backfill(config: WatchConfig, out: Console, banner: Console) -> ReportStats:
    client = RPC(config.rpc_url, timeout_s=config.timeout_s)
    try:
        await client.connect()
        decimals = await resolve_decimals(client, config.token_address)
        banner.print(f"{config.token_symbol} decimal places: {decimals}")

        source = HistoricalRange(
            client,
            transfer_filter(config.token_address, config.event_signature),
            lookback_blocks=config.lookback_blocks,
        )
        reporter = ConsoleReporter(out, symbol=config.token_symbol, json_lines=config.json_lines)
        stats = await TransferReportService(source, reporter, scale_factor(decimals)).run()

        start, end = source.window or (0, 0)
        banner.print(
            f"[bold]done[/]: blocks {start:,}-{end:,} • "
            f"[green]transfers[/]={stats.transfers}  "
            f"[cyan]mints[/]={stats.mints}  "
            f"[red]malformed[/]={stats.malformed}"
        )
        return stats
    finally:
        await client.aclose()


def _build_config(mode: str, rpc_url: str | None, infura_project_id: str | None, **kwargs: Any) -> WatchConfig:
    url = resolve_rpc_url(rpc_url, infura_project_id, mode)  # type: ignore[arg-type]
    if not url:
        raise click.UsageError("Pass --rpc or set INFURA_PROJECT_ID (environment or .env file)")
    return WatchConfig(rpc_url=url, **kwargs)


def _execute(runner: Callable[..., Any], config: WatchConfig, log_level: str) -> None:
    out = Console(highlight=False)
    err = Console(stderr=True, highlight=False)
    _setup_logging(log_level, err)
    banner = err if config.json_lines else out
    try:
        stats = asyncio.run(runner(config, out, banner))
    except Erc20WatchError as e:
        raise click.ClickException(str(e)) from e
    logger.info("Run finished: %s", stats)


@cli.command("watch")
@_common_options
@click.option(
    "--reconnect-attempts",
    type=int,
    default=0,
    show_default=True,
    help="Re-subscribe this many times after a subscription error (0 = exit on first error)",
)
def watch_cmd(
    rpc_url: str | None,
    infura_project_id: str | None,
    token: str,
    symbol: str,
    event_signature: str,
    json_lines: bool,
    timeout_s: int,
    log_level: str,
    reconnect_attempts: int,
) -> None:
    """Stream Transfer events live over a WebSocket subscription."""
    config = _build_config(
        "live",
        rpc_url,
        infura_project_id,
        token_address=token,
        event_signature=event_signature,
        token_symbol=symbol,
        reconnect_attempts=reconnect_attempts,
        timeout_s=timeout_s,
        json_lines=json_lines,
    )
    _execute(_run_live, config, log_level)


@cli.command("backfill")
@_common_options
@click.option("--lookback", type=click.IntRange(min=1), default=100, show_default=True, help="Blocks to scan back from head")
def backfill_cmd(
    rpc_url: str | None,
    infura_project_id: str | None,
    token: str,
    symbol: str,
    event_signature: str,
    json_lines: bool,
    timeout_s: int,
    log_level: str,
    lookback: int,
) -> None:
    """Report Transfer events from the most recent blocks, then exit."""
    config = _build_config(
        "backfill",
        rpc_url,
        infura_project_id,
        token_address=token,
        event_signature=event_signature,
        token_symbol=symbol,
        lookback_blocks=lookback,
        timeout_s=timeout_s,
        json_lines=json_lines,
    )
    _execute(_run_backfill, config, log_level)
