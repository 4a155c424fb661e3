"""Console reporter for decoded transfers."""

from __future__ import annotations

import json
import logging

from rich.console import Console
from rich.markup import escape

from erc20watch.core.models import TransferRecord

logger = logging.getLogger(__name__)


def format_transfer(record: TransferRecord, symbol: str) -> str:
    """`Block #<n>: <Transfer|Mint> from <sender> to <recipient>, amount: <amount> <symbol>`"""
    return (
        f"Block #{record.block_number}: {record.classification} "
        f"from {record.sender} to {record.recipient}, "
        f"amount: {record.amount} {symbol}"
    ).rstrip()


class ConsoleReporter:
    """Print one line per record (plain text or JSON).

    Write failures are logged and ignored; the stream keeps running.
    """

    def __init__(self, console: Console | None = None, *, symbol: str = "", json_lines: bool = False) -> None:
        self.console = console or Console(highlight=False)
        self.symbol = symbol
        self.json_lines = json_lines

    def render(self, record: TransferRecord) -> str:
        if self.json_lines:
            return json.dumps({**record.to_dict(), "symbol": self.symbol}, separators=(",", ":"))
        return format_transfer(record, self.symbol)

    def report(self, record: TransferRecord) -> None:
        line = self.render(record)
        try:
            if self.json_lines:
                self.console.print(line, markup=False, highlight=False, soft_wrap=True)
            else:
                style = "bold green" if record.is_mint else None
                self.console.print(escape(line), style=style, highlight=False, soft_wrap=True)
        except OSError as e:
            logger.warning("Failed to report block %d transfer: %s", record.block_number, e)
