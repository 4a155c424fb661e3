from __future__ import annotations

import logging
from dataclasses import dataclass

from erc20watch.core.errors import MalformedLogEntry
from erc20watch.core.interfaces import ILogSource, ITransferReporter
from erc20watch.decoding.decoder import decode_transfer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class ReportStats:
    """
    Counters for one reporting run.

    - total_logs: raw entries received from the source
    - reported: records handed to the reporter
    - transfers / mints: split of `reported` by classification
    - malformed: entries skipped because they failed to decode
    """

    total_logs: int = 0
    reported: int = 0
    transfers: int = 0
    mints: int = 0
    malformed: int = 0


# ---------------------------------------------------------------------------
# Domain service – TransferReportService
# ---------------------------------------------------------------------------


class TransferReportService:
    """
    Drive source → decoder → reporter, one entry at a time, in receive order.

    It depends only on abstract sources and reporters. Malformed entries are
    logged and skipped; errors raised by the source end the run.
    """

    def __init__(
        self,
        source: ILogSource,
        reporter: ITransferReporter,
        scale_factor: int,
    ) -> None:
        self._source = source
        self._reporter = reporter
        self._scale_factor = scale_factor

    async def run(self) -> ReportStats:
        stats = ReportStats()

        async for entry in self._source.logs():
            stats.total_logs += 1
            try:
                record = decode_transfer(entry, self._scale_factor)
            except MalformedLogEntry as e:
                stats.malformed += 1
                logger.warning("Skipping malformed log entry: %s", e)
                continue

            self._reporter.report(record)
            stats.reported += 1
            if record.is_mint:
                stats.mints += 1
            else:
                stats.transfers += 1

        return stats
