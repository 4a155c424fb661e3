from collections.abc import AsyncIterator

import pytest

from conftest import TRANSFER_T0, make_transfer_log
from erc20watch.core.errors import QueryFailed
from erc20watch.core.models import ZERO_ADDRESS, EventLog, TransferRecord
from erc20watch.core.use_cases.report_transfers import TransferReportService

ALICE = "0x1234567890123456789012345678901234567890"
BOB = "0xabcdabcdabcdabcdabcdabcdabcdabcdabcdabcd"


class ListSource:
    def __init__(self, entries: list[EventLog], error: Exception | None = None) -> None:
        self.entries = entries
        self.error = error

    def cancel(self) -> None:
        pass

    async def logs(self) -> AsyncIterator[EventLog]:
        for entry in self.entries:
            yield entry
        if self.error is not None:
            raise self.error


class ListReporter:
    def __init__(self) -> None:
        self.records: list[TransferRecord] = []

    def report(self, record: TransferRecord) -> None:
        self.records.append(record)


def _malformed(block_number: int) -> EventLog:
    return EventLog(
        address="0xtoken",
        topics=(TRANSFER_T0,),
        data_hex="0x01",
        block_number=block_number,
        tx_hash="0xbad",
        log_index=0,
    )


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped() -> None:
    entries = [
        make_transfer_log(ALICE, BOB, 2_000_000, block_number=1),
        _malformed(2),
        make_transfer_log(ZERO_ADDRESS, BOB, 5_000_000, block_number=3),
        _malformed(4),
        make_transfer_log(BOB, ALICE, 999_999, block_number=5),
    ]
    reporter = ListReporter()

    stats = await TransferReportService(ListSource(entries), reporter, 10**6).run()

    assert [r.block_number for r in reporter.records] == [1, 3, 5]
    assert [r.classification for r in reporter.records] == ["Transfer", "Mint", "Transfer"]
    assert [r.amount for r in reporter.records] == [2, 5, 0]
    assert stats.total_logs == 5
    assert stats.reported == 3
    assert stats.transfers == 2
    assert stats.mints == 1
    assert stats.malformed == 2


@pytest.mark.asyncio
async def test_empty_source() -> None:
    reporter = ListReporter()
    stats = await TransferReportService(ListSource([]), reporter, 10**6).run()

    assert reporter.records == []
    assert stats.total_logs == 0


@pytest.mark.asyncio
async def test_source_errors_propagate() -> None:
    reporter = ListReporter()
    source = ListSource([make_transfer_log(ALICE, BOB, 1)], error=QueryFailed("boom"))

    with pytest.raises(QueryFailed):
        await TransferReportService(source, reporter, 1).run()
    assert len(reporter.records) == 1
