"""Tests for the scan log sink (write-only persistence)."""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from coinsignal.models.scan import ScanRecord
from coinsignal.parsers.persistence import ScanLogSink, save_scan_record


def _session() -> MagicMock:
    session = MagicMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.mark.asyncio
async def test_save_scan_record() -> None:
    session = _session()
    record = await save_scan_record(
        session,
        address="Mint111",
        score=72,
        verdict="STRONG_BUY",
        price=0.00123,
        scanned_at=datetime(2024, 5, 1, 12, tzinfo=UTC),
        strategy="weighted_factor",
        symbol="TEST\x00",
    )

    assert isinstance(record, ScanRecord)
    assert record.address == "Mint111"
    assert record.score == 72
    assert record.price == Decimal("0.00123")
    assert record.symbol == "TEST"
    assert record.scanned_at.tzinfo is None
    session.add.assert_called_once_with(record)
    session.flush.assert_awaited_once()


@pytest.mark.asyncio
async def test_save_without_price() -> None:
    record = await save_scan_record(
        _session(),
        address="Mint111",
        score=0,
        verdict="HOLD",
        price=None,
        scanned_at=datetime(2024, 5, 1, tzinfo=UTC),
        strategy="indicator_vote",
    )
    assert record.price is None
    assert record.symbol is None


@pytest.mark.asyncio
async def test_sink_commits_in_background() -> None:
    session = _session()
    sink = ScanLogSink(lambda: session)

    task = sink.submit(
        address="Mint111",
        score=55,
        verdict="WATCHLIST",
        price=1.0,
        scanned_at=datetime(2024, 5, 1, tzinfo=UTC),
        strategy="weighted_factor",
    )
    assert isinstance(task, asyncio.Task)
    await sink.drain()

    session.add.assert_called_once()
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_sink_failure_is_contained() -> None:
    session = _session()
    session.commit = AsyncMock(side_effect=RuntimeError("db down"))
    sink = ScanLogSink(lambda: session)

    sink.submit(
        address="Mint111",
        score=10,
        verdict="AVOID",
        price=1.0,
        scanned_at=datetime(2024, 5, 1, tzinfo=UTC),
        strategy="weighted_factor",
    )
    # Does not raise
    await sink.drain()
