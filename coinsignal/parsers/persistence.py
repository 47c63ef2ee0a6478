"""Scan log sink — fire-and-forget inserts of scored scans.

Records (address, score, verdict, price, timestamp). There is no read
path: the log exists for offline review only, and a failed write never
affects the scan that produced it.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from coinsignal.models.scan import ScanRecord


def _sanitize(val: str | None) -> str | None:
    """Strip null bytes and control chars that PostgreSQL rejects."""
    if val is None:
        return None
    return val.replace("\x00", "").strip() or None


async def save_scan_record(
    session: AsyncSession,
    *,
    address: str,
    score: int,
    verdict: str,
    price: float | None,
    scanned_at: datetime,
    strategy: str,
    symbol: str | None = None,
) -> ScanRecord:
    record = ScanRecord(
        address=address,
        symbol=_sanitize(symbol),
        strategy=strategy,
        score=score,
        verdict=verdict,
        price=Decimal(str(price)) if price is not None else None,
        scanned_at=scanned_at.replace(tzinfo=None),
    )
    session.add(record)
    await session.flush()
    return record


class ScanLogSink:
    """Schedules scan record writes without blocking the caller."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory
        self._pending: set[asyncio.Task] = set()

    def submit(
        self,
        *,
        address: str,
        score: int,
        verdict: str,
        price: float | None,
        scanned_at: datetime,
        strategy: str,
        symbol: str | None = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._write(
                address=address,
                score=score,
                verdict=verdict,
                price=price,
                scanned_at=scanned_at,
                strategy=strategy,
                symbol=symbol,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, **fields) -> None:
        try:
            async with self._session_factory() as session:
                await save_scan_record(session, **fields)
                await session.commit()
        except Exception as e:
            logger.warning(f"[SCANLOG] Failed to record scan for {fields['address']}: {e}")

    async def drain(self) -> None:
        """Wait for in-flight writes (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*self._pending)
