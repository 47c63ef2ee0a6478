from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from coinsignal.models.base import Base


class ScanRecord(Base):
    """One scored scan, appended by the scan log sink. Write-only."""

    __tablename__ = "scan_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    address: Mapped[str] = mapped_column(String(128))
    symbol: Mapped[str | None] = mapped_column(String(50))
    strategy: Mapped[str] = mapped_column(String(30))
    score: Mapped[int] = mapped_column(Integer)
    verdict: Mapped[str] = mapped_column(String(20))
    price: Mapped[Decimal | None] = mapped_column(Numeric)
    scanned_at: Mapped[datetime] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_scan_records_address", "address"),
        Index("idx_scan_records_scanned_at", "scanned_at"),
    )
