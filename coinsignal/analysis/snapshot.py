"""Market snapshot — one pair/token observation fed into the analysis core."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from coinsignal.analysis.exceptions import InvalidSnapshot

WINDOWS = ("5m", "1h", "6h", "24h")


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar. ``timestamp`` is epoch milliseconds."""

    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @classmethod
    def from_row(cls, row: Sequence[float]) -> "Candle":
        """Build from ``[t, o, h, l, c]`` (CoinGecko) or ``[t, o, h, l, c, v]``."""
        if len(row) not in (5, 6):
            raise InvalidSnapshot(f"OHLC row must have 5 or 6 fields, got {len(row)}")
        volume = float(row[5]) if len(row) == 6 else 0.0
        return cls(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=volume,
        )


@dataclass(frozen=True)
class MarketSnapshot:
    price: float
    market_cap: float | None = None
    fdv: float | None = None
    liquidity_usd: float | None = None

    volume_5m: float | None = None
    volume_1h: float | None = None
    volume_6h: float | None = None
    volume_24h: float | None = None

    buys_5m: int | None = None
    sells_5m: int | None = None
    buys_1h: int | None = None
    sells_1h: int | None = None
    buys_6h: int | None = None
    sells_6h: int | None = None
    buys_24h: int | None = None
    sells_24h: int | None = None

    # Percent, may be negative
    price_change_5m: float | None = None
    price_change_1h: float | None = None
    price_change_6h: float | None = None
    price_change_24h: float | None = None

    pair_created_at: datetime | None = None
    observed_at: datetime | None = None
    candles: tuple[Candle, ...] = ()

    address: str = ""
    symbol: str | None = None
    name: str | None = None

    def volume(self, window: str) -> float:
        return float(getattr(self, f"volume_{window}") or 0)

    def buys(self, window: str) -> int:
        return int(getattr(self, f"buys_{window}") or 0)

    def sells(self, window: str) -> int:
        return int(getattr(self, f"sells_{window}") or 0)

    def price_change(self, window: str) -> float:
        return float(getattr(self, f"price_change_{window}") or 0)

    @property
    def effective_market_cap(self) -> float:
        """Market cap, falling back to FDV when the source omits it."""
        return float(self.market_cap or self.fdv or 0)
