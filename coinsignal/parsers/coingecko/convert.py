"""CoinGecko OHLC (+ optional market row) -> MarketSnapshot conversion."""

from collections.abc import Sequence
from datetime import UTC, datetime

from coinsignal.analysis.exceptions import InsufficientHistory
from coinsignal.analysis.snapshot import Candle, MarketSnapshot
from coinsignal.parsers.coingecko.models import CoinGeckoMarket


def ohlc_to_snapshot(
    coin_id: str,
    candles: Sequence[Candle],
    *,
    market: CoinGeckoMarket | None = None,
    symbol: str | None = None,
    name: str | None = None,
) -> MarketSnapshot:
    """Snapshot priced at the last close, with the full candle history attached."""
    if not candles:
        raise InsufficientHistory(f"no OHLC history for {coin_id}")

    market_cap = fdv = volume_24h = change_24h = None
    if market is not None:
        market_cap = float(market.market_cap) if market.market_cap is not None else None
        fdv = (
            float(market.fully_diluted_valuation)
            if market.fully_diluted_valuation is not None
            else None
        )
        volume_24h = float(market.total_volume) if market.total_volume is not None else None
        change_24h = (
            float(market.price_change_percentage_24h)
            if market.price_change_percentage_24h is not None
            else None
        )
        symbol = symbol or market.symbol
        name = name or market.name

    return MarketSnapshot(
        price=candles[-1].close,
        market_cap=market_cap,
        fdv=fdv,
        volume_24h=volume_24h,
        price_change_24h=change_24h,
        observed_at=datetime.fromtimestamp(candles[-1].timestamp / 1000, UTC),
        candles=tuple(candles),
        address=coin_id,
        symbol=symbol.upper() if symbol else None,
        name=name,
    )
