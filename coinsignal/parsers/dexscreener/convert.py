"""DexScreener pair -> MarketSnapshot conversion."""

from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal

from coinsignal.analysis.exceptions import InvalidSnapshot
from coinsignal.analysis.snapshot import Candle, MarketSnapshot
from coinsignal.parsers.dexscreener.models import DexScreenerPair, DexScreenerTxns
from coinsignal.parsers.exceptions import TokenNotFoundError


def _f(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _counts(txns: DexScreenerTxns | None) -> tuple[int | None, int | None]:
    if txns is None:
        return None, None
    return txns.buys, txns.sells


def pick_primary_pair(pairs: Sequence[DexScreenerPair]) -> DexScreenerPair:
    """Most liquid pair; raises TokenNotFoundError when there is none."""
    if not pairs:
        raise TokenNotFoundError("token not found on DexScreener")
    return max(
        pairs,
        key=lambda p: p.liquidity.usd if p.liquidity and p.liquidity.usd is not None else Decimal(0),
    )


def pair_to_snapshot(
    pair: DexScreenerPair,
    *,
    observed_at: datetime | None = None,
    candles: Sequence[Candle] = (),
) -> MarketSnapshot:
    try:
        price = float(pair.priceUsd) if pair.priceUsd is not None else None
    except ValueError:
        raise InvalidSnapshot(f"unparseable priceUsd: {pair.priceUsd!r}") from None

    volume = pair.volume
    change = pair.priceChange
    txns = pair.txns
    b5, s5 = _counts(txns.m5 if txns else None)
    b1, s1 = _counts(txns.h1 if txns else None)
    b6, s6 = _counts(txns.h6 if txns else None)
    b24, s24 = _counts(txns.h24 if txns else None)

    created_at = None
    if pair.pairCreatedAt:
        created_at = datetime.fromtimestamp(pair.pairCreatedAt / 1000, UTC)

    base = pair.baseToken
    return MarketSnapshot(
        price=price,
        market_cap=_f(pair.marketCap),
        fdv=_f(pair.fdv),
        liquidity_usd=_f(pair.liquidity.usd) if pair.liquidity else None,
        volume_5m=_f(volume.m5) if volume else None,
        volume_1h=_f(volume.h1) if volume else None,
        volume_6h=_f(volume.h6) if volume else None,
        volume_24h=_f(volume.h24) if volume else None,
        buys_5m=b5,
        sells_5m=s5,
        buys_1h=b1,
        sells_1h=s1,
        buys_6h=b6,
        sells_6h=s6,
        buys_24h=b24,
        sells_24h=s24,
        price_change_5m=_f(change.m5) if change else None,
        price_change_1h=_f(change.h1) if change else None,
        price_change_6h=_f(change.h6) if change else None,
        price_change_24h=_f(change.h24) if change else None,
        pair_created_at=created_at,
        observed_at=observed_at or datetime.now(UTC),
        candles=tuple(candles),
        address=base.address if base else pair.pairAddress,
        symbol=base.symbol if base else None,
        name=base.name if base else None,
    )
