"""Metric derivation — maps one MarketSnapshot into a DerivedMetrics record.

Pure mapping, no IO. Every ratio has an explicit fallback for a zero or
missing denominator, so the record never carries NaN or infinity.
"""

import math
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from loguru import logger

from coinsignal.analysis.exceptions import (
    ConfigurationError,
    InsufficientHistory,
    InvalidSnapshot,
)
from coinsignal.analysis.indicators import (
    MACD,
    FibLevels,
    Wave,
    classify_wave,
    ema,
    fibonacci_levels,
    macd,
    rsi,
    stochastic_d,
    stochastic_k,
)
from coinsignal.analysis.snapshot import WINDOWS, Candle, MarketSnapshot

DEFAULT_MOMENTUM_WEIGHTS: dict[str, float] = {"5m": 0.4, "1h": 0.3, "6h": 0.2, "24h": 0.1}

PRICE_IMPACT_TRADE_USD = 10_000
MAX_PRICE_IMPACT = 999.0
FIB_LOOKBACK = 30


class TrendStrength(str, Enum):
    STRONG_UP = "STRONG_UP"
    UP = "UP"
    NEUTRAL = "NEUTRAL"
    DOWN = "DOWN"
    STRONG_DOWN = "STRONG_DOWN"


_TREND_BY_POSITIVE_WINDOWS = {
    4: TrendStrength.STRONG_UP,
    3: TrendStrength.UP,
    2: TrendStrength.NEUTRAL,
    1: TrendStrength.DOWN,
    0: TrendStrength.STRONG_DOWN,
}


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values over the closing-price series of the candle history."""

    rsi: float
    macd: MACD
    stoch_k: float
    stoch_d: float
    ema20: float
    ema50: float
    fib: FibLevels
    wave: Wave
    last_close: float
    candle_count: int


@dataclass(frozen=True)
class DerivedMetrics:
    price: float
    market_cap: float
    fdv: float
    liquidity: float

    volume_5m: float
    volume_1h: float
    volume_6h: float
    volume_24h: float

    buys_5m: int
    sells_5m: int
    buys_1h: int
    sells_1h: int
    buys_6h: int
    sells_6h: int
    buys_24h: int
    sells_24h: int

    price_change_5m: float
    price_change_1h: float
    price_change_6h: float
    price_change_24h: float

    liquidity_to_market_cap: float
    volume_to_market_cap: float
    volume_to_liquidity: float
    fdv_ratio: float

    buy_pressure_5m: float
    buy_pressure_1h: float
    buy_pressure_6h: float
    buy_pressure_24h: float

    volume_velocity: float
    volume_acceleration: float
    momentum: float
    trend: TrendStrength
    positive_windows: int
    price_impact: float
    whale_ratio: float

    pair_age_hours: float | None = None
    indicators: IndicatorSnapshot | None = None

    address: str = ""
    symbol: str | None = None


def validate_momentum_weights(weights: Mapping[str, float]) -> dict[str, float]:
    """Check that weights cover exactly the four windows and sum to 1."""
    if set(weights) != set(WINDOWS):
        raise ConfigurationError(
            f"momentum weights must cover {', '.join(WINDOWS)}; got {sorted(weights)}"
        )
    for window, weight in weights.items():
        if not math.isfinite(weight) or weight < 0:
            raise ConfigurationError(f"momentum weight for {window} must be >= 0, got {weight}")
    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=1e-6):
        raise ConfigurationError(f"momentum weights must sum to 1.0, got {total:.4f}")
    return dict(weights)


def _ratio(numerator: float, denominator: float, fallback: float) -> float:
    """Quotient, or ``fallback`` for a non-positive denominator; overflow saturates."""
    if denominator <= 0:
        return fallback
    return min(numerator / denominator, sys.float_info.max)


def buy_pressure(buys: int, sells: int) -> float:
    """Buys per sell. Zero sells counts as maximal pressure, capped at the buy count."""
    if sells <= 0:
        return float(buys)
    return buys / sells


def _price_impact(liquidity: float) -> float:
    """Estimated % slippage for a fixed $10K trade."""
    if liquidity <= 0:
        return MAX_PRICE_IMPACT
    return min(PRICE_IMPACT_TRADE_USD / liquidity * 100, MAX_PRICE_IMPACT)


def _check_non_negative(name: str, value: float | None) -> None:
    if value is None:
        return
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
        raise InvalidSnapshot(f"{name} must be a finite non-negative number, got {value!r}")


def _validate(snapshot: MarketSnapshot) -> None:
    if snapshot.price is None:
        raise InvalidSnapshot("price is required")
    _check_non_negative("price", snapshot.price)
    for name in ("market_cap", "fdv", "liquidity_usd"):
        _check_non_negative(name, getattr(snapshot, name))
    for window in WINDOWS:
        _check_non_negative(f"volume_{window}", getattr(snapshot, f"volume_{window}"))
        _check_non_negative(f"buys_{window}", getattr(snapshot, f"buys_{window}"))
        _check_non_negative(f"sells_{window}", getattr(snapshot, f"sells_{window}"))
        change = getattr(snapshot, f"price_change_{window}")
        if change is not None and (
            not isinstance(change, (int, float)) or not math.isfinite(change)
        ):
            raise InvalidSnapshot(f"price_change_{window} must be finite, got {change!r}")
    for candle in snapshot.candles:
        for name in ("open", "high", "low", "close", "volume"):
            _check_non_negative(f"candle.{name}", getattr(candle, name))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _pair_age_hours(snapshot: MarketSnapshot) -> float | None:
    if snapshot.pair_created_at is None or snapshot.observed_at is None:
        return None
    delta = _as_utc(snapshot.observed_at) - _as_utc(snapshot.pair_created_at)
    return max(delta.total_seconds() / 3600, 0.0)


def compute_indicators(candles: Sequence[Candle]) -> IndicatorSnapshot:
    """RSI, MACD, Stochastic, EMA20/50, Fibonacci and wave over candle closes."""
    if not candles:
        raise InsufficientHistory("indicator computation needs at least one candle")
    closes = [c.close for c in candles]
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    return IndicatorSnapshot(
        rsi=rsi(closes),
        macd=macd(closes),
        stoch_k=stochastic_k(highs, lows, closes),
        stoch_d=stochastic_d(highs, lows, closes),
        ema20=ema(closes, 20),
        ema50=ema(closes, 50),
        fib=fibonacci_levels(closes, FIB_LOOKBACK),
        wave=classify_wave(closes),
        last_close=closes[-1],
        candle_count=len(candles),
    )


def derive_metrics(
    snapshot: MarketSnapshot,
    *,
    momentum_weights: Mapping[str, float] | None = None,
) -> DerivedMetrics:
    """Derive ratios, pressures, momentum and indicators from one snapshot.

    Raises InvalidSnapshot on structurally invalid input only; zero
    denominators resolve to the documented fallbacks.
    """
    _validate(snapshot)
    weights = (
        validate_momentum_weights(momentum_weights)
        if momentum_weights is not None
        else DEFAULT_MOMENTUM_WEIGHTS
    )

    price = float(snapshot.price)
    market_cap = snapshot.effective_market_cap
    fdv = float(snapshot.fdv or market_cap)
    liquidity = float(snapshot.liquidity_usd or 0)
    vol = {w: snapshot.volume(w) for w in WINDOWS}
    buys = {w: snapshot.buys(w) for w in WINDOWS}
    sells = {w: snapshot.sells(w) for w in WINDOWS}
    changes = {w: snapshot.price_change(w) for w in WINDOWS}

    momentum = sum(changes[w] * weights[w] for w in WINDOWS)
    positive_windows = sum(1 for w in WINDOWS if changes[w] > 0)

    # Average trade size assumes volume splits evenly between buys and sells
    avg_buy_size = _ratio(0.5 * vol["24h"], buys["24h"], 0.0)
    avg_sell_size = _ratio(0.5 * vol["24h"], sells["24h"], 0.0)

    indicators = None
    if snapshot.candles:
        try:
            indicators = compute_indicators(snapshot.candles)
        except InsufficientHistory as e:
            logger.debug(f"[METRICS] {snapshot.symbol or snapshot.address}: {e}")

    metrics = DerivedMetrics(
        price=price,
        market_cap=market_cap,
        fdv=fdv,
        liquidity=liquidity,
        volume_5m=vol["5m"],
        volume_1h=vol["1h"],
        volume_6h=vol["6h"],
        volume_24h=vol["24h"],
        buys_5m=buys["5m"],
        sells_5m=sells["5m"],
        buys_1h=buys["1h"],
        sells_1h=sells["1h"],
        buys_6h=buys["6h"],
        sells_6h=sells["6h"],
        buys_24h=buys["24h"],
        sells_24h=sells["24h"],
        price_change_5m=changes["5m"],
        price_change_1h=changes["1h"],
        price_change_6h=changes["6h"],
        price_change_24h=changes["24h"],
        liquidity_to_market_cap=_ratio(liquidity, market_cap, 0.0),
        volume_to_market_cap=_ratio(vol["24h"], market_cap, 0.0),
        volume_to_liquidity=_ratio(vol["24h"], liquidity, 0.0),
        fdv_ratio=_ratio(fdv, market_cap, 1.0),
        buy_pressure_5m=buy_pressure(buys["5m"], sells["5m"]),
        buy_pressure_1h=buy_pressure(buys["1h"], sells["1h"]),
        buy_pressure_6h=buy_pressure(buys["6h"], sells["6h"]),
        buy_pressure_24h=buy_pressure(buys["24h"], sells["24h"]),
        volume_velocity=_ratio(vol["1h"], vol["24h"] / 24, 0.0),
        volume_acceleration=_ratio(vol["5m"], vol["1h"] / 12, 0.0),
        momentum=momentum,
        trend=_TREND_BY_POSITIVE_WINDOWS[positive_windows],
        positive_windows=positive_windows,
        price_impact=_price_impact(liquidity),
        whale_ratio=_ratio(avg_buy_size, avg_sell_size, 1.0),
        pair_age_hours=_pair_age_hours(snapshot),
        indicators=indicators,
        address=snapshot.address,
        symbol=snapshot.symbol,
    )

    logger.debug(
        f"[METRICS] {snapshot.symbol or snapshot.address or '?'}: "
        f"liq/mc={metrics.liquidity_to_market_cap:.3f} "
        f"bp1h={metrics.buy_pressure_1h:.2f} "
        f"vel={metrics.volume_velocity:.2f} "
        f"mom={metrics.momentum:+.2f} trend={metrics.trend.value}"
    )
    return metrics
