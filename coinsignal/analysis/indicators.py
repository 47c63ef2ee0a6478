"""Technical indicators over ordered price series.

Every function here is pure: identical input gives identical output and
nothing is cached or mutated. Series are chronological, oldest first.
Short histories resolve to neutral values instead of raising.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from coinsignal.analysis.exceptions import InsufficientHistory

NEUTRAL = 50.0
FIB_RATIOS = (0.236, 0.382, 0.618)


class MACD(NamedTuple):
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class FibLevels:
    """Retracement levels above the low (r*) and below the high (s*)."""

    high: float
    low: float
    r1: float
    r2: float
    r3: float
    s1: float
    s2: float
    s3: float


class Wave(str, Enum):
    IMPULSE_UP = "IMPULSE_UP"
    IMPULSE_DOWN = "IMPULSE_DOWN"
    WAVE_3_UP = "WAVE_3_UP"
    WAVE_C_DOWN = "WAVE_C_DOWN"
    UNCLEAR = "UNCLEAR"


def ema_series(values: Sequence[float], period: int) -> list[float]:
    """Full EMA sequence seeded with the first value (k = 2 / (period + 1))."""
    if not values:
        return []
    k = 2 / (period + 1)
    result = [float(values[0])]
    for value in values[1:]:
        prev = result[-1]
        result.append(prev + k * (float(value) - prev))
    return result


def ema(values: Sequence[float], period: int) -> float:
    """Final EMA value. Shorter-than-period series return the last raw value."""
    if not values:
        return 0.0
    if len(values) < period:
        return float(values[-1])
    return ema_series(values, period)[-1]


def rsi(values: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index over the trailing ``period`` deltas.

    Returns 50 with fewer than ``period`` samples. With no losses the
    index is 100, unless there were no gains either (flat series -> 50).
    """
    if len(values) < period:
        return NEUTRAL

    gains: list[float] = []
    losses: list[float] = []
    for prev, cur in zip(values, values[1:]):
        diff = float(cur) - float(prev)
        gains.append(diff if diff > 0 else 0.0)
        losses.append(-diff if diff < 0 else 0.0)

    avg_gain = sum(gains[-period:]) / period
    avg_loss = sum(losses[-period:]) / period
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else NEUTRAL
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def macd(
    values: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9
) -> MACD:
    """Most recent MACD line, signal line and histogram."""
    if not values:
        return MACD(0.0, 0.0, 0.0)
    fast_line = ema_series(values, fast)
    slow_line = ema_series(values, slow)
    macd_line = [f - s for f, s in zip(fast_line, slow_line)]
    signal_line = ema_series(macd_line, signal)
    last_macd = macd_line[-1]
    last_signal = signal_line[-1]
    return MACD(last_macd, last_signal, last_macd - last_signal)


def stochastic_k(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> float:
    """Stochastic %K. Neutral 50 on short history or a zero range."""
    if len(closes) < period or not highs or not lows:
        return NEUTRAL
    highest = max(highs[-period:])
    lowest = min(lows[-period:])
    if highest == lowest:
        return NEUTRAL
    return (float(closes[-1]) - lowest) / (highest - lowest) * 100


def stochastic_d(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> float:
    """Stochastic %D: SMA of the trailing ``d_period`` %K values.

    Falls back to the current %K until there are enough samples.
    """
    if len(closes) < k_period + d_period - 1:
        return stochastic_k(highs, lows, closes, k_period)
    n = len(closes)
    ks = [
        stochastic_k(highs[:end], lows[:end], closes[:end], k_period)
        for end in range(n - d_period + 1, n + 1)
    ]
    return sum(ks) / d_period


def fibonacci_levels(closes: Sequence[float], lookback: int = 30) -> FibLevels:
    window = closes[-lookback:]
    if not window:
        raise InsufficientHistory("fibonacci levels need at least one close")
    high = float(max(window))
    low = float(min(window))
    span = high - low
    r1, r2, r3 = (low + span * ratio for ratio in FIB_RATIOS)
    s1, s2, s3 = (high - span * ratio for ratio in FIB_RATIOS)
    return FibLevels(high=high, low=low, r1=r1, r2=r2, r3=r3, s1=s1, s2=s2, s3=s3)


def _slope(window: Sequence[float]) -> float:
    if len(window) < 2 or window[0] == 0:
        return 0.0
    return (float(window[-1]) - float(window[0])) / float(window[0])


def classify_wave(closes: Sequence[float]) -> Wave:
    """Rough Elliott-style phase from the 10- and 30-close slopes."""
    short_slope = _slope(closes[-10:])
    long_slope = _slope(closes[-30:])

    if short_slope > 0.05 and long_slope > 0.10:
        return Wave.IMPULSE_UP
    if short_slope < -0.05 and long_slope < -0.10:
        return Wave.IMPULSE_DOWN
    if short_slope > 0 and long_slope > 0:
        return Wave.WAVE_3_UP
    if short_slope < 0 and long_slope < 0:
        return Wave.WAVE_C_DOWN
    return Wave.UNCLEAR
