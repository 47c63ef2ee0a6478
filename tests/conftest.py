"""Shared test fixtures."""

from collections.abc import Callable, Sequence

import pytest

from coinsignal.analysis.snapshot import Candle

HOUR_MS = 3_600_000


def _candles(closes: Sequence[float], spread: float = 0.01) -> tuple[Candle, ...]:
    """Hourly candles around each close; high/low are +/- ``spread``."""
    return tuple(
        Candle(
            timestamp=1_700_000_000_000 + i * HOUR_MS,
            open=c,
            high=c * (1 + spread),
            low=c * (1 - spread),
            close=c,
        )
        for i, c in enumerate(closes)
    )


@pytest.fixture
def make_candles() -> Callable[..., tuple[Candle, ...]]:
    return _candles


@pytest.fixture
def rising_candles() -> tuple[Candle, ...]:
    """60 closes climbing linearly from 100 to 218."""
    return _candles([100 + 2 * i for i in range(60)])


@pytest.fixture
def falling_candles() -> tuple[Candle, ...]:
    """60 closes falling linearly from 218 to 100."""
    return _candles([218 - 2 * i for i in range(60)])


@pytest.fixture
def flat_candles() -> tuple[Candle, ...]:
    return _candles([100.0] * 60, spread=0.0)
