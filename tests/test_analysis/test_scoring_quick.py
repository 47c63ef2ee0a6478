"""Tests for the quick-screen strategy (five additive checks)."""

from coinsignal.analysis.metrics import derive_metrics
from coinsignal.analysis.scoring import Classification, Strategy, score, score_quick_screen
from coinsignal.analysis.snapshot import MarketSnapshot


def _make_metrics(**kwargs):
    defaults = {
        "price": 0.002,
        "market_cap": 1_000_000.0,
        "fdv": 1_050_000.0,
        "liquidity_usd": 250_000.0,
        "volume_1h": 30_000.0,
        "volume_24h": 240_000.0,
        "buys_1h": 30,
        "sells_1h": 10,
        "price_change_1h": 4.0,
    }
    defaults.update(kwargs)
    return derive_metrics(MarketSnapshot(**defaults))


def test_all_checks_pass() -> None:
    verdict = score_quick_screen(_make_metrics())
    assert verdict.strategy is Strategy.QUICK_SCREEN
    assert verdict.score == 100
    assert verdict.classification is Classification.STRONG_BUY
    assert verdict.red_flags == ()
    assert verdict.breakdown == {
        "fdv": 15,
        "liquidity": 15,
        "buy_pressure": 25,
        "volume_velocity": 25,
        "momentum_1h": 20,
    }


def test_watchlist() -> None:
    # Velocity 1x and a 30% hourly move fail
    verdict = score_quick_screen(_make_metrics(volume_1h=10_000.0, price_change_1h=30.0))
    assert verdict.score == 55
    assert verdict.classification is Classification.WATCHLIST
    assert verdict.is_valid is True
    assert len(verdict.red_flags) == 2


def test_bare_price_is_avoid() -> None:
    verdict = score_quick_screen(derive_metrics(MarketSnapshot(price=1.0)))
    # Only the dilution check passes (FDV/MC falls back to 1.0)
    assert verdict.score == 15
    assert verdict.classification is Classification.AVOID
    assert verdict.is_valid is False
    assert len(verdict.red_flags) == 4


def test_buy_pressure_boundary() -> None:
    # 1.8x exactly does not pass
    verdict = score_quick_screen(_make_metrics(buys_1h=18, sells_1h=10))
    assert verdict.breakdown["buy_pressure"] == 0


def test_dispatch() -> None:
    m = _make_metrics()
    assert score(m, strategy="quick_screen") == score_quick_screen(m)
