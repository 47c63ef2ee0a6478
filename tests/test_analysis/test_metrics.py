"""Tests for metric derivation from a market snapshot."""

import json
import math
import sys
from dataclasses import fields
from datetime import UTC, datetime, timedelta

import pytest

from coinsignal.analysis.exceptions import ConfigurationError, InvalidSnapshot
from coinsignal.analysis.metrics import (
    MAX_PRICE_IMPACT,
    TrendStrength,
    buy_pressure,
    compute_indicators,
    derive_metrics,
    validate_momentum_weights,
)
from coinsignal.analysis.scoring import score
from coinsignal.analysis.snapshot import Candle, MarketSnapshot


def _make_snapshot(**kwargs) -> MarketSnapshot:
    defaults = {
        "price": 1.0,
        "market_cap": 1_000_000.0,
        "fdv": 1_050_000.0,
        "liquidity_usd": 250_000.0,
        "volume_5m": 2_500.0,
        "volume_1h": 30_000.0,
        "volume_6h": 90_000.0,
        "volume_24h": 240_000.0,
        "buys_5m": 6,
        "sells_5m": 3,
        "buys_1h": 30,
        "sells_1h": 10,
        "buys_6h": 120,
        "sells_6h": 80,
        "buys_24h": 300,
        "sells_24h": 200,
        "price_change_5m": 1.0,
        "price_change_1h": 4.0,
        "price_change_6h": 6.0,
        "price_change_24h": 8.0,
        "address": "TokenMint123",
        "symbol": "TEST",
    }
    defaults.update(kwargs)
    return MarketSnapshot(**defaults)


class TestSnapshot:
    def test_candle_from_five_field_row(self) -> None:
        c = Candle.from_row([1_700_000_000_000, 1, 2, 0.5, 1.5])
        assert c.close == 1.5
        assert c.volume == 0.0

    def test_candle_from_six_field_row(self) -> None:
        c = Candle.from_row([1_700_000_000_000, 1, 2, 0.5, 1.5, 900])
        assert c.volume == 900.0

    def test_candle_bad_row_raises(self) -> None:
        with pytest.raises(InvalidSnapshot):
            Candle.from_row([1, 2, 3, 4])

    def test_market_cap_falls_back_to_fdv(self) -> None:
        snap = MarketSnapshot(price=1.0, fdv=500_000.0)
        assert snap.effective_market_cap == 500_000.0


class TestDeriveMetrics:
    def test_ratios(self) -> None:
        m = derive_metrics(_make_snapshot())
        assert m.liquidity_to_market_cap == pytest.approx(0.25)
        assert m.volume_to_market_cap == pytest.approx(0.24)
        assert m.volume_to_liquidity == pytest.approx(0.96)
        assert m.fdv_ratio == pytest.approx(1.05)

    def test_pressure_and_flow(self) -> None:
        m = derive_metrics(_make_snapshot())
        assert m.buy_pressure_5m == pytest.approx(2.0)
        assert m.buy_pressure_1h == pytest.approx(3.0)
        assert m.buy_pressure_24h == pytest.approx(1.5)
        assert m.volume_velocity == pytest.approx(3.0)
        assert m.volume_acceleration == pytest.approx(1.0)

    def test_momentum_and_trend(self) -> None:
        m = derive_metrics(_make_snapshot())
        # 1*0.4 + 4*0.3 + 6*0.2 + 8*0.1
        assert m.momentum == pytest.approx(3.6)
        assert m.trend is TrendStrength.STRONG_UP
        assert m.positive_windows == 4

    def test_price_impact_and_whale_ratio(self) -> None:
        m = derive_metrics(_make_snapshot())
        assert m.price_impact == pytest.approx(4.0)
        # avg buy 120000/300 = 400, avg sell 120000/200 = 600
        assert m.whale_ratio == pytest.approx(400 / 600)

    @pytest.mark.parametrize(
        "changes, expected",
        [
            ((1.0, -1.0, 1.0, 1.0), TrendStrength.UP),
            ((1.0, -1.0, -1.0, 1.0), TrendStrength.NEUTRAL),
            ((-1.0, -1.0, -1.0, 1.0), TrendStrength.DOWN),
            ((-1.0, -2.0, -3.0, -4.0), TrendStrength.STRONG_DOWN),
        ],
    )
    def test_trend_buckets(self, changes, expected) -> None:
        m5, h1, h6, h24 = changes
        m = derive_metrics(
            _make_snapshot(
                price_change_5m=m5,
                price_change_1h=h1,
                price_change_6h=h6,
                price_change_24h=h24,
            )
        )
        assert m.trend is expected

    def test_zero_denominators_use_fallbacks(self) -> None:
        m = derive_metrics(MarketSnapshot(price=0.5))
        assert m.liquidity_to_market_cap == 0.0
        assert m.volume_to_market_cap == 0.0
        assert m.volume_to_liquidity == 0.0
        assert m.fdv_ratio == 1.0
        assert m.buy_pressure_1h == 0.0
        assert m.volume_velocity == 0.0
        assert m.volume_acceleration == 0.0
        assert m.price_impact == MAX_PRICE_IMPACT
        assert m.whale_ratio == 1.0
        for value in (m.momentum, m.fdv_ratio, m.price_impact, m.whale_ratio):
            assert math.isfinite(value)

    def test_extreme_inputs_stay_finite(self) -> None:
        m = derive_metrics(
            MarketSnapshot(
                price=1.0,
                market_cap=1,
                volume_5m=1e308,
                volume_1h=1e308,
                volume_24h=1e308,
                liquidity_usd=1e-310,
            )
        )
        for f in fields(m):
            value = getattr(m, f.name)
            if isinstance(value, float):
                assert math.isfinite(value), f.name
        assert m.volume_acceleration == pytest.approx(12.0)
        assert m.price_impact == MAX_PRICE_IMPACT
        assert m.volume_to_liquidity == sys.float_info.max
        json.dumps(score(m).to_dict(), allow_nan=False)

    def test_fdv_falls_back_to_market_cap(self) -> None:
        m = derive_metrics(_make_snapshot(fdv=None))
        assert m.fdv == m.market_cap
        assert m.fdv_ratio == 1.0

    def test_buy_pressure_without_sells(self) -> None:
        assert buy_pressure(5, 0) == 5.0
        assert buy_pressure(0, 0) == 0.0
        assert buy_pressure(3, 6) == 0.5

    def test_pair_age(self) -> None:
        observed = datetime(2024, 5, 1, 12, tzinfo=UTC)
        m = derive_metrics(
            _make_snapshot(
                pair_created_at=observed - timedelta(hours=2),
                observed_at=observed,
            )
        )
        assert m.pair_age_hours == pytest.approx(2.0)

    def test_pair_age_naive_datetimes_are_utc(self) -> None:
        m = derive_metrics(
            _make_snapshot(
                pair_created_at=datetime(2024, 5, 1, 0),
                observed_at=datetime(2024, 5, 1, 6, tzinfo=UTC),
            )
        )
        assert m.pair_age_hours == pytest.approx(6.0)

    def test_pair_age_unknown(self) -> None:
        m = derive_metrics(_make_snapshot(pair_created_at=datetime(2024, 5, 1, tzinfo=UTC)))
        assert m.pair_age_hours is None

    def test_no_candles_no_indicators(self) -> None:
        assert derive_metrics(_make_snapshot()).indicators is None

    def test_candles_attach_indicators(self, rising_candles) -> None:
        m = derive_metrics(_make_snapshot(candles=rising_candles))
        assert m.indicators is not None
        assert m.indicators.candle_count == 60
        assert m.indicators.last_close == 218

    def test_identity_carried_through(self) -> None:
        m = derive_metrics(_make_snapshot())
        assert m.address == "TokenMint123"
        assert m.symbol == "TEST"

    def test_deterministic(self) -> None:
        snap = _make_snapshot()
        assert derive_metrics(snap) == derive_metrics(snap)


class TestInvalidSnapshot:
    def test_missing_price(self) -> None:
        with pytest.raises(InvalidSnapshot):
            derive_metrics(MarketSnapshot(price=None))

    def test_negative_liquidity(self) -> None:
        with pytest.raises(InvalidSnapshot):
            derive_metrics(_make_snapshot(liquidity_usd=-1.0))

    def test_negative_trade_count(self) -> None:
        with pytest.raises(InvalidSnapshot):
            derive_metrics(_make_snapshot(sells_1h=-3))

    def test_nan_volume(self) -> None:
        with pytest.raises(InvalidSnapshot):
            derive_metrics(_make_snapshot(volume_24h=float("nan")))

    def test_infinite_price_change(self) -> None:
        with pytest.raises(InvalidSnapshot):
            derive_metrics(_make_snapshot(price_change_1h=float("inf")))

    def test_negative_price_change_is_fine(self) -> None:
        m = derive_metrics(_make_snapshot(price_change_24h=-40.0))
        assert m.price_change_24h == -40.0

    def test_negative_candle_close(self) -> None:
        bad = (Candle(timestamp=0, open=1, high=1, low=1, close=-1),)
        with pytest.raises(InvalidSnapshot):
            derive_metrics(_make_snapshot(candles=bad))


class TestMomentumWeights:
    def test_custom_weights(self) -> None:
        weights = {"5m": 1.0, "1h": 0.0, "6h": 0.0, "24h": 0.0}
        m = derive_metrics(_make_snapshot(), momentum_weights=weights)
        assert m.momentum == pytest.approx(1.0)

    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_momentum_weights({"5m": 0.4, "1h": 0.3, "6h": 0.2, "24h": 0.0})

    def test_weights_must_cover_all_windows(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_momentum_weights({"5m": 0.5, "1h": 0.5})

    def test_negative_weight(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_momentum_weights({"5m": 1.2, "1h": -0.2, "6h": 0.0, "24h": 0.0})


class TestComputeIndicators:
    def test_flat_candles_are_neutral(self, flat_candles) -> None:
        ind = compute_indicators(flat_candles)
        assert ind.rsi == 50.0
        assert ind.stoch_k == 50.0
        assert ind.macd == (0.0, 0.0, 0.0)
        assert ind.ema20 == ind.ema50 == 100.0
