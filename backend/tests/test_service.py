"""
Indicator service tests

Aggregate calculation over one bar series.
"""

import pytest

from app.schemas.indicators import IndicatorParams
from app.services.indicators import get_indicator_service
from app.services.indicators import service as service_module
from app.services.indicators.service import IndicatorService
from app.services.indicators.series import (
    adl_series,
    ema_series,
    obv_series,
    rsi_series,
    sma_series,
)


class TestCompute:
    """IndicatorService.compute"""

    def test_rising_bars(self, rising_bars):
        output = IndicatorService().compute("TEST", rising_bars)

        assert output.errors == {}
        assert output.symbol == "TEST"
        assert output.bar_count == 30
        assert output.params == IndicatorParams()

        assert len(output.heikin_ashi) == 30
        assert all(p.value == 100.0 for p in output.rsi)
        assert len(output.rsi_ema) == len(output.rsi) - 6
        assert output.obv[-1].value == 29000.0
        assert len(output.fibonacci) == 7
        assert output.pivot_levels is not None
        assert output.anchored_vwap.hundred_bar[0].time == rising_bars[0].time
        assert output.anchored_vwap.one_year[0].time == rising_bars[0].time

    def test_warm_up_longer_than_history(self, rising_bars):
        output = IndicatorService().compute("TEST", rising_bars)

        # 200-bar SMA, 26+9 MACD, 100-bar regression, 50-bar OBV EMA
        assert output.sma_overlay == []
        assert output.macd == []
        assert output.regression_channel == []
        assert output.obv_ema == []
        assert output.errors == {}

    def test_historical_volatility_block(self, make_bars):
        bars = make_bars([100 + (i % 7) for i in range(60)])

        hv = IndicatorService().compute("TEST", bars).historical_volatility

        assert sorted(hv.series) == [10, 20, 30]
        assert hv.series[10][0].time == bars[10].time
        assert hv.trend_period == 30
        assert [p.time for p in hv.trend] == [p.time for p in hv.series[30]]

    def test_empty_bars(self):
        output = IndicatorService().compute("TEST", [])

        assert output.errors == {}
        assert output.bar_count == 0
        assert output.heikin_ashi == []
        assert output.rsi == []
        assert output.darvas_boxes == []
        assert output.pivot_levels is None
        assert output.volume_profile == []

    def test_failure_is_isolated(self, rising_bars, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(service_module, "rsi_series", broken)

        output = IndicatorService().compute("TEST", rising_bars)

        assert output.errors == {"rsi": "boom"}
        assert output.rsi == []
        assert output.rsi_ema == []
        assert len(output.atr) == 17

    def test_invalid_params_recorded(self, rising_bars):
        params = IndicatorParams(volatility_periods=[1, 10])

        output = IndicatorService().compute("TEST", rising_bars, params)

        assert "historical_volatility" in output.errors
        assert output.historical_volatility.series == {}
        assert output.rsi

    def test_params_override(self, rising_bars):
        params = IndicatorParams(rsi_period=5, keltner_ema_period=5, keltner_atr_period=5)

        output = IndicatorService().compute("TEST", rising_bars, params)

        assert output.rsi[0].time == rising_bars[5].time
        assert output.keltner[0].time == rising_bars[4].time

    def test_deterministic(self, make_bars):
        bars = make_bars([100 + (i % 11) * 1.5 for i in range(150)])
        service = IndicatorService()

        first = service.compute("TEST", bars).model_dump(exclude={"generated_at"})
        second = service.compute("TEST", bars).model_dump(exclude={"generated_at"})

        assert first == second

    def test_input_not_modified(self, rising_bars):
        before = [b.model_copy() for b in rising_bars]

        IndicatorService().compute("TEST", rising_bars)

        assert rising_bars == before


class TestServiceEntryPoints:
    """Async entry points and singleton"""

    async def test_calculate_for_history(self, sample_history):
        output = await IndicatorService().calculate_for_history(sample_history)

        assert output.symbol == sample_history.symbol
        assert output.bar_count == len(sample_history.bars)

    async def test_execute_uses_defaults(self, sample_history):
        output = await IndicatorService().execute(sample_history)

        assert output.params == IndicatorParams()

    async def test_health_check(self):
        assert await IndicatorService().health_check() is True

    def test_singleton(self):
        assert get_indicator_service() is get_indicator_service()


class TestEndToEnd:
    """SMA(5), EMA(5), RSI(14), OBV and ADL together on the 30-bar rising series"""

    # bar index -> (sma5, ema5, rsi14, obv, adl)
    CHECKPOINTS = {
        14: (112.0, 112.0, 100.0, 14000.0, 0.0),
        20: (118.0, 118.0, 100.0, 20000.0, 0.0),
        29: (127.0, 127.0, 100.0, 29000.0, 0.0),
    }

    def test_checkpoints(self, rising_bars):
        series = [
            sma_series(rising_bars, 5),
            ema_series(rising_bars, 5),
            rsi_series(rising_bars, 14),
            obv_series(rising_bars),
            adl_series(rising_bars),
        ]
        by_time = [{p.time: p.value for p in points} for points in series]

        for index, expected in self.CHECKPOINTS.items():
            time = rising_bars[index].time
            actual = tuple(values[time] for values in by_time)
            assert actual == pytest.approx(expected)

    def test_aggregate_agrees(self, rising_bars):
        output = IndicatorService().compute("TEST", rising_bars)
        rsi = {p.time: p.value for p in output.rsi}
        obv = {p.time: p.value for p in output.obv}
        adl = {p.time: p.value for p in output.adl}

        for index, (_, _, rsi14, obv_value, adl_value) in self.CHECKPOINTS.items():
            time = rising_bars[index].time
            assert rsi[time] == pytest.approx(rsi14)
            assert obv[time] == obv_value
            assert adl[time] == adl_value
