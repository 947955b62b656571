"""
Volatility indicator tests

True Range, ATR, Bollinger Bands, Keltner Channels, historical volatility
"""

import math

import numpy as np
import pytest

from app.schemas.indicators import SeriesPoint
from app.services.indicators.calculations import (
    historical_volatility,
    linear_regression,
    true_range,
)
from app.services.indicators.series import (
    atr_series,
    bollinger_series,
    degenerate_bars,
    historical_volatility_series,
    keltner_series,
    regression_trend,
)


ATR_ROWS = [
    # (open, high, low, close)
    (9.0, 10.0, 8.0, 9.0),
    (10.0, 11.0, 9.0, 10.0),
    (11.0, 12.0, 9.0, 11.0),
    (10.0, 12.0, 10.0, 10.0),
    (14.0, 15.0, 11.0, 14.0),
    (13.0, 14.0, 13.0, 13.0),
]


# 20 bars with gaps up and down so some true ranges use the previous close.
# True ranges: 1.2 1.1 0.8 0.8 1.1 0.9 0.7 0.8 0.9 0.8 0.6 0.8 0.8 0.8 (sum 12.1)
# then 1.3 0.7 0.9 0.8 1.1 0.6
ATR_REFERENCE_ROWS = [
    (10.0, 10.8, 9.6, 10.4),
    (10.4, 11.2, 10.1, 11.0),
    (11.0, 11.5, 10.7, 10.9),
    (10.9, 11.0, 10.2, 10.3),
    (10.6, 11.4, 10.5, 11.3),
    (11.3, 12.0, 11.1, 11.8),
    (11.8, 11.9, 11.2, 11.4),
    (11.0, 11.3, 10.6, 10.8),
    (10.8, 11.6, 10.7, 11.5),
    (11.5, 12.2, 11.4, 12.1),
    (12.1, 12.5, 11.9, 12.0),
    (12.0, 12.3, 11.5, 11.6),
    (11.6, 11.8, 11.0, 11.2),
    (11.2, 11.9, 11.1, 11.7),
    (12.3, 13.0, 12.2, 12.8),
    (12.8, 13.1, 12.4, 12.5),
    (12.5, 12.7, 11.8, 11.9),
    (11.9, 12.6, 11.8, 12.4),
    (12.0, 12.1, 11.3, 11.5),
    (11.5, 12.0, 11.4, 11.9),
]


class TestAtr:
    """True Range and ATR"""

    def test_true_range(self, make_ohlc_bars):
        bars = make_ohlc_bars(ATR_ROWS)
        highs = np.array([b.high for b in bars])
        lows = np.array([b.low for b in bars])
        closes = np.array([b.close for b in bars])

        assert true_range(highs, lows, closes).tolist() == [2.0, 2.0, 3.0, 2.0, 5.0, 1.0]

    def test_atr_seed_then_wilder(self, make_ohlc_bars):
        bars = make_ohlc_bars(ATR_ROWS)

        points = atr_series(bars, 3)

        assert [p.time for p in points] == [b.time for b in bars[2:]]
        expected = [7 / 3, 20 / 9, 85 / 27, 197 / 81]
        for point, value in zip(points, expected):
            assert point.value == pytest.approx(value)

    def test_atr_reference_fixture(self, make_ohlc_bars):
        bars = make_ohlc_bars(ATR_REFERENCE_ROWS)

        points = atr_series(bars, 14)

        assert [p.time for p in points] == [b.time for b in bars[13:]]
        assert len(points) == 7
        # TR from bar 14 on: 1.3, 0.7, 0.9, 0.8, 1.1, 0.6
        expected = [
            121 / 140,
            351 / 392,
            24187 / 27440,
            339127 / 384160,
            4715979 / 5378240,
            67223791 / 75295360,
            919086499 / 1054135040,
        ]
        for point, value in zip(points, expected):
            assert point.value == pytest.approx(value, rel=1e-9)

    def test_atr_constant_range(self, rising_bars):
        points = atr_series(rising_bars, 14)

        assert points[0].time == rising_bars[13].time
        assert all(p.value == pytest.approx(2.0) for p in points)

    def test_atr_short_input(self, make_ohlc_bars):
        assert atr_series(make_ohlc_bars(ATR_ROWS[:2]), 3) == []


class TestBollingerBands:
    """Bollinger Bands with population standard deviation"""

    def test_bollinger_on_rising_bars(self, rising_bars):
        points = bollinger_series(rising_bars, 20, 2.0)

        assert len(points) == 11
        assert points[0].time == rising_bars[19].time

        std = math.sqrt(33.25)
        for offset, point in enumerate(points):
            middle = 90.5 + 19 + offset
            assert point.middle == pytest.approx(middle)
            assert point.upper == pytest.approx(middle + 2 * std)
            assert point.lower == pytest.approx(middle - 2 * std)

    def test_bollinger_flat_collapses(self, flat_bars):
        for point in bollinger_series(flat_bars, 20, 2.0):
            assert point.upper == point.middle == point.lower == 50.0


class TestKeltnerChannels:
    """Keltner Channels"""

    def test_keltner_on_rising_bars(self, rising_bars):
        points = keltner_series(rising_bars, 5, 5, 2.0)

        assert points[0].time == rising_bars[4].time
        for point in points:
            assert point.upper - point.middle == pytest.approx(4.0)
            assert point.middle - point.lower == pytest.approx(4.0)
        assert points[-1].middle == pytest.approx(98.0 + 29)

    def test_keltner_emitted_where_both_defined(self, rising_bars):
        points = keltner_series(rising_bars, 3, 10, 1.0)

        assert points[0].time == rising_bars[9].time

    def test_keltner_atr_period_defaults_to_ema_period(self, rising_bars):
        assert keltner_series(rising_bars, 5) == keltner_series(rising_bars, 5, 5)

    def test_keltner_on_derived_series(self, rising_bars):
        points = [
            SeriesPoint(time=b.time, value=float(i) - 10)
            for i, b in enumerate(rising_bars)
        ]

        bars = degenerate_bars(points)
        channel = keltner_series(bars, 5, 5, 1.0)

        assert bars[0].open == bars[0].high == bars[0].low == bars[0].close == -10.0
        assert bars[0].volume == 0
        # TR is 0 then 1 per bar: ATR seeds at 0.8 and closes the gap to 1 by 0.8x per bar
        assert channel[0].upper - channel[0].middle == pytest.approx(0.8)
        assert channel[-1].upper - channel[-1].middle == pytest.approx(1 - 0.2 * 0.8**25)


class TestHistoricalVolatility:
    """Annualized volatility of log returns"""

    def test_constant_growth_has_zero_volatility(self, make_bars):
        bars = make_bars([100.0 * 1.01**i for i in range(40)], spread=0.5)

        points = historical_volatility_series(bars, 10)

        assert points[0].time == bars[10].time
        assert len(points) == 30
        assert all(p.value == pytest.approx(0.0, abs=1e-9) for p in points)

    def test_alternating_closes(self, make_bars):
        bars = make_bars([100.0 if i % 2 == 0 else 110.0 for i in range(12)])

        points = historical_volatility_series(bars, 2)

        expected = math.log(1.1) * math.sqrt(2) * math.sqrt(252) * 100
        assert all(p.value == pytest.approx(expected) for p in points)

    def test_non_positive_price_gives_zero_return(self):
        result = historical_volatility(np.array([0.0, 10.0, 10.0, 10.0]), 2)

        assert np.isnan(result[:2]).all()
        assert result[2:].tolist() == [0.0, 0.0]

    def test_period_below_two_rejected(self, rising_bars):
        with pytest.raises(ValueError, match="period"):
            historical_volatility_series(rising_bars, 1)

    def test_short_input(self, rising_bars):
        assert historical_volatility_series(rising_bars, 30) == []


class TestRegressionTrend:
    """OLS trend line over a derived series"""

    def test_trend_of_linear_series_is_identity(self, rising_bars):
        points = [SeriesPoint(time=b.time, value=3.0 * i + 1) for i, b in enumerate(rising_bars)]

        trend = regression_trend(points)

        assert [p.time for p in trend] == [p.time for p in points]
        for fitted, original in zip(trend, points):
            assert fitted.value == pytest.approx(original.value)

    def test_single_point(self):
        assert linear_regression(np.array([4.0])).tolist() == [4.0]

    def test_empty(self):
        assert regression_trend([]) == []
