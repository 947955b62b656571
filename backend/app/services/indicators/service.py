"""
Indicator Engine Service Implementation

Runs every indicator over one bar series and assembles IndicatorOutput.
Pure Python/NumPy calculations, recomputed from scratch on each call.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from app.schemas.market import Bar, PriceHistory
from app.schemas.indicators import (
    AnchoredVWAP,
    HistoricalVolatility,
    IndicatorOutput,
    IndicatorParams,
)
from app.services.indicators.interface import IndicatorServiceInterface
from app.services.indicators.series import (
    adl_series,
    anchored_vwap_series,
    atr_series,
    bars_back_anchor,
    bollinger_series,
    cmf_series,
    darvas_series,
    ema_of,
    ema_series,
    fibonacci_series,
    heikin_ashi_bars,
    historical_volatility_series,
    keltner_series,
    macd_series,
    mfi_series,
    obv_series,
    one_year_anchor,
    pivot_levels_for,
    pivot_point_series,
    regression_channel_series,
    regression_trend,
    rsi_series,
    sma_series,
    volume_profile_for,
)

logger = logging.getLogger(__name__)


class IndicatorService(IndicatorServiceInterface):
    """
    Indicator Engine Service.

    Each indicator is computed independently: a failure in one is logged and
    recorded in `errors` while the rest still compute.
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    async def execute(self, input_data: PriceHistory) -> IndicatorOutput:
        """Calculate indicators for a price history with default parameters."""
        return await self.calculate_for_history(input_data)

    async def calculate_for_history(
        self,
        history: PriceHistory,
        params: Optional[IndicatorParams] = None,
    ) -> IndicatorOutput:
        """Calculate indicators for a fetched price history."""
        return self.compute(history.symbol, history.bars, params)

    def compute(
        self,
        symbol: str,
        bars: Sequence[Bar],
        params: Optional[IndicatorParams] = None,
    ) -> IndicatorOutput:
        """Run every indicator over the bar series."""
        params = params or IndicatorParams()
        bars = list(bars)
        errors: dict[str, str] = {}

        def run(field: str, func: Callable[[], Any], default: Any) -> Any:
            try:
                return func()
            except Exception as e:
                logger.error(f"{self.name}: {field} failed for {symbol}: {e}")
                errors[field] = str(e)
                return default

        # Price transforms and overlays
        heikin_ashi = run("heikin_ashi", lambda: heikin_ashi_bars(bars), [])
        sma_overlay = run(
            "sma_overlay", lambda: sma_series(bars, params.sma_overlay_period), []
        )
        ema_overlay = run(
            "ema_overlay", lambda: ema_series(bars, params.ema_overlay_period), []
        )

        # Oscillators
        rsi = run("rsi", lambda: rsi_series(bars, params.rsi_period), [])
        rsi_ema = run("rsi_ema", lambda: ema_of(rsi, params.rsi_ema_period), [])
        macd = run(
            "macd",
            lambda: macd_series(
                bars, params.macd_fast, params.macd_slow, params.macd_signal
            ),
            [],
        )
        mfi = run("mfi", lambda: mfi_series(bars, params.mfi_period), [])

        # Volatility
        atr = run("atr", lambda: atr_series(bars, params.atr_period), [])
        bollinger = run(
            "bollinger",
            lambda: bollinger_series(bars, params.bollinger_period, params.bollinger_k),
            [],
        )
        keltner = run(
            "keltner",
            lambda: keltner_series(
                bars,
                params.keltner_ema_period,
                params.keltner_atr_period,
                params.keltner_multiplier,
            ),
            [],
        )
        historical_volatility = run(
            "historical_volatility",
            lambda: self._historical_volatility(bars, params),
            HistoricalVolatility(),
        )

        # Volume flow
        obv = run("obv", lambda: obv_series(bars), [])
        obv_ema = run("obv_ema", lambda: ema_of(obv, params.obv_ema_period), [])
        adl = run("adl", lambda: adl_series(bars), [])
        cmf = run("cmf", lambda: cmf_series(bars, params.cmf_period), [])
        anchored_vwap = run(
            "anchored_vwap",
            lambda: AnchoredVWAP(
                one_year=anchored_vwap_series(bars, one_year_anchor(bars)),
                hundred_bar=anchored_vwap_series(
                    bars, bars_back_anchor(bars, params.vwap_anchor_bars)
                ),
            ),
            AnchoredVWAP(),
        )

        # Levels and patterns
        fibonacci = run("fibonacci", lambda: fibonacci_series(bars), [])
        darvas_boxes = run("darvas_boxes", lambda: darvas_series(bars), [])
        regression_channel = run(
            "regression_channel",
            lambda: regression_channel_series(
                bars,
                params.regression_period,
                params.regression_k,
                params.regression_width,
            ),
            [],
        )
        pivot_points = run(
            "pivot_points",
            lambda: pivot_point_series(bars, params.pivot_timeframe, params.pivot_count),
            [],
        )
        pivot_levels = run(
            "pivot_levels",
            lambda: pivot_levels_for(bars, params.pivot_timeframe, params.pivot_type),
            None,
        )
        volume_profile = run(
            "volume_profile",
            lambda: volume_profile_for(bars, params.volume_profile_step),
            [],
        )

        if errors:
            logger.warning(
                f"{self.name}: {symbol} computed with {len(errors)} failed indicator(s)"
            )
        else:
            logger.debug(f"{self.name}: computed indicators for {symbol} ({len(bars)} bars)")

        return IndicatorOutput(
            symbol=symbol,
            generated_at=datetime.now(timezone.utc),
            bar_count=len(bars),
            params=params,
            heikin_ashi=heikin_ashi,
            sma_overlay=sma_overlay,
            ema_overlay=ema_overlay,
            rsi=rsi,
            rsi_ema=rsi_ema,
            macd=macd,
            mfi=mfi,
            atr=atr,
            bollinger=bollinger,
            keltner=keltner,
            historical_volatility=historical_volatility,
            obv=obv,
            obv_ema=obv_ema,
            adl=adl,
            cmf=cmf,
            anchored_vwap=anchored_vwap,
            fibonacci=fibonacci,
            darvas_boxes=darvas_boxes,
            regression_channel=regression_channel,
            pivot_points=pivot_points,
            pivot_levels=pivot_levels,
            volume_profile=volume_profile,
            errors=errors,
        )

    def _historical_volatility(
        self, bars: list[Bar], params: IndicatorParams
    ) -> HistoricalVolatility:
        """Volatility per lookback plus a trend line over the longest one."""
        series = {
            period: historical_volatility_series(bars, period)
            for period in params.volatility_periods
        }
        trend_period = max(params.volatility_periods)
        return HistoricalVolatility(
            series=series,
            trend=regression_trend(series[trend_period]),
            trend_period=trend_period,
        )

    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        return True


# Singleton instance
_service_instance: Optional[IndicatorService] = None


def get_indicator_service() -> IndicatorService:
    """Get or create indicator service instance."""
    global _service_instance
    if _service_instance is None:
        _service_instance = IndicatorService()
    return _service_instance
