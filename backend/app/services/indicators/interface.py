"""
Indicator Engine Service Interface

Defines the contract for the indicator calculation layer.
"""

from abc import abstractmethod
from typing import Optional, Sequence

from app.services.base import BaseService
from app.schemas.market import Bar, PriceHistory
from app.schemas.indicators import IndicatorOutput, IndicatorParams


class IndicatorServiceInterface(BaseService[PriceHistory, IndicatorOutput]):
    """
    Indicator Engine Service Contract.

    INPUT: PriceHistory
        - bars: ascending daily OHLCV bars

    OUTPUT: IndicatorOutput
        - One derived series per indicator, plus any per-indicator errors
    """

    @property
    def name(self) -> str:
        return "IndicatorService"

    @abstractmethod
    async def execute(self, input_data: PriceHistory) -> IndicatorOutput:
        """Calculate every indicator with default parameters."""
        pass

    @abstractmethod
    def compute(
        self,
        symbol: str,
        bars: Sequence[Bar],
        params: Optional[IndicatorParams] = None,
    ) -> IndicatorOutput:
        """
        Run every indicator over one bar series.

        Args:
            symbol: Ticker the bars belong to
            bars: Ascending daily bars
            params: Periods/multipliers, defaults when omitted

        Returns:
            Aggregate result; failed indicators are left empty and listed
            in `errors`
        """
        pass

    @abstractmethod
    async def calculate_for_history(
        self,
        history: PriceHistory,
        params: Optional[IndicatorParams] = None,
    ) -> IndicatorOutput:
        """Calculate indicators for a fetched price history."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Indicator service is always healthy (pure computation)."""
        pass
