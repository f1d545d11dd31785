"""
Signal Service Interface

Defines the contract for the signal generation layer.
"""

from abc import abstractmethod
from typing import Mapping, Union

from signal_engine.schemas.market import Timeframe
from signal_engine.schemas.signals import SignalOutput, SignalRequest
from signal_engine.services.base import BaseService


class SignalServiceInterface(BaseService[SignalRequest, SignalOutput]):
    """
    Signal Service Contract.

    INPUT: SignalRequest
        - symbol / timeframe
        - candles: ordered OHLCV history
        - weights: optional per-request weight map

    OUTPUT: SignalOutput
        - Per-indicator signals at the latest bar
        - AggregateSignal (overall verdict + strength)
        - Optional raw indicator breakdown
    """

    @property
    def name(self) -> str:
        return "SignalService"

    @abstractmethod
    async def execute(self, input_data: SignalRequest) -> SignalOutput:
        """Compute indicators, classify and aggregate for one symbol."""
        pass

    @abstractmethod
    async def update_weights(
        self,
        symbol: str,
        timeframe: Union[Timeframe, str],
        weights: Mapping[str, float],
    ) -> dict[str, float]:
        """
        Store the weight map used for a symbol/timeframe.

        Args:
            symbol: Trading pair
            timeframe: Candle interval
            weights: Indicator name -> non-negative weight

        Returns:
            The validated weight map as stored
        """
        pass

    @abstractmethod
    async def invalidate(self, symbol: str, timeframe: Union[Timeframe, str]) -> int:
        """Drop cached weights and signals for a symbol/timeframe."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Signal service is healthy whenever the engine is (cache is optional)."""
        pass
