from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import List


@dataclass
class KpReading:
    """One day of planetary Kp activity from a space-weather feed."""
    date: date
    kp_index: float
    is_forecast: bool = False


class KpFeed(ABC):
    """Abstract source of historical and forecast Kp values.

    Implementations swallow transport and parse errors and return an empty
    list, so callers can always fall back to what is already cached.
    """

    @abstractmethod
    async def fetch_daily(self, start: date, end: date) -> List[KpReading]:
        """Observed daily values within [start, end]."""
        pass

    @abstractmethod
    async def fetch_forecast(self, start: date, end: date) -> List[KpReading]:
        """Forecast values within [start, end]."""
        pass
