from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Quote:
    symbol: str
    current: float
    change: float
    change_percent: float
    high: float
    low: float
    open: float
    previous_close: float
    synthetic: bool = False


@dataclass(frozen=True)
class Profile:
    symbol: str
    name: str
    industry: str
    currency: str
    logo: str = ""
    synthetic: bool = False


@dataclass(frozen=True)
class SymbolMatch:
    symbol: str
    description: str
    display_symbol: str
    type: str
    synthetic: bool = False


@dataclass(frozen=True)
class PricePoint:
    timestamp: int  # unix seconds
    close: float


@dataclass(frozen=True)
class CandleSeries:
    symbol: str
    resolution: str
    points: List[PricePoint] = field(default_factory=list)
    synthetic: bool = False

    @property
    def closes(self) -> List[float]:
        return [p.close for p in self.points]

    @property
    def timestamps(self) -> List[int]:
        return [p.timestamp for p in self.points]


class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Implementations raise UpstreamUnavailable for any failure, including
    well-formed responses that carry no data.
    """

    name: str = "provider"

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote:
        """Fetch the latest quote for a symbol."""
        pass

    @abstractmethod
    async def fetch_profile(self, symbol: str) -> Profile:
        """Fetch company name, industry and currency."""
        pass

    @abstractmethod
    async def lookup_symbol(self, symbol: str) -> Optional[SymbolMatch]:
        """Resolve a symbol to its listing; None when the provider knows no match."""
        pass

    @abstractmethod
    async def fetch_history(
        self, symbol: str, resolution: str, from_ts: int, to_ts: int
    ) -> CandleSeries:
        """
        Fetch closing prices between two unix timestamps.
        Returns points ordered by timestamp ascending.
        """
        pass

    async def close(self) -> None:
        return None
