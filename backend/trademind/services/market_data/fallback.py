"""
Synthetic market data for when every provider call fails.

Prices are anchored on a base price derived from a stable hash of the symbol,
so repeated fallbacks for one symbol start from the same level in every
process. The daily quote move and the history random walk are unseeded by
default; with seeded_history each walk step is seeded from (symbol, day) and
the whole series becomes reproducible.
"""
import math
from typing import Optional

import numpy as np

from trademind.core.config import settings
from trademind.services.market_data.base import (
    CandleSeries,
    PricePoint,
    Profile,
    Quote,
    SymbolMatch,
)

SECONDS_PER_DAY = 86400
MIN_PRICE = 1.0


def symbol_hash(symbol: str) -> int:
    """31-multiplier string hash wrapped to a signed 32-bit int."""
    h = 0
    for ch in symbol:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h >= (1 << 31) else h


def symbol_seed(symbol: str) -> float:
    """Stable pseudo-random number in [0, 1) for a symbol."""
    x = math.sin(symbol_hash(symbol)) * 10000
    return x - math.floor(x)


class FallbackGenerator:

    def __init__(
        self,
        base_price_min: Optional[float] = None,
        base_price_span: Optional[float] = None,
        seeded_history: Optional[bool] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.base_price_min = (
            settings.FALLBACK_BASE_PRICE_MIN if base_price_min is None else base_price_min
        )
        self.base_price_span = (
            settings.FALLBACK_BASE_PRICE_SPAN if base_price_span is None else base_price_span
        )
        self.seeded_history = (
            settings.FALLBACK_SEEDED_HISTORY if seeded_history is None else seeded_history
        )
        self.rng = rng or np.random.default_rng()

    def base_price(self, symbol: str) -> float:
        return self.base_price_min + symbol_seed(symbol) * self.base_price_span

    def quote(self, symbol: str) -> Quote:
        base = self.base_price(symbol)
        change = float(self.rng.uniform(-4.0, 6.0))
        current = base + change
        return Quote(
            symbol=symbol,
            current=current,
            change=change,
            change_percent=change / base * 100,
            high=current + 2,
            low=current - 2,
            open=base,
            previous_close=base,
            synthetic=True,
        )

    def profile(self, symbol: str) -> Profile:
        return Profile(
            symbol=symbol,
            name=f"{symbol} Inc.",
            industry="Technology",
            currency="USD",
            synthetic=True,
        )

    def lookup(self, symbol: str) -> SymbolMatch:
        return SymbolMatch(
            symbol=symbol,
            description=f"{symbol} Corp (Demo)",
            display_symbol=symbol,
            type="Common Stock",
            synthetic=True,
        )

    def history(self, symbol: str, resolution: str, from_ts: int, to_ts: int) -> CandleSeries:
        """One daily point per whole day in [from_ts, to_ts), starting at the base price."""
        days = max(0, (int(to_ts) - int(from_ts)) // SECONDS_PER_DAY)
        points = []
        price = self.base_price(symbol)
        for i in range(days):
            ts = int(from_ts) + i * SECONDS_PER_DAY
            if i > 0:
                price = max(MIN_PRICE, price + self._step(symbol, ts))
            points.append(PricePoint(timestamp=ts, close=price))
        return CandleSeries(symbol=symbol, resolution=resolution, points=points, synthetic=True)

    def _step(self, symbol: str, ts: int) -> float:
        if self.seeded_history:
            day = ts // SECONDS_PER_DAY
            rng = np.random.default_rng([symbol_hash(symbol) & 0xFFFFFFFF, day])
            return float(rng.uniform(-2.5, 2.5))
        return float(self.rng.uniform(-2.5, 2.5))
