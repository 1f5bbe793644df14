import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from trademind.core.config import settings
from trademind.core.exceptions import InvalidArgument, MarketDataUnavailable
from trademind.services.market_data import get_market_data_provider
from trademind.services.market_data.base import (
    CandleSeries,
    MarketDataProvider,
    Profile,
    Quote,
    SymbolMatch,
)
from trademind.services.market_data.fallback import FallbackGenerator

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_HISTORY_DAYS = 365


class _TTLCache:
    def __init__(self, ttl_sec: float):
        self.ttl = ttl_sec
        self.data: Dict[str, tuple[float, Any]] = {}
        self.lock = threading.Lock()

    def get(self, key: str):
        if self.ttl <= 0:
            return None
        with self.lock:
            v = self.data.get(key)
            if not v:
                return None
            ts, payload = v
            if time.monotonic() - ts > self.ttl:
                self.data.pop(key, None)
                return None
            return payload

    def set(self, key: str, payload: Any):
        if self.ttl <= 0:
            return
        with self.lock:
            self.data[key] = (time.monotonic(), payload)


class MarketDataService:
    """
    Uniform, fail-soft access to quotes, profiles and history.

    Every call tries the provider first and falls back to synthetic data on
    any failure, so callers always get a usable result. Results built by the
    fallback carry synthetic=True. Only live quotes are cached.
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        fallback: Optional[FallbackGenerator] = None,
        quote_ttl_sec: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ):
        self.provider = provider or get_market_data_provider()
        self.fallback = fallback or FallbackGenerator()
        self._quotes = _TTLCache(
            settings.QUOTE_CACHE_TTL_SEC if quote_ttl_sec is None else quote_ttl_sec
        )
        self.max_concurrency = max(
            1, max_concurrency or settings.MARKET_DATA_MAX_CONCURRENCY
        )

    async def get_quote(self, symbol: str) -> Quote:
        symbol = self._normalize(symbol)
        cached = self._quotes.get(symbol)
        if cached is not None:
            return cached

        quote = await self._with_fallback(
            "quote",
            symbol,
            lambda: self.provider.fetch_quote(symbol),
            lambda: self.fallback.quote(symbol),
        )
        if not quote.synthetic:
            self._quotes.set(symbol, quote)
        return quote

    async def get_profile(self, symbol: str) -> Profile:
        symbol = self._normalize(symbol)
        return await self._with_fallback(
            "profile",
            symbol,
            lambda: self.provider.fetch_profile(symbol),
            lambda: self.fallback.profile(symbol),
        )

    async def lookup_symbol(self, symbol: str) -> Optional[SymbolMatch]:
        """None means the provider answered and found no listing."""
        symbol = self._normalize(symbol)
        return await self._with_fallback(
            "lookup",
            symbol,
            lambda: self.provider.lookup_symbol(symbol),
            lambda: self.fallback.lookup(symbol),
        )

    async def get_history(
        self,
        symbol: str,
        resolution: str = "D",
        from_ts: Optional[int] = None,
        to_ts: Optional[int] = None,
    ) -> CandleSeries:
        symbol = self._normalize(symbol)
        to_ts = int(to_ts if to_ts is not None else time.time())
        from_ts = int(from_ts if from_ts is not None else to_ts - DEFAULT_HISTORY_DAYS * 86400)
        if from_ts > to_ts:
            raise InvalidArgument(f"from ({from_ts}) is after to ({to_ts})")

        return await self._with_fallback(
            "history",
            symbol,
            lambda: self.provider.fetch_history(symbol, resolution, from_ts, to_ts),
            lambda: self.fallback.history(symbol, resolution, from_ts, to_ts),
        )

    async def refresh_quotes(self, symbols: Iterable[str]) -> Dict[str, Quote]:
        """
        Fetch quotes for many symbols concurrently.
        A symbol whose fetch fails outright is left out; the others still return.
        """
        unique = list(dict.fromkeys(self._normalize(s) for s in symbols))
        gate = asyncio.Semaphore(self.max_concurrency)

        async def fetch(symbol: str) -> Quote:
            async with gate:
                return await self.get_quote(symbol)

        results = await asyncio.gather(*[fetch(s) for s in unique], return_exceptions=True)

        quotes: Dict[str, Quote] = {}
        for symbol, result in zip(unique, results):
            if isinstance(result, Exception):
                logger.error(f"Quote refresh failed for {symbol}: {result}")
                continue
            quotes[symbol] = result
        return quotes

    async def close(self) -> None:
        await self.provider.close()

    async def _with_fallback(
        self,
        what: str,
        symbol: str,
        live: Callable[[], Awaitable[T]],
        synthetic: Callable[[], T],
    ) -> T:
        try:
            return await live()
        except Exception as exc:
            logger.warning(
                f"{self.provider.name} {what} failed for {symbol} ({exc}); using fallback"
            )
        try:
            return synthetic()
        except Exception as exc:
            logger.error(f"Fallback {what} failed for {symbol}: {exc}")
            raise MarketDataUnavailable(f"No {what} available for {symbol}") from exc

    @staticmethod
    def _normalize(symbol: str) -> str:
        if not symbol or not symbol.strip():
            raise InvalidArgument("symbol is required")
        return symbol.strip().upper()
