import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd
import yfinance as yf

from trademind.core.exceptions import UpstreamUnavailable
from trademind.services.market_data.base import (
    CandleSeries,
    MarketDataProvider,
    PricePoint,
    Profile,
    Quote,
    SymbolMatch,
)

logger = logging.getLogger(__name__)

# Finnhub-style resolution codes -> yfinance intervals
INTERVALS = {
    "1": "1m",
    "5": "5m",
    "15": "15m",
    "30": "30m",
    "60": "60m",
    "D": "1d",
    "W": "1wk",
    "M": "1mo",
}


class YFinanceProvider(MarketDataProvider):
    """yfinance provider. yfinance is blocking, so calls run in worker threads."""

    name = "yfinance"

    async def _call(self, what: str, symbol: str, fn, *args, **kwargs) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as exc:
            logger.debug(f"yfinance {what} error for {symbol}: {exc}")
            raise UpstreamUnavailable(f"yfinance {what} failed for {symbol}: {exc}") from exc

    async def fetch_quote(self, symbol: str) -> Quote:
        ticker = yf.Ticker(symbol)
        hist = await self._call("quote", symbol, ticker.history, period="5d")
        if hist is None or hist.empty:
            raise UpstreamUnavailable(f"No quote data for {symbol}")

        last_row = hist.iloc[-1]
        # history() is auto-adjusted by default, Close is the adjusted close
        current = float(last_row["Close"])
        previous_close = float(hist.iloc[-2]["Close"]) if len(hist) > 1 else float(last_row["Open"])
        change = current - previous_close
        return Quote(
            symbol=symbol,
            current=current,
            change=change,
            change_percent=(change / previous_close * 100) if previous_close else 0.0,
            high=float(last_row["High"]),
            low=float(last_row["Low"]),
            open=float(last_row["Open"]),
            previous_close=previous_close,
        )

    async def fetch_profile(self, symbol: str) -> Profile:
        info = await self._info(symbol)
        name = info.get("longName") or info.get("shortName")
        if not name:
            raise UpstreamUnavailable(f"Empty profile for {symbol}")
        return Profile(
            symbol=symbol,
            name=name,
            industry=info.get("industry") or info.get("sector") or "",
            currency=info.get("currency") or "USD",
            logo=info.get("logo_url") or "",
        )

    async def lookup_symbol(self, symbol: str) -> Optional[SymbolMatch]:
        info = await self._info(symbol)
        description = info.get("longName") or info.get("shortName")
        if not description:
            return None
        return SymbolMatch(
            symbol=symbol,
            description=description,
            display_symbol=info.get("symbol") or symbol,
            type=info.get("quoteType") or "",
        )

    async def fetch_history(
        self, symbol: str, resolution: str, from_ts: int, to_ts: int
    ) -> CandleSeries:
        interval = INTERVALS.get(resolution)
        if interval is None:
            raise UpstreamUnavailable(f"Unsupported resolution {resolution!r}")
        ticker = yf.Ticker(symbol)
        hist = await self._call(
            "history",
            symbol,
            ticker.history,
            start=datetime.fromtimestamp(from_ts, tz=timezone.utc),
            end=datetime.fromtimestamp(to_ts, tz=timezone.utc),
            interval=interval,
        )
        if hist is None or hist.empty or "Close" not in hist.columns:
            raise UpstreamUnavailable(f"No candle data for {symbol}")

        closes = hist["Close"].dropna()
        points = [
            PricePoint(timestamp=int(pd.Timestamp(idx).timestamp()), close=float(close))
            for idx, close in closes.items()
        ]
        return CandleSeries(symbol=symbol, resolution=resolution, points=points)

    async def _info(self, symbol: str) -> dict:
        ticker = yf.Ticker(symbol)
        info = await self._call("info", symbol, ticker.get_info)
        return dict(info or {})
