import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from alpaca.data import StockHistoricalDataClient
from alpaca.data.requests import StockBarsRequest, StockSnapshotRequest
from alpaca.data.timeframe import TimeFrame, TimeFrameUnit

from trademind.core.config import settings
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

TIMEFRAMES = {
    "1": TimeFrame(1, TimeFrameUnit.Minute),
    "5": TimeFrame(5, TimeFrameUnit.Minute),
    "15": TimeFrame(15, TimeFrameUnit.Minute),
    "30": TimeFrame(30, TimeFrameUnit.Minute),
    "60": TimeFrame(1, TimeFrameUnit.Hour),
    "D": TimeFrame(1, TimeFrameUnit.Day),
    "W": TimeFrame(1, TimeFrameUnit.Week),
    "M": TimeFrame(1, TimeFrameUnit.Month),
}


class AlpacaProvider(MarketDataProvider):
    """
    Alpaca market data provider.
    Uses trademind.core.config settings for credentials. Alpaca's data API
    has no company profiles, so profile and lookup calls always defer to the
    fallback path.
    """

    name = "alpaca"

    def __init__(self, api_key: Optional[str] = None, secret_key: Optional[str] = None):
        self.api_key = settings.ALPACA_API_KEY if api_key is None else api_key
        self.secret_key = settings.ALPACA_SECRET_KEY if secret_key is None else secret_key
        self._client: Optional[StockHistoricalDataClient] = None

    def _get_client(self) -> StockHistoricalDataClient:
        if not self.api_key or not self.secret_key:
            raise UpstreamUnavailable("Alpaca credentials are not configured")
        if self._client is None:
            self._client = StockHistoricalDataClient(
                api_key=self.api_key, secret_key=self.secret_key
            )
        return self._client

    async def _call(self, what: str, symbol: str, fn, *args) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as exc:
            logger.debug(f"Alpaca {what} error for {symbol}: {exc}")
            raise UpstreamUnavailable(f"Alpaca {what} failed for {symbol}: {exc}") from exc

    async def fetch_quote(self, symbol: str) -> Quote:
        client = self._get_client()
        snapshots = await self._call(
            "snapshot",
            symbol,
            client.get_stock_snapshot,
            StockSnapshotRequest(symbol_or_symbols=symbol),
        )
        snap = snapshots.get(symbol) if snapshots else None
        if snap is None or snap.daily_bar is None:
            raise UpstreamUnavailable(f"No snapshot for {symbol}")

        bar = snap.daily_bar
        current = float(snap.latest_trade.price) if snap.latest_trade else float(bar.close)
        previous_close = (
            float(snap.previous_daily_bar.close) if snap.previous_daily_bar else float(bar.open)
        )
        change = current - previous_close
        return Quote(
            symbol=symbol,
            current=current,
            change=change,
            change_percent=(change / previous_close * 100) if previous_close else 0.0,
            high=float(bar.high),
            low=float(bar.low),
            open=float(bar.open),
            previous_close=previous_close,
        )

    async def fetch_profile(self, symbol: str) -> Profile:
        raise UpstreamUnavailable("Alpaca does not provide company profiles")

    async def lookup_symbol(self, symbol: str) -> Optional[SymbolMatch]:
        raise UpstreamUnavailable("Alpaca does not provide symbol search")

    async def fetch_history(
        self, symbol: str, resolution: str, from_ts: int, to_ts: int
    ) -> CandleSeries:
        timeframe = TIMEFRAMES.get(resolution)
        if timeframe is None:
            raise UpstreamUnavailable(f"Unsupported resolution {resolution!r}")
        client = self._get_client()
        request = StockBarsRequest(
            symbol_or_symbols=symbol,
            start=datetime.fromtimestamp(from_ts, tz=timezone.utc),
            end=datetime.fromtimestamp(to_ts, tz=timezone.utc),
            timeframe=timeframe,
        )
        bars = await self._call("bars", symbol, client.get_stock_bars, request)

        # Alpaca SDK returns a MultiIndex DataFrame (symbol, timestamp)
        df = bars.df.reset_index() if bars is not None else None
        if df is None or df.empty:
            raise UpstreamUnavailable(f"No candle data for {symbol}")

        df = df.sort_values("timestamp")
        points = [
            PricePoint(timestamp=int(ts.timestamp()), close=float(close))
            for ts, close in zip(df["timestamp"], df["close"])
        ]
        return CandleSeries(symbol=symbol, resolution=resolution, points=points)
