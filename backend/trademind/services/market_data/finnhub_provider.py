import logging
from typing import Any, Optional

import httpx

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


class FinnhubProvider(MarketDataProvider):
    """Finnhub REST provider for quotes, company profiles and daily candles."""

    name = "finnhub"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = settings.FINNHUB_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.FINNHUB_BASE_URL).rstrip("/")
        self.timeout_sec = (
            settings.MARKET_DATA_TIMEOUT_SEC if timeout_sec is None else timeout_sec
        )
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_sec)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        query = dict(params, token=self.api_key)
        try:
            resp = await self._get_client().get(f"{self.base_url}{path}", params=query)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.debug(f"Finnhub {path} status {exc.response.status_code}")
            raise UpstreamUnavailable(
                f"Finnhub {path} returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"Finnhub {path} request failed: {exc}") from exc
        except ValueError as exc:
            raise UpstreamUnavailable(f"Finnhub {path} returned invalid JSON") from exc

    async def fetch_quote(self, symbol: str) -> Quote:
        data = await self._get("/quote", {"symbol": symbol})
        try:
            current = float(data["c"])
            previous_close = float(data["pc"])
            quote = Quote(
                symbol=symbol,
                current=current,
                change=float(data.get("d") or 0.0),
                change_percent=float(data.get("dp") or 0.0),
                high=float(data["h"]),
                low=float(data["l"]),
                open=float(data["o"]),
                previous_close=previous_close,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed quote payload for {symbol}") from exc
        # Finnhub answers unknown symbols with an all-zero quote
        if current == 0 and previous_close == 0:
            raise UpstreamUnavailable(f"No quote data for {symbol}")
        return quote

    async def fetch_profile(self, symbol: str) -> Profile:
        data = await self._get("/stock/profile2", {"symbol": symbol})
        if not isinstance(data, dict) or not data:
            raise UpstreamUnavailable(f"Empty profile for {symbol}")
        return Profile(
            symbol=data.get("ticker") or symbol,
            name=data.get("name") or symbol,
            industry=data.get("finnhubIndustry") or "",
            currency=data.get("currency") or "USD",
            logo=data.get("logo") or "",
        )

    async def lookup_symbol(self, symbol: str) -> Optional[SymbolMatch]:
        data = await self._get("/search", {"q": symbol})
        try:
            results = data.get("result") or []
            if not data.get("count") or not results:
                return None
            match = next((r for r in results if r.get("symbol") == symbol), results[0])
            return SymbolMatch(
                symbol=match["symbol"],
                description=match.get("description", ""),
                display_symbol=match.get("displaySymbol", match["symbol"]),
                type=match.get("type", ""),
            )
        except (AttributeError, KeyError, TypeError) as exc:
            raise UpstreamUnavailable(f"Malformed search payload for {symbol}") from exc

    async def fetch_history(
        self, symbol: str, resolution: str, from_ts: int, to_ts: int
    ) -> CandleSeries:
        data = await self._get(
            "/stock/candle",
            {"symbol": symbol, "resolution": resolution, "from": from_ts, "to": to_ts},
        )
        if not isinstance(data, dict) or data.get("s") == "no_data":
            raise UpstreamUnavailable(f"No candle data for {symbol}")
        closes = data.get("c") or []
        stamps = data.get("t") or []
        if not closes or len(closes) != len(stamps):
            raise UpstreamUnavailable(f"Malformed candle payload for {symbol}")
        points = sorted(
            (PricePoint(timestamp=int(t), close=float(c)) for t, c in zip(stamps, closes)),
            key=lambda p: p.timestamp,
        )
        return CandleSeries(symbol=symbol, resolution=resolution, points=points)
