"""
Market data API Router.

Every response carries a ``synthetic`` flag; it is true when the upstream
provider was unreachable and the demo generator answered instead.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from trademind.analytics.overlays import overlay
from trademind.api.deps import get_market_data_service
from trademind.core.exceptions import NotFound
from trademind.services.market_data_service import MarketDataService

router = APIRouter()

# ---------- Pydantic Schemas ----------

class QuoteSchema(BaseModel):
    symbol: str
    current: float
    change: float
    change_percent: float
    high: float
    low: float
    open: float
    previous_close: float
    synthetic: bool

    class Config:
        from_attributes = True


class ProfileSchema(BaseModel):
    symbol: str
    name: str
    industry: str
    currency: str
    logo: str
    synthetic: bool

    class Config:
        from_attributes = True


class SymbolMatchSchema(BaseModel):
    symbol: str
    description: str
    display_symbol: str
    type: str
    synthetic: bool

    class Config:
        from_attributes = True


class HistoryPointSchema(BaseModel):
    timestamp: int
    close: float
    averages: Dict[int, Optional[float]] = {}


class HistorySchema(BaseModel):
    symbol: str
    resolution: str
    synthetic: bool
    points: List[HistoryPointSchema]


# ---------- Endpoints ----------

@router.get("/{symbol}/quote", response_model=QuoteSchema)
async def get_quote(
    symbol: str,
    service: MarketDataService = Depends(get_market_data_service),
):
    return await service.get_quote(symbol)


@router.get("/{symbol}/profile", response_model=ProfileSchema)
async def get_profile(
    symbol: str,
    service: MarketDataService = Depends(get_market_data_service),
):
    return await service.get_profile(symbol)


@router.get("/{symbol}/lookup", response_model=SymbolMatchSchema)
async def lookup_symbol(
    symbol: str,
    service: MarketDataService = Depends(get_market_data_service),
):
    match = await service.lookup_symbol(symbol)
    if match is None:
        raise NotFound(f"No listing found for {symbol.upper()}")
    return match


@router.get("/{symbol}/history", response_model=HistorySchema)
async def get_history(
    symbol: str,
    resolution: str = Query("D"),
    from_ts: Optional[int] = Query(None, alias="from"),
    to_ts: Optional[int] = Query(None, alias="to"),
    ma: List[int] = Query(default=[]),
    service: MarketDataService = Depends(get_market_data_service),
):
    """
    Close-price history, optionally with trailing moving averages.

    Pass ``ma`` once per window, e.g. ``?ma=50&ma=200``.
    """
    series = await service.get_history(symbol, resolution, from_ts, to_ts)
    points = overlay(series, ma)
    return HistorySchema(
        symbol=series.symbol,
        resolution=series.resolution,
        synthetic=series.synthetic,
        points=[
            HistoryPointSchema(timestamp=p.timestamp, close=p.close, averages=p.averages)
            for p in points
        ],
    )
