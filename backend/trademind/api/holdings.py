"""
Holdings API Router.
"""
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from trademind.api.deps import get_portfolio_service
from trademind.ledger.types import AdviceAction, TransactionKind
from trademind.services.portfolio_service import PortfolioService

router = APIRouter()

# ---------- Pydantic Schemas ----------

class AdvisorySchema(BaseModel):
    action: AdviceAction
    confidence: int
    reasoning: str
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class HoldingSchema(BaseModel):
    id: str
    owner_id: str
    symbol: str
    name: str
    sector: str
    quantity: float
    average_cost: float
    last_known_price: float
    previous_close_price: float
    market_value: float
    unrealized_pnl: float
    advisory: AdvisorySchema
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionSchema(BaseModel):
    id: str
    holding_id: str
    kind: TransactionKind
    quantity: float
    unit_price: float
    timestamp: datetime

    class Config:
        from_attributes = True


class HoldingCreate(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=128)
    symbol: str = Field(..., min_length=1, max_length=20)
    name: str = ""
    buy_price: float
    quantity: float
    current_price: Optional[float] = None
    sector: str = ""


class TransactionCreate(BaseModel):
    kind: TransactionKind
    quantity: float
    price: float


class TransactionResult(BaseModel):
    transaction: TransactionSchema
    holding: HoldingSchema


class SummarySchema(BaseModel):
    holdings: int
    total_value: float
    total_cost: float
    unrealized_pnl: float
    unrealized_pnl_pct: float
    day_change: float
    day_change_pct: float
    sector_allocation: Dict[str, float] = {}

    class Config:
        from_attributes = True


def _holding_out(holding) -> HoldingSchema:
    # Computed properties are read off the dataclass, not copied by asdict
    return HoldingSchema.model_validate(holding)


# ---------- Endpoints ----------

@router.post("", response_model=HoldingSchema)
async def create_holding(
    payload: HoldingCreate,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Open a holding with its initial buy."""
    holding = await service.create_holding(
        owner_id=payload.owner_id,
        symbol=payload.symbol,
        name=payload.name,
        buy_price=payload.buy_price,
        quantity=payload.quantity,
        current_price=payload.current_price,
        sector=payload.sector,
    )
    return _holding_out(holding)


@router.get("", response_model=list[HoldingSchema])
async def list_holdings(
    owner_id: str = Query(..., min_length=1),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Holdings for an owner, newest first."""
    return [_holding_out(h) for h in await service.list_holdings(owner_id)]


@router.get("/summary", response_model=SummarySchema)
async def get_summary(
    owner_id: str = Query(..., min_length=1),
    service: PortfolioService = Depends(get_portfolio_service),
):
    return await service.summarize(owner_id)


@router.post("/refresh", response_model=list[HoldingSchema])
async def refresh_prices(
    owner_id: str = Query(..., min_length=1),
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Refresh last known and previous close prices for every holding of an owner."""
    return [_holding_out(h) for h in await service.refresh_prices(owner_id)]


@router.get("/{holding_id}", response_model=HoldingSchema)
async def get_holding(
    holding_id: str,
    service: PortfolioService = Depends(get_portfolio_service),
):
    return _holding_out(await service.get_holding(holding_id))


@router.delete("/{holding_id}")
async def remove_holding(
    holding_id: str,
    service: PortfolioService = Depends(get_portfolio_service),
) -> dict[str, bool]:
    removed = await service.remove_holding(holding_id)
    return {"success": True, "removed": removed}


@router.get("/{holding_id}/transactions", response_model=list[TransactionSchema])
async def list_transactions(
    holding_id: str,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Transaction log, most recent first."""
    return await service.list_transactions(holding_id)


@router.post("/{holding_id}/transactions", response_model=TransactionResult)
async def apply_transaction(
    holding_id: str,
    payload: TransactionCreate,
    service: PortfolioService = Depends(get_portfolio_service),
):
    txn, holding = await service.apply_transaction(
        holding_id, payload.kind, payload.quantity, payload.price
    )
    return TransactionResult(
        transaction=TransactionSchema.model_validate(txn),
        holding=_holding_out(holding),
    )


@router.post("/{holding_id}/advisory", response_model=HoldingSchema)
async def refresh_advisory(
    holding_id: str,
    service: PortfolioService = Depends(get_portfolio_service),
):
    return _holding_out(await service.refresh_advisory(holding_id))


@router.get("/{holding_id}/verify")
async def verify_holding(
    holding_id: str,
    service: PortfolioService = Depends(get_portfolio_service),
) -> dict[str, bool]:
    """Check the stored view against a replay of the transaction log."""
    return {"consistent": await service.ledger.verify(holding_id)}
