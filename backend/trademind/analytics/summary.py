from dataclasses import dataclass, field
from typing import Dict, Iterable

from trademind.ledger.types import Holding

UNCLASSIFIED_SECTOR = "Unclassified"


@dataclass(frozen=True)
class PortfolioSummary:
    holdings: int
    total_value: float
    total_cost: float
    unrealized_pnl: float
    unrealized_pnl_pct: float
    day_change: float
    day_change_pct: float
    # Market value per sector
    sector_allocation: Dict[str, float] = field(default_factory=dict)


def summarize(holdings: Iterable[Holding]) -> PortfolioSummary:
    """Aggregate market value, cost basis and P/L at each holding's last known price."""
    count = 0
    value = cost = previous_value = 0.0
    sectors: Dict[str, float] = {}
    for h in holdings:
        count += 1
        value += h.market_value
        cost += h.cost_basis
        previous_value += h.quantity * h.previous_close_price
        sector = h.sector or UNCLASSIFIED_SECTOR
        sectors[sector] = sectors.get(sector, 0.0) + h.market_value

    pnl = value - cost
    day_change = value - previous_value
    return PortfolioSummary(
        holdings=count,
        total_value=value,
        total_cost=cost,
        unrealized_pnl=pnl,
        unrealized_pnl_pct=(pnl / cost * 100) if cost else 0.0,
        day_change=day_change,
        day_change_pct=(day_change / previous_value * 100) if previous_value else 0.0,
        sector_allocation=sectors,
    )
