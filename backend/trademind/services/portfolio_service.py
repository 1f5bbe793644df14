"""
Portfolio service: the command/query surface used by the presentation layer.

Combines the position ledger (authoritative quantities and cost basis) with
market data (prices for valuation) and the advisory collaborator.
"""
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from trademind.analytics.summary import PortfolioSummary, summarize
from trademind.core.exceptions import InvalidArgument, NotFound
from trademind.ledger.position_ledger import PositionLedger
from trademind.ledger.types import Holding, Transaction, TransactionKind, utcnow
from trademind.services.advisory import AdvisoryProvider, UnavailableAdvisor, failed_advisory
from trademind.services.market_data_service import MarketDataService

logger = logging.getLogger(__name__)


class PortfolioService:

    def __init__(
        self,
        ledger: PositionLedger,
        market_data: MarketDataService,
        advisor: Optional[AdvisoryProvider] = None,
    ):
        self.ledger = ledger
        self.market_data = market_data
        self.advisor = advisor or UnavailableAdvisor()

    async def create_holding(
        self,
        owner_id: str,
        symbol: str,
        name: str,
        buy_price: float,
        quantity: float,
        current_price: Optional[float] = None,
        sector: str = "",
    ) -> Holding:
        if not owner_id:
            raise InvalidArgument("owner_id is required")
        return await self.ledger.open(
            owner_id=owner_id,
            symbol=symbol,
            name=name,
            sector=sector,
            quantity=quantity,
            unit_price=buy_price,
            current_price=current_price,
        )

    async def apply_transaction(
        self,
        holding_id: str,
        kind: TransactionKind | str,
        quantity: float,
        price: float,
    ) -> Tuple[Transaction, Holding]:
        holding, txn = await self.ledger.apply(holding_id, kind, quantity, price)
        return txn, holding

    async def list_holdings(self, owner_id: str) -> List[Holding]:
        return await self.ledger.store.load_holdings_for_owner(owner_id)

    async def list_transactions(self, holding_id: str) -> List[Transaction]:
        """Most recent first."""
        log = await self.ledger.transactions(holding_id)
        if not log:
            # Distinguish an unknown holding from an empty log
            await self.ledger.get(holding_id)
        return log[::-1]

    async def remove_holding(self, holding_id: str) -> bool:
        return await self.ledger.remove(holding_id)

    async def get_holding(self, holding_id: str) -> Holding:
        return await self.ledger.get(holding_id)

    async def refresh_prices(self, owner_id: str) -> List[Holding]:
        """
        Pull a quote per distinct symbol and store it on every matching holding.
        A failure on one holding leaves the others updated.
        """
        holdings = await self.list_holdings(owner_id)
        if not holdings:
            return []
        quotes = await self.market_data.refresh_quotes(h.symbol for h in holdings)

        async def update(holding: Holding) -> Holding:
            quote = quotes.get(holding.symbol)
            if quote is None:
                return holding
            return await self.ledger.update_market_prices(
                holding.id, quote.current, quote.previous_close
            )

        results = await asyncio.gather(*[update(h) for h in holdings], return_exceptions=True)

        refreshed: List[Holding] = []
        for holding, result in zip(holdings, results):
            if isinstance(result, NotFound):
                # Removed while the refresh was in flight
                continue
            if isinstance(result, Exception):
                logger.error(f"Price update failed for {holding.symbol} ({holding.id}): {result}")
                refreshed.append(holding)
                continue
            refreshed.append(result)
        return refreshed

    async def refresh_advisory(self, holding_id: str) -> Holding:
        holding = await self.ledger.get(holding_id)
        try:
            advisory = await self.advisor.analyze(
                holding.symbol,
                holding.average_cost,
                holding.last_known_price,
                holding.sector,
            )
            advisory = replace(
                advisory,
                confidence=max(0, min(100, int(advisory.confidence))),
                updated_at=advisory.updated_at or utcnow(),
            )
        except Exception as exc:
            logger.error(f"Advisory analysis failed for {holding.symbol}: {exc}")
            advisory = failed_advisory()
        return await self.ledger.set_advisory(holding_id, advisory)

    async def summarize(self, owner_id: str) -> PortfolioSummary:
        return summarize(await self.list_holdings(owner_id))
