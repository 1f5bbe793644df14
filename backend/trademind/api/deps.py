"""
Service wiring for the API.

Builds one ledger/market-data stack per process: SQL primary store with the
local file store as fallback.
"""
from functools import lru_cache

from trademind.ledger.position_ledger import PositionLedger
from trademind.persistence.local_store import LocalFileStore
from trademind.persistence.sql_store import SqlHoldingStore
from trademind.persistence.tiered import TieredHoldingStore
from trademind.services.market_data_service import MarketDataService
from trademind.services.portfolio_service import PortfolioService


@lru_cache
def get_market_data_service() -> MarketDataService:
    return MarketDataService()


@lru_cache
def get_portfolio_service() -> PortfolioService:
    store = TieredHoldingStore(primary=SqlHoldingStore(), fallback=LocalFileStore())
    return PortfolioService(
        ledger=PositionLedger(store),
        market_data=get_market_data_service(),
    )
