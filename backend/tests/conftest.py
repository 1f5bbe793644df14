import os

# Settings are read at import time; keep tests off any real database or API.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FINNHUB_API_KEY", "test-token")
os.environ.setdefault("QUOTE_CACHE_TTL_SEC", "60")

import numpy as np
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from helpers.fakes import FakeProvider
from trademind.core.database import init_db
from trademind.ledger.position_ledger import PositionLedger
from trademind.ledger.types import OversellPolicy
from trademind.persistence.local_store import LocalFileStore
from trademind.persistence.memory_store import InMemoryHoldingStore
from trademind.persistence.sql_store import SqlHoldingStore
from trademind.services.market_data.fallback import FallbackGenerator
from trademind.services.market_data_service import MarketDataService
from trademind.services.portfolio_service import PortfolioService


@pytest.fixture
def memory_store():
    return InMemoryHoldingStore()


@pytest.fixture
def ledger(memory_store):
    return PositionLedger(memory_store, oversell_policy=OversellPolicy.CLAMP)


@pytest.fixture
def fake_provider():
    return FakeProvider(prices={"AAPL": 190.0, "MSFT": 410.0})


@pytest.fixture
def fallback():
    return FallbackGenerator(rng=np.random.default_rng(7))


@pytest.fixture
def market_data(fake_provider, fallback):
    return MarketDataService(provider=fake_provider, fallback=fallback, quote_ttl_sec=60)


@pytest.fixture
def portfolio(ledger, market_data):
    return PortfolioService(ledger=ledger, market_data=market_data)


@pytest.fixture
def local_store(tmp_path):
    return LocalFileStore(root=tmp_path / "local")


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'trademind.db'}")
    await init_db(bind=engine)
    yield SqlHoldingStore(async_sessionmaker(engine, expire_on_commit=False))
    await engine.dispose()
