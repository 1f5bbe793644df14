import pytest

from helpers.fakes import FakeProvider
from trademind.core.exceptions import InvalidArgument, NotFound
from trademind.ledger.types import AdviceAction, Advisory, TransactionKind
from trademind.services.advisory import AdvisoryProvider
from trademind.services.market_data_service import MarketDataService
from trademind.services.portfolio_service import PortfolioService


class OverconfidentAdvisor(AdvisoryProvider):
    async def analyze(self, symbol, buy_price, current_price, sector):
        return Advisory(action=AdviceAction.BUY, confidence=150, reasoning=f"{symbol} looks cheap")


class BrokenAdvisor(AdvisoryProvider):
    async def analyze(self, symbol, buy_price, current_price, sector):
        raise TimeoutError("model did not answer")


@pytest.mark.asyncio
async def test_create_and_trade(portfolio):
    holding = await portfolio.create_holding("owner-1", "aapl", "Apple", buy_price=100, quantity=10)
    assert holding.symbol == "AAPL"

    txn, holding = await portfolio.apply_transaction(holding.id, "BUY", 10, 200)
    assert txn.kind == TransactionKind.BUY
    assert holding.average_cost == pytest.approx(150.0)

    txn, holding = await portfolio.apply_transaction(holding.id, "SELL", 25, 180)
    assert holding.quantity == 0


@pytest.mark.asyncio
async def test_owner_is_required(portfolio):
    with pytest.raises(InvalidArgument):
        await portfolio.create_holding("", "AAPL", "Apple", buy_price=1, quantity=1)


@pytest.mark.asyncio
async def test_transactions_listed_most_recent_first(portfolio):
    holding = await portfolio.create_holding("o", "AAPL", "", buy_price=100, quantity=1)
    await portfolio.apply_transaction(holding.id, "BUY", 2, 110)
    await portfolio.apply_transaction(holding.id, "SELL", 1, 120)

    log = await portfolio.list_transactions(holding.id)
    assert [t.kind for t in log] == [TransactionKind.SELL, TransactionKind.BUY, TransactionKind.BUY]
    assert log[0].timestamp >= log[-1].timestamp


@pytest.mark.asyncio
async def test_transactions_for_unknown_holding(portfolio):
    with pytest.raises(NotFound):
        await portfolio.list_transactions("missing")


@pytest.mark.asyncio
async def test_list_and_remove(portfolio):
    first = await portfolio.create_holding("o", "AAPL", "", buy_price=100, quantity=1)
    second = await portfolio.create_holding("o", "MSFT", "", buy_price=300, quantity=1)
    await portfolio.create_holding("someone-else", "TSLA", "", buy_price=200, quantity=1)

    listed = await portfolio.list_holdings("o")
    assert {h.id for h in listed} == {first.id, second.id}

    assert await portfolio.remove_holding(first.id) is True
    assert [h.id for h in await portfolio.list_holdings("o")] == [second.id]
    with pytest.raises(NotFound):
        await portfolio.get_holding(first.id)


@pytest.mark.asyncio
async def test_refresh_prices_updates_every_holding(ledger, fallback):
    provider = FakeProvider(prices={"AAPL": 190.0}, failing={"ABC"})
    service = PortfolioService(ledger, MarketDataService(provider=provider, fallback=fallback))
    aapl = await service.create_holding("o", "AAPL", "", buy_price=150, quantity=2)
    abc = await service.create_holding("o", "ABC", "", buy_price=100, quantity=1)

    refreshed = {h.id: h for h in await service.refresh_prices("o")}

    assert refreshed[aapl.id].last_known_price == 190.0
    assert refreshed[aapl.id].previous_close_price == 189.0
    assert refreshed[aapl.id].average_cost == 150
    assert refreshed[abc.id].previous_close_price == fallback.base_price("ABC")
    assert provider.calls[("quote", "AAPL")] == 1


@pytest.mark.asyncio
async def test_refresh_prices_for_empty_portfolio(portfolio):
    assert await portfolio.refresh_prices("nobody") == []


@pytest.mark.asyncio
async def test_default_advisor_marks_unknown(portfolio):
    holding = await portfolio.create_holding("o", "AAPL", "", buy_price=100, quantity=1)
    updated = await portfolio.refresh_advisory(holding.id)
    assert updated.advisory.action == AdviceAction.UNKNOWN
    assert updated.advisory.confidence == 0


@pytest.mark.asyncio
async def test_advisory_confidence_clamped(ledger, market_data):
    service = PortfolioService(ledger, market_data, advisor=OverconfidentAdvisor())
    holding = await service.create_holding("o", "AAPL", "", buy_price=100, quantity=1)

    updated = await service.refresh_advisory(holding.id)

    assert updated.advisory.action == AdviceAction.BUY
    assert updated.advisory.confidence == 100
    assert updated.advisory.updated_at is not None


@pytest.mark.asyncio
async def test_advisory_failure_stores_hold(ledger, market_data):
    service = PortfolioService(ledger, market_data, advisor=BrokenAdvisor())
    holding = await service.create_holding("o", "AAPL", "", buy_price=100, quantity=1)

    updated = await service.refresh_advisory(holding.id)

    assert updated.advisory.action == AdviceAction.HOLD
    assert updated.advisory.reasoning == "Analysis unavailable"
    assert updated.quantity == holding.quantity


@pytest.mark.asyncio
async def test_summarize(portfolio):
    await portfolio.create_holding("o", "AAPL", "", buy_price=100, quantity=10, current_price=120)
    summary = await portfolio.summarize("o")
    assert summary.total_value == pytest.approx(1200)
    assert summary.unrealized_pnl == pytest.approx(200)
