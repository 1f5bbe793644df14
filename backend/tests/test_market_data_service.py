import numpy as np
import pytest

from helpers.fakes import FakeProvider
from trademind.core.exceptions import InvalidArgument, MarketDataUnavailable
from trademind.services.market_data.fallback import FallbackGenerator
from trademind.services.market_data_service import MarketDataService

DAY = 86400
T0 = 1_704_067_200


class ExplodingFallback(FallbackGenerator):
    def quote(self, symbol):
        raise RuntimeError("generator broken")


@pytest.mark.asyncio
async def test_live_quote_is_normalized_and_cached(market_data, fake_provider):
    first = await market_data.get_quote(" aapl ")
    second = await market_data.get_quote("AAPL")

    assert first.symbol == "AAPL"
    assert first.current == 190.0
    assert not first.synthetic
    assert second is first
    assert fake_provider.calls[("quote", "AAPL")] == 1


@pytest.mark.asyncio
async def test_zero_ttl_disables_cache(fake_provider, fallback):
    service = MarketDataService(provider=fake_provider, fallback=fallback, quote_ttl_sec=0)
    await service.get_quote("AAPL")
    await service.get_quote("AAPL")
    assert fake_provider.calls[("quote", "AAPL")] == 2


@pytest.mark.asyncio
async def test_failed_upstream_serves_synthetic_quote(fallback):
    provider = FakeProvider(failing={"ABC"})
    service = MarketDataService(provider=provider, fallback=fallback, quote_ttl_sec=60)

    quote = await service.get_quote("ABC")
    assert quote.synthetic
    assert quote.previous_close == fallback.base_price("ABC")

    # synthetic quotes are not cached
    await service.get_quote("ABC")
    assert provider.calls[("quote", "ABC")] == 2


@pytest.mark.asyncio
async def test_failed_upstream_history_is_anchored_on_base_price():
    provider = FakeProvider(failing={"*"})
    a = MarketDataService(provider=provider, fallback=FallbackGenerator())
    b = MarketDataService(provider=provider, fallback=FallbackGenerator())

    first = await a.get_history("ABC", from_ts=T0, to_ts=T0 + 30 * DAY)
    second = await b.get_history("ABC", from_ts=T0, to_ts=T0 + 30 * DAY)

    assert first.synthetic and second.synthetic
    assert first.points[0].close == second.points[0].close
    assert first.points[0].close == FallbackGenerator().base_price("ABC")


@pytest.mark.asyncio
async def test_live_history_passes_through(market_data):
    series = await market_data.get_history("msft", from_ts=T0, to_ts=T0 + 10 * DAY)
    assert not series.synthetic
    assert series.closes == [410.0, 411.0, 412.0, 413.0, 414.0]


@pytest.mark.asyncio
async def test_history_defaults_to_one_year():
    provider = FakeProvider(failing={"*"})
    service = MarketDataService(provider=provider, fallback=FallbackGenerator(rng=np.random.default_rng(3)))
    series = await service.get_history("ABC", to_ts=T0)
    assert len(series.points) == 365
    assert series.points[-1].timestamp == T0 - DAY


@pytest.mark.asyncio
async def test_history_rejects_inverted_range(market_data):
    with pytest.raises(InvalidArgument):
        await market_data.get_history("AAPL", from_ts=T0 + DAY, to_ts=T0)


@pytest.mark.asyncio
async def test_profile_and_lookup(market_data):
    profile = await market_data.get_profile("AAPL")
    assert profile.name == "AAPL Holdings"
    assert not profile.synthetic

    assert (await market_data.lookup_symbol("MSFT")).symbol == "MSFT"
    assert await market_data.lookup_symbol("NOPE") is None


@pytest.mark.asyncio
async def test_lookup_falls_back_when_upstream_is_down(fallback):
    service = MarketDataService(provider=FakeProvider(failing={"*"}), fallback=fallback)
    match = await service.lookup_symbol("XYZ")
    assert match.synthetic
    assert match.description == "XYZ Corp (Demo)"


@pytest.mark.asyncio
async def test_blank_symbol_rejected(market_data):
    with pytest.raises(InvalidArgument):
        await market_data.get_quote("   ")


@pytest.mark.asyncio
async def test_fallback_failure_raises_unavailable():
    service = MarketDataService(provider=FakeProvider(failing={"*"}), fallback=ExplodingFallback())
    with pytest.raises(MarketDataUnavailable):
        await service.get_quote("ABC")


@pytest.mark.asyncio
async def test_refresh_quotes_isolates_failures():
    provider = FakeProvider(prices={"AAPL": 190.0, "MSFT": 410.0}, failing={"BAD"})
    service = MarketDataService(provider=provider, fallback=ExplodingFallback(), max_concurrency=2)

    quotes = await service.refresh_quotes(["aapl", "BAD", "MSFT", "AAPL"])

    assert set(quotes) == {"AAPL", "MSFT"}
    assert quotes["MSFT"].current == 410.0
    assert provider.calls[("quote", "AAPL")] == 1


@pytest.mark.asyncio
async def test_close_closes_provider(market_data, fake_provider):
    await market_data.close()
    assert fake_provider.closed
