from typing import Dict, Optional, Type

from trademind.core.config import settings
from trademind.services.market_data.alpaca_provider import AlpacaProvider
from trademind.services.market_data.base import MarketDataProvider
from trademind.services.market_data.finnhub_provider import FinnhubProvider
from trademind.services.market_data.yfinance_provider import YFinanceProvider

PROVIDERS: Dict[str, Type[MarketDataProvider]] = {
    cls.name: cls for cls in (FinnhubProvider, YFinanceProvider, AlpacaProvider)
}


def get_market_data_provider(name: Optional[str] = None) -> MarketDataProvider:
    """Build the provider named by `name`, or by MARKET_DATA_PROVIDER when omitted."""
    key = (name or settings.MARKET_DATA_PROVIDER).strip().lower()
    provider_class = PROVIDERS.get(key)
    if provider_class is None:
        raise ValueError(
            f"Unknown market data provider: {name!r} (expected one of {sorted(PROVIDERS)})"
        )
    return provider_class()
