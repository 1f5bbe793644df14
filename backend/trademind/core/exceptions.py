"""
Error taxonomy shared by the ledger, market data and persistence layers.
"""


class TradeMindError(Exception):
    pass


class InvalidArgument(TradeMindError, ValueError):
    """Non-positive quantity/price, unknown transaction kind, bad window."""


class NotFound(TradeMindError, LookupError):
    """Unknown holding."""


class UpstreamUnavailable(TradeMindError):
    """A market data provider failed; always converted to the fallback path."""


class MarketDataUnavailable(TradeMindError):
    """Both the provider and the fallback generator failed."""


class PersistenceUnavailable(TradeMindError):
    """A store tier failed. Surfaced only when every tier has failed."""
