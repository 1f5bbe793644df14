"""
Advisory collaborator interface.

Recommendations are produced outside the core (e.g. by an LLM service); the
core only stores the latest one on the holding as an opaque annotation.
"""
from abc import ABC, abstractmethod

from trademind.ledger.types import AdviceAction, Advisory, utcnow


class AdvisoryProvider(ABC):

    @abstractmethod
    async def analyze(
        self, symbol: str, buy_price: float, current_price: float, sector: str
    ) -> Advisory:
        pass


class UnavailableAdvisor(AdvisoryProvider):
    """Used when no analysis backend is configured."""

    async def analyze(
        self, symbol: str, buy_price: float, current_price: float, sector: str
    ) -> Advisory:
        return Advisory(
            action=AdviceAction.UNKNOWN,
            confidence=0,
            reasoning="No advisory backend configured. Cannot generate advice.",
            updated_at=utcnow(),
        )


def failed_advisory() -> Advisory:
    return Advisory(
        action=AdviceAction.HOLD,
        confidence=0,
        reasoning="Analysis unavailable",
        updated_at=utcnow(),
    )
