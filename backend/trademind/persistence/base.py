from abc import ABC, abstractmethod
from typing import List, Optional

from trademind.ledger.types import Holding, Transaction


class HoldingStore(ABC):
    """Durable storage for holdings and their transaction logs."""

    name: str = "store"

    @abstractmethod
    async def save_holding(self, holding: Holding) -> None:
        """Insert or replace the holding's materialized view."""
        pass

    @abstractmethod
    async def load_holding(self, holding_id: str) -> Optional[Holding]:
        pass

    @abstractmethod
    async def load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        """Holdings owned by owner_id, newest first."""
        pass

    @abstractmethod
    async def delete_holding(self, holding_id: str) -> bool:
        """Delete a holding and its transactions. Returns whether it existed."""
        pass

    @abstractmethod
    async def append_transaction(
        self, transaction: Transaction, owner_id: Optional[str] = None
    ) -> None:
        """Append to the log. owner_id is a hint for stores bucketed by owner."""
        pass

    @abstractmethod
    async def load_transactions_for_holding(self, holding_id: str) -> List[Transaction]:
        """Transactions for holding_id, oldest first."""
        pass
