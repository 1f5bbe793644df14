"""
In-memory store. Intended for tests; nothing persists past the process.
"""
from typing import Dict, List, Optional

from trademind.ledger.types import Holding, Transaction
from trademind.persistence.base import HoldingStore


class InMemoryHoldingStore(HoldingStore):
    name = "memory"

    def __init__(self) -> None:
        self.holdings: Dict[str, Holding] = {}
        self.transactions: Dict[str, List[Transaction]] = {}

    async def save_holding(self, holding: Holding) -> None:
        self.holdings[holding.id] = holding

    async def load_holding(self, holding_id: str) -> Optional[Holding]:
        return self.holdings.get(holding_id)

    async def load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        owned = [h for h in self.holdings.values() if h.owner_id == owner_id]
        return sorted(owned, key=lambda h: h.created_at, reverse=True)

    async def delete_holding(self, holding_id: str) -> bool:
        self.transactions.pop(holding_id, None)
        return self.holdings.pop(holding_id, None) is not None

    async def append_transaction(
        self, transaction: Transaction, owner_id: Optional[str] = None
    ) -> None:
        self.transactions.setdefault(transaction.holding_id, []).append(transaction)

    async def load_transactions_for_holding(self, holding_id: str) -> List[Transaction]:
        return list(self.transactions.get(holding_id, []))
