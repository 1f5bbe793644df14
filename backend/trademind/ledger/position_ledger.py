"""
Position ledger.

Owns mutation of holdings: validates commands, applies the cost-basis
arithmetic and records the result through the injected store. All writes
to one holding go through that holding's asyncio.Lock, so two buys can never
interleave their average-cost recomputation. Different holdings proceed in
parallel.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from trademind.core.config import settings
from trademind.core.exceptions import InvalidArgument, NotFound
from trademind.ledger import arithmetic
from trademind.ledger.types import (
    Advisory,
    Holding,
    OversellPolicy,
    Transaction,
    TransactionKind,
)
from trademind.persistence.base import HoldingStore

logger = logging.getLogger(__name__)


class PositionLedger:

    def __init__(
        self,
        store: HoldingStore,
        oversell_policy: Optional[OversellPolicy] = None,
    ):
        self.store = store
        self.oversell_policy = oversell_policy or OversellPolicy(settings.OVERSELL_POLICY)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, holding_id: str) -> asyncio.Lock:
        lock = self._locks.get(holding_id)
        if lock is None:
            lock = self._locks[holding_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _locked(self, holding_id: str):
        try:
            async with self._lock_for(holding_id):
                yield
        except NotFound:
            # Unknown ids do not keep a lock around
            self._locks.pop(holding_id, None)
            raise

    async def _require(self, holding_id: str) -> Holding:
        holding = await self.store.load_holding(holding_id)
        if holding is None:
            raise NotFound(f"Holding {holding_id} not found")
        return holding

    async def _record(self, holding: Holding, txn: Transaction) -> None:
        # Log first: a stale view can always be rebuilt from the log
        await self.store.append_transaction(txn, owner_id=holding.owner_id)
        await self.store.save_holding(holding)

    async def open(
        self,
        owner_id: str,
        symbol: str,
        name: str,
        sector: str,
        quantity: float,
        unit_price: float,
        current_price: Optional[float] = None,
    ) -> Holding:
        holding, txn = arithmetic.open_position(
            owner_id, symbol, name, sector, quantity, unit_price, current_price
        )
        async with self._lock_for(holding.id):
            await self._record(holding, txn)
        logger.info(f"Opened {holding.symbol} for {owner_id}: {quantity} @ {unit_price}")
        return holding

    async def apply_buy(
        self, holding_id: str, quantity: float, unit_price: float
    ) -> Tuple[Holding, Transaction]:
        arithmetic.validate_amounts(quantity, unit_price)
        async with self._locked(holding_id):
            current = await self._require(holding_id)
            holding, txn = arithmetic.buy(current, quantity, unit_price)
            await self._record(holding, txn)
        logger.info(
            f"BUY {quantity} {holding.symbol} @ {unit_price}: "
            f"qty={holding.quantity} avg_cost={holding.average_cost:.4f}"
        )
        return holding, txn

    async def apply_sell(
        self, holding_id: str, quantity: float, unit_price: float
    ) -> Tuple[Holding, Transaction]:
        arithmetic.validate_amounts(quantity, unit_price)
        async with self._locked(holding_id):
            current = await self._require(holding_id)
            holding, txn = arithmetic.sell(
                current, quantity, unit_price, policy=self.oversell_policy
            )
            await self._record(holding, txn)
        logger.info(f"SELL {quantity} {holding.symbol} @ {unit_price}: qty={holding.quantity}")
        return holding, txn

    async def apply(
        self, holding_id: str, kind: TransactionKind | str, quantity: float, unit_price: float
    ) -> Tuple[Holding, Transaction]:
        try:
            kind = TransactionKind(kind)
        except ValueError:
            raise InvalidArgument(f"Unknown transaction kind: {kind!r}")
        if kind == TransactionKind.BUY:
            return await self.apply_buy(holding_id, quantity, unit_price)
        return await self.apply_sell(holding_id, quantity, unit_price)

    async def remove(self, holding_id: str) -> bool:
        """Delete a holding and its log. Removing an unknown id is a no-op."""
        async with self._locked(holding_id):
            removed = await self.store.delete_holding(holding_id)
        self._locks.pop(holding_id, None)
        if removed:
            logger.info(f"Removed holding {holding_id}")
        return removed

    async def get(self, holding_id: str) -> Holding:
        return await self._require(holding_id)

    async def transactions(self, holding_id: str) -> List[Transaction]:
        """Transaction log, oldest first."""
        return await self.store.load_transactions_for_holding(holding_id)

    @staticmethod
    def replay(
        transactions: List[Transaction], template: Optional[Holding] = None
    ) -> Holding:
        return arithmetic.replay(transactions, template=template)

    async def verify(self, holding_id: str) -> bool:
        """Check that the stored view equals a replay of the stored log."""
        async with self._locked(holding_id):
            holding = await self._require(holding_id)
            log = await self.store.load_transactions_for_holding(holding_id)
        if not log:
            logger.warning(f"Holding {holding_id} has no transaction log")
            return False
        ok = arithmetic.matches(holding, arithmetic.replay(log, template=holding))
        if not ok:
            logger.warning(f"Holding {holding_id} view diverges from its transaction log")
        return ok

    async def update_market_prices(
        self, holding_id: str, current: float, previous_close: float
    ) -> Holding:
        async with self._locked(holding_id):
            holding = replace(
                await self._require(holding_id),
                last_known_price=float(current),
                previous_close_price=float(previous_close),
            )
            await self.store.save_holding(holding)
        return holding

    async def set_advisory(self, holding_id: str, advisory: Advisory) -> Holding:
        async with self._locked(holding_id):
            holding = replace(await self._require(holding_id), advisory=advisory)
            await self.store.save_holding(holding)
        return holding
