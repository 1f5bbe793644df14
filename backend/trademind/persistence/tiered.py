"""
Two-tier store: remote primary with a bounded timeout, local durable mirror.

Every write the primary accepts is mirrored into the local tier, so an outage
can be served from local copies. A primary failure (timeout or any error) is
logged and the same call is sent to the local tier at once; there are no
retries.

Holdings written or deleted locally while the primary is down are kept in
`pending` / `pending_deletes`. The local tier answers for them until the next
call that touches them finds the primary reachable, at which point the local
log and view are pushed up before anything else happens. A holding's log and
view therefore always come from the same tier.

Callers see PersistenceUnavailable when neither tier can answer. That includes
the primary being down while the local tier has no usable copy, since "absent"
cannot be told apart from "unreachable" in that case.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from trademind.core.config import settings
from trademind.core.exceptions import PersistenceUnavailable
from trademind.ledger.types import Holding, Transaction
from trademind.persistence.base import HoldingStore

logger = logging.getLogger(__name__)

# Returned by _primary when the call did not succeed
_PRIMARY_FAILED = object()


@dataclass
class TierStats:
    """Which tier served each operation; lets callers see degraded mode."""
    last_tier: Optional[str] = None
    primary_calls: int = 0
    fallback_calls: int = 0
    primary_failures: Dict[str, int] = field(default_factory=dict)


class TieredHoldingStore(HoldingStore):
    name = "tiered"

    def __init__(
        self,
        primary: HoldingStore,
        fallback: HoldingStore,
        timeout_sec: Optional[float] = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.timeout_sec = (
            settings.PERSISTENCE_REMOTE_TIMEOUT_SEC if timeout_sec is None else timeout_sec
        )
        self.stats = TierStats()
        # Local copy is ahead of the primary
        self.pending: Set[str] = set()
        # Deleted locally while the primary was down
        self.pending_deletes: Set[str] = set()
        # Local mirror missed a write and must not be served
        self.stale: Set[str] = set()

    @property
    def degraded(self) -> bool:
        return self.stats.last_tier == self.fallback.name

    async def save_holding(self, holding: Holding) -> None:
        await self._write(holding.id, "save_holding", lambda s: s.save_holding(holding))

    async def append_transaction(
        self, transaction: Transaction, owner_id: Optional[str] = None
    ) -> None:
        await self._write(
            transaction.holding_id,
            "append_transaction",
            lambda s: s.append_transaction(transaction, owner_id=owner_id),
        )

    async def load_holding(self, holding_id: str) -> Optional[Holding]:
        return await self._read(
            holding_id,
            "load_holding",
            lambda s: s.load_holding(holding_id),
            miss=lambda found: found is None,
        )

    async def load_transactions_for_holding(self, holding_id: str) -> List[Transaction]:
        return await self._read(
            holding_id,
            "load_transactions_for_holding",
            lambda s: s.load_transactions_for_holding(holding_id),
            miss=lambda found: not found,
        )

    async def load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        op = "load_holdings_for_owner"
        fn = lambda s: s.load_holdings_for_owner(owner_id)  # noqa: E731
        for holding_id in sorted(self.pending | self.pending_deletes):
            if not await self._reconcile(holding_id, op):
                # The primary is missing local changes; the mirror is the fuller view
                return await self._fallback(op, fn)
        result = await self._primary(op, fn)
        if result is _PRIMARY_FAILED:
            return await self._fallback(op, fn)
        return result

    async def delete_holding(self, holding_id: str) -> bool:
        op = "delete_holding"
        fn = lambda s: s.delete_holding(holding_id)  # noqa: E731
        primary_deleted = await self._primary(op, fn)
        if primary_deleted is _PRIMARY_FAILED:
            local_deleted = await self._fallback(op, fn)
            self.pending.discard(holding_id)
            self.pending_deletes.add(holding_id)
            logger.info(f"Delete of holding {holding_id} queued for {self.primary.name}")
            return local_deleted

        self.pending.discard(holding_id)
        self.pending_deletes.discard(holding_id)
        self.stale.discard(holding_id)
        try:
            local_deleted = await self.fallback.delete_holding(holding_id)
        except PersistenceUnavailable as exc:
            logger.warning(f"Local cleanup of holding {holding_id} failed: {exc}")
            self.stale.add(holding_id)
            local_deleted = False
        return primary_deleted or local_deleted

    async def _write(
        self, holding_id: str, op: str, fn: Callable[[HoldingStore], Awaitable[Any]]
    ) -> None:
        if await self._reconcile(holding_id, op):
            if await self._primary(op, fn) is not _PRIMARY_FAILED:
                await self._mirror(holding_id, op, fn)
                return
        if holding_id in self.stale:
            raise PersistenceUnavailable(
                f"{op} for holding {holding_id}: {self.primary.name} is unreachable "
                f"and the {self.fallback.name} copy is out of date"
            )
        await self._fallback(op, fn)
        self.pending.add(holding_id)

    async def _read(
        self,
        holding_id: str,
        op: str,
        fn: Callable[[HoldingStore], Awaitable[Any]],
        miss: Callable[[Any], bool],
    ) -> Any:
        if not await self._reconcile(holding_id, op):
            return await self._fallback(op, fn)

        result = await self._primary(op, fn)
        if result is _PRIMARY_FAILED:
            if holding_id not in self.stale:
                local = await self._fallback(op, fn)
                if not miss(local):
                    return local
            raise PersistenceUnavailable(
                f"{op} for holding {holding_id}: {self.primary.name} is unreachable "
                f"and {self.fallback.name} has no usable copy"
            )
        if not miss(result) or holding_id in self.stale:
            return result

        # A local-only holding whose pending mark was lost with the process
        local = await self._fallback(op, fn, quiet=True)
        if local is None or miss(local):
            return result
        self.pending.add(holding_id)
        await self._reconcile(holding_id, op)
        return local

    async def _reconcile(self, holding_id: str, op: str) -> bool:
        """Push pending local state for holding_id up. True once nothing is pending."""
        if holding_id in self.pending_deletes:
            push = lambda s: s.delete_holding(holding_id)  # noqa: E731
        elif holding_id in self.pending:
            push = lambda s: self._copy(self.fallback, s, holding_id)  # noqa: E731
        else:
            return True
        if await self._primary(op, push) is _PRIMARY_FAILED:
            return False
        self.pending.discard(holding_id)
        self.pending_deletes.discard(holding_id)
        logger.info(f"Pushed local changes for holding {holding_id} to {self.primary.name}")
        return True

    async def _mirror(
        self, holding_id: str, op: str, fn: Callable[[HoldingStore], Awaitable[Any]]
    ) -> None:
        try:
            if holding_id in self.stale:
                await self._copy(self.primary, self.fallback, holding_id)
            else:
                await fn(self.fallback)
        except Exception as exc:
            logger.warning(
                f"Mirroring {op} for holding {holding_id} to {self.fallback.name} failed: {exc}"
            )
            self.stale.add(holding_id)
        else:
            self.stale.discard(holding_id)

    @staticmethod
    async def _copy(source: HoldingStore, target: HoldingStore, holding_id: str) -> None:
        """Bring target up to source for one holding: missing log entries, then the view."""
        holding = await source.load_holding(holding_id)
        owner_id = holding.owner_id if holding is not None else None
        known = {t.id for t in await target.load_transactions_for_holding(holding_id)}
        for txn in await source.load_transactions_for_holding(holding_id):
            if txn.id not in known:
                await target.append_transaction(txn, owner_id=owner_id)
        if holding is not None:
            await target.save_holding(holding)

    async def _primary(self, op: str, fn: Callable[[HoldingStore], Awaitable[Any]]) -> Any:
        self.stats.primary_calls += 1
        try:
            result = await asyncio.wait_for(fn(self.primary), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            self._record_failure(op, f"timed out after {self.timeout_sec}s")
            return _PRIMARY_FAILED
        except Exception as exc:
            self._record_failure(op, str(exc) or type(exc).__name__)
            return _PRIMARY_FAILED
        self.stats.last_tier = self.primary.name
        return result

    async def _fallback(
        self, op: str, fn: Callable[[HoldingStore], Awaitable[Any]], quiet: bool = False
    ) -> Any:
        if not quiet:
            self.stats.fallback_calls += 1
        try:
            result = await fn(self.fallback)
        except Exception as exc:
            if quiet:
                logger.warning(f"{self.fallback.name} lookup for {op} failed: {exc}")
                return None
            logger.error(f"{op} failed on both {self.primary.name} and {self.fallback.name}: {exc}")
            raise PersistenceUnavailable(f"{op} failed on every store tier") from exc
        self.stats.last_tier = self.fallback.name
        return result

    def _record_failure(self, op: str, reason: str) -> None:
        self.stats.primary_failures[op] = self.stats.primary_failures.get(op, 0) + 1
        logger.warning(
            f"{self.primary.name} store {op} failed ({reason}); using {self.fallback.name} store"
        )
