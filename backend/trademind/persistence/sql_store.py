"""
Remote primary store backed by SQLAlchemy async sessions.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trademind.core.database import get_session_factory
from trademind.core.exceptions import PersistenceUnavailable
from trademind.ledger.types import (
    AdviceAction,
    Advisory,
    Holding,
    Transaction,
    TransactionKind,
)
from trademind.models.holding import HoldingRecord
from trademind.models.transaction import TransactionRecord
from trademind.persistence.base import HoldingStore

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlHoldingStore(HoldingStore):
    """Holdings and transactions in the `holdings` / `transactions` tables."""

    name = "sql"

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory

    async def save_holding(self, holding: Holding) -> None:
        async with self._get_session() as session:
            stmt = select(HoldingRecord).where(HoldingRecord.holding_id == holding.id)
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            if record is None:
                record = HoldingRecord(holding_id=holding.id)
                session.add(record)
            self._copy_to_record(holding, record)

    async def load_holding(self, holding_id: str) -> Optional[Holding]:
        async with self._get_session() as session:
            stmt = select(HoldingRecord).where(HoldingRecord.holding_id == holding_id)
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
            return self._to_holding(record) if record else None

    async def load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        async with self._get_session() as session:
            stmt = (
                select(HoldingRecord)
                .where(HoldingRecord.owner_id == owner_id)
                .order_by(HoldingRecord.created_at.desc(), HoldingRecord.id.desc())
            )
            result = await session.execute(stmt)
            return [self._to_holding(r) for r in result.scalars().all()]

    async def delete_holding(self, holding_id: str) -> bool:
        async with self._get_session() as session:
            await session.execute(
                delete(TransactionRecord).where(TransactionRecord.holding_id == holding_id)
            )
            result = await session.execute(
                delete(HoldingRecord).where(HoldingRecord.holding_id == holding_id)
            )
            return (result.rowcount or 0) > 0

    async def append_transaction(
        self, transaction: Transaction, owner_id: Optional[str] = None
    ) -> None:
        async with self._get_session() as session:
            session.add(
                TransactionRecord(
                    transaction_id=transaction.id,
                    holding_id=transaction.holding_id,
                    kind=transaction.kind.value,
                    quantity=transaction.quantity,
                    unit_price=transaction.unit_price,
                    timestamp=transaction.timestamp,
                )
            )

    async def load_transactions_for_holding(self, holding_id: str) -> List[Transaction]:
        async with self._get_session() as session:
            stmt = (
                select(TransactionRecord)
                .where(TransactionRecord.holding_id == holding_id)
                .order_by(TransactionRecord.timestamp.asc(), TransactionRecord.id.asc())
            )
            result = await session.execute(stmt)
            return [
                Transaction(
                    id=r.transaction_id,
                    holding_id=r.holding_id,
                    kind=TransactionKind(r.kind),
                    quantity=float(r.quantity),
                    unit_price=float(r.unit_price),
                    timestamp=_aware(r.timestamp),
                )
                for r in result.scalars().all()
            ]

    @staticmethod
    def _copy_to_record(holding: Holding, record: HoldingRecord) -> None:
        record.owner_id = holding.owner_id
        record.symbol = holding.symbol
        record.name = holding.name
        record.sector = holding.sector
        record.quantity = holding.quantity
        record.average_cost = holding.average_cost
        record.last_known_price = holding.last_known_price
        record.previous_close_price = holding.previous_close_price
        record.created_at = holding.created_at
        record.advice_action = holding.advisory.action.value
        record.advice_confidence = holding.advisory.confidence
        record.advice_reasoning = holding.advisory.reasoning
        record.advice_updated_at = holding.advisory.updated_at

    @staticmethod
    def _to_holding(record: HoldingRecord) -> Holding:
        return Holding(
            id=record.holding_id,
            owner_id=record.owner_id,
            symbol=record.symbol,
            name=record.name,
            sector=record.sector,
            quantity=float(record.quantity),
            average_cost=float(record.average_cost),
            last_known_price=float(record.last_known_price or 0.0),
            previous_close_price=float(record.previous_close_price or 0.0),
            advisory=Advisory(
                action=AdviceAction(record.advice_action),
                confidence=int(record.advice_confidence or 0),
                reasoning=record.advice_reasoning or "",
                updated_at=_aware(record.advice_updated_at),
            ),
            created_at=_aware(record.created_at),
        )

    @asynccontextmanager
    async def _get_session(self):
        factory = self._session_factory or get_session_factory()
        try:
            async with factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except SQLAlchemyError as exc:
            logger.warning(f"SQL holding store error: {exc}")
            raise PersistenceUnavailable(f"Remote store error: {exc}") from exc
        except OSError as exc:
            raise PersistenceUnavailable(f"Remote store unreachable: {exc}") from exc
