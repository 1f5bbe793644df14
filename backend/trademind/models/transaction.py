from sqlalchemy import Column, String, Float, TIMESTAMP, Index
from trademind.core.database import Base
from trademind.models.base import IdMixin

class TransactionRecord(Base, IdMixin):
    """
    Append-only buy/sell log. Rows are only deleted together with their holding.
    """
    __tablename__ = "transactions"

    transaction_id = Column(String(64), unique=True, nullable=False)
    holding_id = Column(String(64), nullable=False)
    kind = Column(String(10), nullable=False)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)
    timestamp = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_transactions_holding_ts", "holding_id", "timestamp"),
    )
