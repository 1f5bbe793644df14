from sqlalchemy import Column, String, Float, Integer, Text, TIMESTAMP
from trademind.core.database import Base
from trademind.models.base import IdMixin, TimestampMixin

class HoldingRecord(Base, IdMixin, TimestampMixin):
    """
    Materialized position view, one row per holding.

    created_at carries the time the position was opened, not the row insert time.
    """
    __tablename__ = "holdings"

    holding_id = Column(String(64), unique=True, nullable=False)
    owner_id = Column(String(128), nullable=False, index=True)
    symbol = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False, default="")
    sector = Column(String(100), nullable=False, default="")
    quantity = Column(Float, nullable=False)
    average_cost = Column(Float, nullable=False)
    last_known_price = Column(Float, nullable=False, default=0.0)
    previous_close_price = Column(Float, nullable=False, default=0.0)

    # Advisory annotation supplied by an external analyzer
    advice_action = Column(String(20), nullable=False, default="UNKNOWN")
    advice_confidence = Column(Integer, nullable=False, default=0)
    advice_reasoning = Column(Text, nullable=False, default="")
    advice_updated_at = Column(TIMESTAMP(timezone=True), nullable=True)
