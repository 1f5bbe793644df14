# Base
from trademind.models.base import TimestampMixin, IdMixin

# Accounting
from trademind.models.holding import HoldingRecord
from trademind.models.transaction import TransactionRecord

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "HoldingRecord",
    "TransactionRecord",
]
