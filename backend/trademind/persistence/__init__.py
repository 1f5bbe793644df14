from trademind.persistence.base import HoldingStore
from trademind.persistence.local_store import LocalFileStore
from trademind.persistence.memory_store import InMemoryHoldingStore
from trademind.persistence.sql_store import SqlHoldingStore
from trademind.persistence.tiered import TieredHoldingStore

__all__ = [
    "HoldingStore",
    "LocalFileStore",
    "InMemoryHoldingStore",
    "SqlHoldingStore",
    "TieredHoldingStore",
]
