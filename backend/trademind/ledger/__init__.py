from trademind.ledger.types import (
    AdviceAction,
    Advisory,
    Holding,
    OversellPolicy,
    Transaction,
    TransactionKind,
)

__all__ = [
    "AdviceAction",
    "Advisory",
    "Holding",
    "OversellPolicy",
    "Transaction",
    "TransactionKind",
]
