"""
Ledger value types.

Holding and Transaction are frozen: every mutation builds a new instance, so a
reader holding a reference always sees a complete snapshot.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class TransactionKind(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class AdviceAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    ANALYZING = "ANALYZING"
    UNKNOWN = "UNKNOWN"


class OversellPolicy(str, Enum):
    """What a sell larger than the held quantity does."""
    CLAMP = "clamp"
    REJECT = "reject"


@dataclass(frozen=True)
class Advisory:
    action: AdviceAction = AdviceAction.UNKNOWN
    confidence: int = 0
    reasoning: str = ""
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Advisory":
        if not data:
            return cls()
        return cls(
            action=AdviceAction(data.get("action", AdviceAction.UNKNOWN.value)),
            confidence=int(data.get("confidence", 0)),
            reasoning=data.get("reasoning", ""),
            updated_at=_parse_ts(data.get("updated_at")),
        )


@dataclass(frozen=True)
class Transaction:
    id: str
    holding_id: str
    kind: TransactionKind
    quantity: float
    unit_price: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "holding_id": self.holding_id,
            "kind": self.kind.value,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Transaction":
        return cls(
            id=data["id"],
            holding_id=data["holding_id"],
            kind=TransactionKind(data["kind"]),
            quantity=float(data["quantity"]),
            unit_price=float(data["unit_price"]),
            timestamp=_parse_ts(data["timestamp"]),
        )


@dataclass(frozen=True)
class Holding:
    """
    Materialized view of one owner's position in one symbol.

    quantity and average_cost are derived from the transaction log; the
    price fields and advisory are refreshed independently of it.
    """
    id: str
    owner_id: str
    symbol: str
    name: str
    sector: str
    quantity: float
    average_cost: float
    last_known_price: float = 0.0
    previous_close_price: float = 0.0
    advisory: Advisory = field(default_factory=Advisory)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def market_value(self) -> float:
        return self.quantity * self.last_known_price

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_cost

    @property
    def unrealized_pnl(self) -> float:
        return self.market_value - self.cost_basis

    def to_dict(self) -> dict:
        data = asdict(self)
        data["advisory"] = self.advisory.to_dict()
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Holding":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            symbol=data["symbol"],
            name=data.get("name", ""),
            sector=data.get("sector", ""),
            quantity=float(data["quantity"]),
            average_cost=float(data["average_cost"]),
            last_known_price=float(data.get("last_known_price", 0.0)),
            previous_close_price=float(data.get("previous_close_price", 0.0)),
            advisory=Advisory.from_dict(data.get("advisory")),
            created_at=_parse_ts(data.get("created_at")) or utcnow(),
        )
