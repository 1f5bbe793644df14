"""
Weighted-average cost basis arithmetic.

Pure functions over frozen Holding/Transaction values. The live path and
replay() share these functions, so a replayed log reproduces the live view.
"""
import logging
import math
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional, Tuple

from trademind.core.exceptions import InvalidArgument
from trademind.ledger.types import (
    Holding,
    OversellPolicy,
    Transaction,
    TransactionKind,
    utcnow,
)

logger = logging.getLogger(__name__)

REPLAY_TOLERANCE = 1e-9


def new_id() -> str:
    return uuid.uuid4().hex


def validate_amounts(quantity: float, unit_price: float) -> None:
    for label, value in (("quantity", quantity), ("unit price", unit_price)):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise InvalidArgument(f"{label} must be a number, got {value!r}")
        if not math.isfinite(value) or value <= 0:
            raise InvalidArgument(f"{label} must be positive, got {value}")


def weighted_average_cost(
    held_qty: float, held_cost: float, buy_qty: float, buy_price: float
) -> float:
    """(q0*c0 + q*p) / (q0 + q); a flat position takes the buy price as is."""
    if held_qty <= 0:
        return float(buy_price)
    return (held_qty * held_cost + buy_qty * buy_price) / (held_qty + buy_qty)


def _transaction(
    holding_id: str,
    kind: TransactionKind,
    quantity: float,
    unit_price: float,
    timestamp: Optional[datetime],
) -> Transaction:
    return Transaction(
        id=new_id(),
        holding_id=holding_id,
        kind=kind,
        quantity=float(quantity),
        unit_price=float(unit_price),
        timestamp=timestamp or utcnow(),
    )


def open_position(
    owner_id: str,
    symbol: str,
    name: str,
    sector: str,
    quantity: float,
    unit_price: float,
    current_price: Optional[float] = None,
    timestamp: Optional[datetime] = None,
) -> Tuple[Holding, Transaction]:
    """Create a holding and the opening BUY that produced it."""
    validate_amounts(quantity, unit_price)
    if not symbol or not symbol.strip():
        raise InvalidArgument("symbol is required")

    holding_id = new_id()
    txn = _transaction(holding_id, TransactionKind.BUY, quantity, unit_price, timestamp)
    price = float(current_price) if current_price else float(unit_price)
    holding = Holding(
        id=holding_id,
        owner_id=owner_id,
        symbol=symbol.strip().upper(),
        name=name or symbol.strip().upper(),
        sector=sector or "",
        quantity=float(quantity),
        average_cost=weighted_average_cost(0.0, 0.0, quantity, unit_price),
        last_known_price=price,
        previous_close_price=price,
        created_at=txn.timestamp,
    )
    return holding, txn


def _apply_buy(holding: Holding, quantity: float, unit_price: float) -> Holding:
    return replace(
        holding,
        average_cost=weighted_average_cost(
            holding.quantity, holding.average_cost, quantity, unit_price
        ),
        quantity=holding.quantity + quantity,
    )


def _apply_sell(holding: Holding, quantity: float) -> Holding:
    return replace(holding, quantity=max(0.0, holding.quantity - quantity))


def buy(
    holding: Holding,
    quantity: float,
    unit_price: float,
    timestamp: Optional[datetime] = None,
) -> Tuple[Holding, Transaction]:
    validate_amounts(quantity, unit_price)
    txn = _transaction(holding.id, TransactionKind.BUY, quantity, unit_price, timestamp)
    return _apply_buy(holding, txn.quantity, txn.unit_price), txn


def sell(
    holding: Holding,
    quantity: float,
    unit_price: float,
    policy: OversellPolicy = OversellPolicy.CLAMP,
    timestamp: Optional[datetime] = None,
) -> Tuple[Holding, Transaction]:
    """Reduce quantity; average cost is never touched by a sale."""
    validate_amounts(quantity, unit_price)
    if quantity > holding.quantity:
        if policy == OversellPolicy.REJECT:
            raise InvalidArgument(
                f"Cannot sell {quantity} {holding.symbol}: only {holding.quantity} held"
            )
        logger.warning(
            f"Oversell on {holding.symbol} ({holding.id}): selling {quantity} "
            f"of {holding.quantity}, clamping quantity to 0"
        )
    txn = _transaction(holding.id, TransactionKind.SELL, quantity, unit_price, timestamp)
    return _apply_sell(holding, txn.quantity), txn


def replay(
    transactions: Iterable[Transaction], template: Optional[Holding] = None
) -> Holding:
    """
    Rebuild quantity and average cost from a transaction log.

    Transactions are applied oldest first; equal timestamps keep their given
    order. Descriptive fields come from ``template`` when supplied.
    """
    ordered = sorted(transactions, key=lambda t: t.timestamp)
    if template is not None:
        state = replace(template, quantity=0.0, average_cost=0.0)
    elif ordered:
        first = ordered[0]
        state = Holding(
            id=first.holding_id,
            owner_id="",
            symbol="",
            name="",
            sector="",
            quantity=0.0,
            average_cost=0.0,
            created_at=first.timestamp,
        )
    else:
        raise InvalidArgument("Cannot replay an empty transaction log without a template")

    for txn in ordered:
        if txn.holding_id != state.id:
            raise InvalidArgument(
                f"Transaction {txn.id} belongs to {txn.holding_id}, not {state.id}"
            )
        if txn.kind == TransactionKind.BUY:
            state = _apply_buy(state, txn.quantity, txn.unit_price)
        else:
            state = _apply_sell(state, txn.quantity)
    return state


def _close(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=REPLAY_TOLERANCE, abs_tol=REPLAY_TOLERANCE)


def matches(live: Holding, replayed: Holding) -> bool:
    """Whether two views agree on quantity and average cost."""
    return _close(live.quantity, replayed.quantity) and _close(
        live.average_cost, replayed.average_cost
    )
