from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from trademind.core.exceptions import InvalidArgument
from trademind.ledger import arithmetic
from trademind.ledger.types import OversellPolicy, TransactionKind

T0 = datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)


def _open(qty=10.0, price=100.0):
    return arithmetic.open_position("owner-1", "aapl", "Apple", "Tech", qty, price, timestamp=T0)


def test_open_position_sets_cost_and_prices():
    holding, txn = _open()
    assert holding.symbol == "AAPL"
    assert holding.quantity == 10.0
    assert holding.average_cost == 100.0
    assert holding.last_known_price == 100.0
    assert holding.previous_close_price == 100.0
    assert holding.created_at == T0
    assert txn.kind == TransactionKind.BUY
    assert txn.holding_id == holding.id


def test_open_position_uses_current_price_when_given():
    holding, _ = arithmetic.open_position("o", "MSFT", "", "", 1, 300, current_price=320)
    assert holding.last_known_price == 320
    assert holding.average_cost == 300
    assert holding.name == "MSFT"


def test_buy_updates_weighted_average():
    holding, _ = _open()
    holding, txn = arithmetic.buy(holding, 10, 200)
    assert holding.quantity == 20
    assert holding.average_cost == pytest.approx(150.0)
    assert txn.kind == TransactionKind.BUY


def test_sell_keeps_average_cost():
    holding, _ = _open()
    holding, _ = arithmetic.buy(holding, 10, 200)
    holding, _ = arithmetic.sell(holding, 5, 500)
    assert holding.quantity == 15
    assert holding.average_cost == pytest.approx(150.0)


def test_oversell_clamps_to_zero_by_default(caplog):
    holding, _ = _open()
    holding, _ = arithmetic.buy(holding, 10, 200)
    holding, txn = arithmetic.sell(holding, 25, 180)
    assert holding.quantity == 0.0
    assert holding.average_cost == pytest.approx(150.0)
    assert txn.quantity == 25
    assert "clamping" in caplog.text


def test_oversell_rejected_under_reject_policy():
    holding, _ = _open()
    with pytest.raises(InvalidArgument):
        arithmetic.sell(holding, 11, 100, policy=OversellPolicy.REJECT)


def test_buy_after_flat_position_takes_buy_price():
    holding, _ = _open()
    holding, _ = arithmetic.sell(holding, 10, 120)
    holding, _ = arithmetic.buy(holding, 3, 42.5)
    assert holding.quantity == 3
    assert holding.average_cost == 42.5


@pytest.mark.parametrize("qty,price", [(0, 10), (-1, 10), (1, 0), (1, -5), (float("nan"), 1), (1, float("inf")), (True, 10)])
def test_invalid_amounts_rejected(qty, price):
    holding, _ = _open()
    with pytest.raises(InvalidArgument):
        arithmetic.buy(holding, qty, price)
    with pytest.raises(InvalidArgument):
        arithmetic.sell(holding, qty, price)


def test_open_requires_symbol():
    with pytest.raises(InvalidArgument):
        arithmetic.open_position("o", "  ", "", "", 1, 1)


def test_buy_only_average_is_quantity_weighted_mean():
    lots = [(3, 10.0), (7, 20.0), (5, 12.0), (1, 100.0)]
    holding, _ = _open(*lots[0])
    for qty, price in lots[1:]:
        holding, _ = arithmetic.buy(holding, qty, price)
    total_qty = sum(q for q, _ in lots)
    expected = sum(q * p for q, p in lots) / total_qty
    assert holding.quantity == total_qty
    assert holding.average_cost == pytest.approx(expected)


def test_replay_reproduces_live_view():
    holding, first = _open()
    log = [first]
    steps = [("buy", 10, 200), ("sell", 4, 170), ("buy", 2.5, 99.99), ("sell", 30, 150), ("buy", 1, 7)]
    for i, (kind, qty, price) in enumerate(steps, start=1):
        ts = T0 + timedelta(minutes=i)
        if kind == "buy":
            holding, txn = arithmetic.buy(holding, qty, price, timestamp=ts)
        else:
            holding, txn = arithmetic.sell(holding, qty, price, timestamp=ts)
        log.append(txn)

    replayed = arithmetic.replay(reversed(log), template=holding)
    assert arithmetic.matches(holding, replayed)
    assert replayed.quantity == holding.quantity
    assert replayed.average_cost == holding.average_cost


def test_replay_without_template_uses_first_transaction():
    holding, first = _open()
    replayed = arithmetic.replay([first])
    assert replayed.id == holding.id
    assert replayed.quantity == 10
    assert replayed.average_cost == 100


def test_replay_rejects_foreign_transactions():
    _, first = _open()
    _, other = _open()
    with pytest.raises(InvalidArgument):
        arithmetic.replay([first, other])


def test_replay_empty_log_needs_template():
    with pytest.raises(InvalidArgument):
        arithmetic.replay([])


def test_matches_detects_divergence():
    holding, _ = _open()
    drifted = replace(holding, average_cost=100.5)
    assert not arithmetic.matches(holding, drifted)
