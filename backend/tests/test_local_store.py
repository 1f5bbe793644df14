import json

import pytest

from trademind.core.exceptions import PersistenceUnavailable
from trademind.ledger import arithmetic
from trademind.persistence.local_store import INDEX_FILE, LocalFileStore


def _position(owner="owner-1", symbol="AAPL", qty=10, price=100):
    return arithmetic.open_position(owner, symbol, symbol, "", qty, price)


@pytest.mark.asyncio
async def test_round_trip_holding_and_log(local_store):
    holding, txn = _position()
    await local_store.append_transaction(txn, owner_id=holding.owner_id)
    await local_store.save_holding(holding)

    assert await local_store.load_holding(holding.id) == holding
    assert await local_store.load_transactions_for_holding(holding.id) == [txn]


@pytest.mark.asyncio
async def test_survives_new_instance(tmp_path):
    holding, txn = _position()
    first = LocalFileStore(root=tmp_path)
    await first.append_transaction(txn, owner_id=holding.owner_id)
    await first.save_holding(holding)

    second = LocalFileStore(root=tmp_path)
    assert await second.load_holding(holding.id) == holding


@pytest.mark.asyncio
async def test_owner_buckets_are_isolated(local_store):
    mine, _ = _position(owner="alice")
    theirs, _ = _position(owner="bob", symbol="MSFT")
    await local_store.save_holding(mine)
    await local_store.save_holding(theirs)

    assert [h.id for h in await local_store.load_holdings_for_owner("alice")] == [mine.id]
    assert [h.id for h in await local_store.load_holdings_for_owner("bob")] == [theirs.id]
    assert await local_store.load_holdings_for_owner("carol") == []


@pytest.mark.asyncio
async def test_lost_index_recovered_by_scan(local_store, caplog):
    holding, txn = _position()
    await local_store.append_transaction(txn, owner_id=holding.owner_id)
    await local_store.save_holding(holding)

    (local_store.root / INDEX_FILE).unlink()

    assert await local_store.load_holding(holding.id) == holding
    assert "recovered owner by scanning" in caplog.text
    index = json.loads((local_store.root / INDEX_FILE).read_text())
    assert index[holding.id] == holding.owner_id


@pytest.mark.asyncio
async def test_append_resolves_owner_from_index(local_store):
    holding, txn = _position()
    await local_store.append_transaction(txn, owner_id=holding.owner_id)
    await local_store.save_holding(holding)

    _, buy = arithmetic.buy(holding, 1, 90)
    await local_store.append_transaction(buy)
    assert len(await local_store.load_transactions_for_holding(holding.id)) == 2


@pytest.mark.asyncio
async def test_append_without_known_owner_fails(local_store):
    _, txn = _position()
    with pytest.raises(PersistenceUnavailable):
        await local_store.append_transaction(txn)


@pytest.mark.asyncio
async def test_delete(local_store):
    holding, txn = _position()
    await local_store.append_transaction(txn, owner_id=holding.owner_id)
    await local_store.save_holding(holding)

    assert await local_store.delete_holding(holding.id) is True
    assert await local_store.load_holding(holding.id) is None
    assert await local_store.load_transactions_for_holding(holding.id) == []
    assert await local_store.delete_holding(holding.id) is False


@pytest.mark.asyncio
async def test_corrupt_bucket_surfaces_as_unavailable(local_store):
    holding, _ = _position()
    await local_store.save_holding(holding)
    local_store._bucket_path(holding.owner_id).write_text("{not json")

    with pytest.raises(PersistenceUnavailable):
        await local_store.load_holding(holding.id)
