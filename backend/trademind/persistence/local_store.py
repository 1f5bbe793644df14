"""
Local durable cache used when the remote store is unavailable.

Layout under the store directory:
    owners/<sha256(owner_id)>.json   one bucket per owner (holdings + logs)
    holding_index.json               holding_id -> owner_id

Id-only operations resolve the owner through the index. When the index has no
entry (e.g. it was lost or written by an older process) every bucket is
scanned as a degraded recovery path, and the index is repaired on a hit.
"""
import asyncio
import hashlib
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from trademind.core.config import settings
from trademind.core.exceptions import PersistenceUnavailable
from trademind.ledger.types import Holding, Transaction
from trademind.persistence.base import HoldingStore

logger = logging.getLogger(__name__)

INDEX_FILE = "holding_index.json"


class LocalFileStore(HoldingStore):
    name = "local"

    def __init__(self, root: Optional[str | Path] = None):
        self.root = Path(root or settings.LOCAL_STORE_DIR)
        self.owners_dir = self.root / "owners"
        self._lock = threading.Lock()

    # ---------- HoldingStore ----------

    async def save_holding(self, holding: Holding) -> None:
        await self._run(self._save_holding, holding)

    async def load_holding(self, holding_id: str) -> Optional[Holding]:
        return await self._run(self._load_holding, holding_id)

    async def load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        return await self._run(self._load_holdings_for_owner, owner_id)

    async def delete_holding(self, holding_id: str) -> bool:
        return await self._run(self._delete_holding, holding_id)

    async def append_transaction(
        self, transaction: Transaction, owner_id: Optional[str] = None
    ) -> None:
        await self._run(self._append_transaction, transaction, owner_id)

    async def load_transactions_for_holding(self, holding_id: str) -> List[Transaction]:
        return await self._run(self._load_transactions, holding_id)

    # ---------- Synchronous implementations (run in a worker thread) ----------

    async def _run(self, fn, *args):
        def locked():
            with self._lock:
                return fn(*args)

        try:
            return await asyncio.to_thread(locked)
        except OSError as exc:
            raise PersistenceUnavailable(f"Local store I/O failed: {exc}") from exc
        except ValueError as exc:
            raise PersistenceUnavailable(f"Local store is corrupt: {exc}") from exc

    def _save_holding(self, holding: Holding) -> None:
        bucket = self._read_bucket(holding.owner_id)
        bucket["holdings"][holding.id] = holding.to_dict()
        self._write_bucket(holding.owner_id, bucket)
        self._index_put(holding.id, holding.owner_id)

    def _load_holding(self, holding_id: str) -> Optional[Holding]:
        owner_id = self._locate_owner(holding_id)
        if owner_id is None:
            return None
        data = self._read_bucket(owner_id)["holdings"].get(holding_id)
        return Holding.from_dict(data) if data else None

    def _load_holdings_for_owner(self, owner_id: str) -> List[Holding]:
        bucket = self._read_bucket(owner_id)
        holdings = [Holding.from_dict(h) for h in bucket["holdings"].values()]
        return sorted(holdings, key=lambda h: h.created_at, reverse=True)

    def _delete_holding(self, holding_id: str) -> bool:
        owner_id = self._locate_owner(holding_id)
        if owner_id is None:
            return False
        bucket = self._read_bucket(owner_id)
        existed = bucket["holdings"].pop(holding_id, None) is not None
        bucket["transactions"].pop(holding_id, None)
        self._write_bucket(owner_id, bucket)
        index = self._read_index()
        if index.pop(holding_id, None) is not None:
            self._write_json(self.root / INDEX_FILE, index)
        return existed

    def _append_transaction(self, transaction: Transaction, owner_id: Optional[str]) -> None:
        owner_id = owner_id or self._locate_owner(transaction.holding_id)
        if owner_id is None:
            raise PersistenceUnavailable(
                f"No local owner bucket for holding {transaction.holding_id}"
            )
        bucket = self._read_bucket(owner_id)
        bucket["transactions"].setdefault(transaction.holding_id, []).append(
            transaction.to_dict()
        )
        self._write_bucket(owner_id, bucket)
        self._index_put(transaction.holding_id, owner_id)

    def _load_transactions(self, holding_id: str) -> List[Transaction]:
        owner_id = self._locate_owner(holding_id)
        if owner_id is None:
            return []
        rows = self._read_bucket(owner_id)["transactions"].get(holding_id, [])
        return [Transaction.from_dict(r) for r in rows]

    # ---------- Owner discovery ----------

    def _locate_owner(self, holding_id: str) -> Optional[str]:
        owner_id = self._read_index().get(holding_id)
        if owner_id is not None:
            return owner_id
        return self._scan_for_owner(holding_id)

    def _scan_for_owner(self, holding_id: str) -> Optional[str]:
        if not self.owners_dir.exists():
            return None
        for path in sorted(self.owners_dir.glob("*.json")):
            bucket = self._read_json(path)
            if not bucket:
                continue
            if holding_id in bucket.get("holdings", {}) or holding_id in bucket.get(
                "transactions", {}
            ):
                owner_id = bucket["owner_id"]
                logger.warning(
                    f"Holding {holding_id} missing from local index; "
                    f"recovered owner by scanning buckets"
                )
                self._index_put(holding_id, owner_id)
                return owner_id
        return None

    # ---------- File helpers ----------

    def _bucket_path(self, owner_id: str) -> Path:
        digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()
        return self.owners_dir / f"{digest}.json"

    def _read_bucket(self, owner_id: str) -> Dict[str, Any]:
        bucket = self._read_json(self._bucket_path(owner_id))
        if not bucket:
            return {"owner_id": owner_id, "holdings": {}, "transactions": {}}
        return bucket

    def _write_bucket(self, owner_id: str, bucket: Dict[str, Any]) -> None:
        self._write_json(self._bucket_path(owner_id), bucket)

    def _read_index(self) -> Dict[str, str]:
        return self._read_json(self.root / INDEX_FILE) or {}

    def _index_put(self, holding_id: str, owner_id: str) -> None:
        index = self._read_index()
        if index.get(holding_id) != owner_id:
            index[holding_id] = owner_id
            self._write_json(self.root / INDEX_FILE, index)

    @staticmethod
    def _read_json(path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write_json(path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp, path)
