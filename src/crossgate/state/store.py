"""
Atomic keyed record storage.

Every gateway operation runs inside one StoreTransaction:

    with store.transaction() as txn:
        txn.create(address, record)   # exclusive: AlreadyExists if present
        txn.put(address, record)      # update: RecordNotFound if absent
        txn.delete(address)           # RecordNotFound if absent

CRITICAL INVARIANTS:
1. Writes are staged and applied only when the block completes
2. Any exception discards every staged write (no partial state)
3. Operations on one store are serialized by its lock; the file store
   also holds an exclusive lock on its directory, so processes sharing
   the directory are serialized too
4. create() is the only way to bring a record into existence, and it is
   exclusive against both committed and staged state
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import threading
import uuid
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set

from crossgate.protocol.errors import AlreadyExists, RecordNotFound

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class StoreTransaction:
    """Staged writes for one operation. Reads see the staged state."""

    def __init__(self, store: "AccountStore") -> None:
        self._store = store
        self._creates: Dict[str, Record] = {}
        self._updates: Dict[str, Record] = {}
        self._deletes: Set[str] = set()

    def get(self, address: str) -> Optional[Record]:
        if address in self._deletes:
            return None
        if address in self._creates:
            return dict(self._creates[address])
        if address in self._updates:
            return dict(self._updates[address])
        return self._store.read(address)

    def exists(self, address: str) -> bool:
        return self.get(address) is not None

    def create(self, address: str, record: Record) -> None:
        if self.exists(address):
            raise AlreadyExists(f"Account already in use: {address}")
        if address in self._deletes:
            # Recreating a record deleted earlier in the same operation
            self._deletes.discard(address)
            self._updates[address] = dict(record)
            return
        self._creates[address] = dict(record)

    def put(self, address: str, record: Record) -> None:
        if not self.exists(address):
            raise RecordNotFound(f"Account not found: {address}")
        if address in self._creates:
            self._creates[address] = dict(record)
        else:
            self._updates[address] = dict(record)

    def delete(self, address: str) -> None:
        if not self.exists(address):
            raise RecordNotFound(f"Account not found: {address}")
        if address in self._creates:
            del self._creates[address]
            return
        self._updates.pop(address, None)
        self._deletes.add(address)

    @property
    def creates(self) -> Dict[str, Record]:
        return self._creates

    @property
    def updates(self) -> Dict[str, Record]:
        return self._updates

    @property
    def deletes(self) -> Set[str]:
        return self._deletes

    @property
    def is_empty(self) -> bool:
        return not (self._creates or self._updates or self._deletes)


class AccountStore:
    """
    Base class for record stores.

    Subclasses implement read(), list_addresses() and _commit().
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        with self._lock, self._exclusive():
            txn = StoreTransaction(self)
            yield txn
            if not txn.is_empty:
                self._commit(txn)

    def _exclusive(self):
        """Extra locking held for the whole transaction. None by default."""
        return nullcontext()

    def read(self, address: str) -> Optional[Record]:
        raise NotImplementedError

    def list_addresses(self) -> List[str]:
        raise NotImplementedError

    def _commit(self, txn: StoreTransaction) -> None:
        raise NotImplementedError

    def records(self, kind: Optional[str] = None) -> List[Record]:
        """All committed records, optionally filtered by kind."""
        out = []
        with self._lock:
            for address in self.list_addresses():
                record = self.read(address)
                if record is None:
                    continue
                if kind is None or record.get("kind") == kind:
                    out.append(record)
        return out


class InMemoryAccountStore(AccountStore):
    """Process-local store. Suitable for tests and embedded use."""

    def __init__(self) -> None:
        super().__init__()
        self._records: Dict[str, Record] = {}

    def read(self, address: str) -> Optional[Record]:
        with self._lock:
            record = self._records.get(address)
            return dict(record) if record is not None else None

    def list_addresses(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def _commit(self, txn: StoreTransaction) -> None:
        for address in txn.creates:
            if address in self._records:
                raise AlreadyExists(f"Account already in use: {address}")
        for address, record in txn.creates.items():
            self._records[address] = dict(record)
        for address, record in txn.updates.items():
            self._records[address] = dict(record)
        for address in txn.deletes:
            self._records.pop(address, None)


class FileAccountStore(AccountStore):
    """
    One JSON file per record under <root>/accounts.

    Creation is exclusive at the filesystem level: the record is written
    to a temp file and hard-linked into place, and the link fails if the
    target already exists.

    Each transaction holds fcntl.flock() on <root>/.lock from its first
    read to its commit, so processes sharing the directory never act on
    a record another process is changing. Updates and deletes check at
    commit that their target still exists.
    """

    def __init__(self, root_dir: str, *, sync: bool = True) -> None:
        super().__init__()
        self._root = Path(root_dir)
        self._accounts_dir = self._root / "accounts"
        self._accounts_dir.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._root / ".lock"
        self._lock_depth = 0
        self._sync = sync

    @property
    def root_dir(self) -> Path:
        return self._root

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        # Reentrant within this instance; flock on a second descriptor
        # would block on ourselves.
        if self._lock_depth:
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
            return

        with open(self._lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            self._lock_depth = 1
            try:
                yield
            finally:
                self._lock_depth = 0
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _path(self, address: str) -> Path:
        return self._accounts_dir / f"{address}.json"

    def read(self, address: str) -> Optional[Record]:
        path = self._path(address)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    def list_addresses(self) -> List[str]:
        return sorted(p.stem for p in self._accounts_dir.glob("*.json"))

    def _write_tmp(self, address: str, record: Record) -> Path:
        tmp_path = self._accounts_dir / f".{address}.{uuid.uuid4().hex}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=2, sort_keys=True)
            f.flush()
            if self._sync:
                os.fsync(f.fileno())
        return tmp_path

    def _commit(self, txn: StoreTransaction) -> None:
        for address in list(txn.updates) + list(txn.deletes):
            if not self._path(address).exists():
                raise RecordNotFound(f"Account not found: {address}")

        created: List[Path] = []
        try:
            for address, record in txn.creates.items():
                tmp_path = self._write_tmp(address, record)
                try:
                    os.link(str(tmp_path), str(self._path(address)))
                except FileExistsError:
                    raise AlreadyExists(f"Account already in use: {address}") from None
                finally:
                    tmp_path.unlink(missing_ok=True)
                created.append(self._path(address))
        except BaseException:
            for path in created:
                path.unlink(missing_ok=True)
            raise

        for address, record in txn.updates.items():
            tmp_path = self._write_tmp(address, record)
            os.replace(str(tmp_path), str(self._path(address)))

        for address in txn.deletes:
            self._path(address).unlink()

        logger.debug(
            "Committed %d create(s), %d update(s), %d delete(s)",
            len(txn.creates),
            len(txn.updates),
            len(txn.deletes),
        )
