"""
Event journal for gateway operations.

Append-only, hash-chained record of every committed operation
(gateway setup, registry changes, marker creation and finalization).
Entries are written after the store commit, so the journal never lists
an operation whose state change was discarded.

On disk the journal is JSONL; without a path it is kept in memory.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from crossgate.utils.timestamps import now_iso

logger = logging.getLogger(__name__)

JOURNAL_VERSION = "1"


def _entry_hash(entry: Dict[str, Any]) -> str:
    body = {k: v for k, v in entry.items() if k != "entry_hash"}
    data = json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _read_lines(path: Path) -> Iterator[Dict[str, Any]]:
    """Parsed entries up to the first corrupted line."""
    if not path.exists():
        return
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Journal %s has a corrupted line; stopping there", path)
                return


class EventJournal:
    """Hash-chained, append-only event log."""

    def __init__(self, path: Optional[str] = None, *, sync: bool = True) -> None:
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._seq = 0
        self._last_hash: Optional[str] = None
        self._sync = sync
        self._memory: List[Dict[str, Any]] = []

        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            for entry in _read_lines(self._path):
                self._seq = entry.get("seq", self._seq)
                self._last_hash = entry.get("entry_hash")

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def append(self, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Append one event. Returns the written entry."""
        with self._lock:
            entry = {
                "seq": self._seq + 1,
                "event_type": event_type,
                "timestamp_iso": now_iso(),
                "payload": payload,
                "prev_hash": self._last_hash,
                "version": JOURNAL_VERSION,
            }
            entry["entry_hash"] = _entry_hash(entry)

            if self._path is None:
                self._memory.append(entry)
            else:
                with open(self._path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False, sort_keys=True) + "\n")
                    f.flush()
                    if self._sync:
                        os.fsync(f.fileno())

            # Advance only once the entry is durable
            self._seq = entry["seq"]
            self._last_hash = entry["entry_hash"]
            logger.debug("Journaled %s seq=%d", event_type, self._seq)
            return entry

    def read_all(self) -> List[Dict[str, Any]]:
        if self._path is None:
            with self._lock:
                return [dict(e) for e in self._memory]
        return list(_read_lines(self._path))

    def read_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [e for e in self.read_all() if e.get("event_type") == event_type]

    def verify_integrity(self) -> Tuple[bool, Optional[str]]:
        """Returns (True, None) if the hash chain is intact, else (False, reason)."""
        prev_hash = None
        for entry in self.read_all():
            if entry.get("prev_hash") != prev_hash:
                return False, f"Hash chain broken at seq={entry.get('seq')}"
            if entry.get("entry_hash") != _entry_hash(entry):
                return False, f"Entry hash mismatch at seq={entry.get('seq')}"
            prev_hash = entry["entry_hash"]
        return True, None

    @property
    def entry_count(self) -> int:
        return self._seq
