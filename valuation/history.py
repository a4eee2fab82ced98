"""
Calculation History - bounded, newest-first record of past valuations.

Entries are recalled exactly as stored: restoring never recomputes, so a
restored result is the one the user saw even if master data has changed since.
With a db_path the ring is mirrored to SQLite and survives restarts.
"""

import json
import logging
import sqlite3
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from valuation.errors import HistoryEntryNotFound
from valuation.models import ValuationRequest, ValuationResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalculationHistoryEntry:
    """One recorded calculation."""
    id: str
    timestamp: str
    request: ValuationRequest
    result: ValuationResult
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "description": self.description,
            "request": self.request.to_dict(),
            "result": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalculationHistoryEntry":
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            description=data.get("description", ""),
            request=ValuationRequest.from_dict(data["request"]),
            result=ValuationResult.from_dict(data["result"]),
        )


def describe(request: ValuationRequest, district_name: Optional[str] = None,
             circle_name: Optional[str] = None) -> str:
    """'District - Circle - Plot N', falling back to codes when names are unknown."""
    district = district_name or request.district_code
    circle = circle_name or request.circle_code
    plot = request.daag_number or "-"
    return f"{district} - {circle} - Plot {plot}"


class CalculationHistoryStore:
    """
    Ring of the most recent calculations, newest first.

    Usage:
        store = CalculationHistoryStore(capacity=10)
        entry = store.record(request, result)
        request, result = store.restore(entry.id)
    """

    DEFAULT_CAPACITY = 10

    def __init__(self, capacity: int = DEFAULT_CAPACITY, db_path: Optional[str] = None):
        """
        Args:
            capacity: Maximum number of entries kept. Oldest is evicted first.
            db_path: SQLite file to persist entries in. None keeps them in memory.
        """
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self.db_path = db_path
        self._entries: deque = deque(maxlen=capacity)
        self._lock = threading.RLock()
        self._last_id = 0
        self._conn: Optional[sqlite3.Connection] = None

        if db_path:
            self._init_db()
            self._load()

    # ─────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────
    @contextmanager
    def _transaction(self):
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            log.error(f"History transaction failed: {e}")
            raise

    def _init_db(self):
        self._conn = sqlite3.connect(self.db_path, timeout=5.0, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS calculation_history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    timestamp TEXT NOT NULL,
                    description TEXT,
                    request_json TEXT NOT NULL,
                    result_json TEXT NOT NULL
                )
            """)

    def _load(self):
        rows = self._conn.execute(
            "SELECT * FROM calculation_history ORDER BY seq DESC LIMIT ?",
            (self.capacity,)
        ).fetchall()
        # rows are newest first; appending keeps that order
        for row in rows:
            self._entries.append(CalculationHistoryEntry(
                id=row["id"],
                timestamp=row["timestamp"],
                description=row["description"] or "",
                request=ValuationRequest.from_dict(json.loads(row["request_json"])),
                result=ValuationResult.from_dict(json.loads(row["result_json"])),
            ))
        if self._entries:
            self._last_id = max((int(e.id) for e in self._entries if e.id.isdigit()), default=0)
        log.info(f"Loaded {len(self._entries)} history entries from {self.db_path}")

    def _persist(self, entry: CalculationHistoryEntry):
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO calculation_history "
                "(id, timestamp, description, request_json, result_json) VALUES (?, ?, ?, ?, ?)",
                (entry.id, entry.timestamp, entry.description,
                 json.dumps(entry.request.to_dict()), json.dumps(entry.result.to_dict()))
            )
            conn.execute(
                "DELETE FROM calculation_history WHERE seq NOT IN "
                "(SELECT seq FROM calculation_history ORDER BY seq DESC LIMIT ?)",
                (self.capacity,)
            )

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ─────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────
    def _next_id(self) -> str:
        # Millisecond timestamp, bumped when two records land in the same millisecond
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def record(self, request: ValuationRequest, result: ValuationResult,
               description: Optional[str] = None) -> CalculationHistoryEntry:
        """Store a calculation as the newest entry, evicting the oldest past capacity."""
        with self._lock:
            entry = CalculationHistoryEntry(
                id=self._next_id(),
                timestamp=datetime.now().isoformat(),
                request=request,
                result=result,
                description=description or describe(request),
            )
            if self._conn is not None:
                self._persist(entry)
            self._entries.appendleft(entry)
        log.info(f"Recorded history entry {entry.id}: {entry.description}")
        return entry

    def get(self, entry_id: str) -> CalculationHistoryEntry:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        raise HistoryEntryNotFound(entry_id)

    def restore(self, entry_id: str) -> Tuple[ValuationRequest, ValuationResult]:
        """
        Return the stored request and result, without recomputing.

        Raises:
            HistoryEntryNotFound: entry_id is unknown or already evicted.
        """
        entry = self.get(entry_id)
        return entry.request, entry.result

    def list(self) -> List[CalculationHistoryEntry]:
        """All entries, newest first."""
        with self._lock:
            return list(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()
            if self._conn is not None:
                with self._transaction() as conn:
                    conn.execute("DELETE FROM calculation_history")
        log.info("Cleared calculation history")

    def __len__(self) -> int:
        return len(self._entries)
