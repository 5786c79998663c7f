"""
Namespaced string key/value store with a hard byte ceiling, backed by sqlite.

Every namespace shares the same file and the same ceiling, so growth under one
key can exhaust the capacity available to all the others.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from storage.sqlite import database

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY_BYTES = 5 * 1024 * 1024


class QuotaExceededError(RuntimeError):
    def __init__(self, message: str, *, required_bytes: int, capacity_bytes: int) -> None:
        super().__init__(message)
        self.required_bytes = required_bytes
        self.capacity_bytes = capacity_bytes


def entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class StoreReader:
    """Access handed to a write preparer while the write transaction is open."""

    def __init__(self, conn: sqlite3.Connection, namespace: str) -> None:
        self._conn = conn
        self._namespace = namespace

    def get_item(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            "SELECT value FROM kv_entries WHERE key = ?",
            (f"{self._namespace}:{key}",),
        ).fetchone()
        return row[0] if row else None

    def advance_counter(self, name: str, floor: int = 0) -> int:
        """
        Move the persistent counter ``name`` past both its stored value and
        ``floor`` and return the new value. Counters are kept outside the
        entries table, so clearing entries never makes a value repeat.
        """
        full_key = f"{self._namespace}:{name}"
        row = self._conn.execute("SELECT value FROM kv_counters WHERE key = ?", (full_key,)).fetchone()
        value = max(int(row[0]) if row else 0, int(floor)) + 1
        self._conn.execute(
            "INSERT INTO kv_counters (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (full_key, value),
        )
        return value


WritePreparer = Callable[[StoreReader], Optional[Mapping[str, str]]]


class KeyValueStore:
    def __init__(self, namespace: str = "scholarflow", capacity_bytes: int = DEFAULT_CAPACITY_BYTES) -> None:
        if not namespace or ":" in namespace:
            raise ValueError("namespace must be a non-empty string without ':'")
        self.namespace = namespace
        self.capacity_bytes = int(capacity_bytes)
        database.init_db()

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get_item(self, key: str) -> Optional[str]:
        with database.get_connection() as conn:
            return StoreReader(conn, self.namespace).get_item(key)

    def get_items(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        """Read several keys with a single statement, so they come from the same committed state."""
        wanted = list(keys)
        if not wanted:
            return {}
        placeholders = ", ".join("?" for _ in wanted)
        with database.get_connection() as conn:
            rows = conn.execute(
                f"SELECT key, value FROM kv_entries WHERE key IN ({placeholders})",
                [self._full_key(key) for key in wanted],
            ).fetchall()
        found = {full_key: value for full_key, value in rows}
        return {key: found.get(self._full_key(key)) for key in wanted}

    def set_item(self, key: str, value: str) -> None:
        self.set_items({key: value})

    def set_items(self, items: Mapping[str, str], *, prepare: Optional[WritePreparer] = None) -> None:
        """
        Write all ``items`` in one transaction.

        The optional ``prepare`` callable runs inside the transaction before
        anything is written. Raising from it aborts the write; entries it
        returns are written along with ``items``. If the file footprint after
        the write would exceed the ceiling, nothing is written and
        ``QuotaExceededError`` is raised.
        """
        entries = {self._full_key(key): str(value) for key, value in items.items()}
        with database.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                if prepare is not None:
                    extra = prepare(StoreReader(conn, self.namespace)) or {}
                    entries.update({self._full_key(key): str(value) for key, value in extra.items()})
                required = self._usage_after(conn, entries)
                if required > self.capacity_bytes:
                    raise QuotaExceededError(
                        f"Write of {len(entries)} entries needs {required} bytes, capacity is {self.capacity_bytes}",
                        required_bytes=required,
                        capacity_bytes=self.capacity_bytes,
                    )
                conn.executemany(
                    """
                    INSERT INTO kv_entries (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = datetime('now')
                    """,
                    list(entries.items()),
                )
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        logger.debug("Stored %s entries under namespace '%s'", len(entries), self.namespace)

    def remove_items(self, keys: Iterable[str]) -> None:
        full_keys = [(self._full_key(key),) for key in keys]
        if not full_keys:
            return
        with database.get_connection() as conn:
            conn.executemany("DELETE FROM kv_entries WHERE key = ?", full_keys)

    def keys(self) -> List[str]:
        prefix = f"{self.namespace}:"
        with database.get_connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv_entries WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row[0][len(prefix):] for row in rows]

    def clear_namespace(self) -> None:
        self.remove_items(self.keys())

    def clear_all(self) -> None:
        """Remove every entry in the file, whatever namespace wrote it."""
        with database.get_connection() as conn:
            conn.execute("DELETE FROM kv_entries")
        logger.info("Cleared all key/value entries in %s", database.DB_PATH)

    def usage_bytes(self) -> int:
        with database.get_connection() as conn:
            return self._total_usage(conn)

    @staticmethod
    def _total_usage(conn: sqlite3.Connection) -> int:
        row = conn.execute(
            "SELECT COALESCE(SUM(length(CAST(key AS BLOB)) + length(CAST(value AS BLOB))), 0) FROM kv_entries"
        ).fetchone()
        return int(row[0])

    def _usage_after(self, conn: sqlite3.Connection, entries: Dict[str, str]) -> int:
        total = self._total_usage(conn)
        for full_key, value in entries.items():
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?", (full_key,)).fetchone()
            if row:
                total -= entry_size(full_key, row[0])
            total += entry_size(full_key, value)
        return total
