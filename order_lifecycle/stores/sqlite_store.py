"""SQLite-backed document store.

Stores each document as a JSON text column keyed by its path. Updates are a
read-modify-write inside one IMMEDIATE transaction, which makes every
patch (including the audit-trail append) atomic with respect to other
writers of the same database file.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Mapping

from order_lifecycle.core.ports.document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentNotFoundError,
    DocumentRef,
)
from order_lifecycle.stores.patching import apply_set, apply_update, utc_now_iso

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SqliteDocumentStore:
    """DocumentStore over a single SQLite database file."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        busy_timeout_ms: int = 5000,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._clock = clock or utc_now_iso
        self._lock = threading.Lock()

        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        self._conn.execute(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, path: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT body FROM documents WHERE path = ?", (path,)
        ).fetchone()
        return None if row is None else json.loads(row[0])

    def _write(self, ref: DocumentRef, doc: Mapping[str, Any], now: str) -> None:
        self._conn.execute(
            """
            INSERT INTO documents (path, collection, body, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(path) DO UPDATE SET
                body = excluded.body,
                updated_at = excluded.updated_at
            """,
            (ref.path, ref.collection, json.dumps(doc, default=str), now),
        )

    # ------------------------------------------------------------------
    # DocumentStore protocol
    # ------------------------------------------------------------------

    def get_document(self, ref: DocumentRef) -> dict[str, Any] | None:
        with self._lock:
            return self._read(ref.path)

    def update_document(self, ref: DocumentRef, patch: Mapping[str, Any]) -> None:
        now = self._clock()
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                doc = self._read(ref.path)
                if doc is None:
                    raise DocumentNotFoundError(ref)
                self._write(ref, apply_update(doc, patch, now=now), now)
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def set_document(
        self,
        ref: DocumentRef,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        now = self._clock()
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                current = self._read(ref.path) if merge else None
                self._write(ref, apply_set(current, data, merge=merge, now=now), now)
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def array_union(self, *values: Any) -> Any:
        return ArrayUnion(values=tuple(values))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def list_documents(self, collection: str) -> dict[str, dict[str, Any]]:
        """Return all documents of one collection keyed by document id."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT path, body FROM documents WHERE collection = ? ORDER BY path",
                (collection.strip("/"),),
            ).fetchall()
        return {
            DocumentRef.from_path(path).doc_id: json.loads(body)
            for path, body in rows
        }
