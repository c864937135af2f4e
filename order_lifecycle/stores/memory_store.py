"""In-memory document store.

Thread-safe, dict-backed implementation of the DocumentStore protocol. It
is used by tests and by embedding callers that keep orders in process. Each
write runs under one lock, so a patch is applied all-or-nothing.
"""

from __future__ import annotations

import copy
import threading
from collections import Counter
from typing import Any, Callable, Mapping

from order_lifecycle.core.ports.document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentNotFoundError,
    DocumentRef,
)
from order_lifecycle.stores.patching import apply_set, apply_update, utc_now_iso


class InMemoryDocumentStore:
    """Documents keyed by path, with call counters and failure injection."""

    def __init__(
        self,
        documents: Mapping[str, Mapping[str, Any]] | None = None,
        *,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._docs: dict[str, dict[str, Any]] = {
            path: copy.deepcopy(dict(doc)) for path, doc in (documents or {}).items()
        }
        self._clock = clock or utc_now_iso
        self._failures: list[tuple[str, str | None, BaseException]] = []

        # Number of calls per primitive, for spying in tests.
        self.calls: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def inject_failure(
        self,
        operation: str,
        error: BaseException,
        *,
        path_prefix: str | None = None,
    ) -> None:
        """Make every later call of operation (optionally under a path) raise."""
        self._failures.append((operation, path_prefix, error))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, operation: str, ref: DocumentRef) -> None:
        for op, prefix, error in self._failures:
            if op != operation:
                continue
            if prefix is None or ref.path.startswith(prefix):
                raise error

    # ------------------------------------------------------------------
    # DocumentStore protocol
    # ------------------------------------------------------------------

    def get_document(self, ref: DocumentRef) -> dict[str, Any] | None:
        self.calls["get_document"] += 1
        self._maybe_fail("get_document", ref)
        with self._lock:
            doc = self._docs.get(ref.path)
            return None if doc is None else copy.deepcopy(doc)

    def update_document(self, ref: DocumentRef, patch: Mapping[str, Any]) -> None:
        self.calls["update_document"] += 1
        self._maybe_fail("update_document", ref)
        with self._lock:
            doc = self._docs.get(ref.path)
            if doc is None:
                raise DocumentNotFoundError(ref)
            self._docs[ref.path] = apply_update(doc, patch, now=self._clock())

    def set_document(
        self,
        ref: DocumentRef,
        data: Mapping[str, Any],
        *,
        merge: bool = False,
    ) -> None:
        self.calls["set_document"] += 1
        self._maybe_fail("set_document", ref)
        with self._lock:
            self._docs[ref.path] = apply_set(
                self._docs.get(ref.path), data, merge=merge, now=self._clock()
            )

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    def array_union(self, *values: Any) -> Any:
        return ArrayUnion(values=tuple(values))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def put(self, path: str, document: Mapping[str, Any]) -> DocumentRef:
        """Seed a document without counting it as a store call."""
        ref = DocumentRef.from_path(path)
        with self._lock:
            self._docs[ref.path] = copy.deepcopy(dict(document))
        return ref

    def snapshot(self, path: str) -> dict[str, Any] | None:
        """Return a copy of a document without counting it as a store call."""
        with self._lock:
            doc = self._docs.get(path.strip("/"))
            return None if doc is None else copy.deepcopy(doc)
