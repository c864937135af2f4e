"""
Semantic test: SQLite document store.

Invariant:
The SQLite store honors the same patch semantics as the in-memory store,
persists documents across connections, and leaves nothing behind when an
update targets a missing document.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from order_lifecycle.core.executor.transition_executor import OrderRef, TransitionExecutor
from order_lifecycle.core.ports.document_store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentRef,
)
from order_lifecycle.stores.sqlite_store import SqliteDocumentStore

NOW = "2026-02-02T02:02:02+00:00"
REF = DocumentRef.from_path("businesses/b1/orderRequests/o1")


def test_update_applies_patch_and_survives_reopen(tmp_path: Path) -> None:
    db = tmp_path / "orders.db"
    store = SqliteDocumentStore(db, clock=lambda: NOW)
    store.set_document(REF, {"statusCode": "REQUESTED", "auditTrail": []})

    store.update_document(
        REF,
        {
            "statusCode": "QUOTED",
            "statusTimestamps.quotedAt": SERVER_TIMESTAMP,
            "auditTrail": store.array_union({"status": "QUOTED"}),
        },
    )
    store.close()

    reopened = SqliteDocumentStore(db)
    try:
        assert reopened.get_document(REF) == {
            "statusCode": "QUOTED",
            "statusTimestamps": {"quotedAt": NOW},
            "auditTrail": [{"status": "QUOTED"}],
        }
    finally:
        reopened.close()


def test_update_of_missing_document_rolls_back(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "orders.db")
    try:
        with pytest.raises(DocumentNotFoundError):
            store.update_document(REF, {"statusCode": "QUOTED"})

        assert store.get_document(REF) is None
        # The connection is usable after the rollback.
        store.set_document(REF, {"statusCode": "REQUESTED"})
        assert store.get_document(REF) == {"statusCode": "REQUESTED"}
    finally:
        store.close()


def test_merge_set_and_listing(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "nested" / "orders.db")
    try:
        mirror = DocumentRef.from_path("businesses/r1/sentOrders/o1")
        store.set_document(mirror, {"items": [1], "statusTimestamps": {"a": "t"}})
        store.set_document(mirror, {"statusTimestamps": {"b": "u"}}, merge=True)

        assert store.list_documents("businesses/r1/sentOrders") == {
            "o1": {"items": [1], "statusTimestamps": {"a": "t", "b": "u"}}
        }
        assert store.list_documents("businesses/r1/orderRequests") == {}
    finally:
        store.close()


def test_executor_runs_against_sqlite(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "orders.db")
    try:
        store.set_document(
            REF,
            {"statusCode": "QUOTED", "retailerId": "r1", "proforma": {"grandTotal": 500}},
        )
        executor = TransitionExecutor(store)

        result = executor.set_order_status(OrderRef("b1", "o1"), "QUOTED", "ACCEPTED")

        doc = store.get_document(REF)
        assert doc is not None
        assert doc["statusCode"] == "ACCEPTED"
        assert doc["proforma"] == {"grandTotal": 500}
        assert doc["proformaLocked"] is True
        assert len(doc["auditTrail"]) == 1
        assert result.mirror.ok is True
        assert store.get_document(DocumentRef.from_path("businesses/r1/sentOrders/o1"))["statusCode"] == "ACCEPTED"
    finally:
        store.close()
