"""
Semantic test: in-memory store patch semantics.

Invariant:
update_document applies dotted keys, server timestamps and array unions
to an existing document as one unit; merge-set deep-merges; returned
documents are copies that cannot alter stored state.
"""

from __future__ import annotations

import pytest

from order_lifecycle.core.ports.document_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentNotFoundError,
    DocumentRef,
)
from order_lifecycle.stores.memory_store import InMemoryDocumentStore

NOW = "2026-01-01T00:00:00+00:00"
PATH = "businesses/b1/orderRequests/o1"


def test_dotted_keys_and_sentinels_are_resolved() -> None:
    store = InMemoryDocumentStore(clock=lambda: NOW)
    ref = store.put(PATH, {"statusTimestamps": {"requestedAt": "t0"}, "auditTrail": [{"n": 1}]})

    store.update_document(
        ref,
        {
            "statusCode": "QUOTED",
            "statusTimestamps.quotedAt": SERVER_TIMESTAMP,
            "auditTrail": store.array_union({"n": 2}),
        },
    )

    doc = store.get_document(ref)
    assert doc == {
        "statusCode": "QUOTED",
        "statusTimestamps": {"requestedAt": "t0", "quotedAt": NOW},
        "auditTrail": [{"n": 1}, {"n": 2}],
    }


def test_array_union_skips_values_already_present() -> None:
    store = InMemoryDocumentStore()
    ref = store.put(PATH, {"tags": ["a"]})

    store.update_document(ref, {"tags": ArrayUnion(values=("a", "b"))})

    assert store.snapshot(PATH)["tags"] == ["a", "b"]


def test_update_of_missing_document_raises() -> None:
    store = InMemoryDocumentStore()

    with pytest.raises(DocumentNotFoundError):
        store.update_document(DocumentRef.from_path(PATH), {"x": 1})

    assert store.snapshot(PATH) is None


def test_merge_set_deep_merges_and_plain_set_replaces() -> None:
    store = InMemoryDocumentStore(clock=lambda: NOW)
    ref = store.put(PATH, {"a": {"x": 1, "y": 2}, "b": 1})

    store.set_document(ref, {"a": {"y": 3}, "c": SERVER_TIMESTAMP}, merge=True)
    assert store.snapshot(PATH) == {"a": {"x": 1, "y": 3}, "b": 1, "c": NOW}

    store.set_document(ref, {"only": True})
    assert store.snapshot(PATH) == {"only": True}


def test_returned_documents_are_copies() -> None:
    store = InMemoryDocumentStore()
    ref = store.put(PATH, {"items": [{"qty": 1}]})

    doc = store.get_document(ref)
    assert doc is not None
    doc["items"][0]["qty"] = 99

    assert store.snapshot(PATH) == {"items": [{"qty": 1}]}


def test_injected_failures_respect_path_prefix() -> None:
    store = InMemoryDocumentStore()
    ref = store.put(PATH, {})
    other = store.put("businesses/b2/sentOrders/o1", {})
    store.inject_failure("set_document", RuntimeError("boom"), path_prefix="businesses/b2/")

    store.set_document(ref, {"ok": True}, merge=True)
    with pytest.raises(RuntimeError):
        store.set_document(other, {"ok": True}, merge=True)

    store.clear_failures()
    store.set_document(other, {"ok": True}, merge=True)
    assert store.calls["set_document"] == 3


def test_document_ref_paths() -> None:
    ref = DocumentRef.from_path("/businesses/b1/orderRequests/o1/")
    assert ref.collection == "businesses/b1/orderRequests"
    assert ref.doc_id == "o1"
    assert ref.path == PATH

    with pytest.raises(ValueError):
        DocumentRef.from_path("orphan")
