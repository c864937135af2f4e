"""
Semantic test: HTTP surface.

Invariant:
Every engine error kind is returned as a structured {error: {...}} body
with its own status code (invalid status 422, illegal transition 409 with
the allowed statuses, missing field 422, not found 404, locked order 409,
persistence 503), and successful calls report the committed status.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from order_lifecycle.api.http_app import create_app
from order_lifecycle.core.executor.transition_executor import TransitionExecutor
from order_lifecycle.stores.memory_store import InMemoryDocumentStore

ORDER_PATH = "businesses/dist-1/orderRequests/order-1"


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.put(ORDER_PATH, {"statusCode": "QUOTED", "proforma": {"grandTotal": 500}})
    return store


@pytest.fixture()
def client(store: InMemoryDocumentStore) -> TestClient:
    return TestClient(create_app(TransitionExecutor(store)))


def test_transition_success(client: TestClient, store: InMemoryDocumentStore) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={
            "current": "QUOTED",
            "to": "ACCEPTED",
            "actor": {"uid": "user-1"},
            "counterpartyId": "ret-9",
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["statusCode"] == "ACCEPTED"
    assert body["status"] == "Accepted"
    assert body["noop"] is False
    assert body["preservedFields"] == ["proforma", "proformaLocked"]
    assert body["mirror"]["ok"] is True
    assert body["mirror"]["path"] == "businesses/ret-9/sentOrders/order-1"
    assert store.snapshot(ORDER_PATH)["auditTrail"][0]["by"] == {"uid": "user-1", "type": "distributor"}


def test_illegal_transition_is_409_with_allowed(client: TestClient) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={"current": "QUOTED", "to": "SHIPPED"},
    )

    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "illegal_transition"
    assert error["allowed"] == ["ACCEPTED", "ON_HOLD", "REJECTED"]


def test_unknown_status_is_422(client: TestClient) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={"current": "QUOTED", "to": "TELEPORTED"},
    )

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "invalid_status"


def test_engine_owned_extra_fields_are_rejected(client: TestClient) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={"current": "QUOTED", "to": "ACCEPTED", "extra": {"auditTrail": []}},
    )

    assert resp.status_code == 422


def test_missing_order_is_404(client: TestClient) -> None:
    resp = client.post(
        "/orders/dist-1/ghost/ship",
        json={"expectedDeliveryDate": "2026-04-05", "deliveryMode": "Courier"},
    )

    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "order_not_found"


def test_ship_without_delivery_mode_is_422(client: TestClient) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/ship",
        json={"expectedDeliveryDate": "2026-04-05"},
    )

    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "missing_field"
    assert error["fields"] == ["deliveryMode"]


def test_ship_packed_order(client: TestClient, store: InMemoryDocumentStore) -> None:
    store.put(ORDER_PATH, {"statusCode": "PACKED"})

    resp = client.post(
        "/orders/dist-1/order-1/ship?counterpartyId=ret-9",
        json={"expectedDeliveryDate": "2026-04-05", "deliveryMode": "Courier", "awb": "A1"},
    )

    assert resp.status_code == 200
    assert resp.json()["statusCode"] == "SHIPPED"
    assert store.snapshot("businesses/ret-9/sentOrders/order-1")["statusCode"] == "SHIPPED"


def test_store_failure_is_503(client: TestClient, store: InMemoryDocumentStore) -> None:
    store.inject_failure("update_document", ConnectionError("down"))

    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={"current": "QUOTED", "to": "ON_HOLD"},
    )

    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "persistence_error"
    assert error["retryable"] is True


def test_update_lines(client: TestClient, store: InMemoryDocumentStore) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/lines",
        json={
            "items": [{"name": "Widget", "qty": 2}],
            "deliveryMode": "Pickup",
            "paymentMode": {"code": "advance", "advanceAmount": 200},
        },
    )

    assert resp.status_code == 200
    assert resp.json()["lineCount"] == 1
    assert resp.json()["payment"]["isAdvance"] is True
    assert store.snapshot(ORDER_PATH)["paymentMode"] == "ADVANCE"


def test_update_lines_on_invoiced_order_is_409(client: TestClient, store: InMemoryDocumentStore) -> None:
    store.put(ORDER_PATH, {"statusCode": "INVOICED", "items": [{"name": "Widget", "qty": 2}]})

    resp = client.post(
        "/orders/dist-1/order-1/lines",
        json={"items": [{"name": "W", "qty": 1, "price": 99}]},
    )

    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "order_locked"
    assert resp.json()["error"]["status"] == "INVOICED"
    assert store.snapshot(ORDER_PATH)["items"] == [{"name": "Widget", "qty": 2}]


def test_dotted_engine_owned_extra_fields_are_rejected(client: TestClient, store: InMemoryDocumentStore) -> None:
    resp = client.post(
        "/orders/dist-1/order-1/transition",
        json={"current": "QUOTED", "to": "ON_HOLD", "extra": {"statusTimestamps.acceptedAt": "x"}},
    )

    assert resp.status_code == 422
    assert store.calls["update_document"] == 0


def test_next_statuses(client: TestClient) -> None:
    resp = client.get("/statuses/shipped/next")

    assert resp.status_code == 200
    assert resp.json() == {
        "statusCode": "SHIPPED",
        "label": "Shipped",
        "terminal": False,
        "next": ["OUT_FOR_DELIVERY", "DELIVERED"],
    }

    assert client.get("/statuses/invoiced/next").json()["next"] == []
    assert client.get("/statuses/bogus/next").status_code == 422


def test_payment_normalization(client: TestClient) -> None:
    resp = client.get("/payments/normalize", params={"mode": "credit_cycle"})

    assert resp.status_code == 200
    assert resp.json()["payment"]["code"] == "CREDIT_CYCLE"
    assert resp.json()["display"] == "Credit Cycle"

    assert client.get("/payments/normalize").json()["display"] == "N/A"


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
