"""
Order lifecycle HTTP API.

Thin FastAPI surface over TransitionExecutor:
- POST /orders/{owner_id}/{order_id}/transition
- POST /orders/{owner_id}/{order_id}/lines
- POST /orders/{owner_id}/{order_id}/ship
- GET  /statuses/{code}/next
- GET  /payments/normalize?mode=

Errors raised by the engine are returned as their structured to_dict()
body with a status code per error kind.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from order_lifecycle.core.domain.errors import (
    IllegalTransitionError,
    InvalidStatusError,
    MissingFieldError,
    OrderLifecycleError,
    OrderLockedError,
    OrderNotFoundError,
    PersistenceError,
)
from order_lifecycle.core.domain.order_status import (
    code_of,
    is_terminal_status,
    next_statuses,
    status_label,
)
from order_lifecycle.core.domain.payment_policy import format_payment_label, normalize_payment_mode
from order_lifecycle.core.domain.types import (
    ShipOrderRequest,
    TransitionRequest,
    UpdateLinesRequest,
)
from order_lifecycle.core.executor.transition_executor import (
    OrderRef,
    TransitionExecutor,
    TransitionResult,
)

LOGGER = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[OrderLifecycleError], int] = {
    InvalidStatusError: 422,
    MissingFieldError: 422,
    IllegalTransitionError: 409,
    OrderNotFoundError: 404,
    OrderLockedError: 409,
    PersistenceError: 503,
}

router = APIRouter()


def get_executor(request: Request) -> TransitionExecutor:
    return request.app.state.executor


def _transition_body(result: TransitionResult) -> dict[str, Any]:
    return {
        "orderPath": result.order_path,
        "from": result.prev_status,
        "statusCode": result.status_code,
        "status": result.status,
        "noop": result.noop,
        "forced": result.forced,
        "preservedFields": list(result.preserved_fields),
        "mirror": {
            "attempted": result.mirror.attempted,
            "ok": result.mirror.ok,
            "path": result.mirror.path,
            "error": result.mirror.error,
        },
    }


# ----------------------------------------------------------------------
# Orders
# ----------------------------------------------------------------------


@router.post("/orders/{owner_id}/{order_id}/transition")
def transition_order(
    owner_id: str,
    order_id: str,
    body: TransitionRequest,
    executor: TransitionExecutor = Depends(get_executor),
):
    order = OrderRef(owner_id, order_id, counterparty_id=body.counterparty_id)
    result = executor.set_order_status(
        order,
        body.current,
        body.to,
        extra=body.extra,
        actor=body.actor,
        force=body.force,
    )
    return _transition_body(result)


@router.post("/orders/{owner_id}/{order_id}/lines")
def update_order_lines(
    owner_id: str,
    order_id: str,
    body: UpdateLinesRequest,
    executor: TransitionExecutor = Depends(get_executor),
):
    result = executor.update_lines(
        OrderRef(owner_id, order_id),
        body.items,
        body.delivery_mode,
        body.expected_delivery_date,
        body.payment_mode,
        actor=body.actor,
    )
    return {
        "orderPath": result.order_path,
        "lineCount": result.line_count,
        "payment": result.payment.to_document(),
    }


@router.post("/orders/{owner_id}/{order_id}/ship")
def ship_order(
    owner_id: str,
    order_id: str,
    body: ShipOrderRequest,
    counterparty_id: str | None = Query(None, alias="counterpartyId", min_length=1),
    executor: TransitionExecutor = Depends(get_executor),
):
    result = executor.ship_order(
        OrderRef(owner_id, order_id, counterparty_id=counterparty_id),
        body.expected_delivery_date,
        body.delivery_mode,
        courier=body.courier,
        awb=body.awb,
        actor=body.actor,
    )
    return _transition_body(result)


# ----------------------------------------------------------------------
# Read-only helpers
# ----------------------------------------------------------------------


@router.get("/statuses/{code}/next")
def get_next_statuses(code: str):
    resolved = code_of(code)
    if resolved is None:
        raise InvalidStatusError(code, field="code")
    return {
        "statusCode": resolved,
        "label": status_label(resolved),
        "terminal": is_terminal_status(resolved),
        "next": next_statuses(resolved),
    }


@router.get("/payments/normalize")
def get_normalized_payment(mode: str = Query("")):
    descriptor = normalize_payment_mode(mode)
    return {
        "payment": descriptor.to_document(),
        "display": format_payment_label(descriptor),
    }


# ----------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------


def _lifecycle_error_handler(_request: Request, exc: OrderLifecycleError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    if status_code >= 500:
        LOGGER.error("Order operation failed: %s", exc.message, extra={"error": exc.to_dict()})
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()})


def create_app(executor: TransitionExecutor) -> FastAPI:
    """Create the order lifecycle FastAPI app around one executor."""
    app = FastAPI(
        title="Order Lifecycle Engine",
        description="Order status transitions, line edits and shipping",
    )
    app.state.executor = executor
    app.add_exception_handler(OrderLifecycleError, _lifecycle_error_handler)
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
