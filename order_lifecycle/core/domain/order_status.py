"""
Order lifecycle status taxonomy and transition graph.

This module defines the canonical order status codes, the allowed
transitions between them, and the normalization of loosely-typed status
labels (human strings, legacy aliases) into canonical codes.

All tables are built once at import time and are read-only. They are safe
for unsynchronized concurrent reads. The helpers here are pure: they never
raise for unknown input and never touch storage.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Literal, Mapping

OrderStatusCode = Literal[
    "REQUESTED",
    "QUOTED",
    "ON_HOLD",
    "ACCEPTED",
    "MODIFIED",
    "REJECTED",
    "DIRECT",
    "ASSIGNED",
    "PACKED",
    "SHIPPED",
    "OUT_FOR_DELIVERY",
    "DELIVERED",
    "INVOICED",
]

# A status input is either a raw label/code or a record exposing optional
# "statusCode" and/or legacy "status" fields.
StatusInput = str | Mapping[str, Any] | None


class OrderStatus:
    """Canonical order status codes."""

    REQUESTED: OrderStatusCode = "REQUESTED"
    QUOTED: OrderStatusCode = "QUOTED"
    ON_HOLD: OrderStatusCode = "ON_HOLD"
    ACCEPTED: OrderStatusCode = "ACCEPTED"
    MODIFIED: OrderStatusCode = "MODIFIED"
    REJECTED: OrderStatusCode = "REJECTED"
    DIRECT: OrderStatusCode = "DIRECT"
    ASSIGNED: OrderStatusCode = "ASSIGNED"
    PACKED: OrderStatusCode = "PACKED"
    SHIPPED: OrderStatusCode = "SHIPPED"
    OUT_FOR_DELIVERY: OrderStatusCode = "OUT_FOR_DELIVERY"
    DELIVERED: OrderStatusCode = "DELIVERED"
    INVOICED: OrderStatusCode = "INVOICED"


ORDER_STATUS_CODES: frozenset[str] = frozenset(
    {
        OrderStatus.REQUESTED,
        OrderStatus.QUOTED,
        OrderStatus.ON_HOLD,
        OrderStatus.ACCEPTED,
        OrderStatus.MODIFIED,
        OrderStatus.REJECTED,
        OrderStatus.DIRECT,
        OrderStatus.ASSIGNED,
        OrderStatus.PACKED,
        OrderStatus.SHIPPED,
        OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED,
        OrderStatus.INVOICED,
    }
)


# Terminal order statuses. DELIVERED is business-terminal: its only
# outgoing edge is DELIVERED -> INVOICED.
ORDER_TERMINAL_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.REJECTED,
        OrderStatus.DELIVERED,
        OrderStatus.INVOICED,
    }
)


# Allowed order status transitions.
#
# Key   : current status code
# Value : allowed next status codes, in declaration order
#
# Notes:
# - Two parallel paths exist: REQUESTED -> QUOTED -> ACCEPTED for active
#   retailers, and REQUESTED -> DIRECT -> PACKED for walk-in/provisional
#   orders that skip quoting.
# - Codes missing from the table (REJECTED, INVOICED) have no exits.
# - Repeated statuses (X -> X) are not edges.
ORDER_ALLOWED_TRANSITIONS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        OrderStatus.REQUESTED: (
            OrderStatus.QUOTED,
            OrderStatus.ON_HOLD,
            OrderStatus.REJECTED,
            OrderStatus.DIRECT,
        ),
        OrderStatus.QUOTED: (
            OrderStatus.ACCEPTED,
            OrderStatus.ON_HOLD,
            OrderStatus.REJECTED,
        ),
        OrderStatus.ON_HOLD: (
            OrderStatus.ACCEPTED,
            OrderStatus.REJECTED,
            OrderStatus.REQUESTED,
        ),
        OrderStatus.ACCEPTED: (
            OrderStatus.MODIFIED,
            OrderStatus.PACKED,
        ),
        OrderStatus.MODIFIED: (OrderStatus.PACKED,),
        OrderStatus.ASSIGNED: (
            OrderStatus.PACKED,
            OrderStatus.SHIPPED,
        ),
        OrderStatus.PACKED: (OrderStatus.SHIPPED,),
        OrderStatus.SHIPPED: (
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ),
        OrderStatus.OUT_FOR_DELIVERY: (OrderStatus.DELIVERED,),
        OrderStatus.DELIVERED: (OrderStatus.INVOICED,),
        OrderStatus.DIRECT: (OrderStatus.PACKED,),
    }
)


# Edges the explicit force override may take. Passive orders have no
# quoting step, so they are accepted or rejected straight from REQUESTED.
FORCEABLE_TRANSITIONS: frozenset[tuple[str, str]] = frozenset(
    {
        (OrderStatus.REQUESTED, OrderStatus.ACCEPTED),
        (OrderStatus.REQUESTED, OrderStatus.REJECTED),
    }
)


# Human-readable status mirrored next to statusCode for legacy readers.
STATUS_LABELS: Mapping[str, str] = MappingProxyType(
    {
        OrderStatus.REQUESTED: "Requested",
        OrderStatus.QUOTED: "Quoted",
        OrderStatus.ON_HOLD: "On Hold",
        OrderStatus.ACCEPTED: "Accepted",
        OrderStatus.MODIFIED: "Modified",
        OrderStatus.REJECTED: "Rejected",
        OrderStatus.DIRECT: "Direct",
        OrderStatus.ASSIGNED: "Assigned",
        OrderStatus.PACKED: "Packed",
        OrderStatus.SHIPPED: "Shipped",
        OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
        OrderStatus.DELIVERED: "Delivered",
        OrderStatus.INVOICED: "Invoiced",
    }
)


# Field under "statusTimestamps" stamped when a status is entered.
STATUS_TIMESTAMP_FIELDS: Mapping[str, str] = MappingProxyType(
    {
        OrderStatus.REQUESTED: "requestedAt",
        OrderStatus.QUOTED: "quotedAt",
        OrderStatus.ON_HOLD: "onHoldAt",
        OrderStatus.ACCEPTED: "acceptedAt",
        OrderStatus.MODIFIED: "modifiedAt",
        OrderStatus.REJECTED: "rejectedAt",
        OrderStatus.DIRECT: "directAt",
        OrderStatus.ASSIGNED: "assignedAt",
        OrderStatus.PACKED: "packedAt",
        OrderStatus.SHIPPED: "shippedAt",
        OrderStatus.OUT_FOR_DELIVERY: "outForDeliveryAt",
        OrderStatus.DELIVERED: "deliveredAt",
        OrderStatus.INVOICED: "invoicedAt",
    }
)


def _build_status_aliases() -> Mapping[str, str]:
    aliases: dict[str, str] = {}

    # Canonical codes, with and without underscores, and their labels.
    for code in ORDER_STATUS_CODES:
        aliases[code] = code
        aliases[code.replace("_", " ")] = code
        aliases[STATUS_LABELS[code].upper()] = code

    # Historical labels written by older clients.
    aliases.update(
        {
            "PLACED": OrderStatus.REQUESTED,
            "PROFORMA SENT": OrderStatus.QUOTED,
            "HOLD": OrderStatus.ON_HOLD,
            "ON-HOLD": OrderStatus.ON_HOLD,
            "PENDING": OrderStatus.PACKED,
            "OUT-FOR-DELIVERY": OrderStatus.OUT_FOR_DELIVERY,
        }
    )
    return MappingProxyType(aliases)


STATUS_ALIASES: Mapping[str, str] = _build_status_aliases()


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return " ".join(value.split()).upper()


def normalize_status_code(record: Mapping[str, Any] | None) -> str | None:
    """Return the canonical status code of a record, or None.

    ``statusCode`` wins when it is already a recognized code. Otherwise the
    legacy ``status`` label is matched against the alias table. None means
    the status cannot be determined; callers must not treat it as REQUESTED.
    """
    if not isinstance(record, Mapping):
        return None

    status_code = _clean(record.get("statusCode"))
    if status_code in ORDER_STATUS_CODES:
        return status_code

    status = _clean(record.get("status"))
    if not status:
        return None
    return STATUS_ALIASES.get(status)


def code_of(value: StatusInput) -> str | None:
    """Resolve a raw label/code or a record to a canonical status code."""
    if isinstance(value, str):
        return normalize_status_code({"status": value})
    return normalize_status_code(value)


def can_transition(prev: StatusInput, nxt: StatusInput) -> bool:
    """Return True if the transition prev -> nxt is in the graph."""
    prev_code = code_of(prev)
    next_code = code_of(nxt)
    if prev_code is None or next_code is None:
        return False
    return next_code in ORDER_ALLOWED_TRANSITIONS.get(prev_code, ())


def next_statuses(prev: StatusInput) -> list[str]:
    """Return a fresh list of the statuses reachable from prev."""
    prev_code = code_of(prev)
    if prev_code is None:
        return []
    return list(ORDER_ALLOWED_TRANSITIONS.get(prev_code, ()))


def is_forceable_transition(prev: StatusInput, nxt: StatusInput) -> bool:
    """Return True if prev -> nxt may be taken with the force override."""
    return (code_of(prev), code_of(nxt)) in FORCEABLE_TRANSITIONS


def is_terminal_status(record: StatusInput) -> bool:
    """Return True if the record sits in a terminal status."""
    return code_of(record) in ORDER_TERMINAL_STATES


def is_proforma_pending(record: Mapping[str, Any] | None) -> bool:
    """Return True if a proforma was issued but not yet accepted."""
    if not isinstance(record, Mapping):
        return False
    if normalize_status_code(record) != OrderStatus.QUOTED:
        return False
    if record.get("proformaLocked"):
        return False
    return bool(record.get("proforma") or record.get("chargesSnapshot"))


def is_passive_order(record: Mapping[str, Any] | None) -> bool:
    """Return True for orders captured on behalf of a provisional retailer."""
    if not isinstance(record, Mapping):
        return False
    if _clean(record.get("retailerMode")) == "PASSIVE":
        return True
    if record.get("isProvisional"):
        return True
    return bool(record.get("provisionalRetailerId"))


def status_label(code: StatusInput) -> str | None:
    """Return the human label mirrored next to statusCode."""
    resolved = code_of(code)
    return None if resolved is None else STATUS_LABELS[resolved]


def status_timestamp_field(code: StatusInput) -> str | None:
    """Return the statusTimestamps field stamped when entering code."""
    resolved = code_of(code)
    return None if resolved is None else STATUS_TIMESTAMP_FIELDS[resolved]
