"""
Domain event models.

These events represent immutable facts observed by the transition
executor. They are consumed by loggers, recorders, and metrics sinks.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class OrderTransitionEvent:
    """A status transition was committed to the primary order document."""

    at: str
    order_path: str
    prev_status: str | None
    next_status: str
    actor: dict[str, str]
    forced: bool = False
    preserved_fields: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TransitionRejectedEvent:
    """A transition failed validation; nothing was written."""

    at: str
    order_path: str
    prev_status: str | None
    next_status: str | None
    reason: str


@dataclass(frozen=True, slots=True)
class OrderLinesUpdatedEvent:
    at: str
    order_path: str
    line_count: int
    payment_code: str
    actor: dict[str, str]


@dataclass(frozen=True, slots=True)
class MirrorWriteWarning:
    """The best-effort mirror write to the counterparty copy failed.

    The primary transition is already committed and stays authoritative.
    """

    at: str
    order_path: str
    mirror_path: str
    next_status: str
    error: str


@dataclass(frozen=True, slots=True)
class SnapshotReadWarning:
    """Reading the pricing snapshot before acceptance failed."""

    at: str
    order_path: str
    error: str
    details: dict[str, str] = field(default_factory=dict)
