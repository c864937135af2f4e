"""Order transition executor.

The executor is the only authorized mutator of an order's status-related
fields. Every operation follows the same pipeline:

    Idle -> Validating -> (Rejected | PreservingSnapshot) -> Persisting
         -> (MirrorAttempt) -> Done

- Validating failures raise before any write (the record is unchanged).
- Persisting is a single atomic multi-field patch against the order
  document; store faults surface as PersistenceError and are not retried.
- MirrorAttempt is best-effort and eventually consistent: its outcome is
  reported in the result and as a MirrorWriteWarning event, never raised.
"""

# pylint: disable=too-many-arguments,too-many-positional-arguments,too-many-locals
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from order_lifecycle.core.config.engine_config import EngineConfig
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
    OrderStatus,
    StatusInput,
    can_transition,
    code_of,
    is_forceable_transition,
    is_passive_order,
    is_terminal_status,
    next_statuses,
    normalize_status_code,
    status_label,
    status_timestamp_field,
)
from order_lifecycle.core.domain.payment_policy import normalize_payment_mode
from order_lifecycle.core.domain.types import Actor, AuditEntry, PaymentDescriptor
from order_lifecycle.core.events.events import (
    MirrorWriteWarning,
    OrderLinesUpdatedEvent,
    OrderTransitionEvent,
    SnapshotReadWarning,
    TransitionRejectedEvent,
)
from order_lifecycle.core.events.sinks.null_event_bus import NullEventBus
from order_lifecycle.core.ports.document_store import DocumentNotFoundError, DocumentRef

if TYPE_CHECKING:
    from order_lifecycle.core.events.event_bus import EventBus
    from order_lifecycle.core.ports.document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

# Fields of the order document written only by the executor itself.
ENGINE_OWNED_FIELDS: frozenset[str] = frozenset(
    {"statusCode", "status", "statusTimestamps", "auditTrail"}
)

# Accepting an order locks the proforma when one of these is present.
PRICING_SNAPSHOT_FIELDS: tuple[str, ...] = ("proforma", "chargesSnapshot")

# Statuses in which line items may still be replaced (before acceptance).
LINE_EDITABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.REQUESTED, OrderStatus.QUOTED, OrderStatus.ON_HOLD}
)


# ---------------------------------------------------------------------------
# References and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OrderRef:
    """Logical order identity.

    owner_id is the party holding the authoritative order document;
    counterparty_id, when known, receives the mirror copy.
    """

    owner_id: str
    order_id: str
    counterparty_id: str | None = None

    def __post_init__(self) -> None:
        if not self.owner_id or not self.order_id:
            raise ValueError("owner_id and order_id must be non-empty")


@dataclass(frozen=True, slots=True)
class MirrorResult:
    """Outcome of the best-effort mirror write."""

    attempted: bool
    ok: bool
    path: str | None = None
    error: str | None = None


MIRROR_SKIPPED = MirrorResult(attempted=False, ok=False)


@dataclass(frozen=True, slots=True)
class TransitionResult:
    order_path: str
    prev_status: str | None
    status_code: str
    status: str
    noop: bool = False
    forced: bool = False
    preserved_fields: tuple[str, ...] = ()
    mirror: MirrorResult = MIRROR_SKIPPED


@dataclass(frozen=True, slots=True)
class LinesUpdateResult:
    order_path: str
    line_count: int
    payment: PaymentDescriptor
    audit: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Mirror writer
# ---------------------------------------------------------------------------


class MirrorWriter:
    """Writes the reduced status fields into the counterparty's copy.

    The mirror is a read-optimization for the other party; it is never
    coupled to the primary write and its failures are reported, not raised.
    """

    def __init__(self, store: DocumentStore, event_bus: EventBus, clock: Callable[[], str]) -> None:
        self._store = store
        self._event_bus = event_bus
        self._clock = clock

    def write(
        self,
        *,
        order_path: str,
        mirror_ref: DocumentRef,
        data: Mapping[str, Any],
        next_status: str,
    ) -> MirrorResult:
        try:
            self._store.set_document(mirror_ref, data, merge=True)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning(
                "Mirror write failed; primary transition stays committed",
                extra={
                    "order_path": order_path,
                    "mirror_path": mirror_ref.path,
                    "next_status": next_status,
                    "error": repr(exc),
                },
            )
            self._event_bus.emit(
                MirrorWriteWarning(
                    at=self._clock(),
                    order_path=order_path,
                    mirror_path=mirror_ref.path,
                    next_status=next_status,
                    error=repr(exc),
                )
            )
            return MirrorResult(attempted=True, ok=False, path=mirror_ref.path, error=repr(exc))

        return MirrorResult(attempted=True, ok=True, path=mirror_ref.path)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TransitionExecutor:
    """Validates, persists and audits order status changes."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        config: EngineConfig | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._config = config if config is not None else EngineConfig()
        self._event_bus = event_bus if event_bus is not None else NullEventBus()
        self._clock = clock or _utc_now_iso
        self._mirror = MirrorWriter(store, self._event_bus, self._clock)

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Paths and small helpers
    # ------------------------------------------------------------------

    def order_document(self, order: OrderRef) -> DocumentRef:
        path = self._config.order_path_template.format(
            owner_id=order.owner_id,
            order_id=order.order_id,
        )
        return DocumentRef.from_path(path)

    def mirror_document(self, order: OrderRef, counterparty_id: str) -> DocumentRef:
        path = self._config.mirror_path_template.format(
            owner_id=order.owner_id,
            order_id=order.order_id,
            counterparty_id=counterparty_id,
        )
        return DocumentRef.from_path(path)

    def _actor_document(self, actor: Actor | None) -> dict[str, str]:
        if actor is None:
            return {"type": "system"}
        return actor.to_document()

    def _counterparty_of(self, order: OrderRef, record: Mapping[str, Any] | None) -> str | None:
        if order.counterparty_id:
            return order.counterparty_id
        if record is None:
            return None
        value = record.get(self._config.counterparty_field)
        return value if isinstance(value, str) and value else None

    def _reject(
        self,
        error: OrderLifecycleError,
        *,
        order_path: str,
        prev: str | None,
        nxt: str | None,
    ) -> OrderLifecycleError:
        self._event_bus.emit(
            TransitionRejectedEvent(
                at=self._clock(),
                order_path=order_path,
                prev_status=prev,
                next_status=nxt,
                reason=error.code,
            )
        )
        LOGGER.info(
            "Order transition rejected",
            extra={"order_path": order_path, "from": prev, "to": nxt, "reason": error.code},
        )
        return error

    def _read(self, ref: DocumentRef) -> dict[str, Any] | None:
        try:
            return self._store.get_document(ref)
        except Exception as exc:
            raise PersistenceError(ref.path, "read", exc) from exc

    def _persist(self, ref: DocumentRef, patch: Mapping[str, Any]) -> None:
        try:
            self._store.update_document(ref, patch)
        except DocumentNotFoundError as exc:
            raise OrderNotFoundError(ref.path) from exc
        except Exception as exc:
            raise PersistenceError(ref.path, "update", exc) from exc

    def _clean_extra(self, extra: Mapping[str, Any] | None, order_path: str) -> dict[str, Any]:
        if not extra:
            return {}
        cleaned: dict[str, Any] = {}
        for key, value in extra.items():
            if key.split(".", 1)[0] in ENGINE_OWNED_FIELDS:
                LOGGER.warning(
                    "Dropping engine-owned field from transition payload",
                    extra={"order_path": order_path, "field": key},
                )
                continue
            cleaned[key] = value
        return cleaned

    def _read_pricing_snapshot(self, ref: DocumentRef) -> dict[str, Any] | None:
        """Read the record before acceptance; degrade to None on failure."""
        try:
            return self._store.get_document(ref)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning(
                "Could not read pricing snapshot before acceptance; proceeding without it",
                extra={"order_path": ref.path, "error": repr(exc)},
            )
            self._event_bus.emit(
                SnapshotReadWarning(at=self._clock(), order_path=ref.path, error=repr(exc))
            )
            return None

    def _preserve_snapshot(
        self,
        record: Mapping[str, Any] | None,
        extra: dict[str, Any],
        order_path: str,
    ) -> dict[str, Any]:
        if not record:
            return {}

        preserved: dict[str, Any] = {}
        for name in self._config.preserved_on_accept:
            if record.get(name) is None:
                continue
            value = record[name]
            if name in extra and extra[name] != value:
                LOGGER.warning(
                    "Ignoring payload value for a field already edited on the order",
                    extra={"order_path": order_path, "field": name},
                )
            preserved[name] = value

        if any(preserved.get(name) for name in PRICING_SNAPSHOT_FIELDS):
            preserved["proformaLocked"] = True
        return preserved

    def _mirror_status(
        self,
        order: OrderRef,
        counterparty_id: str | None,
        *,
        order_path: str,
        next_code: str,
        fields: Mapping[str, Any],
    ) -> MirrorResult:
        if not self._config.mirror_enabled or counterparty_id is None:
            return MIRROR_SKIPPED

        data: dict[str, Any] = {
            self._config.owner_field: order.owner_id,
            self._config.counterparty_field: counterparty_id,
            "orderId": order.order_id,
            "updatedAt": self._store.server_timestamp(),
        }
        data.update(fields)
        return self._mirror.write(
            order_path=order_path,
            mirror_ref=self.mirror_document(order, counterparty_id),
            data=data,
            next_status=next_code,
        )

    def _status_fields(self, next_code: str) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "statusCode": next_code,
            "status": status_label(next_code),
        }
        ts_field = status_timestamp_field(next_code)
        if ts_field is not None:
            fields["statusTimestamps"] = {ts_field: self._store.server_timestamp()}
        return fields

    @staticmethod
    def _flatten_status_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
        # Dotted keys so the update patch touches only the stamped timestamp.
        flat: dict[str, Any] = {}
        for key, value in fields.items():
            if key == "statusTimestamps":
                for ts_field, ts in value.items():
                    flat[f"statusTimestamps.{ts_field}"] = ts
            else:
                flat[key] = value
        return flat

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def set_order_status(
        self,
        order: OrderRef,
        current: StatusInput,
        target: StatusInput,
        extra: Mapping[str, Any] | None = None,
        actor: Actor | None = None,
        *,
        force: bool = False,
    ) -> TransitionResult:
        """Move an order from current to target.

        force bypasses the transition graph for the edges REQUESTED ->
        ACCEPTED / REJECTED only, and only when the persisted record is a
        passive order. Forced transitions are audited as forced.
        """
        doc_ref = self.order_document(order)
        order_path = doc_ref.path

        # ---- Validating ----
        prev_code = code_of(current)
        next_code = code_of(target)

        if next_code is None:
            raise self._reject(
                InvalidStatusError(target, field="to"),
                order_path=order_path,
                prev=prev_code,
                nxt=None,
            )

        if prev_code == next_code:
            LOGGER.debug(
                "Order already in target status; nothing to do",
                extra={"order_path": order_path, "status": next_code},
            )
            return TransitionResult(
                order_path=order_path,
                prev_status=prev_code,
                status_code=next_code,
                status=status_label(next_code) or next_code,
                noop=True,
            )

        record: dict[str, Any] | None = None
        if force:
            if not is_forceable_transition(prev_code, next_code):
                raise self._reject(
                    IllegalTransitionError(prev_code, next_code, next_statuses(prev_code), forced=True),
                    order_path=order_path,
                    prev=prev_code,
                    nxt=next_code,
                )
            # The override is reserved for passive / provisional orders.
            record = self._read(doc_ref)
            if record is None:
                raise self._reject(
                    OrderNotFoundError(order_path),
                    order_path=order_path,
                    prev=prev_code,
                    nxt=next_code,
                )
            if not is_passive_order(record):
                raise self._reject(
                    IllegalTransitionError(prev_code, next_code, next_statuses(prev_code), forced=True),
                    order_path=order_path,
                    prev=prev_code,
                    nxt=next_code,
                )
        elif not can_transition(prev_code, next_code):
            raise self._reject(
                IllegalTransitionError(prev_code, next_code, next_statuses(prev_code)),
                order_path=order_path,
                prev=prev_code,
                nxt=next_code,
            )

        payload = self._clean_extra(extra, order_path)

        # ---- PreservingSnapshot ----
        preserved: dict[str, Any] = {}
        if next_code == OrderStatus.ACCEPTED:
            if record is None:
                record = self._read_pricing_snapshot(doc_ref)
            preserved = self._preserve_snapshot(record, payload, order_path)

        # ---- Persisting ----
        actor_doc = self._actor_document(actor)
        status_fields = self._status_fields(next_code)

        patch: dict[str, Any] = {}
        patch.update(payload)
        patch.update(preserved)
        patch.update(self._flatten_status_fields(status_fields))
        patch["updatedAt"] = self._store.server_timestamp()

        audit = AuditEntry(
            at=self._clock(),
            by=actor_doc,
            status=next_code,
            forced=True if force else None,
        ).to_document()
        patch["auditTrail"] = self._store.array_union(audit)

        if force:
            LOGGER.warning(
                "Forced order transition outside the transition graph",
                extra={
                    "order_path": order_path,
                    "from": prev_code,
                    "to": next_code,
                    "actor": actor_doc,
                    "forced": True,
                },
            )

        self._persist(doc_ref, patch)

        preserved_fields = tuple(sorted(preserved))
        self._event_bus.emit(
            OrderTransitionEvent(
                at=audit["at"],
                order_path=order_path,
                prev_status=prev_code,
                next_status=next_code,
                actor=actor_doc,
                forced=force,
                preserved_fields=preserved_fields,
            )
        )
        LOGGER.info(
            "Order transition committed",
            extra={"order_path": order_path, "from": prev_code, "to": next_code},
        )

        # ---- MirrorAttempt ----
        mirror = self._mirror_status(
            order,
            self._counterparty_of(order, record),
            order_path=order_path,
            next_code=next_code,
            fields=status_fields,
        )

        return TransitionResult(
            order_path=order_path,
            prev_status=prev_code,
            status_code=next_code,
            status=status_fields["status"],
            forced=force,
            preserved_fields=preserved_fields,
            mirror=mirror,
        )

    def update_lines(
        self,
        order: OrderRef,
        items: Iterable[Mapping[str, Any]] | None,
        delivery_mode: str | None,
        expected_delivery_date: str | None,
        payment_mode: Any,
        actor: Actor | None = None,
    ) -> LinesUpdateResult:
        """Replace the line items of an order before acceptance.

        Line edits are orthogonal to status: no status field is written.
        Accepted, shipped and terminal orders refuse the edit with
        OrderLockedError before any write.
        """
        doc_ref = self.order_document(order)

        # ---- Validating ----
        record = self._read(doc_ref)
        if record is None:
            raise OrderNotFoundError(doc_ref.path)

        status = normalize_status_code(record)
        if status not in LINE_EDITABLE_STATES:
            locked = OrderLockedError(doc_ref.path, status)
            LOGGER.info(
                "Line edit refused",
                extra={
                    "order_path": doc_ref.path,
                    "status": status,
                    "terminal": is_terminal_status(status),
                    "reason": locked.code,
                },
            )
            raise locked

        payment = normalize_payment_mode(payment_mode)
        lines = [dict(item) for item in items] if items is not None else []
        actor_doc = self._actor_document(actor)

        audit = AuditEntry(at=self._clock(), by=actor_doc, event="updateLines").to_document()
        patch = {
            "items": lines,
            "deliveryMode": delivery_mode or "",
            "expectedDeliveryDate": expected_delivery_date or "",
            # Plain code for legacy readers, descriptor for newer ones.
            "paymentMode": payment.code,
            "payment": payment.to_document(),
            "updatedAt": self._store.server_timestamp(),
            "auditTrail": self._store.array_union(audit),
        }

        self._persist(doc_ref, patch)

        self._event_bus.emit(
            OrderLinesUpdatedEvent(
                at=audit["at"],
                order_path=doc_ref.path,
                line_count=len(lines),
                payment_code=payment.code,
                actor=actor_doc,
            )
        )
        return LinesUpdateResult(
            order_path=doc_ref.path,
            line_count=len(lines),
            payment=payment,
            audit=audit,
        )

    def ship_order(
        self,
        order: OrderRef,
        expected_delivery_date: str | None,
        delivery_mode: str | None,
        courier: str | None = None,
        awb: str | None = None,
        actor: Actor | None = None,
    ) -> TransitionResult:
        """Move an order to SHIPPED with its shipment details."""
        doc_ref = self.order_document(order)
        order_path = doc_ref.path

        # ---- Validating ----
        missing = [
            name
            for name, value in (
                ("expectedDeliveryDate", expected_delivery_date),
                ("deliveryMode", delivery_mode),
            )
            if value is None or not str(value).strip()
        ]
        if missing:
            raise self._reject(
                MissingFieldError(missing, operation="shipOrder"),
                order_path=order_path,
                prev=None,
                nxt=OrderStatus.SHIPPED,
            )

        record = self._read(doc_ref)
        if record is None:
            raise self._reject(
                OrderNotFoundError(order_path),
                order_path=order_path,
                prev=None,
                nxt=OrderStatus.SHIPPED,
            )

        prev_code = normalize_status_code(record)
        if prev_code is None:
            raise self._reject(
                InvalidStatusError(record.get("statusCode") or record.get("status"), field="current"),
                order_path=order_path,
                prev=None,
                nxt=OrderStatus.SHIPPED,
            )

        if prev_code == OrderStatus.SHIPPED:
            return TransitionResult(
                order_path=order_path,
                prev_status=prev_code,
                status_code=prev_code,
                status=status_label(prev_code) or prev_code,
                noop=True,
            )

        if not can_transition(prev_code, OrderStatus.SHIPPED):
            raise self._reject(
                IllegalTransitionError(prev_code, OrderStatus.SHIPPED, next_statuses(prev_code)),
                order_path=order_path,
                prev=prev_code,
                nxt=OrderStatus.SHIPPED,
            )

        # ---- Persisting ----
        actor_doc = self._actor_document(actor)
        status_fields = self._status_fields(OrderStatus.SHIPPED)
        ts = self._store.server_timestamp()

        shipment = dict(record.get("shipment") or {})
        shipment.update({"courier": courier, "awb": awb, "shippedAt": ts})

        audit = AuditEntry(
            at=self._clock(),
            by=actor_doc,
            status=OrderStatus.SHIPPED,
            event="shipOrder",
            meta={"deliveryMode": delivery_mode},
        ).to_document()

        patch: dict[str, Any] = self._flatten_status_fields(status_fields)
        patch.update(
            {
                "expectedDeliveryDate": expected_delivery_date,
                "deliveryMode": delivery_mode,
                "shipment": shipment,
                "handledBy.shippedBy": actor_doc,
                "updatedAt": ts,
                "auditTrail": self._store.array_union(audit),
            }
        )

        self._persist(doc_ref, patch)

        self._event_bus.emit(
            OrderTransitionEvent(
                at=audit["at"],
                order_path=order_path,
                prev_status=prev_code,
                next_status=OrderStatus.SHIPPED,
                actor=actor_doc,
            )
        )
        LOGGER.info(
            "Order shipped",
            extra={"order_path": order_path, "from": prev_code, "delivery_mode": delivery_mode},
        )

        # ---- MirrorAttempt ----
        mirror_fields = dict(status_fields)
        mirror_fields.update(
            {
                "expectedDeliveryDate": expected_delivery_date,
                "deliveryMode": delivery_mode,
            }
        )
        mirror = self._mirror_status(
            order,
            self._counterparty_of(order, record),
            order_path=order_path,
            next_code=OrderStatus.SHIPPED,
            fields=mirror_fields,
        )

        return TransitionResult(
            order_path=order_path,
            prev_status=prev_code,
            status_code=OrderStatus.SHIPPED,
            status=status_fields["status"],
            mirror=mirror,
        )
