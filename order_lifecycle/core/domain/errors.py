"""Order lifecycle error taxonomy.

Validation kinds (invalid status, illegal transition, missing field, order
not found) are raised before any write, so the record is guaranteed
unchanged. PersistenceError is raised when the single atomic patch failed;
the record is then either fully updated or fully unchanged.
"""

from __future__ import annotations

from typing import Any, Iterable


class OrderLifecycleError(Exception):
    """Base class for all caller-visible order lifecycle errors."""

    code: str = "order_lifecycle_error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Return a structured, JSON-compatible error body."""
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class InvalidStatusError(OrderLifecycleError):
    code = "invalid_status"

    def __init__(self, value: Any, *, field: str = "to") -> None:
        super().__init__(f"Unknown order status {value!r} for '{field}'")
        self.value = value
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        body["value"] = None if self.value is None else str(self.value)
        return body


class IllegalTransitionError(OrderLifecycleError):
    """The transition is not in the graph and was not a permitted force.

    ``allowed`` lists the statuses reachable from the current one so callers
    can refresh their available actions instead of retrying.
    """

    code = "illegal_transition"

    def __init__(
        self,
        prev: str | None,
        nxt: str,
        allowed: Iterable[str],
        *,
        forced: bool = False,
    ) -> None:
        self.prev = prev
        self.next = nxt
        self.allowed = list(allowed)
        self.forced = forced

        shown = ", ".join(self.allowed) if self.allowed else "none"
        if forced:
            message = (
                f"Forced transition {prev} -> {nxt} is not permitted "
                f"(allowed next statuses: {shown})"
            )
        else:
            message = (
                f"Cannot move order from {prev or 'an unknown status'} to {nxt} "
                f"(allowed next statuses: {shown})"
            )
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["from"] = self.prev
        body["to"] = self.next
        body["allowed"] = list(self.allowed)
        return body


class MissingFieldError(OrderLifecycleError):
    code = "missing_field"

    def __init__(self, fields: Iterable[str], *, operation: str) -> None:
        self.fields = list(fields)
        self.operation = operation
        super().__init__(
            f"{operation} requires: {', '.join(self.fields)}"
        )

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["fields"] = list(self.fields)
        return body


class OrderNotFoundError(OrderLifecycleError):
    code = "order_not_found"

    def __init__(self, path: str) -> None:
        super().__init__(f"Order not found: {path}")
        self.path = path


class OrderLockedError(OrderLifecycleError):
    """The order's status no longer allows line edits.

    Line items are editable until the order is accepted; accepted and
    terminal orders keep their persisted lines.
    """

    code = "order_locked"

    def __init__(self, path: str, status: str | None) -> None:
        super().__init__(
            f"Order {path} in {status or 'an unknown status'} no longer accepts line edits"
        )
        self.path = path
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["status"] = self.status
        return body


class PersistenceError(OrderLifecycleError):
    """The store rejected or failed the atomic write (or a required read).

    The engine performs no internal retries; callers may retry.
    """

    code = "persistence_error"
    retryable = True

    def __init__(self, path: str, operation: str, cause: BaseException) -> None:
        super().__init__(
            f"Failed to {operation} order document {path}: {cause}"
        )
        self.path = path
        self.operation = operation
        self.cause = cause
