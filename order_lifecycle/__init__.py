"""Public API for the order_lifecycle package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from order_lifecycle.core.config.engine_config import EngineConfig

# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------
from order_lifecycle.core.domain.errors import (
    IllegalTransitionError,
    InvalidStatusError,
    MissingFieldError,
    OrderLifecycleError,
    OrderLockedError,
    OrderNotFoundError,
    PersistenceError,
)

# ----------------------------------------------------------------------
# Status taxonomy and payment policy
# ----------------------------------------------------------------------
from order_lifecycle.core.domain.order_status import (
    ORDER_ALLOWED_TRANSITIONS,
    ORDER_STATUS_CODES,
    ORDER_TERMINAL_STATES,
    OrderStatus,
    can_transition,
    code_of,
    is_passive_order,
    is_proforma_pending,
    is_terminal_status,
    next_statuses,
    normalize_status_code,
)
from order_lifecycle.core.domain.payment_policy import (
    format_payment_label,
    normalize_payment_mode,
    payment_flags,
)
from order_lifecycle.core.domain.types import Actor, AuditEntry, PaymentDescriptor

# ----------------------------------------------------------------------
# Executor and storage
# ----------------------------------------------------------------------
from order_lifecycle.core.events.event_bus import EventBus
from order_lifecycle.core.executor.transition_executor import (
    LinesUpdateResult,
    MirrorResult,
    OrderRef,
    TransitionExecutor,
    TransitionResult,
)
from order_lifecycle.core.ports.document_store import DocumentRef, DocumentStore
from order_lifecycle.stores.memory_store import InMemoryDocumentStore
from order_lifecycle.stores.sqlite_store import SqliteDocumentStore

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Status
    "OrderStatus",
    "ORDER_STATUS_CODES",
    "ORDER_TERMINAL_STATES",
    "ORDER_ALLOWED_TRANSITIONS",
    "normalize_status_code",
    "code_of",
    "can_transition",
    "next_statuses",
    "is_terminal_status",
    "is_proforma_pending",
    "is_passive_order",

    # Payment
    "PaymentDescriptor",
    "normalize_payment_mode",
    "format_payment_label",
    "payment_flags",

    # Executor
    "TransitionExecutor",
    "OrderRef",
    "TransitionResult",
    "LinesUpdateResult",
    "MirrorResult",
    "Actor",
    "AuditEntry",
    "EventBus",
    "EngineConfig",

    # Storage
    "DocumentRef",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqliteDocumentStore",

    # Errors
    "OrderLifecycleError",
    "InvalidStatusError",
    "IllegalTransitionError",
    "MissingFieldError",
    "OrderNotFoundError",
    "OrderLockedError",
    "PersistenceError",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("order-lifecycle")
except PackageNotFoundError:
    __version__ = "0.0.0"
