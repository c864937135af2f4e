"""Core shared data models and schemas.

This module defines the canonical Pydantic models used across the engine
for payment descriptors, actors, audit entries and the request bodies of
the HTTP surface. Persisted models use camelCase aliases because order documents
are shared with clients that read camelCase fields.

Order records themselves are owned by the counterparty's order collection
and are handled as plain mappings; only the fields the engine writes are
modelled here.
"""

# pylint: disable=line-too-long,missing-class-docstring,missing-function-docstring
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------


class PaymentDescriptor(BaseModel):
    """Derived payment view. Never the primary truth for an order."""

    code: str = ""
    label: str = "N/A"

    is_cod: bool = Field(False, alias="isCOD")
    is_split: bool = Field(False, alias="isSplit")
    is_advance: bool = Field(False, alias="isAdvance")
    is_credit: bool = Field(False, alias="isCredit")
    is_upi: bool = Field(False, alias="isUPI")
    is_net_banking: bool = Field(False, alias="isNetBanking")
    is_cheque: bool = Field(False, alias="isCheque")

    credit_days: float | None = Field(default=None, alias="creditDays")
    advance_amount: float | None = Field(default=None, alias="advanceAmount")
    split_ratio: str | None = Field(default=None, alias="splitRatio")

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase mapping persisted under ``payment``."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Actors and audit
# ---------------------------------------------------------------------------


ActorType = Literal["distributor", "retailer", "product_owner", "employee", "system"]


class Actor(BaseModel):
    uid: str | None = Field(default=None, min_length=1)
    type: ActorType = "distributor"

    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_document(self) -> dict[str, Any]:
        """Render the actor the way audit entries store it."""
        if self.uid is None:
            return {"type": "system"}
        return {"uid": self.uid, "type": self.type}


SYSTEM_ACTOR = Actor(type="system")


class AuditEntry(BaseModel):
    """One append-only audit-trail entry.

    Status transitions carry ``status``; other operations carry ``event``
    (e.g. "updateLines", "shipOrder"). ``forced`` is only present for
    transitions taken through the force override.
    """

    at: str = Field(..., min_length=1, description="ISO-8601 UTC timestamp.")
    by: dict[str, str]
    status: str | None = Field(default=None, min_length=1)
    event: str | None = Field(default=None, min_length=1)
    forced: Literal[True] | None = None
    meta: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Requests (HTTP surface)
# ---------------------------------------------------------------------------


class TransitionRequest(BaseModel):
    """Request body for ``POST /orders/{owner_id}/{order_id}/transition``."""

    current: str | None = None
    to: str = Field(..., min_length=1)
    extra: dict[str, Any] = Field(default_factory=dict)
    force: bool = False
    actor: Actor | None = None
    counterparty_id: str | None = Field(default=None, alias="counterpartyId", min_length=1)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("extra")
    @classmethod
    def _reserved_keys(cls, value: dict[str, Any]) -> dict[str, Any]:
        # Status fields and the audit trail are owned by the engine.
        reserved = {"statusCode", "status", "auditTrail", "statusTimestamps"}
        # Dotted keys patch nested fields, so "statusTimestamps.x" clashes too.
        clash = sorted(key for key in value if key.split(".", 1)[0] in reserved)
        if clash:
            raise ValueError(f"extra must not contain engine-owned fields: {clash}")
        return value


class UpdateLinesRequest(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    delivery_mode: str = Field("", alias="deliveryMode")
    expected_delivery_date: str = Field("", alias="expectedDeliveryDate")
    payment_mode: str | dict[str, Any] | None = Field(default=None, alias="paymentMode")
    actor: Actor | None = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ShipOrderRequest(BaseModel):
    expected_delivery_date: str | None = Field(default=None, alias="expectedDeliveryDate")
    delivery_mode: str | None = Field(default=None, alias="deliveryMode")
    courier: str | None = None
    awb: str | None = None
    actor: Actor | None = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
