"""Engine configuration model for the order lifecycle engine."""

from __future__ import annotations

import string
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_ORDER_FIELDS = {"owner_id", "order_id"}
_MIRROR_FIELDS = {"owner_id", "order_id", "counterparty_id"}


def _template_fields(template: str) -> set[str]:
    return {
        name
        for _, name, _, _ in string.Formatter().parse(template)
        if name is not None
    }


class EngineConfig(BaseModel):
    """Structured engine configuration.

    Path templates map an order reference to document paths:
    - order_path_template: the authoritative order document (owned by the
      fulfilling party).
    - mirror_path_template: the counterparty's read copy of the order.
    """

    order_path_template: str = Field(
        "businesses/{owner_id}/orderRequests/{order_id}",
        min_length=1,
    )
    mirror_path_template: str = Field(
        "businesses/{counterparty_id}/sentOrders/{order_id}",
        min_length=1,
    )

    # Field of the order record naming the counterparty (placing retailer).
    counterparty_field: str = Field("retailerId", min_length=1)
    # Field of the mirror copy naming the order owner (fulfilling distributor).
    owner_field: str = Field("distributorId", min_length=1)

    mirror_enabled: bool = True

    # Fields forwarded from the persisted record when an order is accepted.
    preserved_on_accept: tuple[str, ...] = (
        "proforma",
        "chargesSnapshot",
        "items",
        "proformaLocked",
        "directFlow",
    )

    metrics_job: str = Field("order-lifecycle", min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, obj: dict[str, Any]) -> EngineConfig:
        """Create an EngineConfig instance from a JSON-compatible object."""
        return cls.model_validate(obj)

    @field_validator("order_path_template")
    @classmethod
    def _validate_order_template(cls, value: str) -> str:
        fields = _template_fields(value)
        if fields != _ORDER_FIELDS:
            raise ValueError(
                f"order_path_template must use exactly {sorted(_ORDER_FIELDS)}, got {sorted(fields)}"
            )
        return value

    @field_validator("mirror_path_template")
    @classmethod
    def _validate_mirror_template(cls, value: str) -> str:
        fields = _template_fields(value)
        if "counterparty_id" not in fields or not fields <= _MIRROR_FIELDS:
            raise ValueError(
                "mirror_path_template must use counterparty_id and only "
                f"{sorted(_MIRROR_FIELDS)}, got {sorted(fields)}"
            )
        return value

    @model_validator(mode="after")
    def validate_consistency(self) -> EngineConfig:
        """Validate that the mirror never points at the order document."""
        sample = {"owner_id": "o", "order_id": "x", "counterparty_id": "o"}
        if self.order_path_template.format(**sample) == self.mirror_path_template.format(**sample):
            raise ValueError("mirror_path_template must differ from order_path_template")
        return self
