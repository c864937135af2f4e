"""
Semantic test: status normalization.

Invariant:
Once a status is canonical, re-normalizing it returns it unchanged.
statusCode wins over the legacy status label when it is a recognized
code, and unknown input normalizes to None (never to a default).
"""

from __future__ import annotations

import pytest

from order_lifecycle.core.domain.order_status import (
    ORDER_STATUS_CODES,
    OrderStatus,
    code_of,
    normalize_status_code,
    status_label,
    status_timestamp_field,
)


@pytest.mark.parametrize("code", sorted(ORDER_STATUS_CODES))
def test_canonical_codes_are_fixed_points(code: str) -> None:
    assert code_of(code) == code
    assert code_of(code_of(code)) == code


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("requested", OrderStatus.REQUESTED),
        ("Placed", OrderStatus.REQUESTED),
        ("Proforma Sent", OrderStatus.QUOTED),
        ("On Hold", OrderStatus.ON_HOLD),
        ("on-hold", OrderStatus.ON_HOLD),
        ("HOLD", OrderStatus.ON_HOLD),
        ("Pending", OrderStatus.PACKED),
        ("Out for Delivery", OrderStatus.OUT_FOR_DELIVERY),
        ("out  for   delivery", OrderStatus.OUT_FOR_DELIVERY),
        ("OUT_FOR_DELIVERY", OrderStatus.OUT_FOR_DELIVERY),
        ("  shipped ", OrderStatus.SHIPPED),
    ],
)
def test_labels_and_legacy_aliases_resolve(raw: str, expected: str) -> None:
    assert code_of(raw) == expected
    assert normalize_status_code({"status": raw}) == expected


def test_status_code_field_wins_over_legacy_label() -> None:
    record = {"statusCode": "SHIPPED", "status": "Requested"}
    assert normalize_status_code(record) == OrderStatus.SHIPPED


def test_unrecognized_status_code_falls_back_to_label() -> None:
    record = {"statusCode": "SOMETHING_NEW", "status": "Delivered"}
    assert normalize_status_code(record) == OrderStatus.DELIVERED


def test_status_code_is_case_insensitive() -> None:
    assert normalize_status_code({"statusCode": "accepted"}) == OrderStatus.ACCEPTED


@pytest.mark.parametrize(
    "record",
    [
        None,
        {},
        {"status": ""},
        {"status": "   "},
        {"status": "Teleported"},
        {"statusCode": 42},
        "not-a-record",
    ],
)
def test_unknown_status_is_none_not_requested(record) -> None:
    assert code_of(record) is None


def test_labels_and_timestamp_fields_cover_every_code() -> None:
    for code in ORDER_STATUS_CODES:
        assert status_label(code)
        assert status_timestamp_field(code)

    assert status_label("on hold") == "On Hold"
    assert status_timestamp_field(OrderStatus.QUOTED) == "quotedAt"
    assert status_timestamp_field(OrderStatus.OUT_FOR_DELIVERY) == "outForDeliveryAt"
    assert status_label("BOGUS") is None
    assert status_timestamp_field(None) is None
