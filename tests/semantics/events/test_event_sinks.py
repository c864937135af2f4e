"""
Semantic test: event sinks.

Invariant:
Domain events reach every registered sink; a failing sink is logged and
never breaks the emitting operation. The file recorder writes one JSON
line per event and the logging sink reports warnings at WARNING level.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from order_lifecycle.core.events.event_bus import EventBus
from order_lifecycle.core.events.events import (
    MirrorWriteWarning,
    OrderTransitionEvent,
    TransitionRejectedEvent,
)
from order_lifecycle.core.events.sinks.file_recorder import FileRecorderSink
from order_lifecycle.core.events.sinks.null_event_bus import NullEventBus
from order_lifecycle.core.events.sinks.sink_logging import LoggingEventSink
from order_lifecycle.core.executor.transition_executor import OrderRef, TransitionExecutor
from order_lifecycle.stores.memory_store import InMemoryDocumentStore

ORDER_PATH = "businesses/dist-1/orderRequests/order-1"


class _ExplodingSink:
    def on_event(self, event: Any) -> None:
        raise RuntimeError("sink down")


def test_file_recorder_writes_json_lines(tmp_path: Path) -> None:
    out = tmp_path / "events" / "audit.jsonl"
    recorder = FileRecorderSink(out)
    bus = EventBus([recorder])

    store = InMemoryDocumentStore()
    store.put(ORDER_PATH, {"statusCode": "PACKED"})
    TransitionExecutor(store, event_bus=bus).set_order_status(
        OrderRef("dist-1", "order-1"), "PACKED", "SHIPPED"
    )
    bus.close()
    # Closing twice is harmless.
    bus.close()

    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["type"] == "OrderTransitionEvent"
    assert record["prev_status"] == "PACKED"
    assert record["next_status"] == "SHIPPED"
    assert record["actor"] == {"type": "system"}


def test_failing_sink_does_not_break_the_operation(caplog: pytest.LogCaptureFixture) -> None:
    store = InMemoryDocumentStore()
    store.put(ORDER_PATH, {"statusCode": "PACKED"})
    bus = EventBus([_ExplodingSink()])

    with caplog.at_level(logging.ERROR, logger="order_lifecycle.core.events.event_bus"):
        result = TransitionExecutor(store, event_bus=bus).set_order_status(
            OrderRef("dist-1", "order-1"), "PACKED", "SHIPPED"
        )

    assert result.status_code == "SHIPPED"
    assert store.snapshot(ORDER_PATH)["statusCode"] == "SHIPPED"
    assert any(r.getMessage() == "Event sink failed" for r in caplog.records)


def test_logging_sink_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.order_events")
    sink = LoggingEventSink(logger)

    with caplog.at_level(logging.INFO, logger="test.order_events"):
        sink.on_event(
            OrderTransitionEvent(
                at="t", order_path=ORDER_PATH, prev_status="PACKED", next_status="SHIPPED",
                actor={"type": "system"},
            )
        )
        sink.on_event(
            TransitionRejectedEvent(
                at="t", order_path=ORDER_PATH, prev_status="REJECTED", next_status="PACKED",
                reason="illegal_transition",
            )
        )
        sink.on_event(
            MirrorWriteWarning(
                at="t", order_path=ORDER_PATH, mirror_path="businesses/r/sentOrders/order-1",
                next_status="SHIPPED", error="denied",
            )
        )

    levels = [(r.levelname, r.getMessage()) for r in caplog.records]
    assert levels == [
        ("INFO", "domain_event OrderTransitionEvent"),
        ("INFO", "domain_event TransitionRejectedEvent: illegal_transition"),
        ("WARNING", "domain_event MirrorWriteWarning"),
    ]


def test_null_event_bus_drops_events_and_refuses_sinks() -> None:
    bus = NullEventBus()
    bus.emit(object())

    with pytest.raises(TypeError):
        bus.register(_ExplodingSink())
