"""
Event bus that drops every event.

Default bus of TransitionExecutor when no sinks are wired; tests that need
to observe events pass a real EventBus instead.
"""
from __future__ import annotations

from typing import Any

from order_lifecycle.core.events.event_bus import EventBus, EventSink


class NullEventBus(EventBus):
    def __init__(self) -> None:
        super().__init__(sinks=())

    def register(self, sink: EventSink) -> None:
        raise TypeError(
            f"NullEventBus drops all events; cannot register {type(sink).__name__}"
        )

    def emit(self, event: Any) -> None:
        return
