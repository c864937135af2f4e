"""
Logging event sink.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any

from order_lifecycle.core.events.events import (
    MirrorWriteWarning,
    SnapshotReadWarning,
    TransitionRejectedEvent,
)

_WARNING_EVENTS = (MirrorWriteWarning, SnapshotReadWarning)


class LoggingEventSink:
    """Logs domain events using the standard logging module.

    Warnings (mirror/snapshot failures) are logged at WARNING, rejected
    transitions and everything else at INFO.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def on_event(self, event: Any) -> None:
        name = type(event).__name__
        payload = dataclasses.asdict(event) if dataclasses.is_dataclass(event) else {"event": str(event)}

        if isinstance(event, _WARNING_EVENTS):
            self._logger.warning("domain_event %s", name, extra={"event": payload})
        elif isinstance(event, TransitionRejectedEvent):
            self._logger.info("domain_event %s: %s", name, event.reason, extra={"event": payload})
        else:
            self._logger.info("domain_event %s", name, extra={"event": payload})
