from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from order_lifecycle.core.config.engine_config import EngineConfig
from order_lifecycle.core.domain.order_status import code_of, is_terminal_status, next_statuses
from order_lifecycle.core.domain.payment_policy import format_payment_label, normalize_payment_mode
from order_lifecycle.core.events.event_bus import EventBus
from order_lifecycle.core.events.sinks.file_recorder import FileRecorderSink
from order_lifecycle.core.events.sinks.sink_logging import LoggingEventSink
from order_lifecycle.core.executor.transition_executor import TransitionExecutor
from order_lifecycle.runtime.prometheus_metrics import (
    PrometheusMetricsClient,
    TransitionMetricsSink,
)
from order_lifecycle.stores.sqlite_store import SqliteDocumentStore

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return json.loads(path.read_text(encoding="utf-8"))


def load_config(path: Path | None) -> EngineConfig:
    if path is None:
        return EngineConfig()
    return EngineConfig.from_json_obj(_load_json(path))


def build_event_bus(*, audit_log: Path | None, metrics: TransitionMetricsSink) -> EventBus:
    bus = EventBus([LoggingEventSink(logging.getLogger("order_lifecycle.events")), metrics])
    if audit_log is not None:
        bus.register(FileRecorderSink(audit_log))
    return bus


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_serve(args: argparse.Namespace) -> int:
    # Imported here so `next` / `payment` work without the server stack.
    import uvicorn  # pylint: disable=import-outside-toplevel

    from order_lifecycle.api.http_app import create_app  # pylint: disable=import-outside-toplevel

    config = load_config(args.config)
    metrics = TransitionMetricsSink()
    bus = build_event_bus(audit_log=args.audit_log, metrics=metrics)
    store = SqliteDocumentStore(args.db)
    executor = TransitionExecutor(store, config=config, event_bus=bus)

    LOGGER.info(
        "Starting order lifecycle API",
        extra={"db": str(args.db), "host": args.host, "port": args.port},
    )
    try:
        uvicorn.run(create_app(executor), host=args.host, port=args.port, log_level=args.log_level.lower())
    finally:
        PrometheusMetricsClient(metrics.registry).push_all(job=config.metrics_job)
        bus.close()
        store.close()
    return 0


def _cmd_next(args: argparse.Namespace) -> int:
    code = code_of(args.status)
    if code is None:
        print(f"Error: unknown order status {args.status!r}", file=sys.stderr)
        return 2

    payload = {
        "statusCode": code,
        "terminal": is_terminal_status(code),
        "next": next_statuses(code),
    }
    print(json.dumps(payload, indent=2))
    return 0


def _cmd_payment(args: argparse.Namespace) -> int:
    descriptor = normalize_payment_mode(args.mode)
    payload = {"payment": descriptor.to_document(), "display": format_payment_label(descriptor)}
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Order lifecycle engine")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Root log level.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API over a SQLite store.")
    serve.add_argument("--db", type=Path, required=True, help="SQLite database file.")
    serve.add_argument("--config", type=Path, default=None, help="Engine JSON config.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8080)
    serve.add_argument(
        "--audit-log",
        type=Path,
        default=None,
        help="Optional JSON-lines file receiving every domain event.",
    )
    serve.set_defaults(func=_cmd_serve)

    nxt = sub.add_parser("next", help="Print the statuses reachable from a status.")
    nxt.add_argument("status")
    nxt.set_defaults(func=_cmd_next)

    payment = sub.add_parser("payment", help="Print a normalized payment descriptor.")
    payment.add_argument("mode")
    payment.set_defaults(func=_cmd_payment)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
