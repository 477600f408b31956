"""Structured logging for a machine-parseable audit trail of worker activity."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

_configured = False
_logger: structlog.BoundLogger | None = None


def configure_run_logging(log_dir: str) -> None:
    """One-time setup at worker start. Writes JSON lines to {log_dir}/app.jsonl."""
    global _configured, _logger
    if _configured:
        return
    app_log_path = Path(log_dir) / "app.jsonl"
    app_log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handle = open(app_log_path, "a", encoding="utf-8")

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=True,
    )
    _configured = True
    _logger = structlog.get_logger()


def bind_worker(worker_id: str) -> None:
    """Bind worker context so every event carries the worker_id."""
    structlog.contextvars.bind_contextvars(worker_id=worker_id)


def log_retry_attempt(
    context: str | None,
    attempt: int,
    max_attempts: int,
    status: str,
    error: str | None = None,
) -> None:
    """Log one attempt of a retried unit of work."""
    payload: dict[str, Any] = {"attempt": attempt, "max_attempts": max_attempts, "status": status}
    if context is not None:
        payload["context"] = context
    if error is not None:
        payload["error"] = error
    if _logger is not None:
        _logger.info("retry_attempt", **payload)


def log_item_result(
    call_id: str,
    status: str,
    *,
    label: str | None = None,
    grade: float | None = None,
    scorecard: str | None = None,
    error: str | None = None,
) -> None:
    """Log the final outcome of one call in a batch."""
    payload: dict[str, Any] = {"call_id": call_id, "status": status}
    if label is not None:
        payload["label"] = label
    if grade is not None:
        payload["grade"] = grade
    if scorecard is not None:
        payload["scorecard"] = scorecard
    if error is not None:
        payload["error"] = error
    if _logger is not None:
        _logger.info("item_result", **payload)


def log_cycle(action: str, **summary: Any) -> None:
    """Log a scheduler cycle transition (action: start|done|error|skipped)."""
    if _logger is not None:
        _logger.info("cycle", action=action, **summary)


def log_config_update(config: dict[str, Any], persisted: bool) -> None:
    if _logger is not None:
        _logger.info("config_update", config=config, persisted=persisted)


# ---------------------------------------------------------------------------
# JSONL replay helpers
# ---------------------------------------------------------------------------

_KNOWN_EVENTS = frozenset({"retry_attempt", "item_result", "cycle", "config_update"})


def load_events_from_jsonl(path: str) -> list[dict[str, Any]]:
    """Read an app.jsonl file and return known events with "type" and "ts" keys.

    Skips lines that fail to parse or carry an unknown event name.
    """
    result: list[dict[str, Any]] = []
    try:
        with open(path, encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                ev = entry.get("event")
                if ev not in _KNOWN_EVENTS:
                    continue
                out = {k: v for k, v in entry.items() if k not in ("event", "level", "timestamp")}
                out["type"] = ev
                out["ts"] = entry.get("timestamp", "")
                result.append(out)
    except OSError:
        pass
    return result
