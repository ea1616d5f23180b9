"""
Trace hooks + logging helpers for the lot pipeline.

Components accept an optional ``trace`` callable ``(event, fields) -> None``.
The default forwards every event to the ``appraisal.lots`` logger at DEBUG;
tests pass a ``TraceRecorder`` to assert on events instead of parsing logs.

Events emitted
--------------
- analyze:start / analyze:done        strategy boundaries
- ai:call / ai:response               one per collaborator call
- response_dropped                    unparseable response (warning)
- per_item:lot                        index/url override applied to a lot
- dedup:before / dedup:drop / dedup:after
- assemble:skip_index / assemble:done
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from typing import Any

TraceHook = Callable[[str, dict[str, Any]], None]

LOGGER_NAME = "appraisal.lots"

_DEBUG_LOGGER: logging.Logger | None = None


def debug_enabled() -> bool:
    return os.getenv("APPRAISAL_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def get_debug_logger() -> logging.Logger:
    """Create/reuse the pipeline logger; adds a rotating file handler when APPRAISAL_DEBUG is on."""
    global _DEBUG_LOGGER
    if _DEBUG_LOGGER is not None:
        return _DEBUG_LOGGER

    logger = logging.getLogger(LOGGER_NAME)

    if debug_enabled() and not logger.handlers:
        logger.setLevel(logging.DEBUG)
        log_path = os.path.join("logs", "appraisal_debug.log")
        try:
            os.makedirs(os.path.dirname(log_path), exist_ok=True)
            handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                    datefmt="(%Y-%m-%d %H:%M:%S)",
                )
            )
            logger.addHandler(handler)
        except OSError:
            # Unwritable cwd: keep logging through whatever the root logger has.
            pass

    _DEBUG_LOGGER = logger
    return logger


def redact(text: str) -> str:
    for k in ("OPENAI_API_KEY",):
        val = os.getenv(k)
        if val:
            text = text.replace(val, "[REDACTED]")
    return text


def logging_trace(event: str, fields: dict[str, Any]) -> None:
    logger = get_debug_logger()
    level = logging.WARNING if event == "response_dropped" else logging.DEBUG
    if not logger.isEnabledFor(level):
        return
    parts = " ".join(f"{k}={v!r}" for k, v in fields.items())
    logger.log(level, redact(f"[{event}] {parts}"))


def null_trace(event: str, fields: dict[str, Any]) -> None:
    return None


@dataclass
class TraceRecorder:
    """Collects trace events in memory; optionally chains to another hook."""

    forward: TraceHook | None = None
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def __call__(self, event: str, fields: dict[str, Any]) -> None:
        self.events.append((event, dict(fields)))
        if self.forward is not None:
            self.forward(event, fields)

    def named(self, event: str) -> list[dict[str, Any]]:
        return [f for e, f in self.events if e == event]


def resolve_trace(trace: TraceHook | None) -> TraceHook:
    return trace if trace is not None else logging_trace


__all__ = [
    "TraceHook",
    "LOGGER_NAME",
    "debug_enabled",
    "get_debug_logger",
    "redact",
    "logging_trace",
    "null_trace",
    "TraceRecorder",
    "resolve_trace",
]
