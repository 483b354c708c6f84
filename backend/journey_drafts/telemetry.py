"""In-process telemetry for draft persistence and sync activity."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, List

logger = logging.getLogger("journey_drafts.telemetry")

DRAFT_EVENTS = (
    "draft_sync_skipped",
    "draft_sync_started",
    "draft_sync_completed",
    "draft_sync_failed",
    "draft_local_persist_failed",
    "draft_launched",
    "draft_discarded",
)


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


_listeners: List[Callable[[TelemetryEvent], None]] = []
_lock = RLock()


def register_listener(listener: Callable[[TelemetryEvent], None]) -> None:
    """Register an in-process listener (used in tests)."""
    with _lock:
        _listeners.append(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> None:
    """Emit a structured event, fan it out to listeners and log it."""
    if name not in DRAFT_EVENTS:
        logger.debug("Emitting unregistered telemetry event %s", name)
    event = TelemetryEvent(name=name, payload=_sanitize(fields))

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    structured = {"event": name, "at": event.emitted_at.isoformat(), **event.payload}
    logger.info("TELEMETRY %s", json.dumps(structured, default=str))


def _sanitize(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in fields.items()
    }


__all__ = [
    "DRAFT_EVENTS",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
