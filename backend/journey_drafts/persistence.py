"""Whole-document key-value media backing the local draft store."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from sqlalchemy import select

from .config import Settings, get_settings
from .db.models import DraftEntryModel
from .db.session import ensure_schema, session_scope

logger = logging.getLogger(__name__)


class DraftMedium(Protocol):
    """Key-value medium storing one serialized draft document per key."""

    def read(self, key: str) -> Optional[str]:  # pragma: no cover - protocol definition
        ...

    def write(self, key: str, payload: str) -> None:  # pragma: no cover - protocol definition
        ...

    def delete(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...


class InMemoryDraftMedium:
    """Process-local medium; contents vanish with the process."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}

    def read(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def write(self, key: str, payload: str) -> None:
        self._entries[key] = payload

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class FileDraftMedium:
    """JSON file holding every draft document keyed by storage key."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        with self._path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
        if not isinstance(raw, dict):
            raise ValueError(f"Draft file {self._path} does not contain a JSON object.")
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def _write_unlocked(self, entries: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(entries, handle, indent=2)
        tmp_path.replace(self._path)

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load_unlocked().get(key)

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            entries = self._load_unlocked()
            entries[key] = payload
            self._write_unlocked(entries)

    def delete(self, key: str) -> None:
        with self._lock:
            entries = self._load_unlocked()
            if entries.pop(key, None) is not None:
                self._write_unlocked(entries)


class DatabaseDraftMedium:
    """SQL table with one row per storage key."""

    def __init__(self, *, create_schema: bool = True) -> None:
        if create_schema:
            ensure_schema()

    def read(self, key: str) -> Optional[str]:
        with session_scope(commit=False) as session:
            row = session.execute(
                select(DraftEntryModel).where(DraftEntryModel.key == key)
            ).scalar_one_or_none()
            return row.payload if row is not None else None

    def write(self, key: str, payload: str) -> None:
        with session_scope() as session:
            row = session.get(DraftEntryModel, key)
            if row is None:
                session.add(DraftEntryModel(key=key, payload=payload))
            else:
                row.payload = payload

    def delete(self, key: str) -> None:
        with session_scope() as session:
            row = session.get(DraftEntryModel, key)
            if row is None:
                logger.debug("No stored draft for %s", key)
                return
            session.delete(row)


def build_draft_medium(settings: Settings | None = None) -> DraftMedium:
    settings = settings or get_settings()
    mode = settings.persistence_mode
    if mode == "memory":
        return InMemoryDraftMedium()
    if mode == "database":
        return DatabaseDraftMedium()
    return FileDraftMedium(settings.resolved_draft_file())


__all__ = [
    "DatabaseDraftMedium",
    "DraftMedium",
    "FileDraftMedium",
    "InMemoryDraftMedium",
    "build_draft_medium",
]
