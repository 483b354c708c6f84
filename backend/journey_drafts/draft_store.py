"""Local draft store: the authoritative copy of an in-progress journey edit."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic_core import to_jsonable_python

from .models import JourneyDraft
from .object_ids import normalize_tree, sanitize_tree, to_wire_tree
from .persistence import DraftMedium
from .telemetry import emit_event

logger = logging.getLogger(__name__)

DEFAULT_DRAFT_KEY = "training_journey_draft"

DraftUpdate = Union[Mapping[str, Any], JourneyDraft]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _field_aliases() -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for name, field in JourneyDraft.model_fields.items():
        alias = field.alias or name
        aliases[name] = alias
        aliases[alias] = alias
    return aliases


_FIELD_ALIASES = _field_aliases()


def _coerce_update(partial: Optional[DraftUpdate], fields: Mapping[str, Any]) -> Dict[str, Any]:
    if isinstance(partial, JourneyDraft):
        items: Dict[str, Any] = partial.model_dump(by_alias=True, mode="json")
    else:
        items = dict(partial or {})
    items.update(fields)

    coerced: Dict[str, Any] = {}
    for key, value in items.items():
        alias = _FIELD_ALIASES.get(key)
        if alias is None:
            raise ValueError(f"Unknown journey draft field '{key}'.")
        coerced[alias] = to_jsonable_python(value, by_alias=True)
    return coerced


class LocalDraftStore:
    """In-memory draft for one authoring session, mirrored to a medium.

    Every ``set`` merges the update into the current draft, sanitizes the
    whole tree (stale or wire-wrapped ids never survive), stamps
    ``lastSaved`` and writes the wire-encoded document to the medium. The
    in-memory copy stays authoritative when the medium fails.
    """

    def __init__(
        self,
        medium: DraftMedium,
        *,
        key: str = DEFAULT_DRAFT_KEY,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        if not key.strip():
            raise ValueError("Draft storage key cannot be empty.")
        self._medium = medium
        self._key = key
        self._clock = clock
        self._draft: Optional[JourneyDraft] = None
        self._generation = 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def generation(self) -> int:
        """Bumped by every ``clear``; lets async writers detect a replaced draft."""
        return self._generation

    def get(self) -> JourneyDraft:
        if self._draft is None:
            self._draft = self._load()
        return self._draft.model_copy(deep=True)

    def set(self, partial: Optional[DraftUpdate] = None, /, **fields: Any) -> JourneyDraft:
        current = self.get()
        updates = _coerce_update(partial, fields)
        merged = {**current.to_tree(), **updates, "lastSaved": self._clock().isoformat()}
        draft = JourneyDraft.model_validate(sanitize_tree(merged))

        if current.draft_id and not draft.draft_id:
            logger.debug(
                "Keeping confirmed draftId %s over an empty or stale replacement",
                current.draft_id,
            )
            draft = draft.model_copy(update={"draft_id": current.draft_id})

        self._draft = draft
        self._persist(draft)
        return draft.model_copy(deep=True)

    def clear(self) -> None:
        self._generation += 1
        self._draft = JourneyDraft(last_saved=self._clock())
        try:
            self._medium.delete(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to remove persisted draft %s", self._key)

    def has_draft(self) -> bool:
        try:
            payload = self._medium.read(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to check persisted draft %s", self._key)
            return False
        return payload is not None and payload.strip() not in ("", "{}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self) -> JourneyDraft:
        try:
            payload = self._medium.read(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read persisted draft %s", self._key)
            return JourneyDraft(last_saved=self._clock())
        if not payload:
            return JourneyDraft(last_saved=self._clock())

        try:
            raw = json.loads(payload)
            cleaned = sanitize_tree(raw)
            draft = JourneyDraft.model_validate(cleaned)
        except ValueError:
            logger.exception("Discarding unreadable persisted draft %s", self._key)
            return JourneyDraft(last_saved=self._clock())

        if cleaned != normalize_tree(raw):
            logger.info("Removed stale identifiers from persisted draft %s", self._key)
            self._persist(draft)
        return draft

    def _persist(self, draft: JourneyDraft) -> None:
        try:
            payload = json.dumps(to_wire_tree(draft.to_tree()))
            self._medium.write(self._key, payload)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to persist draft %s locally", self._key)
            emit_event("draft_local_persist_failed", key=self._key, error=str(exc))


__all__ = ["DEFAULT_DRAFT_KEY", "DraftUpdate", "LocalDraftStore"]
