"""Authoring-session facade over the store, scheduler and remote store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import Settings, get_settings
from .draft_store import DraftUpdate, LocalDraftStore
from .models import JourneyDraft
from .object_ids import is_canonical
from .persistence import DraftMedium, build_draft_medium
from .projection import from_wire, to_launch_wire
from .remote_client import JourneyRemote, RemoteJourneyClient, RemoteStoreError
from .sync_scheduler import SyncScheduler, SyncState, TimerFactory
from .telemetry import emit_event
from .upsert import DraftProtocolError, DraftUpserter, IdentityContext, StaticIdentity, UpsertResult

logger = logging.getLogger(__name__)


class DraftNotReadyError(ValueError):
    """The draft lacks a journey or modules and cannot be launched."""


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LaunchSettings(_WireModel):
    start_date: Optional[str] = None
    send_notifications: bool = True
    allow_self_paced: bool = True
    enable_live_streaming: bool = False
    record_sessions: bool = True
    ai_tutor_enabled: bool = True


class RehearsalData(_WireModel):
    rating: int = Field(default=0, ge=0, le=5)
    modules_completed: int = Field(default=0, ge=0)
    feedback: str = ""


class DraftCoordinator:
    """Everything one authoring session does with its draft.

    Edits go through the scheduler (debounced), explicit saves force a sync,
    and launch and discard end the draft's lifetime by clearing the store.
    """

    def __init__(
        self,
        store: LocalDraftStore,
        scheduler: SyncScheduler,
        remote: JourneyRemote,
        *,
        identity: IdentityContext | None = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self._remote = remote
        self._identity = identity or StaticIdentity()

    @property
    def state(self) -> SyncState:
        return self.scheduler.state

    def current(self) -> JourneyDraft:
        return self.store.get()

    def edit(self, partial: Optional[DraftUpdate] = None, **fields: Any) -> JourneyDraft:
        self.scheduler.request_debounced_sync(partial, **fields)
        return self.store.get()

    async def save_now(
        self,
        partial: Optional[DraftUpdate] = None,
        *,
        draft_id: Optional[str] = None,
        **fields: Any,
    ) -> Optional[UpsertResult]:
        return await self.scheduler.request_immediate_sync(partial, draft_id=draft_id, **fields)

    def discard(self) -> None:
        self.scheduler.cancel_pending()
        draft_id = self.store.get().draft_id
        self.store.clear()
        logger.info("Discarded draft %s", self.store.key)
        emit_event("draft_discarded", key=self.store.key, draft_id=draft_id)

    async def launch(
        self,
        enrolled_rep_ids: Sequence[str] = (),
        launch_settings: Optional[LaunchSettings] = None,
        rehearsal: Optional[RehearsalData] = None,
    ) -> Dict[str, Any]:
        """Publish the draft as an active journey and clear it locally.

        A final sync is attempted first; if it fails the launch still goes
        ahead with the local state.
        """
        try:
            await self.scheduler.request_immediate_sync()
        except (RemoteStoreError, DraftProtocolError) as exc:
            logger.warning("Pre-launch sync of %s failed, launching from local state: %s", self.store.key, exc)

        draft = self.store.get()
        if not draft.is_syncable():
            raise DraftNotReadyError("A journey with at least one module is required to launch.")

        document = to_launch_wire(
            draft,
            organization_id=self._identity.organization_id(),
            enrolled_rep_ids=list(enrolled_rep_ids),
            launch_settings=(launch_settings or LaunchSettings()).model_dump(by_alias=True),
            rehearsal_data=(rehearsal or RehearsalData()).model_dump(by_alias=True),
        )
        response = await self._remote.launch(document)

        self.scheduler.cancel_pending()
        self.store.clear()
        emit_event(
            "draft_launched",
            key=self.store.key,
            draft_id=draft.draft_id,
            modules=len(draft.modules),
            enrolled=len(enrolled_rep_ids),
        )
        return response

    async def hydrate(self, remote_id: str) -> JourneyDraft:
        """Replace the local draft with the remote document ``remote_id``."""
        if not is_canonical(remote_id):
            raise ValueError(f"'{remote_id}' is not a valid journey id.")
        document = await self._remote.fetch(remote_id)
        restored = from_wire(document)
        if not restored.draft_id:
            restored = restored.model_copy(update={"draft_id": remote_id})

        self.scheduler.cancel_pending()
        self.store.clear()
        logger.info("Hydrated draft %s from remote journey %s", self.store.key, remote_id)
        return self.store.set(restored)

    async def aclose(self) -> None:
        await self.scheduler.aclose()


def _normalize_owner(owner: str) -> str:
    normalized = owner.strip().lower()
    if not normalized:
        raise ValueError("Draft owner cannot be empty.")
    return normalized


class DraftSessionRegistry:
    """One coordinator per owner, sharing a medium and a remote client."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        medium: DraftMedium | None = None,
        remote: JourneyRemote | None = None,
        identity: IdentityContext | None = None,
        timer: TimerFactory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._medium = medium or build_draft_medium(self._settings)
        self._owns_remote = remote is None
        self._remote = remote or RemoteJourneyClient.from_settings(self._settings)
        self._identity = identity or StaticIdentity(self._settings.organization_id)
        self._timer = timer
        self._sessions: Dict[str, DraftCoordinator] = {}

    def get(self, owner: str) -> DraftCoordinator:
        key = _normalize_owner(owner)
        coordinator = self._sessions.get(key)
        if coordinator is None:
            store = LocalDraftStore(self._medium, key=f"{self._settings.draft_storage_key}:{key}")
            upserter = DraftUpserter(store, self._remote, identity=self._identity)
            scheduler = SyncScheduler(
                store,
                upserter,
                debounce_seconds=self._settings.debounce_seconds,
                timer=self._timer,
            )
            coordinator = DraftCoordinator(store, scheduler, self._remote, identity=self._identity)
            self._sessions[key] = coordinator
        return coordinator

    async def aclose(self) -> None:
        await asyncio.gather(*(session.aclose() for session in self._sessions.values()))
        self._sessions.clear()
        if self._owns_remote and isinstance(self._remote, RemoteJourneyClient):
            await self._remote.aclose()


__all__ = [
    "DraftCoordinator",
    "DraftNotReadyError",
    "DraftSessionRegistry",
    "LaunchSettings",
    "RehearsalData",
]
