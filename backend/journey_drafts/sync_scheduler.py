"""Debounced and forced synchronization of the local draft to the remote store.

States: ``idle`` -> edit -> ``pending`` (one timer armed) -> timer fires ->
``syncing`` -> ``idle``. A forced sync cancels the timer and goes straight to
``syncing``. The ``syncing`` guard is checked and set before the first
``await``, so on a single event loop no two attempts overlap; an attempt that
finds the guard taken does nothing, and the edit it carried is picked up by
the next attempt because every attempt re-reads the store.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Set

from .draft_store import DraftUpdate, LocalDraftStore
from .telemetry import emit_event
from .upsert import DraftUpserter, UpsertResult

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 30.0


class TimerHandle(Protocol):
    def cancel(self) -> None:  # pragma: no cover - protocol definition
        ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class SyncState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SYNCING = "syncing"


def _loop_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class SyncScheduler:
    def __init__(
        self,
        store: LocalDraftStore,
        upserter: DraftUpserter,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        timer: TimerFactory | None = None,
    ) -> None:
        self._store = store
        self._upserter = upserter
        self._debounce_seconds = debounce_seconds
        self._timer = timer or _loop_timer
        self._pending: Optional[TimerHandle] = None
        self._syncing = False
        self._tasks: Set[asyncio.Task[None]] = set()
        self.last_result: Optional[UpsertResult] = None

    @property
    def state(self) -> SyncState:
        if self._syncing:
            return SyncState.SYNCING
        if self._pending is not None:
            return SyncState.PENDING
        return SyncState.IDLE

    def request_debounced_sync(self, partial: Optional[DraftUpdate] = None, **fields: Any) -> None:
        """Record the edit now and arm a single deferred sync.

        Any previously armed timer is cancelled, so a burst of edits inside
        one window produces one remote write.
        """
        self.cancel_pending()
        if partial or fields:
            self._store.set(partial, **fields)
        self._pending = self._timer(self._debounce_seconds, self._on_timer)

    async def request_immediate_sync(
        self,
        partial: Optional[DraftUpdate] = None,
        *,
        draft_id: Optional[str] = None,
        **fields: Any,
    ) -> Optional[UpsertResult]:
        """Record the edit and sync now.

        Returns ``None`` when the sync was skipped (another one in flight, or
        the draft is not complete enough to send). Remote failures propagate.
        """
        self.cancel_pending()
        if partial or fields:
            self._store.set(partial, **fields)
        return await self._attempt("immediate", draft_id=draft_id)

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def wait_idle(self) -> None:
        """Wait for timer-triggered syncs that have already started."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        self.cancel_pending()
        await self.wait_idle()

    def _on_timer(self) -> None:
        self._pending = None
        task = asyncio.create_task(self._run_debounced())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_debounced(self) -> None:
        try:
            await self._attempt("debounced")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Debounced draft sync failed; local draft kept for the next attempt: %s", exc)

    async def _attempt(self, trigger: str, *, draft_id: Optional[str] = None) -> Optional[UpsertResult]:
        if self._syncing:
            logger.info("Draft sync already in flight; skipping %s sync for %s", trigger, self._store.key)
            emit_event("draft_sync_skipped", key=self._store.key, trigger=trigger, reason="in_flight")
            return None

        self._syncing = True
        try:
            draft = self._store.get()
            if not draft.is_syncable():
                logger.info(
                    "Skipping %s sync for %s: journey=%s modules=%d",
                    trigger,
                    self._store.key,
                    draft.journey is not None,
                    len(draft.modules),
                )
                emit_event("draft_sync_skipped", key=self._store.key, trigger=trigger, reason="incomplete")
                return None

            emit_event("draft_sync_started", key=self._store.key, trigger=trigger, draft_id=draft.draft_id)
            try:
                result = await self._upserter.upsert(draft_id)
            except Exception as exc:
                emit_event(
                    "draft_sync_failed",
                    key=self._store.key,
                    trigger=trigger,
                    error=str(exc),
                )
                raise

            self.last_result = result
            emit_event(
                "draft_sync_completed",
                key=self._store.key,
                trigger=trigger,
                draft_id=result.id,
                created=result.created,
            )
            return result
        finally:
            self._syncing = False


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "SyncScheduler",
    "SyncState",
    "TimerFactory",
    "TimerHandle",
]
