from __future__ import annotations

import asyncio

import pytest

from journey_drafts.draft_store import LocalDraftStore
from journey_drafts.persistence import InMemoryDraftMedium
from journey_drafts.remote_client import RemoteStoreError
from journey_drafts.sync_scheduler import SyncScheduler, SyncState
from journey_drafts.upsert import DraftUpserter

from ids import JOURNEY_ID


def _scheduler(fake_remote, fake_timer, debounce_seconds: float = 30.0):
    store = LocalDraftStore(InMemoryDraftMedium())
    upserter = DraftUpserter(store, fake_remote)
    return store, SyncScheduler(store, upserter, debounce_seconds=debounce_seconds, timer=fake_timer)


def test_burst_of_edits_produces_one_write(fake_remote, fake_timer, draft_fields) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)

    async def scenario() -> None:
        scheduler.request_debounced_sync(draft_fields)
        for step in range(1, 6):
            scheduler.request_debounced_sync(currentStep=step)
        assert scheduler.state is SyncState.PENDING
        assert len(fake_timer.armed) == 1
        fake_timer.fire()
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert len(fake_remote.calls) == 1
    assert fake_remote.creates[0]["currentStep"] == 5
    assert fake_timer.handles[0].delay == 30.0
    assert scheduler.state is SyncState.IDLE
    assert store.get().draft_id == JOURNEY_ID


def test_incomplete_draft_is_kept_locally(fake_remote, fake_timer, events) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)

    async def scenario():
        scheduler.request_debounced_sync(journey={"name": "No modules yet"})
        fake_timer.fire()
        await scheduler.wait_idle()
        return await scheduler.request_immediate_sync()

    result = asyncio.run(scenario())

    assert result is None
    assert fake_remote.calls == []
    assert store.get().journey.name == "No modules yet"
    skipped = [event for event in events if event.name == "draft_sync_skipped"]
    assert [event.payload["reason"] for event in skipped] == ["incomplete", "incomplete"]


def test_immediate_sync_cancels_the_pending_timer(fake_remote, fake_timer, draft_fields) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)

    async def scenario():
        scheduler.request_debounced_sync(draft_fields)
        result = await scheduler.request_immediate_sync(currentStep=2)
        fake_timer.fire()
        await scheduler.wait_idle()
        return result

    result = asyncio.run(scenario())

    assert result is not None and result.created
    assert fake_timer.handles[0].cancelled
    assert len(fake_remote.calls) == 1
    assert scheduler.state is SyncState.IDLE


def test_contending_syncs_never_create_twice(fake_remote, fake_timer, draft_fields, events) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)

    async def scenario():
        fake_remote.gate = asyncio.Event()
        scheduler.request_debounced_sync(draft_fields)
        fake_timer.fire()
        await asyncio.sleep(0)
        assert scheduler.state is SyncState.SYNCING

        skipped = await scheduler.request_immediate_sync(currentStep=3)
        scheduler.request_debounced_sync(currentStep=4)
        fake_remote.gate.set()
        await scheduler.wait_idle()

        fake_timer.fire()
        await scheduler.wait_idle()
        return skipped

    skipped = asyncio.run(scenario())

    assert skipped is None
    assert len(fake_remote.creates) == 1
    assert [resource_id for resource_id, _ in fake_remote.updates] == [JOURNEY_ID]
    assert fake_remote.updates[0][1]["currentStep"] == 4
    assert store.get().draft_id == JOURNEY_ID
    reasons = [event.payload.get("reason") for event in events if event.name == "draft_sync_skipped"]
    assert reasons == ["in_flight"]


def test_debounced_failure_is_logged_not_raised(fake_remote, fake_timer, draft_fields, events) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)
    fake_remote.error = RemoteStoreError("store offline")

    async def scenario() -> None:
        scheduler.request_debounced_sync(draft_fields)
        fake_timer.fire()
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert scheduler.state is SyncState.IDLE
    assert store.get().draft_id is None
    assert len(store.get().modules) == 1
    assert [event.name for event in events][-1] == "draft_sync_failed"
    assert fake_timer.armed == []


def test_immediate_failure_propagates(fake_remote, fake_timer, draft_fields) -> None:
    store, scheduler = _scheduler(fake_remote, fake_timer)
    fake_remote.error = RemoteStoreError("store offline")

    with pytest.raises(RemoteStoreError):
        asyncio.run(scheduler.request_immediate_sync(draft_fields))

    assert scheduler.state is SyncState.IDLE
    fake_remote.error = None
    result = asyncio.run(scheduler.request_immediate_sync())
    assert result is not None and result.created
    assert len(fake_remote.creates) == 2


def test_default_timer_uses_the_event_loop(fake_remote, draft_fields) -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    scheduler = SyncScheduler(store, DraftUpserter(store, fake_remote), debounce_seconds=0.01)

    async def scenario() -> None:
        scheduler.request_debounced_sync(draft_fields)
        await asyncio.sleep(0.05)
        await scheduler.wait_idle()

    asyncio.run(scenario())

    assert len(fake_remote.creates) == 1
    assert store.get().draft_id == JOURNEY_ID
