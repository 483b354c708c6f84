from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from journey_drafts.draft_store import LocalDraftStore
from journey_drafts.models import JourneyDraft, TrainingJourney
from journey_drafts.object_ids import is_canonical
from journey_drafts.persistence import InMemoryDraftMedium

from ids import JOURNEY_ID as CANONICAL, OTHER_ID as OTHER


class BrokenMedium(InMemoryDraftMedium):
    def write(self, key: str, payload: str) -> None:
        raise OSError("quota exceeded")


class TickingClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def _walk_ids(node, found):
    if isinstance(node, dict):
        for key, value in node.items():
            if key in ("id", "_id") or key.endswith("Id"):
                found.append(value)
            elif key.endswith("Ids"):
                found.extend(value)
            else:
                _walk_ids(value, found)
    elif isinstance(node, list):
        for item in node:
            _walk_ids(item, found)
    return found


def test_get_defaults_to_empty_draft() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())

    draft = store.get()

    assert draft.journey is None
    assert draft.modules == []
    assert draft.draft_id is None
    assert not store.has_draft()


def test_set_merges_and_stamps_last_saved(draft_fields) -> None:
    clock = TickingClock()
    store = LocalDraftStore(InMemoryDraftMedium(), clock=clock)

    store.set(journey=draft_fields["journey"])
    first = store.get().last_saved
    store.set({"modules": draft_fields["modules"]}, currentStep=2)
    draft = store.get()

    assert draft.journey is not None and draft.journey.title == "Sales Onboarding"
    assert len(draft.modules) == 1
    assert draft.current_step == 2
    assert draft.last_saved > first


def test_set_accepts_field_names_and_models() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())

    store.set(current_step=3, journey=TrainingJourney(name="Renewals"))

    draft = store.get()
    assert draft.current_step == 3
    assert draft.journey.name == "Renewals"


def test_set_rejects_unknown_fields() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())

    with pytest.raises(ValueError):
        store.set(colour="blue")


def test_get_returns_a_copy() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    store.set(journey={"name": "Onboarding"})

    draft = store.get()
    draft.journey.name = "Mutated"

    assert store.get().journey.name == "Onboarding"


def test_stale_module_id_is_stripped_on_set(draft_fields) -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    modules = draft_fields["modules"]
    modules[0]["id"] = "temp-1706000000000"

    store.set(journey=draft_fields["journey"], modules=modules)

    draft = store.get()
    assert draft.modules[0].id is None
    assert draft.to_tree()["modules"][0]["id"] is None


def test_every_id_field_is_null_or_canonical_after_set(draft_fields) -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    journey = {**draft_fields["journey"], "id": "1706000000000", "companyId": {"$oid": CANONICAL}}
    modules = draft_fields["modules"]
    modules[0]["id"] = {"$oid": OTHER}
    modules[0]["sections"][0]["id"] = "section-1"

    store.set(journey=journey, modules=modules, draftId="temp-1", selectedGigId="gig-9")

    ids = _walk_ids(store.get().to_tree(), [])
    assert ids
    assert all(value is None or is_canonical(value) for value in ids)
    assert store.get().modules[0].id == OTHER


def test_confirmed_draft_id_survives_stale_replacement() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    store.set(draftId=CANONICAL)

    store.set(draftId="")
    assert store.get().draft_id == CANONICAL

    store.set(draftId="1706000000000")
    assert store.get().draft_id == CANONICAL

    store.set(draftId=None)
    assert store.get().draft_id == CANONICAL

    store.set(draftId={"$oid": OTHER})
    assert store.get().draft_id == OTHER


def test_persisted_form_is_wire_encoded() -> None:
    medium = InMemoryDraftMedium()
    store = LocalDraftStore(medium, key="draft:alice")

    store.set(draftId=CANONICAL, journey={"name": "Onboarding"})

    stored = json.loads(medium.read("draft:alice"))
    assert stored["draftId"] == {"$oid": CANONICAL}
    assert store.has_draft()


def test_load_heals_persisted_stale_ids() -> None:
    medium = InMemoryDraftMedium()
    medium.write(
        "draft",
        json.dumps(
            {
                "draftId": "1706000000000",
                "journey": {"id": {"$oid": CANONICAL}, "name": "Onboarding"},
                "modules": [{"id": "temp-3", "title": "M"}],
            }
        ),
    )
    store = LocalDraftStore(medium, key="draft")

    draft = store.get()

    assert draft.draft_id is None
    assert draft.journey.id == CANONICAL
    assert draft.modules[0].id is None
    healed = json.loads(medium.read("draft"))
    assert healed["draftId"] is None
    assert healed["modules"][0]["id"] is None
    assert healed["journey"]["id"] == {"$oid": CANONICAL}


def test_unreadable_payload_yields_empty_draft() -> None:
    medium = InMemoryDraftMedium()
    medium.write("draft", "{not json")
    store = LocalDraftStore(medium, key="draft")

    assert store.get() == JourneyDraft(last_saved=store.get().last_saved)


def test_medium_failure_keeps_in_memory_draft(events) -> None:
    store = LocalDraftStore(BrokenMedium(), key="draft")

    store.set(journey={"name": "Onboarding"})

    assert store.get().journey.name == "Onboarding"
    assert [event.name for event in events] == ["draft_local_persist_failed"]
    assert events[0].payload["key"] == "draft"


def test_clear_removes_persisted_draft() -> None:
    medium = InMemoryDraftMedium()
    store = LocalDraftStore(medium, key="draft")
    store.set(draftId=CANONICAL, journey={"name": "Onboarding"})

    store.clear()

    assert medium.read("draft") is None
    assert store.get().draft_id is None
    assert store.get().journey is None
    assert not store.has_draft()


def test_empty_key_is_rejected() -> None:
    with pytest.raises(ValueError):
        LocalDraftStore(InMemoryDraftMedium(), key="  ")


def test_clear_advances_the_generation() -> None:
    store = LocalDraftStore(InMemoryDraftMedium())
    store.set(currentStep=1)
    assert store.generation == 0

    store.clear()
    store.set(currentStep=2)

    assert store.generation == 1
