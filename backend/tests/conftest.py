from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from journey_drafts.telemetry import TelemetryEvent, clear_listeners, register_listener

from ids import JOURNEY_ID, OTHER_ID


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimer:
    """Timer factory that only fires when a test says so."""

    def __init__(self) -> None:
        self.handles: List[FakeHandle] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def armed(self) -> List[FakeHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self) -> None:
        for handle in self.armed:
            handle.cancelled = True
            handle.callback()


class FakeRemote:
    """Records every request the remote store would receive."""

    def __init__(self, assigned_id: str = JOURNEY_ID) -> None:
        self.assigned_id = assigned_id
        self.calls: List[Tuple[str, Optional[str], Dict[str, Any]]] = []
        self.create_response: Optional[Dict[str, Any]] = None
        self.update_response: Optional[Dict[str, Any]] = None
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    @property
    def creates(self) -> List[Dict[str, Any]]:
        return [document for method, _, document in self.calls if method == "create"]

    @property
    def updates(self) -> List[Tuple[Optional[str], Dict[str, Any]]]:
        return [(resource_id, document) for method, resource_id, document in self.calls if method == "update"]

    async def _enter(self, method: str, resource_id: Optional[str], document: Dict[str, Any]) -> None:
        self.calls.append((method, resource_id, document))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("create", None, document)
        if self.create_response is not None:
            return self.create_response
        self.documents[self.assigned_id] = document
        return {"success": True, "journey": {"_id": {"$oid": self.assigned_id}}}

    async def update(self, resource_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("update", resource_id, document)
        if self.update_response is not None:
            return self.update_response
        self.documents[resource_id] = document
        return {"success": True, "journeyId": resource_id}

    async def fetch(self, resource_id: str) -> Dict[str, Any]:
        await self._enter("fetch", resource_id, {})
        return {"_id": {"$oid": resource_id}, **self.documents[resource_id]}

    async def launch(self, document: Dict[str, Any]) -> Dict[str, Any]:
        await self._enter("launch", None, document)
        return {"success": True, "journey": {"_id": {"$oid": OTHER_ID}}}


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def events():
    captured: List[TelemetryEvent] = []
    register_listener(captured.append)
    yield captured
    clear_listeners()


@pytest.fixture
def draft_fields() -> Dict[str, Any]:
    return {
        "journey": {"name": "Onboarding", "title": "Sales Onboarding", "description": "Week one"},
        "modules": [
            {
                "title": "Product basics",
                "description": "What we sell",
                "duration": 1.5,
                "difficulty": "beginner",
                "learningObjectives": ["Pitch the product"],
                "sections": [
                    {"title": "Intro", "type": "text", "content": {"text": "Hello"}},
                ],
                "assessments": [
                    {
                        "title": "Basics quiz",
                        "questions": [
                            {
                                "text": "Is it blue?",
                                "type": "true-false",
                                "correctAnswer": True,
                            }
                        ],
                    }
                ],
            }
        ],
    }
