"""REST endpoints the journey editor uses to persist and publish drafts."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field

from .coordinator import (
    DraftCoordinator,
    DraftNotReadyError,
    DraftSessionRegistry,
    LaunchSettings,
    RehearsalData,
)
from .remote_client import RemoteStoreError
from .upsert import DraftProtocolError

router = APIRouter(prefix="/api/drafts", tags=["drafts"])
logger = logging.getLogger(__name__)

_registry: Optional[DraftSessionRegistry] = None


def get_registry() -> DraftSessionRegistry:
    global _registry
    if _registry is None:
        _registry = DraftSessionRegistry()
    return _registry


async def close_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.aclose()
        _registry = None


class LaunchRequest(BaseModel):
    enrolled_rep_ids: List[str] = Field(default_factory=list, alias="enrolledRepIds")
    launch_settings: LaunchSettings = Field(default_factory=LaunchSettings, alias="launchSettings")
    rehearsal_data: RehearsalData = Field(default_factory=RehearsalData, alias="rehearsalData")

    model_config = ConfigDict(populate_by_name=True)


class SaveResponse(BaseModel):
    id: Optional[str] = None
    created: bool = False
    synced: bool = False
    draft: Dict[str, Any]


def _session(owner: str, registry: DraftSessionRegistry) -> DraftCoordinator:
    try:
        return registry.get(owner)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def _invalid_edit(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get("/{owner}")
async def get_draft(owner: str, registry: DraftSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    return _session(owner, registry).current().to_tree()


@router.patch("/{owner}")
async def edit_draft(
    owner: str,
    changes: Dict[str, Any] = Body(...),
    registry: DraftSessionRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(owner, registry)
    try:
        draft = session.edit(changes)
    except ValueError as exc:
        raise _invalid_edit(exc) from exc
    return draft.to_tree()


@router.post("/{owner}/save", response_model=SaveResponse)
async def save_draft(
    owner: str,
    changes: Optional[Dict[str, Any]] = Body(default=None),
    registry: DraftSessionRegistry = Depends(get_registry),
) -> SaveResponse:
    session = _session(owner, registry)
    try:
        result = await session.save_now(changes)
    except (RemoteStoreError, DraftProtocolError) as exc:
        logger.warning("Explicit save of %s failed: %s", owner, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise _invalid_edit(exc) from exc

    draft = session.current().to_tree()
    if result is None:
        return SaveResponse(id=draft.get("draftId"), draft=draft)
    return SaveResponse(id=result.id, created=result.created, synced=True, draft=draft)


@router.post("/{owner}/launch")
async def launch_draft(
    owner: str,
    request: Optional[LaunchRequest] = Body(default=None),
    registry: DraftSessionRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(owner, registry)
    request = request or LaunchRequest()
    try:
        return await session.launch(
            request.enrolled_rep_ids,
            request.launch_settings,
            request.rehearsal_data,
        )
    except DraftNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RemoteStoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/{owner}/hydrate/{draft_id}")
async def hydrate_draft(
    owner: str,
    draft_id: str,
    registry: DraftSessionRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _session(owner, registry)
    try:
        draft = await session.hydrate(draft_id)
    except RemoteStoreError as exc:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return draft.to_tree()


@router.delete("/{owner}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_draft(owner: str, registry: DraftSessionRegistry = Depends(get_registry)) -> Response:
    _session(owner, registry).discard()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{owner}/status")
async def draft_status(owner: str, registry: DraftSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    session = _session(owner, registry)
    draft = session.current()
    return {
        "state": session.state.value,
        "hasDraft": session.store.has_draft(),
        "draftId": draft.draft_id,
        "syncable": draft.is_syncable(),
        "lastSaved": draft.last_saved.isoformat(),
    }


__all__ = ["close_registry", "get_registry", "router"]
