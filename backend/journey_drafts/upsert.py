"""Create-or-update of the draft's remote document.

The remote store hands out the authoritative id only on the first successful
create. The protocol below resolves which id to address from the freshest
store state, and on success writes the returned id back into the store
before returning, so the next attempt takes the update path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import httpx

from .draft_store import LocalDraftStore
from .models import JourneyDraft
from .object_ids import extract_canonical_id, is_canonical
from .projection import to_wire
from .remote_client import DraftTransport, RemoteStoreError

logger = logging.getLogger(__name__)

RETURNED_ID_PATHS: Sequence[Tuple[str, ...]] = (
    ("journey", "_id"),
    ("journeyId",),
    ("journey", "id"),
    ("_id",),
    ("id",),
)


class DraftProtocolError(RuntimeError):
    """The remote store answered without a usable journey id."""


class IdentityContext(Protocol):
    def organization_id(self) -> Optional[str]:  # pragma: no cover - protocol definition
        ...


@dataclass(frozen=True)
class StaticIdentity:
    organization: Optional[str] = None

    def organization_id(self) -> Optional[str]:
        return self.organization


@dataclass(frozen=True)
class UpsertResult:
    id: str
    payload: Dict[str, Any]
    created: bool


def resolve_external_id(draft: JourneyDraft, explicit_id: Optional[str] = None) -> Optional[str]:
    """Pick the remote id to address: parameter, then ``draftId``, then journey id.

    A candidate that is not canonical is skipped in favour of the next one
    rather than forcing a create, so a leftover placeholder id never produces
    a duplicate remote journey while a valid id is still available. Only when
    no candidate survives does the caller create.
    """
    candidates = (
        ("parameter", explicit_id),
        ("draftId", draft.draft_id),
        ("journey.id", draft.journey.id if draft.journey else None),
    )
    for source, candidate in candidates:
        value = extract_canonical_id(candidate)
        if value is None:
            continue
        if is_canonical(value):
            return value
        logger.warning("Ignoring non-canonical %s %r when resolving the remote id", source, value)
    return None


def extract_returned_id(response: Dict[str, Any]) -> Optional[str]:
    for path in RETURNED_ID_PATHS:
        node: Any = response
        for part in path:
            node = node.get(part) if isinstance(node, dict) else None
        value = extract_canonical_id(node)
        if value:
            return value
    return None


class DraftUpserter:
    def __init__(
        self,
        store: LocalDraftStore,
        transport: DraftTransport,
        *,
        identity: IdentityContext | None = None,
    ) -> None:
        self._store = store
        self._transport = transport
        self._identity = identity or StaticIdentity()

    async def upsert(self, draft_id: Optional[str] = None) -> UpsertResult:
        generation = self._store.generation
        draft = self._store.get()
        external_id = resolve_external_id(draft, draft_id)
        document = to_wire(draft, organization_id=self._identity.organization_id())
        document.pop("_id", None)

        created = external_id is None
        try:
            if created:
                logger.info("Creating remote journey for draft %s", self._store.key)
                response = await self._transport.create(document)
            else:
                logger.info("Updating remote journey %s", external_id)
                response = await self._transport.update(external_id, document)
        except httpx.HTTPError as exc:
            logger.warning("Remote journey %s failed: %s", "create" if created else "update", exc)
            raise RemoteStoreError(f"Remote journey request failed: {exc}") from exc
        except RemoteStoreError as exc:
            logger.warning("Remote journey %s failed: %s", "create" if created else "update", exc)
            raise

        if response.get("success") is False:
            logger.error("Remote store rejected draft %s: %s", self._store.key, response)
            raise DraftProtocolError(str(response.get("error") or "Remote store rejected the journey"))

        returned_id = extract_returned_id(response)
        if not is_canonical(returned_id):
            logger.error("Remote store returned invalid journey id %r", returned_id)
            raise DraftProtocolError(f"Remote store returned invalid journey id {returned_id!r}")

        if self._store.generation != generation:
            logger.warning(
                "Draft %s was cleared while syncing; not recording remote id %s",
                self._store.key,
                returned_id,
            )
            return UpsertResult(id=returned_id, payload=document, created=created)

        self._store.set(draftId=returned_id)
        logger.info("Draft %s confirmed upstream as %s", self._store.key, returned_id)
        return UpsertResult(id=returned_id, payload=document, created=created)


__all__ = [
    "DraftProtocolError",
    "DraftUpserter",
    "IdentityContext",
    "StaticIdentity",
    "UpsertResult",
    "extract_returned_id",
    "resolve_external_id",
]
