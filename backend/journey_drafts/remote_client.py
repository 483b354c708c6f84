"""httpx transport for the remote journey document store."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

JOURNEYS_PATH = "/training_journeys"


class RemoteStoreError(RuntimeError):
    """Raised when the remote store cannot be reached or rejects a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DraftTransport(Protocol):
    """Create/update primitives the upsert protocol relies on."""

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - protocol definition
        ...

    async def update(self, resource_id: str, document: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - protocol definition
        ...


class JourneyRemote(DraftTransport, Protocol):
    async def fetch(self, resource_id: str) -> Dict[str, Any]:  # pragma: no cover - protocol definition
        ...

    async def launch(self, document: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - protocol definition
        ...


class RemoteJourneyClient:
    """JSON client for ``/training_journeys``.

    Pass an ``httpx.AsyncClient`` to share a connection pool (or a mock
    transport in tests); otherwise the client owns one and closes it in
    :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        headers: Optional[Mapping[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json", **dict(headers or {})},
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RemoteJourneyClient":
        settings = settings or get_settings()
        return cls(settings.remote_base_url, timeout_seconds=settings.remote_timeout_seconds)

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", JOURNEYS_PATH, document)

    async def update(self, resource_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"{JOURNEYS_PATH}/{resource_id}", document)

    async def fetch(self, resource_id: str) -> Dict[str, Any]:
        data = await self._request("GET", f"{JOURNEYS_PATH}/{resource_id}")
        # The store answers either with the document itself or wrapped in ``data``/``journey``.
        for key in ("data", "journey"):
            if isinstance(data.get(key), dict):
                return data[key]
        return data

    async def launch(self, document: Dict[str, Any]) -> Dict[str, Any]:
        data = await self._request("POST", f"{JOURNEYS_PATH}/launch", document)
        if not data.get("success"):
            raise RemoteStoreError(str(data.get("error") or "Failed to launch journey"))
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise RemoteStoreError(
                f"{method} {path} failed with HTTP {status_code}: {_error_detail(exc.response)}",
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {path} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise RemoteStoreError(f"{method} {path} returned {type(data).__name__}, expected an object")
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return data


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


__all__ = [
    "DraftTransport",
    "JOURNEYS_PATH",
    "JourneyRemote",
    "RemoteJourneyClient",
    "RemoteStoreError",
]
