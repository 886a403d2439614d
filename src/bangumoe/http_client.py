"""HTTP client for the Bangumoe backend API."""

import asyncio
import logging
from typing import Any, Optional

import pydantic
import requests

from .base_client import BaseAPIClient, RemoteClient
from .constants import DEFAULT_API_BASE_URL, HTTP_NOT_FOUND
from .errors import ServiceError
from .models import (
    AuthResult,
    BangumiBinding,
    BindResult,
    CollectionEntry,
    CollectionFilter,
    SyncResult,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Bangumoe API"


class HttpRemoteClient(BaseAPIClient, RemoteClient):
    """Client for the backend's ``/api/v1`` REST endpoints.

    ``requests`` is blocking, so each call runs in a worker thread and the
    event loop stays responsive while it waits.
    """

    def __init__(self, base_url: str = DEFAULT_API_BASE_URL, access_token: Optional[str] = None,
                 timeout: Optional[float] = None):
        super().__init__(
            base_url=base_url,
            access_token=access_token,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        return await asyncio.to_thread(self._request, method, path, SERVICE_NAME, **kwargs)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(f"{SERVICE_NAME} returned a non-JSON response") from e

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            logger.error(f"Unexpected {model.__name__} payload: {e}")
            raise ServiceError(f"{SERVICE_NAME} returned an invalid {model.__name__}") from e

    async def _auth(self, path: str, payload: dict) -> AuthResult:
        response = await self._call("POST", path, json=payload)
        result = self._parse(AuthResult, self._json(response))
        self.set_access_token(result.token)
        logger.info(f"Authenticated as {result.user.username}")
        return result

    async def authenticate(self, username: str, password: str) -> AuthResult:
        return await self._auth("/login", {"username": username, "password": password})

    async def register(self, username: str, email: str, password: str) -> AuthResult:
        return await self._auth(
            "/register", {"username": username, "email": email, "password": password}
        )

    async def list_collections(self, collection_filter: CollectionFilter) -> list[CollectionEntry]:
        """Fetch the user's collection list, filtered server-side."""
        response = await self._call("GET", "/collection/", params=collection_filter.as_params())
        data = self._json(response)
        if isinstance(data, dict):
            data = data.get("collections") or data.get("data") or []
        entries = [self._parse(CollectionEntry, item) for item in data]
        logger.info(f"Fetched {len(entries)} collection entries")
        return entries

    async def upsert_collection(self, entry: CollectionEntry) -> CollectionEntry:
        """Create the entry when it has no id, update it otherwise."""
        payload = entry.model_dump(mode="json", exclude={"id", "anime"})
        if entry.id is None:
            response = await self._call("POST", "/collection/", json=payload)
        else:
            response = await self._call("PUT", f"/collection/{entry.id}", json=payload)

        saved = self._parse(CollectionEntry, self._json(response))
        if saved.id is None:
            raise ServiceError(f"{SERVICE_NAME} did not assign an id to the collection entry")
        logger.info(f"Saved collection entry {saved.id} (anime {saved.anime_id})")
        return saved

    async def delete_collection(self, entry_id: int) -> None:
        await self._call("DELETE", f"/collection/{entry_id}")
        logger.info(f"Deleted collection entry {entry_id}")

    async def get_binding(self) -> Optional[BangumiBinding]:
        try:
            response = await self._call("GET", "/bangumi/account")
        except ServiceError as e:
            if e.status_code == HTTP_NOT_FOUND:
                return None
            raise
        return self._parse(BangumiBinding, self._json(response))

    async def bind(self) -> BindResult:
        response = await self._call("POST", "/bangumi/bind")
        return self._parse(BindResult, self._json(response))

    async def unbind(self) -> None:
        await self._call("DELETE", "/bangumi/unbind")

    async def sync_data(self) -> SyncResult:
        response = await self._call("POST", "/bangumi/sync")
        return self._parse(SyncResult, self._json(response))

    async def logout(self) -> None:
        self.set_access_token(None)

    async def close(self) -> None:
        self.session.close()
