"""Base API client with common functionality."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from .constants import HTTP_FORBIDDEN, HTTP_UNAUTHORIZED
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


class RemoteClient(ABC):
    """Backend operations consumed by the stores.

    Every failing call raises ``ServiceError``.
    """

    @abstractmethod
    async def authenticate(self, username: str, password: str) -> AuthResult:
        ...

    @abstractmethod
    async def register(self, username: str, email: str, password: str) -> AuthResult:
        ...

    @abstractmethod
    async def list_collections(self, collection_filter: CollectionFilter) -> list[CollectionEntry]:
        ...

    @abstractmethod
    async def upsert_collection(self, entry: CollectionEntry) -> CollectionEntry:
        ...

    @abstractmethod
    async def delete_collection(self, entry_id: int) -> None:
        ...

    @abstractmethod
    async def get_binding(self) -> Optional[BangumiBinding]:
        ...

    @abstractmethod
    async def bind(self) -> BindResult:
        ...

    @abstractmethod
    async def unbind(self) -> None:
        ...

    @abstractmethod
    async def sync_data(self) -> SyncResult:
        ...

    async def logout(self) -> None:
        """Forget the session token."""

    async def close(self) -> None:
        """Release transport resources."""


class BaseAPIClient:
    """Base class for HTTP API clients with common request handling."""

    def __init__(self, base_url: str, access_token: Optional[str] = None,
                 headers: Optional[dict] = None, timeout: Optional[float] = None):
        """Initialize API client, optionally with an access token."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

        default_headers = {"Accept": "application/json"}
        if headers:
            default_headers.update(headers)
        self.session.headers.update(default_headers)

        if access_token:
            self.set_access_token(access_token)

    def set_access_token(self, access_token: Optional[str]) -> None:
        """Use the given bearer token for subsequent requests."""
        if access_token:
            self.session.headers["Authorization"] = f"Bearer {access_token}"
        else:
            self.session.headers.pop("Authorization", None)

    def _handle_auth_error(self, response: requests.Response, service_name: str) -> None:
        """Handle authentication errors consistently."""
        if response.status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            logger.error(f"{service_name} authentication failed (HTTP {response.status_code})")
            logger.error(f"{service_name} session token is missing, invalid or expired")

    def _request(self, method: str, path: str, service_name: str = "Backend", **kwargs) -> requests.Response:
        """Send a request and raise ServiceError on any failure."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{service_name} request {method} {url} failed: {e}")
            raise ServiceError(f"{service_name} unreachable: {e}") from e

        if not response.ok:
            self._handle_auth_error(response, service_name)
            message = self._error_message(response)
            logger.error(f"{service_name} error {response.status_code} on {method} {url}: {message}")
            raise ServiceError(message, status_code=response.status_code)
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            detail = data.get("error") or data.get("message")
            if data.get("details"):
                detail = f"{detail}: {data['details']}"
            if detail:
                return str(detail)
        return f"HTTP {response.status_code}"
