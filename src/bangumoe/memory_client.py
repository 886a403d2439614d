"""In-memory backend used by the demo mode and the tests."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .base_client import RemoteClient
from .constants import DEFAULT_MEMORY_LATENCY_SECONDS, HTTP_NOT_FOUND, HTTP_UNAUTHORIZED
from .errors import ServiceError
from .models import (
    AnimeSummary,
    AuthResult,
    BangumiBinding,
    BindResult,
    CollectionEntry,
    CollectionFilter,
    CollectionType,
    SyncResult,
    User,
)

logger = logging.getLogger(__name__)

DEMO_BANGUMI_USER_ID = 12345


def demo_collections() -> list[CollectionEntry]:
    """The sample collection list shown before a real backend is configured."""
    return [
        CollectionEntry(
            id=101,
            anime_id=1,
            type=CollectionType.WATCHING,
            rating=9,
            comment="Great so far, recommended!",
            anime=AnimeSummary(id=1, title="My Hero Academia", episode_count=12),
        ),
        CollectionEntry(
            id=102,
            anime_id=2,
            type=CollectionType.COMPLETED,
            rating=8,
            comment="Good story, rushed ending",
            anime=AnimeSummary(id=2, title="Demon Slayer", episode_count=24),
        ),
        CollectionEntry(
            id=103,
            anime_id=3,
            type=CollectionType.WISH,
            rating=None,
            comment="",
            anime=AnimeSummary(id=3, title="Attack on Titan: The Final Season", episode_count=16),
        ),
    ]


class InMemoryRemoteClient(RemoteClient):
    """RemoteClient keeping all backend state in this process.

    Filtering happens "server-side" the same way the backend does it, and an
    optional latency simulates the network round trip.
    """

    def __init__(self, entries: Optional[list[CollectionEntry]] = None,
                 latency: float = DEFAULT_MEMORY_LATENCY_SECONDS, bound: bool = True):
        self.latency = latency
        self._entries = [e.model_copy(deep=True) for e in (demo_collections() if entries is None else entries)]
        self._next_id = max((e.id or 0 for e in self._entries), default=100) + 1
        self._users: dict[str, User] = {}
        self._token: Optional[str] = None
        now = datetime.now(timezone.utc)
        self._binding: Optional[BangumiBinding] = None
        if bound:
            self._binding = BangumiBinding(
                user_id=1,
                bangumi_user_id=DEMO_BANGUMI_USER_ID,
                token_expires_at=now + timedelta(days=7),
                created_at=now,
                updated_at=now,
            )

    async def _delay(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def _login(self, user: User) -> AuthResult:
        self._token = f"demo-token-{user.id}"
        logger.info(f"Authenticated as {user.username}")
        return AuthResult(user=user, token=self._token)

    async def authenticate(self, username: str, password: str) -> AuthResult:
        await self._delay()
        if not username or not password:
            raise ServiceError("Invalid username or password", status_code=HTTP_UNAUTHORIZED)
        user = self._users.get(username) or User(id=len(self._users) + 1, username=username)
        self._users.setdefault(username, user)
        return self._login(user)

    async def register(self, username: str, email: str, password: str) -> AuthResult:
        await self._delay()
        if username in self._users:
            raise ServiceError(f"Username {username} is already taken")
        user = User(id=len(self._users) + 1, username=username, email=email)
        self._users[username] = user
        return self._login(user)

    async def logout(self) -> None:
        self._token = None

    async def list_collections(self, collection_filter: CollectionFilter) -> list[CollectionEntry]:
        await self._delay()
        entries = [e.model_copy(deep=True) for e in self._entries if collection_filter.matches(e)]
        logger.info(f"Fetched {len(entries)} collection entries")
        return entries

    async def upsert_collection(self, entry: CollectionEntry) -> CollectionEntry:
        await self._delay()
        index = None
        if entry.id is not None:
            index = self._index_of(entry.id)
            if index is None:
                raise ServiceError(f"Collection entry {entry.id} not found", status_code=HTTP_NOT_FOUND)

        if index is None:
            saved = entry.model_copy(update={"id": self._next_id}, deep=True)
            self._next_id += 1
            if saved.anime is None:
                saved.anime = AnimeSummary(id=saved.anime_id, title=f"Anime #{saved.anime_id}")
            self._entries.append(saved)
        else:
            existing = self._entries[index]
            saved = entry.model_copy(update={"id": existing.id, "anime": existing.anime}, deep=True)
            self._entries[index] = saved
        logger.info(f"Saved collection entry {saved.id} (anime {saved.anime_id})")
        return saved.model_copy(deep=True)

    async def delete_collection(self, entry_id: int) -> None:
        await self._delay()
        index = self._index_of(entry_id)
        if index is None:
            raise ServiceError(f"Collection entry {entry_id} not found", status_code=HTTP_NOT_FOUND)
        del self._entries[index]
        logger.info(f"Deleted collection entry {entry_id}")

    async def get_binding(self) -> Optional[BangumiBinding]:
        await self._delay()
        return self._binding.model_copy() if self._binding else None

    async def bind(self) -> BindResult:
        await self._delay()
        if self._binding is not None:
            raise ServiceError("A Bangumi account is already bound")
        now = datetime.now(timezone.utc)
        self._binding = BangumiBinding(
            user_id=1,
            bangumi_user_id=DEMO_BANGUMI_USER_ID,
            token_expires_at=now + timedelta(days=7),
            created_at=now,
            updated_at=now,
        )
        return BindResult(
            bangumi_user_id=DEMO_BANGUMI_USER_ID,
            username="test_user",
            nickname="Test User",
            message="Bangumi account bound",
        )

    async def unbind(self) -> None:
        await self._delay()
        if self._binding is None:
            raise ServiceError("No Bangumi account bound", status_code=HTTP_NOT_FOUND)
        self._binding = None

    async def sync_data(self) -> SyncResult:
        await self._delay()
        if self._binding is None:
            raise ServiceError("No Bangumi account bound", status_code=HTTP_NOT_FOUND)
        return SyncResult(
            new_animes=0,
            updated_collections=len(self._entries),
            total_collections=len(self._entries),
        )

    def _index_of(self, entry_id: int) -> Optional[int]:
        return next((i for i, e in enumerate(self._entries) if e.id == entry_id), None)
