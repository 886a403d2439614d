"""Shared fixtures: an in-memory backend that records, holds and fails calls."""

import asyncio
from typing import Optional

import pytest

from bangumoe.errors import ServiceError
from bangumoe.memory_client import InMemoryRemoteClient
from bangumoe.store import CollectionStore
from bangumoe.sync_coordinator import SyncCoordinator


class RecordingClient(InMemoryRemoteClient):
    """In-memory backend that records every call.

    ``holds[name]`` makes calls of that name wait for the event;
    ``failures[name]`` makes them raise the given error.
    """

    def __init__(self, **kwargs):
        kwargs.setdefault("latency", 0)
        super().__init__(**kwargs)
        self.calls: list[str] = []
        self.holds: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def hold(self, name: str) -> asyncio.Event:
        event = asyncio.Event()
        self.holds[name] = event
        return event

    def fail(self, name: str, error: Optional[Exception] = None) -> None:
        self.failures[name] = error or ServiceError(f"{name} failed", status_code=500)

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.holds:
            await self.holds[name].wait()
        if name in self.failures:
            raise self.failures[name]

    async def authenticate(self, username, password):
        await self._enter("authenticate")
        return await super().authenticate(username, password)

    async def register(self, username, email, password):
        await self._enter("register")
        return await super().register(username, email, password)

    async def list_collections(self, collection_filter):
        await self._enter("list_collections")
        return await super().list_collections(collection_filter)

    async def upsert_collection(self, entry):
        await self._enter("upsert_collection")
        return await super().upsert_collection(entry)

    async def delete_collection(self, entry_id):
        await self._enter("delete_collection")
        return await super().delete_collection(entry_id)

    async def get_binding(self):
        await self._enter("get_binding")
        return await super().get_binding()

    async def bind(self):
        await self._enter("bind")
        return await super().bind()

    async def unbind(self):
        await self._enter("unbind")
        return await super().unbind()

    async def sync_data(self):
        await self._enter("sync_data")
        return await super().sync_data()


@pytest.fixture
def client():
    return RecordingClient()


@pytest.fixture
def unbound_client():
    return RecordingClient(bound=False)


@pytest.fixture
def store(client):
    return CollectionStore(client)


@pytest.fixture
def coordinator(client):
    return SyncCoordinator(client)
