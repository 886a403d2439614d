"""Bangumi binding state machine and single-flight collection sync."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from .base_client import RemoteClient
from .errors import ServiceError, StateError
from .events import Publisher
from .models import BangumiBinding, BindingStatus, BindResult, SyncResult
from .tasks import SingleFlight

logger = logging.getLogger(__name__)

SyncOutcome = Union[SyncResult, ServiceError]


class SyncCoordinator:
    """Owns the Bangumi binding status and drives bind / unbind / sync.

    Status starts as ``unknown`` and becomes ``bound`` or ``unbound`` once
    fetched. One lock serializes every operation that reads or changes the
    binding (including the remote part of a sync), so an unbind can never
    interleave with a sync in progress. Sync is single-flight: concurrent
    callers share the one remote call.
    """

    def __init__(self, client: RemoteClient):
        self.client = client
        self._status = BindingStatus.UNKNOWN
        self._binding: Optional[BangumiBinding] = None
        self._lock = asyncio.Lock()
        self._syncs: SingleFlight[SyncResult] = SingleFlight("bangumi sync")
        self._status_changes: Publisher[BindingStatus] = Publisher("binding status")
        self._sync_outcomes: Publisher[SyncOutcome] = Publisher("sync outcome")

    @property
    def status(self) -> BindingStatus:
        return self._status

    @property
    def binding(self) -> Optional[BangumiBinding]:
        return self._binding

    @property
    def syncing(self) -> bool:
        return self._syncs.in_flight

    def subscribe(self, callback: Callable[[BindingStatus], None]) -> Callable[[], None]:
        """Get notified of binding status changes."""
        return self._status_changes.subscribe(callback)

    def subscribe_sync(self, callback: Callable[[SyncOutcome], None]) -> Callable[[], None]:
        """Get notified of each sync's result or failure."""
        return self._sync_outcomes.subscribe(callback)

    async def fetch_status(self) -> BindingStatus:
        """Refresh the binding from the backend.

        Any failure is treated as "not bound" so the view always has a
        definite state to show.
        """
        async with self._lock:
            try:
                binding = await self.client.get_binding()
            except Exception as e:
                logger.warning(f"Could not fetch Bangumi binding, treating as unbound: {e}")
                binding = None
            self._set_binding(binding)
        return self._status

    async def bind(self) -> BindResult:
        """Bind a Bangumi account; only valid while unbound."""
        async with self._lock:
            self._require(BindingStatus.UNBOUND, "bind")
            result = await self.client.bind()
            logger.info(f"Bound Bangumi account {result.bangumi_user_id}")

            try:
                binding = await self.client.get_binding()
            except ServiceError as e:
                logger.warning(f"Could not refresh binding after bind: {e}")
                binding = None
            if binding is None:
                now = datetime.now(timezone.utc)
                binding = BangumiBinding(
                    bangumi_user_id=result.bangumi_user_id, created_at=now, updated_at=now
                )
            self._set_binding(binding)
            return result

    async def unbind(self, confirmed: bool = False) -> None:
        """Unbind the Bangumi account; the user must have confirmed it."""
        if not confirmed:
            raise StateError("Unbinding the Bangumi account requires confirmation")
        async with self._lock:
            self._require(BindingStatus.BOUND, "unbind")
            await self.client.unbind()
            logger.info("Unbound Bangumi account")
            self._set_binding(None)

    async def sync(self) -> SyncResult:
        """Pull the Bangumi collection into the local one.

        A call made while a sync is running returns that sync's result.
        """
        if not self._syncs.in_flight:
            self._require(BindingStatus.BOUND, "sync")
        return await self._syncs.run(self._sync_once)

    async def _sync_once(self) -> SyncResult:
        async with self._lock:
            self._require(BindingStatus.BOUND, "sync")
            logger.info("Starting Bangumi sync")
            try:
                result = await self.client.sync_data()
            except ServiceError as e:
                logger.error(f"Bangumi sync failed: {e}")
                self._sync_outcomes.publish(e)
                raise
        logger.info(
            f"Bangumi sync done: new_animes={result.new_animes}, "
            f"updated_collections={result.updated_collections}, "
            f"total_collections={result.total_collections}"
        )
        self._sync_outcomes.publish(result)
        return result

    async def reset(self) -> None:
        """Forget the binding and go back to ``unknown``.

        Waits for a binding operation or sync in progress to finish first.
        """
        async with self._lock:
            self._binding = None
            if self._status is not BindingStatus.UNKNOWN:
                self._status = BindingStatus.UNKNOWN
                self._status_changes.publish(self._status)

    def _require(self, status: BindingStatus, operation: str) -> None:
        if self._status is not status:
            raise StateError(f"Cannot {operation} while Bangumi binding is {self._status.value}")

    def _set_binding(self, binding: Optional[BangumiBinding]) -> None:
        self._binding = binding
        status = BindingStatus.BOUND if binding is not None else BindingStatus.UNBOUND
        if status is not self._status:
            self._status = status
            self._status_changes.publish(status)
