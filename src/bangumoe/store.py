"""In-memory collection store backed by the remote collection API."""

import logging
from typing import Callable, Optional

from .base_client import RemoteClient
from .events import Publisher
from .models import CollectionEntry, CollectionFilter, validate_entry
from .tasks import IssueOrder, LatestOnly, Superseded

logger = logging.getLogger(__name__)

Snapshot = tuple[CollectionEntry, ...]


class CollectionStore:
    """Holds the last loaded collection snapshot and the active filter.

    The snapshot only changes after a remote call resolves; subscribers get
    the whole new snapshot every time it changes.

    * ``load`` results are superseded by later loads: only the latest issued
      load is ever applied.
    * ``upsert`` / ``delete`` results are always applied, in the order the
      mutations were issued.
    * ``upsert`` applies its result whether or not it matches the active
      filter: an update keeps its position and a create is appended. The
      filter is enforced again on the next ``load`` / ``reload``.
    """

    def __init__(self, client: RemoteClient):
        self.client = client
        self._entries: list[CollectionEntry] = []
        self._filter = CollectionFilter()
        self._loaded = False
        self._loads: LatestOnly[list[CollectionEntry]] = LatestOnly("collection load")
        self._mutations = IssueOrder()
        self._changes: Publisher[Snapshot] = Publisher("collection snapshot")

    @property
    def snapshot(self) -> Snapshot:
        return tuple(self._entries)

    @property
    def filter(self) -> CollectionFilter:
        return self._filter

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def loading(self) -> bool:
        return self._loads.pending

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Callable[[], None]:
        return self._changes.subscribe(callback)

    def get(self, entry_id: int) -> Optional[CollectionEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    async def load(self, collection_filter: Optional[CollectionFilter] = None) -> Optional[Snapshot]:
        """Replace the snapshot with the backend's list for ``collection_filter``.

        Returns the published snapshot, or None when a newer load superseded
        this one. ``ServiceError`` propagates and leaves the snapshot as is.
        """
        collection_filter = collection_filter or CollectionFilter()
        try:
            entries = await self._loads.run(self.client.list_collections(collection_filter))
        except Superseded:
            logger.debug(f"Discarded superseded collection load ({collection_filter.as_params()})")
            return None

        self._entries = [e for e in entries if collection_filter.matches(e)]
        if len(self._entries) != len(entries):
            logger.warning(
                f"Backend returned {len(entries) - len(self._entries)} entries outside the filter; dropped"
            )
        self._filter = collection_filter
        self._loaded = True
        self._publish()
        return self.snapshot

    def reset(self) -> None:
        """Forget the snapshot and filter, e.g. after logout.

        A load still in flight is discarded.
        """
        self._loads.discard()
        self._entries = []
        self._filter = CollectionFilter()
        self._loaded = False
        self._publish()

    async def reload(self) -> Optional[Snapshot]:
        """Re-issue the last load with the current filter."""
        return await self.load(self._filter)

    async def upsert(self, entry: CollectionEntry) -> CollectionEntry:
        """Create (no id) or update (id) an entry.

        Raises:
            ValidationError: before any network call if the entry is invalid
            ServiceError: when the backend call fails
        """
        entry = validate_entry(entry)
        saved = await self._mutations.run(self.client.upsert_collection(entry), self._apply_upsert)
        return saved

    async def delete(self, entry_id: int) -> None:
        """Delete an entry; the remote call is issued even for unknown ids."""
        await self._mutations.run(
            self.client.delete_collection(entry_id), lambda _: self._apply_delete(entry_id)
        )

    def _apply_upsert(self, saved: CollectionEntry) -> None:
        for index, existing in enumerate(self._entries):
            if existing.id == saved.id:
                self._entries[index] = saved
                break
        else:
            self._entries.append(saved)
        self._publish()

    def _apply_delete(self, entry_id: int) -> None:
        for index, existing in enumerate(self._entries):
            if existing.id == entry_id:
                del self._entries[index]
                self._publish()
                return
        logger.debug(f"Deleted entry {entry_id} was not in the snapshot")

    def _publish(self) -> None:
        self._changes.publish(self.snapshot)
