"""Section navigation with refresh-on-entry initializers."""

import logging
from typing import Awaitable, Callable, Optional, Union

from .constants import Section
from .events import Publisher
from .store import CollectionStore
from .sync_coordinator import SyncCoordinator

logger = logging.getLogger(__name__)


class NavigationRouter:
    """Tracks the single active section and runs its initializer.

    Every activation re-runs the initializer, including re-entering the
    section that is already active.
    """

    def __init__(self, store: CollectionStore, coordinator: SyncCoordinator,
                 start: Section = Section.HOME):
        self.active = Section(start)
        self._changes: Publisher[Section] = Publisher("active section")
        self._initializers: dict[Section, Callable[[], Awaitable[object]]] = {
            Section.COLLECTIONS: lambda: store.load(store.filter),
            Section.BANGUMI: coordinator.fetch_status,
        }

    def subscribe(self, callback: Callable[[Section], None]) -> Callable[[], None]:
        return self._changes.subscribe(callback)

    def is_active(self, section: Union[Section, str]) -> bool:
        return self.active is Section(section)

    async def activate(self, section: Union[Section, str]) -> Optional[object]:
        """Switch to ``section`` and run its initializer.

        The switch itself happens before the initializer is awaited, so the
        previous section is deactivated even if the initializer fails.

        Raises:
            ValueError: for an unknown section identifier
        """
        section = Section(section)
        self.active = section
        self._changes.publish(section)
        logger.debug(f"Activated section {section.value}")

        initializer = self._initializers.get(section)
        if initializer is None:
            return None
        return await initializer()
