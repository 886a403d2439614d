"""Minimal publish/subscribe channel used to republish component state."""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Publisher(Generic[T]):
    """Deliver published values to every subscribed callback, in order."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> None:
        logger.debug(f"Publishing {self.name} to {len(self._subscribers)} subscriber(s)")
        for callback in list(self._subscribers):
            callback(value)
