"""Transient, auto-dismissing user notifications."""

import logging
import time
from collections import deque
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from .constants import DEFAULT_NOTIFICATION_SECONDS, NOTIFICATION_HISTORY_LIMIT

logger = logging.getLogger(__name__)


class Level(str, Enum):
    """Notification severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """One message shown to the user until it expires."""

    message: str
    level: Level = Level.INFO
    created_at: float
    expires_at: float


class Notifier:
    """Collects notifications and drops them once their time is up.

    ``history`` keeps the most recent ``history_limit`` notifications for
    consumers that report them after the fact (see ``drain``).
    """

    def __init__(self, duration: float = DEFAULT_NOTIFICATION_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 history_limit: int = NOTIFICATION_HISTORY_LIMIT):
        self.duration = duration
        self._clock = clock
        self._items: list[Notification] = []
        self.history: deque[Notification] = deque(maxlen=history_limit)

    def notify(self, message: str, level: Level = Level.INFO) -> Notification:
        now = self._clock()
        item = Notification(message=message, level=level, created_at=now, expires_at=now + self.duration)
        self._items.append(item)
        self.history.append(item)
        log = logger.error if level is Level.ERROR else logger.info
        log(f"[{level.value}] {message}")
        return item

    def info(self, message: str) -> Notification:
        return self.notify(message, Level.INFO)

    def success(self, message: str) -> Notification:
        return self.notify(message, Level.SUCCESS)

    def warning(self, message: str) -> Notification:
        return self.notify(message, Level.WARNING)

    def error(self, message: str) -> Notification:
        return self.notify(message, Level.ERROR)

    def active(self) -> list[Notification]:
        """Notifications still on screen; expired ones are dismissed."""
        now = self._clock()
        self._items = [n for n in self._items if n.expires_at > now]
        return list(self._items)

    def drain(self) -> list[Notification]:
        """Return the notifications recorded since the last drain and forget them."""
        items = list(self.history)
        self.history.clear()
        return items
