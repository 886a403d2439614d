"""Asyncio helpers for supersession, single-flight and ordered application."""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Superseded(Exception):
    """The operation was replaced by a newer one before it finished."""


class LatestOnly(Generic[T]):
    """Run operations of one kind so that only the latest issued one counts.

    Issuing a new operation cancels the one still in flight. A result that
    arrives for an operation that is no longer the latest is discarded and
    the caller gets ``Superseded`` instead.
    """

    def __init__(self, name: str):
        self.name = name
        self._current: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._current is not None and not self._current.done()

    async def run(self, coro: Awaitable[T]) -> T:
        task = asyncio.ensure_future(coro)
        previous, self._current = self._current, task
        if previous is not None and not previous.done():
            logger.debug(f"{self.name}: cancelling superseded request")
            previous.cancel()

        try:
            result = await task
        except asyncio.CancelledError:
            if task is not self._current and task.cancelled():
                raise Superseded(self.name) from None
            raise
        except Exception:
            if task is not self._current:
                raise Superseded(self.name) from None
            raise

        if task is not self._current:
            raise Superseded(self.name)
        return result

    def discard(self) -> None:
        """Cancel the operation in flight; its caller gets ``Superseded``."""
        task, self._current = self._current, None
        if task is not None and not task.done():
            logger.debug(f"{self.name}: discarding request in flight")
            task.cancel()


class SingleFlight(Generic[T]):
    """Share one in-flight call between all concurrent callers."""

    def __init__(self, name: str):
        self.name = name
        self._inflight: Optional[asyncio.Future] = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        if self._inflight is None:
            future = asyncio.ensure_future(factory())
            self._inflight = future
            future.add_done_callback(self._clear)
        else:
            logger.debug(f"{self.name}: joining call already in flight")
        # Shielded so that one cancelled caller does not cancel the others
        return await asyncio.shield(self._inflight)

    def _clear(self, future: asyncio.Future) -> None:
        if self._inflight is future:
            self._inflight = None
        if not future.cancelled():
            # Mark the exception retrieved; every caller re-raises it anyway
            future.exception()


class IssueOrder:
    """Apply results of concurrent operations in the order they were issued."""

    def __init__(self):
        self._tail: Optional[asyncio.Future] = None

    async def run(self, coro: Awaitable[T], apply: Callable[[T], None]) -> T:
        previous = self._tail
        turn = asyncio.get_running_loop().create_future()
        self._tail = turn
        try:
            try:
                result = await coro
            finally:
                if previous is not None:
                    await asyncio.shield(previous)
            apply(result)
            return result
        finally:
            if not turn.done():
                turn.set_result(None)
            if self._tail is turn:
                self._tail = None
