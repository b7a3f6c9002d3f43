"""Single-flight guard: at most one run of a job at a time."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SingleFlightGuard:
    """In-memory running flag for one job type.

    All jobs share one event loop and ``try_acquire`` has no suspension
    point, so check-and-set is atomic without a lock. Never persisted; a
    restart starts released.
    """

    def __init__(self, name: str):
        self.name = name
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def try_acquire(self) -> bool:
        if self._running:
            return False
        self._running = True
        return True

    def release(self) -> None:
        self._running = False

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Yield True when acquired; releases on exit only if it acquired."""
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()

    def __repr__(self) -> str:
        return f"<SingleFlightGuard {self.name} running={self._running}>"
