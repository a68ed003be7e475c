"""OwnerLocks — optional single-writer serialisation per storage root."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class OwnerLocks:
    """One ``asyncio.Lock`` per owner, held around mutating operations.

    Disabled by default: without it, concurrent mutations within one
    owner's root only get whatever atomicity a single syscall gives.
    The locks are per process and per event loop; they do not
    coordinate separate worker processes.
    """

    def __init__(self, *, enabled: bool = False) -> None:
        self.enabled = enabled
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def hold(self, owner_id: str) -> AsyncIterator[None]:
        """Hold the owner's lock for the duration of the block (no-op if disabled)."""
        if not self.enabled:
            yield
            return
        lock = self._locks.setdefault(owner_id, asyncio.Lock())
        async with lock:
            yield

    def is_locked(self, owner_id: str) -> bool:
        lock = self._locks.get(owner_id)
        return lock is not None and lock.locked()

    def discard(self, owner_id: str) -> None:
        """Forget an owner's lock (after deprovisioning)."""
        lock = self._locks.get(owner_id)
        if lock is not None and not lock.locked():
            del self._locks[owner_id]
