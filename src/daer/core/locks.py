# src/daer/core/locks.py
"""Per-chapter mutual exclusion for generation jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from uuid import UUID

from daer.storage.db import Database, advisory_lock

logger = logging.getLogger(__name__)


def advisory_key(chapter_id: UUID) -> int:
    """Signed 64-bit advisory lock key derived from the chapter id."""
    return int.from_bytes(chapter_id.bytes[:8], "big", signed=True)


class ChapterLocks:
    """Serialize jobs that target the same chapter.

    Within one process an :class:`asyncio.Lock` per chapter id is used; on
    PostgreSQL a session advisory lock is also held so workers in other
    processes wait as well. Locks for idle chapters are dropped.
    """

    def __init__(self, database: Database | None = None) -> None:
        self.database = database
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._users: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, chapter_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(chapter_id, asyncio.Lock())
        self._users[chapter_id] = self._users.get(chapter_id, 0) + 1
        try:
            if lock.locked():
                logger.info("chapter.lock.wait", extra={"chapter_id": str(chapter_id)})
            async with lock, AsyncExitStack() as stack:
                if self.database is not None and self.database.is_postgres:
                    session = await stack.enter_async_context(self.database.session())
                    await stack.enter_async_context(
                        advisory_lock(session, advisory_key(chapter_id))
                    )
                yield
        finally:
            self._users[chapter_id] -= 1
            if self._users[chapter_id] == 0:
                del self._users[chapter_id]
                self._locks.pop(chapter_id, None)

    def is_locked(self, chapter_id: UUID) -> bool:
        lock = self._locks.get(chapter_id)
        return lock is not None and lock.locked()


__all__ = ["ChapterLocks", "advisory_key"]
