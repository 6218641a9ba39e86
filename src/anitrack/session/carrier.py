"""Request-scoped handle on a server-side session record."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from anitrack.auth.models.errors import SessionError
from anitrack.session.locks import SessionLocks
from anitrack.session.models import SessionRecord
from anitrack.session.store import SessionStore

logger = logging.getLogger(__name__)


class Session:
    """Carries one session's record through a request.

    Every write is a read-modify-write against the store under the
    session's lock, so concurrent requests for the same session never
    overwrite each other with stale copies. Nothing is written for a
    session that is never modified.
    """

    def __init__(
        self,
        record: SessionRecord,
        store: SessionStore,
        locks: SessionLocks,
        is_new: bool = False,
    ) -> None:
        self._record = record
        self._store = store
        self._locks = locks
        self.is_new = is_new
        self.persisted = not is_new
        self.destroyed = False

    @property
    def id(self) -> str:
        return self._record.session_id

    @property
    def record(self) -> SessionRecord:
        return self._record

    def lock(self) -> asyncio.Lock:
        """Lock serializing writes for this session."""
        return self._locks.for_session(self.id)

    async def reload(self) -> SessionRecord:
        """Re-read the record from the store.

        Call with lock() held when the result feeds a write.
        """
        try:
            fresh = await self._store.get(self.id)
        except Exception as e:
            raise SessionError(f"Session store unavailable: {e}") from e

        if fresh is not None:
            self._record = fresh
        return self._record

    async def write(self, record: SessionRecord) -> None:
        """Persist a replacement record. Call with lock() held."""
        if record.session_id != self.id:
            raise SessionError("Refusing to write a record for another session")

        try:
            await self._store.set(record)
        except Exception as e:
            raise SessionError(f"Session store unavailable: {e}") from e

        self._record = record
        self.persisted = True

    async def update(self, **changes: Any) -> SessionRecord:
        """Apply field changes on top of the freshest stored record."""
        async with self.lock():
            current = await self.reload()
            updated = current.model_copy(update=changes)
            await self.write(updated)
            return updated

    async def destroy(self) -> None:
        """Delete the session from the store."""
        try:
            await self._store.delete(self.id)
        except Exception as e:
            raise SessionError(f"Session store unavailable: {e}") from e

        self.destroyed = True
        logger.debug(f"Destroyed session {self.id[:8]}...")
