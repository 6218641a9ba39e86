"""Per-session mutual exclusion."""

from __future__ import annotations

import asyncio
import weakref


class SessionLocks:
    """Registry of asyncio locks keyed by session id.

    Locks are held weakly and disappear once no coroutine references them.
    Requests for different sessions never contend.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_session(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock
