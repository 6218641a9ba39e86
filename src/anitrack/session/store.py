"""Server-side session stores.

Stores keep serialized copies of records, so two requests never share a
record object and one session can never reach into another's data.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from anitrack.session.models import SessionRecord

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 300.0  # seconds


class SessionStore(ABC):
    """Abstract store for session records keyed by session id."""

    @abstractmethod
    async def get(self, session_id: str) -> SessionRecord | None:
        """Retrieve a session record.

        Args:
            session_id: Opaque id carried by the session cookie.

        Returns:
            The record if found and not expired, None otherwise.
        """

    @abstractmethod
    async def set(self, record: SessionRecord) -> None:
        """Create or replace a session record."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Delete a session record. Missing ids are ignored."""


class MemorySessionStore(SessionStore):
    """In-memory session store.

    Each entry keeps its expiry next to the serialized record, so a lookup
    only ever inspects the requested key. Expired entries nobody asks for are
    swept at most once per sweep interval.

    Warning:
        Records are lost on restart and are not shared between processes.
    """

    def __init__(
        self,
        max_age_seconds: float | None = None,
        sweep_interval: float = SWEEP_INTERVAL,
    ) -> None:
        """Initialize memory session store.

        Args:
            max_age_seconds: Drop records this many seconds after creation.
                None keeps records until deleted.
            sweep_interval: Minimum seconds between full expiry sweeps.
        """
        self._records: dict[str, tuple[float | None, str]] = {}
        self._max_age = max_age_seconds
        self._sweep_interval = sweep_interval
        self._last_sweep = time.time()

    async def get(self, session_id: str) -> SessionRecord | None:
        now = time.time()
        self._maybe_sweep(now)

        entry = self._records.get(session_id)
        if entry is None:
            return None

        expires_at, raw = entry
        if expires_at is not None and now > expires_at:
            logger.debug(f"Expiring session {session_id[:8]}...")
            del self._records[session_id]
            return None
        return SessionRecord.model_validate_json(raw)

    async def set(self, record: SessionRecord) -> None:
        expires_at = None
        if self._max_age is not None:
            expires_at = record.created_at + self._max_age
        self._records[record.session_id] = (expires_at, record.model_dump_json())

    async def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._records)

    def _maybe_sweep(self, now: float) -> None:
        """Remove expired records if the last sweep is old enough."""
        if self._max_age is None or now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now

        expired = [
            session_id
            for session_id, (expires_at, _) in self._records.items()
            if expires_at is not None and now > expires_at
        ]
        for session_id in expired:
            del self._records[session_id]
        if expired:
            logger.debug(f"Swept {len(expired)} expired sessions")
