"""Token lifecycle for authenticated sessions."""

from __future__ import annotations

import logging

from anitrack.auth.models.tokens import TokenPair
from anitrack.auth.oauth_client import OAuth2Client
from anitrack.session.carrier import Session

logger = logging.getLogger(__name__)


class SessionTokenManager:
    """Hands out valid access tokens, refreshing them when near expiry.

    Refresh is single-flight per session: the first request to notice a
    stale token refreshes under the session lock, later requests re-read the
    record once they get the lock and reuse the new pair.
    """

    def __init__(self, oauth_client: OAuth2Client, refresh_buffer: float = 60.0):
        self.oauth_client = oauth_client
        self.refresh_buffer = refresh_buffer

    async def get_token_pair(self, session: Session) -> TokenPair | None:
        """Return a usable token pair, or None if the session is anonymous.

        Raises:
            NetworkError: If a needed refresh could not reach the provider
            ProviderAuthError: If the provider rejected the refresh token
            ValidationError: If the refresh response is malformed
        """
        token_pair = session.record.token_pair
        if token_pair is None:
            return None

        if token_pair.is_valid(self.refresh_buffer):
            return token_pair

        async with session.lock():
            record = await session.reload()
            token_pair = record.token_pair
            if token_pair is None:
                return None

            if token_pair.is_valid(self.refresh_buffer):
                logger.debug(f"Session {session.id[:8]}... already refreshed")
                return token_pair

            logger.info(f"Refreshing access token for session {session.id[:8]}...")
            token = await self.oauth_client.refresh_token(token_pair.refresh_token)
            refreshed = TokenPair.from_success(token)
            await session.write(record.model_copy(update={"token_pair": refreshed}))
            return refreshed

    async def get_access_token(self, session: Session) -> str | None:
        token_pair = await self.get_token_pair(session)
        return token_pair.access_token if token_pair else None
