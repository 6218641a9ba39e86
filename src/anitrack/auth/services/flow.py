"""Login flow orchestration.

Ties the OAuth client, PKCE generation, state validation and the session
together for the login and callback routes.
"""

from __future__ import annotations

import logging
import time

from anitrack.auth.models.errors import ProviderAuthError, ValidationError
from anitrack.auth.models.flow import AuthorizationResponse, OauthState
from anitrack.auth.models.tokens import TokenPair
from anitrack.auth.oauth_client import OAuth2Client
from anitrack.auth.primitives.pkce import PKCEManager
from anitrack.auth.services.security import StateValidator, generate_nonce
from anitrack.session.carrier import Session

logger = logging.getLogger(__name__)

DEFAULT_RETURN_PATH = "/"


def safe_return_path(path: str | None) -> str:
    """Only allow same-origin absolute paths as post-login redirects."""
    if not path or not path.startswith("/") or path.startswith("//"):
        return DEFAULT_RETURN_PATH
    if "\\" in path or any(ch in path for ch in "\r\n"):
        return DEFAULT_RETURN_PATH
    return path


class OAuth2FlowManager:
    """Runs the authorization code flow for one session at a time.

    - start_login(): new state + PKCE verifier, recorded as pending
    - complete_login(): state consumed, code exchanged, token pair stored
    """

    def __init__(
        self,
        oauth_client: OAuth2Client,
        state_validator: StateValidator | None = None,
        pkce_manager: PKCEManager | None = None,
    ):
        self.oauth_client = oauth_client
        self.state_validator = state_validator or StateValidator()
        self._pkce_manager = pkce_manager or PKCEManager()

    async def start_login(self, session: Session, return_path: str | None = None) -> str:
        """Start a login attempt and return the provider authorization URL.

        Any previous pending attempt of this session is replaced, so only one
        state is ever pending.
        """
        pkce_params = self._pkce_manager.generate_parameters()
        state = OauthState(
            nonce=generate_nonce(),
            return_path=safe_return_path(return_path),
        )

        await session.update(
            pending_state=state,
            code_verifier=pkce_params.code_verifier,
            pending_started_at=time.time(),
        )

        logger.info(f"Started login for session {session.id[:8]}...")
        return self.oauth_client.build_authorize_url(state, pkce_params.code_challenge)

    async def complete_login(self, session: Session, callback: AuthorizationResponse) -> str:
        """Finish a login from the provider callback.

        State is validated and consumed before anything else, including
        provider error variants.

        Returns:
            Same-origin path to redirect the user to

        Raises:
            StateMismatchError: If the state does not match the pending one
            ProviderAuthError: If the provider reported an error or rejected the code
            NetworkError: If the token endpoint is unreachable
            ValidationError: If the token response is malformed
        """
        state, code_verifier = await self.state_validator.consume(
            session, callback.state
        )

        if callback.is_error():
            logger.warning(f"Provider denied authorization: {callback.error}")
            raise ProviderAuthError(callback.error, callback.error_description)

        if not callback.is_success():
            raise ValidationError("Callback carried neither a code nor an error")

        token = await self.oauth_client.exchange_code(callback.code, code_verifier)
        await session.update(token_pair=TokenPair.from_success(token))

        logger.info(f"Completed login for session {session.id[:8]}...")
        return safe_return_path(state.return_path)

    async def logout(self, session: Session) -> None:
        await session.destroy()
