"""MyAnimeList OAuth client.

Builds the provider authorization URL and performs the two token endpoint
grants. Holds no per-user state.
"""

from __future__ import annotations

import logging

import httpx

from anitrack.auth.models.flow import AuthorizationRequest, OauthState
from anitrack.auth.models.tokens import (
    RefreshTokenRequest,
    TokenRequest,
    TokenSuccess,
)
from anitrack.auth.services.security import encode_state
from anitrack.auth.services.tokens import OAuth2TokenManager
from anitrack.config import AppConfig

logger = logging.getLogger(__name__)


class OAuth2Client:
    """OAuth 2.0 authorization code client with PKCE for MyAnimeList."""

    def __init__(
        self,
        config: AppConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize OAuth client.

        Args:
            config: Runtime configuration (endpoints, credentials, timeout)
            http_client: Optional preconfigured client, mainly for tests
        """
        self.config = config
        self.token_manager = OAuth2TokenManager(
            token_endpoint=config.token_url,
            timeout=config.provider_timeout,
            http_client=http_client,
        )

    def build_authorize_url(self, state: OauthState, code_challenge: str) -> str:
        """Build the URL the user is redirected to for authorization.

        Pure function of the configuration and arguments. No network call.
        """
        auth_request = AuthorizationRequest(
            authorization_endpoint=self.config.authorize_url,
            redirect_uri=self.config.redirect_uri,
            client_id=self.config.client_id,
            state=encode_state(state),
            code_challenge=code_challenge,
            code_challenge_method="plain",
        )
        return auth_request.build_authorization_url()

    async def exchange_code(self, code: str, code_verifier: str) -> TokenSuccess:
        """Exchange an authorization code and its PKCE verifier for tokens.

        Raises:
            NetworkError: On timeout, connection failure or 5xx (retryable)
            ProviderAuthError: If the provider reports a failure
            ValidationError: If the response matches no known schema
        """
        token_request = TokenRequest(
            code=code,
            code_verifier=code_verifier,
            redirect_uri=self.config.redirect_uri,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
        )
        return await self.token_manager.exchange_code_for_token(token_request)

    async def refresh_token(self, refresh_token: str) -> TokenSuccess:
        """Obtain a new token pair from a refresh token.

        Same failure modes as exchange_code().
        """
        refresh_request = RefreshTokenRequest(
            refresh_token=refresh_token,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
        )
        return await self.token_manager.refresh_access_token(refresh_request)

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_manager.close()
