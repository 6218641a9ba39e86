"""Token endpoint exchange and refresh service.

Implements RFC 6749 token endpoint interactions with PKCE (RFC 7636).
Responses are untrusted: every body goes through decode_token_response()
before any field is read.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from anitrack.auth.models.errors import (
    NetworkError,
    ProviderAuthError,
    ValidationError,
)
from anitrack.auth.models.tokens import (
    RefreshTokenRequest,
    TokenRequest,
    TokenSuccess,
    decode_token_response,
)

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Performs the two token endpoint grants.

    Handles:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749.
    """

    def __init__(
        self,
        token_endpoint: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize token manager.

        Args:
            token_endpoint: Provider token endpoint URL
            timeout: HTTP request timeout in seconds
            http_client: Optional preconfigured client
        """
        self.token_endpoint = token_endpoint
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(self, token_request: TokenRequest) -> TokenSuccess:
        """Exchange an authorization code for a token pair.

        Raises:
            NetworkError: On timeout, connection failure or 5xx
            ProviderAuthError: If the provider reports a failure
            ValidationError: If the body matches no known schema
        """
        logger.debug(f"Exchanging authorization code at {self.token_endpoint}")
        return await self._request_token(token_request.to_form_data())

    async def refresh_access_token(
        self, refresh_request: RefreshTokenRequest
    ) -> TokenSuccess:
        """Refresh an access token using a refresh token.

        Same failure modes as exchange_code_for_token().
        """
        logger.debug(f"Refreshing access token at {self.token_endpoint}")
        return await self._request_token(refresh_request.to_form_data())

    async def _request_token(self, form_data: dict[str, str]) -> TokenSuccess:
        grant_type = form_data["grant_type"]
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        try:
            response = await self._http_client.post(
                self.token_endpoint,
                data=form_data,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Token request timed out (grant_type={grant_type})")
            raise NetworkError(f"Token endpoint timed out: {e}") from e
        except httpx.TransportError as e:
            logger.warning(f"Token request failed (grant_type={grant_type}): {e}")
            raise NetworkError(f"Token endpoint unreachable: {e}") from e

        if response.status_code >= 500:
            logger.warning(
                f"Token endpoint returned {response.status_code} "
                f"(grant_type={grant_type})"
            )
            raise NetworkError(f"Token endpoint returned {response.status_code}")

        return self._parse_token_response(response, grant_type)

    def _parse_token_response(
        self, response: httpx.Response, grant_type: str
    ) -> TokenSuccess:
        """Decode a token endpoint body into a TokenSuccess.

        The failure shape is checked first and short-circuits. Anything that
        is neither failure nor success is rejected without exposing the body.
        """
        try:
            payload: Any = response.json()
        except ValueError as e:
            logger.error(
                f"Token endpoint returned a non-JSON body "
                f"(status={response.status_code}, grant_type={grant_type})"
            )
            raise ValidationError("Token endpoint returned a non-JSON body") from e

        result = decode_token_response(payload)

        if result.kind == "failure":
            failure = result.failure
            logger.warning(
                f"Token request rejected with {response.status_code}: "
                f"{failure.error} (grant_type={grant_type})"
            )
            raise ProviderAuthError(failure.error, failure.error_description)

        if result.kind == "unrecognized":
            logger.error(
                f"Unrecognized token response shape "
                f"(status={response.status_code}, grant_type={grant_type})"
            )
            raise ValidationError("Unrecognized token endpoint response")

        logger.info(f"Token request successful (grant_type={grant_type})")
        return result.success

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
