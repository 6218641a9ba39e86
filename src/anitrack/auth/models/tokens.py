"""Token endpoint schemas and the token pair kept in a session.

Provider responses are untrusted JSON. They go through decode_token_response(),
which checks the failure shape before the success shape and reports anything
else as unrecognized.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError


class TokenSuccess(BaseModel):
    """Successful token response (RFC 6749 Section 5.1)."""

    model_config = ConfigDict(strict=True, frozen=True)

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str


class TokenFailure(BaseModel):
    """Error token response (RFC 6749 Section 5.2)."""

    model_config = ConfigDict(strict=True, frozen=True)

    error: str
    error_description: str | None = None


@dataclass(frozen=True)
class TokenResult:
    """Tagged result of decoding a token endpoint body."""

    kind: Literal["success", "failure", "unrecognized"]
    success: TokenSuccess | None = None
    failure: TokenFailure | None = None


def decode_token_response(payload: Any) -> TokenResult:
    """Classify an untrusted token endpoint body.

    The failure shape wins over the success shape, so a body carrying an
    ``error`` field is never read as a token.
    """
    if not isinstance(payload, dict):
        return TokenResult(kind="unrecognized")

    try:
        return TokenResult(
            kind="failure", failure=TokenFailure.model_validate(payload)
        )
    except PydanticValidationError:
        pass

    try:
        return TokenResult(
            kind="success", success=TokenSuccess.model_validate(payload)
        )
    except PydanticValidationError:
        return TokenResult(kind="unrecognized")


class TokenPair(BaseModel):
    """Token pair stored in a session record.

    Immutable. A refresh builds a new pair and swaps it in.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str
    expires_at: float  # Unix timestamp

    @classmethod
    def from_success(cls, token: TokenSuccess, now: float | None = None) -> TokenPair:
        issued_at = time.time() if now is None else now
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_type=token.token_type,
            expires_at=issued_at + token.expires_in,
        )

    def is_valid(self, buffer_seconds: float = 60.0, now: float | None = None) -> bool:
        """Check if the access token is usable with a refresh buffer."""
        current = time.time() if now is None else now
        return current < (self.expires_at - buffer_seconds)


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3)."""

    code: str
    code_verifier: str
    redirect_uri: str
    client_id: str
    client_secret: str

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        return {
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": self.grant_type,
            "code": self.code,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token parameters (RFC 6749 Section 6)."""

    refresh_token: str
    client_id: str
    client_secret: str

    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
        }
