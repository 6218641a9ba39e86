"""Authorization flow models.

Contains the anti-forgery state payload, the authorize request and the
callback parameters echoed back by the provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict


class OauthState(BaseModel):
    """Anti-forgery state sent to the provider and echoed on callback.

    Binds a callback to the session that started the login. It carries no
    authorization decisions.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    nonce: str
    return_path: str | None = None


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters."""

    authorization_endpoint: str
    redirect_uri: str
    client_id: str
    state: str
    code_challenge: str
    code_challenge_method: str = "plain"

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "response_type": "code",
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        return self.error is None and bool(self.code)

    def is_error(self) -> bool:
        return self.error is not None
