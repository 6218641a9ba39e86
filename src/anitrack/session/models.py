"""Per-session records kept in the server-side session store."""

from __future__ import annotations

import secrets
import time

from pydantic import BaseModel, ConfigDict, Field

from anitrack.auth.models.flow import OauthState
from anitrack.auth.models.tokens import TokenPair


def generate_session_id() -> str:
    """Generate an opaque, unguessable session id."""
    return secrets.token_urlsafe(32)


class SessionRecord(BaseModel):
    """State held for one browser session.

    Immutable. Updates go through model_copy() so readers never see a
    half-written record.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(default_factory=generate_session_id)
    created_at: float = Field(default_factory=time.time)

    # In-flight login attempt
    pending_state: OauthState | None = None
    code_verifier: str | None = None
    pending_started_at: float | None = None

    token_pair: TokenPair | None = None

