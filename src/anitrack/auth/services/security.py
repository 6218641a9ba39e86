"""Anti-forgery state handling for the authorization code flow.

The state binds a provider callback to the session that started the login.
It is serialized as compact JSON, percent-encoded, and consumed exactly once.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from urllib.parse import quote, unquote

from pydantic import ValidationError as PydanticValidationError

from anitrack.auth.models.errors import StateMismatchError
from anitrack.auth.models.flow import OauthState
from anitrack.session.carrier import Session

logger = logging.getLogger(__name__)

PENDING_LOGIN_TTL = 600.0  # seconds


def generate_nonce() -> str:
    """Generate a cryptographically secure state nonce."""
    return secrets.token_urlsafe(32)


def encode_state(state: OauthState) -> str:
    """Serialize a state for the authorize URL.

    Equivalent to encodeURIComponent(JSON.stringify(state)).
    """
    payload = json.dumps(state.model_dump(exclude_none=True), separators=(",", ":"))
    return quote(payload, safe="-_.!~*'()")


def decode_state(raw: str) -> OauthState:
    """Parse a state echoed by the provider.

    Raises:
        StateMismatchError: If the value is not a well-formed state
    """
    try:
        return OauthState.model_validate_json(unquote(raw))
    except (PydanticValidationError, ValueError) as e:
        raise StateMismatchError("Malformed state parameter") from e


def states_match(expected: OauthState, actual: OauthState) -> bool:
    """Deep-compare two states, comparing the nonce in constant time."""
    nonce_ok = secrets.compare_digest(
        expected.nonce.encode("utf-8"), actual.nonce.encode("utf-8")
    )
    return nonce_ok and expected.return_path == actual.return_path


class StateValidator:
    """Validates and consumes the pending state of a session."""

    def __init__(self, pending_ttl: float = PENDING_LOGIN_TTL) -> None:
        self.pending_ttl = pending_ttl

    async def consume(self, session: Session, incoming_state: str | None) -> tuple[OauthState, str]:
        """Check an echoed state against the session and clear it.

        Clearing is part of successful validation, so a state can only ever
        succeed once. The cleared record is persisted before returning.

        Args:
            session: Session that must have started the login
            incoming_state: Raw ``state`` query value from the callback

        Returns:
            Tuple of (matched state, PKCE code verifier)

        Raises:
            StateMismatchError: On any missing, mismatched, expired or
                already consumed state
        """
        if not incoming_state:
            raise StateMismatchError("Callback is missing the state parameter")

        async with session.lock():
            record = await session.reload()
            pending = record.pending_state
            verifier = record.code_verifier

            if pending is None or verifier is None:
                logger.warning(
                    f"No pending login for session {session.id[:8]}... "
                    "(state already consumed or never issued)"
                )
                raise StateMismatchError("No login is pending for this session")

            # The attempt is spent either way; a mismatch means restarting login.
            await session.write(
                record.model_copy(
                    update={
                        "pending_state": None,
                        "code_verifier": None,
                        "pending_started_at": None,
                    }
                )
            )

            incoming = decode_state(incoming_state)
            if not states_match(pending, incoming):
                logger.warning(f"State mismatch for session {session.id[:8]}...")
                raise StateMismatchError("State parameter mismatch")

        started_at = record.pending_started_at
        if started_at is not None and time.time() - started_at > self.pending_ttl:
            raise StateMismatchError("Login attempt expired")

        return pending, verifier
