"""Tests for state encoding and single-use state validation."""

import json
import time
from urllib.parse import unquote

import pytest

from anitrack.auth.models.errors import StateMismatchError
from anitrack.auth.models.flow import OauthState
from anitrack.auth.services.security import (
    StateValidator,
    decode_state,
    encode_state,
    states_match,
)
from anitrack.session.carrier import Session
from anitrack.session.models import SessionRecord


async def start_pending(session, state: OauthState, started_at: float | None = None):
    await session.update(
        pending_state=state,
        code_verifier="v" * 64,
        pending_started_at=time.time() if started_at is None else started_at,
    )


class TestStateCodec:
    def test_encode_is_compact_json_percent_encoded(self):
        state = OauthState(nonce="abc", return_path="/list?page=2")

        encoded = encode_state(state)

        assert "{" not in encoded and " " not in encoded
        assert json.loads(unquote(encoded)) == {"nonce": "abc", "return_path": "/list?page=2"}

    def test_encode_omits_missing_return_path(self):
        encoded = encode_state(OauthState(nonce="abc"))

        assert json.loads(unquote(encoded)) == {"nonce": "abc"}

    def test_decode_round_trips(self):
        state = OauthState(nonce="abc", return_path="/x")

        assert decode_state(encode_state(state)) == state

    @pytest.mark.parametrize(
        "raw",
        ["not-json", "%7B%7D", '{"nonce": 1}', '{"nonce": "a", "admin": true}'],
    )
    def test_decode_rejects_malformed_state(self, raw):
        with pytest.raises(StateMismatchError):
            decode_state(raw)

    def test_states_match_requires_every_field(self):
        expected = OauthState(nonce="abc", return_path="/a")

        assert states_match(expected, OauthState(nonce="abc", return_path="/a"))
        assert not states_match(expected, OauthState(nonce="abd", return_path="/a"))
        assert not states_match(expected, OauthState(nonce="abc", return_path="/b"))
        assert not states_match(expected, OauthState(nonce="abc"))


class TestStateValidator:
    async def test_state_succeeds_exactly_once(self, session, store):
        # Arrange
        state = OauthState(nonce="nonce-1", return_path="/")
        await start_pending(session, state)
        validator = StateValidator()

        # Act
        matched, verifier = await validator.consume(session, encode_state(state))

        # Assert
        assert matched == state
        assert verifier == "v" * 64

        stored = await store.get(session.id)
        assert stored.pending_state is None
        assert stored.code_verifier is None

        # Replaying the same state fails
        with pytest.raises(StateMismatchError):
            await validator.consume(session, encode_state(state))

    async def test_mismatched_nonce_fails(self, session, store):
        # Arrange
        await start_pending(session, OauthState(nonce="nonce-1"))

        # Act & Assert
        with pytest.raises(StateMismatchError):
            await StateValidator().consume(
                session, encode_state(OauthState(nonce="nonce-2"))
            )

        # The attempt is discarded; the user has to restart login
        stored = await store.get(session.id)
        assert stored.pending_state is None
        assert stored.code_verifier is None

    async def test_malformed_state_also_discards_attempt(self, session, store):
        await start_pending(session, OauthState(nonce="nonce-1"))

        with pytest.raises(StateMismatchError):
            await StateValidator().consume(session, "%7Bnot-json")

        stored = await store.get(session.id)
        assert stored.pending_state is None
        assert stored.code_verifier is None

    async def test_missing_state_fails(self, session):
        await start_pending(session, OauthState(nonce="nonce-1"))

        with pytest.raises(StateMismatchError):
            await StateValidator().consume(session, None)

    async def test_no_pending_state_fails(self, session):
        with pytest.raises(StateMismatchError):
            await StateValidator().consume(
                session, encode_state(OauthState(nonce="nonce-1"))
            )

    async def test_expired_attempt_fails_and_is_discarded(self, session, store):
        # Arrange
        state = OauthState(nonce="nonce-1")
        await start_pending(session, state, started_at=time.time() - 3600)

        # Act & Assert
        with pytest.raises(StateMismatchError, match="expired"):
            await StateValidator(pending_ttl=600).consume(session, encode_state(state))

        stored = await store.get(session.id)
        assert stored.pending_state is None

    async def test_other_sessions_state_is_rejected(self, session, store, locks):
        # Arrange
        other = Session(SessionRecord(), store, locks, is_new=True)
        state = OauthState(nonce="nonce-other")
        await start_pending(other, state)
        await start_pending(session, OauthState(nonce="nonce-mine"))

        # Act & Assert
        with pytest.raises(StateMismatchError):
            await StateValidator().consume(session, encode_state(state))
