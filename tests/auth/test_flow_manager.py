"""Tests for login flow orchestration.

Covers:
- Login start records a single pending attempt
- Callback consumes state before exchanging the code
- Provider error variants and open redirect protection
"""

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import pytest

from anitrack.auth.models.errors import (
    ProviderAuthError,
    StateMismatchError,
    ValidationError,
)
from anitrack.auth.models.flow import AuthorizationResponse
from anitrack.auth.models.tokens import TokenSuccess
from anitrack.auth.oauth_client import OAuth2Client
from anitrack.auth.services.flow import OAuth2FlowManager, safe_return_path

TOKEN = TokenSuccess(
    access_token="access-xyz",
    refresh_token="refresh-abc",
    expires_in=3600,
    token_type="Bearer",
)


@pytest.fixture
def oauth_client(config):
    client = OAuth2Client(config)
    client.exchange_code = AsyncMock(return_value=TOKEN)
    return client


@pytest.fixture
def flow_manager(oauth_client):
    return OAuth2FlowManager(oauth_client)


def state_from_url(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


class TestStartLogin:
    async def test_records_pending_state_and_verifier(self, flow_manager, session, store):
        # Act
        url = await flow_manager.start_login(session, "/anime/5")

        # Assert
        stored = await store.get(session.id)
        assert stored.pending_state is not None
        assert stored.pending_state.return_path == "/anime/5"
        assert stored.code_verifier is not None
        assert stored.pending_started_at is not None

        params = parse_qs(urlparse(url).query)
        assert params["code_challenge"] == [stored.code_verifier]
        assert session.persisted

    async def test_new_login_replaces_previous_attempt(self, flow_manager, session, store):
        # Arrange
        first_url = await flow_manager.start_login(session)

        # Act
        await flow_manager.start_login(session)

        # Assert - only the latest attempt can complete
        callback = AuthorizationResponse(code="code-1", state=state_from_url(first_url))
        with pytest.raises(StateMismatchError):
            await flow_manager.complete_login(session, callback)

    async def test_unsafe_return_path_is_dropped(self, flow_manager, session, store):
        await flow_manager.start_login(session, "https://evil.example.com")

        stored = await store.get(session.id)
        assert stored.pending_state.return_path == "/"


class TestCompleteLogin:
    async def test_successful_callback_stores_token_pair(
        self, flow_manager, oauth_client, session, store
    ):
        # Arrange
        url = await flow_manager.start_login(session, "/list")
        verifier = (await store.get(session.id)).code_verifier

        # Act
        target = await flow_manager.complete_login(
            session, AuthorizationResponse(code="code-1", state=state_from_url(url))
        )

        # Assert
        assert target == "/list"
        oauth_client.exchange_code.assert_awaited_once_with("code-1", verifier)

        stored = await store.get(session.id)
        assert stored.token_pair.access_token == "access-xyz"
        assert stored.token_pair.refresh_token == "refresh-abc"
        assert stored.pending_state is None
        assert stored.code_verifier is None

    async def test_replayed_callback_fails(self, flow_manager, oauth_client, session):
        # Arrange
        url = await flow_manager.start_login(session)
        callback = AuthorizationResponse(code="code-1", state=state_from_url(url))
        await flow_manager.complete_login(session, callback)

        # Act & Assert
        with pytest.raises(StateMismatchError):
            await flow_manager.complete_login(session, callback)
        assert oauth_client.exchange_code.await_count == 1

    async def test_forged_state_never_reaches_token_endpoint(
        self, flow_manager, oauth_client, session
    ):
        await flow_manager.start_login(session)

        with pytest.raises(StateMismatchError):
            await flow_manager.complete_login(
                session, AuthorizationResponse(code="code-1", state="%7B%7D")
            )
        oauth_client.exchange_code.assert_not_awaited()

    async def test_provider_error_variant(self, flow_manager, oauth_client, session, store):
        # Arrange
        url = await flow_manager.start_login(session)

        # Act & Assert
        with pytest.raises(ProviderAuthError) as exc_info:
            await flow_manager.complete_login(
                session,
                AuthorizationResponse(error="access_denied", state=state_from_url(url)),
            )
        assert exc_info.value.error == "access_denied"
        oauth_client.exchange_code.assert_not_awaited()

        # State is consumed even on provider errors
        stored = await store.get(session.id)
        assert stored.pending_state is None

    async def test_callback_without_code_or_error(self, flow_manager, session):
        url = await flow_manager.start_login(session)

        with pytest.raises(ValidationError):
            await flow_manager.complete_login(
                session, AuthorizationResponse(state=state_from_url(url))
            )

    async def test_empty_code_is_rejected(self, flow_manager, oauth_client, session):
        url = await flow_manager.start_login(session)

        with pytest.raises(ValidationError):
            await flow_manager.complete_login(
                session, AuthorizationResponse(code="", state=state_from_url(url))
            )

        oauth_client.exchange_code.assert_not_awaited()

    async def test_logout_destroys_session(self, flow_manager, session, store):
        url = await flow_manager.start_login(session)
        await flow_manager.complete_login(
            session, AuthorizationResponse(code="code-1", state=state_from_url(url))
        )

        await flow_manager.logout(session)

        assert await store.get(session.id) is None
        assert session.destroyed


class TestSafeReturnPath:
    @pytest.mark.parametrize(
        "path,expected",
        [
            (None, "/"),
            ("", "/"),
            ("/anime/1?tab=2", "/anime/1?tab=2"),
            ("//evil.example.com", "/"),
            ("https://evil.example.com", "/"),
            ("/\\evil.example.com", "/"),
            ("relative/path", "/"),
        ],
    )
    def test_only_same_origin_paths(self, path, expected):
        assert safe_return_path(path) == expected
