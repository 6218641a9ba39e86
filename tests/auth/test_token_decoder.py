"""Tests for the token endpoint response decoder."""

import pytest

from anitrack.auth.models.tokens import TokenPair, TokenSuccess, decode_token_response

SUCCESS_BODY = {
    "token_type": "Bearer",
    "expires_in": 2678400,
    "access_token": "access-xyz",
    "refresh_token": "refresh-abc",
}


class TestDecodeTokenResponse:
    def test_success_body_is_kept_exactly_as_received(self):
        # Act
        result = decode_token_response(dict(SUCCESS_BODY))

        # Assert
        assert result.kind == "success"
        assert result.failure is None
        assert result.success.model_dump() == SUCCESS_BODY

    def test_failure_body(self):
        # Act
        result = decode_token_response(
            {"error": "invalid_grant", "error_description": "expired code"}
        )

        # Assert
        assert result.kind == "failure"
        assert result.success is None
        assert result.failure.error == "invalid_grant"
        assert result.failure.error_description == "expired code"

    def test_failure_shape_wins_over_success_shape(self):
        # Arrange - a body carrying both shapes must never yield a token
        body = {**SUCCESS_BODY, "error": "invalid_client"}

        # Act
        result = decode_token_response(body)

        # Assert
        assert result.kind == "failure"
        assert result.success is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            "access-xyz",
            {},
            {"access_token": "access-xyz"},
            {**SUCCESS_BODY, "expires_in": "3600"},
            {**SUCCESS_BODY, "access_token": None},
            {"error": 42},
        ],
    )
    def test_unrecognized_bodies(self, payload):
        result = decode_token_response(payload)

        assert result.kind == "unrecognized"
        assert result.success is None
        assert result.failure is None


class TestTokenPair:
    def test_from_success_computes_expiry(self):
        token = TokenSuccess(**SUCCESS_BODY)

        pair = TokenPair.from_success(token, now=1000.0)

        assert pair.access_token == "access-xyz"
        assert pair.refresh_token == "refresh-abc"
        assert pair.token_type == "Bearer"
        assert pair.expires_at == 1000.0 + 2678400

    def test_is_valid_honours_refresh_buffer(self):
        pair = TokenPair(
            access_token="a", refresh_token="r", token_type="Bearer", expires_at=1000.0
        )

        assert pair.is_valid(buffer_seconds=60, now=900.0)
        assert not pair.is_valid(buffer_seconds=60, now=950.0)
        assert not pair.is_valid(buffer_seconds=0, now=1000.0)
