import dataclasses

import httpx
import pytest

TOKEN_BODY = {
    "token_type": "Bearer",
    "expires_in": 2678400,
    "access_token": "access-xyz",
    "refresh_token": "refresh-abc",
}


class FakeProvider:
    """Token endpoint stand-in driven through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.mode = "success"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.mode == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if self.mode == "failure":
            return httpx.Response(
                400, json={"error": "invalid_grant", "error_description": "internal hint"}
            )
        if self.mode == "garbage":
            return httpx.Response(200, json={"token": "raw-provider-secret"})
        return httpx.Response(200, json=TOKEN_BODY)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_config(config):
    def _make(**overrides):
        return dataclasses.replace(config, **overrides)

    return _make
