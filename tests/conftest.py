import pytest

from anitrack.config import AppConfig
from anitrack.session.carrier import Session
from anitrack.session.locks import SessionLocks
from anitrack.session.models import SessionRecord
from anitrack.session.store import MemorySessionStore


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        web_url="http://localhost:8080",
        client_id="client-123",
        client_secret="secret-456",
        encryption_key="test-encryption-key",
        authorize_url="https://auth.example.com/v1/oauth2/authorize",
        token_url="https://auth.example.com/v1/oauth2/token",
        provider_timeout=2.0,
    )


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def locks() -> SessionLocks:
    return SessionLocks()


@pytest.fixture
def session(store, locks) -> Session:
    """A brand new, not yet persisted session."""
    return Session(SessionRecord(), store, locks, is_new=True)
