"""Application context shared by every pipeline stage.

Built once at startup by create_context() and passed explicitly to the
components that need it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from starlette.routing import BaseRoute

from anitrack.auth.oauth_client import OAuth2Client
from anitrack.auth.services.flow import OAuth2FlowManager
from anitrack.config import AppConfig
from anitrack.session.locks import SessionLocks
from anitrack.session.store import MemorySessionStore, SessionStore
from anitrack.session.tokens import SessionTokenManager

logger = logging.getLogger(__name__)


@dataclass
class ServerAppContext:
    """Long-lived collaborators of the request pipeline."""

    config: AppConfig
    oauth_client: OAuth2Client
    flow_manager: OAuth2FlowManager
    token_manager: SessionTokenManager
    session_store: SessionStore
    session_locks: SessionLocks

    # Page routes are provided by the rendering layer
    page_routes: list[BaseRoute] = field(default_factory=list)

    @property
    def trust_proxy(self) -> bool:
        return self.config.trust_proxy

    @property
    def enable_cors(self) -> bool:
        return self.config.enable_cors

    @property
    def enable_static_files(self) -> bool:
        return self.config.enable_static_files

    @property
    def enable_telemetry(self) -> bool:
        return self.config.enable_telemetry

    async def close(self) -> None:
        """Release outbound connections."""
        await self.oauth_client.close()


def create_context(
    config: AppConfig,
    session_store: SessionStore | None = None,
    http_client: httpx.AsyncClient | None = None,
    page_routes: list[BaseRoute] | None = None,
) -> ServerAppContext:
    """Wire up the pipeline collaborators from configuration."""
    oauth_client = OAuth2Client(config, http_client=http_client)
    store = session_store or MemorySessionStore(max_age_seconds=config.cookie_max_age)

    logger.debug(f"Created server context for {config.web_url}")
    return ServerAppContext(
        config=config,
        oauth_client=oauth_client,
        flow_manager=OAuth2FlowManager(oauth_client),
        token_manager=SessionTokenManager(
            oauth_client, refresh_buffer=config.token_refresh_buffer
        ),
        session_store=store,
        session_locks=SessionLocks(),
        page_routes=list(page_routes or []),
    )
