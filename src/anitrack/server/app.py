"""Request pipeline composition.

Stage order, outermost first:
1. Proxy trust (decides whether the request counts as https)
2. Session (needs the https decision for secure cookies)
3. Optional CORS and telemetry (the latter also exposes /metrics)
4. Route handlers per mount point, static files under the page mount
5. Not-found stage per mount point
6. Error boundary per mount point

Each flag adds or removes exactly one stage without reordering the others.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import BaseRoute, Mount, Route, Router
from starlette.staticfiles import StaticFiles
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from anitrack.server.context import ServerAppContext
from anitrack.server.errors import (
    ErrorBoundaryMiddleware,
    not_found,
    render_api_error,
    render_page_error,
)
from anitrack.server.routes import api_routes
from anitrack.server.telemetry import (
    METRICS_PATH,
    RequestTelemetryMiddleware,
    metrics_endpoint,
)
from anitrack.session.middleware import SessionMiddleware

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def build_middleware(ctx: ServerAppContext) -> list[Middleware]:
    """Build the ordered middleware stages for the given context."""
    config = ctx.config
    middleware: list[Middleware] = []

    # Sits behind a reverse proxy in production
    if ctx.trust_proxy:
        middleware.append(Middleware(ProxyHeadersMiddleware, trusted_hosts="*"))

    middleware.append(
        Middleware(
            SessionMiddleware,
            store=ctx.session_store,
            locks=ctx.session_locks,
            secret=config.encryption_key,
            cookie_name=config.cookie_name,
            max_age=config.cookie_max_age,
            secure=config.cookie_secure,
        )
    )

    if ctx.enable_cors:
        logger.info(f"Setting CORS origin to {config.web_url}")
        middleware.append(
            Middleware(
                CORSMiddleware,
                allow_origins=[config.web_url],
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
            )
        )

    if ctx.enable_telemetry:
        middleware.append(Middleware(RequestTelemetryMiddleware))

    return middleware


def build_routes(ctx: ServerAppContext) -> list[BaseRoute]:
    """Build the mount points: metrics, API and pages.

    Static files live under the page mount point, so a missing file or a
    broken static directory is answered by the page error boundary.
    """
    config = ctx.config
    routes: list[BaseRoute] = []

    if ctx.enable_telemetry:
        routes.append(
            Route(METRICS_PATH, metrics_endpoint, methods=["GET"], name="metrics")
        )

    page_routes: list[BaseRoute] = []
    if ctx.enable_static_files:
        logger.info(
            f'Serving static files from "{config.static_dir}" to "{config.static_path}"'
        )
        page_routes.append(
            Mount(
                config.static_path,
                app=StaticFiles(directory=config.static_dir, check_dir=False),
                name="static",
            )
        )
    page_routes.extend(ctx.page_routes)

    api_app = ErrorBoundaryMiddleware(
        Router(routes=api_routes(ctx), default=not_found),
        render=render_api_error,
        name="api",
    )
    page_app = ErrorBoundaryMiddleware(
        Router(routes=page_routes, default=not_found),
        render=render_page_error,
        name="page",
    )

    routes.append(Mount(API_PREFIX, app=api_app, name="api"))
    routes.append(Mount("", app=page_app, name="pages"))
    return routes


def create_server_app(ctx: ServerAppContext) -> Starlette:
    """Create the ASGI application for the given context."""

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await ctx.close()

    return Starlette(
        routes=build_routes(ctx),
        middleware=build_middleware(ctx),
        lifespan=lifespan,
    )
