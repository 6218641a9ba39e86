"""API route handlers mounted under /api."""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from anitrack.auth.models.flow import AuthorizationResponse
from anitrack.server.context import ServerAppContext
from anitrack.session.middleware import get_session

logger = logging.getLogger(__name__)


def api_routes(ctx: ServerAppContext) -> list[Route]:
    """Build the /api routes bound to the given context."""

    async def login(request: Request) -> Response:
        session = get_session(request)
        url = await ctx.flow_manager.start_login(
            session, request.query_params.get("returnPath")
        )
        return RedirectResponse(url, status_code=302)

    async def oauth_callback(request: Request) -> Response:
        session = get_session(request)
        params = request.query_params
        callback = AuthorizationResponse(
            code=params.get("code"),
            state=params.get("state"),
            error=params.get("error"),
            error_description=params.get("error_description"),
        )
        target = await ctx.flow_manager.complete_login(session, callback)
        return RedirectResponse(target, status_code=302)

    async def session_status(request: Request) -> Response:
        session = get_session(request)
        token_pair = await ctx.token_manager.get_token_pair(session)
        return JSONResponse(
            {
                "authenticated": token_pair is not None,
                "expiresAt": token_pair.expires_at if token_pair else None,
            }
        )

    async def logout(request: Request) -> Response:
        session = get_session(request)
        await ctx.flow_manager.logout(session)
        return Response(status_code=204)

    return [
        Route("/login", login, methods=["GET"]),
        Route("/oauth", oauth_callback, methods=["GET"]),
        Route("/session", session_status, methods=["GET"]),
        Route("/logout", logout, methods=["POST"]),
    ]
