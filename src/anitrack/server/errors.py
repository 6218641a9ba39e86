"""Not-found stage and error boundaries.

Each mount point ends with a router whose default raises NotFoundError, and
is wrapped by an ErrorBoundaryMiddleware that turns any exception into a
response for that mount point. Clients only ever see a stable code and a
fixed message.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Callable

from starlette.exceptions import HTTPException
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from anitrack.auth.models.errors import AuthError, NotFoundError

logger = logging.getLogger(__name__)

_MESSAGES = {
    "not_found": "The requested resource was not found.",
    "method_not_allowed": "Method not allowed.",
    "bad_request": "Bad request.",
    "validation_error": "The authorization provider returned an unexpected response.",
    "provider_auth_error": "The authorization provider rejected the login.",
    "state_mismatch": "The login attempt is invalid or expired. Please log in again.",
    "network_error": "The authorization provider is unavailable. Please try again.",
    "session_error": "Your session could not be loaded.",
    "internal_error": "An internal error occurred.",
}

_HTTP_CODES = {400: "bad_request", 404: "not_found", 405: "method_not_allowed"}


@dataclass(frozen=True)
class ErrorInfo:
    status_code: int
    code: str
    retryable: bool

    @property
    def message(self) -> str:
        return _MESSAGES.get(self.code, _MESSAGES["internal_error"])


def describe_error(exc: Exception) -> ErrorInfo:
    """Map an exception to the client-facing error description."""
    if isinstance(exc, AuthError):
        return ErrorInfo(exc.status_code, exc.code, exc.retryable)
    if isinstance(exc, HTTPException):
        code = _HTTP_CODES.get(exc.status_code, "internal_error")
        status = exc.status_code if code != "internal_error" else 500
        return ErrorInfo(status, code, False)
    return ErrorInfo(500, "internal_error", False)


def render_api_error(info: ErrorInfo) -> Response:
    return JSONResponse(
        {"error": {"code": info.code, "message": info.message}},
        status_code=info.status_code,
    )


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body><h1>{title}</h1><p>{message}</p><p><a href="/">Return home</a></p></body>
</html>
"""


def render_page_error(info: ErrorInfo) -> Response:
    title = "Page Not Found" if info.status_code == 404 else "Something Went Wrong"
    body = _PAGE_TEMPLATE.format(
        title=html.escape(title), message=html.escape(info.message)
    )
    return HTMLResponse(body, status_code=info.status_code)


async def not_found(scope: Scope, receive: Receive, send: Send) -> None:
    """Router default for a mount point: signal that nothing matched."""
    raise NotFoundError(f"No route for {scope.get('path', '')}")


class ErrorBoundaryMiddleware:
    """Convert any exception from the wrapped stages into a response."""

    def __init__(
        self,
        app: ASGIApp,
        render: Callable[[ErrorInfo], Response],
        name: str,
    ) -> None:
        self.app = app
        self.render = render
        self.name = name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            info = describe_error(exc)
            self._log(scope, exc, info)

            if response_started:
                # Too late to answer; let the server close the connection.
                raise

            response = self.render(info)
            await response(scope, receive, send)

    def _log(self, scope: Scope, exc: Exception, info: ErrorInfo) -> None:
        path = scope.get("path", "")
        summary = (
            f"[{self.name}] {scope.get('method', '')} {path} -> {info.status_code} "
            f"code={info.code} retryable={info.retryable} "
            f"error={type(exc).__name__}: {exc}"
        )
        if info.status_code >= 500 and not isinstance(exc, AuthError):
            logger.exception(summary)
        elif info.status_code >= 500:
            logger.error(summary)
        else:
            logger.warning(summary)
