"""Session cookie middleware.

The cookie carries only an opaque session id signed with HMAC-SHA256. The
record it points to lives in the server-side store.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection, Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from anitrack.auth.models.errors import SessionError
from anitrack.session.carrier import Session
from anitrack.session.locks import SessionLocks
from anitrack.session.models import SessionRecord
from anitrack.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionCookieSigner:
    """Signs and verifies session ids carried in cookies."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Session signing secret must not be empty")
        self._key = secret.encode("utf-8")

    def sign(self, session_id: str) -> str:
        return f"{session_id}.{self._signature(session_id)}"

    def unsign(self, cookie_value: str) -> str | None:
        """Return the session id if the signature is valid, otherwise None."""
        if "." not in cookie_value:
            return None
        session_id, signature = cookie_value.rsplit(".", 1)
        if not session_id:
            return None
        if not hmac.compare_digest(signature, self._signature(session_id)):
            logger.warning("Session cookie signature mismatch")
            return None
        return session_id

    def _signature(self, data: str) -> str:
        return hmac.new(self._key, data.encode("utf-8"), hashlib.sha256).hexdigest()


def get_session(conn: HTTPConnection) -> Session:
    """Return the request's session.

    Raises:
        SessionError: If the session stage is missing or the store failed
    """
    error = getattr(conn.state, "session_error", None)
    if error is not None:
        raise error

    session = getattr(conn.state, "session", None)
    if session is None:
        raise SessionError("Session stage is not installed")
    return session


class SessionMiddleware:
    """Attach a Session to every HTTP request and issue the cookie.

    Sessions are only stored and only get a cookie once something writes to
    them. A secure cookie is never sent over a connection the pipeline does
    not consider https, so the proxy trust stage must run first.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        locks: SessionLocks,
        secret: str,
        cookie_name: str = "anitrack.sid",
        max_age: int = 30 * 24 * 60 * 60,
        secure: bool = False,
        same_site: str = "lax",
        path: str = "/",
    ) -> None:
        self.app = app
        self.store = store
        self.locks = locks
        self.signer = SessionCookieSigner(secret)
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.same_site = same_site
        self.path = path

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        scope.setdefault("state", {})
        request = Request(scope)
        cookie_value = request.cookies.get(self.cookie_name)

        try:
            session = await self._load_session(cookie_value)
        except SessionError as e:
            logger.error(f"Session lookup failed: {e}")
            scope["state"]["session_error"] = e
            await self.app(scope, receive, send)
            return

        scope["state"]["session"] = session
        is_https = scope.get("scheme") == "https"

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                if session.destroyed:
                    if cookie_value:
                        headers.append("Set-Cookie", self._expired_cookie())
                elif session.persisted and session.is_new:
                    if self.secure and not is_https:
                        logger.warning(
                            "Not setting secure session cookie over an insecure "
                            "connection (is the proxy trusted?)"
                        )
                    else:
                        headers.append("Set-Cookie", self._cookie(session.id))
            await send(message)

        await self.app(scope, receive, send_wrapper)

    async def _load_session(self, cookie_value: str | None) -> Session:
        if cookie_value:
            session_id = self.signer.unsign(cookie_value)
            if session_id is not None:
                try:
                    record = await self.store.get(session_id)
                except Exception as e:
                    raise SessionError(f"Session store unavailable: {e}") from e

                if record is not None:
                    return Session(record, self.store, self.locks)

        return Session(SessionRecord(), self.store, self.locks, is_new=True)

    def _cookie(self, session_id: str) -> str:
        flags = f"path={self.path}; Max-Age={self.max_age}; httponly; samesite={self.same_site}"
        if self.secure:
            flags += "; secure"
        return f"{self.cookie_name}={self.signer.sign(session_id)}; {flags}"

    def _expired_cookie(self) -> str:
        flags = (
            f"path={self.path}; Max-Age=0; expires=Thu, 01 Jan 1970 00:00:00 GMT; "
            f"httponly; samesite={self.same_site}"
        )
        if self.secure:
            flags += "; secure"
        return f"{self.cookie_name}=null; {flags}"
