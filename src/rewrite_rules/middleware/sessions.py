"""Cookie-backed sessions signed with ``itsdangerous``.

Access predicates and controllers run inside the middleware chain, so
``get_session()`` works from both. The auth middleware keeps the signed-in
user id here.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadData, URLSafeTimedSerializer

from rewrite_rules.errors import ConfigurationError
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Response
from rewrite_rules.middleware.protocol import Next

logger = logging.getLogger("rewrite_rules.middleware")

_session_var: ContextVar[dict[str, Any] | None] = ContextVar(
    "rewrite_rules_session", default=None
)


def get_session() -> dict[str, Any]:
    """Return the session dict for the request being handled."""
    if (session := _session_var.get()) is None:
        msg = "get_session() needs SessionMiddleware in the middleware stack."
        raise LookupError(msg)
    return session


def regenerate_session() -> dict[str, Any]:
    """Clear the session in place and return it (prevents fixation)."""
    session = get_session()
    session.clear()
    return session


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Session middleware configuration. Sessions are signed, not encrypted."""

    secret_key: str
    cookie_name: str = "rewrite_session"
    max_age: int = 86400
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionMiddleware:
    """Signed cookie session middleware.

    Usage::

        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    """

    __slots__ = ("_config", "_serializer")

    def __init__(self, config: SessionConfig) -> None:
        if not config.secret_key:
            msg = "SessionConfig.secret_key must not be empty."
            raise ConfigurationError(msg)
        self._config = config
        self._serializer = URLSafeTimedSerializer(config.secret_key, salt="rewrite-rules-session")

    def _load_session(self, request: Request) -> dict[str, Any]:
        raw = request.cookies.get(self._config.cookie_name, "")
        try:
            data = self._serializer.loads(raw, max_age=self._config.max_age) if raw else None
        except BadData:
            logger.debug("Discarding session cookie with a bad signature")
            data = None
        return data if isinstance(data, dict) else {}

    def dumps(self, session: dict[str, Any]) -> str:
        """Serialize *session* to a cookie value (used by tests and tools)."""
        return self._serializer.dumps(session)

    async def __call__(self, request: Request, next: Next) -> Response:
        session = self._load_session(request)
        token = _session_var.set(session)
        try:
            response = await next(request)
        finally:
            _session_var.reset(token)

        cfg = self._config
        return response.with_cookie(
            cfg.cookie_name,
            self.dumps(session),
            max_age=cfg.max_age,
            path=cfg.path,
            secure=cfg.secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )
