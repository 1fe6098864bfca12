"""Authentication middleware — session or bearer-token auth.

Resolves the current user once per request and stores it in a
ContextVar. The dispatcher asks ``is_authenticated()`` when a rule's
access predicate refuses a request: signed-in users get the 403 page,
anonymous visitors are sent to the login URL.

Usage::

    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="...")))
    app.add_middleware(AuthMiddleware(AuthConfig(load_user=users.get)))

    # In an access predicate:
    def members_only() -> bool:
        return get_user().is_authenticated
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, runtime_checkable

from rewrite_rules._internal.invoke import invoke
from rewrite_rules.errors import ConfigurationError
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Response
from rewrite_rules.middleware.protocol import Next
from rewrite_rules.security.audit import emit_security_event


@runtime_checkable
class User(Protocol):
    """Any object with ``id`` and ``is_authenticated``."""

    @property
    def id(self) -> str: ...

    @property
    def is_authenticated(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class AnonymousUser:
    """Returned by ``get_user()`` when nobody is signed in."""

    id: str = ""
    is_authenticated: bool = False


_ANONYMOUS = AnonymousUser()

_user_var: ContextVar[User] = ContextVar("rewrite_rules_user")
_active_config: ContextVar[AuthConfig | None] = ContextVar(
    "rewrite_rules_auth_config", default=None
)


def get_user() -> User:
    """Return the current user (or ``AnonymousUser``).

    Raises ``LookupError`` outside a request with ``AuthMiddleware``.
    """
    try:
        return _user_var.get()
    except LookupError:
        msg = "No auth context. Ensure AuthMiddleware is added to the app before accessing the user."
        raise LookupError(msg) from None


def current_user() -> User:
    """Template-friendly ``get_user()``: never raises."""
    return _user_var.get(_ANONYMOUS)


def is_authenticated() -> bool:
    """Whether the current request belongs to a signed-in user.

    Without ``AuthMiddleware`` every request is anonymous.
    """
    return bool(current_user().is_authenticated)


def login(user: User) -> None:
    """Sign *user* in: rotate the session and store the user id."""
    from rewrite_rules.middleware.sessions import regenerate_session

    config = _active_config.get()
    if config is None:
        msg = "login() requires AuthMiddleware to be active."
        raise LookupError(msg)
    session = regenerate_session()
    session[config.session_key] = user.id
    _user_var.set(user)
    emit_security_event("auth.login", user_id=user.id)


def logout() -> None:
    """Sign the current user out and discard the session."""
    from rewrite_rules.middleware.sessions import regenerate_session

    if _active_config.get() is None:
        msg = "logout() requires AuthMiddleware to be active."
        raise LookupError(msg)
    regenerate_session()
    _user_var.set(_ANONYMOUS)
    emit_security_event("auth.logout")


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Authentication middleware configuration.

    Attributes:
        load_user: Loads a user by the id stored in the session
            (sync or async).
        verify_token: Loads a user from a bearer token (sync or async).
        session_key: Session dict key holding the user id.
        token_header: Header carrying the token.
        token_scheme: Expected scheme prefix.
        exclude_paths: Paths that are always anonymous.
    """

    load_user: Callable[[str], User | None | Awaitable[User | None]] | None = None
    verify_token: Callable[[str], User | None | Awaitable[User | None]] | None = None
    session_key: str = "user_id"
    token_header: str = "authorization"
    token_scheme: str = "Bearer"
    exclude_paths: frozenset[str] = frozenset()


class AuthMiddleware:
    """Resolve the user from a bearer token first, then from the session."""

    __slots__ = ("_config",)

    template_globals: ClassVar[dict[str, Any]] = {"current_user": current_user}

    def __init__(self, config: AuthConfig) -> None:
        if config.load_user is None and config.verify_token is None:
            msg = (
                "AuthConfig requires at least one of 'load_user' (session auth) "
                "or 'verify_token' (token auth) to be set."
            )
            raise ConfigurationError(msg)
        self._config = config

    def _extract_token(self, request: Request) -> str | None:
        header = request.headers.get(self._config.token_header.lower())
        prefix = f"{self._config.token_scheme} "
        if not header or not header.startswith(prefix):
            return None
        return header[len(prefix) :].strip() or None

    async def _authenticate(self, request: Request) -> User | None:
        cfg = self._config
        token = self._extract_token(request)
        if token is not None and cfg.verify_token is not None:
            user = await invoke(cfg.verify_token, token)
            if user is not None:
                return user
            emit_security_event("auth.token.invalid", request=request)

        if cfg.load_user is None:
            return None

        from rewrite_rules.middleware.sessions import get_session

        try:
            session = get_session()
        except LookupError:
            msg = (
                "AuthMiddleware session auth requires SessionMiddleware. "
                "Add SessionMiddleware before AuthMiddleware."
            )
            raise ConfigurationError(msg) from None

        user_id = session.get(cfg.session_key)
        if not user_id:
            return None
        return await invoke(cfg.load_user, str(user_id))

    async def __call__(self, request: Request, next: Next) -> Response:
        user: User | None = None
        if request.path not in self._config.exclude_paths:
            user = await self._authenticate(request)

        user_token = _user_var.set(user if user is not None else _ANONYMOUS)
        config_token = _active_config.set(self._config)
        try:
            return await next(request)
        finally:
            _user_var.reset(user_token)
            _active_config.reset(config_token)
