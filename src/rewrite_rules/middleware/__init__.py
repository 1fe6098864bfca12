"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware:
    AuthMiddleware -- session or bearer-token authentication
    SessionMiddleware -- signed cookie sessions (itsdangerous)
"""

from rewrite_rules.middleware.auth import AuthConfig, AuthMiddleware
from rewrite_rules.middleware.protocol import Middleware, Next
from rewrite_rules.middleware.sessions import SessionConfig, SessionMiddleware

__all__ = [
    "AuthConfig",
    "AuthMiddleware",
    "Middleware",
    "Next",
    "SessionConfig",
    "SessionMiddleware",
]
