"""Exception hierarchy.

Shared across the registry, the rewrite table, the dispatcher and the
request pipeline so every module raises and catches the same types.
"""

from dataclasses import dataclass


class RewriteError(Exception):
    """Base for all rewrite_rules errors."""


class ConfigurationError(RewriteError):
    """Raised when rule or app configuration is invalid.

    Typically raised while the app freezes (bad regex) or, with
    ``strict_rules`` enabled, when a rule is registered without a pattern.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(RewriteError):
    """An error that maps directly to an HTTP status code.

    The ASGI handler catches these and dispatches to the matching
    ``@app.error()`` handler, or renders a default page.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no rewrite rule or route matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """405 — a route matched the path but not the HTTP method."""

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )
