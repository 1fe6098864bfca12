"""Failure pages and the error pipeline.

Maps ``HTTPError`` exceptions, unexpected failures, and the dispatcher's
access-denied outcome to Response objects. A page template from the
template directory is used when present (``404.html``, ``403.html``),
otherwise a minimal built-in page.
"""

import html
import inspect
import logging
import traceback
from collections.abc import Callable
from typing import Any

from kida import Environment

from rewrite_rules.config import AppConfig
from rewrite_rules.errors import HTTPError
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Response
from rewrite_rules.rules.dispatcher import AccessDenied
from rewrite_rules.server.negotiation import negotiate
from rewrite_rules.templating.integration import locate_template, template_dirs

logger = logging.getLogger("rewrite_rules.server")


def default_page(status: int, title: str, message: str) -> str:
    """Minimal HTML failure page."""
    title = html.escape(title)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="en"><head><meta charset="utf-8"><title>{title}</title></head>\n'
        f'<body class="error-page" data-status="{status}">'
        f"<h1>{title}</h1><p>{html.escape(message)}</p></body></html>\n"
    )


def render_page(
    template_name: str,
    *,
    status: int,
    title: str,
    message: str,
    request: Request,
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    """Render a failure page from *template_name*, or the built-in page."""
    if kida_env is not None and locate_template(template_name, template_dirs(config)):
        body = kida_env.get_template(template_name).render(
            {"status": status, "title": title, "message": message, "request": request}
        )
    else:
        body = default_page(status, title, message)
    return Response(body=body, status=status)


def access_denied_response(
    denied: AccessDenied,
    request: Request,
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    return render_page(
        config.access_denied_template,
        status=denied.status,
        title=denied.title,
        message=denied.message,
        request=request,
        kida_env=kida_env,
        config=config,
    )


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    kida_env: Environment | None,
) -> Response:
    """Invoke a user-registered error handler.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    """
    arity = len(inspect.signature(handler).parameters)
    args = (request, exc)[:arity]
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return negotiate(result, kida_env=kida_env)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    logger.debug("%d %s %s — %s", exc.status, request.method, request.path, exc.detail)

    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, kida_env)
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    template = config.not_found_template if exc.status == 404 else f"{exc.status}.html"
    title = exc.detail or f"Error {exc.status}"
    response = render_page(
        template,
        status=exc.status,
        title=title,
        message=exc.detail,
        request=request,
        kida_env=kida_env,
        config=config,
    )
    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s (rule %r)", request.method, request.path, request.matched_rule)

    handler = error_handlers.get(type(exc)) or error_handlers.get(500)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, kida_env)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if config.debug:
        detail = "".join(traceback.format_exception(exc))
        body = f"<!DOCTYPE html>\n<pre>{html.escape(detail)}</pre>\n"
        return Response(body=body, status=500)
    return Response(body=default_page(500, "Internal Server Error", ""), status=500)
