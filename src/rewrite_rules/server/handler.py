"""ASGI handler — translates ASGI scope/messages to rewrite_rules types.

The only component that touches raw ASGI directly. Converts the scope to
a typed Request, matches it against the rewrite table, runs middleware,
dispatches to a rule or a route, and sends the Response back through
ASGI send().
"""

import inspect
import logging
from collections.abc import Callable
from contextvars import Token
from functools import partial
from typing import Any

from kida import Environment

from rewrite_rules._internal.asgi import Receive, Scope, Send
from rewrite_rules._internal.invoke import invoke
from rewrite_rules.config import AppConfig
from rewrite_rules.context import g, request_var
from rewrite_rules.errors import ConfigurationError, HTTPError, NotFound
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Response
from rewrite_rules.middleware.protocol import Next
from rewrite_rules.routing import Route
from rewrite_rules.rules.dispatcher import AccessDenied, Dispatcher, DispatchResult, LoginRequired
from rewrite_rules.rules.matcher import RewriteMatch, RewriteTable
from rewrite_rules.server.errors import (
    access_denied_response,
    default_page,
    handle_http_error,
    handle_internal_error,
)
from rewrite_rules.server.negotiation import negotiate
from rewrite_rules.server.sender import send_response
from rewrite_rules.templating.integration import locate_template, template_dirs

logger = logging.getLogger("rewrite_rules.server")


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    table: RewriteTable,
    dispatcher: Dispatcher,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: dict[int | type, Callable[..., Any]],
    kida_env: Environment | None,
    config: AppConfig,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)
    token: Token[Request] = request_var.set(request)

    try:
        match = table.match(request.method, request.path, request.query)
        if match is not None:
            request = request.with_match(match)
            request_var.set(request)

        async def dispatch(req: Request) -> Response:
            if match is None:
                raise NotFound
            if isinstance(match.target, Route):
                return await _invoke_route(match, req, kida_env=kida_env)
            return await _dispatch_rule(match, req, dispatcher, kida_env, config)

        # Wrap middleware around the dispatch
        handler = dispatch
        for mw in reversed(middleware):
            outer = handler
            mw_ref = mw

            async def make_next(req: Request, _mw: Any = mw_ref, _next: Next = outer) -> Response:
                return await _mw(req, _next)

            handler = make_next

        response = await handler(request)

    except HTTPError as exc:
        response = await handle_http_error(exc, request, error_handlers, kida_env, config)
    except Exception as exc:
        response = await handle_internal_error(exc, request, error_handlers, kida_env, config)
    finally:
        g._reset()
        request_var.reset(token)

    await send_response(response, send)


async def _dispatch_rule(
    match: RewriteMatch,
    request: Request,
    dispatcher: Dispatcher,
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    """Run the dispatcher for a matched rule and turn its decision into a response."""
    result = await dispatcher.dispatch(match.pattern, request)
    if not result:
        # Matched by the table but unknown to the registry.
        raise NotFound
    logger.debug("%s %s handled by rule %r", request.method, request.path, result.rule.pattern)

    denied = result.denied
    if isinstance(denied, AccessDenied):
        return access_denied_response(denied, request, kida_env, config)
    if isinstance(denied, LoginRequired):
        return Response(body="", status=denied.status).with_header("Location", denied.url)

    if result.deferred_redirect is not None:
        redirect = await result.deferred_redirect(request)
        if redirect is not None:
            return redirect.to_response()

    if result.controller_result is not None:
        return negotiate(result.controller_result, kida_env=kida_env)

    return _render_rule_template(result, request, kida_env, config)


def _render_rule_template(
    result: DispatchResult,
    request: Request,
    kida_env: Environment | None,
    config: AppConfig,
) -> Response:
    """Template selection: the rule's override if it exists, else the default template."""
    if kida_env is None:
        msg = "Rendering a rewrite rule requires a kida environment."
        raise ConfigurationError(msg)

    locate = partial(locate_template, search_dirs=template_dirs(config))
    status = 200
    if result.deferred_template is not None:
        name = result.deferred_template.resolve(locate, config.not_found_template)
        if locate(result.deferred_template.name) is None:
            status = 404
            if locate(name) is None:
                body = default_page(404, "Not Found", "The requested template was not found.")
                return Response(body=body, status=404)
    else:
        name = config.default_template
        if locate(name) is None:
            msg = f"Default template {name!r} not found in {config.template_dir}"
            raise ConfigurationError(msg)

    context = {
        "request": request,
        "query_vars": dict(request.query_vars),
        "g": g,
        "rule": result.rule,
    }
    body = kida_env.get_template(name).render(context)
    return Response(body=body, status=status)


async def _invoke_route(
    match: RewriteMatch,
    request: Request,
    *,
    kida_env: Environment | None = None,
) -> Response:
    """Call the matched route handler, converting path params and return value."""
    handler = match.target.handler
    kwargs = _build_handler_kwargs(handler, request, match.groups)
    result = await invoke(handler, **kwargs)
    return negotiate(result, kida_env=kida_env)


def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    path_params: Any,
) -> dict[str, Any]:
    """Inspect handler signature and build kwargs from request + named groups."""
    sig = inspect.signature(handler, eval_str=True)
    kwargs: dict[str, Any] = {}

    for name, param in sig.parameters.items():
        if name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name in path_params:
            value = path_params[name]
            if param.annotation is not inspect.Parameter.empty:
                try:
                    kwargs[name] = param.annotation(value)
                except (ValueError, TypeError):
                    kwargs[name] = value
            else:
                kwargs[name] = value

    return kwargs
