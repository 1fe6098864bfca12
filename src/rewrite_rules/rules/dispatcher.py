"""Rule dispatcher — what happens once the rewrite table picked a rule.

For a matched pattern the dispatcher runs, in this fixed order:

1. rule lookup (unknown pattern: nothing happens)
2. the rule's access predicate
3. on denial, a 403 outcome for signed-in users or a login redirect for
   anonymous ones; either ends the request
4. the redirect callback, registered as a deferred hook
5. the template override, registered as a deferred hook
6. the controller, unless a redirect was registered

Nothing is rendered or sent here. The request handler runs the deferred
hooks later: the redirect before template selection, the template
override during it. Exceptions from access predicates, redirect callbacks
and controllers propagate to the handler's error pipeline unchanged.
"""

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from typing import Any

from rewrite_rules._internal.invoke import invoke
from rewrite_rules.config import (
    DEFAULT_ACCESS_DENIED_MESSAGE,
    DEFAULT_ACCESS_DENIED_TITLE,
    AppConfig,
)
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Redirect
from rewrite_rules.middleware.auth import is_authenticated
from rewrite_rules.rules.registry import RuleRegistry
from rewrite_rules.rules.rule import Rule
from rewrite_rules.security.audit import emit_security_event
from rewrite_rules.security.urls import build_login_url, sanitize_redirect_url

logger = logging.getLogger("rewrite_rules.rules")


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AccessDenied:
    """Render a failure page. Each field can be overridden in AppConfig."""

    message: str = DEFAULT_ACCESS_DENIED_MESSAGE
    title: str = DEFAULT_ACCESS_DENIED_TITLE
    status: int = 403


@dataclass(frozen=True, slots=True)
class LoginRequired:
    """Send the visitor to the login URL, which carries the original URI."""

    url: str
    status: int = 302


type Denial = AccessDenied | LoginRequired


@dataclass(frozen=True, slots=True)
class DeferredRedirect:
    """Late redirect hook: ``await hook(request)`` gives a 301 ``Redirect``.

    Returns ``None`` when the callback's URL is rejected by
    ``sanitize_redirect_url``; the request then carries on normally.
    """

    callback: Callable[..., Any]
    schemes: Collection[str] = frozenset({"http", "https"})

    async def __call__(self, request: Request) -> Redirect | None:
        target = await invoke(self.callback, request)
        url = sanitize_redirect_url("" if target is None else str(target), schemes=self.schemes)
        if not url:
            logger.warning(
                "Rule %r: redirect callback returned an unusable URL %r",
                request.matched_rule,
                target,
            )
            return None
        return Redirect(url, status=301)


@dataclass(frozen=True, slots=True)
class DeferredTemplate:
    """Late template override hook."""

    name: str

    def resolve(self, locate: Callable[[str], str | None], not_found: str) -> str:
        """The located template, or *not_found* when it doesn't exist."""
        found = locate(self.name)
        if found is None:
            logger.warning("Template override %r not found, using %r", self.name, not_found)
            return not_found
        return found


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What the dispatcher decided for one request.

    Falsy when no rule applies (the app's normal handling takes over).
    ``controller_result`` is whatever the controller returned; anything
    but ``None`` becomes the response and skips template selection.
    """

    rule: Rule | None = None
    denied: Denial | None = None
    deferred_redirect: DeferredRedirect | None = None
    deferred_template: DeferredTemplate | None = None
    controller_result: Any = None

    def __bool__(self) -> bool:
        return self.rule is not None

    @property
    def terminated(self) -> bool:
        return self.denied is not None


NO_MATCH = DispatchResult()


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class Dispatcher:
    """Apply a registry's rules to matched requests.

    Usage::

        dispatcher = Dispatcher(registry, login_url="/account/login")
        result = await dispatcher.dispatch(request.matched_rule, request)
        if result.denied is not None:
            ...
    """

    __slots__ = (
        "_access_denied",
        "_is_authenticated",
        "_login_param",
        "_login_url",
        "_redirect_schemes",
        "_registry",
    )

    def __init__(
        self,
        registry: RuleRegistry,
        *,
        access_denied: AccessDenied | None = None,
        login_url: str = "/login",
        login_redirect_param: str = "redirect_to",
        is_authenticated: Callable[[], bool] = is_authenticated,
        redirect_schemes: Collection[str] = frozenset({"http", "https"}),
    ) -> None:
        self._registry = registry
        self._access_denied = access_denied or AccessDenied()
        self._login_url = login_url
        self._login_param = login_redirect_param
        self._is_authenticated = is_authenticated
        self._redirect_schemes = frozenset(redirect_schemes)

    @classmethod
    def from_config(cls, registry: RuleRegistry, config: AppConfig) -> "Dispatcher":
        return cls(
            registry,
            access_denied=AccessDenied(
                message=config.access_denied_message,
                title=config.access_denied_title,
                status=config.access_denied_status,
            ),
            login_url=config.login_url,
            login_redirect_param=config.login_redirect_param,
            redirect_schemes=config.redirect_schemes,
        )

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    async def dispatch(self, pattern: str | None, request: Request) -> DispatchResult:
        """Run the rule registered for *pattern* against *request*."""
        if pattern is None:
            return NO_MATCH
        index = self._registry.rule_index(pattern)
        if index is None:
            return NO_MATCH
        rule = self._registry.rules[index]

        if not await self._check_access(rule):
            return DispatchResult(rule=rule, denied=self._deny(rule, request))

        deferred_redirect = None
        if rule.redirect is not None:
            deferred_redirect = DeferredRedirect(rule.redirect, self._redirect_schemes)

        deferred_template = None
        if rule.template:
            deferred_template = DeferredTemplate(rule.template)

        controller_result = None
        if deferred_redirect is None and rule.controller is not None:
            controller_result = await rule.controller.run()

        return DispatchResult(
            rule=rule,
            deferred_redirect=deferred_redirect,
            deferred_template=deferred_template,
            controller_result=controller_result,
        )

    async def _check_access(self, rule: Rule) -> bool:
        if rule.access is None:
            return True
        return bool(await invoke(rule.access))

    def _deny(self, rule: Rule, request: Request) -> Denial:
        if self._is_authenticated():
            logger.info("Access denied to %s (rule %r)", request.path, rule.pattern)
            emit_security_event("rewrite.access.denied", request=request)
            return self._access_denied

        emit_security_event("rewrite.access.login_required", request=request)
        return LoginRequired(build_login_url(self._login_url, request.url, self._login_param))
