"""Rewrite rules — registry, compiled rewrite table, and dispatcher.

Rules are registered during setup, compiled into a ``RewriteTable``
together with the app's own routes when the app freezes, and applied to
matched requests by the ``Dispatcher``.
"""

from rewrite_rules.rules.dispatcher import (
    NO_MATCH,
    AccessDenied,
    DeferredRedirect,
    DeferredTemplate,
    Dispatcher,
    DispatchResult,
    LoginRequired,
)
from rewrite_rules.rules.matcher import RewriteMatch, RewriteTable, expand_query
from rewrite_rules.rules.registry import RuleRegistry
from rewrite_rules.rules.rule import InstantiableType, Invocable, Position, Rule

__all__ = [
    "NO_MATCH",
    "AccessDenied",
    "DeferredRedirect",
    "DeferredTemplate",
    "DispatchResult",
    "Dispatcher",
    "InstantiableType",
    "Invocable",
    "LoginRequired",
    "Position",
    "RewriteMatch",
    "RewriteTable",
    "Rule",
    "RuleRegistry",
    "expand_query",
]
