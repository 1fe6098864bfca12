"""Compiled rewrite table — regex matching and query-variable expansion.

The table is built once when the app freezes, in this order:

1. rules registered with ``Position.TOP`` (registration order)
2. the app's own routes (``@app.route``)
3. rules registered with ``Position.BOTTOM`` (registration order)

The first entry whose regex matches the request path wins. The path is
matched without its surrounding slashes, anchored at the start.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from rewrite_rules.errors import ConfigurationError, MethodNotAllowed
from rewrite_rules.routing import Route
from rewrite_rules.rules.registry import RuleRegistry
from rewrite_rules.rules.rule import Position, Rule

# $matches[1], $matches[slug]
_MATCH_REF = re.compile(r"\$matches\[(\w+)\]")


def _group(match: re.Match[str], ref: str) -> str:
    key: int | str = int(ref) if ref.isdigit() else ref
    try:
        value = match.group(key)
    except IndexError:
        return ""
    return value or ""


def expand_query(template: str, match: re.Match[str]) -> dict[str, str]:
    """Turn a query template into variables using the groups of *match*.

    The part before ``?`` names the front controller and is ignored::

        expand_query("index.php?product=$matches[1]&view=full", m)
        # {"product": "boots", "view": "full"}
    """
    _, _, query = template.partition("?")
    variables: dict[str, str] = {}
    for pair in query.split("&"):
        if not pair:
            continue
        name, _, value = pair.partition("=")
        if name:
            variables[name] = _MATCH_REF.sub(lambda ref: _group(match, ref.group(1)), value)
    return variables


@dataclass(frozen=True, slots=True)
class RewriteEntry:
    """One compiled row of the rewrite table."""

    pattern: str
    regex: re.Pattern[str]
    source: Literal["rule", "route"]
    target: Rule | Route


@dataclass(frozen=True, slots=True)
class RewriteMatch:
    """Result of a successful path match."""

    pattern: str
    source: Literal["rule", "route"]
    target: Rule | Route
    query_vars: Mapping[str, str]
    groups: Mapping[str, str]

    @property
    def is_rule(self) -> bool:
        return self.source == "rule"


def _compile(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        msg = f"Invalid rewrite pattern {pattern!r}: {exc}"
        raise ConfigurationError(msg) from None


class RewriteTable:
    """Immutable, ordered list of compiled rewrite rules and routes.

    Usage::

        table = RewriteTable.compile(registry, routes)
        match = table.match("GET", "/shop/boots")
        if match is not None and match.is_rule:
            rule = match.target
    """

    __slots__ = ("_entries", "_recognized")

    def __init__(self, entries: Iterable[RewriteEntry], recognized: Iterable[str] = ()) -> None:
        self._entries = tuple(entries)
        self._recognized = frozenset(recognized)

    @classmethod
    def compile(cls, registry: RuleRegistry, routes: Iterable[Route] = ()) -> RewriteTable:
        """Build the table from a registry and the app's routes.

        Raises ``ConfigurationError`` for a pattern that is not a valid regex.
        """

        def rule_entries(position: Position) -> list[RewriteEntry]:
            return [
                RewriteEntry(rule.pattern, _compile(rule.pattern), "rule", rule)
                for rule in registry.rules
                if rule.position is position
            ]

        route_entries = [
            RewriteEntry(route.pattern, _compile(route.pattern), "route", route) for route in routes
        ]
        entries = [*rule_entries(Position.TOP), *route_entries, *rule_entries(Position.BOTTOM)]
        return cls(entries, registry.query_vars)

    @property
    def entries(self) -> tuple[RewriteEntry, ...]:
        return self._entries

    @property
    def recognized_query_vars(self) -> frozenset[str]:
        return self._recognized

    def match(
        self,
        method: str,
        path: str,
        query: Mapping[str, str] | None = None,
    ) -> RewriteMatch | None:
        """Match a request against the table.

        Rules match any method. A route whose regex matches but whose
        methods don't is skipped; if nothing else matches,
        ``MethodNotAllowed`` is raised. Returns ``None`` when nothing
        matches at all.
        """
        subject = path.strip("/")
        allowed: set[str] = set()

        for entry in self._entries:
            m = entry.regex.match(subject)
            if m is None:
                continue
            if isinstance(entry.target, Route) and method not in entry.target.methods:
                allowed.update(entry.target.methods)
                continue
            return RewriteMatch(
                pattern=entry.pattern,
                source=entry.source,
                target=entry.target,
                query_vars=self._query_vars(entry, m, query or {}),
                groups={k: v for k, v in m.groupdict().items() if v is not None},
            )

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        return None

    def _query_vars(
        self,
        entry: RewriteEntry,
        m: re.Match[str],
        query: Mapping[str, str],
    ) -> dict[str, Any]:
        """Recognized variables: query-string values override expanded ones."""
        expanded = expand_query(entry.target.query, m) if isinstance(entry.target, Rule) else {}
        variables: dict[str, Any] = {}
        for name in self._recognized:
            if name in query:
                variables[name] = query[name]
            elif name in expanded:
                variables[name] = expanded[name]
        return variables

    def __len__(self) -> int:
        return len(self._entries)
