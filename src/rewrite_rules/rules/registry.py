"""Rule registry — ordered rewrite rules plus recognized query variables.

One registry is created per ``App`` and handed to the dispatcher and the
rewrite table. It is filled during configuration and only read while
requests are served.
"""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from rewrite_rules.errors import ConfigurationError
from rewrite_rules.rules.rule import DEFAULT_QUERY, Position, Rule, to_handler

logger = logging.getLogger("rewrite_rules.rules")

# Keys accepted by add_rules(); "regex" and "after" are the short names
# used in rule files.
_ENTRY_ALIASES = {
    "regex": "pattern",
    "after": "position",
}
_ENTRY_KEYS = frozenset({"pattern", "query", "controller", "template", "redirect", "access", "position"})


def _callable_or_none(kind: str, pattern: str, value: Any) -> Callable[..., Any] | None:
    if value is None or value == "":
        return None
    if callable(value):
        return value
    logger.warning("Rule %r: ignoring non-callable %s %r", pattern, kind, value)
    return None


class RuleRegistry:
    """Ordered collection of rewrite rules and a set of query variable names.

    Usage::

        registry = RuleRegistry()
        registry.add_rule(r"^shop/([^/]+)/?$", query="index.php?product=$matches[1]")
        registry.add_query_vars("product")

        registry.rule_index(r"^shop/([^/]+)/?$")  # 0
        registry.rule_index("^nope$")              # None
    """

    __slots__ = ("_query_vars", "_rules", "strict")

    def __init__(self, *, strict: bool = False) -> None:
        self._rules: list[Rule] = []
        # dict as an insertion-ordered set
        self._query_vars: dict[str, None] = {}
        self.strict = strict

    # ---- registration ----

    def add_rule(
        self,
        pattern: str,
        *,
        query: str | None = None,
        controller: Any = None,
        template: str | None = None,
        redirect: Callable[..., Any] | None = None,
        access: Callable[[], Any] | None = None,
        position: Position | str = Position.TOP,
    ) -> None:
        """Register a rewrite rule.

        A rule without a pattern is dropped with a warning (or rejected with
        ``ConfigurationError`` when the registry is strict). Duplicate
        patterns are kept; lookups return the first one.
        """
        if not pattern:
            if self.strict:
                msg = "Rewrite rule requires a non-empty pattern."
                raise ConfigurationError(msg)
            logger.warning("Ignoring rewrite rule without a pattern")
            return

        try:
            position = Position(position or Position.TOP)
        except ValueError:
            msg = f"Rule {pattern!r}: position must be 'top' or 'bottom', got {position!r}"
            raise ConfigurationError(msg) from None

        rule = Rule(
            pattern=pattern,
            query=query or DEFAULT_QUERY,
            controller=to_handler(controller),
            template=template or None,
            redirect=_callable_or_none("redirect", pattern, redirect),
            access=_callable_or_none("access", pattern, access),
            position=position,
        )
        self._rules.append(rule)
        logger.debug("Registered rewrite rule %r (%s)", pattern, position)

    def add_rules(self, entries: Iterable[Mapping[str, Any]]) -> None:
        """Register several rules from mappings.

        Accepts the keyword names of ``add_rule`` as well as ``regex``
        (for ``pattern``) and ``after`` (for ``position``).
        """
        for entry in entries:
            kwargs: dict[str, Any] = {}
            for key, value in entry.items():
                name = _ENTRY_ALIASES.get(key, key)
                if name not in _ENTRY_KEYS:
                    msg = f"Unknown rewrite rule option {key!r}"
                    raise ConfigurationError(msg)
                kwargs[name] = value
            pattern = kwargs.pop("pattern", "")
            self.add_rule(pattern, **kwargs)

    def add_query_vars(self, names: str | Iterable[str]) -> None:
        """Add recognized query variable names; duplicates are merged."""
        if isinstance(names, str):
            names = (names,)
        for name in names:
            if name:
                self._query_vars.setdefault(name, None)

    # ---- queries ----

    @property
    def rules(self) -> tuple[Rule, ...]:
        """All rules in registration order."""
        return tuple(self._rules)

    @property
    def query_vars(self) -> tuple[str, ...]:
        """Recognized query variable names, first-seen order."""
        return tuple(self._query_vars)

    def rule_index(self, pattern: str) -> int | None:
        """Index of the first rule registered with *pattern*, or ``None``."""
        for index, rule in enumerate(self._rules):
            if rule.pattern == pattern:
                return index
        return None

    def get_rule(self, pattern: str) -> Rule | None:
        index = self.rule_index(pattern)
        if index is None:
            return None
        return self._rules[index]

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(tuple(self._rules))

    def __repr__(self) -> str:
        return f"RuleRegistry(rules={len(self._rules)}, query_vars={list(self._query_vars)})"
