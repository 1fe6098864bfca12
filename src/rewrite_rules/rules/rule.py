"""Rule record and the controller handler variant.

A ``Rule`` is created once at configuration time and never mutated.
Controllers are tagged when the rule is registered:

- a class becomes ``InstantiableType`` (constructed once per request)
- any other callable becomes ``Invocable`` (called once per request)
- a ``"package.module:Name"`` string becomes ``InstantiableType`` or
  ``Invocable`` depending on what it imports to, resolved on first use
"""

import importlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from rewrite_rules._internal.invoke import invoke

logger = logging.getLogger("rewrite_rules.rules")

DEFAULT_QUERY = "index.php"


class Position(StrEnum):
    """Where a rule goes relative to the app's own routes."""

    TOP = "top"
    BOTTOM = "bottom"


@dataclass(frozen=True, slots=True)
class Invocable:
    """A controller called with no arguments."""

    func: Callable[[], Any]

    async def run(self) -> Any:
        return await invoke(self.func)


@dataclass(frozen=True, slots=True)
class InstantiableType:
    """A controller constructed once; construction is its side effect.

    *target* is a class, or an import string resolved on first use.
    """

    target: type | str
    _resolved: list[Any] = field(default_factory=list, repr=False, compare=False)

    def resolve(self) -> Any:
        if isinstance(self.target, type):
            return self.target
        if not self._resolved:
            self._resolved.append(import_string(self.target))
        return self._resolved[0]

    async def run(self) -> Any:
        target = self.resolve()
        if isinstance(target, type):
            target()
            return None
        # The import string named a function, not a class.
        return await invoke(target)


type Handler = Invocable | InstantiableType


def import_string(path: str) -> Any:
    """Import ``"package.module:Name"`` (or ``"package.module.Name"``)."""
    if ":" in path:
        module_path, _, attr_name = path.partition(":")
    else:
        module_path, _, attr_name = path.rpartition(".")
    if not module_path or not attr_name:
        msg = f"Cannot import {path!r}: expected 'package.module:Name'"
        raise ImportError(msg)
    module = importlib.import_module(module_path)
    return getattr(module, attr_name)


def to_handler(value: Any) -> Handler | None:
    """Tag a controller value, or return ``None`` for nothing usable."""
    if value is None or value == "":
        return None
    if isinstance(value, Invocable | InstantiableType):
        return value
    if isinstance(value, type):
        return InstantiableType(value)
    if callable(value):
        return Invocable(value)
    if isinstance(value, str) and (":" in value or "." in value):
        return InstantiableType(value)
    logger.warning("Ignoring controller %r: not callable, a class, or an import path", value)
    return None


@dataclass(frozen=True, slots=True)
class Rule:
    """One rewrite rule.

    ``pattern`` is matched against the request path (without its leading
    slash). ``query`` maps the match groups to query variables, e.g.
    ``"index.php?product=$matches[1]&page=$matches[2]"``.
    """

    pattern: str
    query: str = DEFAULT_QUERY
    controller: Handler | None = None
    template: str | None = None
    redirect: Callable[..., Any] | None = None
    access: Callable[[], Any] | None = None
    position: Position = Position.TOP
