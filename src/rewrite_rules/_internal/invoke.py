"""Invoke helpers — call sync or async callables uniformly.

Access predicates, redirect callbacks, controllers and route handlers can
all be ``def`` or ``async def``. This module keeps the sync/async check in
exactly one place.

Usage::

    from rewrite_rules._internal.invoke import invoke

    allowed = await invoke(rule.access)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
