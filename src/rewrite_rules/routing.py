"""The app's own routes.

Routes share the rewrite table with rewrite rules: they are regex
patterns matched against the path, but they dispatch straight to a
handler whose return value becomes the response.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Named groups in *pattern* are passed to the handler as keyword
    arguments::

        Route(r"^orders/(?P<order_id>\\d+)$", show_order, frozenset({"GET"}))
    """

    pattern: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None
