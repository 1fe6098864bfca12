"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the current ``Request``, already carrying the matched
  rule and its query variables.
- ``g``: a mutable namespace scoped to the current request. Controllers
  use it to hand data to the template that renders the request.

Both are set by the handler pipeline and reset after each request.
"""

from contextvars import ContextVar
from typing import Any

from rewrite_rules.http.request import Request

request_var: ContextVar[Request] = ContextVar("rewrite_rules_request")


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


def get_query_var(name: str, default: str | None = None) -> str | None:
    """Return a recognized query variable of the current request."""
    return get_request().query_vars.get(name, default)


_g_data: ContextVar[dict[str, Any] | None] = ContextVar("rewrite_rules_g", default=None)


class _RequestGlobals:
    """Attribute-style access to a dict that lives for one request.

    Usage::

        from rewrite_rules.context import g

        def show_product():           # a rule controller
            g.product = catalog.find(get_query_var("product"))

        # template: {{ g.product.title }}
    """

    __slots__ = ()

    @staticmethod
    def _data() -> dict[str, Any]:
        data = _g_data.get()
        if data is None:
            data = {}
            _g_data.set(data)
        return data

    @staticmethod
    def _reset() -> None:
        _g_data.set(None)

    def __getattr__(self, name: str) -> Any:
        if name in (data := self._data()):
            return data[name]
        msg = f"'g' has no attribute {name!r} for this request"
        raise AttributeError(msg)

    def __setattr__(self, name: str, value: Any) -> None:
        self._data()[name] = value

    def __delattr__(self, name: str) -> None:
        self._data().pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._data()

    def get(self, name: str, default: Any = None) -> Any:
        return self._data().get(name, default)

    def __repr__(self) -> str:
        return f"<g {self._data()!r}>"


g = _RequestGlobals()
"""Request-scoped namespace. Stores arbitrary per-request data."""
