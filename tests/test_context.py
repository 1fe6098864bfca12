"""Tests for request-scoped context: the current request, query vars and ``g``."""

import pytest

from rewrite_rules.context import g, get_query_var, get_request, request_var
from rewrite_rules.http.request import Request


class TestRequestContext:
    def test_outside_request(self) -> None:
        with pytest.raises(LookupError):
            get_request()

    def test_query_var(self) -> None:
        from types import MappingProxyType

        request = Request(
            method="GET",
            path="/shop/boots",
            query_vars=MappingProxyType({"product": "boots"}),
        )
        token = request_var.set(request)
        try:
            assert get_request() is request
            assert get_query_var("product") == "boots"
            assert get_query_var("page") is None
            assert get_query_var("page", "1") == "1"
        finally:
            request_var.reset(token)


class TestRequestGlobals:
    def test_set_and_get(self) -> None:
        g._reset()
        g.product = "boots"
        assert g.product == "boots"
        assert "product" in g
        assert g.get("missing", 3) == 3
        g._reset()
        assert "product" not in g

    def test_missing_attribute(self) -> None:
        g._reset()
        with pytest.raises(AttributeError, match="no attribute 'nothing'"):
            _ = g.nothing
