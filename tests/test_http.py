"""Tests for Request, Response, cookies and the ASGI sender."""

import re
from typing import Any

from rewrite_rules.http.cookies import SetCookie, parse_cookies
from rewrite_rules.http.request import Request
from rewrite_rules.http.response import Redirect, Response
from rewrite_rules.routing import Route
from rewrite_rules.rules.matcher import RewriteMatch
from rewrite_rules.server.sender import send_response


def _scope(**overrides: Any) -> dict[str, Any]:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/shop/boots",
        "query_string": b"color=red&color=blue&size=",
        "headers": [
            (b"Host", b"example.com"),
            (b"Cookie", b"theme=dark; rewrite_session=abc"),
            (b"X-Tag", b"first"),
            (b"X-Tag", b"second"),
        ],
        "client": ("10.0.0.1", 5000),
    }
    scope.update(overrides)
    return scope


class TestRequest:
    def test_from_asgi(self) -> None:
        request = Request.from_asgi(_scope())
        assert request.method == "GET"
        assert request.path == "/shop/boots"
        assert request.headers["host"] == "example.com"
        assert request.headers["x-tag"] == "first"
        assert dict(request.query) == {"color": "red", "size": ""}
        assert request.cookies["theme"] == "dark"
        assert request.client == ("10.0.0.1", 5000)
        assert request.matched_rule is None

    def test_url_includes_query_string(self) -> None:
        assert Request.from_asgi(_scope()).url == "/shop/boots?color=red&color=blue&size="
        assert Request.from_asgi(_scope(query_string=b"")).url == "/shop/boots"

    def test_with_match(self) -> None:
        request = Request.from_asgi(_scope())
        match = RewriteMatch(
            pattern=r"^shop/(?P<slug>[^/]+)$",
            source="route",
            target=Route(r"^shop/(?P<slug>[^/]+)$", lambda: None, frozenset({"GET"})),
            query_vars={"product": "boots"},
            groups={"slug": "boots"},
        )
        matched = request.with_match(match)
        assert matched.matched_rule == r"^shop/(?P<slug>[^/]+)$"
        assert dict(matched.query_vars) == {"product": "boots"}
        assert dict(matched.path_params) == {"slug": "boots"}
        assert request.matched_rule is None

    async def test_body_and_json(self) -> None:
        messages = [
            {"type": "http.request", "body": b'{"a": ', "more_body": True},
            {"type": "http.request", "body": b"1}", "more_body": False},
        ]

        async def receive() -> dict[str, Any]:
            return messages.pop(0)

        request = Request.from_asgi(_scope(method="POST"), receive)
        assert await request.json() == {"a": 1}
        assert await request.text() == '{"a": 1}'

    async def test_body_without_receive(self) -> None:
        assert await Request(method="GET", path="/").body() == b""


class TestResponse:
    def test_defaults(self) -> None:
        response = Response("hi")
        assert response.status == 200
        assert response.content_type == "text/html; charset=utf-8"
        assert response.body_bytes == b"hi"
        assert response.text == "hi"

    def test_with_methods_return_copies(self) -> None:
        base = Response("x")
        changed = base.with_status(201).with_header("X-A", "1").with_headers({"X-B": "2"})
        assert base.status == 200
        assert base.headers == ()
        assert changed.status == 201
        assert changed.header("x-a") == "1"
        assert changed.header("X-B") == "2"
        assert changed.header("missing") is None

    def test_with_cookie(self) -> None:
        response = Response().with_cookie("sid", "v", max_age=60)
        [cookie] = response.cookies
        assert cookie.to_header_value() == "sid=v; Max-Age=60; Path=/; HttpOnly; SameSite=lax"

    def test_redirect(self) -> None:
        response = Redirect("/new", status=301).to_response()
        assert response.status == 301
        assert response.location == "/new"
        assert Redirect("/x").status == 302


class TestCookies:
    def test_parse(self) -> None:
        assert parse_cookies("a=1; b = 2 ;junk; c=x=y") == {"a": "1", "b": "2", "c": "x=y"}

    def test_parse_empty(self) -> None:
        assert parse_cookies("") == {}

    def test_set_cookie_minimal(self) -> None:
        cookie = SetCookie("a", "1", path="", httponly=False, samesite="")
        assert cookie.to_header_value() == "a=1"


class TestSender:
    async def test_messages(self) -> None:
        sent: list[dict[str, Any]] = []

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        response = Response("héllo").with_header("X-Rule", "shop").with_cookie("s", "1")
        await send_response(response, send)
        start, body = sent
        assert start["status"] == 200
        headers = dict(start["headers"])
        assert headers[b"content-type"] == b"text/html; charset=utf-8"
        assert headers[b"x-rule"] == b"shop"
        assert headers[b"content-length"] == b"6"
        assert re.match(rb"s=1; ", headers[b"set-cookie"])
        assert body == {"type": "http.response.body", "body": "héllo".encode()}

    async def test_no_body_for_204(self) -> None:
        sent: list[dict[str, Any]] = []

        async def send(message: dict[str, Any]) -> None:
            sent.append(message)

        await send_response(Response("ignored", status=204), send)
        assert sent[1]["body"] == b""
        assert dict(sent[0]["headers"])[b"content-length"] == b"0"
