"""Immutable HTTP request.

Frozen metadata with async body access. The rewrite table result
(matched pattern and recognized query variables) is attached once per
request by the handler through ``with_match()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl

from rewrite_rules._internal.asgi import Receive
from rewrite_rules.http.cookies import parse_cookies

if TYPE_CHECKING:
    from rewrite_rules.rules.matcher import RewriteMatch

_EMPTY: Mapping[str, str] = MappingProxyType({})


def _decode_headers(raw: Any) -> Mapping[str, str]:
    """Lower-case header names; repeated headers keep their first value."""
    headers: dict[str, str] = {}
    for name, value in raw:
        headers.setdefault(name.decode("latin-1").lower(), value.decode("latin-1"))
    return MappingProxyType(headers)


def _decode_query(query_string: str) -> Mapping[str, str]:
    params: dict[str, str] = {}
    for key, value in parse_qsl(query_string, keep_blank_values=True):
        params.setdefault(key, value)
    return MappingProxyType(params)


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``headers`` keys are lower-cased. ``query`` keeps the first value of
    repeated parameters. ``matched_rule`` is the pattern of the rewrite
    rule or route that matched the path, ``query_vars`` the recognized
    query variables extracted for it.
    """

    method: str
    path: str
    query_string: str = ""
    headers: Mapping[str, str] = _EMPTY
    query: Mapping[str, str] = _EMPTY
    cookies: Mapping[str, str] = _EMPTY
    client: tuple[str, int] | None = None
    matched_rule: str | None = None
    query_vars: Mapping[str, str] = _EMPTY
    path_params: Mapping[str, str] = _EMPTY

    _receive: Receive | None = field(default=None, repr=False, compare=False)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def url(self) -> str:
        """The request URI: path plus query string, as the client sent it."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    async def body(self) -> bytes:
        """Read the full request body (cached after the first call)."""
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks: list[bytes] = []
        if self._receive is not None:
            while True:
                message = await self._receive()
                chunk = message.get("body", b"")
                if chunk:
                    chunks.append(chunk)
                if not message.get("more_body", False):
                    break
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def text(self) -> str:
        raw = await self.body()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        import json as json_module

        return json_module.loads(await self.body())

    def with_match(self, match: RewriteMatch) -> Request:
        """Return a copy carrying the rewrite table result for this path."""
        return replace(
            self,
            matched_rule=match.pattern,
            query_vars=MappingProxyType(dict(match.query_vars)),
            path_params=MappingProxyType(dict(match.groups)),
        )

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive | None = None) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = _decode_headers(scope.get("headers", ()))
        query_string = scope.get("query_string", b"").decode("latin-1")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            query_string=query_string,
            headers=headers,
            query=_decode_query(query_string),
            cookies=MappingProxyType(parse_cookies(headers.get("cookie", ""))),
            client=tuple(client) if client else None,
            _receive=receive,
        )
