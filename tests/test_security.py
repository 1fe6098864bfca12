"""Tests for redirect URL helpers and security audit events."""

import logging

import pytest

from rewrite_rules.http.request import Request
from rewrite_rules.security import (
    SecurityEvent,
    build_login_url,
    emit_security_event,
    is_safe_url,
    sanitize_redirect_url,
    set_security_event_sink,
)


class TestSanitizeRedirectUrl:
    def test_relative_path_unchanged(self) -> None:
        assert sanitize_redirect_url("/shop/boots?page=2#reviews") == "/shop/boots?page=2#reviews"

    def test_absolute_http(self) -> None:
        assert sanitize_redirect_url("https://example.com/a") == "https://example.com/a"

    def test_spaces_and_quotes_encoded(self) -> None:
        assert sanitize_redirect_url(' /a b"c<d> ') == "/a%20b%22c%3Cd%3E"

    def test_existing_escapes_survive(self) -> None:
        assert sanitize_redirect_url("/search?q=red%20boots") == "/search?q=red%20boots"

    def test_header_injection_stripped(self) -> None:
        assert sanitize_redirect_url("/a\r\nSet-Cookie: x=1") == "/aSet-Cookie:%20x=1"

    def test_non_ascii_encoded(self) -> None:
        assert sanitize_redirect_url("/café") == "/caf%C3%A9"

    def test_disallowed_scheme(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="rewrite_rules.security"):
            assert sanitize_redirect_url("javascript:alert(1)") == ""
        assert "javascript" in caplog.text

    def test_custom_schemes(self) -> None:
        assert sanitize_redirect_url("ftp://files.example.com/a") == ""
        assert (
            sanitize_redirect_url("ftp://files.example.com/a", schemes={"ftp"})
            == "ftp://files.example.com/a"
        )

    def test_malformed_host(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="rewrite_rules.security"):
            assert sanitize_redirect_url("http://[shop/boots") == ""
        assert "malformed" in caplog.text

    def test_empty(self) -> None:
        assert sanitize_redirect_url("") == ""
        assert sanitize_redirect_url("   ") == ""
        assert sanitize_redirect_url("\x00") == ""


class TestBuildLoginUrl:
    def test_appends_return_target(self) -> None:
        assert build_login_url("/login", "/members") == "/login?redirect_to=%2Fmembers"

    def test_existing_query(self) -> None:
        assert build_login_url("/login?lang=en", "/a", "next") == "/login?lang=en&next=%2Fa"


class TestIsSafeUrl:
    @pytest.mark.parametrize("url", ["/", "/dashboard", "/a?b=c"])
    def test_safe(self, url: str) -> None:
        assert is_safe_url(url)

    @pytest.mark.parametrize("url", ["", "dashboard", "//evil.com", "/x?u=http://evil.com"])
    def test_unsafe(self, url: str) -> None:
        assert not is_safe_url(url)


class TestSecurityEvents:
    def test_no_sink_is_fine(self) -> None:
        set_security_event_sink(None)
        emit_security_event("auth.login", user_id="1")

    def test_sink_receives_event(self) -> None:
        captured: list[SecurityEvent] = []
        set_security_event_sink(captured.append)
        try:
            request = Request(method="GET", path="/members", matched_rule=r"^members$")
            emit_security_event("rewrite.access.denied", request=request, details={"a": 1})
        finally:
            set_security_event_sink(None)
        [event] = captured
        assert event.name == "rewrite.access.denied"
        assert event.path == "/members"
        assert event.rule == r"^members$"
        assert event.user_id is None
        assert event.details == {"a": 1}
        assert event.timestamp > 0

    def test_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="rewrite_rules.security"):
            emit_security_event("auth.logout")
        assert "auth.logout" in caplog.text
