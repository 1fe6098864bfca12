"""Tests for sessions and auth middleware, and how they drive access denial."""

from dataclasses import dataclass

import pytest

from rewrite_rules.app import App
from rewrite_rules.config import AppConfig
from rewrite_rules.context import g
from rewrite_rules.errors import ConfigurationError
from rewrite_rules.middleware.auth import (
    AnonymousUser,
    AuthConfig,
    AuthMiddleware,
    current_user,
    get_user,
    is_authenticated,
    login,
    logout,
)
from rewrite_rules.middleware.sessions import (
    SessionConfig,
    SessionMiddleware,
    get_session,
)
from rewrite_rules.security.audit import SecurityEvent, set_security_event_sink
from rewrite_rules.testing import TestClient


@dataclass(frozen=True, slots=True)
class FakeUser:
    id: str
    name: str
    is_authenticated: bool = True


_USERS = {"1": FakeUser(id="1", name="alice"), "2": FakeUser(id="2", name="bob")}
_TOKENS = {"tok_bob": _USERS["2"]}


async def _load_user(user_id: str) -> FakeUser | None:
    return _USERS.get(user_id)


def _verify_token(token: str) -> FakeUser | None:
    return _TOKENS.get(token)


def _app(tmp_path, **auth_kwargs) -> App:
    (tmp_path / "index.html").write_text("members: {{ current_user().id }}")
    app = App(AppConfig(template_dir=tmp_path))
    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))
    app.add_middleware(AuthMiddleware(AuthConfig(**(auth_kwargs or {"load_user": _load_user}))))

    @app.route(r"^login/(?P<user_id>\d+)$", methods=["POST"])
    def do_login(user_id: str):
        login(_USERS[user_id])
        return "signed in"

    @app.route(r"^logout$", methods=["POST"])
    def do_logout():
        logout()
        return "signed out"

    @app.route(r"^whoami$")
    def whoami():
        return get_user().id or "anonymous"

    app.add_rule(r"^members/?$", access=is_authenticated)
    return app


class TestConfiguration:
    def test_requires_a_loader(self) -> None:
        with pytest.raises(ConfigurationError, match="load_user"):
            AuthMiddleware(AuthConfig())

    def test_session_requires_secret(self) -> None:
        with pytest.raises(ConfigurationError, match="secret_key"):
            SessionMiddleware(SessionConfig(secret_key=""))

    def test_helpers_outside_request(self) -> None:
        with pytest.raises(LookupError):
            get_user()
        with pytest.raises(LookupError):
            get_session()
        assert current_user() == AnonymousUser()
        assert not is_authenticated()


class TestSessionAuth:
    async def test_anonymous_is_sent_to_login(self, tmp_path) -> None:
        async with TestClient(_app(tmp_path)) as client:
            response = await client.get("/members")
            assert response.status == 302
            assert response.header("location") == "/login?redirect_to=%2Fmembers"

    async def test_login_then_members(self, tmp_path) -> None:
        async with TestClient(_app(tmp_path)) as client:
            response = await client.post("/login/1")
            assert response.text == "signed in"
            assert "rewrite_session" in client.cookies

            response = await client.get("/members")
            assert response.status == 200
            assert response.text == "members: 1"

    async def test_logout(self, tmp_path) -> None:
        async with TestClient(_app(tmp_path)) as client:
            await client.post("/login/1")
            await client.post("/logout")
            response = await client.get("/whoami")
            assert response.text == "anonymous"

    async def test_tampered_cookie_is_anonymous(self, tmp_path) -> None:
        async with TestClient(_app(tmp_path)) as client:
            response = await client.get("/whoami", headers={"Cookie": "rewrite_session=forged"})
            assert response.text == "anonymous"

    async def test_signed_cookie_from_middleware(self, tmp_path) -> None:
        sessions = SessionMiddleware(SessionConfig(secret_key="test-secret"))
        cookie = sessions.dumps({"user_id": "2"})
        async with TestClient(_app(tmp_path)) as client:
            response = await client.get("/whoami", headers={"Cookie": f"rewrite_session={cookie}"})
            assert response.text == "2"

    async def test_login_events(self, tmp_path) -> None:
        events: list[SecurityEvent] = []
        set_security_event_sink(events.append)
        try:
            async with TestClient(_app(tmp_path)) as client:
                await client.post("/login/1")
                await client.post("/logout")
        finally:
            set_security_event_sink(None)
        assert [(e.name, e.user_id) for e in events] == [("auth.login", "1"), ("auth.logout", None)]


class TestTokenAuth:
    async def test_bearer_token(self, tmp_path) -> None:
        app = _app(tmp_path, verify_token=_verify_token)
        async with TestClient(app) as client:
            response = await client.get("/members", headers={"Authorization": "Bearer tok_bob"})
            assert response.status == 200
            assert response.text == "members: 2"

    async def test_bad_token(self, tmp_path) -> None:
        app = _app(tmp_path, verify_token=_verify_token)
        async with TestClient(app) as client:
            response = await client.get("/whoami", headers={"Authorization": "Bearer nope"})
            assert response.text == "anonymous"


class TestSignedInButDenied:
    async def test_403_for_authenticated_user(self, tmp_path) -> None:
        app = _app(tmp_path)

        def admins_only() -> bool:
            return get_user().id == "2"

        app.add_rule(r"^admin/?$", access=admins_only)
        async with TestClient(app) as client:
            await client.post("/login/1")
            response = await client.get("/admin")
            assert response.status == 403
            assert "Access Denied" in response.text
            assert "You do not have permission to access this page." in response.text

    async def test_g_is_request_scoped(self, tmp_path) -> None:
        app = _app(tmp_path)

        @app.route(r"^counter$")
        def counter():
            g.hits = g.get("hits", 0) + 1
            return str(g.hits)

        async with TestClient(app) as client:
            assert (await client.get("/counter")).text == "1"
            assert (await client.get("/counter")).text == "1"
