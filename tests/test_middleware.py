"""Tests for session and auth middleware."""

import pytest

from atrium.access import SiteViewer
from atrium.app import Atrium
from atrium.errors import ConfigurationError
from atrium.middleware.auth import AuthConfig, AuthMiddleware, current_viewer, login, logout
from atrium.middleware.sessions import SessionConfig, SessionMiddleware, get_session
from atrium.testing import TestClient

ACCOUNTS = {"7": SiteViewer("7", name="Ada")}


def _session_app(app: Atrium) -> Atrium:
    app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))
    app.add_middleware(AuthMiddleware(AuthConfig(load_viewer=ACCOUNTS.get)))

    @app.route("/login/{viewer_id}", methods=["POST"])
    def do_login(viewer_id: str) -> str:
        login(ACCOUNTS[viewer_id])
        return "in"

    @app.route("/logout", methods=["POST"])
    def do_logout() -> str:
        logout()
        return "out"

    @app.route("/whoami")
    def whoami() -> str:
        return current_viewer().id or "anonymous"

    return app


class TestSessions:
    async def test_round_trip(self, app: Atrium) -> None:
        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))

        @app.route("/count")
        def count() -> str:
            session = get_session()
            session["n"] = session.get("n", 0) + 1
            return str(session["n"])

        async with TestClient(app) as client:
            assert (await client.get("/count")).text == "1"
            assert (await client.get("/count")).text == "2"

    async def test_tampered_cookie_starts_fresh(self, app: Atrium) -> None:
        app.add_middleware(SessionMiddleware(SessionConfig(secret_key="test-secret")))

        @app.route("/count")
        def count() -> str:
            session = get_session()
            session["n"] = session.get("n", 0) + 1
            return str(session["n"])

        async with TestClient(app) as client:
            await client.get("/count")
            client.cookies["atrium_session"] = client.cookies["atrium_session"] + "x"
            assert (await client.get("/count")).text == "1"

    def test_empty_secret(self) -> None:
        with pytest.raises(ConfigurationError):
            SessionMiddleware(SessionConfig(secret_key=""))

    def test_no_session_outside_middleware(self) -> None:
        with pytest.raises(LookupError):
            get_session()


class TestAuth:
    async def test_login_and_logout(self, app: Atrium) -> None:
        _session_app(app)
        async with TestClient(app) as client:
            assert (await client.get("/whoami")).text == "anonymous"
            await client.post("/login/7")
            assert (await client.get("/whoami")).text == "7"
            await client.post("/logout")
            assert (await client.get("/whoami")).text == "anonymous"

    async def test_session_viewer_sees_member_pages(self, app: Atrium) -> None:
        _session_app(app)
        async with TestClient(app) as client:
            await client.post("/login/7")
            response = await client.get("/members/")
        assert "Members only." in response.text

    async def test_bearer_token(self, app: Atrium) -> None:
        app.add_middleware(AuthMiddleware(AuthConfig(verify_token={"t0k": SiteViewer("9")}.get)))

        @app.route("/whoami")
        async def whoami() -> str:
            return current_viewer().id or "anonymous"

        async with TestClient(app) as client:
            assert (await client.get("/whoami", headers={"Authorization": "Bearer t0k"})).text == "9"
            assert (await client.get("/whoami", headers={"Authorization": "Bearer bad"})).text == (
                "anonymous"
            )
            assert (await client.get("/whoami", headers={"Authorization": "Basic t0k"})).text == (
                "anonymous"
            )

    async def test_session_auth_needs_session_middleware(self, app: Atrium) -> None:
        app.add_middleware(AuthMiddleware(AuthConfig(load_viewer=ACCOUNTS.get)))
        async with TestClient(app) as client:
            response = await client.get("/about/")
        assert response.status == 500

    def test_needs_a_loader(self) -> None:
        with pytest.raises(ConfigurationError):
            AuthMiddleware(AuthConfig())

    def test_anonymous_outside_request(self) -> None:
        assert current_viewer().is_authenticated is False
