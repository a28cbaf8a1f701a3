"""Tests for atrium.app: read API, rebuild, host routes, errors, lifespan."""

from pathlib import Path

import pytest

from atrium.access import MANAGE_CAPABILITY, SiteViewer
from atrium.app import Atrium
from atrium.config import AtriumConfig
from atrium.errors import NotFound
from atrium.middleware.auth import AuthConfig, AuthMiddleware
from atrium.testing import TestClient, write_page

ADMIN = SiteViewer("admin", frozenset({MANAGE_CAPABILITY}))


def _admin_app(app: Atrium) -> Atrium:
    viewers = {"admin-token": ADMIN, "member-token": SiteViewer("m")}
    app.add_middleware(AuthMiddleware(AuthConfig(verify_token=viewers.get)))
    return app


class TestReadAPI:
    async def test_status(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.get("/api/atrium/status")
        assert response.status == 200
        assert response.content_type == "application/json"
        report = response.json()
        assert report["status"] == "structurally_up"
        assert report["status_label"] == "Structurally Up"
        assert report["providers"]["providers"] == 2

    async def test_page_tree(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            data = (await client.get("/api/atrium/page-tree")).json()
        assert data["built_at"]
        assert [page["route"] for page in data["pages"]] == ["/"]
        assert "/reports/" in [child["route"] for child in data["pages"][0]["children"]]

    async def test_navigation(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            data = (await client.get("/api/atrium/navigation")).json()
        assert data["stats"]["total_items"] == 10
        home = data["items"][0]
        assert home["route"] == "/"
        assert home["has_children"] is True
        assert "/secret/" not in [item["route"] for item in home["children"]]

    async def test_custom_prefix(self, library: Path, site: Path) -> None:
        app = Atrium(AtriumConfig(library_path=library, api_prefix="/_site"))
        async with TestClient(app) as client:
            assert (await client.get("/_site/status")).status == 200
            assert (await client.get("/api/atrium/status")).status == 404

    async def test_unknown_api_path_is_json(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.get("/api/atrium/nope")
        assert response.status == 404
        assert "error" in response.json()

    async def test_wrong_method(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.get("/api/atrium/rebuild")
        assert response.status == 405
        assert response.header("allow") == "POST"


class TestRebuildAPI:
    async def test_requires_capability(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.post("/api/atrium/rebuild")
        assert response.status == 403
        assert "manage_options" in response.json()["error"]

    async def test_member_is_forbidden(self, app: Atrium) -> None:
        _admin_app(app)
        async with TestClient(app) as client:
            response = await client.post(
                "/api/atrium/rebuild", headers={"Authorization": "Bearer member-token"}
            )
        assert response.status == 403

    async def test_rebuild_picks_up_new_content(self, app: Atrium, site: Path) -> None:
        _admin_app(app)
        async with TestClient(app) as client:
            write_page(site, "news.md", "Fresh.", title="News")
            assert (await client.get("/news/")).status == 404

            response = await client.post(
                "/api/atrium/rebuild", headers={"Authorization": "Bearer admin-token"}
            )
            result = response.json()
            assert result["success"] is True
            assert result["status"] == "structurally_up"
            assert result["page_tree"]["total_pages"] == 12
            assert result["routes"] > 12

            assert "Fresh." in (await client.get("/news/")).text

    def test_rebuild_without_library(self) -> None:
        result = Atrium().rebuild()
        assert result["success"] is False
        assert result["status"] == "inactive"


class TestHostRoutes:
    async def test_host_route_before_pages(self, app: Atrium) -> None:
        @app.route("/about/")
        def about() -> str:
            return "host about"

        async with TestClient(app) as client:
            response = await client.get("/about/")
        assert response.text == "host about"

    async def test_path_params_and_json(self, app: Atrium) -> None:
        @app.route("/things/{id:int}")
        def thing(id: int) -> dict:
            return {"id": id}

        async with TestClient(app) as client:
            response = await client.get("/things/7")
        assert response.json() == {"id": 7}

    async def test_post_json(self, app: Atrium) -> None:
        @app.route("/echo", methods=["POST"])
        async def echo(request) -> dict:
            return await request.json()

        async with TestClient(app) as client:
            response = await client.post("/echo", json={"a": 1})
        assert response.json() == {"a": 1}

    async def test_head(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.head("/about/")
        assert response.status == 200
        assert response.body == b""

    async def test_no_changes_after_freeze(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            await client.get("/")
            with pytest.raises(RuntimeError, match="Cannot modify"):
                app.route("/late")(lambda: "late")


class TestErrors:
    async def test_html_not_found_page(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.get("/missing/")
        assert response.status == 404
        assert "atrium-not-found" in response.text
        assert "Back to Home" in response.text

    async def test_custom_not_found_handler(self, app: Atrium) -> None:
        @app.error(404)
        def missing(request, exc: NotFound) -> str:
            return f"nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/missing/")
        assert response.status == 404
        assert response.text == "nothing at /missing/"

    async def test_json_accept_on_site_path(self, app: Atrium) -> None:
        async with TestClient(app) as client:
            response = await client.get("/missing/", headers={"accept": "application/json"})
        # the registered 404 page still wins outside the API
        assert response.status == 404

    async def test_internal_error(self, app: Atrium) -> None:
        @app.route("/boom")
        def boom() -> str:
            raise RuntimeError("kaboom")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 500
        assert response.text == "Internal Server Error"

    async def test_internal_error_handler(self, app: Atrium) -> None:
        @app.route("/boom")
        def boom() -> str:
            raise RuntimeError("kaboom")

        @app.error(500)
        def oops() -> str:
            return "oops"

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert response.status == 500
        assert response.text == "oops"

    async def test_debug_shows_exception(self, library: Path, site: Path) -> None:
        app = Atrium(AtriumConfig(library_path=library, debug=True))

        @app.route("/boom")
        def boom() -> str:
            raise RuntimeError("kaboom")

        async with TestClient(app) as client:
            response = await client.get("/boom")
        assert "RuntimeError: kaboom" in response.text


class TestTemplates:
    async def test_theme_overrides_builtin(self, library: Path, site: Path, tmp_path: Path) -> None:
        theme = tmp_path / "theme"
        theme.mkdir()
        (theme / "page.html").write_text("<p>themed {{ page.title }}</p>")
        app = Atrium(AtriumConfig(library_path=library, template_dir=theme))
        async with TestClient(app) as client:
            response = await client.get("/about/")
        assert response.text == "<p>themed About</p>"

    async def test_markdown_filter_and_globals(
        self, library: Path, site: Path, tmp_path: Path
    ) -> None:
        theme = tmp_path / "theme"
        theme.mkdir()
        (theme / "page.html").write_text("{{ page.description | markdown }}{{ greeting() }}")
        write_page(site, "intro.md", title="Intro", description="*hi*")
        app = Atrium(AtriumConfig(library_path=library, template_dir=theme))

        @app.template_global()
        def greeting() -> str:
            return "!"

        async with TestClient(app) as client:
            response = await client.get("/intro/")
        assert "<em>hi</em>" in response.text
        assert response.text.endswith("!")


class TestLifespan:
    async def test_startup_and_shutdown(self, app: Atrium) -> None:
        events: list[str] = []
        app.on_startup(lambda: events.append("startup"))
        app.on_shutdown(lambda: events.append("shutdown"))

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[str] = []

        async def receive() -> dict:
            return next(messages)

        async def send(message: dict) -> None:
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["startup", "shutdown"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert app.tree.is_built
        assert app.navigation.is_built

    async def test_startup_failure(self, app: Atrium) -> None:
        def broken() -> None:
            raise RuntimeError("no")

        app.on_startup(broken)
        messages = iter([{"type": "lifespan.startup"}])
        sent: list[dict] = []

        async def receive() -> dict:
            return next(messages)

        async def send(message: dict) -> None:
            sent.append(message)

        await app({"type": "lifespan"}, receive, send)
        assert sent == [{"type": "lifespan.startup.failed", "message": "no"}]
