"""Site router: turns matched page and artifact routes into HTML.

Route table, in registration order:

1. ``/{slug_base}/{artifact_slug}/`` for every type of every provider,
   carrying ``artifact_type``.
2. Routes added by ``register_routes`` actions.
3. One literal route per page except ``/``, carrying ``route``.
4. ``/`` itself, which serves the home page and also accepts the
   carriers as query parameters (``/?route=/a/``,
   ``/?artifact_type=t&artifact_slug=s``).

Earlier routes win: a page whose path an artifact route already answers
is left out of the table (it stays reachable through ``/?route=``).
Dispatch priority is artifact, then page, then the front page. Anything
else raises ``NotFound``.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from html import escape
from pathlib import Path
from types import MappingProxyType
from typing import Any
from urllib.parse import urlencode

from kida.template import Markup

from atrium.access import PREMIUM_LEVELS, can_view
from atrium.config import AtriumConfig
from atrium.content.page import Page, normalize_route
from atrium.content.tree import Breadcrumb, PageTree
from atrium.errors import HTTPError, NotFound
from atrium.hooks import Hook, Hooks
from atrium.http.request import Request
from atrium.http.response import Response
from atrium.markdown import MarkdownRenderer
from atrium.middleware.auth import current_viewer
from atrium.navigation import Navigation
from atrium.providers import ContentItem, ContentProvider, ProviderRegistry, QueryArgs, TypeConfig
from atrium.rendering import Renderer
from atrium.routing.route import Route
from atrium.routing.router import Router

logger = logging.getLogger("atrium.dispatch")

ROUTE_CARRIER = "route"
TYPE_CARRIER = "artifact_type"
SLUG_CARRIER = "artifact_slug"


def page_route_path(route: str) -> str | None:
    """Path a page is registered under, or ``None`` for the root."""
    route = normalize_route(route)
    return None if route == "/" else route


class SiteRouter:
    """Compiles the page and artifact route table and renders matches."""

    __slots__ = (
        "_config",
        "_hooks",
        "_markdown",
        "_navigation",
        "_registry",
        "_renderer",
        "_router",
        "_tree",
    )

    def __init__(
        self,
        *,
        config: AtriumConfig,
        tree: PageTree,
        navigation: Navigation,
        registry: ProviderRegistry,
        hooks: Hooks,
        renderer: Renderer,
        markdown: MarkdownRenderer | None = None,
    ) -> None:
        self._config = config
        self._tree = tree
        self._navigation = navigation
        self._registry = registry
        self._hooks = hooks
        self._renderer = renderer
        self._markdown = markdown or MarkdownRenderer()
        self._router: Router | None = None

    # -- Route table --

    @property
    def router(self) -> Router:
        """The compiled table, compiling it on first use."""
        if self._router is None:
            self.compile()
        assert self._router is not None
        return self._router

    def compile(self) -> Router:
        """Build a fresh route table and swap it in."""
        router = Router()
        self._add_provider_routes(router)
        self._hooks.do_action(Hook.REGISTER_ROUTES, router, self)

        snapshot = self._tree.ensure_built()
        pages = snapshot.pages if snapshot is not None else {}
        page_count = 0
        for route in pages:
            path = page_route_path(route)
            if path is None:
                continue
            claimed = _claimed_by(router, path)
            if claimed is not None:
                logger.warning("Page route %s is shadowed by %s", route, claimed.path)
                continue
            added = router.add(
                Route(
                    path,
                    self.handle,
                    literal=True,
                    carriers=MappingProxyType({ROUTE_CARRIER: route}),
                )
            )
            if added:
                page_count += 1
            else:
                logger.warning("Page route %s is shadowed by an earlier route", route)

        router.add(Route("/", self.front_page, name="front_page"))
        router.compile()
        self._router = router
        logger.info("Compiled site routes: %d pages, %d total", page_count, len(router.routes))
        return router

    def _add_provider_routes(self, router: Router) -> None:
        for provider in self._registry.providers():
            for type_ in provider.types():
                config = provider.type_config(type_)
                if config is None:
                    continue
                # Only the provider currently serving the type gets its route.
                if self._registry.for_type(type_) is not provider:
                    continue
                route = Route(
                    f"/{config.slug_base.strip('/')}/{{{SLUG_CARRIER}}}",
                    self.handle,
                    name=f"artifact:{type_}",
                    carriers=MappingProxyType({TYPE_CARRIER: type_}),
                )
                if not router.add(route):
                    logger.warning(
                        "Slug base %r of type %r is already taken", config.slug_base, type_
                    )

    def route_table(self) -> list[dict[str, Any]]:
        """Path, regex pattern and carriers of every rule, in match priority."""
        return [
            {
                "path": route.path,
                "pattern": route.pattern,
                "carriers": dict(route.carriers),
                "name": route.name,
            }
            for route in self.router.routes
        ]

    # -- Handlers --

    def front_page(self, request: Request) -> Response:
        """Serve ``/``: query-string carriers first, then the home page."""
        params = {
            key: value
            for key in (ROUTE_CARRIER, TYPE_CARRIER, SLUG_CARRIER)
            if (value := request.query.get(key))
        }
        return self.dispatch(request, params, front_page=True)

    def handle(self, request: Request) -> Response:
        return self.dispatch(request, request.path_params)

    def dispatch(
        self,
        request: Request,
        params: Mapping[str, str],
        *,
        front_page: bool = False,
    ) -> Response:
        type_ = params.get(TYPE_CARRIER)
        slug = params.get(SLUG_CARRIER)
        if type_ and slug:
            return self._artifact(type_, slug)

        route = params.get(ROUTE_CARRIER)
        if route:
            page = self._tree.get_page(route)
            if page is None:
                raise NotFound(f"No page at {normalize_route(route)}")
            return self._page(page, request)

        if front_page:
            home = self._tree.get_page("/")
            if home is not None:
                return self._page(home, request)

        raise NotFound(f"Nothing to serve at {request.path}")

    # -- Pages --

    def _page(self, page: Page, request: Request) -> Response:
        viewer = current_viewer()
        breadcrumbs = self._tree.get_breadcrumbs(page.route)
        if not can_view(page.access_level, viewer, self._hooks):
            logger.debug("Gated %s (%s)", page.route, page.access_level)
            return self._gated(
                title=page.title,
                page=page,
                breadcrumbs=breadcrumbs,
                current_route=page.route,
                access_level=page.access_level,
                content_type="page",
            )

        context = self._base_context(breadcrumbs, page.route)
        context.update(
            page=page,
            children=self._tree.get_children(page.route),
            content_html=Markup(self._markdown.render(page.body)),
            artifact_type=None,
            items=[],
            cards=[],
            filter_controls=[],
            total=0,
            total_pages=1,
            current_page=1,
            prev_url=None,
            next_url=None,
            provider=None,
            type_config=None,
        )
        if page.artifact_type:
            context.update(self._listing(page, request))

        self._hooks.do_action(Hook.BEFORE_PAGE_RENDER, page)
        html = self._renderer.render("page.html", context)
        self._hooks.do_action(Hook.AFTER_PAGE_RENDER, page)
        return Response(body=html)

    def _listing(self, page: Page, request: Request) -> dict[str, Any]:
        """Provider query for a page bound to an artifact type."""
        artifact_type = page.artifact_type
        assert artifact_type is not None
        provider = self._registry.for_type(artifact_type)
        if provider is None:
            logger.debug("No provider for %r; %s lists nothing", artifact_type, page.route)
            return {}

        type_config = provider.type_config(artifact_type)
        controls = filter_controls(type_config, request)
        selected = {
            control["field"]: option["value"]
            for control in controls
            for option in control["options"]
            if option["selected"]
        }

        requested = request.query.get_int("page") or request.query.get_int("paged") or 1
        args: QueryArgs = {
            "filters": {**page.filter, **selected},
            "per_page": int(
                self._hooks.apply_filters(
                    Hook.ITEMS_PER_PAGE, self._config.items_per_page, artifact_type
                )
            ),
            "page": max(1, requested),
        }
        args = self._hooks.apply_filters(Hook.ARTIFACT_QUERY_ARGS, args, artifact_type, page)
        result = provider.query(artifact_type, args)
        items = self._hooks.apply_filters(
            Hook.ARTIFACT_ITEMS, list(result.items), artifact_type, page
        )
        return {
            "items": items,
            "cards": self._cards(items, artifact_type, provider, type_config),
            "filter_controls": controls,
            "total": result.total,
            "total_pages": result.pages,
            "current_page": result.page,
            "prev_url": page_link(request, result.page - 1) if result.page > 1 else None,
            "next_url": page_link(request, result.page + 1) if result.page < result.pages else None,
            "provider": provider,
            "type_config": type_config,
            "artifact_type": artifact_type,
        }

    def _cards(
        self,
        items: list[ContentItem],
        artifact_type: str,
        provider: ContentProvider,
        type_config: TypeConfig | None,
    ) -> list[dict[str, Any]]:
        """One card per item: the provider's card template, else title and badges."""
        custom = provider.card_template(artifact_type)
        if custom and not Path(custom).is_file():
            logger.debug("Card template %s for %r does not exist", custom, artifact_type)
            custom = None

        cards: list[dict[str, Any]] = []
        for item in items:
            html = None
            if custom:
                html = Markup(
                    self._renderer.render_file(
                        custom,
                        {
                            "item": item,
                            "artifact_type": artifact_type,
                            "type_config": type_config,
                            "provider": provider,
                        },
                    )
                )
            cards.append({"item": item, "html": html, "badges": item_badges(item, type_config)})
        return cards

    # -- Artifacts --

    def _artifact(self, type_: str, slug: str) -> Response:
        provider = self._registry.for_type(type_)
        if provider is None:
            raise NotFound(f"No provider serves artifact type {type_!r}")
        item = provider.get_item(type_, slug)
        if item is None:
            raise NotFound(f"No {type_} named {slug!r}")

        type_config = provider.type_config(type_)
        breadcrumbs = artifact_breadcrumbs(item, type_, type_config, self._config.home_label)

        viewer = current_viewer()
        verdict = provider.check_access(type_, slug, viewer.id or None)
        if not verdict.allowed:
            return self._gated(
                title=item.title,
                page=item,
                breadcrumbs=breadcrumbs,
                current_route="",
                access_level=verdict.tier or "member",
                content_type=type_,
                access_reason=verdict.reason,
                item=item,
            )

        self._hooks.do_action(Hook.ARTIFACT_REQUEST, type_, slug, item)
        return Response(body=self._render_artifact(item, type_, provider, type_config, breadcrumbs))

    def _render_artifact(
        self,
        item: ContentItem,
        type_: str,
        provider: ContentProvider,
        type_config: TypeConfig | None,
        breadcrumbs: list[Breadcrumb],
    ) -> str:
        context = self._base_context(breadcrumbs, "")
        context.update(
            page=item,
            item=item,
            type=type_,
            artifact_type=type_,
            type_config=type_config,
            provider=provider,
            meta=dict(item.meta),
            fields=detail_fields(item, type_config),
            content_html=Markup(item.content),
        )
        custom = provider.detail_template(type_)
        if custom and Path(custom).is_file():
            return self._renderer.render_file(custom, context)
        return self._renderer.render("artifact_detail.html", context)

    # -- Shared views --

    def _gated(
        self,
        *,
        title: str,
        page: Any,
        breadcrumbs: list[Breadcrumb],
        current_route: str,
        access_level: str,
        content_type: str,
        access_reason: str = "",
        item: ContentItem | None = None,
    ) -> Response:
        context = self._base_context(breadcrumbs, current_route)
        context.update(
            title=title,
            page=page,
            item=item,
            access_level=access_level,
            access_reason=access_reason,
            content_type=content_type,
            premium=access_level in PREMIUM_LEVELS,
            upgrade_url=self._hooks.apply_filters(Hook.UPGRADE_URL, "", access_level),
        )
        return Response(body=self._renderer.render("gated.html", context))

    def not_found(self, detail: str) -> Response:
        """Themed 404 page."""
        context = self._base_context([], "")
        context["detail"] = detail
        return Response(body=self._renderer.render("not_found.html", context), status=404)

    def _base_context(self, breadcrumbs: list[Breadcrumb], current_route: str) -> dict[str, Any]:
        last = len(breadcrumbs) - 1
        return {
            "site_name": self._config.site_name,
            "home_label": self._config.home_label,
            "breadcrumbs": [
                {**crumb.to_dict(), "current": i == last} for i, crumb in enumerate(breadcrumbs)
            ],
            "navigation": self._navigation,
            "navigation_html": self._navigation.render(
                current_route=current_route, max_depth=self._config.nav_max_depth
            ),
            "viewer": current_viewer(),
        }


def _claimed_by(router: Router, path: str) -> Route | None:
    """The earlier route that already answers GET *path*, if any."""
    try:
        return router.match("GET", path).route
    except HTTPError:
        return None


def artifact_breadcrumbs(
    item: ContentItem,
    type_: str,
    type_config: TypeConfig | None,
    home_label: str = "Home",
) -> list[Breadcrumb]:
    """Home, the type's plural label (linked to ``/<slug_base>s/``), then the item."""
    if type_config is not None:
        label, slug_base = type_config.plural_label, type_config.slug_base.strip("/")
    else:
        label, slug_base = f"{type_.capitalize()}s", type_
    return [
        Breadcrumb(title=home_label, route="/"),
        Breadcrumb(title=label, route=f"/{slug_base}s/"),
        Breadcrumb(title=item.title, route=item.url),
    ]


def detail_fields(item: ContentItem, type_config: TypeConfig | None) -> list[dict[str, Any]]:
    """Label/value pairs for the type's detail fields, skipping empty values."""
    if type_config is None:
        return []
    fields: list[dict[str, Any]] = []
    for field in type_config.detail_fields:
        value = item.get_meta(field.get("field", ""))
        if not value:
            continue
        fields.append({"label": field.get("label", ""), "value": _format(value, field.get("format"))})
    return fields


def _format(value: Any, kind: str | None) -> Any:
    if kind == "url":
        url = escape(str(value), quote=True)
        return Markup(f'<a href="{url}" target="_blank" rel="noopener">{escape(str(value))}</a>')
    if kind == "date":
        try:
            moment = datetime.fromisoformat(str(value))
        except ValueError:
            return value
        return f"{moment:%B} {moment.day}, {moment.year}"
    return value


def item_badges(item: ContentItem, type_config: TypeConfig | None) -> list[dict[str, Any]]:
    """Values of the card's ``badges`` meta fields, skipping empty ones."""
    if type_config is None:
        return []
    badges: list[dict[str, Any]] = []
    for badge in type_config.card_config.get("badges") or ():
        value = item.get_meta(badge.get("field", ""))
        if value:
            badges.append({"value": value, "class": badge.get("class", "")})
    return badges


def filter_controls(type_config: TypeConfig | None, request: Request) -> list[dict[str, Any]]:
    """Select controls for the type's ``select`` filters.

    An option is selected when the query string carries its value under
    the filter's field name.
    """
    if type_config is None:
        return []
    controls: list[dict[str, Any]] = []
    for entry in type_config.filters:
        if entry.get("type") != "select" or not entry.get("options"):
            continue
        field = entry.get("field", "")
        chosen = request.query.get(field)
        controls.append(
            {
                "field": field,
                "label": entry.get("label", field),
                "options": [
                    {
                        "value": option["value"],
                        "label": option.get("label", option["value"]),
                        "selected": chosen is not None and chosen == str(option["value"]),
                    }
                    for option in entry["options"]
                ],
            }
        )
    return controls


def page_link(request: Request, number: int) -> str:
    """The request path with ``paged`` set to *number*, other query args kept."""
    params = [
        (key, value)
        for key in request.query
        if key not in ("page", "paged")
        for value in request.query.get_list(key)
    ]
    params.append(("paged", str(number)))
    return f"{request.path}?{urlencode(params)}"
