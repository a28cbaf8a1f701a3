"""Content providers, the external sources of artifacts.

A provider serves one or more artifact types. The registry maps each
type to the provider that serves it; the router asks the registry for
listing queries and detail lookups.

Providers are structural: anything with the ``ContentProvider`` shape
can be registered, no base class required::

    registry = ProviderRegistry()
    registry.register(MemoryProvider(
        "library",
        "Library",
        configs=[SimpleTypeConfig("source", "Source", "Sources", "source")],
        items=[SimpleItem(id=1, slug="my-slug", title="My source", type="source")],
    ))
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TypedDict, runtime_checkable

logger = logging.getLogger("atrium.providers")


# -- Protocols --


@runtime_checkable
class TypeConfig(Protocol):
    """Display and query configuration for one artifact type."""

    @property
    def type(self) -> str: ...

    @property
    def label(self) -> str: ...

    @property
    def plural_label(self) -> str: ...

    @property
    def slug_base(self) -> str: ...

    @property
    def filters(self) -> Sequence[Mapping[str, Any]]: ...

    @property
    def sorts(self) -> Sequence[Mapping[str, Any]]: ...

    @property
    def card_config(self) -> Mapping[str, Any]: ...

    @property
    def detail_fields(self) -> Sequence[Mapping[str, Any]]: ...


@runtime_checkable
class ContentItem(Protocol):
    """One artifact, addressed by ``(type, slug)``."""

    @property
    def id(self) -> int | str: ...

    @property
    def slug(self) -> str: ...

    @property
    def title(self) -> str: ...

    @property
    def type(self) -> str: ...

    @property
    def url(self) -> str: ...

    @property
    def access_tier(self) -> str: ...

    @property
    def content(self) -> str: ...

    @property
    def excerpt(self) -> str: ...

    @property
    def meta(self) -> Mapping[str, Any]: ...

    def get_meta(self, key: str, default: Any = None) -> Any: ...


class QueryArgs(TypedDict, total=False):
    filters: Mapping[str, Any]
    orderby: str
    order: str
    page: int
    per_page: int


@dataclass(frozen=True, slots=True)
class QueryResult:
    """One page of query results."""

    items: Sequence[ContentItem] = ()
    total: int = 0
    page: int = 1
    per_page: int = 24
    pages: int = 1


@dataclass(frozen=True, slots=True)
class AccessVerdict:
    """A provider's answer to "may this viewer see this artifact?"."""

    allowed: bool
    reason: str = ""
    tier: str = "public"


@runtime_checkable
class ContentProvider(Protocol):
    """Capability interface every provider implements."""

    @property
    def id(self) -> str: ...

    @property
    def label(self) -> str: ...

    def types(self) -> Sequence[str]: ...

    def type_config(self, type_: str) -> TypeConfig | None: ...

    def query(self, type_: str, args: QueryArgs) -> QueryResult: ...

    def get_item(self, type_: str, slug: str) -> ContentItem | None: ...

    def check_access(self, type_: str, slug: str, user_id: str | None = None) -> AccessVerdict: ...

    def detail_template(self, type_: str) -> str | None: ...

    def card_template(self, type_: str) -> str | None: ...


# -- Bundled implementations --


@dataclass(frozen=True, slots=True)
class SimpleTypeConfig:
    type: str
    label: str
    plural_label: str
    slug_base: str
    filters: Sequence[Mapping[str, Any]] = ()
    sorts: Sequence[Mapping[str, Any]] = ()
    card_config: Mapping[str, Any] = field(default_factory=dict)
    detail_fields: Sequence[Mapping[str, Any]] = ()


@dataclass(frozen=True, slots=True)
class SimpleItem:
    id: int | str
    slug: str
    title: str
    type: str
    url: str = ""
    access_tier: str = "public"
    content: str = ""
    excerpt: str = ""
    meta: Mapping[str, Any] = field(default_factory=dict)

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.meta.get(key, default)


class MemoryProvider:
    """Provider backed by in-memory items.

    Filters match on equality against ``meta`` values (or item
    attributes). Non-public items are visible to any signed-in viewer.
    """

    __slots__ = ("_card_templates", "_configs", "_detail_templates", "_id", "_items", "_label")

    def __init__(
        self,
        id: str,
        label: str,
        *,
        configs: Iterable[SimpleTypeConfig],
        items: Iterable[SimpleItem] = (),
        detail_templates: Mapping[str, str] | None = None,
        card_templates: Mapping[str, str] | None = None,
    ) -> None:
        self._id = id
        self._label = label
        self._configs = {config.type: config for config in configs}
        self._items: dict[str, list[SimpleItem]] = {type_: [] for type_ in self._configs}
        for item in items:
            self.add(item)
        self._detail_templates = dict(detail_templates or {})
        self._card_templates = dict(card_templates or {})

    @property
    def id(self) -> str:
        return self._id

    @property
    def label(self) -> str:
        return self._label

    def add(self, item: SimpleItem) -> None:
        if item.type not in self._configs:
            msg = f"Provider {self._id!r} does not serve type {item.type!r}"
            raise ValueError(msg)
        self._items[item.type].append(item)

    def types(self) -> list[str]:
        return list(self._configs)

    def type_config(self, type_: str) -> SimpleTypeConfig | None:
        return self._configs.get(type_)

    def query(self, type_: str, args: QueryArgs) -> QueryResult:
        filters = args.get("filters") or {}
        matched = [
            item
            for item in self._items.get(type_, [])
            if all(_field(item, key) == value for key, value in filters.items())
        ]
        orderby = args.get("orderby") or "title"
        matched.sort(
            key=lambda item: str(_field(item, orderby) or "").lower(),
            reverse=str(args.get("order", "asc")).lower() == "desc",
        )

        per_page = max(1, int(args.get("per_page", 24)))
        page = max(1, int(args.get("page", 1)))
        start = (page - 1) * per_page
        return QueryResult(
            items=tuple(matched[start : start + per_page]),
            total=len(matched),
            page=page,
            per_page=per_page,
            pages=max(1, math.ceil(len(matched) / per_page)),
        )

    def get_item(self, type_: str, slug: str) -> SimpleItem | None:
        for item in self._items.get(type_, []):
            if item.slug == slug:
                return item
        return None

    def check_access(self, type_: str, slug: str, user_id: str | None = None) -> AccessVerdict:
        item = self.get_item(type_, slug)
        if item is None or item.access_tier == "public":
            return AccessVerdict(allowed=True)
        if user_id:
            return AccessVerdict(allowed=True, tier=item.access_tier)
        config = self._configs[type_]
        return AccessVerdict(
            allowed=False,
            reason=f"Sign in to view this {config.label.lower()}.",
            tier=item.access_tier,
        )

    def detail_template(self, type_: str) -> str | None:
        return self._detail_templates.get(type_)

    def card_template(self, type_: str) -> str | None:
        return self._card_templates.get(type_)


def _field(item: SimpleItem, key: str) -> Any:
    if key in item.meta:
        return item.meta[key]
    return getattr(item, key, None)


# -- Registry --


class ProviderRegistry:
    """Maps artifact types to the provider serving them.

    Registration is last-write-wins per type. Constructed explicitly and
    passed to whatever needs it; there is no module-level instance.
    """

    __slots__ = ("_lock", "_providers", "_type_map")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, ContentProvider] = {}
        # artifact type -> provider id
        self._type_map: dict[str, str] = {}

    def register(self, provider: ContentProvider) -> None:
        """Add *provider*, taking over any types it declares."""
        provider_id = provider.id
        with self._lock:
            if provider_id in self._providers:
                self._drop_types(provider_id)
            self._providers[provider_id] = provider
            for type_ in provider.types():
                previous = self._type_map.get(type_)
                if previous is not None and previous != provider_id:
                    logger.warning(
                        "Type %r moves from provider %r to %r", type_, previous, provider_id
                    )
                self._type_map[type_] = provider_id
        logger.info("Registered provider %r for types %s", provider_id, list(provider.types()))

    def unregister(self, provider_id: str) -> None:
        """Remove a provider and the types it still owns."""
        with self._lock:
            if self._providers.pop(provider_id, None) is not None:
                self._drop_types(provider_id)

    def _drop_types(self, provider_id: str) -> None:
        for type_ in [t for t, owner in self._type_map.items() if owner == provider_id]:
            del self._type_map[type_]

    def clear(self) -> None:
        with self._lock:
            self._providers.clear()
            self._type_map.clear()

    def get(self, provider_id: str) -> ContentProvider | None:
        return self._providers.get(provider_id)

    def providers(self) -> list[ContentProvider]:
        return list(self._providers.values())

    def for_type(self, type_: str) -> ContentProvider | None:
        provider_id = self._type_map.get(type_)
        if provider_id is None:
            return None
        return self._providers.get(provider_id)

    def has_type(self, type_: str) -> bool:
        return type_ in self._type_map

    def types(self) -> list[str]:
        return list(self._type_map)

    def type_config(self, type_: str) -> TypeConfig | None:
        provider = self.for_type(type_)
        return provider.type_config(type_) if provider is not None else None

    def stats(self) -> dict[str, Any]:
        return {
            "providers": len(self._providers),
            "types": len(self._type_map),
            "provider_list": [
                {"id": provider.id, "label": provider.label, "types": list(provider.types())}
                for provider in self._providers.values()
            ],
        }
