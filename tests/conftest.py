"""Shared fixtures: a small content library on disk and demo providers."""

from pathlib import Path

import pytest

from atrium.app import Atrium
from atrium.config import AtriumConfig
from atrium.providers import MemoryProvider, ProviderRegistry, SimpleItem, SimpleTypeConfig
from atrium.testing import write_page


@pytest.fixture
def library(tmp_path: Path) -> Path:
    """An empty library with its ``platform`` directory."""
    (tmp_path / "library" / "platform").mkdir(parents=True)
    return tmp_path / "library"


@pytest.fixture
def platform(library: Path) -> Path:
    return library / "platform"


@pytest.fixture
def site(platform: Path) -> Path:
    """A small site covering listings, gaps, hidden folders, and gates.

    Routes::

        /                      Home
        /reports/              Reports (lists "report" items)
        /reports/annual/       sort_order 0
        /reports/q1/           sort_order 1
        /reports/q2/           sort_order 1
        /reports/2024/         filtered listing
        /guides/setup/install/ no ancestors on disk
        /secret/               from _drafts/, hidden from navigation
        /members/              member-only
        /vault/                premium
        /about/                sort_order 5
    """
    write_page(platform, "index.md", "Welcome to the **library**.", title="Home")
    write_page(platform, "about.md", "About us.", title="About", sort_order=5)
    write_page(
        platform,
        "reports/_index.md",
        "All reports.",
        title="Reports",
        sort_order=1,
        artifact_type="report",
    )
    write_page(platform, "reports/q2.md", title="Q2", sort_order=1)
    write_page(platform, "reports/q1.md", title="Q1", sort_order=1)
    write_page(platform, "reports/annual.md", title="Annual", sort_order=0)
    write_page(
        platform,
        "reports/2024.md",
        title="2024 reports",
        sort_order=2,
        artifact_type="report",
        filter={"year": 2024},
    )
    write_page(platform, "guides/setup/install.md", "Install it.", title="Install")
    write_page(platform, "_drafts/secret.md", title="Secret")
    write_page(platform, "members/_index.md", "Members only.", title="Members", access_level="member")
    write_page(platform, "vault.md", "Premium body.", title="Vault", access_level="premium")
    return platform


@pytest.fixture
def config(library: Path, site: Path) -> AtriumConfig:
    return AtriumConfig(library_path=library)


@pytest.fixture
def reports_provider() -> MemoryProvider:
    return MemoryProvider(
        "reports",
        "Reports",
        configs=[SimpleTypeConfig("report", "Report", "Reports", "report")],
        items=[
            SimpleItem(
                id=i,
                slug=f"r{i}",
                title=f"Report {i}",
                type="report",
                url=f"/report/r{i}/",
                meta={"year": 2024 if i % 2 else 2023},
            )
            for i in range(1, 6)
        ],
    )


@pytest.fixture
def sources_provider() -> MemoryProvider:
    return MemoryProvider(
        "library",
        "Library",
        configs=[
            SimpleTypeConfig(
                "source",
                "Source",
                "Sources",
                "source",
                detail_fields=(
                    {"field": "author", "label": "Author"},
                    {"field": "published", "label": "Published", "format": "date"},
                    {"field": "link", "label": "Link", "format": "url"},
                    {"field": "missing", "label": "Missing"},
                ),
            )
        ],
        items=[
            SimpleItem(
                id=1,
                slug="my-slug",
                title="My Source",
                type="source",
                url="/source/my-slug/",
                content="<p>Source body</p>",
                meta={
                    "author": "Ada",
                    "published": "2024-03-05",
                    "link": "https://example.com/a",
                },
            ),
            SimpleItem(
                id=2,
                slug="locked",
                title="Locked Source",
                type="source",
                url="/source/locked/",
                access_tier="premium",
            ),
        ],
    )


@pytest.fixture
def registry(reports_provider: MemoryProvider, sources_provider: MemoryProvider) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(reports_provider)
    registry.register(sources_provider)
    return registry


@pytest.fixture
def app(config: AtriumConfig, registry: ProviderRegistry) -> Atrium:
    return Atrium(config, registry=registry)
