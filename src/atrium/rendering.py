"""Kida environment setup and view rendering.

Theme templates (``AtriumConfig.template_dir``) are searched before the
templates bundled with atrium, so a theme can override any of them by
name.
"""

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from kida import ChoiceLoader, Environment, FileSystemLoader, PackageLoader
from kida.environment.exceptions import TemplateNotFoundError

from atrium.config import AtriumConfig
from atrium.errors import TemplateMissingError


def create_environment(
    config: AtriumConfig,
    *,
    filters: Mapping[str, Callable[..., Any]] | None = None,
    globals_: Mapping[str, Any] | None = None,
) -> Environment:
    """Create the kida Environment for a site. Called once per app."""
    loaders: list[Any] = []
    if config.template_dir is not None:
        loaders.append(FileSystemLoader(str(config.template_dir)))
    loaders.append(PackageLoader("atrium", "templates"))

    env = Environment(
        loader=ChoiceLoader(loaders),
        autoescape=config.autoescape,
        auto_reload=config.debug,
        trim_blocks=config.trim_blocks,
        lstrip_blocks=config.lstrip_blocks,
    )
    env.add_global("url_for", config.url_for)
    env.add_global("login_url", config.login_url)
    if filters:
        env.update_filters(dict(filters))
    for name, value in (globals_ or {}).items():
        env.add_global(name, value)
    return env


class Renderer:
    """Render named templates, or template files a provider points at.

    A template that cannot be found raises ``TemplateMissingError``.
    """

    __slots__ = ("_env",)

    def __init__(self, env: Environment) -> None:
        self._env = env

    @property
    def env(self) -> Environment:
        return self._env

    def has_template(self, name: str) -> bool:
        try:
            self._env.get_template(name)
        except TemplateNotFoundError:
            return False
        return True

    def render(self, name: str, context: Mapping[str, Any]) -> str:
        try:
            template = self._env.get_template(name)
        except TemplateNotFoundError as exc:
            raise TemplateMissingError(name) from exc
        return template.render(dict(context))

    def render_file(self, path: str | Path, context: Mapping[str, Any]) -> str:
        """Render a template file outside the loader's search path.

        The file may still extend or include templates the loader knows.
        """
        try:
            source = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise TemplateMissingError(str(path)) from exc
        return self._env.from_string(source).render(dict(context))
