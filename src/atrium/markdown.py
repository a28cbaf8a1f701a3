"""Page body rendering via patitas.

Front matter has already been stripped by the time a body gets here.
"""

from patitas import Markdown


class MarkdownRenderer:
    """Render Markdown source to HTML.

    Args:
        plugins: Patitas plugins to enable (default: all).
        highlight: Syntax-highlight fenced code blocks.
    """

    __slots__ = ("_md",)

    def __init__(self, *, plugins: list[str] | None = None, highlight: bool = False) -> None:
        self._md = Markdown(plugins=plugins or ["all"], highlight=highlight)

    def render(self, source: str) -> str:
        if not source.strip():
            return ""
        return self._md(source)
