"""Front matter splitting.

A content file may open with a ``---`` delimited YAML block::

    ---
    title: Quarterly reports
    sort_order: 2
    ---
    Body text in Markdown.
"""

import re
from typing import Any

import yaml

from atrium.errors import FrontmatterError

_DELIMITER = re.compile(r"^---[ \t]*$", re.MULTILINE)


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split *text* into ``(metadata, body)``.

    Files without a leading delimiter have empty metadata. The body is
    returned with surrounding whitespace trimmed.

    Raises ``FrontmatterError`` for an unterminated block, invalid YAML,
    or a block that does not parse to a mapping.
    """
    text = text.removeprefix("\ufeff")
    if not _DELIMITER.match(text):
        return {}, text.strip()

    parts = _DELIMITER.split(text, maxsplit=2)
    if len(parts) < 3:
        msg = "Front matter block is not terminated"
        raise FrontmatterError(msg)

    try:
        meta = yaml.safe_load(parts[1])
    except yaml.YAMLError as exc:
        msg = f"Front matter is not valid YAML: {exc}"
        raise FrontmatterError(msg) from exc

    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        msg = f"Front matter must be a mapping, got {type(meta).__name__}"
        raise FrontmatterError(msg)

    return meta, parts[2].strip()
