"""Tests for atrium.content.frontmatter."""

import pytest

from atrium.content.frontmatter import split_frontmatter
from atrium.errors import FrontmatterError


class TestSplitFrontmatter:
    def test_no_block(self) -> None:
        assert split_frontmatter("Just text.\n") == ({}, "Just text.")

    def test_block_and_body(self) -> None:
        meta, body = split_frontmatter("---\ntitle: Q1\nsort_order: 2\n---\n\nBody\n")
        assert meta == {"title": "Q1", "sort_order": 2}
        assert body == "Body"

    def test_byte_order_mark(self) -> None:
        meta, _ = split_frontmatter("\ufeff---\ntitle: Q1\n---\n")
        assert meta == {"title": "Q1"}

    def test_empty_block(self) -> None:
        assert split_frontmatter("---\n---\nBody") == ({}, "Body")

    def test_unterminated(self) -> None:
        with pytest.raises(FrontmatterError, match="not terminated"):
            split_frontmatter("---\ntitle: Q1\n")

    def test_invalid_yaml(self) -> None:
        with pytest.raises(FrontmatterError, match="not valid YAML"):
            split_frontmatter("---\ntitle: [unclosed\n---\n")

    def test_not_a_mapping(self) -> None:
        with pytest.raises(FrontmatterError, match="mapping"):
            split_frontmatter("---\n- a\n- b\n---\n")
