"""Tests for text utility functions."""

from studyai.text_utils import (
    clean_text_response,
    collapse_whitespace,
    strip_markdown_code_blocks,
)


class TestStripMarkdownCodeBlocks:
    """Tests for strip_markdown_code_blocks."""

    def test_json_fence(self):
        assert strip_markdown_code_blocks('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_bare_fence(self):
        assert strip_markdown_code_blocks("```\n[]\n```") == "[]"

    def test_unclosed_fence(self):
        assert strip_markdown_code_blocks("```json\n[1, 2]") == "[1, 2]"

    def test_no_fence(self):
        assert strip_markdown_code_blocks("  [1]  ") == "[1]"

    def test_empty(self):
        assert strip_markdown_code_blocks("") == ""


class TestCleanTextResponse:
    """Tests for clean_text_response."""

    def test_markdown_fence(self):
        assert clean_text_response("```markdown\n# Title\n- point\n```") == "# Title\n- point"

    def test_md_fence(self):
        assert clean_text_response("```md\nSummary\n```") == "Summary"

    def test_plain_text_untouched(self):
        assert clean_text_response("  Plain summary.  ") == "Plain summary."

    def test_none_like(self):
        assert clean_text_response("") == ""


def test_collapse_whitespace():
    assert collapse_whitespace("  a \n\t b  ") == "a b"
