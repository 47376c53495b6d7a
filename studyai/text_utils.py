"""Shared text utility functions.

Helpers for cleaning model output before it is parsed or returned.
"""

import re

_LEADING_JSON_FENCE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_LEADING_PROSE_FENCE = re.compile(r"^```(?:markdown|md)?[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\n?```\s*$")
_WHITESPACE = re.compile(r"\s+")


def strip_markdown_code_blocks(text: str) -> str:
    """Strip a leading ```json / ``` fence and a trailing ``` fence.

    LLMs often wrap JSON responses in markdown code blocks like:
    ```json
    [...]
    ```

    Either marker is removed independently, so a response that only opens
    (or only closes) a fence is still cleaned.

    Args:
        text: Raw text that may contain markdown code fences

    Returns:
        Text with the fence markers removed and surrounding whitespace trimmed
    """
    if not text:
        return text
    cleaned = _LEADING_JSON_FENCE.sub("", text.strip())
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def clean_text_response(text: str) -> str:
    """Strip markdown fences wrapped around a prose response."""
    if not text:
        return ""
    cleaned = _LEADING_PROSE_FENCE.sub("", text.strip())
    cleaned = _TRAILING_FENCE.sub("", cleaned)
    return cleaned.strip()


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return _WHITESPACE.sub(" ", text).strip()
