"""
YAML frontmatter extraction for content markdown files.

Agents, skills and commands are markdown files that start with a YAML
block delimited by --- lines. The block holds metadata; the rest of the
file is the body handed to the host as-is.
"""

from __future__ import annotations

import re as _re
import typing as _typing

import yaml as _yaml

# Regex to extract YAML frontmatter from markdown
_FRONTMATTER_RE = _re.compile(
    r"^---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n(.*))?$",
    _re.DOTALL,
)


def split_frontmatter(content: str) -> tuple[dict[str, _typing.Any], str]:
    """
    Split markdown content into frontmatter data and body.

    Args:
        content: Raw markdown content.

    Returns:
        Tuple of (frontmatter mapping, stripped body).

    Raises:
        ValueError: If frontmatter is missing, not valid YAML, or not a mapping.
    """
    # Editors on Windows leave a BOM and CRLF line endings
    content = content.lstrip("﻿").replace("\r\n", "\n")

    match = _FRONTMATTER_RE.match(content)
    if not match:
        raise ValueError("File must start with YAML frontmatter (---)")

    try:
        data = _yaml.safe_load(match.group(1) or "") or {}
    except _yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in frontmatter: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Frontmatter must be a YAML mapping")

    body = (match.group(2) or "").strip()
    return data, body


def split_tool_list(value: _typing.Any) -> list[str] | None:
    """
    Normalize a tool list field.

    Accepts a YAML list or a comma-separated string. None stays None
    (meaning "not declared").
    """
    if value is None:
        return None
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    raise ValueError(f"Expected a list or comma-separated string, got {type(value).__name__}")
