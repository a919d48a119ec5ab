"""
Agent definition parsing.

Agents are markdown files in a plugin's agents/ directory. The
frontmatter names the persona and the tools/model it targets; the body
is the system prompt handed to the host.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import bazaar.content.frontmatter as frontmatter


class AgentFrontmatter(_pydantic.BaseModel):
    """
    Frontmatter parsed from an agent markdown file.

    Required fields:
    - name: Agent identifier
    - description: When the host should delegate to this agent

    Unknown fields (color, etc.) are kept for the host.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    name: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=64,
        description="Agent name",
    )

    description: str = _pydantic.Field(
        ...,
        min_length=1,
        description="What the agent does and when to use it",
    )

    tools: list[str] | None = _pydantic.Field(
        default=None,
        description="Tools available to the agent (None inherits all)",
    )

    model: str | None = _pydantic.Field(
        default=None,
        description="Target model identifier (e.g. 'sonnet', 'inherit')",
    )

    @_pydantic.field_validator("name", "description", mode="after")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @_pydantic.field_validator("tools", mode="before")
    @classmethod
    def _split_tools(cls, value: _typing.Any) -> list[str] | None:
        return frontmatter.split_tool_list(value)


@_dataclasses.dataclass
class Agent:
    """A parsed agent definition."""

    frontmatter: AgentFrontmatter
    """Parsed frontmatter metadata."""

    body: str
    """System prompt (markdown body after frontmatter)."""

    path: _pathlib.Path
    """Path to the source .md file."""

    plugin_name: str = ""
    """Name of the plugin that provides this agent (if any)."""

    @property
    def name(self) -> str:
        """Agent name from frontmatter."""
        return self.frontmatter.name

    @property
    def description(self) -> str:
        """Agent description from frontmatter."""
        return self.frontmatter.description

    @property
    def tools(self) -> list[str] | None:
        """Declared tools, or None when the agent inherits all tools."""
        return self.frontmatter.tools

    @property
    def model(self) -> str | None:
        """Target model identifier."""
        return self.frontmatter.model

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "tools": self.tools,
            "model": self.model,
            "path": str(self.path),
            "plugin_name": self.plugin_name,
        }


def parse_agent_markdown(content: str) -> tuple[AgentFrontmatter, str]:
    """
    Parse an agent markdown file into frontmatter and body.

    Raises:
        ValueError: If frontmatter is missing or invalid.
    """
    data, body = frontmatter.split_frontmatter(content)
    try:
        return AgentFrontmatter.model_validate(data), body
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid agent frontmatter: {e}") from e


def load_agent(path: _pathlib.Path, plugin_name: str = "") -> Agent:
    """
    Load an agent from a markdown file.

    Args:
        path: Path to the .md file.
        plugin_name: Name of the providing plugin (if any).

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Agent file not found: {path}")

    agent_frontmatter, body = parse_agent_markdown(path.read_text(encoding="utf-8"))
    return Agent(
        frontmatter=agent_frontmatter,
        body=body,
        path=path,
        plugin_name=plugin_name,
    )
