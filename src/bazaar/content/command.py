"""
Slash command templates.

Commands are markdown files in a plugin's commands/ directory. The file
stem is the command name (what the user types after /) unless the
frontmatter overrides it. The body is a template with argument
placeholders:

- $ARGUMENTS: everything the user typed after the command
- $1 .. $9: individual whitespace-separated arguments
"""

from __future__ import annotations

import dataclasses as _dataclasses
import pathlib as _pathlib
import re as _re
import typing as _typing

import pydantic as _pydantic

import bazaar.content.frontmatter as frontmatter

_PLACEHOLDER_RE = _re.compile(r"\$(ARGUMENTS|[1-9])(?![0-9A-Za-z_])")


class CommandFrontmatter(_pydantic.BaseModel):
    """Command header. Every field is optional, an empty block is valid."""

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = _pydantic.Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Command name override (defaults to the file stem)",
    )

    description: str = _pydantic.Field(
        default="",
        max_length=512,
        description="One-line summary for command listings",
    )

    argument_hint: str = _pydantic.Field(
        default="",
        alias="argument-hint",
        description="Argument specification shown to users (e.g. '<target>')",
    )

    allowed_tools: list[str] = _pydantic.Field(
        default_factory=list,
        alias="allowed-tools",
        description="Tools the command may use",
    )

    model: str | None = _pydantic.Field(
        default=None,
        description="Model override for this command",
    )

    @_pydantic.field_validator("allowed_tools", mode="before")
    @classmethod
    def _split_tools(cls, value: _typing.Any) -> list[str]:
        return frontmatter.split_tool_list(value) or []


@_dataclasses.dataclass
class Command:
    """A parsed slash command template."""

    frontmatter: CommandFrontmatter
    body: str
    """The template text, placeholders unexpanded."""
    path: _pathlib.Path
    plugin_name: str = ""

    @property
    def name(self) -> str:
        """Command name (frontmatter override or file stem)."""
        return self.frontmatter.name or self.path.stem

    @property
    def description(self) -> str:
        return self.frontmatter.description

    @property
    def allowed_tools(self) -> list[str]:
        return self.frontmatter.allowed_tools

    @property
    def placeholders(self) -> list[str]:
        """Argument placeholders in first-appearance order, without duplicates."""
        seen: list[str] = []
        for match in _PLACEHOLDER_RE.finditer(self.body):
            token = f"${match.group(1)}"
            if token not in seen:
                seen.append(token)
        return seen

    @property
    def takes_arguments(self) -> bool:
        """Whether the template uses any argument placeholder."""
        return bool(self.placeholders)

    def render(self, args: str = "") -> str:
        """
        Render the command template with argument substitution.

        Args:
            args: Argument string typed after the command.

        Returns:
            Body with $ARGUMENTS and $1..$9 substituted.
        """
        positional = args.split()

        def _substitute(match: _re.Match[str]) -> str:
            token = match.group(1)
            if token == "ARGUMENTS":
                return args
            index = int(token) - 1
            return positional[index] if index < len(positional) else ""

        return _PLACEHOLDER_RE.sub(_substitute, self.body)

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "name": self.name,
            "description": self.description,
            "argument_hint": self.frontmatter.argument_hint,
            "allowed_tools": self.allowed_tools,
            "model": self.frontmatter.model,
            "placeholders": self.placeholders,
            "path": str(self.path),
            "plugin_name": self.plugin_name,
        }


def parse_command_markdown(content: str) -> tuple[CommandFrontmatter, str]:
    """Split command markdown into validated frontmatter and template body."""
    data, body = frontmatter.split_frontmatter(content)
    try:
        header = CommandFrontmatter.model_validate(data)
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid command frontmatter: {e}") from e
    return header, body


def load_command(path: _pathlib.Path, plugin_name: str = "") -> Command:
    """
    Load the command template at `path`.

    Raises:
        FileNotFoundError: `path` is not a file.
        ValueError: The frontmatter is missing or malformed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Command file not found: {path}")

    header, body = parse_command_markdown(path.read_text(encoding="utf-8"))
    return Command(frontmatter=header, body=body, path=path, plugin_name=plugin_name)
