"""
Skill parsing.

A skill lives in skills/<dir>/SKILL.md. Bazaar reads the frontmatter to
index the skill and lists its bundled files (references/, scripts/);
nothing in a skill directory is ever executed.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import bazaar.constants as constants
import bazaar.content.frontmatter as frontmatter

_logger = _logging.getLogger(__name__)

SKILL_BODY_SOFT_LIMIT = 500
"""Body length (lines) above which a skill is flagged as too long."""


class SkillFrontmatter(_pydantic.BaseModel):
    """
    SKILL.md header.

    `name` and `description` are required. `when_to_use` is the trigger
    text a host matches against; `description` stands in when absent.
    """

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    name: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=constants.NAME_MAX_LENGTH,
        pattern=constants.NAME_PATTERN,
    )
    description: str = _pydantic.Field(..., min_length=1, max_length=1024)
    when_to_use: str | None = _pydantic.Field(default=None, alias="when-to-use")
    allowed_tools: list[str] = _pydantic.Field(default_factory=list, alias="allowed-tools")
    license: str | None = None
    metadata: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)

    @_pydantic.field_validator("description", mode="after")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @_pydantic.field_validator("allowed_tools", mode="before")
    @classmethod
    def _split_tools(cls, value: _typing.Any) -> list[str]:
        return frontmatter.split_tool_list(value) or []


def _visible_files(directory: _pathlib.Path, pattern: str = "*") -> list[_pathlib.Path]:
    if not directory.is_dir():
        return []
    return [
        p for p in sorted(directory.glob(pattern)) if p.is_file() and not p.name.startswith(".")
    ]


@_dataclasses.dataclass
class Skill:
    """A skill directory and its parsed SKILL.md."""

    frontmatter: SkillFrontmatter
    body: str
    path: _pathlib.Path
    """The skill directory (parent of SKILL.md)."""
    plugin_name: str = ""

    @property
    def name(self) -> str:
        return self.frontmatter.name

    @property
    def description(self) -> str:
        return self.frontmatter.description

    @property
    def trigger(self) -> str:
        return self.frontmatter.when_to_use or self.frontmatter.description

    @property
    def allowed_tools(self) -> list[str]:
        return self.frontmatter.allowed_tools

    @property
    def skill_file(self) -> _pathlib.Path:
        return self.path / constants.SKILL_FILE

    @property
    def body_line_count(self) -> int:
        return len(self.body.splitlines())

    @property
    def exceeds_soft_limit(self) -> bool:
        return self.body_line_count > SKILL_BODY_SOFT_LIMIT

    @property
    def matches_directory(self) -> bool:
        """True when the frontmatter name equals the directory name."""
        return self.path.name == self.name

    def list_reference_files(self) -> list[_pathlib.Path]:
        """Files under references/ followed by sibling .md files."""
        siblings = [
            p for p in _visible_files(self.path, "*.md") if p.name != constants.SKILL_FILE
        ]
        return _visible_files(self.path / "references") + siblings

    def list_scripts(self) -> list[_pathlib.Path]:
        return _visible_files(self.path / "scripts")

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "name": self.name,
            "description": self.description,
            "trigger": self.trigger,
            "allowed_tools": self.allowed_tools,
            "license": self.frontmatter.license,
            "path": str(self.path),
            "plugin_name": self.plugin_name,
            "body_lines": self.body_line_count,
            "exceeds_limit": self.exceeds_soft_limit,
            "reference_files": [str(p) for p in self.list_reference_files()],
            "scripts": [str(p) for p in self.list_scripts()],
        }


def parse_skill_markdown(content: str) -> tuple[SkillFrontmatter, str]:
    """
    Split SKILL.md text into validated frontmatter and body.

    Raises:
        ValueError: Frontmatter is missing or does not validate.
    """
    data, body = frontmatter.split_frontmatter(content)
    try:
        header = SkillFrontmatter.model_validate(data)
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid skill frontmatter: {e}") from e
    return header, body


def load_skill(skill_dir: _pathlib.Path, plugin_name: str = "") -> Skill:
    """
    Load the skill in `skill_dir`.

    Bodies over SKILL_BODY_SOFT_LIMIT lines load normally but are logged.

    Raises:
        FileNotFoundError: The directory has no SKILL.md.
        ValueError: SKILL.md is malformed.
    """
    skill_file = skill_dir / constants.SKILL_FILE
    if not skill_file.is_file():
        raise FileNotFoundError(f"SKILL.md not found: {skill_file}")

    header, body = parse_skill_markdown(skill_file.read_text(encoding="utf-8"))
    loaded = Skill(
        frontmatter=header,
        body=body,
        path=skill_dir.resolve(),
        plugin_name=plugin_name,
    )
    if loaded.exceeds_soft_limit:
        _logger.warning(
            "Skill %s body is %d lines, over the %d line soft limit",
            loaded.name,
            loaded.body_line_count,
            SKILL_BODY_SOFT_LIMIT,
        )
    return loaded
