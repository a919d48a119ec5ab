"""
Plugin manifest parsing.

Plugins describe themselves in .claude-plugin/plugin.json. The manifest
carries metadata; the components themselves live in the conventional
agents/, skills/ and commands/ directories (plus any extra paths the
manifest lists).
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import bazaar.constants as constants

if _typing.TYPE_CHECKING:
    import bazaar.content.agent as _agent
    import bazaar.content.command as _command
    import bazaar.content.skill as _skill

ComponentKind = _typing.Literal["agent", "skill", "command"]
COMPONENT_KINDS: tuple[ComponentKind, ...] = ("agent", "skill", "command")

_DEFAULT_DIRS: dict[str, str] = {
    "agent": constants.AGENTS_DIR,
    "skill": constants.SKILLS_DIR,
    "command": constants.COMMANDS_DIR,
}


class Author(_pydantic.BaseModel):
    """Plugin or marketplace author."""

    model_config = _pydantic.ConfigDict(extra="allow")

    name: str = _pydantic.Field(..., min_length=1)
    email: str | None = None
    url: str | None = None

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>" if self.email else self.name


def coerce_author(value: _typing.Any) -> _typing.Any:
    """Accept "Name" as shorthand for {"name": "Name"}."""
    if isinstance(value, str):
        return {"name": value}
    return value


def coerce_paths(value: _typing.Any) -> _typing.Any:
    """Accept a single path string as shorthand for a one-item list."""
    if isinstance(value, str):
        return [value]
    return value


class PluginManifest(_pydantic.BaseModel):
    """
    Plugin manifest parsed from plugin.json.

    Required fields:
    - name: Unique plugin identifier

    Unknown keys (hooks, mcpServers, ...) are preserved for the host.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    name: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=constants.NAME_MAX_LENGTH,
        pattern=constants.NAME_PATTERN,
        description="Plugin name (lowercase, hyphens allowed)",
    )

    version: str = _pydantic.Field(
        default=constants.DEFAULT_PLUGIN_VERSION,
        min_length=1,
        description="Semantic version (e.g., '1.0.0')",
    )

    description: str = _pydantic.Field(
        default="",
        max_length=1024,
        description="What the plugin does",
    )

    author: Author | None = _pydantic.Field(
        default=None,
        description="Plugin author",
    )

    homepage: str | None = None
    repository: str | None = None
    license: str | None = None

    keywords: list[str] = _pydantic.Field(default_factory=list)

    # Extra component locations, relative to the plugin root
    agents: list[str] = _pydantic.Field(default_factory=list)
    skills: list[str] = _pydantic.Field(default_factory=list)
    commands: list[str] = _pydantic.Field(default_factory=list)

    @_pydantic.field_validator("author", mode="before")
    @classmethod
    def _normalize_author(cls, value: _typing.Any) -> _typing.Any:
        return coerce_author(value)

    @_pydantic.field_validator("agents", "skills", "commands", mode="before")
    @classmethod
    def _normalize_paths(cls, value: _typing.Any) -> _typing.Any:
        return coerce_paths(value)


@_dataclasses.dataclass
class Plugin:
    """
    A loaded plugin with manifest, path and contents.

    This is the runtime representation of a plugin, combining the parsed
    manifest with the filesystem location and the parsed content items.
    """

    manifest: PluginManifest
    """Parsed plugin.json manifest (or one derived from a marketplace entry)."""

    path: _pathlib.Path
    """Path to plugin directory."""

    marketplace: str = ""
    """Name of the marketplace the plugin comes from (if any)."""

    enabled: bool = True
    """Whether the plugin is enabled."""

    agents: list[_agent.Agent] = _dataclasses.field(default_factory=list)
    skills: list[_skill.Skill] = _dataclasses.field(default_factory=list)
    commands: list[_command.Command] = _dataclasses.field(default_factory=list)

    @property
    def name(self) -> str:
        """Plugin name from manifest."""
        return self.manifest.name

    @property
    def version(self) -> str:
        """Plugin version from manifest."""
        return self.manifest.version

    @property
    def description(self) -> str:
        """Plugin description from manifest."""
        return self.manifest.description

    @property
    def ref(self) -> str:
        """Reference string: plugin@marketplace (or bare name)."""
        return f"{self.name}@{self.marketplace}" if self.marketplace else self.name

    @property
    def manifest_path(self) -> _pathlib.Path:
        """Path to .claude-plugin/plugin.json."""
        return self.path / constants.MANIFEST_DIR / constants.PLUGIN_MANIFEST_FILE

    def component_dirs(self, kind: ComponentKind) -> list[_pathlib.Path]:
        """
        Directories searched for one kind of component.

        The conventional directory comes first, followed by any extra
        paths declared in the manifest.
        """
        extra: list[str] = getattr(self.manifest, f"{kind}s")
        dirs = [self.path / _DEFAULT_DIRS[kind]]
        for rel in extra:
            candidate = (self.path / rel).resolve()
            if candidate not in dirs:
                dirs.append(candidate)
        return dirs

    def component_names(self, kind: ComponentKind) -> list[str]:
        """Names of loaded components of one kind, in load order."""
        items: list[_typing.Any] = getattr(self, f"{kind}s")
        return [item.name for item in items]

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "marketplace": self.marketplace,
            "author": str(self.manifest.author) if self.manifest.author else None,
            "path": str(self.path),
            "enabled": self.enabled,
            "agents": self.component_names("agent"),
            "skills": self.component_names("skill"),
            "commands": self.component_names("command"),
        }


def load_manifest(path: _pathlib.Path) -> PluginManifest:
    """
    Load a plugin manifest from plugin.json.

    Args:
        path: Path to plugin.json file.

    Returns:
        Parsed PluginManifest.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid JSON or doesn't match schema.
    """
    if not path.exists():
        raise FileNotFoundError(f"Plugin manifest not found: {path}")

    try:
        data = _json.loads(path.read_text(encoding="utf-8"))
        return PluginManifest.model_validate(data)
    except _json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid plugin manifest in {path}: {e}") from e
