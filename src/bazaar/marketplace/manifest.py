"""
Marketplace manifest parsing.

A marketplace is a repository with .claude-plugin/marketplace.json
listing the plugins it publishes. Each entry names a plugin and where
to find it: a path inside the marketplace, a GitHub repository, or a
git URL.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic

import bazaar.constants as constants
import bazaar.plugins.manifest as plugin_manifest


class GitHubSource(_pydantic.BaseModel):
    """Plugin hosted in its own GitHub repository."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    source: _typing.Literal["github"]
    repo: str = _pydantic.Field(..., pattern=r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
    ref: str | None = None

    @property
    def url(self) -> str:
        """Clone URL for the repository."""
        return f"https://github.com/{self.repo}.git"


class GitSource(_pydantic.BaseModel):
    """Plugin hosted at an arbitrary git URL."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    source: _typing.Literal["git", "url"]
    url: str = _pydantic.Field(..., min_length=1)
    ref: str | None = None


RemoteSource = _typing.Annotated[
    GitHubSource | GitSource,
    _pydantic.Field(discriminator="source"),
]
PluginSource = str | RemoteSource


class MarketplaceMetadata(_pydantic.BaseModel):
    """Optional metadata block of a marketplace manifest."""

    model_config = _pydantic.ConfigDict(extra="allow", populate_by_name=True)

    description: str = ""
    version: str | None = None
    plugin_root: str | None = _pydantic.Field(default=None, alias="pluginRoot")


class PluginEntry(_pydantic.BaseModel):
    """
    One plugin listed in a marketplace manifest.

    With strict (the default) the plugin must ship its own plugin.json;
    otherwise the entry itself serves as the plugin manifest.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    name: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=constants.NAME_MAX_LENGTH,
        pattern=constants.NAME_PATTERN,
    )
    source: PluginSource
    description: str = ""
    version: str | None = None
    author: plugin_manifest.Author | None = None
    homepage: str | None = None
    repository: str | None = None
    license: str | None = None
    category: str | None = None
    keywords: list[str] = _pydantic.Field(default_factory=list)
    tags: list[str] = _pydantic.Field(default_factory=list)
    strict: bool = True

    agents: list[str] = _pydantic.Field(default_factory=list)
    skills: list[str] = _pydantic.Field(default_factory=list)
    commands: list[str] = _pydantic.Field(default_factory=list)

    @_pydantic.field_validator("author", mode="before")
    @classmethod
    def _normalize_author(cls, value: _typing.Any) -> _typing.Any:
        return plugin_manifest.coerce_author(value)

    @_pydantic.field_validator("agents", "skills", "commands", mode="before")
    @classmethod
    def _normalize_paths(cls, value: _typing.Any) -> _typing.Any:
        return plugin_manifest.coerce_paths(value)

    @property
    def is_local(self) -> bool:
        """Whether the plugin lives inside the marketplace repository."""
        return isinstance(self.source, str)

    def to_manifest(self) -> plugin_manifest.PluginManifest:
        """Build a plugin manifest from this entry."""
        return plugin_manifest.PluginManifest(
            name=self.name,
            version=self.version or constants.DEFAULT_PLUGIN_VERSION,
            description=self.description,
            author=self.author,
            homepage=self.homepage,
            repository=self.repository,
            license=self.license,
            keywords=self.keywords,
            agents=self.agents,
            skills=self.skills,
            commands=self.commands,
        )

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json", exclude_none=True)


class MarketplaceManifest(_pydantic.BaseModel):
    """
    Marketplace manifest parsed from marketplace.json.

    Plugin names are unique within a marketplace.
    """

    model_config = _pydantic.ConfigDict(extra="allow")

    name: str = _pydantic.Field(
        ...,
        min_length=1,
        max_length=constants.NAME_MAX_LENGTH,
        pattern=constants.NAME_PATTERN,
        description="Marketplace name (lowercase, hyphens allowed)",
    )
    owner: plugin_manifest.Author | None = None
    metadata: MarketplaceMetadata = _pydantic.Field(default_factory=MarketplaceMetadata)
    plugins: list[PluginEntry] = _pydantic.Field(default_factory=list)

    @_pydantic.field_validator("owner", mode="before")
    @classmethod
    def _normalize_owner(cls, value: _typing.Any) -> _typing.Any:
        return plugin_manifest.coerce_author(value)

    @_pydantic.model_validator(mode="after")
    def _unique_plugin_names(self) -> MarketplaceManifest:
        seen: set[str] = set()
        duplicates: list[str] = []
        for entry in self.plugins:
            if entry.name in seen and entry.name not in duplicates:
                duplicates.append(entry.name)
            seen.add(entry.name)
        if duplicates:
            raise ValueError(f"Duplicate plugin names: {', '.join(duplicates)}")
        return self

    @property
    def description(self) -> str:
        """Marketplace description from metadata."""
        return self.metadata.description

    def get_plugin(self, name: str) -> PluginEntry | None:
        """Get a plugin entry by name."""
        for entry in self.plugins:
            if entry.name == name:
                return entry
        return None

    def plugin_names(self) -> list[str]:
        """Plugin names in manifest order."""
        return [entry.name for entry in self.plugins]


@_dataclasses.dataclass
class Marketplace:
    """
    A marketplace available on disk.

    Combines the parsed manifest with the root of the local copy.
    """

    manifest: MarketplaceManifest
    """Parsed marketplace.json."""

    path: _pathlib.Path
    """Root of the local marketplace copy."""

    @property
    def name(self) -> str:
        """Marketplace name from manifest."""
        return self.manifest.name

    @property
    def plugins(self) -> list[PluginEntry]:
        """Plugin entries in manifest order."""
        return self.manifest.plugins

    def local_plugin_path(self, entry: PluginEntry) -> _pathlib.Path:
        """
        Resolve a relative plugin source inside the marketplace.

        "./plugins/x" and "plugins/x" resolve against the marketplace
        root; a bare name resolves under metadata.pluginRoot.

        Raises:
            ValueError: If the source is remote or escapes the marketplace.
        """
        if not isinstance(entry.source, str):
            raise ValueError(f"Plugin '{entry.name}' does not have a local source")

        root = self.path.resolve()
        source = entry.source
        plugin_root = self.manifest.metadata.plugin_root
        if plugin_root and "/" not in source and source not in (".", ".."):
            candidate = root / plugin_root / source
        else:
            candidate = root / source

        resolved = candidate.resolve()
        if not resolved.is_relative_to(root):
            raise ValueError(
                f"Plugin '{entry.name}' source escapes the marketplace: {entry.source}"
            )
        return resolved

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "description": self.manifest.description,
            "owner": str(self.manifest.owner) if self.manifest.owner else None,
            "path": str(self.path),
            "plugins": self.manifest.plugin_names(),
        }


def get_manifest_path(root: _pathlib.Path) -> _pathlib.Path:
    """Path of marketplace.json for a marketplace root."""
    return root / constants.MANIFEST_DIR / constants.MARKETPLACE_MANIFEST_FILE


def load_marketplace_manifest(path: _pathlib.Path) -> MarketplaceManifest:
    """
    Load a marketplace manifest from marketplace.json.

    Args:
        path: Path to marketplace.json file.

    Returns:
        Parsed MarketplaceManifest.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid JSON or doesn't match schema.
    """
    if not path.exists():
        raise FileNotFoundError(f"Marketplace manifest not found: {path}")

    try:
        data = _json.loads(path.read_text(encoding="utf-8"))
        return MarketplaceManifest.model_validate(data)
    except _json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid marketplace manifest in {path}: {e}") from e


def load_marketplace(root: _pathlib.Path) -> Marketplace:
    """
    Load a marketplace from its root directory.

    Raises:
        FileNotFoundError: If marketplace.json doesn't exist.
        ValueError: If the manifest is invalid.
    """
    manifest = load_marketplace_manifest(get_manifest_path(root))
    return Marketplace(manifest=manifest, path=root.resolve())
