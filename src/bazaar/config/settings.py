"""
Settings configuration using pydantic-settings.

Loads configuration from:
1. Constructor arguments (highest precedence)
2. Environment variables with BAZAAR_ prefix
3. .env file (if BAZAAR_ENV_FILE points at one)
4. Layered YAML config files:
   - Project config: .bazaar/config.yaml (highest)
   - User config: ~/.config/bazaar/config.yaml

Mapping fields use a JSON value in the environment:
  BAZAAR_MARKETPLACES='{"team-tools": "acme/claude-plugins"}'
"""

import os as _os
import pathlib as _pathlib
import subprocess as _subprocess
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import bazaar.config.sources as sources
import bazaar.constants as constants

Scope = _typing.Literal["user", "project"]


def _get_env_file() -> str | None:
    """Determine which .env file to load (only when explicitly requested)."""
    if env_file := _os.environ.get("BAZAAR_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


def find_git_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path | None:
    """Find the git repository root from the given path or current directory."""
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    try:
        result = _subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            cwd=start_path,
            timeout=5,
        )
        if result.returncode == 0:
            return _pathlib.Path(result.stdout.strip())
    except (_subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return None


def find_project_root(start_path: _pathlib.Path | None = None) -> _pathlib.Path:
    """
    Find the project root directory.

    Tries (in order):
    1. Git repository root
    2. Nearest directory containing .bazaar/ or .claude-plugin/
    3. Current working directory
    """
    if start_path is None:
        start_path = _pathlib.Path.cwd()

    git_root = find_git_root(start_path)
    if git_root:
        return git_root

    current = start_path.resolve()
    markers = [constants.PROJECT_DIR, constants.MANIFEST_DIR]
    while current != current.parent:
        if any((current / marker).exists() for marker in markers):
            return current
        current = current.parent

    return _pathlib.Path.cwd()


class Settings(_pydantic_settings.BaseSettings):
    """
    Bazaar configuration settings.

    All settings can be overridden via environment variables with BAZAAR_ prefix.

    Config precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (BAZAAR_*)
    3. .env file
    4. Project config (.bazaar/config.yaml)
    5. User config (~/.config/bazaar/config.yaml)
    6. Field defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="BAZAAR_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[_pydantic_settings.BaseSettings],
        init_settings: _pydantic_settings.PydanticBaseSettingsSource,
        env_settings: _pydantic_settings.PydanticBaseSettingsSource,
        dotenv_settings: _pydantic_settings.PydanticBaseSettingsSource,
        file_secret_settings: _pydantic_settings.PydanticBaseSettingsSource,
    ) -> tuple[_pydantic_settings.PydanticBaseSettingsSource, ...]:
        """
        Configure settings sources with precedence:
        1. init_settings (constructor args) - highest
        2. env_settings (BAZAAR_* env vars)
        3. dotenv_settings (.env file)
        4. yaml_settings (project + user config.yaml)
        5. (defaults via Field definitions) - lowest
        """
        init_kwargs = getattr(init_settings, "init_kwargs", {}) or {}
        project_root = init_kwargs.get("project_root") or _os.environ.get(
            "BAZAAR_PROJECT_ROOT"
        )
        if project_root is None:
            project_root = find_project_root()

        return (
            init_settings,
            env_settings,
            dotenv_settings,
            sources.LayeredYamlSettingsSource(settings_cls, _pathlib.Path(project_root)),
            file_secret_settings,
        )

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file."""
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]

    config_dir: _pathlib.Path = _pydantic.Field(
        default_factory=sources.get_user_config_dir,
        description="User configuration and state directory",
    )

    project_root: _pathlib.Path = _pydantic.Field(
        default_factory=find_project_root,
        description="Project root for project-scoped installs",
    )

    scope: Scope = _pydantic.Field(
        default="user",
        description="Default installation scope",
    )

    git_timeout: int = _pydantic.Field(
        default=constants.DEFAULT_GIT_TIMEOUT,
        gt=0,
        description="Timeout for git clone/pull in seconds",
    )

    verbose: bool = _pydantic.Field(
        default=False,
        description="Enable debug logging",
    )

    marketplaces: dict[str, str] = _pydantic.Field(
        default_factory=dict,
        description="Declared marketplaces (name -> source location)",
    )

    @_pydantic.field_validator("config_dir", "project_root", mode="after")
    @classmethod
    def _expand_path(cls, value: _pathlib.Path) -> _pathlib.Path:
        return value.expanduser()

    # =========================================================================
    # Derived paths
    # =========================================================================

    @property
    def marketplaces_dir(self) -> _pathlib.Path:
        """Directory holding local copies of marketplaces."""
        return self.config_dir / "marketplaces"

    @property
    def known_marketplaces_path(self) -> _pathlib.Path:
        """YAML file recording known marketplaces."""
        return self.config_dir / constants.KNOWN_MARKETPLACES_FILE

    @property
    def plugin_cache_dir(self) -> _pathlib.Path:
        """Directory holding installed plugin copies."""
        return self.config_dir / "plugins" / "cache"

    @property
    def plugin_sources_dir(self) -> _pathlib.Path:
        """Directory holding checkouts of plugins hosted outside their marketplace."""
        return self.config_dir / "plugins" / "sources"

    @property
    def project_dir(self) -> _pathlib.Path:
        """Project-local state directory."""
        return self.project_root / constants.PROJECT_DIR

    def installed_plugins_path(self, scope: Scope | None = None) -> _pathlib.Path:
        """
        Get the installation store path for a scope.

        Args:
            scope: "user" or "project". Defaults to the configured scope.
        """
        scope = scope or self.scope
        if scope == constants.SCOPE_PROJECT:
            return self.project_dir / constants.INSTALLED_PLUGINS_FILE
        return self.config_dir / constants.INSTALLED_PLUGINS_FILE

    def to_display_dict(self) -> dict[str, _typing.Any]:
        """Settings plus derived paths, for display."""
        data = self.model_dump(mode="json")
        data["paths"] = {
            "marketplaces_dir": str(self.marketplaces_dir),
            "known_marketplaces": str(self.known_marketplaces_path),
            "plugin_cache_dir": str(self.plugin_cache_dir),
            "plugin_sources_dir": str(self.plugin_sources_dir),
            "user_installs": str(self.installed_plugins_path("user")),
            "project_installs": str(self.installed_plugins_path("project")),
        }
        return data
