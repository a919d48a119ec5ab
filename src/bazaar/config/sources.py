"""Custom pydantic-settings source for layered YAML configuration.

Configuration layers (in precedence order, highest first):
1. Environment variables (handled by pydantic-settings)
2. Project config: .bazaar/config.yaml in project root
3. User config: ~/.config/bazaar/config.yaml (or BAZAAR_CONFIG_DIR)

Nested mappings merge key by key; any other value in a higher layer
replaces the lower one.
"""

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic.fields as _pydantic_fields
import pydantic_settings as _pydantic_settings
import yaml as _yaml

import bazaar.constants as constants

_logger = _logging.getLogger(__name__)

# Environment variable for overriding user config directory
ENV_CONFIG_DIR = "BAZAAR_CONFIG_DIR"


class ConfigFileError(Exception):
    """Error loading or parsing a configuration file."""

    def __init__(self, path: _pathlib.Path, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


def get_user_config_dir() -> _pathlib.Path:
    """Get the user config directory, honoring BAZAAR_CONFIG_DIR."""
    if env_dir := _os.environ.get(ENV_CONFIG_DIR):
        return _pathlib.Path(env_dir).expanduser()
    return _pathlib.Path.home() / ".config" / "bazaar"


def get_user_config_path() -> _pathlib.Path:
    """Get the path to the user config file."""
    return get_user_config_dir() / constants.CONFIG_FILE


def get_project_config_path(project_root: _pathlib.Path) -> _pathlib.Path:
    """Get the path to the project config file."""
    return project_root / constants.PROJECT_DIR / constants.CONFIG_FILE


def load_yaml_config(path: _pathlib.Path) -> dict[str, _typing.Any]:
    """
    Load a YAML config file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed mapping, or an empty dict if the file doesn't exist.

    Raises:
        ConfigFileError: If the file is malformed or not a mapping.
    """
    if not path.is_file():
        return {}

    try:
        data = _yaml.safe_load(path.read_text(encoding="utf-8"))
    except _yaml.YAMLError as e:
        raise ConfigFileError(path, f"invalid YAML: {e}") from e
    except OSError as e:
        raise ConfigFileError(path, str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(path, "top level must be a mapping")
    return data


def deep_merge(
    base: dict[str, _typing.Any],
    override: dict[str, _typing.Any],
) -> dict[str, _typing.Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class LayeredYamlSettingsSource(_pydantic_settings.PydanticBaseSettingsSource):
    """Settings source reading user and project config.yaml files."""

    def __init__(
        self,
        settings_cls: type[_pydantic_settings.BaseSettings],
        project_root: _pathlib.Path | None,
    ) -> None:
        super().__init__(settings_cls)
        self._project_root = project_root
        self._data: dict[str, _typing.Any] | None = None

    def layer_paths(self) -> list[_pathlib.Path]:
        """Config files in merge order (lowest precedence first)."""
        paths = [get_user_config_path()]
        if self._project_root is not None:
            paths.append(get_project_config_path(self._project_root))
        return paths

    def _load(self) -> dict[str, _typing.Any]:
        if self._data is None:
            merged: dict[str, _typing.Any] = {}
            for path in self.layer_paths():
                layer = load_yaml_config(path)
                if layer:
                    _logger.debug("Loaded config layer %s", path)
                merged = deep_merge(merged, layer)
            self._data = merged
        return self._data

    def get_field_value(
        self,
        field: _pydantic_fields.FieldInfo,
        field_name: str,
    ) -> tuple[_typing.Any, str, bool]:
        """Return the merged YAML value for a single field."""
        return self._load().get(field_name), field_name, False

    def __call__(self) -> dict[str, _typing.Any]:
        data = self._load()
        return {
            name: data[name]
            for name in self.settings_cls.model_fields
            if name in data
        }
