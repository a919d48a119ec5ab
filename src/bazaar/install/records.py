"""
Installation records.

Each scope keeps its own installed_plugins.yaml:
- user: <config_dir>/installed_plugins.yaml
- project: <project_root>/.bazaar/installed_plugins.yaml

Records are keyed by "plugin@marketplace":

    plugins:
      reviewer@team-tools:
        enabled: true
        version: 1.2.0
        install_path: ~/.config/bazaar/plugins/cache/user/team-tools/reviewer/1.2.0
        installed_at: "2026-01-01T00:00:00+00:00"
        updated_at: "2026-01-01T00:00:00+00:00"

install_path names the copy on the machine that last wrote the record.
Installers locate copies from (marketplace, plugin, version) instead, so
a project store committed to a repository works for every teammate.
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import bazaar.constants as constants
import bazaar.utils.clock as clock

_logger = _logging.getLogger(__name__)


class InstallationRecord(_pydantic.BaseModel):
    """One installed plugin in one scope."""

    plugin: str = _pydantic.Field(..., min_length=1, description="Plugin name")
    marketplace: str = _pydantic.Field(..., min_length=1, description="Marketplace name")
    enabled: bool = True
    version: str = constants.DEFAULT_PLUGIN_VERSION
    install_path: str = _pydantic.Field(..., description="Cached copy of the plugin")
    installed_at: str = _pydantic.Field(default_factory=clock.utc_now)
    updated_at: str = _pydantic.Field(default_factory=clock.utc_now)

    @property
    def ref(self) -> str:
        """Record key: plugin@marketplace."""
        return f"{self.plugin}@{self.marketplace}"

    @property
    def path(self) -> _pathlib.Path:
        """Cached copy of the plugin."""
        return _pathlib.Path(self.install_path)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {"ref": self.ref, **self.model_dump(mode="json")}


class InstallationStore:
    """
    YAML-backed installation records for one scope.

    A missing or unreadable file is treated as empty. Every mutation is
    written back immediately.
    """

    def __init__(self, path: _pathlib.Path, scope: str = constants.SCOPE_USER) -> None:
        """
        Initialize the store.

        Args:
            path: Location of installed_plugins.yaml.
            scope: Scope name, for display.
        """
        self._path = path
        self._scope = scope
        self._records: dict[str, InstallationRecord] = {}
        self._load_state()

    @property
    def path(self) -> _pathlib.Path:
        return self._path

    @property
    def scope(self) -> str:
        return self._scope

    def _load_state(self) -> None:
        """Load records from the store file."""
        if not self._path.exists():
            return

        try:
            data = _yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, _yaml.YAMLError) as e:
            _logger.warning("Ignoring unreadable installation store %s: %s", self._path, e)
            return

        plugins = data.get("plugins", {}) if isinstance(data, dict) else None
        if not isinstance(plugins, dict):
            _logger.warning("Ignoring malformed installation store %s", self._path)
            return

        for key, entry in plugins.items():
            name, sep, marketplace = str(key).rpartition("@")
            if not sep or not isinstance(entry, dict):
                _logger.warning("Skipping malformed installation record '%s'", key)
                continue
            try:
                record = InstallationRecord.model_validate(
                    {**entry, "plugin": name, "marketplace": marketplace}
                )
            except _pydantic.ValidationError as e:
                _logger.warning("Skipping invalid installation record '%s': %s", key, e)
                continue
            self._records[record.ref] = record

    def _save_state(self) -> None:
        """Save records to the store file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "plugins": {
                ref: record.model_dump(mode="json", exclude={"plugin", "marketplace"})
                for ref, record in sorted(self._records.items())
            }
        }
        self._path.write_text(
            _yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )

    def __contains__(self, ref: object) -> bool:
        return ref in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, ref: str) -> InstallationRecord | None:
        """Get a record by its plugin@marketplace key."""
        return self._records.get(ref)

    def list(self) -> list[InstallationRecord]:
        """All records, sorted by key."""
        return [self._records[ref] for ref in sorted(self._records)]

    def find(self, plugin: str) -> list[InstallationRecord]:
        """Records for a plugin name, from any marketplace."""
        return [r for r in self.list() if r.plugin == plugin]

    def for_marketplace(self, marketplace: str) -> list[InstallationRecord]:
        """Records installed from one marketplace."""
        return [r for r in self.list() if r.marketplace == marketplace]

    def enabled(self) -> list[InstallationRecord]:
        """Records of enabled plugins."""
        return [r for r in self.list() if r.enabled]

    def put(self, record: InstallationRecord) -> None:
        """Add or replace a record."""
        self._records[record.ref] = record
        self._save_state()

    def remove(self, ref: str) -> bool:
        """
        Remove a record.

        Returns:
            True if a record was removed, False if none existed.
        """
        if self._records.pop(ref, None) is None:
            return False
        self._save_state()
        return True

    def set_enabled(self, ref: str, enabled: bool) -> bool:
        """
        Set the enabled flag of a record.

        Returns:
            True if state changed, False if unchanged or not found.
        """
        record = self._records.get(ref)
        if record is None or record.enabled == enabled:
            return False
        self._records[ref] = record.model_copy(
            update={"enabled": enabled, "updated_at": clock.utc_now()}
        )
        self._save_state()
        return True

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert store state to dictionary for JSON serialization."""
        records = self.list()
        return {
            "scope": self._scope,
            "path": str(self._path),
            "plugins": [r.to_dict() for r in records],
            "enabled_count": len([r for r in records if r.enabled]),
            "disabled_count": len([r for r in records if not r.enabled]),
        }
