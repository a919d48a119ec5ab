"""
Plugin installation.

PluginInstaller ties the marketplace manager, the installation store of
one scope and the lifecycle resolver together. Installed plugins are
copied into <cache_dir>/<marketplace>/<plugin>/<version> so they keep
working while their marketplace moves on.

The copy location is derived from the record on every machine, so a
project-scope record committed by a teammate is restored by installing
it again.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import filecmp as _filecmp
import json as _json
import logging as _logging
import pathlib as _pathlib
import shutil as _shutil
import typing as _typing

import bazaar.constants as constants
import bazaar.install.records as records
import bazaar.install.resolver as resolver
import bazaar.marketplace.manager as manager
import bazaar.plugins.loader as loader
import bazaar.plugins.manifest as manifest
import bazaar.utils.clock as clock

if _typing.TYPE_CHECKING:
    import bazaar.config as config

_logger = _logging.getLogger(__name__)


class InstallError(Exception):
    """Raised when a plugin cannot be installed or loaded from its copy."""

    pass


@_dataclasses.dataclass
class InstallResult:
    """Outcome of a lifecycle operation."""

    transition: resolver.Transition
    record: records.InstallationRecord | None = None
    """Record after the operation (None once uninstalled)."""

    @property
    def changed(self) -> bool:
        return self.transition.changed

    @property
    def warnings(self) -> list[str]:
        return self.transition.warnings

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        data = self.transition.to_dict()
        data["record"] = self.record.to_dict() if self.record else None
        return data


@_dataclasses.dataclass
class InstalledPlugin:
    """An installation record joined with the plugin loaded from its copy."""

    record: records.InstallationRecord
    plugin: manifest.Plugin | None = None
    """Loaded plugin (None if the cached copy is missing or invalid)."""

    error: str | None = None
    """Why the plugin could not be loaded."""

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        data = self.record.to_dict()
        if self.plugin is not None:
            data["description"] = self.plugin.description
            data["agents"] = self.plugin.component_names("agent")
            data["skills"] = self.plugin.component_names("skill")
            data["commands"] = self.plugin.component_names("command")
        if self.error:
            data["error"] = self.error
        return data


def _plugin_files(root: _pathlib.Path) -> set[_pathlib.Path]:
    """Relative paths of the files under a plugin directory, .git excluded."""
    return {
        path.relative_to(root)
        for path in root.rglob("*")
        if path.is_file() and ".git" not in path.relative_to(root).parts
    }


class PluginInstaller:
    """
    Installs, removes, enables, disables and updates plugins in one scope.

    Plugin references may omit "@marketplace" when the plugin name is
    unambiguous: among installed records for lifecycle operations on
    installed plugins, among known marketplaces for install.

    Conflicts are checked against the enabled plugins of this scope and
    of every peer installer (the other scopes), since the host loads all
    scopes together.
    """

    def __init__(
        self,
        marketplaces: manager.MarketplaceManager,
        store: records.InstallationStore,
        cache_dir: _pathlib.Path,
        plugin_loader: loader.PluginLoader | None = None,
        *,
        peers: _typing.Sequence[PluginInstaller] = (),
    ) -> None:
        """
        Initialize the installer.

        Args:
            marketplaces: Manager resolving plugin references.
            store: Installation records of the target scope.
            cache_dir: Root directory for installed plugin copies.
            plugin_loader: Loader for plugin directories.
            peers: Installers of the other scopes, read for conflict checks.
        """
        self._marketplaces = marketplaces
        self._store = store
        self._cache_dir = cache_dir
        self._loader = plugin_loader or loader.PluginLoader()
        self._peers = list(peers)

    @classmethod
    def from_settings(
        cls,
        settings: config.Settings,
        scope: str | None = None,
    ) -> PluginInstaller:
        """
        Create an installer for a scope using configured paths.

        Each scope gets its own cache directory so uninstalling from one
        scope never removes another scope's copy. The installers of the
        other scopes are attached as peers.
        """
        scope = scope or settings.scope
        marketplaces = manager.MarketplaceManager.from_settings(settings)

        def _build(name: str, peers: _typing.Sequence[PluginInstaller] = ()) -> PluginInstaller:
            store = records.InstallationStore(
                settings.installed_plugins_path(name),  # type: ignore[arg-type]
                name,
            )
            return cls(marketplaces, store, settings.plugin_cache_dir / name, peers=peers)

        peers = [_build(other) for other in constants.SCOPES if other != scope]
        return _build(scope, peers)

    @property
    def store(self) -> records.InstallationStore:
        return self._store

    @property
    def marketplaces(self) -> manager.MarketplaceManager:
        return self._marketplaces

    # =========================================================================
    # Helpers
    # =========================================================================

    def find_record(self, ref: str) -> records.InstallationRecord | None:
        """
        Look up the installation record for a reference.

        Raises:
            ValueError: If the reference is malformed.
            AmbiguousPluginError: If an unqualified name is installed from
                several marketplaces.
        """
        name, marketplace = manager.parse_ref(ref)
        if marketplace is not None:
            return self._store.get(f"{name}@{marketplace}")

        found = self._store.find(name)
        if len(found) > 1:
            raise manager.AmbiguousPluginError(name, [r.marketplace for r in found])
        return found[0] if found else None

    def cache_path(self, marketplace: str, plugin: str, version: str) -> _pathlib.Path:
        """Location of the cached copy of a plugin version."""
        return self._cache_dir / marketplace / plugin / version

    def copy_path(self, record: records.InstallationRecord) -> _pathlib.Path:
        """
        Location of a record's copy on this machine.

        Derived from (marketplace, plugin, version) rather than the stored
        install_path, which names the copy of whoever wrote the record.
        """
        return self.cache_path(record.marketplace, record.plugin, record.version)

    def load_installed(self, record: records.InstallationRecord) -> manifest.Plugin:
        """
        Load a plugin from its cached copy.

        Raises:
            InstallError: If the copy is missing or invalid.
        """
        path = self.copy_path(record)
        if not path.is_dir():
            raise InstallError(
                f"Cannot load installed plugin '{record.ref}': no copy at {path} "
                f"(run 'bazaar plugin install {record.ref}' to restore it)"
            )
        try:
            plugin = self._loader.load(path, marketplace=record.marketplace)
        except (FileNotFoundError, ValueError) as e:
            raise InstallError(f"Cannot load installed plugin '{record.ref}': {e}") from e
        plugin.enabled = record.enabled
        return plugin

    def enabled_plugins(self, exclude: str | None = None) -> list[manifest.Plugin]:
        """
        Load every enabled plugin of this scope.

        Plugins whose copy cannot be loaded are skipped and logged.

        Args:
            exclude: Ref to leave out (the plugin being checked).
        """
        plugins: list[manifest.Plugin] = []
        for record in self._store.enabled():
            if record.ref == exclude:
                continue
            try:
                plugins.append(self.load_installed(record))
            except InstallError as e:
                _logger.warning("%s", e)
        return plugins

    def conflict_candidates(self, exclude: str) -> list[manifest.Plugin]:
        """Enabled plugins of this scope and of every peer scope, except `exclude`."""
        candidates = self.enabled_plugins(exclude=exclude)
        for peer in self._peers:
            candidates.extend(peer.enabled_plugins(exclude=exclude))
        return candidates

    def installed_plugins(self) -> list[InstalledPlugin]:
        """Installation records joined with their loaded contents."""
        installed: list[InstalledPlugin] = []
        for record in self._store.list():
            try:
                installed.append(InstalledPlugin(record, self.load_installed(record)))
            except InstallError as e:
                installed.append(InstalledPlugin(record, error=str(e)))
        return installed

    def _load_source(
        self,
        resolved: manager.ResolvedPlugin,
        *,
        refresh: bool = False,
    ) -> manifest.Plugin:
        """Locate and load a plugin from its marketplace."""
        source_dir = self._marketplaces.plugin_path(resolved, refresh=refresh)
        fallback = None if resolved.entry.strict else resolved.entry.to_manifest()
        try:
            plugin = self._loader.load(
                source_dir,
                fallback=fallback,
                marketplace=resolved.marketplace.name,
            )
        except (FileNotFoundError, ValueError) as e:
            raise InstallError(f"Cannot load plugin '{resolved.ref}': {e}") from e

        if plugin.name != resolved.entry.name:
            raise InstallError(
                f"Plugin at {source_dir} is named '{plugin.name}', "
                f"but marketplace lists it as '{resolved.entry.name}'"
            )
        return plugin

    def _copy_plugin(self, plugin: manifest.Plugin) -> _pathlib.Path:
        """
        Copy a plugin into the cache, replacing an existing copy.

        Plugins loaded with a marketplace-derived manifest get that
        manifest written into the copy, so the copy loads on its own.
        """
        target = self.cache_path(plugin.marketplace, plugin.name, plugin.version)
        if target.exists():
            _shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        _shutil.copytree(plugin.path, target, ignore=_shutil.ignore_patterns(".git"))

        manifest_path = target / constants.MANIFEST_DIR / constants.PLUGIN_MANIFEST_FILE
        if not manifest_path.exists():
            manifest_path.parent.mkdir(parents=True, exist_ok=True)
            data = plugin.manifest.model_dump(mode="json", exclude_none=True)
            manifest_path.write_text(_json.dumps(data, indent=2) + "\n", encoding="utf-8")
        return target

    @staticmethod
    def _is_current_copy(plugin: manifest.Plugin, copy: _pathlib.Path) -> bool:
        """Whether `copy` holds the same files as the plugin's source directory."""
        if not copy.is_dir():
            return False
        source_files = _plugin_files(plugin.path)
        copy_files = _plugin_files(copy)
        written = _pathlib.Path(constants.MANIFEST_DIR, constants.PLUGIN_MANIFEST_FILE)
        if written not in source_files:
            copy_files.discard(written)
        if source_files != copy_files:
            return False
        return all(
            _filecmp.cmp(plugin.path / rel, copy / rel, shallow=False) for rel in source_files
        )

    def _remove_copy(self, path: _pathlib.Path) -> None:
        """Delete a cached copy and prune empty parent directories."""
        if path.exists():
            _shutil.rmtree(path)
        parent = path.parent
        while parent != self._cache_dir and parent.is_relative_to(self._cache_dir):
            if not parent.exists() or any(parent.iterdir()):
                break
            parent.rmdir()
            parent = parent.parent

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def install(self, ref: str, *, force: bool = False) -> InstallResult:
        """
        Install a plugin from a known marketplace.

        Installing an already installed plugin is a no-op, unless its copy
        is missing on this machine (a record shared through the project
        scope): the copy is then restored and the record refreshed.

        Raises:
            MarketplaceError: If the reference cannot be resolved.
            SourceFetchError: If a remote plugin cannot be fetched.
            InstallError: If the plugin cannot be loaded.
            ConflictError: If it collides with enabled plugins (without force).
        """
        resolved = self._marketplaces.resolve(ref)
        record = self._store.get(resolved.ref)
        state = resolver.state_of(record)
        if record is not None:
            if self.copy_path(record).is_dir():
                return InstallResult(resolver.plan("install", resolved.ref, state), record)
            return self._restore(resolved, record, force=force)

        plugin = self._load_source(resolved)
        transition = resolver.plan(
            "install",
            resolved.ref,
            state,
            plugin=plugin,
            enabled_plugins=self.conflict_candidates(resolved.ref),
            force=force,
        )

        target = self._copy_plugin(plugin)
        record = records.InstallationRecord(
            plugin=plugin.name,
            marketplace=resolved.marketplace.name,
            enabled=True,
            version=plugin.version,
            install_path=str(target),
        )
        self._store.put(record)
        _logger.info("Installed %s %s into %s", resolved.ref, plugin.version, target)
        return InstallResult(transition, record)

    def _restore(
        self,
        resolved: manager.ResolvedPlugin,
        record: records.InstallationRecord,
        *,
        force: bool,
    ) -> InstallResult:
        """Re-create the missing copy of a recorded plugin from its marketplace."""
        plugin = self._load_source(resolved)
        transition = resolver.plan(
            "restore",
            record.ref,
            resolver.state_of(record),
            plugin=plugin if record.enabled else None,
            enabled_plugins=self.conflict_candidates(record.ref),
            force=force,
        )

        target = self._copy_plugin(plugin)
        restored = record.model_copy(
            update={
                "version": plugin.version,
                "install_path": str(target),
                "updated_at": clock.utc_now(),
            }
        )
        self._store.put(restored)
        _logger.info("Restored %s %s into %s", record.ref, plugin.version, target)
        return InstallResult(transition, restored)

    def uninstall(self, ref: str) -> InstallResult:
        """
        Remove a plugin's record and cached copy.

        Raises:
            InvalidTransitionError: If the plugin is not installed.
        """
        record = self.find_record(ref)
        transition = resolver.plan(
            "uninstall", record.ref if record else ref, resolver.state_of(record)
        )
        assert record is not None

        self._store.remove(record.ref)
        self._remove_copy(self.copy_path(record))
        _logger.info("Uninstalled %s", record.ref)
        return InstallResult(transition, None)

    def enable(self, ref: str, *, force: bool = False) -> InstallResult:
        """
        Enable an installed plugin.

        Raises:
            InvalidTransitionError: If the plugin is not installed.
            InstallError: If its cached copy cannot be loaded.
            ConflictError: If it collides with enabled plugins (without force).
        """
        record = self.find_record(ref)
        state = resolver.state_of(record)
        if record is None or state == "enabled":
            return InstallResult(resolver.plan("enable", ref, state), record)

        transition = resolver.plan(
            "enable",
            record.ref,
            state,
            plugin=self.load_installed(record),
            enabled_plugins=self.conflict_candidates(record.ref),
            force=force,
        )
        self._store.set_enabled(record.ref, True)
        return InstallResult(transition, self._store.get(record.ref))

    def disable(self, ref: str) -> InstallResult:
        """
        Disable an installed plugin.

        Raises:
            InvalidTransitionError: If the plugin is not installed.
        """
        record = self.find_record(ref)
        transition = resolver.plan(
            "disable", record.ref if record else ref, resolver.state_of(record)
        )
        if transition.changed:
            assert record is not None
            self._store.set_enabled(record.ref, False)
            record = self._store.get(record.ref)
        return InstallResult(transition, record)

    def update(
        self,
        ref: str,
        *,
        force: bool = False,
        refresh_marketplace: bool = True,
    ) -> InstallResult:
        """
        Re-install a plugin from its (refreshed) marketplace.

        The enabled flag is kept; the new version replaces the old copy.
        When the version and files are unchanged nothing is written and
        the result reports changed=False.

        Args:
            ref: Installed plugin reference.
            force: Turn conflicts of an enabled plugin into warnings.
            refresh_marketplace: Refresh the marketplace copy first.

        Raises:
            InvalidTransitionError: If the plugin is not installed.
            MarketplaceError: If its marketplace or entry is gone.
            SourceFetchError: If a refresh fails.
            InstallError: If the new version cannot be loaded.
            ConflictError: If the new version collides (without force).
        """
        record = self.find_record(ref)
        state = resolver.state_of(record)
        resolver.plan("update", record.ref if record else ref, state)
        assert record is not None

        if refresh_marketplace:
            self._marketplaces.update(record.marketplace)
        resolved = self._marketplaces.resolve(record.ref)
        plugin = self._load_source(resolved, refresh=True)

        current = self.copy_path(record)
        if plugin.version == record.version and self._is_current_copy(plugin, current):
            unchanged = resolver.Transition(record.ref, "update", state, state, changed=False)
            return InstallResult(unchanged, record)

        transition = resolver.plan(
            "update",
            record.ref,
            state,
            plugin=plugin if record.enabled else None,
            enabled_plugins=self.conflict_candidates(record.ref),
            force=force,
        )

        target = self._copy_plugin(plugin)
        if current != target:
            self._remove_copy(current)

        updated = record.model_copy(
            update={
                "version": plugin.version,
                "install_path": str(target),
                "updated_at": clock.utc_now(),
            }
        )
        self._store.put(updated)
        _logger.info("Updated %s from %s to %s", record.ref, record.version, plugin.version)
        return InstallResult(transition, updated)

    def uninstall_marketplace(self, marketplace: str) -> list[str]:
        """
        Uninstall every plugin installed from a marketplace.

        Returns:
            Refs of the uninstalled plugins.
        """
        removed: list[str] = []
        for record in self._store.for_marketplace(marketplace):
            self.uninstall(record.ref)
            removed.append(record.ref)
        return removed
