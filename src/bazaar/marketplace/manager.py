"""
Marketplace manager.

Adds, removes and refreshes local copies of marketplaces and resolves
plugin references ("plugin" or "plugin@marketplace") against them.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import shutil as _shutil
import tempfile as _tempfile
import typing as _typing

import bazaar.constants as constants
import bazaar.marketplace.known as known
import bazaar.marketplace.manifest as manifest
import bazaar.marketplace.sources as sources

if _typing.TYPE_CHECKING:
    import bazaar.config as config

_logger = _logging.getLogger(__name__)


class MarketplaceError(Exception):
    """Raised when a marketplace operation fails."""

    pass


class MarketplaceNotFoundError(MarketplaceError):
    """Raised when a marketplace name is not known."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Marketplace '{name}' not found")
        self.name = name


class PluginNotFoundError(MarketplaceError):
    """Raised when no known marketplace lists a plugin."""

    def __init__(self, ref: str) -> None:
        super().__init__(f"Plugin '{ref}' not found in any marketplace")
        self.ref = ref


class AmbiguousPluginError(MarketplaceError):
    """Raised when an unqualified plugin name is listed by several marketplaces."""

    def __init__(self, name: str, marketplaces: list[str]) -> None:
        choices = ", ".join(f"{name}@{m}" for m in marketplaces)
        super().__init__(
            f"Plugin '{name}' found in multiple marketplaces; use one of: {choices}"
        )
        self.name = name
        self.marketplaces = marketplaces


def parse_ref(ref: str) -> tuple[str, str | None]:
    """
    Split "plugin@marketplace" into its parts.

    Returns:
        Tuple of (plugin name, marketplace name or None).

    Raises:
        ValueError: If either part is empty.
    """
    ref = ref.strip()
    if "@" not in ref:
        if not ref:
            raise ValueError("Empty plugin reference")
        return ref, None
    name, marketplace = ref.rsplit("@", 1)
    if not name or not marketplace:
        raise ValueError(f"Invalid plugin reference: {ref}")
    return name, marketplace


@_dataclasses.dataclass
class ResolvedPlugin:
    """A plugin entry together with the marketplace listing it."""

    marketplace: manifest.Marketplace
    entry: manifest.PluginEntry

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def ref(self) -> str:
        """Fully qualified reference: plugin@marketplace."""
        return f"{self.entry.name}@{self.marketplace.name}"

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ref": self.ref,
            "marketplace": self.marketplace.name,
            **self.entry.to_dict(),
        }


class MarketplaceManager:
    """
    Manages the marketplaces known to this installation.

    Each marketplace is copied (or cloned) into marketplaces_dir/<name>
    and recorded in the known-marketplace store.
    """

    def __init__(
        self,
        marketplaces_dir: _pathlib.Path,
        store: known.KnownMarketplaces,
        *,
        plugin_sources_dir: _pathlib.Path | None = None,
        git_timeout: int = constants.DEFAULT_GIT_TIMEOUT,
    ) -> None:
        """
        Initialize the manager.

        Args:
            marketplaces_dir: Directory holding marketplace copies.
            store: Known-marketplace store.
            plugin_sources_dir: Directory for plugins hosted outside their
                marketplace (defaults to a sibling of marketplaces_dir).
            git_timeout: Timeout for git commands, in seconds.
        """
        self._marketplaces_dir = marketplaces_dir
        self._store = store
        self._plugin_sources_dir = plugin_sources_dir or (
            marketplaces_dir.parent / "plugins" / "sources"
        )
        self._git_timeout = git_timeout

    @classmethod
    def from_settings(cls, settings: config.Settings) -> MarketplaceManager:
        """Create a manager using the paths configured in settings."""
        return cls(
            settings.marketplaces_dir,
            known.KnownMarketplaces(settings.known_marketplaces_path),
            plugin_sources_dir=settings.plugin_sources_dir,
            git_timeout=settings.git_timeout,
        )

    @property
    def store(self) -> known.KnownMarketplaces:
        """The known-marketplace store."""
        return self._store

    # =========================================================================
    # Add / remove / update
    # =========================================================================

    def add(self, location: str, ref: str | None = None) -> manifest.Marketplace:
        """
        Add a marketplace.

        The source is fetched into a staging directory first; it is only
        moved into place once its manifest loads.

        Args:
            location: Directory path, "owner/repo" shorthand or git URL.
            ref: Optional branch or tag to check out.

        Returns:
            The added marketplace.

        Raises:
            ValueError: If the location is not recognized.
            SourceFetchError: If the fetch fails.
            MarketplaceError: If the manifest is invalid or the name is taken.
        """
        source = sources.parse_source(location, ref)
        self._marketplaces_dir.mkdir(parents=True, exist_ok=True)
        staging_root = _pathlib.Path(
            _tempfile.mkdtemp(prefix=".add-", dir=self._marketplaces_dir)
        )
        try:
            staged = staging_root / "marketplace"
            sources.fetch_source(source, staged, timeout=self._git_timeout)
            try:
                loaded = manifest.load_marketplace(staged)
            except (FileNotFoundError, ValueError) as e:
                raise MarketplaceError(f"Invalid marketplace at {source}: {e}") from e

            name = loaded.name
            if name in self._store:
                raise MarketplaceError(f"Marketplace '{name}' is already added")

            target = self._marketplaces_dir / name
            if target.exists():
                _logger.debug("Replacing unrecorded marketplace copy at %s", target)
                _shutil.rmtree(target)
            _shutil.move(str(staged), str(target))
        finally:
            _shutil.rmtree(staging_root, ignore_errors=True)

        self._store.add(
            known.KnownMarketplace(
                name=name,
                source=source,
                install_location=str(target),
            )
        )
        _logger.info("Added marketplace %s from %s", name, source)
        return manifest.load_marketplace(target)

    def remove(self, name: str) -> None:
        """
        Remove a marketplace and its local copy.

        Installation records are not touched here; see
        PluginInstaller.uninstall_marketplace.

        Raises:
            MarketplaceNotFoundError: If the marketplace is not known.
        """
        entry = self._store.get(name)
        if entry is None:
            raise MarketplaceNotFoundError(name)

        if entry.path.exists():
            _shutil.rmtree(entry.path)
        plugin_sources = self._plugin_sources_dir / name
        if plugin_sources.exists():
            _shutil.rmtree(plugin_sources)
        self._store.remove(name)
        _logger.info("Removed marketplace %s", name)

    def update(self, name: str | None = None) -> list[str]:
        """
        Refresh one marketplace, or all of them.

        Args:
            name: Marketplace to refresh (None for all).

        Returns:
            Names of the refreshed marketplaces.

        Raises:
            MarketplaceNotFoundError: If the named marketplace is not known.
            SourceFetchError: If a refresh fails.
            MarketplaceError: If a refreshed manifest is invalid.
        """
        if name is not None:
            entry = self._store.get(name)
            if entry is None:
                raise MarketplaceNotFoundError(name)
            entries = [entry]
        else:
            entries = self._store.list()

        updated: list[str] = []
        for entry in entries:
            _logger.debug("Refreshing marketplace %s from %s", entry.name, entry.source)
            sources.refresh_source(entry.source, entry.path, timeout=self._git_timeout)
            try:
                manifest.load_marketplace(entry.path)
            except (FileNotFoundError, ValueError) as e:
                raise MarketplaceError(
                    f"Marketplace '{entry.name}' is invalid after update: {e}"
                ) from e
            self._store.touch(entry.name)
            updated.append(entry.name)
        return updated

    def sync_declared(self, declared: _typing.Mapping[str, str]) -> list[str]:
        """
        Add every declared marketplace that is not known yet.

        Declared marketplaces come from team or project configuration
        (name -> location). Every declaration is attempted; failures are
        reported together at the end.

        Returns:
            Names of the marketplaces added.

        Raises:
            MarketplaceError: If any declared marketplace could not be added.
        """
        added: list[str] = []
        failures: list[str] = []
        for declared_name, location in sorted(declared.items()):
            if declared_name in self._store:
                continue
            try:
                marketplace = self.add(location)
            except (ValueError, sources.SourceFetchError, MarketplaceError) as e:
                _logger.warning("Could not add declared marketplace %s: %s", declared_name, e)
                failures.append(f"{declared_name}: {e}")
                continue
            if marketplace.name != declared_name:
                _logger.warning(
                    "Declared marketplace '%s' is named '%s' in its manifest",
                    declared_name,
                    marketplace.name,
                )
            added.append(marketplace.name)

        if failures:
            raise MarketplaceError(
                "Failed to add declared marketplaces: " + "; ".join(failures)
            )
        return added

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, name: str) -> manifest.Marketplace:
        """
        Load a known marketplace.

        Raises:
            MarketplaceNotFoundError: If the marketplace is not known.
            MarketplaceError: If its local copy is missing or invalid.
        """
        entry = self._store.get(name)
        if entry is None:
            raise MarketplaceNotFoundError(name)
        try:
            return manifest.load_marketplace(entry.path)
        except (FileNotFoundError, ValueError) as e:
            raise MarketplaceError(f"Cannot load marketplace '{name}': {e}") from e

    def list(self) -> list[manifest.Marketplace]:
        """
        Load every known marketplace.

        Marketplaces whose local copy is missing or invalid are skipped
        and logged.
        """
        marketplaces: list[manifest.Marketplace] = []
        for name in self._store.names():
            try:
                marketplaces.append(self.get(name))
            except MarketplaceError as e:
                _logger.warning("Skipping marketplace: %s", e)
        return marketplaces

    def resolve(self, ref: str) -> ResolvedPlugin:
        """
        Find the marketplace entry for a plugin reference.

        Args:
            ref: "plugin" or "plugin@marketplace".

        Raises:
            ValueError: If the reference is malformed.
            MarketplaceNotFoundError: If the named marketplace is not known.
            PluginNotFoundError: If no marketplace lists the plugin.
            AmbiguousPluginError: If several marketplaces list an unqualified name.
        """
        name, marketplace_name = parse_ref(ref)

        if marketplace_name is not None:
            marketplace = self.get(marketplace_name)
            entry = marketplace.manifest.get_plugin(name)
            if entry is None:
                raise PluginNotFoundError(ref)
            return ResolvedPlugin(marketplace=marketplace, entry=entry)

        matches: list[ResolvedPlugin] = []
        for marketplace in self.list():
            entry = marketplace.manifest.get_plugin(name)
            if entry is not None:
                matches.append(ResolvedPlugin(marketplace=marketplace, entry=entry))

        if not matches:
            raise PluginNotFoundError(ref)
        if len(matches) > 1:
            raise AmbiguousPluginError(name, [m.marketplace.name for m in matches])
        return matches[0]

    def plugin_path(
        self,
        resolved: ResolvedPlugin,
        *,
        refresh: bool = False,
    ) -> _pathlib.Path:
        """
        Locate the directory of a plugin on disk.

        Relative sources resolve inside the marketplace copy. Remote
        sources are fetched into the plugin sources directory on first
        use (and refreshed when asked).

        Raises:
            MarketplaceError: If a relative source escapes the marketplace.
            SourceFetchError: If a remote source cannot be fetched.
        """
        entry = resolved.entry
        if isinstance(entry.source, str):
            try:
                return resolved.marketplace.local_plugin_path(entry)
            except ValueError as e:
                raise MarketplaceError(str(e)) from e

        remote = entry.source
        source = sources.MarketplaceSource(kind="git", location=remote.url, ref=remote.ref)
        target = self._plugin_sources_dir / resolved.marketplace.name / entry.name
        if not target.exists():
            _logger.debug("Fetching plugin %s from %s", resolved.ref, source)
            sources.fetch_source(source, target, timeout=self._git_timeout)
        elif refresh:
            sources.refresh_source(source, target, timeout=self._git_timeout)
        return target

    def search(self, query: str, max_results: int = 10) -> list[ResolvedPlugin]:
        """
        Find plugins matching a free-text query.

        Scoring is keyword based: a name hit weighs most, then keywords,
        tags and category, then description words.

        Args:
            query: Search text.
            max_results: Maximum number of results.

        Returns:
            Matching plugins, best match first.
        """
        query_lower = query.lower().strip()
        if not query_lower:
            return []
        terms = [t for t in query_lower.split() if t]

        scored: list[tuple[ResolvedPlugin, int]] = []
        for marketplace in self.list():
            for entry in marketplace.plugins:
                score = 0

                if entry.name in query_lower or entry.name.replace("-", " ") in query_lower:
                    score += 10
                elif any(term in entry.name for term in terms):
                    score += 5

                labels = {k.lower() for k in [*entry.keywords, *entry.tags]}
                if entry.category:
                    labels.add(entry.category.lower())
                score += 3 * len(labels.intersection(terms))

                for word in entry.description.lower().split():
                    if len(word) > 3 and word in query_lower:
                        score += 1

                if score > 0:
                    scored.append((ResolvedPlugin(marketplace=marketplace, entry=entry), score))

        scored.sort(key=lambda item: (-item[1], item[0].ref))
        return [resolved for resolved, _ in scored[:max_results]]
