"""
Known-marketplace store.

Records every added marketplace in known_marketplaces.yaml:

    team-tools:
      source: {kind: github, location: acme/team-tools, ref: null}
      install_location: ~/.config/bazaar/marketplaces/team-tools
      last_updated: "2026-01-01T00:00:00+00:00"
"""

from __future__ import annotations

import logging as _logging
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import bazaar.marketplace.sources as sources
import bazaar.utils.clock as clock

_logger = _logging.getLogger(__name__)


class KnownMarketplace(_pydantic.BaseModel):
    """One entry of the known-marketplace store."""

    name: str
    source: sources.MarketplaceSource
    install_location: str
    last_updated: str = _pydantic.Field(default_factory=clock.utc_now)

    @property
    def path(self) -> _pathlib.Path:
        """Local copy of the marketplace."""
        return _pathlib.Path(self.install_location)

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json")


class KnownMarketplaces:
    """
    YAML-backed store of added marketplaces.

    A missing or unreadable file is treated as an empty store.
    """

    def __init__(self, path: _pathlib.Path) -> None:
        self._path = path
        self._entries: dict[str, KnownMarketplace] = {}
        self._load_state()

    @property
    def path(self) -> _pathlib.Path:
        """Location of the store file."""
        return self._path

    def _load_state(self) -> None:
        if not self._path.exists():
            return

        try:
            data = _yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, _yaml.YAMLError) as e:
            _logger.warning("Ignoring unreadable marketplace store %s: %s", self._path, e)
            return

        if not isinstance(data, dict):
            _logger.warning("Ignoring malformed marketplace store %s", self._path)
            return

        for name, entry in data.items():
            if not isinstance(entry, dict):
                _logger.warning("Skipping malformed marketplace record '%s'", name)
                continue
            try:
                self._entries[str(name)] = KnownMarketplace.model_validate(
                    {**entry, "name": str(name)}
                )
            except _pydantic.ValidationError as e:
                _logger.warning("Skipping invalid marketplace record '%s': %s", name, e)

    def _save_state(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            name: entry.model_dump(mode="json", exclude={"name"})
            for name, entry in sorted(self._entries.items())
        }
        self._path.write_text(
            _yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
            encoding="utf-8",
        )

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def names(self) -> list[str]:
        """Sorted names of known marketplaces."""
        return sorted(self._entries)

    def list(self) -> list[KnownMarketplace]:
        """Known marketplaces, sorted by name."""
        return [self._entries[name] for name in self.names()]

    def get(self, name: str) -> KnownMarketplace | None:
        """Get a marketplace record by name."""
        return self._entries.get(name)

    def add(self, entry: KnownMarketplace) -> None:
        """Add or replace a marketplace record."""
        self._entries[entry.name] = entry
        self._save_state()

    def remove(self, name: str) -> bool:
        """
        Remove a marketplace record.

        Returns:
            True if a record was removed, False if it was not known.
        """
        if self._entries.pop(name, None) is None:
            return False
        self._save_state()
        return True

    def touch(self, name: str) -> None:
        """Mark a marketplace as refreshed now."""
        entry = self._entries.get(name)
        if entry is None:
            return
        self._entries[name] = entry.model_copy(update={"last_updated": clock.utc_now()})
        self._save_state()
