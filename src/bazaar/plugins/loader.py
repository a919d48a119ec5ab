"""
Plugin loading from directories.

PluginLoader reads a plugin directory, parses its manifest and every
agent, skill and command it contains.
"""

from __future__ import annotations

import collections as _collections
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import bazaar.constants as constants
import bazaar.content.agent as agent_module
import bazaar.content.command as command_module
import bazaar.content.skill as skill_module
import bazaar.plugins.manifest as manifest

_logger = _logging.getLogger(__name__)


def iter_component_paths(
    plugin: manifest.Plugin,
    kind: manifest.ComponentKind,
) -> _typing.Iterator[_pathlib.Path]:
    """
    Yield the files (agents, commands) or directories (skills) of one kind.

    Agents and commands are any *.md below their directories; skills are
    subdirectories holding a SKILL.md. Paths are yielded in sorted order.
    """
    for base in plugin.component_dirs(kind):
        if not base.is_dir():
            continue
        if kind == "skill":
            for skill_dir in sorted(base.iterdir()):
                if skill_dir.is_dir() and (skill_dir / constants.SKILL_FILE).is_file():
                    yield skill_dir
        else:
            for md_file in sorted(base.rglob("*.md")):
                if md_file.is_file():
                    yield md_file


def load_component(
    kind: manifest.ComponentKind,
    path: _pathlib.Path,
    plugin_name: str = "",
) -> agent_module.Agent | skill_module.Skill | command_module.Command:
    """
    Load a single component of the given kind.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the frontmatter is invalid.
    """
    if kind == "agent":
        return agent_module.load_agent(path, plugin_name)
    if kind == "skill":
        return skill_module.load_skill(path, plugin_name)
    return command_module.load_command(path, plugin_name)


class PluginLoader:
    """
    Loads plugins from directories.

    A plugin directory may contain:
    - .claude-plugin/plugin.json - Plugin manifest
    - agents/ - Agent definitions (*.md)
    - skills/ - Skill definitions (*/SKILL.md)
    - commands/ - Slash command templates (*.md)

    The manifest is required unless a fallback manifest is supplied
    (marketplace entries with strict: false).
    """

    def load(
        self,
        plugin_dir: _pathlib.Path,
        *,
        fallback: manifest.PluginManifest | None = None,
        marketplace: str = "",
        with_contents: bool = True,
    ) -> manifest.Plugin:
        """
        Load a plugin from a directory.

        Args:
            plugin_dir: Path to plugin directory.
            fallback: Manifest to use when plugin.json is absent.
            marketplace: Name of the marketplace providing the plugin.
            with_contents: Whether to parse agents, skills and commands.

        Returns:
            Loaded Plugin instance.

        Raises:
            FileNotFoundError: If the directory or the manifest is missing.
            ValueError: If manifest is invalid.
        """
        plugin_dir = plugin_dir.resolve()

        if not plugin_dir.is_dir():
            raise FileNotFoundError(f"Plugin directory not found: {plugin_dir}")

        manifest_path = plugin_dir / constants.MANIFEST_DIR / constants.PLUGIN_MANIFEST_FILE
        if manifest_path.exists() or fallback is None:
            plugin_manifest = manifest.load_manifest(manifest_path)
        else:
            _logger.debug("No plugin.json in %s, using marketplace entry", plugin_dir)
            plugin_manifest = fallback

        plugin = manifest.Plugin(
            manifest=plugin_manifest,
            path=plugin_dir,
            marketplace=marketplace,
        )
        if with_contents:
            self.load_contents(plugin)
        return plugin

    def load_contents(self, plugin: manifest.Plugin) -> manifest.Plugin:
        """
        Parse every agent, skill and command of a plugin.

        Invalid items are skipped and logged.

        Returns:
            The same plugin, with its content lists filled in.
        """
        plugin.agents = []
        plugin.skills = []
        plugin.commands = []

        for kind in manifest.COMPONENT_KINDS:
            items: list[_typing.Any] = getattr(plugin, f"{kind}s")
            for path in iter_component_paths(plugin, kind):
                try:
                    items.append(load_component(kind, path, plugin.name))
                except (FileNotFoundError, ValueError) as e:
                    _logger.warning("Skipping invalid %s in %s: %s", kind, plugin.name, e)

        _logger.debug(
            "Loaded plugin %s: %d agents, %d skills, %d commands",
            plugin.name,
            len(plugin.agents),
            len(plugin.skills),
            len(plugin.commands),
        )
        return plugin

    def validate(
        self,
        plugin_dir: _pathlib.Path,
        *,
        fallback: manifest.PluginManifest | None = None,
    ) -> list[str]:
        """
        Validate a plugin directory and return any warnings.

        Checks that:
        - the manifest exists and is valid
        - declared extra component paths exist
        - every agent, skill and command parses
        - component names are unique per kind
        - skill names match their directories

        Args:
            plugin_dir: Path to plugin directory.
            fallback: Manifest to use when plugin.json is absent.

        Returns:
            List of warning messages (empty if fully valid).

        Raises:
            FileNotFoundError: If the manifest doesn't exist.
            ValueError: If manifest is invalid.
        """
        plugin = self.load(plugin_dir, fallback=fallback, with_contents=False)
        warnings: list[str] = []

        for kind in manifest.COMPONENT_KINDS:
            declared: list[str] = getattr(plugin.manifest, f"{kind}s")
            for rel in declared:
                if not (plugin.path / rel).exists():
                    warnings.append(f"Declared {kind} path not found: {rel}")

            names: _collections.Counter[str] = _collections.Counter()
            for path in iter_component_paths(plugin, kind):
                rel_path = (
                    path.relative_to(plugin.path) if path.is_relative_to(plugin.path) else path
                )
                try:
                    item = load_component(kind, path, plugin.name)
                except (FileNotFoundError, ValueError) as e:
                    warnings.append(f"Invalid {kind} {rel_path}: {e}")
                    continue
                names[item.name] += 1
                if isinstance(item, skill_module.Skill) and not item.matches_directory:
                    warnings.append(
                        f"Skill name '{item.name}' does not match directory '{path.name}'"
                    )

            for name, count in sorted(names.items()):
                if count > 1:
                    warnings.append(f"Duplicate {kind} name '{name}' ({count} definitions)")

        return warnings
