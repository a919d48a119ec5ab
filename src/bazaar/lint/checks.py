"""
Content-pack consistency checks.

lint_marketplace() checks a marketplace repository end to end:
- the marketplace manifest exists, is valid JSON and matches the schema
- plugin names are unique
- every plugin directory referenced by a relative source exists
- every plugins/<name> referenced in top-level markdown exists
- plugin manifests are valid and match their marketplace entry
- every agent, skill and command has valid frontmatter
- component names are unique per kind within a plugin
- skill names match their directories, skill bodies stay short

lint_plugin() runs the plugin-level checks on a single plugin directory.
"""

from __future__ import annotations

import collections as _collections
import json as _json
import logging as _logging
import pathlib as _pathlib
import re as _re

import pydantic as _pydantic

import bazaar.constants as constants
import bazaar.content.skill as skill_module
import bazaar.lint.issues as issues
import bazaar.marketplace.manifest as marketplace_manifest
import bazaar.plugins.loader as loader
import bazaar.plugins.manifest as plugin_manifest

_logger = _logging.getLogger(__name__)

# Repo-relative references only; absolute and home paths never match.
_DOC_PLUGIN_REF_RE = _re.compile(r"(?<![\w.\-/~])(?:\./)?plugins/([a-z0-9][a-z0-9-]*)")


def _rel(path: _pathlib.Path, root: _pathlib.Path) -> str:
    try:
        return str(path.resolve().relative_to(root.resolve()))
    except ValueError:
        return str(path)


def _error(path: str, message: str, code: str) -> issues.LintIssue:
    return issues.LintIssue("error", path, message, code)


def _warning(path: str, message: str, code: str) -> issues.LintIssue:
    return issues.LintIssue("warning", path, message, code)


# =============================================================================
# Plugin checks
# =============================================================================


def _check_components(
    plugin: plugin_manifest.Plugin,
    root: _pathlib.Path,
) -> list[issues.LintIssue]:
    found: list[issues.LintIssue] = []

    for kind in plugin_manifest.COMPONENT_KINDS:
        declared: list[str] = getattr(plugin.manifest, f"{kind}s")
        for rel in declared:
            if not (plugin.path / rel).exists():
                found.append(
                    _warning(
                        _rel(plugin.manifest_path, root),
                        f"Declared {kind} path not found: {rel}",
                        "component-path-missing",
                    )
                )

        names: dict[str, list[str]] = _collections.defaultdict(list)
        for path in loader.iter_component_paths(plugin, kind):
            rel_path = _rel(path, root)
            try:
                item = loader.load_component(kind, path, plugin.name)
            except (FileNotFoundError, ValueError) as e:
                found.append(
                    _error(rel_path, f"Invalid {kind} frontmatter: {e}", "invalid-frontmatter")
                )
                continue

            names[item.name].append(rel_path)

            if isinstance(item, skill_module.Skill):
                if not item.matches_directory:
                    found.append(
                        _warning(
                            rel_path,
                            f"Skill name '{item.name}' does not match directory '{path.name}'",
                            "skill-name-mismatch",
                        )
                    )
                if item.exceeds_soft_limit:
                    found.append(
                        _warning(
                            _rel(item.skill_file, root),
                            f"Skill body has {item.body_line_count} lines "
                            f"(soft limit {skill_module.SKILL_BODY_SOFT_LIMIT})",
                            "skill-too-long",
                        )
                    )

        for name, paths in sorted(names.items()):
            if len(paths) > 1:
                found.append(
                    _error(
                        _rel(plugin.path, root),
                        f"Duplicate {kind} name '{name}' in {', '.join(paths)}",
                        "duplicate-component",
                    )
                )

    return found


def _check_plugin_dir(
    plugin_dir: _pathlib.Path,
    root: _pathlib.Path,
    *,
    entry: marketplace_manifest.PluginEntry | None = None,
) -> list[issues.LintIssue]:
    fallback = entry.to_manifest() if entry is not None and not entry.strict else None
    manifest_path = plugin_dir / constants.MANIFEST_DIR / constants.PLUGIN_MANIFEST_FILE

    try:
        plugin = loader.PluginLoader().load(plugin_dir, fallback=fallback, with_contents=False)
    except FileNotFoundError as e:
        return [_error(_rel(manifest_path, root), str(e), "plugin-manifest-missing")]
    except ValueError as e:
        return [_error(_rel(manifest_path, root), str(e), "plugin-manifest-invalid")]

    found: list[issues.LintIssue] = []
    if entry is not None and plugin.name != entry.name:
        found.append(
            _error(
                _rel(manifest_path, root),
                f"Plugin is named '{plugin.name}' but listed as '{entry.name}'",
                "plugin-name-mismatch",
            )
        )
    found.extend(_check_components(plugin, root))
    return found


def lint_plugin(plugin_dir: _pathlib.Path) -> list[issues.LintIssue]:
    """
    Lint a single plugin directory.

    Args:
        plugin_dir: Directory holding .claude-plugin/plugin.json.

    Returns:
        Issues found (empty if the plugin is consistent).
    """
    if not plugin_dir.is_dir():
        return [_error(str(plugin_dir), "Plugin directory not found", "plugin-missing")]
    return _check_plugin_dir(plugin_dir, plugin_dir)


# =============================================================================
# Marketplace checks
# =============================================================================


def _load_manifest(
    root: _pathlib.Path,
) -> tuple[marketplace_manifest.Marketplace | None, list[issues.LintIssue]]:
    """Load marketplace.json, reporting duplicate plugin names separately."""
    path = marketplace_manifest.get_manifest_path(root)
    rel_path = _rel(path, root)
    if not path.is_file():
        return None, [_error(rel_path, "Marketplace manifest not found", "manifest-missing")]

    try:
        data = _json.loads(path.read_text(encoding="utf-8"))
    except (OSError, _json.JSONDecodeError) as e:
        return None, [_error(rel_path, f"Invalid JSON: {e}", "manifest-invalid")]

    found: list[issues.LintIssue] = []
    plugins = data.get("plugins") if isinstance(data, dict) else None
    if isinstance(plugins, list):
        counts: _collections.Counter[str] = _collections.Counter()
        unique: list[object] = []
        for plugin in plugins:
            name = plugin.get("name") if isinstance(plugin, dict) else None
            if isinstance(name, str):
                counts[name] += 1
                if counts[name] > 1:
                    continue
            unique.append(plugin)
        for name, count in sorted(counts.items()):
            if count > 1:
                found.append(
                    _error(
                        rel_path,
                        f"Plugin name '{name}' is listed {count} times",
                        "duplicate-plugin",
                    )
                )
        data = {**data, "plugins": unique}

    try:
        manifest = marketplace_manifest.MarketplaceManifest.model_validate(data)
    except _pydantic.ValidationError as e:
        found.append(_error(rel_path, f"Invalid marketplace manifest: {e}", "manifest-invalid"))
        return None, found

    return marketplace_manifest.Marketplace(manifest=manifest, path=root.resolve()), found


def _check_documentation(root: _pathlib.Path) -> list[issues.LintIssue]:
    """Check plugins/<name> references in top-level markdown files."""
    found: list[issues.LintIssue] = []
    for doc in sorted(root.glob("*.md")):
        try:
            text = doc.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            found.append(_warning(_rel(doc, root), f"Cannot read file: {e}", "doc-unreadable"))
            continue

        reported: set[str] = set()
        for match in _DOC_PLUGIN_REF_RE.finditer(text):
            name = match.group(1)
            if name in reported:
                continue
            if not (root / "plugins" / name).is_dir():
                reported.add(name)
                found.append(
                    _error(
                        _rel(doc, root),
                        f"References missing plugin directory plugins/{name}",
                        "doc-reference-missing",
                    )
                )
    return found


def lint_marketplace(root: _pathlib.Path) -> list[issues.LintIssue]:
    """
    Lint a marketplace repository.

    Args:
        root: Marketplace root (holding .claude-plugin/marketplace.json).

    Returns:
        Issues found, in check order (empty if the pack is consistent).
    """
    marketplace, found = _load_manifest(root)

    if marketplace is not None:
        for entry in marketplace.plugins:
            if not entry.is_local:
                _logger.debug("Skipping remote plugin %s", entry.name)
                continue
            try:
                plugin_dir = marketplace.local_plugin_path(entry)
            except ValueError as e:
                found.append(
                    _error(
                        _rel(marketplace_manifest.get_manifest_path(root), root),
                        str(e),
                        "source-escapes",
                    )
                )
                continue
            if not plugin_dir.is_dir():
                found.append(
                    _error(
                        _rel(plugin_dir, root),
                        f"Plugin directory for '{entry.name}' not found",
                        "plugin-missing",
                    )
                )
                continue
            found.extend(_check_plugin_dir(plugin_dir, root, entry=entry))

    found.extend(_check_documentation(root))
    return found


def lint_path(path: _pathlib.Path) -> list[issues.LintIssue]:
    """
    Lint a marketplace or a single plugin, whichever the directory holds.

    Directories without a plugin manifest are linted as marketplaces.
    """
    plugin_manifest_path = path / constants.MANIFEST_DIR / constants.PLUGIN_MANIFEST_FILE
    if (
        plugin_manifest_path.is_file()
        and not marketplace_manifest.get_manifest_path(path).is_file()
    ):
        return lint_plugin(path)
    return lint_marketplace(path)
