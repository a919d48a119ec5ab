"""
Plugin loading for Bazaar.

A plugin is a directory bundling content for an AI coding assistant:
- Agents (agents/*.md)
- Skills (skills/*/SKILL.md)
- Slash commands (commands/*.md)

Metadata lives in .claude-plugin/plugin.json.
"""

from bazaar.plugins.loader import PluginLoader, iter_component_paths, load_component
from bazaar.plugins.manifest import (
    COMPONENT_KINDS,
    Author,
    ComponentKind,
    Plugin,
    PluginManifest,
    load_manifest,
)

__all__ = [
    "Author",
    "COMPONENT_KINDS",
    "ComponentKind",
    "Plugin",
    "PluginLoader",
    "PluginManifest",
    "iter_component_paths",
    "load_component",
    "load_manifest",
]
