"""
Shared constants for Bazaar.

This module provides a single source of truth for file names and
default values that are used across multiple modules.
"""

# Manifest locations
MANIFEST_DIR = ".claude-plugin"
"""Directory holding plugin.json / marketplace.json."""

PLUGIN_MANIFEST_FILE = "plugin.json"
"""Plugin manifest file name (inside MANIFEST_DIR)."""

MARKETPLACE_MANIFEST_FILE = "marketplace.json"
"""Marketplace manifest file name (inside MANIFEST_DIR)."""

# Plugin component directories
AGENTS_DIR = "agents"
SKILLS_DIR = "skills"
COMMANDS_DIR = "commands"
SKILL_FILE = "SKILL.md"

# Name pattern shared by plugins, marketplaces and skills
NAME_PATTERN = r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$"
NAME_MAX_LENGTH = 64

# Project-local state directory
PROJECT_DIR = ".bazaar"

# State files
CONFIG_FILE = "config.yaml"
KNOWN_MARKETPLACES_FILE = "known_marketplaces.yaml"
INSTALLED_PLUGINS_FILE = "installed_plugins.yaml"

# Installation scopes
SCOPE_USER = "user"
SCOPE_PROJECT = "project"
SCOPES = (SCOPE_USER, SCOPE_PROJECT)

DEFAULT_PLUGIN_VERSION = "0.0.0"
"""Version recorded for plugins whose manifest omits one."""

DEFAULT_GIT_TIMEOUT = 120
"""Default timeout for git clone/pull (seconds)."""
