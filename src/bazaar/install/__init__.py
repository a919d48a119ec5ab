"""
Plugin installation for Bazaar.

- records: per-scope installation records (installed_plugins.yaml)
- resolver: lifecycle transitions and conflict detection
- installer: install / uninstall / enable / disable / update
"""

from bazaar.install.installer import (
    InstalledPlugin,
    InstallError,
    InstallResult,
    PluginInstaller,
)
from bazaar.install.records import InstallationRecord, InstallationStore
from bazaar.install.resolver import (
    TRANSITIONS,
    Conflict,
    ConflictError,
    InvalidTransitionError,
    PluginState,
    Transition,
    find_conflicts,
    plan,
    state_of,
)

__all__ = [
    # Records
    "InstallationRecord",
    "InstallationStore",
    # Resolver
    "TRANSITIONS",
    "Conflict",
    "ConflictError",
    "InvalidTransitionError",
    "PluginState",
    "Transition",
    "find_conflicts",
    "plan",
    "state_of",
    # Installer
    "InstallError",
    "InstallResult",
    "InstalledPlugin",
    "PluginInstaller",
]
