"""
Lifecycle transitions and conflict detection.

A plugin reference is in one of three states: not_installed, enabled or
disabled. plan() validates a requested action against the transition
table and, when the plugin would end up enabled, checks it against the
other enabled plugins for name collisions.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import bazaar.plugins.manifest as manifest

if _typing.TYPE_CHECKING:
    import bazaar.install.records as records

PluginState = _typing.Literal["not_installed", "enabled", "disabled"]
Action = _typing.Literal["install", "enable", "disable", "uninstall", "update", "restore"]
ConflictKind = _typing.Literal["plugin", "agent", "skill", "command"]

TRANSITIONS: dict[str, dict[str, PluginState]] = {
    "install": {"not_installed": "enabled"},
    "enable": {"disabled": "enabled"},
    "disable": {"enabled": "disabled"},
    "uninstall": {"enabled": "not_installed", "disabled": "not_installed"},
    "update": {"enabled": "enabled", "disabled": "disabled"},
    "restore": {"enabled": "enabled", "disabled": "disabled"},
}
"""Allowed transitions: action -> {from state: to state}."""

NO_OPS: dict[str, frozenset[str]] = {
    "install": frozenset({"enabled", "disabled"}),
    "enable": frozenset({"enabled"}),
    "disable": frozenset({"disabled"}),
}
"""States in which an action is accepted but changes nothing."""


class InvalidTransitionError(Exception):
    """Raised when an action is not allowed from the current state."""

    def __init__(self, ref: str, action: str, state: str) -> None:
        if state == "not_installed":
            message = f"Cannot {action} '{ref}': plugin is not installed"
        else:
            message = f"Cannot {action} '{ref}' while it is {state}"
        super().__init__(message)
        self.ref = ref
        self.action = action
        self.state = state


@_dataclasses.dataclass(frozen=True)
class Conflict:
    """A name collision between two plugins."""

    kind: ConflictKind
    """What collides: the plugin name itself or a component name."""

    name: str
    """The colliding name."""

    ref: str
    """Plugin being enabled."""

    other: str
    """Already-enabled plugin it collides with."""

    def __str__(self) -> str:
        if self.kind == "plugin":
            return f"plugin '{self.name}' is already enabled as {self.other}"
        return f"{self.kind} '{self.name}' is also provided by {self.other}"

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return _dataclasses.asdict(self)


class ConflictError(Exception):
    """Raised when enabling a plugin would collide with enabled plugins."""

    def __init__(self, ref: str, conflicts: list[Conflict]) -> None:
        details = "; ".join(str(c) for c in conflicts)
        super().__init__(f"Cannot enable '{ref}': {details} (use --force to override)")
        self.ref = ref
        self.conflicts = conflicts


@_dataclasses.dataclass
class Transition:
    """Outcome of planning an action."""

    ref: str
    action: str
    from_state: PluginState
    to_state: PluginState
    changed: bool
    conflicts: list[Conflict] = _dataclasses.field(default_factory=list)
    """Conflicts overridden with force (empty otherwise)."""

    @property
    def warnings(self) -> list[str]:
        return [str(c) for c in self.conflicts]

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ref": self.ref,
            "action": self.action,
            "from": self.from_state,
            "to": self.to_state,
            "changed": self.changed,
            "warnings": self.warnings,
        }


def state_of(record: records.InstallationRecord | None) -> PluginState:
    """State of a plugin given its installation record (if any)."""
    if record is None:
        return "not_installed"
    return "enabled" if record.enabled else "disabled"


def find_conflicts(
    plugin: manifest.Plugin,
    enabled_plugins: _typing.Iterable[manifest.Plugin],
) -> list[Conflict]:
    """
    Find name collisions between a plugin and already-enabled plugins.

    Plugins with the same ref as the candidate are ignored. A collision
    is either the same plugin name from another marketplace, or an
    agent, skill or command name shared with another plugin.
    """
    conflicts: list[Conflict] = []
    for other in enabled_plugins:
        if other.ref == plugin.ref:
            continue
        if other.name == plugin.name:
            conflicts.append(Conflict("plugin", plugin.name, plugin.ref, other.ref))
        for kind in manifest.COMPONENT_KINDS:
            shared = set(plugin.component_names(kind)) & set(other.component_names(kind))
            for name in sorted(shared):
                conflicts.append(Conflict(kind, name, plugin.ref, other.ref))
    return conflicts


def plan(
    action: Action,
    ref: str,
    state: PluginState,
    *,
    plugin: manifest.Plugin | None = None,
    enabled_plugins: _typing.Iterable[manifest.Plugin] = (),
    force: bool = False,
) -> Transition:
    """
    Validate an action and compute the resulting state.

    Args:
        action: Requested lifecycle action.
        ref: Plugin reference (plugin@marketplace).
        state: Current state of the plugin.
        plugin: Loaded plugin, used for conflict checks when the
            transition ends in "enabled".
        enabled_plugins: Other currently enabled plugins.
        force: Turn conflicts into warnings instead of errors.

    Returns:
        The planned Transition (changed=False for no-op requests).

    Raises:
        InvalidTransitionError: If the action is not allowed from state.
        ConflictError: If conflicts are found and force is False.
    """
    if state in NO_OPS.get(action, frozenset()):
        return Transition(ref, action, state, state, changed=False)

    targets = TRANSITIONS[action]
    if state not in targets:
        raise InvalidTransitionError(ref, action, state)
    to_state = targets[state]

    conflicts: list[Conflict] = []
    if to_state == "enabled" and plugin is not None:
        conflicts = find_conflicts(plugin, enabled_plugins)
        if conflicts and not force:
            raise ConflictError(ref, conflicts)

    return Transition(ref, action, state, to_state, changed=True, conflicts=conflicts)
