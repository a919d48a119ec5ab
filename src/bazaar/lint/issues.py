"""Lint issue type."""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

Severity = _typing.Literal["error", "warning"]


@_dataclasses.dataclass(frozen=True)
class LintIssue:
    """A single consistency problem found in a content pack."""

    severity: Severity
    path: str
    """File or directory the issue is about, relative to the linted root."""

    message: str
    code: str
    """Stable identifier of the check (e.g. "plugin-missing")."""

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self) -> str:
        return f"{self.path}: {self.severity}: {self.message} [{self.code}]"

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return _dataclasses.asdict(self)


def has_errors(issues: _typing.Iterable[LintIssue]) -> bool:
    """Whether any issue is an error."""
    return any(issue.is_error for issue in issues)
