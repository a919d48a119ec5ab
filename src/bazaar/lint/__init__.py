"""
Content-pack linting for Bazaar.

Checks a marketplace repository (or a single plugin) for broken
references, invalid frontmatter and name collisions.
"""

from bazaar.lint.checks import lint_marketplace, lint_path, lint_plugin
from bazaar.lint.issues import LintIssue, Severity, has_errors

__all__ = [
    "LintIssue",
    "Severity",
    "has_errors",
    "lint_marketplace",
    "lint_path",
    "lint_plugin",
]
