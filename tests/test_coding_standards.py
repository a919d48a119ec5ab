"""
Tests that enforce coding standards.

Import conventions:
- modules are imported whole: 'import yaml as _yaml' for third-party and
  stdlib modules, 'import bazaar.x.y as y' for our own
- 'from X import Y' only in __init__.py re-exports, for __future__, and
  inside TYPE_CHECKING blocks

Error handling:
- no bare 'except:' clauses in source files
"""

import ast as _ast
import pathlib as _pathlib

import pytest as _pytest

SRC_DIR = _pathlib.Path(__file__).parent.parent / "src" / "bazaar"
TESTS_DIR = _pathlib.Path(__file__).parent.parent / "tests"
FIXTURES_DIR = TESTS_DIR / "fixtures"

INTERNAL_PACKAGE = "bazaar"


def _python_files(directory: _pathlib.Path) -> list[_pathlib.Path]:
    return sorted(p for p in directory.rglob("*.py") if not p.is_relative_to(FIXTURES_DIR))


def _is_type_checking_block(node: _ast.AST) -> bool:
    if not isinstance(node, _ast.If):
        return False
    test = node.test
    if isinstance(test, _ast.Name):
        return test.id == "TYPE_CHECKING"
    return isinstance(test, _ast.Attribute) and test.attr == "TYPE_CHECKING"


def _walk_outside_type_checking(tree: _ast.AST) -> list[_ast.AST]:
    """All nodes of a tree, skipping the bodies of TYPE_CHECKING blocks."""
    nodes: list[_ast.AST] = []
    pending: list[_ast.AST] = [tree]
    while pending:
        node = pending.pop()
        nodes.append(node)
        for child in _ast.iter_child_nodes(node):
            if _is_type_checking_block(child):
                assert isinstance(child, _ast.If)
                pending.extend(child.orelse)
                continue
            pending.append(child)
    return nodes


def find_import_violations(source: str) -> list[tuple[int, str]]:
    """
    Find imports breaking the whole-module convention.

    Returns:
        List of (line number, reason) tuples.
    """
    violations: list[tuple[int, str]] = []
    for node in _walk_outside_type_checking(_ast.parse(source)):
        if isinstance(node, _ast.ImportFrom):
            if node.module == "__future__":
                continue
            names = ", ".join(alias.name for alias in node.names)
            violations.append((node.lineno, f"from {node.module} import {names}"))
        elif isinstance(node, _ast.Import):
            for alias in node.names:
                internal = alias.name.split(".")[0] == INTERNAL_PACKAGE
                if internal or (alias.asname and alias.asname.startswith("_")):
                    continue
                violations.append(
                    (node.lineno, f"import {alias.name} (external modules need a _ alias)")
                )
    return violations


def find_bare_excepts(source: str) -> list[int]:
    """Line numbers of 'except:' clauses without an exception type."""
    return [
        node.lineno
        for node in _ast.walk(_ast.parse(source))
        if isinstance(node, _ast.ExceptHandler) and node.type is None
    ]


def _collect(paths: list[_pathlib.Path]) -> list[str]:
    found: list[str] = []
    for path in paths:
        if path.name == "__init__.py":
            continue
        for line, reason in find_import_violations(path.read_text(encoding="utf-8")):
            found.append(f"{path}:{line}: {reason}")
    return found


class TestImportStyle:
    """Import convention compliance."""

    def test_source_imports(self) -> None:
        violations = _collect(_python_files(SRC_DIR))
        if violations:
            _pytest.fail("Import convention violations:\n" + "\n".join(violations))

    def test_test_imports(self) -> None:
        violations = _collect(_python_files(TESTS_DIR))
        if violations:
            _pytest.fail("Import convention violations:\n" + "\n".join(violations))


class TestErrorHandling:
    """Exception handling compliance."""

    def test_no_bare_except_in_source(self) -> None:
        found = [
            f"{path}:{line}"
            for path in _python_files(SRC_DIR)
            for line in find_bare_excepts(path.read_text(encoding="utf-8"))
        ]
        assert found == []


class TestCheckers:
    """The checkers themselves."""

    def test_from_import_is_reported(self) -> None:
        assert find_import_violations("from pathlib import Path\n") == [
            (1, "from pathlib import Path")
        ]

    def test_future_import_is_allowed(self) -> None:
        assert find_import_violations("from __future__ import annotations\n") == []

    def test_type_checking_block_is_skipped(self) -> None:
        source = (
            "import typing as _typing\n"
            "\n"
            "if _typing.TYPE_CHECKING:\n"
            "    from bazaar.config import Settings\n"
            "\n"
            "from yaml import safe_load\n"
        )
        assert find_import_violations(source) == [(6, "from yaml import safe_load")]

    def test_unaliased_external_import_is_reported(self) -> None:
        source = "import yaml\nimport json as _json\nimport bazaar.lint as lint\n"
        assert [line for line, _ in find_import_violations(source)] == [1]

    def test_lazy_imports_are_checked(self) -> None:
        source = "def f():\n    from rich import console\n"
        assert [line for line, _ in find_import_violations(source)] == [2]

    def test_bare_except_is_found(self) -> None:
        source = (
            "try:\n    pass\nexcept:\n    pass\n\n"
            "try:\n    pass\nexcept ValueError:\n    pass\n"
        )
        assert find_bare_excepts(source) == [3]
