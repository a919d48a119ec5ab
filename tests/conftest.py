"""
Shared pytest fixtures for Bazaar tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import shutil as _shutil
import typing as _typing

import click.testing as _click_testing
import pytest as _pytest

import bazaar.config as config
import bazaar.install as install
import bazaar.marketplace as marketplace

FIXTURES_DIR = _pathlib.Path(__file__).parent / "fixtures"
SAMPLE_MARKETPLACE = FIXTURES_DIR / "marketplaces" / "sample"

# =============================================================================
# Environment Isolation
# =============================================================================


@_pytest.fixture(autouse=True)
def isolated_env(
    tmp_path: _pathlib.Path,
    monkeypatch: _pytest.MonkeyPatch,
) -> dict[str, _pathlib.Path]:
    """
    Point every Bazaar path at the test's temporary directory.

    Clears BAZAAR_* variables from the real environment, then sets the
    config directory and project root so no test touches ~/.config.
    """
    for key in list(_os.environ):
        if key.startswith("BAZAAR_"):
            monkeypatch.delenv(key)

    config_dir = tmp_path / "config"
    project_root = tmp_path / "project"
    project_root.mkdir()
    monkeypatch.setenv("BAZAAR_CONFIG_DIR", str(config_dir))
    monkeypatch.setenv("BAZAAR_PROJECT_ROOT", str(project_root))
    return {"config_dir": config_dir, "project_root": project_root}


@_pytest.fixture
def settings() -> config.Settings:
    """Settings built from the isolated environment."""
    return config.Settings.construct_without_dotenv()


# =============================================================================
# Marketplace Fixtures
# =============================================================================


@_pytest.fixture
def sample_marketplace(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """A writable copy of the sample marketplace."""
    target = tmp_path / "sources" / "sample"
    _shutil.copytree(SAMPLE_MARKETPLACE, target)
    return target


def _write_markdown(path: _pathlib.Path, frontmatter: dict[str, _typing.Any], body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["---"]
    for key, value in frontmatter.items():
        lines.append(f"{key}: {_json.dumps(value)}")
    lines.append("---")
    lines.append("")
    lines.append(body)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


@_pytest.fixture
def plugin_factory() -> _typing.Callable[..., _pathlib.Path]:
    """
    Factory writing a plugin directory.

    Usage:
        plugin_dir = plugin_factory(root, "linter", agents=["lint-bot"])
    """

    def _create(
        parent: _pathlib.Path,
        name: str,
        *,
        version: str = "1.0.0",
        agents: _typing.Sequence[str] = (),
        skills: _typing.Sequence[str] = (),
        commands: _typing.Sequence[str] = (),
        with_manifest: bool = True,
    ) -> _pathlib.Path:
        plugin_dir = parent / name
        plugin_dir.mkdir(parents=True, exist_ok=True)
        if with_manifest:
            manifest_dir = plugin_dir / ".claude-plugin"
            manifest_dir.mkdir(exist_ok=True)
            (manifest_dir / "plugin.json").write_text(
                _json.dumps({"name": name, "version": version, "description": f"{name} plugin"}),
                encoding="utf-8",
            )
        for agent in agents:
            _write_markdown(
                plugin_dir / "agents" / f"{agent}.md",
                {"name": agent, "description": f"The {agent} agent"},
                f"You are {agent}.",
            )
        for skill in skills:
            _write_markdown(
                plugin_dir / "skills" / skill / "SKILL.md",
                {"name": skill, "description": f"The {skill} skill"},
                f"Instructions for {skill}.",
            )
        for command in commands:
            _write_markdown(
                plugin_dir / "commands" / f"{command}.md",
                {"description": f"The {command} command"},
                "Run with $ARGUMENTS.",
            )
        return plugin_dir

    return _create


@_pytest.fixture
def marketplace_factory(
    tmp_path: _pathlib.Path,
    plugin_factory: _typing.Callable[..., _pathlib.Path],
) -> _typing.Callable[..., _pathlib.Path]:
    """
    Factory writing a marketplace directory with local plugins.

    Usage:
        root = marketplace_factory("other-tools", {"linter": {"agents": ["lint-bot"]}})
    """

    def _create(
        name: str,
        plugins: dict[str, dict[str, _typing.Any]],
        *,
        parent: _pathlib.Path | None = None,
    ) -> _pathlib.Path:
        root = (parent or tmp_path / "sources") / name
        entries = []
        for plugin_name, options in plugins.items():
            plugin_factory(root / "plugins", plugin_name, **options)
            entries.append(
                {
                    "name": plugin_name,
                    "source": f"./plugins/{plugin_name}",
                    "description": f"{plugin_name} plugin",
                    "version": options.get("version", "1.0.0"),
                }
            )
        manifest_dir = root / ".claude-plugin"
        manifest_dir.mkdir(parents=True, exist_ok=True)
        (manifest_dir / "marketplace.json").write_text(
            _json.dumps({"name": name, "plugins": entries}, indent=2),
            encoding="utf-8",
        )
        return root

    return _create


@_pytest.fixture
def manager(settings: config.Settings) -> marketplace.MarketplaceManager:
    """MarketplaceManager using the isolated config directory."""
    return marketplace.MarketplaceManager.from_settings(settings)


@_pytest.fixture
def installer(
    settings: config.Settings,
    manager: marketplace.MarketplaceManager,
) -> install.PluginInstaller:
    """User-scope PluginInstaller sharing the manager fixture."""
    return install.PluginInstaller(
        manager,
        install.InstallationStore(settings.installed_plugins_path("user"), "user"),
        settings.plugin_cache_dir / "user",
    )


# =============================================================================
# CLI Fixtures
# =============================================================================


@_pytest.fixture
def cli_runner() -> _click_testing.CliRunner:
    """Click test runner."""
    return _click_testing.CliRunner()
