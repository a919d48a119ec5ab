"""
Tests for the bazaar CLI.

Commands run against the isolated config directory from conftest; the
sample marketplace is added from a local copy.
"""

import json as _json
import pathlib as _pathlib
import shutil as _shutil
import typing as _typing

import click.testing as _click_testing
import pytest as _pytest

import bazaar
import bazaar.cli as cli

Factory = _typing.Callable[..., _pathlib.Path]


def _run(runner: _click_testing.CliRunner, *args: str) -> _click_testing.Result:
    return runner.invoke(cli.cli, list(args))


@_pytest.fixture
def with_sample(
    cli_runner: _click_testing.CliRunner,
    sample_marketplace: _pathlib.Path,
) -> _pathlib.Path:
    """Add the sample marketplace through the CLI."""
    result = _run(cli_runner, "marketplace", "add", str(sample_marketplace))
    assert result.exit_code == 0, result.output
    return sample_marketplace


class TestCLIBasics:
    """Basic CLI behavior."""

    def test_help_lists_command_groups(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "--help")
        assert result.exit_code == 0
        for group in ["marketplace", "plugin", "content", "lint", "config"]:
            assert group in result.output, f"Command '{group}' missing from help"

    def test_version(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "--version")
        assert result.exit_code == 0
        assert bazaar.__version__ in result.output

    def test_invalid_scope_rejected(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "--scope", "global", "plugin", "list")
        assert result.exit_code == 2

    def test_malformed_config_is_reported(
        self,
        cli_runner: _click_testing.CliRunner,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        path = isolated_env["config_dir"] / "config.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("[not, a, mapping]\n")

        result = _run(cli_runner, "config", "show")

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestMarketplaceCommands:
    """Tests for bazaar marketplace ..."""

    def test_add_reports_name_and_count(
        self,
        cli_runner: _click_testing.CliRunner,
        sample_marketplace: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "add", str(sample_marketplace))
        assert result.exit_code == 0
        assert "✓ Added marketplace 'sample-tools' (2 plugins)" in result.output

    def test_add_twice_fails(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "add", str(with_sample))
        assert result.exit_code == 1
        assert "Error: Marketplace 'sample-tools' is already added" in result.output

    def test_add_json_error(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "marketplace", "add", "not a location", "--json")
        assert result.exit_code == 1
        assert "Unrecognized marketplace source" in _json.loads(result.stdout)["error"]

    def test_list(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "list")
        assert result.exit_code == 0
        assert "sample-tools" in result.output

        data = _json.loads(_run(cli_runner, "marketplace", "list", "--json").stdout)
        [entry] = data["marketplaces"]
        assert entry["name"] == "sample-tools"
        assert entry["plugins"] == ["reviewer", "docs-helper"]
        assert entry["source"]["kind"] == "local"

    def test_list_empty(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "marketplace", "list")
        assert result.exit_code == 0
        assert "No marketplaces added." in result.output

    def test_show(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "show", "sample-tools")
        assert result.exit_code == 0
        assert "Owner: Sample Team <team@example.com>" in result.output
        assert "docs-helper" in result.output

    def test_show_unknown(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "marketplace", "show", "nope")
        assert result.exit_code == 1
        assert "Marketplace 'nope' not found" in result.output

    def test_search(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "search", "docs", "--json")
        assert result.exit_code == 0
        data = _json.loads(result.stdout)
        assert [r["ref"] for r in data["results"]] == ["docs-helper@sample-tools"]

    def test_update(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "marketplace", "update")
        assert result.exit_code == 0
        assert "✓ Updated sample-tools" in result.output

    def test_sync_declared(
        self,
        cli_runner: _click_testing.CliRunner,
        sample_marketplace: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv(
            "BAZAAR_MARKETPLACES", _json.dumps({"sample-tools": str(sample_marketplace)})
        )

        first = _run(cli_runner, "marketplace", "sync")
        second = _run(cli_runner, "marketplace", "sync")

        assert "✓ Added marketplace 'sample-tools'" in first.output
        assert "already added" in second.output

    def test_remove_uninstalls_plugins(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        """Removing a marketplace uninstalls its plugins in every scope."""
        _run(cli_runner, "plugin", "install", "reviewer")
        _run(cli_runner, "--scope", "project", "plugin", "install", "docs-helper")

        result = _run(cli_runner, "marketplace", "remove", "sample-tools", "--json")

        assert result.exit_code == 0
        data = _json.loads(result.stdout)
        assert data["uninstalled"] == ["reviewer@sample-tools", "docs-helper@sample-tools"]
        listing = _run(cli_runner, "plugin", "list")
        assert "No plugins installed" in listing.output

    def test_remove_unknown(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "marketplace", "remove", "nope")
        assert result.exit_code == 1
        assert "Marketplace 'nope' not found" in result.output


class TestPluginCommands:
    """Tests for bazaar plugin ..."""

    def test_install(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "plugin", "install", "reviewer")
        assert result.exit_code == 0
        assert "✓ Installed reviewer@sample-tools 1.2.0 (user scope)" in result.output

        again = _run(cli_runner, "plugin", "install", "reviewer")
        assert "Plugin 'reviewer@sample-tools' is already installed." in again.output

    def test_install_unknown(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "plugin", "install", "ghost")
        assert result.exit_code == 1
        assert "Error: Plugin 'ghost' not found in any marketplace" in result.output

    def test_install_conflict_and_force(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
        marketplace_factory: Factory,
    ) -> None:
        other = marketplace_factory("other-tools", {"linter": {"agents": ["code-reviewer"]}})
        _run(cli_runner, "marketplace", "add", str(other))
        _run(cli_runner, "plugin", "install", "reviewer")

        blocked = _run(cli_runner, "plugin", "install", "linter")
        forced = _run(cli_runner, "plugin", "install", "linter", "--force")

        assert blocked.exit_code == 1
        assert "use --force to override" in blocked.output
        assert forced.exit_code == 0
        assert "Warning: agent 'code-reviewer' is also provided by" in forced.output

    def test_enable_disable_cycle(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")

        assert "disabled." in _run(cli_runner, "plugin", "disable", "reviewer").output
        assert "already disabled" in _run(cli_runner, "plugin", "disable", "reviewer").output
        assert "enabled." in _run(cli_runner, "plugin", "enable", "reviewer").output

        result = _run(cli_runner, "plugin", "enable", "reviewer", "--json")
        data = _json.loads(result.stdout)
        assert data["changed"] is False
        assert data["record"]["enabled"] is True

    def test_lifecycle_on_missing_plugin(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        for command in ["enable", "disable", "uninstall", "update"]:
            result = _run(cli_runner, "plugin", command, "reviewer")
            assert result.exit_code == 1
            assert "plugin is not installed" in result.output

    def test_uninstall(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")
        result = _run(cli_runner, "plugin", "uninstall", "reviewer")
        assert result.exit_code == 0
        assert "✓ Uninstalled reviewer@sample-tools" in result.output

    def test_update_up_to_date(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "docs-helper")
        result = _run(cli_runner, "plugin", "update", "docs-helper", "--no-refresh")
        assert result.exit_code == 0
        assert "Plugin 'docs-helper@sample-tools' is up to date." in result.output

    def test_update_new_version(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")
        manifest_path = with_sample / "plugins" / "reviewer" / ".claude-plugin" / "plugin.json"
        data = _json.loads(manifest_path.read_text())
        data["version"] = "1.3.0"
        manifest_path.write_text(_json.dumps(data))

        result = _run(cli_runner, "plugin", "update", "reviewer")

        assert result.exit_code == 0
        assert "✓ Updated reviewer@sample-tools to 1.3.0" in result.output

    def test_list_installed_json(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")

        data = _json.loads(_run(cli_runner, "plugin", "list", "--json").stdout)

        assert data["scope"] == "user"
        [plugin] = data["plugins"]
        assert plugin["ref"] == "reviewer@sample-tools"
        assert plugin["skills"] == ["review-checklist"]

    def test_list_available(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")

        data = _json.loads(_run(cli_runner, "plugin", "list", "--available", "--json").stdout)

        installed = {p["ref"]: p["installed"] for p in data["plugins"]}
        assert installed == {"reviewer@sample-tools": True, "docs-helper@sample-tools": False}

    def test_project_scope_is_separate(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        result = _run(cli_runner, "--scope", "project", "plugin", "install", "reviewer")

        assert "(project scope)" in result.output
        assert (isolated_env["project_root"] / ".bazaar" / "installed_plugins.yaml").is_file()
        assert "No plugins installed (user scope)." in _run(cli_runner, "plugin", "list").output

    def test_install_restores_missing_copy(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        """A project record without a local copy is restored on install."""
        _run(cli_runner, "--scope", "project", "plugin", "install", "reviewer")
        cache = isolated_env["config_dir"] / "plugins" / "cache" / "project"
        _shutil.rmtree(cache)

        result = _run(cli_runner, "--scope", "project", "plugin", "install", "reviewer")

        assert result.exit_code == 0, result.output
        assert "✓ Restored reviewer@sample-tools 1.2.0 (project scope)" in result.output
        assert (cache / "sample-tools" / "reviewer" / "1.2.0").is_dir()

    def test_show_available_plugin(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "plugin", "show", "reviewer")
        assert result.exit_code == 0
        assert "Installed: ✗" in result.output
        assert "Agents: code-reviewer" in result.output

    def test_show_installed_plugin_json(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "docs-helper")
        data = _json.loads(_run(cli_runner, "plugin", "show", "docs-helper", "--json").stdout)
        assert data["installed"] is True
        assert data["commands"] == ["doc"]

    def test_validate(self, cli_runner: _click_testing.CliRunner) -> None:
        fixture = (
            _pathlib.Path(__file__).parent.parent
            / "fixtures"
            / "marketplaces"
            / "sample"
            / "plugins"
        )
        ok = _run(cli_runner, "plugin", "validate", str(fixture / "reviewer"))
        bad = _run(cli_runner, "plugin", "validate", str(fixture / "docs-helper"))

        assert ok.exit_code == 0
        assert "✓ valid" in ok.output
        assert bad.exit_code == 1
        assert "✗ invalid" in bad.output


class TestContentCommands:
    """Tests for bazaar content ..."""

    def test_list_enabled_content(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")
        _run(cli_runner, "--scope", "project", "plugin", "install", "docs-helper")

        data = _json.loads(_run(cli_runner, "content", "list", "--json").stdout)

        rows = {(row["kind"], row["name"], row["scope"]) for row in data["content"]}
        assert rows == {
            ("agent", "code-reviewer", "user"),
            ("skill", "review-checklist", "user"),
            ("command", "review", "user"),
            ("skill", "write-docs", "project"),
            ("command", "doc", "project"),
        }

    def test_disabled_plugins_are_hidden(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")
        _run(cli_runner, "plugin", "disable", "reviewer")

        result = _run(cli_runner, "content", "list", "--kind", "agent")

        assert "No content from enabled plugins." in result.output

    def test_render(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")

        result = _run(cli_runner, "content", "render", "review", "src/app.py", "security")

        assert result.exit_code == 0
        assert "Review src/app.py with a focus on security." in result.output

    def test_render_with_plugin_enabled_in_both_scopes(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
    ) -> None:
        """The same plugin in user and project scope provides one command."""
        _run(cli_runner, "plugin", "install", "reviewer")
        _run(cli_runner, "--scope", "project", "plugin", "install", "reviewer")

        result = _run(cli_runner, "content", "render", "review", "src/app.py", "security")

        assert result.exit_code == 0, result.output
        rows = _json.loads(_run(cli_runner, "content", "list", "--json").stdout)["content"]
        assert [row["scope"] for row in rows if row["name"] == "review"] == ["user"]

    def test_command_clash_across_scopes_is_refused(
        self,
        cli_runner: _click_testing.CliRunner,
        with_sample: _pathlib.Path,
        marketplace_factory: Factory,
    ) -> None:
        _run(cli_runner, "plugin", "install", "reviewer")
        other = marketplace_factory("other-tools", {"linter": {"commands": ["review"]}})
        _run(cli_runner, "marketplace", "add", str(other))

        result = _run(cli_runner, "--scope", "project", "plugin", "install", "linter")

        assert result.exit_code == 1
        assert "command 'review' is also provided by reviewer@sample-tools" in result.output
        render = _run(cli_runner, "content", "render", "review", "x")
        assert render.exit_code == 0, render.output

    def test_render_unknown_command(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "content", "render", "nope")
        assert result.exit_code == 1
        assert "Command 'nope' not found in enabled plugins" in result.output


class TestLintCommand:
    """Tests for bazaar lint."""

    def test_clean_marketplace(
        self,
        cli_runner: _click_testing.CliRunner,
        sample_marketplace: _pathlib.Path,
    ) -> None:
        result = _run(cli_runner, "lint", str(sample_marketplace))
        assert result.exit_code == 0
        assert "✓ 0 error(s), 0 warning(s)" in result.output

    def test_errors_exit_nonzero(
        self,
        cli_runner: _click_testing.CliRunner,
        sample_marketplace: _pathlib.Path,
    ) -> None:
        (sample_marketplace / "NOTES.md").write_text("See plugins/ghost.\n")

        result = _run(cli_runner, "lint", str(sample_marketplace), "--json")

        assert result.exit_code == 1
        data = _json.loads(result.stdout)
        assert data["ok"] is False
        assert [i["code"] for i in data["issues"]] == ["doc-reference-missing"]


class TestConfigCommands:
    """Tests for bazaar config ..."""

    def test_show_json(
        self,
        cli_runner: _click_testing.CliRunner,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        result = _run(cli_runner, "config", "show", "--json")
        assert result.exit_code == 0
        data = _json.loads(result.stdout)
        assert data["config_dir"] == str(isolated_env["config_dir"])
        assert "plugin_cache_dir" in data["paths"]

    def test_show_yaml(self, cli_runner: _click_testing.CliRunner) -> None:
        result = _run(cli_runner, "config", "show", "--no-color")
        assert result.exit_code == 0
        assert "git_timeout: 120" in result.output
        assert "paths:" in result.output

    def test_path(
        self,
        cli_runner: _click_testing.CliRunner,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        result = _run(cli_runner, "config", "path")
        assert result.exit_code == 0
        assert str(isolated_env["config_dir"] / "config.yaml") in result.output
        assert "(not found)" in result.output
