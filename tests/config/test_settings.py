"""
Tests for Settings.

The autouse isolated_env fixture points BAZAAR_CONFIG_DIR and
BAZAAR_PROJECT_ROOT at temporary directories, so the YAML layers here
are written under tmp_path.
"""

import json as _json
import pathlib as _pathlib
import shutil as _shutil
import subprocess as _subprocess

import pytest as _pytest
import yaml as _yaml

import bazaar.config as config
import bazaar.config.sources as sources


def _write_config(path: _pathlib.Path, data: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_yaml.safe_dump(data))


class TestSettingsDefaults:
    """Tests for default values."""

    def test_defaults(self, settings: config.Settings) -> None:
        assert settings.scope == "user"
        assert settings.git_timeout == 120
        assert settings.verbose is False
        assert settings.marketplaces == {}

    def test_paths_follow_environment(
        self,
        settings: config.Settings,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        config_dir = isolated_env["config_dir"]
        assert settings.config_dir == config_dir
        assert settings.project_root == isolated_env["project_root"]
        assert settings.marketplaces_dir == config_dir / "marketplaces"
        assert settings.known_marketplaces_path == config_dir / "known_marketplaces.yaml"
        assert settings.plugin_cache_dir == config_dir / "plugins" / "cache"
        assert settings.plugin_sources_dir == config_dir / "plugins" / "sources"

    def test_installed_plugins_path_per_scope(
        self,
        settings: config.Settings,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        assert settings.installed_plugins_path("user") == (
            isolated_env["config_dir"] / "installed_plugins.yaml"
        )
        assert settings.installed_plugins_path("project") == (
            isolated_env["project_root"] / ".bazaar" / "installed_plugins.yaml"
        )
        assert settings.installed_plugins_path() == settings.installed_plugins_path("user")


class TestSettingsLayers:
    """Tests for environment and YAML layering."""

    def test_user_config_is_read(self, isolated_env: dict[str, _pathlib.Path]) -> None:
        _write_config(isolated_env["config_dir"] / "config.yaml", {"git_timeout": 30})
        assert config.Settings.construct_without_dotenv().git_timeout == 30

    def test_project_config_overrides_user(
        self,
        isolated_env: dict[str, _pathlib.Path],
    ) -> None:
        _write_config(
            isolated_env["config_dir"] / "config.yaml",
            {"git_timeout": 30, "marketplaces": {"team": "acme/team"}},
        )
        _write_config(
            isolated_env["project_root"] / ".bazaar" / "config.yaml",
            {"git_timeout": 60, "marketplaces": {"project": "acme/project"}},
        )

        settings = config.Settings.construct_without_dotenv()

        assert settings.git_timeout == 60
        assert settings.marketplaces == {"team": "acme/team", "project": "acme/project"}

    def test_environment_overrides_files(
        self,
        isolated_env: dict[str, _pathlib.Path],
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        _write_config(isolated_env["config_dir"] / "config.yaml", {"git_timeout": 30})
        monkeypatch.setenv("BAZAAR_GIT_TIMEOUT", "90")
        monkeypatch.setenv("BAZAAR_MARKETPLACES", _json.dumps({"team": "acme/team"}))

        settings = config.Settings.construct_without_dotenv()

        assert settings.git_timeout == 90
        assert settings.marketplaces == {"team": "acme/team"}

    def test_constructor_overrides_environment(
        self,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("BAZAAR_SCOPE", "project")
        assert config.Settings.construct_without_dotenv().scope == "project"
        assert config.Settings.construct_without_dotenv(scope="user").scope == "user"

    def test_malformed_config_raises(self, isolated_env: dict[str, _pathlib.Path]) -> None:
        path = isolated_env["config_dir"] / "config.yaml"
        path.parent.mkdir(parents=True)
        path.write_text("- just\n- a list\n")
        with _pytest.raises(sources.ConfigFileError, match="top level must be a mapping"):
            config.Settings.construct_without_dotenv()


class TestSettingsValidation:
    """Tests for field validation."""

    def test_scope_must_be_known(self) -> None:
        with _pytest.raises(ValueError):
            config.Settings.construct_without_dotenv(scope="global")

    def test_git_timeout_must_be_positive(self) -> None:
        with _pytest.raises(ValueError):
            config.Settings.construct_without_dotenv(git_timeout=0)

    def test_display_dict_includes_paths(self, settings: config.Settings) -> None:
        data = settings.to_display_dict()
        assert data["scope"] == "user"
        assert set(data["paths"]) == {
            "marketplaces_dir",
            "known_marketplaces",
            "plugin_cache_dir",
            "plugin_sources_dir",
            "user_installs",
            "project_installs",
        }


class TestFindProjectRoot:
    """Tests for project root discovery."""

    @_pytest.mark.skipif(_shutil.which("git") is None, reason="git not installed")
    def test_git_root_is_preferred(self, tmp_path: _pathlib.Path) -> None:
        repo = tmp_path / "repo"
        (repo / "sub").mkdir(parents=True)
        _subprocess.run(["git", "init", "-q", str(repo)], check=True)

        assert config.find_git_root(repo / "sub") == repo.resolve()
        assert config.find_project_root(repo / "sub") == repo.resolve()

    def test_marker_directory(
        self,
        tmp_path: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
    ) -> None:
        """Outside git, the nearest directory with .bazaar/ is the root."""
        monkeypatch.setattr(config.settings, "find_git_root", lambda start_path=None: None)
        (tmp_path / "proj" / ".bazaar").mkdir(parents=True)
        (tmp_path / "proj" / "deep" / "er").mkdir(parents=True)

        assert config.find_project_root(tmp_path / "proj" / "deep" / "er") == (
            (tmp_path / "proj").resolve()
        )
