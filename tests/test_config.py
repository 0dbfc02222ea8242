"""
Tests for settings loading.
"""

import os

import pytest

from promptsync.config.loader import (
    CATEGORY_PREFIXES,
    RepositoryRef,
    Settings,
    load_settings,
)
from promptsync.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep PROMPTSYNC_* variables from the host out of these tests."""
    for key in list(os.environ):
        if key.startswith("PROMPTSYNC_"):
            monkeypatch.delenv(key)


class TestRepositoryRef:
    """Tests for "<url>|<branch>" parsing."""

    def test_default_branch(self):
        ref = RepositoryRef.parse("https://github.com/a/b")
        assert ref.url == "https://github.com/a/b"
        assert ref.branch == "main"

    def test_explicit_branch(self):
        ref = RepositoryRef.parse(" https://github.com/a/b | develop ")
        assert ref.url == "https://github.com/a/b"
        assert ref.branch == "develop"

    def test_empty_branch_falls_back(self):
        assert RepositoryRef.parse("https://github.com/a/b|").branch == "main"


class TestSettings:
    """Tests for derived settings."""

    def test_repository_refs_drop_blanks_and_duplicates(self):
        settings = Settings(repositories=[
            "https://github.com/a/b",
            "  ",
            "https://github.com/c/d|dev",
            "https://github.com/a/b|other",
        ])
        refs = settings.repository_refs
        assert [r.url for r in refs] == ["https://github.com/a/b", "https://github.com/c/d"]
        assert refs[0].branch == "main"
        assert refs[1].branch == "dev"

    def test_default_categories(self):
        settings = Settings()
        assert settings.enabled_categories() == ["agents", "prompts"]
        assert settings.enabled_prefixes() == (
            CATEGORY_PREFIXES["agents"] + CATEGORY_PREFIXES["prompts"]
        )

    def test_all_categories_disabled(self):
        settings = Settings(sync_agents=False, sync_instructions=False, sync_prompts=False)
        assert settings.enabled_prefixes() == []

    def test_directories(self, tmp_path):
        settings = Settings(prompts_dir=tmp_path / "p", storage_dir=tmp_path / "s")
        assert settings.activation_dir == tmp_path / "p"
        assert settings.storage_root == tmp_path / "s"

    def test_default_directories_follow_editor_layout(self):
        settings = Settings()
        assert settings.activation_dir.name == "prompts"
        assert settings.storage_root.name == "promptsync"


class TestLoadSettings:
    """Tests for YAML + environment loading."""

    def test_load_yaml(self, tmp_path):
        config = tmp_path / "promptsync.yaml"
        config.write_text(
            "repositories:\n"
            "  - https://github.com/a/b\n"
            "sync_instructions: true\n"
        )
        settings = load_settings(config)
        assert settings.repositories == ["https://github.com/a/b"]
        assert settings.sync_instructions is True

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        config = tmp_path / "promptsync.yaml"
        config.write_text("repositories:\n  - https://github.com/a/b\n")
        monkeypatch.setenv("PROMPTSYNC_REPOSITORIES", "https://github.com/x/y, https://github.com/z/w|dev")
        monkeypatch.setenv("PROMPTSYNC_SYNC_AGENTS", "false")

        settings = load_settings(config)
        assert [r.url for r in settings.repository_refs] == [
            "https://github.com/x/y",
            "https://github.com/z/w",
        ]
        assert settings.sync_agents is False

    def test_missing_default_file_is_fine(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings.repositories == []

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(tmp_path / "nope.yaml")

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        config = tmp_path / "custom.yaml"
        config.write_text("sync_prompts: false\n")
        monkeypatch.setenv("PROMPTSYNC_CONFIG", str(config))
        assert load_settings().sync_prompts is False

    def test_invalid_yaml_raises(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("repositories: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_non_mapping_raises(self, tmp_path):
        config = tmp_path / "list.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_invalid_value_raises(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("sync_agents: [1, 2]\n")
        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_empty_file(self, tmp_path):
        config = tmp_path / "empty.yaml"
        config.write_text("")
        assert load_settings(config).repositories == []
