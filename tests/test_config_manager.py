"""Tests for TOML configuration loading and saving."""

from pathlib import Path

import pytest

from archgraph_cli import config_manager


@pytest.fixture
def config_home(temp_dir: Path, monkeypatch) -> Path:
    """Point the user config at a temp dir and run from another temp dir."""
    home = temp_dir / "home"
    project = temp_dir / "project"
    project.mkdir()
    monkeypatch.setattr("archgraph_cli.config.BASE_DIR", home)
    monkeypatch.chdir(project)
    return home


class TestQueryConfig:
    """Tests for the [query] section."""

    def test_defaults(self, config_home: Path):
        """Test built-in defaults apply without any file."""
        assert config_manager.load_query_config() == config_manager.DEFAULT_QUERY_CONFIG

    def test_save_and_load(self, config_home: Path):
        """Test saved values are read back and None values are ignored."""
        assert config_manager.save_query_config(default_depth=3, concise=None)
        loaded = config_manager.load_query_config()
        assert loaded["default_depth"] == 3
        assert loaded["concise"] is True

    def test_project_overrides_user(self, config_home: Path):
        """Test archgraph.toml in the working directory wins key by key."""
        config_manager.save_query_config(default_depth=3, search_limit=20)
        Path(config_manager.PROJECT_CONFIG_NAME).write_text("[query]\nsearch_limit = 5\n", encoding="utf-8")
        loaded = config_manager.load_query_config()
        assert loaded["search_limit"] == 5
        assert loaded["default_depth"] == 3

    def test_unknown_key(self, config_home: Path):
        """Test unknown settings are rejected."""
        with pytest.raises(ValueError, match="colour"):
            config_manager.save_query_config(colour="red")

    def test_unreadable_file_ignored(self, config_home: Path):
        """Test a malformed file falls back to defaults."""
        Path(config_manager.PROJECT_CONFIG_NAME).write_text("[query\n", encoding="utf-8")
        assert config_manager.load_query_config() == config_manager.DEFAULT_QUERY_CONFIG


class TestGraphConfig:
    """Tests for the [graph] section."""

    def test_source_extensions(self, config_home: Path):
        """Test the graph section is returned as written."""
        Path(config_manager.PROJECT_CONFIG_NAME).write_text(
            '[graph]\nsource_extensions = [".ts", ".vue"]\n', encoding="utf-8"
        )
        assert config_manager.load_graph_config() == {"source_extensions": [".ts", ".vue"]}
