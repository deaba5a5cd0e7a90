"""Tests for engine configuration."""

import json

import pytest

from tasktree.config import CONFIG_FILE, EngineConfig, get_config_dir, load_config, save_config
from tasktree.domain.shared import InvalidSizeError
from tasktree.domain.task import Priority, TaskSize


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("TASKTREE_HOME", str(tmp_path))
    return tmp_path


class TestEngineConfig:
    """Defaults and derived objects."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.size_policy().max_points("m") == 5
        assert config.fractions()[Priority.HIGH] == 0.4

    def test_partial_fractions_fall_back(self):
        config = EngineConfig(due_date_fractions={"high": 0.2})
        fractions = config.fractions()
        assert fractions[Priority.HIGH] == 0.2
        assert fractions[Priority.LOW] == 0.8

    def test_custom_ceilings(self):
        config = EngineConfig(size_ceilings={"xs": 1, "s": 2, "m": 3, "l": 5, "xl": 8})
        assert config.size_policy().max_points(TaskSize.XL) == 8

    def test_decreasing_ceilings_rejected(self):
        with pytest.raises(InvalidSizeError):
            EngineConfig(size_ceilings={"xs": 8, "s": 2}).size_policy()

    def test_data_dir_defaults_under_home(self, home):
        assert EngineConfig().resolved_data_dir() == home / "projects"


class TestLoadSave:
    """Config file handling."""

    def test_home_override(self, home):
        assert get_config_dir() == home

    def test_missing_file_gives_defaults(self, home):
        assert load_config() == EngineConfig()

    def test_round_trip(self, home):
        save_config(EngineConfig(due_date_fractions={"low": 0.9}, data_dir=home / "data"))
        loaded = load_config()
        assert loaded.fractions()[Priority.LOW] == 0.9
        assert loaded.resolved_data_dir() == home / "data"

    def test_invalid_file_falls_back(self, home, caplog):
        (home / CONFIG_FILE).write_text("{broken", encoding="utf-8")
        assert load_config() == EngineConfig()
        assert "Ignoring invalid config file" in caplog.text

    def test_invalid_table_falls_back(self, home):
        (home / CONFIG_FILE).write_text(json.dumps({"size_ceilings": {"xs": 4}}), encoding="utf-8")
        assert load_config().size_policy().max_points("xs") == 2
