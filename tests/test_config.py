"""Tests for config.yaml loading."""

import pytest
import yaml

from saul.config import load_config
from saul.errors import StorageError


class TestLoadConfig:
    def test_missing_file_gives_defaults(self):
        config = load_config()
        assert config["defaults"] == {"timeout": 30, "history_count": 0, "editor": None}
        assert config["_config_dir"] is None

    def test_file_overrides_defaults(self, config_root):
        (config_root / "config.yaml").write_text(
            yaml.dump({"defaults": {"timeout": 5, "editor": "nano"}})
        )
        config = load_config()
        assert config["defaults"] == {"timeout": 5, "history_count": 0, "editor": "nano"}
        assert config["_config_dir"] == config_root.resolve()

    def test_empty_file(self, config_root):
        (config_root / "config.yaml").write_text("")
        assert load_config()["defaults"]["timeout"] == 30

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "other.yaml"
        path.write_text("defaults:\n  history_count: 3\n")
        assert load_config(path)["defaults"]["history_count"] == 3

    def test_invalid_yaml(self, config_root):
        (config_root / "config.yaml").write_text("defaults: [unclosed\n")
        with pytest.raises(StorageError, match="Failed to parse"):
            load_config()
