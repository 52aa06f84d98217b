"""
Tests for YAML configuration loading.

These tests verify:
- The packaged defaults parse into the schema defaults
- Absent keys take defaults; present keys are type-checked
- Unknown sections and keys are rejected
- The checksum is deterministic and tracks content
"""

import pytest
import yaml

from qmx_config import DEFAULT_CONFIG_PATH, get_active_config
from qmx_config.loader import compute_checksum, load_yaml_file, parse_config
from qmx_config.schema import ManagerConfig, QmxConfig, StorageConfig


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()
        assert config.storage == StorageConfig()
        assert config.manager == ManagerConfig()
        assert config.logging.level == "INFO"
        assert config.checksum == compute_checksum(config)

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()

    def test_empty_mapping_is_all_defaults(self):
        config = parse_config({})
        assert config.manager.auto_save is True
        assert config.manager.lock_timeout_seconds == 5.0


class TestParsing:
    def test_overrides(self, tmp_path):
        path = tmp_path / "qmx.yaml"
        path.write_text(
            "storage:\n"
            '  database_url: "sqlite:///:memory:"\n'
            "manager:\n"
            "  auto_save: false\n"
            "  lock_timeout_seconds: 2\n"
            "  enforce_status_transitions: true\n"
            "logging:\n"
            "  level: debug\n",
            encoding="utf-8",
        )
        config = get_active_config(path)
        assert config.storage.database_url == "sqlite:///:memory:"
        assert config.manager == ManagerConfig(
            auto_save=False, lock_timeout_seconds=2.0, enforce_status_transitions=True
        )
        assert isinstance(config.manager.lock_timeout_seconds, float)
        assert config.logging.level == "DEBUG"

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"storage": {"database_url": ""}}, "database_url"),
            ({"manager": {"lock_timeout_seconds": 0}}, "lock_timeout_seconds"),
            ({"manager": {"auto_save": "yes"}}, "auto_save"),
            ({"manager": {"lock_timeout_seconds": True}}, "lock_timeout_seconds"),
            ({"manager": {"autosave": True}}, "autosave"),
            ({"logging": {"level": "LOUD"}}, "LOUD"),
            ({"metrics": {}}, "metrics"),
            ({"storage": ["sqlite"]}, "storage"),
        ],
    )
    def test_invalid_values(self, data, message):
        with pytest.raises(ValueError, match=message):
            parse_config(data)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("storage: [unclosed\n", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestChecksum:
    def test_deterministic(self):
        assert compute_checksum(QmxConfig()) == compute_checksum(QmxConfig())

    def test_tracks_content(self):
        changed = QmxConfig(manager=ManagerConfig(auto_save=False))
        assert compute_checksum(changed) != compute_checksum(QmxConfig())

    def test_ignores_stored_checksum(self):
        assert compute_checksum(QmxConfig(checksum="abc")) == compute_checksum(QmxConfig())


class TestAudit:
    def test_load_is_logged(self, captured_logs):
        config = get_active_config()
        loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert loaded[-1]["checksum"] == config.checksum
