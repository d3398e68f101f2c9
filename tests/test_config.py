"""
Tests for configuration loading.
"""

import json

import pytest

from vaultrecall.config.loader import ConfigError, load_config, save_config
from vaultrecall.config.schema import Config


class TestLoadConfig:

    def test_file_values(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "vault_path": "~/Notes",
            "collection": "notes",
            "search": {"max_results": 8},
            "capture": {"enabled": True},
        }))

        config = load_config(path)

        assert config.collection == "notes"
        assert config.search.max_results == 8
        assert config.search.vector_weight == 0.7
        assert config.capture.enabled
        assert str(config.vault_dir).endswith("Notes")
        assert "~" not in str(config.vault_dir)

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"vault_path": "/a", "collection": "file"}))

        config = load_config(path, collection="cli", vault_path=None)

        assert config.collection == "cli"
        assert config.vault_path == "/a"

    def test_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VAULTRECALL_VAULT_PATH", "/env/vault")
        monkeypatch.setenv("VAULTRECALL_RECALL__LIMIT", "7")

        config = load_config(tmp_path / "missing.json")

        assert config.vault_path == "/env/vault"
        assert config.recall.limit == 7

    def test_missing_vault(self, tmp_path, monkeypatch):
        monkeypatch.delenv("VAULTRECALL_VAULT_PATH", raising=False)
        with pytest.raises(ConfigError, match="vault_path is required"):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{nope")
        with pytest.raises(ConfigError, match="Cannot read config file"):
            load_config(path)

    def test_non_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[]")
        with pytest.raises(ConfigError, match="JSON object"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"vault_path": "/a", "log_level": "loud"}))
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)


class TestConfigPaths:

    def test_defaults(self):
        config = Config(vault_path="/v")
        assert config.state_dir == config.workspace_dir / ".vaultrecall"
        assert config.watcher.debounce_ms == 1500
        assert not config.capture.enabled
        assert config.recall.enabled

    def test_extra_roots(self):
        config = Config(vault_path="/v", extra_paths=["/a.md", "~/b"])
        roots = config.extra_roots()
        assert [index for index, _ in roots] == [0, 1]
        assert "~" not in str(roots[1][1])

    def test_save_round_trip(self, tmp_path):
        path = tmp_path / "out" / "config.json"
        save_config(Config(vault_path="/v", collection="saved"), path)

        assert load_config(path).collection == "saved"
