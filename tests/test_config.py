"""Tests for ConsoleConfig."""

import json

from tachub.config import ConsoleConfig
from tachub.vault import VaultStore


class TestConsoleConfig:

	def test_defaults(self):
		config = ConsoleConfig()
		assert config.slot_key == VaultStore.STORAGE_KEY == "TACTICAL_HUB_VAULT_V2"
		assert config.port == 8080
		assert config.autosave is False
		assert config.autosave_interval == 300

	def test_load_missing_file(self, tmp_path):
		assert ConsoleConfig.load(tmp_path / "nope.json") == ConsoleConfig()

	def test_load_none(self):
		assert ConsoleConfig.load(None) == ConsoleConfig()

	def test_save_and_load(self, tmp_path):
		path = tmp_path / "cfg" / "config.json"
		ConsoleConfig(port=9000, autosave=True).save(path)
		loaded = ConsoleConfig.load(path)
		assert loaded.port == 9000
		assert loaded.autosave is True

	def test_unknown_keys_ignored(self, tmp_path):
		path = tmp_path / "config.json"
		path.write_text(json.dumps({"port": 9001, "theme": "amber"}))
		assert ConsoleConfig.load(path).port == 9001

	def test_invalid_json_falls_back(self, tmp_path):
		path = tmp_path / "config.json"
		path.write_text("{broken")
		assert ConsoleConfig.load(path) == ConsoleConfig()

	def test_validate(self):
		assert ConsoleConfig().validate()
		assert not ConsoleConfig(slot_key="").validate()
		assert not ConsoleConfig(port=0).validate()
		assert not ConsoleConfig(port=70000).validate()
		assert ConsoleConfig(autosave_interval=0).validate()
		assert not ConsoleConfig(autosave_interval=-5).validate()
