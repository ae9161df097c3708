"""Tests for the key-value media."""

import json

import pytest

from tachub.errors import MediumUnavailable
from tachub.storage import FileMedium, MemoryMedium


class TestMemoryMedium:

	def test_get_missing(self):
		assert MemoryMedium().get("k") is None

	def test_set_overwrites(self):
		medium = MemoryMedium()
		medium.set("k", "a")
		medium.set("k", "b")
		assert medium.get("k") == "b"
		assert medium.has("k")


class TestFileMedium:

	def test_missing_file_is_empty(self, tmp_path):
		assert FileMedium(tmp_path / "store.json").get("k") is None

	def test_persists_across_instances(self, tmp_path):
		path = tmp_path / "nested" / "store.json"
		FileMedium(path).set("k", "v")
		assert FileMedium(path).get("k") == "v"

	def test_keeps_other_slots(self, tmp_path):
		path = tmp_path / "store.json"
		medium = FileMedium(path)
		medium.set("a", "1")
		medium.set("b", "2")
		assert json.loads(path.read_text()) == {"a": "1", "b": "2"}

	def test_no_temp_files_left(self, tmp_path):
		FileMedium(tmp_path / "store.json").set("k", "v")
		assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

	def test_corrupt_file_is_unavailable(self, tmp_path):
		path = tmp_path / "store.json"
		path.write_text("{not json")
		with pytest.raises(MediumUnavailable):
			FileMedium(path).get("k")

	def test_unwritable_location_is_unavailable(self, tmp_path):
		blocker = tmp_path / "blocker"
		blocker.write_text("I am a file")
		with pytest.raises(MediumUnavailable):
			FileMedium(blocker / "store.json").set("k", "v")
