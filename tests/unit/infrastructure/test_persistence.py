"""Tests for JsonStateStore and LocalFileStorage."""

import json
from pathlib import Path

import pytest

from gplaybot.domain.exceptions import ConfigurationError
from gplaybot.infrastructure.persistence import JsonStateStore, LocalFileStorage


class TestJsonStateStore:
    """Test the JSON backed state store."""

    def test_memory_only_without_path(self):
        """Test values are kept in memory when no file is configured."""
        store = JsonStateStore()

        store.set_token("abc")
        store.set_state("base_song_id", "T1")

        assert store.get_token() == "abc"
        assert store.get_state("base_song_id") == "T1"
        assert store.get_state("missing") is None

    def test_persists_and_reloads(self, tmp_path: Path):
        """Test that a new store instance sees earlier writes."""
        path = tmp_path / "state" / "gplaybot.json"
        JsonStateStore(path).set_state("base_song_id", "T1")
        JsonStateStore(path).set_token("abc")

        reloaded = JsonStateStore(path)

        assert reloaded.get_state("base_song_id") == "T1"
        assert reloaded.get_token() == "abc"
        assert not path.with_name(path.name + ".tmp").exists()

    def test_none_removes_entry(self, tmp_path: Path):
        """Test that setting None deletes the key on disk."""
        path = tmp_path / "state.json"
        store = JsonStateStore(path)
        store.set_token("abc")

        store.set_token(None)

        assert json.loads(path.read_text())["secrets"] == {}

    def test_initial_token_does_not_override_stored(self, tmp_path: Path):
        """Test a configured token only fills in when nothing is stored."""
        path = tmp_path / "state.json"
        JsonStateStore(path).set_token("stored")

        assert JsonStateStore(path, initial_token="configured").get_token() == "stored"
        assert JsonStateStore(initial_token="configured").get_token() == "configured"

    def test_corrupt_file(self, tmp_path: Path):
        """Test an unreadable state file is a configuration error."""
        path = tmp_path / "state.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            JsonStateStore(path)

    def test_non_object_file(self, tmp_path: Path):
        """Test a JSON document that isn't an object is rejected."""
        path = tmp_path / "state.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigurationError):
            JsonStateStore(path)


class TestLocalFileStorage:
    """Test per-plugin directories."""

    def test_creates_plugin_dir(self, tmp_path: Path):
        """Test the plugin directory is created below plugins/."""
        directory = LocalFileStorage(tmp_path).for_plugin("gplaymusic")

        assert directory == tmp_path / "plugins" / "gplaymusic"
        assert directory.is_dir()

    def test_sanitizes_plugin_id(self, tmp_path: Path):
        """Test path separators can't escape the base directory."""
        directory = LocalFileStorage(tmp_path).for_plugin("../evil/plugin", create=False)

        assert directory.parent == tmp_path / "plugins"
        assert not directory.exists()
