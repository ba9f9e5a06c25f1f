"""Tests for the track-to-lyric registry."""

import logging

import pytest

from conftest import write_mapping
from lyritop import registry as registry_module
from lyritop.config import LYRIC_FILES, ConfigManager
from lyritop.exceptions import MappingFileError
from lyritop.registry import LyricSourceRegistry, load_mapping_file, track_key


class TestTrackKey:

    def test_plain_concatenation(self):
        assert track_key("Song", "Artist") == "SongArtist"

    def test_case_sensitive(self):
        assert track_key("song", "artist") != track_key("Song", "Artist")


class TestLoadMappingFile:

    def test_missing_file(self, temp_dir):
        with pytest.raises(MappingFileError):
            load_mapping_file(temp_dir / "nope.json")

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MappingFileError) as exc_info:
            load_mapping_file(path)
        assert exc_info.value.path == str(path)

    def test_not_an_array(self, temp_dir):
        path = temp_dir / "obj.json"
        path.write_text('{"title": "x"}', encoding="utf-8")
        with pytest.raises(MappingFileError):
            load_mapping_file(path)


class TestReload:

    def test_later_file_wins(self, temp_dir):
        a = write_mapping(temp_dir / "a.json", [{"title": "K", "artists": "", "path": "/lyrics/a.lrc"}])
        b = write_mapping(temp_dir / "b.json", [{"title": "K", "artists": "", "path": "/lyrics/b.lrc"}])
        registry = LyricSourceRegistry()
        registry.reload([a, b])
        assert registry.lyric_path("K") == "/lyrics/b.lrc"

        registry.reload([b, a])
        assert registry.lyric_path("K") == "/lyrics/a.lrc"

    def test_bad_files_and_records_skipped(self, temp_dir, caplog):
        bad = temp_dir / "bad.json"
        bad.write_text("[", encoding="utf-8")
        good = write_mapping(temp_dir / "good.json", [
            {"title": "A", "artists": "X", "path": "/a.lrc", "album": "ignored"},
            {"artists": "X", "path": "/no-title.lrc"},
            {"title": "NoPath", "artists": "X"},
            {"title": "", "artists": "X", "path": "/empty-title.lrc"},
            "not an object",
            {"title": "B", "path": "/b.lrc"},
        ])
        registry = LyricSourceRegistry()
        with caplog.at_level(logging.WARNING, logger="lyritop"):
            registry.reload([temp_dir / "missing.json", bad, good])

        assert len(registry) == 2
        assert registry.lyric_path("AX") == "/a.lrc"
        assert registry.lyric_path("B") == "/b.lrc"
        assert "missing.json" in caplog.text
        assert "bad.json" in caplog.text

    def test_relative_path_resolved_against_mapping_file(self, temp_dir):
        mapping = write_mapping(temp_dir / "m.json", [{"title": "S", "artists": "A", "path": "lrc/s.lrc"}])
        registry = LyricSourceRegistry()
        registry.reload([mapping])
        assert registry.lyric_path("SA") == str(temp_dir / "lrc" / "s.lrc")

    def test_reload_replaces_cache(self, temp_dir, lrc_file, mapping_file):
        registry = LyricSourceRegistry()
        registry.reload([mapping_file])
        assert registry.get_lyric("SongArtist", 1_500_000) == "second"
        assert registry.is_cached(str(lrc_file))

        other = write_mapping(temp_dir / "other.json", [{"title": "X", "artists": "", "path": "/x.lrc"}])
        registry.reload([other])
        assert not registry.is_cached(str(lrc_file))
        assert registry.get_lyric("SongArtist", 1_500_000) is None


class TestGetLyric:

    def test_lookup(self, mapping_file):
        registry = LyricSourceRegistry()
        registry.reload([mapping_file])
        assert registry.get_lyric("SongArtist", 0) == "first"
        assert registry.get_lyric("SongArtist", 2_500_000) == "third  third translated"
        assert registry.get_lyric("SongArtist", 1_200_000) == "second"

    def test_unknown_or_empty_key(self, mapping_file):
        registry = LyricSourceRegistry()
        registry.reload([mapping_file])
        assert registry.get_lyric("Nope", 0) is None
        assert registry.get_lyric("", 0) is None

    def test_parsed_once(self, mapping_file, lrc_file):
        registry = LyricSourceRegistry()
        registry.reload([mapping_file])
        registry.get_lyric("SongArtist", 0)

        lrc_file.write_text("[00:00.00]changed\n", encoding="utf-8")
        assert registry.get_lyric("SongArtist", 100) == "first"

    def test_reload_during_lookup(self, temp_dir, config, lrc_file, monkeypatch):
        other = write_mapping(temp_dir / "other.json", [{"title": "Other", "artists": "X", "path": str(lrc_file)}])
        registry = LyricSourceRegistry()
        registry.enable(config)
        old = registry._state
        old_mapping = dict(old.mapping)

        real_read = registry_module.read_lyric_file

        def read_and_reconfigure(path):
            config.set(LYRIC_FILES, [str(other)])
            return real_read(path)

        monkeypatch.setattr(registry_module, "read_lyric_file", read_and_reconfigure)
        assert registry.get_lyric("SongArtist", 0) == "first"

        assert registry._state is not old
        assert old.mapping == old_mapping
        assert registry.lyric_path("SongArtist") is None
        assert registry.lyric_path("OtherX") == str(lrc_file)
        # The entry parsed for the old state does not leak into the new one
        assert str(lrc_file) in old.cache
        assert not registry.is_cached(str(lrc_file))
        registry.disable()

    def test_unreadable_lyric_cached_as_empty(self, temp_dir, caplog):
        missing = temp_dir / "missing.lrc"
        mapping = write_mapping(temp_dir / "m.json", [{"title": "S", "artists": "A", "path": str(missing)}])
        registry = LyricSourceRegistry()
        registry.reload([mapping])

        with caplog.at_level(logging.WARNING, logger="lyritop"):
            assert registry.get_lyric("SA", 0) is None
        assert registry.is_cached(str(missing))
        assert caplog.text.count("Cannot load lyric file") == 1

        # Creating the file later does not help until the next reload
        missing.write_text("[00:00.00]late\n", encoding="utf-8")
        caplog.clear()
        assert registry.get_lyric("SA", 0) is None
        assert caplog.text == ""

        registry.reload([mapping])
        assert registry.get_lyric("SA", 0) == "late"


class TestLifecycle:

    def test_enable_follows_config(self, temp_dir, config, mapping_file):
        registry = LyricSourceRegistry()
        registry.enable(config)
        assert registry.lyric_path("SongArtist") is not None

        other = write_mapping(temp_dir / "other.json", [{"title": "X", "artists": "Y", "path": "/x.lrc"}])
        config.set("lyric_files", [str(other)])
        assert registry.lyric_path("SongArtist") is None
        assert registry.lyric_path("XY") == "/x.lrc"

    def test_extra_files_loaded_last(self, temp_dir, config):
        extra = write_mapping(temp_dir / "extra.json", [{"title": "Song", "artists": "Artist", "path": "/override.lrc"}])
        registry = LyricSourceRegistry()
        registry.enable(config, [str(extra)])
        assert registry.lyric_path("SongArtist") == "/override.lrc"

    def test_disable_drops_state_and_subscription(self, temp_dir, config):
        registry = LyricSourceRegistry()
        registry.enable(config)
        registry.disable()
        assert len(registry) == 0

        other = write_mapping(temp_dir / "other.json", [{"title": "X", "artists": "Y", "path": "/x.lrc"}])
        config.set("lyric_files", [str(other)])
        assert len(registry) == 0

    def test_reenable(self, config):
        registry = LyricSourceRegistry()
        registry.enable(config)
        registry.disable()
        registry.enable(config)
        assert registry.get_lyric("SongArtist", 1_000_000) == "second"
