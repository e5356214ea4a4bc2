"""Tests for playlist file loading."""

import json

import pytest

from tubeshift.models.errors import ConfigurationError
from tubeshift.pipeline.sources import load_playlist_sources, parse_playlist_file


class TestParsePlaylistFile:
    def test_text_file(self, tmp_path):
        path = tmp_path / "lectures.txt"
        path.write_text(
            "# spring term\nhttps://example.com/a\n\n  https://example.com/b  \n",
            encoding="utf-8",
        )
        source = parse_playlist_file(path)
        assert source.playlist_id == "lectures"
        assert source.urls == ["https://example.com/a", "https://example.com/b"]
        assert source.display_name == "lectures"

    def test_json_list(self, tmp_path):
        path = tmp_path / "clips.json"
        path.write_text(json.dumps(["https://example.com/a", ""]), encoding="utf-8")
        assert parse_playlist_file(path).urls == ["https://example.com/a"]

    def test_json_object_with_legacy_keys(self, tmp_path):
        path = tmp_path / "course.json"
        path.write_text(
            json.dumps(
                {
                    "name": "Course",
                    "url": "https://www.youtube.com/playlist?list=PL1",
                    "startIndex": 3,
                    "maxVideos": 10,
                    "enabled": False,
                }
            ),
            encoding="utf-8",
        )
        source = parse_playlist_file(path)
        assert source.name == "Course"
        assert source.playlist_url == "https://www.youtube.com/playlist?list=PL1"
        assert source.start_index == 3
        assert source.max_items == 10
        assert source.enabled is False

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            parse_playlist_file(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"urls": ["a"], "max_items": 0}), encoding="utf-8")
        with pytest.raises(ConfigurationError):
            parse_playlist_file(path)

    def test_unsupported_layout(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("42", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            parse_playlist_file(path)


class TestLoadPlaylistSources:
    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_playlist_sources(tmp_path / "missing")

    def test_sorted_and_filtered(self, tmp_path):
        (tmp_path / "b.txt").write_text("https://example.com/b\n", encoding="utf-8")
        (tmp_path / "a.json").write_text(json.dumps(["https://example.com/a"]), encoding="utf-8")
        (tmp_path / "empty.txt").write_text("# nothing yet\n", encoding="utf-8")
        (tmp_path / "notes.md").write_text("ignored", encoding="utf-8")

        sources = load_playlist_sources(tmp_path)
        assert [s.playlist_id for s in sources] == ["a", "b"]
