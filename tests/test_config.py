"""Tests for viewer settings."""

import json

import pytest

from inkmark.config import (
    MAX_HIGHLIGHT_OPACITY,
    MIN_HIGHLIGHT_OPACITY,
    ViewerSettings,
    clamp_highlight_opacity,
)


class TestViewerSettings:
    def test_defaults(self):
        settings = ViewerSettings()
        assert settings.scale == 1.3
        assert settings.highlight_color == "#facc15"
        assert settings.highlight_opacity == 0.4
        assert settings.settle_delay_ms == 50
        assert settings.export_policy == "copy"
        assert settings.color_filter.is_identity

    @pytest.mark.parametrize("value, expected", [
        (0.95, MAX_HIGHLIGHT_OPACITY),
        (0.01, MIN_HIGHLIGHT_OPACITY),
        (0.5, 0.5),
    ])
    def test_highlight_opacity_is_clamped(self, value, expected):
        assert ViewerSettings(highlight_opacity=value).highlight_opacity == expected
        assert clamp_highlight_opacity(value) == expected

    def test_set_highlight_opacity(self):
        settings = ViewerSettings()
        settings.set_highlight_opacity(2)
        assert settings.highlight_opacity == MAX_HIGHLIGHT_OPACITY

    def test_invalid_values_fall_back(self):
        settings = ViewerSettings(scale=-1, export_policy="shred", page_color="beige")
        assert settings.scale == 1.3
        assert settings.export_policy == "copy"
        assert settings.page_color == "#ffffff"

    def test_color_filter_follows_colors(self):
        settings = ViewerSettings(page_color="#000000", text_color="#ffffff")
        assert settings.color_filter.scale == (-1.0, -1.0, -1.0)

        settings.reset_colors()
        assert settings.color_filter.is_identity


class TestSettingsPersistence:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "settings.json"
        original = ViewerSettings(scale=2.0, page_color="#f4ecd8", user_id="alice",
                                  export_policy="replace")
        assert original.save(path)

        assert ViewerSettings.load(path) == original

    def test_default_path_under_home_override(self, isolated_home):
        ViewerSettings(user_id="bob").save()
        assert str(ViewerSettings.default_path()).startswith(str(isolated_home))
        assert ViewerSettings.load().user_id == "bob"

    def test_missing_file_gives_defaults(self, tmp_path):
        assert ViewerSettings.load(tmp_path / "absent.json") == ViewerSettings()

    def test_bad_json_gives_defaults(self, tmp_path, caplog):
        path = tmp_path / "settings.json"
        path.write_text("{broken", encoding="utf-8")

        assert ViewerSettings.load(path) == ViewerSettings()
        assert "Failed to load settings" in caplog.text

    def test_unknown_keys_are_ignored(self, tmp_path, caplog):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"scale": 1.5, "theme": "dark"}), encoding="utf-8")

        settings = ViewerSettings.load(path)
        assert settings.scale == 1.5
        assert "theme" in caplog.text
