"""Tests for the reading-mode color filter."""

import fitz
import pytest

from inkmark.core.color_filter import (
    BLACK,
    IDENTITY_FILTER,
    WHITE,
    compile_color_filter,
    compile_hex_color_filter,
    parse_hex_color,
    to_hex_color,
)


# ── Hex parsing ──────────────────────────────────────────────────────────────


class TestHexColors:
    def test_parse_long_form(self):
        assert parse_hex_color("#facc15") == (250, 204, 21)

    def test_parse_short_form(self):
        assert parse_hex_color("#fc1") == (255, 204, 17)

    def test_parse_without_hash(self):
        assert parse_hex_color("000000") == (0, 0, 0)

    @pytest.mark.parametrize("value", ["", "#12", "#zzzzzz", "#1234567"])
    def test_parse_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_hex_color(value)

    def test_format(self):
        assert to_hex_color((250, 204, 21)) == "#facc15"


# ── Matrix compilation ───────────────────────────────────────────────────────


class TestCompileColorFilter:
    def test_white_page_black_text_is_identity(self):
        matrix = compile_color_filter(WHITE, BLACK)
        assert matrix.scale == (1.0, 1.0, 1.0)
        assert matrix.offset == (0.0, 0.0, 0.0)
        assert matrix.is_identity

    def test_black_page_white_text_inverts(self):
        matrix = compile_color_filter(BLACK, WHITE)
        assert matrix.scale == (-1.0, -1.0, -1.0)
        assert matrix.offset == (1.0, 1.0, 1.0)
        assert not matrix.is_identity

    def test_endpoints_map_to_chosen_colors(self):
        matrix = compile_hex_color_filter("#f4ecd8", "#5b4636")
        assert matrix.apply((0, 0, 0)) == parse_hex_color("#5b4636")
        assert matrix.apply((255, 255, 255)) == parse_hex_color("#f4ecd8")
        assert matrix.text_color == parse_hex_color("#5b4636")
        assert matrix.page_color == parse_hex_color("#f4ecd8")

    def test_alpha_passes_through(self):
        matrix = compile_color_filter(BLACK, WHITE)
        assert matrix.apply((10, 20, 30, 128)) == (245, 235, 225, 128)

    def test_rows_are_four_by_five(self):
        rows = compile_color_filter((30, 30, 30), (200, 200, 200)).rows
        assert len(rows) == 4
        assert all(len(row) == 5 for row in rows)
        assert rows[3] == (0.0, 0.0, 0.0, 1.0, 0.0)

    def test_recompiled_only_when_colors_change(self):
        first = compile_color_filter((1, 2, 3), (4, 5, 6))
        assert compile_color_filter((1, 2, 3), (4, 5, 6)) is first
        assert compile_color_filter((1, 2, 3), (4, 5, 7)) is not first


# ── Raster application ───────────────────────────────────────────────────────


class TestApplyToPixmap:
    @staticmethod
    def _black_and_white_pixmap():
        pixmap = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, 2, 1), False)
        pixmap.set_pixel(0, 0, (0, 0, 0))
        pixmap.set_pixel(1, 0, (255, 255, 255))
        return pixmap

    def test_identity_returns_same_raster(self):
        pixmap = self._black_and_white_pixmap()
        assert IDENTITY_FILTER.apply_to_pixmap(pixmap) is pixmap

    def test_inversion_leaves_original_untouched(self):
        pixmap = self._black_and_white_pixmap()
        inverted = compile_color_filter(BLACK, WHITE).apply_to_pixmap(pixmap)

        assert inverted is not pixmap
        assert inverted.pixel(0, 0) == (255, 255, 255)
        assert inverted.pixel(1, 0) == (0, 0, 0)
        assert pixmap.pixel(0, 0) == (0, 0, 0)
        assert pixmap.pixel(1, 0) == (255, 255, 255)
