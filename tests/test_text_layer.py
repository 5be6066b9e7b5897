"""Tests for overlay span placement and range selection."""

import math

import pytest

from inkmark.core.page.models import OverlaySpan, TextItem, TextPosition
from inkmark.core.page.text_layer import TextOverlay, build_overlay_span

from fakes import FakeViewport, text_item


# ── Span placement ───────────────────────────────────────────────────────────


class TestBuildOverlaySpan:
    def test_font_size_and_top_left(self):
        item = TextItem("Hello", (12.0, 0.0, 0.0, 12.0, 72.0, 700.0), width=30.0)
        span = build_overlay_span(item, FakeViewport(scale=2.0))

        assert span.font_size == pytest.approx(24.0)
        assert span.left == pytest.approx(144.0)
        # Baseline at (792 - 700) * 2 = 184, box starts one font size above
        assert span.top == pytest.approx(160.0)
        assert span.width == pytest.approx(60.0)
        assert span.angle == pytest.approx(0.0)

    def test_rotated_run_keeps_font_size(self):
        item = TextItem("Up", (0.0, 12.0, -12.0, 0.0, 100.0, 100.0), width=12.0)
        span = build_overlay_span(item, FakeViewport(scale=1.0))

        assert span.font_size == pytest.approx(12.0)
        assert span.angle == pytest.approx(math.pi / 2)


class TestRotatedSpan:
    def setup_method(self):
        # Runs downwards from a baseline start at (100, 100), glyph tops to the right
        self.span = OverlaySpan("abcd", left=100, top=88, font_size=12,
                                angle=-math.pi / 2, width=40)

    def test_box_follows_writing_direction(self):
        assert self.span.is_vertical
        rect = self.span.rect
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((100, 100, 12, 40))

    def test_char_rect_and_offset_along_the_run(self):
        rect = self.span.char_rect(1, 3)
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((100, 110, 12, 20))
        assert self.span.offset_at(105, 121) == 2

    def test_vertical_runs_merge_per_column(self):
        overlay = TextOverlay([
            self.span,
            OverlaySpan("ef", left=100, top=128, font_size=12, angle=-math.pi / 2, width=20),
            OverlaySpan("gh", left=80, top=88, font_size=12, angle=-math.pi / 2, width=20),
        ])
        selection = overlay.select_all()

        assert selection.text == "abcdef\ngh"
        first, second = selection.line_rects
        assert (first.x, first.y, first.width, first.height) == pytest.approx((100, 100, 12, 60))
        assert second.x == pytest.approx(80)


# ── Overlay queries ──────────────────────────────────────────────────────────


class TestTextOverlay:
    def setup_method(self):
        # Two runs on one line with a gap between them, one run on the next line
        self.overlay = TextOverlay.build(
            [
                text_item("Hello", 72, 700, width=30),
                text_item("world", 106, 700, width=30),
                text_item("Second", 72, 680, width=36),
            ],
            FakeViewport(scale=1.0),
        )

    def test_spans_are_indexed_in_order(self):
        assert [span.index for span in self.overlay.spans] == [0, 1, 2]
        assert len(self.overlay) == 3

    def test_reindexes_foreign_spans(self):
        overlay = TextOverlay([OverlaySpan("a", 0, 0, 10, width=5, index=7)])
        assert overlay.spans[0].index == 0

    def test_span_at_hit(self):
        assert self.overlay.span_at(80, 85).text == "Hello"
        assert self.overlay.span_at(80, 105).text == "Second"
        assert self.overlay.span_at(400, 400) is None

    def test_position_at_exact_hit(self):
        assert self.overlay.position_at(84, 85) == TextPosition(0, 2)

    def test_position_at_snaps_to_nearest_span(self):
        # Between the two lines, closer to the first one
        position = self.overlay.position_at(87, 95)
        assert position is not None
        assert position.span_index == 0

    def test_position_at_far_away(self):
        assert self.overlay.position_at(500, 500) is None

    def test_select_merges_runs_per_line(self):
        selection = self.overlay.select(TextPosition(0, 0), TextPosition(2, 6))

        assert selection.text == "Hello world\nSecond"
        assert len(selection.line_rects) == 2
        first, second = selection.line_rects
        assert first.x == pytest.approx(72)
        assert first.width == pytest.approx(64)
        assert second.y > first.y

    def test_select_partial_run(self):
        selection = self.overlay.select(TextPosition(0, 1), TextPosition(0, 4))

        assert selection.text == "ell"
        (rect,) = selection.line_rects
        assert rect.x == pytest.approx(78)
        assert rect.width == pytest.approx(18)

    def test_select_reversed_range(self):
        forward = self.overlay.select(TextPosition(0, 1), TextPosition(1, 3))
        backward = self.overlay.select(TextPosition(1, 3), TextPosition(0, 1))
        assert forward == backward

    def test_collapsed_range(self):
        selection = self.overlay.select(TextPosition(1, 2), TextPosition(1, 2))
        assert selection.is_collapsed
        assert selection.line_rects == []

    def test_full_text(self):
        assert self.overlay.full_text == "Hello world\nSecond"

    def test_empty_overlay(self):
        overlay = TextOverlay()
        assert overlay.select_all().is_collapsed
        assert overlay.position_at(0, 0) is None
