"""Tests for page rendering and the render queue."""

import fitz
import pytest

from inkmark.core.page import FitzPageSource, PageRenderer, RenderQueue

from fakes import FakePage, FakePageSource, text_item


def _renderer(page, page_number=1):
    return PageRenderer(FakePageSource({page_number: page}), page_number)


# ── PageRenderer ─────────────────────────────────────────────────────────────


class TestPageRenderer:
    def test_render_builds_raster_and_overlay_together(self):
        page = FakePage(items=[text_item("Hello", 10, 150)])
        renderer = _renderer(page)

        assert renderer.render(1.5)
        assert renderer.state.rendered
        assert renderer.has_text
        assert renderer.surface.size == (150, 300)
        assert len(renderer.overlay) == 1
        assert renderer.scale == 1.5
        assert renderer.page_size == (100.0, 200.0)

    def test_page_without_text_is_image_only(self):
        renderer = _renderer(FakePage())

        assert renderer.render(1.0)
        assert renderer.state.rendered
        assert not renderer.has_text

    def test_same_size_is_not_rendered_twice(self):
        page = FakePage()
        renderer = _renderer(page)

        renderer.render(1.3)
        renderer.render(1.3)
        assert page.render_calls == 1

    def test_scale_change_renders_again(self):
        page = FakePage()
        renderer = _renderer(page)

        renderer.render(1.0)
        assert renderer.needs_render(2.0)
        renderer.render(2.0)
        assert page.render_calls == 2
        assert renderer.surface.size == (200, 400)

    def test_failure_leaves_page_unrendered(self, caplog):
        renderer = _renderer(FakePage(fail=True), page_number=3)

        assert not renderer.render(1.0)
        assert not renderer.state.rendered
        assert renderer.surface.is_empty
        assert "Error rendering page 3" in caplog.text

    def test_teardown_during_render_discards_result(self):
        holder = {}
        page = FakePage(items=[text_item("Hi", 0, 100)],
                        on_render=lambda: holder["renderer"].teardown())
        renderer = _renderer(page)
        holder["renderer"] = renderer

        assert not renderer.render(1.0)
        assert not renderer.state.rendered
        assert renderer.surface.is_empty
        assert len(renderer.overlay) == 0

    def test_torn_down_renderer_does_nothing(self):
        page = FakePage()
        renderer = _renderer(page)
        renderer.teardown()

        assert not renderer.render(1.0)
        assert page.render_calls == 0
        assert not renderer.is_active


class TestFitzRendering:
    def test_real_page_overlay_lines_up_with_raster(self, pdf_bytes):
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            renderer = PageRenderer(FitzPageSource(doc), 1)
            assert renderer.render(1.3)

            assert renderer.surface.size == (796, 1030)
            assert renderer.has_text
            assert "Hello annotated world 1" in renderer.overlay.full_text

            first = renderer.overlay.spans[0]
            assert first.left == pytest.approx(72 * 1.3, abs=1.0)
            # Baseline at y=100 from the top, box starts one font size above
            assert first.top == pytest.approx((100 - 12) * 1.3, abs=1.5)
            assert first.font_size == pytest.approx(12 * 1.3, abs=0.1)
        finally:
            doc.close()

    def test_rotated_page_overlay_covers_the_glyphs(self, make_pdf):
        doc = fitz.open(stream=make_pdf(rotation=90), filetype="pdf")
        try:
            renderer = PageRenderer(FitzPageSource(doc), 1)
            assert renderer.render(1.0)
            assert renderer.surface.size == (792, 612)

            first = renderer.overlay.spans[0]
            assert first.is_vertical
            # Baseline (72, 100) turns into (792 - 100, 72) and runs downwards
            rect = first.rect
            assert rect.x == pytest.approx(692, abs=1.0)
            assert rect.y == pytest.approx(72, abs=1.0)
            assert rect.width == pytest.approx(12, abs=0.5)
            assert rect.height > 100

            pixmap = renderer.surface.pixmap
            dark = sum(
                1
                for x in range(int(rect.x) - 4, int(rect.right))
                for y in range(int(rect.y), int(rect.bottom))
                if sum(pixmap.pixel(x, y)) < 384
            )
            assert dark > 50

            selection = renderer.overlay.select_all()
            assert len(selection.line_rects) == 2
            first_line, second_line = selection.line_rects
            assert second_line.x < first_line.x
        finally:
            doc.close()

    def test_blank_page_has_no_text(self, blank_pdf_bytes):
        doc = fitz.open(stream=blank_pdf_bytes, filetype="pdf")
        try:
            renderer = PageRenderer(FitzPageSource(doc), 1)
            assert renderer.render(1.0)
            assert not renderer.has_text
        finally:
            doc.close()

    def test_out_of_range_page_fails_cleanly(self, pdf_bytes):
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        try:
            renderer = PageRenderer(FitzPageSource(doc), 9)
            assert not renderer.render(1.0)
        finally:
            doc.close()


# ── RenderQueue ──────────────────────────────────────────────────────────────


class TestRenderQueue:
    def setup_method(self):
        self.events = []

    def _queue(self):
        queue = RenderQueue()
        queue.page_rendered.connect(lambda n: self.events.append(("rendered", n)))
        queue.page_failed.connect(lambda n: self.events.append(("failed", n)))
        queue.image_only_page.connect(lambda n: self.events.append(("image_only", n)))
        return queue

    def test_one_page_per_step(self, qapp):
        source = FakePageSource({
            1: FakePage(items=[text_item("a", 0, 100)]),
            2: FakePage(items=[text_item("b", 0, 100)]),
        })
        queue = self._queue()
        queue.schedule(PageRenderer(source, 1), 1.0)
        queue.schedule(PageRenderer(source, 2), 1.0)

        assert queue.process_next() == 1
        assert self.events == [("rendered", 1)]
        assert queue.process_next() == 2
        assert queue.process_next() is None

    def test_reports_failures_and_image_only_pages(self, qapp):
        source = FakePageSource({1: FakePage(fail=True), 2: FakePage()})
        queue = self._queue()
        queue.schedule(PageRenderer(source, 1), 1.0)
        queue.schedule(PageRenderer(source, 2), 1.0)

        queue.process_next()
        queue.process_next()
        assert self.events == [("failed", 1), ("rendered", 2), ("image_only", 2)]

    def test_rescheduling_replaces_older_request(self, qapp):
        page = FakePage()
        renderer = PageRenderer(FakePageSource({1: page}), 1)
        queue = self._queue()

        queue.schedule(renderer, 1.0)
        queue.schedule(renderer, 2.0)
        assert len(queue) == 1

        queue.process_next()
        assert renderer.scale == 2.0

    def test_torn_down_renderers_are_skipped(self, qapp):
        renderer = PageRenderer(FakePageSource({1: FakePage()}), 1)
        queue = self._queue()
        queue.schedule(renderer, 1.0)
        renderer.teardown()

        assert queue.process_next() is None
        assert self.events == []

    def test_event_loop_drains_queue(self, qapp):
        source = FakePageSource({1: FakePage(), 2: FakePage()})
        queue = self._queue()
        renderers = [PageRenderer(source, 1), PageRenderer(source, 2)]
        for renderer in renderers:
            queue.schedule(renderer, 1.0)

        for _ in range(10):
            qapp.processEvents()

        assert len(queue) == 0
        assert all(r.state.rendered for r in renderers)
