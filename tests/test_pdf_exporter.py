"""Tests for burning annotations into the exported document."""

import fitz
import pytest

from inkmark.core.annotations import Annotation, AnnotationType
from inkmark.core.document.pdf_exporter import ExportCompiler, FitzDocumentWriter
from inkmark.core.geometry import Rect
from inkmark.errors import ExportError


class RecordingWriter:
    """Writer that records point-space draws instead of touching a document."""

    def __init__(self, pages=2, size=(612.0, 792.0), fail_on_draw=None):
        self.page_count = pages
        self.size = size
        self.fail_on_draw = fail_on_draw
        self.draws = []
        self.saved = False
        self.closed = False

    def load(self, data):
        return object()

    def get_pages(self, doc):
        return list(range(1, self.page_count + 1))

    def get_size(self, page):
        return self.size

    def draw_rectangle(self, page, x, y, width, height, color, opacity):
        if self.fail_on_draw is not None and len(self.draws) + 1 == self.fail_on_draw:
            raise RuntimeError("content stream is read-only")
        self.draws.append((page, x, y, width, height, color, opacity))

    def save(self, doc):
        self.saved = True
        return b"%PDF-exported"

    def close(self, doc):
        self.closed = True


def _highlight(page=1, bbox=Rect(100, 50, 200, 20), **overrides):
    return Annotation(page=page, bbox=bbox, type=AnnotationType.HIGHLIGHT, **overrides)


def _note(page=1, x=130.0, y=65.0, **overrides):
    return Annotation(page=page, bbox=Rect(x, y, 0, 0), type=AnnotationType.NOTE,
                      text="note", color="#fef9c3", opacity=1.0, **overrides)


# ── Geometry ─────────────────────────────────────────────────────────────────


class TestExportGeometry:
    def test_highlight_converted_to_point_space(self):
        writer = RecordingWriter()
        ExportCompiler(writer).compile(b"%PDF", [_highlight()], scale=1.3)

        (_, x, y, width, height, color, opacity), = writer.draws
        assert (x, y, width, height) == pytest.approx((76.92, 738.15, 153.85, 15.38), abs=0.01)
        assert color == pytest.approx((250 / 255, 204 / 255, 21 / 255))
        assert opacity == 0.4

    def test_capture_scale_wins_over_session_scale(self):
        writer = RecordingWriter()
        ExportCompiler(writer).compile(b"%PDF", [_highlight(capture_scale=2.0)], scale=1.3)

        (_, x, _, width, _, _, _), = writer.draws
        assert x == pytest.approx(50.0)
        assert width == pytest.approx(100.0)

    def test_note_is_fixed_square_below_anchor(self):
        writer = RecordingWriter()
        ExportCompiler(writer).compile(b"%PDF", [_note()], scale=1.3)

        # Anchor (130, 65) px at 1.3 is (100, 50) pt from the top-left
        (_, x, y, width, height, _, opacity), = writer.draws
        assert (x, y, width, height) == pytest.approx((100.0, 722.0, 20.0, 20.0))
        assert opacity == 1.0

    def test_uses_each_page_height(self):
        writer = RecordingWriter(size=(300.0, 400.0))
        ExportCompiler(writer).compile(b"%PDF", [_highlight(bbox=Rect(0, 0, 10, 10))], scale=1.0)

        (_, _, y, _, _, _, _), = writer.draws
        assert y == pytest.approx(390.0)


# ── Whole-export behaviour ───────────────────────────────────────────────────


class TestExportCompiler:
    def test_annotations_grouped_by_page(self):
        writer = RecordingWriter(pages=3)
        annotations = [_highlight(page=2), _highlight(page=1), _note(page=2)]
        ExportCompiler(writer).compile(b"%PDF", annotations, scale=1.0)

        assert [draw[0] for draw in writer.draws] == [2, 2, 1]

    def test_progress_reported_per_annotation(self):
        progress = []
        ExportCompiler(RecordingWriter()).compile(
            b"%PDF", [_highlight(), _note()], scale=1.0,
            progress=lambda done, total: progress.append((done, total)))

        assert progress == [(1, 2), (2, 2)]

    def test_no_annotations_still_exports(self):
        writer = RecordingWriter()
        assert ExportCompiler(writer).compile(b"%PDF", [], scale=1.3) == b"%PDF-exported"
        assert writer.draws == []

    def test_failure_midway_produces_nothing(self):
        writer = RecordingWriter(fail_on_draw=2)

        with pytest.raises(ExportError):
            ExportCompiler(writer).compile(b"%PDF", [_highlight(), _note(), _highlight()],
                                           scale=1.0)
        assert not writer.saved
        assert writer.closed

    def test_page_out_of_range_rejected_before_drawing(self):
        writer = RecordingWriter(pages=1)

        with pytest.raises(ExportError):
            ExportCompiler(writer).compile(b"%PDF", [_highlight(page=1), _highlight(page=5)],
                                           scale=1.0)
        assert writer.draws == []
        assert writer.closed

    def test_missing_original(self):
        with pytest.raises(ExportError):
            ExportCompiler(RecordingWriter()).compile(b"", [_highlight()], scale=1.0)

    def test_invalid_scale(self):
        with pytest.raises(ExportError):
            ExportCompiler(RecordingWriter()).compile(b"%PDF", [_highlight()], scale=0)

    def test_bad_color(self):
        writer = RecordingWriter()
        with pytest.raises(ExportError):
            ExportCompiler(writer).compile(b"%PDF", [_highlight(color="yellowish")], scale=1.0)
        assert not writer.saved


# ── Real documents ───────────────────────────────────────────────────────────


class TestFitzDocumentWriter:
    def test_highlight_lands_where_it_was_drawn(self, pdf_bytes):
        # 1.3 px per point: (130, 130, 260, 26) px is (100, 100, 300, 120) from the top
        data = ExportCompiler().compile(
            pdf_bytes, [_highlight(bbox=Rect(130, 130, 260, 26))], scale=1.3)

        doc = fitz.open(stream=data, filetype="pdf")
        try:
            assert doc.page_count == 2
            fills = [d for d in doc[0].get_drawings() if d.get("fill")]
            assert len(fills) == 1
            rect = fills[0]["rect"]
            assert (rect.x0, rect.y0, rect.x1, rect.y1) == pytest.approx(
                (100, 100, 300, 120), abs=0.01)
            assert fills[0]["fill"] == pytest.approx((250 / 255, 204 / 255, 21 / 255), abs=0.01)
            assert doc[1].get_drawings() == []
        finally:
            doc.close()

    def test_original_text_is_preserved(self, pdf_bytes):
        data = ExportCompiler().compile(pdf_bytes, [_note(page=2)], scale=1.0)

        doc = fitz.open(stream=data, filetype="pdf")
        try:
            assert "Hello annotated world 2" in doc[1].get_text()
        finally:
            doc.close()

    def test_garbage_input(self):
        with pytest.raises(ExportError):
            FitzDocumentWriter().load(b"definitely not a pdf")

    def test_rotated_page_highlight_lands_where_it_is_shown(self, make_pdf):
        # Rotated 90 degrees the page is shown 792 x 612
        data = ExportCompiler().compile(
            make_pdf(rotation=90),
            [_highlight(bbox=Rect(100, 200, 200, 40), color="#ff0000", opacity=0.8,
                        capture_scale=1.0)],
            scale=1.0)

        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pixmap = doc[0].get_pixmap(alpha=False)
            assert (pixmap.width, pixmap.height) == (792, 612)

            red, green, blue = pixmap.pixel(200, 220)
            assert red > 200 and green < 120 and blue < 120
            # Where the rect would land if the rotation were ignored
            assert tuple(pixmap.pixel(570, 200)) == (255, 255, 255)
            assert tuple(pixmap.pixel(200, 400)) == (255, 255, 255)
        finally:
            doc.close()
