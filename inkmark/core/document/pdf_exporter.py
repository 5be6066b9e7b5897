"""
Burning annotations into the original document.
"""
import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import fitz  # PyMuPDF

from inkmark.core.annotations import Annotation, AnnotationType
from inkmark.core.color_filter import parse_hex_color
from inkmark.core.geometry import Rect, pixel_to_point_rect
from inkmark.errors import ExportError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class FitzDocumentWriter:
    """
    Point-space document mutation on top of PyMuPDF.

    Rectangles handed to :meth:`draw_rectangle` use the PDF convention:
    bottom-left origin, measured in points.
    """

    def load(self, data: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise ExportError(f"Could not open source document: {e}") from e
        if doc.page_count == 0:
            doc.close()
            raise ExportError("Source document has no pages")
        return doc

    def get_pages(self, doc: fitz.Document) -> List[fitz.Page]:
        return [doc.load_page(index) for index in range(doc.page_count)]

    def get_size(self, page: fitz.Page) -> Tuple[float, float]:
        """Page width and height in points, as displayed."""
        return page.rect.width, page.rect.height

    def draw_rectangle(self, page: fitz.Page, x: float, y: float,
                       width: float, height: float,
                       color: Tuple[float, float, float], opacity: float) -> None:
        """Fill a rectangle given in bottom-left point space."""
        page_height = page.rect.height
        # Top-left coordinates on the page as displayed
        rect = fitz.Rect(x, page_height - y - height, x + width, page_height - y)
        # Drawing takes unrotated page coordinates
        rect = rect * page.derotation_matrix
        page.draw_rect(rect, color=None, fill=color, width=0,
                       fill_opacity=opacity, overlay=True)

    def save(self, doc: fitz.Document) -> bytes:
        return doc.tobytes(garbage=4, deflate=True)

    def close(self, doc: fitz.Document) -> None:
        doc.close()


class ExportCompiler:
    """
    Converts stored annotation geometry to point space and emits new bytes.

    The original document is always reopened from its bytes; rendered
    rasters are never involved. Either every annotation is written or the
    export fails as a whole.
    """

    NOTE_SIZE = (20.0, 20.0)  # Points

    def __init__(self, writer: Optional[FitzDocumentWriter] = None,
                 note_size: Tuple[float, float] = NOTE_SIZE):
        self.writer = writer or FitzDocumentWriter()
        self.note_size = note_size

    def to_point_rect(self, annotation: Annotation, scale: float,
                      page_height: float) -> Rect:
        """
        Point-space rectangle for one annotation.

        Args:
            annotation: Annotation to place
            scale: Session scale, used when the record has no capture scale
            page_height: Page height in points
        """
        capture_scale = annotation.scale_or(scale)

        if annotation.type == AnnotationType.NOTE:
            note_width, note_height = self.note_size
            # A note's anchor is the top-left corner of its marker
            anchor = Rect(annotation.bbox.x, annotation.bbox.y, 0.0, 0.0)
            top_left = pixel_to_point_rect(anchor, capture_scale, page_height)
            return Rect(top_left.x, top_left.y - note_height, note_width, note_height)

        return pixel_to_point_rect(annotation.bbox, capture_scale, page_height)

    def compile(self, original: bytes, annotations: Sequence[Annotation],
                scale: float, progress: Optional[ProgressCallback] = None) -> bytes:
        """
        Produce a new document with *annotations* drawn in.

        Args:
            original: Bytes of the original, unrendered document
            annotations: Annotations to burn in
            scale: Session rendering scale
            progress: Called with (done, total) after each annotation

        Returns:
            The new document bytes

        Raises:
            ExportError: If anything fails; no partial output is produced
        """
        if not original:
            raise ExportError("No source document to export")
        if scale <= 0:
            raise ExportError(f"Invalid rendering scale: {scale}")

        annotations = list(annotations)
        doc = self.writer.load(original)
        try:
            pages = self.writer.get_pages(doc)
            by_page = self._group_by_page(annotations)

            for page_number in by_page:
                if not 1 <= page_number <= len(pages):
                    raise ExportError(
                        f"Annotation on page {page_number} but document has {len(pages)} pages")

            total = len(annotations)
            done = 0
            for page_number, page_annotations in by_page.items():
                page = pages[page_number - 1]
                _, page_height = self.writer.get_size(page)

                for annotation in page_annotations:
                    rect = self.to_point_rect(annotation, scale, page_height)
                    self.writer.draw_rectangle(
                        page, rect.x, rect.y, rect.width, rect.height,
                        color=self._fill_color(annotation.color),
                        opacity=max(0.0, min(1.0, annotation.opacity)),
                    )
                    done += 1
                    if progress is not None:
                        progress(done, total)

            data = self.writer.save(doc)
            logger.info("Exported %d annotations across %d pages", total, len(by_page))
            return data

        except ExportError:
            raise
        except Exception as e:
            logger.exception("Failed to export annotations")
            raise ExportError(f"Failed to export annotations: {e}") from e
        finally:
            self.writer.close(doc)

    @staticmethod
    def _group_by_page(annotations: Iterable[Annotation]) -> Dict[int, List[Annotation]]:
        """Group by page, keeping first-seen page order and insertion order within."""
        by_page: Dict[int, List[Annotation]] = OrderedDict()
        for annotation in annotations:
            by_page.setdefault(annotation.page, []).append(annotation)
        return by_page

    @staticmethod
    def _fill_color(hex_color: str) -> Tuple[float, float, float]:
        try:
            rgb = parse_hex_color(hex_color)
        except ValueError as e:
            raise ExportError(str(e)) from e
        # PyMuPDF uses 0-1 range
        return tuple(c / 255.0 for c in rgb)
