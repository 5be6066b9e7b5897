"""
PyMuPDF-backed page rendering service.

Exposes the narrow surface the pipeline consumes: page lookup, viewports,
rasterization and positioned text runs. Everything else about the document
stays inside PyMuPDF.
"""
import logging
import math
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from inkmark.core.color_filter import ColorFilterMatrix
from inkmark.core.page.models import TextItem
from inkmark.errors import PageRenderError

logger = logging.getLogger(__name__)


def displayed_flip(page: fitz.Page) -> fitz.Matrix:
    """Flip between top-left and bottom-left origin on the displayed page."""
    return fitz.Matrix(1, 0, 0, -1, 0, page.rect.height)


class Viewport:
    """A page seen at a given rendering scale."""

    def __init__(self, page: fitz.Page, scale: float):
        if scale <= 0:
            raise ValueError(f"Scale must be positive, got {scale}")

        self.scale = scale
        # MuPDF page space -> pixels
        self.render_matrix = fitz.Matrix(scale, scale)
        # Point space of the page as displayed (bottom-left origin, page
        # rotation applied) -> pixels
        self.transform = displayed_flip(page) * self.render_matrix

        pixel_rect = page.rect * self.render_matrix
        self.width = pixel_rect.width
        self.height = pixel_rect.height

    @property
    def pixel_size(self) -> Tuple[int, int]:
        """Integer surface size needed to hold the page at this scale."""
        return int(math.ceil(self.width - 1e-6)), int(math.ceil(self.height - 1e-6))

    def convert_to_viewport_point(self, x: float, y: float) -> Tuple[float, float]:
        """Map a PDF point-space coordinate to viewport pixels."""
        point = fitz.Point(x, y) * self.transform
        return point.x, point.y


class RasterSurface:
    """Holds a rendered page bitmap and the size it was rendered for."""

    def __init__(self):
        self.pixmap: Optional[fitz.Pixmap] = None
        self.target_size: Tuple[int, int] = (0, 0)

    @property
    def size(self) -> Tuple[int, int]:
        return self.target_size

    @property
    def is_empty(self) -> bool:
        return self.pixmap is None

    def set_pixmap(self, pixmap: fitz.Pixmap, target_size: Tuple[int, int]) -> None:
        self.pixmap = pixmap
        self.target_size = target_size

    def filtered(self, color_filter: Optional[ColorFilterMatrix]) -> Optional[fitz.Pixmap]:
        """The bitmap with a display-time color filter applied."""
        if self.pixmap is None or color_filter is None:
            return self.pixmap
        return color_filter.apply_to_pixmap(self.pixmap)

    def clear(self) -> None:
        self.pixmap = None
        self.target_size = (0, 0)


class FitzPage:
    """Page handle handed to the renderer."""

    def __init__(self, page: fitz.Page, page_number: int):
        self._page = page
        self.page_number = page_number  # 1-based

    @property
    def size(self) -> Tuple[float, float]:
        """Page width and height in points."""
        rect = self._page.rect
        return rect.width, rect.height

    def get_viewport(self, scale: float) -> Viewport:
        return Viewport(self._page, scale)

    def render(self, surface: RasterSurface, viewport: Viewport) -> None:
        """
        Rasterize the page into *surface*.

        Raises:
            PageRenderError: If MuPDF cannot rasterize the page
        """
        try:
            pixmap = self._page.get_pixmap(matrix=viewport.render_matrix, alpha=False)
        except RuntimeError as e:
            raise PageRenderError(self.page_number, str(e)) from e
        surface.set_pixmap(pixmap, viewport.pixel_size)

    def get_text_content(self) -> List[TextItem]:
        """
        Extract positioned text runs in reading order.

        Each run carries a PDF-space transform: the baseline origin in point
        space plus the font size rotated along the writing direction.
        """
        # MuPDF reports text on the unrotated page
        to_pdf = self._page.rotation_matrix * displayed_flip(self._page)
        text_dict = self._page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)

        items: List[TextItem] = []
        for block in text_dict.get("blocks", []):
            # Skip image blocks
            if block.get("type") != 0:
                continue

            for line in block.get("lines", []):
                dir_x, dir_y = line.get("dir", (1.0, 0.0))

                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    items.append(self._span_to_item(span, text, dir_x, dir_y, to_pdf))

        return items

    @staticmethod
    def _span_to_item(span: dict, text: str, dir_x: float, dir_y: float,
                      to_pdf: fitz.Matrix) -> TextItem:
        size = float(span.get("size", 12.0))
        origin = fitz.Point(span.get("origin", (0.0, 0.0)))
        bbox = fitz.Rect(span.get("bbox", (0, 0, 0, 0)))

        # Writing direction expressed in PDF space (y axis points up)
        pdf_origin = origin * to_pdf
        pdf_ahead = (origin + fitz.Point(dir_x, dir_y)) * to_pdf
        dx, dy = pdf_ahead.x - pdf_origin.x, pdf_ahead.y - pdf_origin.y
        length = math.hypot(dx, dy) or 1.0
        dx, dy = dx / length, dy / length

        transform = (size * dx, size * dy, -size * dy, size * dx,
                     pdf_origin.x, pdf_origin.y)
        width = bbox.width if abs(dir_x) >= abs(dir_y) else bbox.height
        return TextItem(text=text, transform=transform, width=width, height=size)


class FitzPageSource:
    """Page lookup over an open PyMuPDF document."""

    def __init__(self, doc: fitz.Document):
        self._doc = doc

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def get_page(self, page_number: int) -> FitzPage:
        """
        Load a page by 1-based number.

        Raises:
            IndexError: If the page does not exist
        """
        if not 1 <= page_number <= self._doc.page_count:
            raise IndexError(f"Page {page_number} out of range (1-{self._doc.page_count})")
        return FitzPage(self._doc.load_page(page_number - 1), page_number)
