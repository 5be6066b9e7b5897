"""
Invisible text overlay built on top of a page raster.

The overlay exists so text can be selected and located on the page; it is not
meant to reproduce the glyphs visually.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from inkmark.core.geometry import Rect

from .models import OverlaySpan, TextItem, TextPosition


def build_overlay_span(item: TextItem, viewport, index: int = -1) -> OverlaySpan:
    """
    Position one text run in page-pixel space.

    *viewport* must provide ``scale`` and ``convert_to_viewport_point``.
    """
    scale_x, skew_x, skew_y, scale_y, tx, ty = item.transform

    font_size = math.sqrt(scale_y * scale_y + skew_y * skew_y) * viewport.scale
    vx, vy = viewport.convert_to_viewport_point(tx, ty)
    angle = math.atan2(skew_x, scale_x)

    return OverlaySpan(
        text=item.text,
        left=vx,
        # The transform anchors the baseline; the element is placed by its top
        top=vy - font_size,
        font_size=font_size,
        angle=angle,
        width=item.width * viewport.scale,
        index=index,
    )


@dataclass
class OverlaySelection:
    """Text and one rectangle per visual line for a range of the overlay."""

    text: str = ""
    line_rects: List[Rect] = field(default_factory=list)

    @property
    def is_collapsed(self) -> bool:
        return not self.text


class TextOverlay:
    """
    Selectable span layer for one rendered page.

    Spans are kept in extraction order, which is the order selection ranges
    walk through. A coarse grid index keeps point lookups cheap.
    """

    def __init__(self, spans: Iterable[OverlaySpan] = ()):
        # Span indices must match list positions for range walking
        self.spans: List[OverlaySpan] = [
            span if span.index == position else replace(span, index=position)
            for position, span in enumerate(spans)
        ]
        self._span_grid: Dict[Tuple[int, int], List[OverlaySpan]] = {}
        self._grid_size = 50  # Grid cell size in pixels

        self._build_spatial_index()

    @classmethod
    def build(cls, items: Iterable[TextItem], viewport) -> "TextOverlay":
        """Build the overlay for *items* as seen through *viewport*."""
        return cls(
            build_overlay_span(item, viewport, index)
            for index, item in enumerate(items)
        )

    def _build_spatial_index(self):
        """Build a grid-based spatial index for fast span lookup."""
        self._span_grid.clear()

        for span in self.spans:
            rect = span.rect
            min_col = int(rect.x // self._grid_size)
            max_col = int(rect.right // self._grid_size)
            min_row = int(rect.y // self._grid_size)
            max_row = int(rect.bottom // self._grid_size)

            for row in range(min_row, max_row + 1):
                for col in range(min_col, max_col + 1):
                    self._span_grid.setdefault((row, col), []).append(span)

    # ------------------------------------------------------------------
    # Hit testing
    # ------------------------------------------------------------------

    def span_at(self, x: float, y: float) -> Optional[OverlaySpan]:
        """Find the span under a page-pixel point."""
        row = int(y // self._grid_size)
        col = int(x // self._grid_size)

        for span in self._span_grid.get((row, col), []):
            if span.rect.contains(x, y):
                return span
        return None

    def position_at(self, x: float, y: float,
                    max_distance: float = 20.0) -> Optional[TextPosition]:
        """
        Caret position nearest to a page-pixel point.

        Exact hits win; otherwise the closest span within *max_distance*
        is used, which lets a drag start just outside the glyphs.
        """
        span = self.span_at(x, y)
        if span is None:
            span = self._nearest_span(x, y, max_distance)
        if span is None:
            return None
        return TextPosition(span.index, span.offset_at(x, y))

    def _nearest_span(self, x: float, y: float,
                      max_distance: float) -> Optional[OverlaySpan]:
        center_row = int(y // self._grid_size)
        center_col = int(x // self._grid_size)
        search_radius = int(max_distance // self._grid_size) + 1

        best_span = None
        best_dist = float("inf")

        for row in range(center_row - search_radius, center_row + search_radius + 1):
            for col in range(center_col - search_radius, center_col + search_radius + 1):
                for span in self._span_grid.get((row, col), []):
                    rect = span.rect
                    # Distance to the box, zero along an axis when inside it
                    dx = max(rect.x - x, 0.0, x - rect.right)
                    dy = max(rect.y - y, 0.0, y - rect.bottom)
                    dist = math.hypot(dx, dy)

                    if dist < best_dist and dist <= max_distance:
                        best_dist = dist
                        best_span = span

        return best_span

    # ------------------------------------------------------------------
    # Ranges
    # ------------------------------------------------------------------

    def fragments(self, start: TextPosition,
                  end: TextPosition) -> List[Tuple[OverlaySpan, int, int]]:
        """(span, first, last) character ranges covered by [start, end)."""
        if end < start:
            start, end = end, start

        result = []
        for span in self.spans[start.span_index:end.span_index + 1]:
            first = start.offset if span.index == start.span_index else 0
            last = end.offset if span.index == end.span_index else len(span.text)
            if last > first:
                result.append((span, first, last))
        return result

    def select(self, start: TextPosition, end: TextPosition) -> OverlaySelection:
        """Text plus merged line rectangles for a range of the overlay."""
        lines: List[Tuple[Rect, List[str]]] = []

        for span, first, last in self.fragments(start, end):
            rect = span.char_rect(first, last)
            piece = span.text[first:last]

            if lines and _same_line(lines[-1][0], rect, span.is_vertical):
                line_rect, pieces = lines[-1]
                if _needs_space(line_rect, rect, pieces[-1], piece, span.char_width,
                                span.is_vertical):
                    pieces.append(" ")
                pieces.append(piece)
                lines[-1] = (line_rect.union(rect), pieces)
            else:
                lines.append((rect, [piece]))

        return OverlaySelection(
            text="\n".join("".join(pieces) for _, pieces in lines),
            line_rects=[rect for rect, _ in lines],
        )

    def select_all(self) -> OverlaySelection:
        if not self.spans:
            return OverlaySelection()
        last = self.spans[-1]
        return self.select(TextPosition(0, 0), TextPosition(last.index, len(last.text)))

    @property
    def full_text(self) -> str:
        """Get all text on the page."""
        return self.select_all().text

    def __len__(self) -> int:
        return len(self.spans)


def _same_line(line: Rect, rect: Rect, vertical: bool = False) -> bool:
    """Whether *rect* sits on the visual line covered by *line*."""
    line_x, line_y = line.center
    rect_x, rect_y = rect.center
    if vertical:
        return abs(line_x - rect_x) <= max(line.width, rect.width) / 2
    return abs(line_y - rect_y) <= max(line.height, rect.height) / 2


def _needs_space(line: Rect, rect: Rect, before: str, after: str,
                 char_width: float, vertical: bool = False) -> bool:
    if not before or not after or before[-1].isspace() or after[0].isspace():
        return False
    if vertical:
        gap = max(rect.y - line.bottom, line.y - rect.bottom)
    else:
        gap = rect.x - line.right
    return gap > char_width * 0.5
