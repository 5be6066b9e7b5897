import math
from dataclasses import dataclass
from typing import Optional, Tuple

from inkmark.core.geometry import Rect

# ==============================================================================
# Text content (what the rendering backend reports)
# ==============================================================================


@dataclass(frozen=True)
class TextItem:
    """A text run as reported by the rendering backend."""

    text: str
    # (scaleX, skewX, skewY, scaleY, tx, ty) in PDF point space
    transform: Tuple[float, float, float, float, float, float]
    width: float = 0.0  # Advance width in points
    height: float = 0.0


# ==============================================================================
# Overlay objects (what the renderer builds)
# ==============================================================================


@dataclass(frozen=True)
class OverlaySpan:
    """An invisible, selectable text run positioned over the raster."""

    text: str
    left: float  # Top-left corner in page-pixel space
    top: float
    font_size: float  # In pixels, already multiplied by the scale
    angle: float = 0.0  # Radians, counter-clockwise in PDF space
    width: float = 0.0  # In pixels
    index: int = -1

    @property
    def rect(self) -> Rect:
        """Box covered by the whole span in page-pixel space."""
        return self.char_rect(0, len(self.text))

    @property
    def origin(self) -> Tuple[float, float]:
        """Start of the baseline in page-pixel space."""
        return self.left, self.top + self.font_size

    @property
    def direction(self) -> Tuple[float, float]:
        """Unit writing direction in page-pixel space (y grows downwards)."""
        return round(math.cos(self.angle), 9), round(-math.sin(self.angle), 9)

    @property
    def is_vertical(self) -> bool:
        dx, dy = self.direction
        return abs(dy) > abs(dx)

    @property
    def char_width(self) -> float:
        """Uniform per-character advance used for hit testing."""
        if not self.text:
            return 0.0
        return self.width / len(self.text)

    def char_rect(self, start: int, end: int) -> Rect:
        """Box covered by characters [start, end) of this span."""
        start = max(0, min(start, len(self.text)))
        end = max(start, min(end, len(self.text)))
        advance = self.char_width
        if not self.angle:
            return Rect(self.left + start * advance, self.top,
                        (end - start) * advance, self.font_size)

        # Rotated run: bounding box of the glyph cell corners
        ox, oy = self.origin
        dx, dy = self.direction
        ux, uy = dy, -dx  # Towards the glyph tops
        xs, ys = [], []
        for along in (start * advance, end * advance):
            for across in (0.0, self.font_size):
                xs.append(ox + dx * along + ux * across)
                ys.append(oy + dy * along + uy * across)
        return Rect(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def offset_at(self, x: float, y: Optional[float] = None) -> int:
        """Character boundary nearest to page-pixel point (*x*, *y*)."""
        advance = self.char_width
        if advance <= 0:
            return 0
        ox, oy = self.origin
        dx, dy = self.direction
        along = (x - ox) * dx
        if y is not None:
            along += (y - oy) * dy
        offset = int(round(along / advance))
        return max(0, min(offset, len(self.text)))


@dataclass(frozen=True)
class TextPosition:
    """A caret position inside the overlay: span index plus character offset."""

    span_index: int
    offset: int

    def __lt__(self, other: "TextPosition") -> bool:
        return (self.span_index, self.offset) < (other.span_index, other.offset)


# ==============================================================================
# Render state
# ==============================================================================


@dataclass
class PageRenderState:
    """Per-page derived state; never persisted."""

    rendered: bool = False
    has_text: bool = False
    width: int = 0
    height: int = 0
    scale: float = 0.0
