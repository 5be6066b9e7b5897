"""
Rectangles and the pixel/point conversions shared by the pipeline.

Page-pixel space has a top-left origin and is measured in pixels at a given
rendering scale. Point space is the PDF's own: bottom-left origin, 1/72 inch.
"""
from typing import Iterable, NamedTuple, Optional, Tuple


class Rect(NamedTuple):
    """Axis-aligned rectangle stored as (x, y, width, height)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @classmethod
    def from_corners(cls, x0: float, y0: float, x1: float, y1: float) -> "Rect":
        """Build a rect from two corners in any order."""
        left, right = min(x0, x1), max(x0, x1)
        top, bottom = min(y0, y1), max(y0, y1)
        return cls(left, top, right - left, bottom - top)

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def scaled(self, factor: float) -> "Rect":
        return Rect(self.x * factor, self.y * factor,
                    self.width * factor, self.height * factor)

    def union(self, other: "Rect") -> "Rect":
        return Rect.from_corners(
            min(self.x, other.x), min(self.y, other.y),
            max(self.right, other.right), max(self.bottom, other.bottom),
        )

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def bounding_rect(rects: Iterable[Rect]) -> Optional[Rect]:
    """Smallest rect enclosing all of *rects*, or None when there are none."""
    result = None
    for rect in rects:
        result = rect if result is None else result.union(rect)
    return result


def pixel_to_point_rect(bbox: Rect, scale: float, page_height: float) -> Rect:
    """
    Convert a page-pixel bbox into PDF point space.

    Args:
        bbox: Rectangle in page-pixel space (top-left origin)
        scale: Rendering scale active when the bbox was captured
        page_height: Page height in points

    Returns:
        Rectangle in point space (bottom-left origin)
    """
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")

    x = bbox.x / scale
    y = bbox.y / scale
    width = bbox.width / scale
    height = bbox.height / scale
    return Rect(x, page_height - y - height, width, height)


def point_to_pixel_rect(rect: Rect, scale: float, page_height: float) -> Rect:
    """Inverse of :func:`pixel_to_point_rect`."""
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")

    top = page_height - rect.y - rect.height
    return Rect(rect.x * scale, top * scale,
                rect.width * scale, rect.height * scale)
