"""
Reading-mode recoloring of rendered pages.

The filter is a 4x5 affine color matrix that maps original black ink to the
chosen text color and original white paper to the chosen page color. It is
applied to an already rendered raster at display time, never by re-rendering.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

import fitz

RGB = Tuple[int, int, int]

WHITE: RGB = (255, 255, 255)
BLACK: RGB = (0, 0, 0)


def parse_hex_color(value: str) -> RGB:
    """
    Parse a CSS style hex color ("#facc15" or "#fc1") into an RGB tuple.

    Raises:
        ValueError: If the string is not a valid hex color
    """
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    try:
        number = int(text, 16)
    except ValueError:
        raise ValueError(f"Invalid hex color: {value!r}") from None
    return (number >> 16) & 255, (number >> 8) & 255, number & 255


def to_hex_color(rgb: RGB) -> str:
    """Format an RGB tuple as "#rrggbb"."""
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def rgb_to_int(rgb: RGB) -> int:
    """Pack an RGB tuple into 0xRRGGBB, the form PyMuPDF expects for tinting."""
    r, g, b = rgb
    return (r << 16) | (g << 8) | b


@dataclass(frozen=True)
class ColorFilterMatrix:
    """Per-channel affine transform: out = v * scale + offset (normalized)."""

    scale: Tuple[float, float, float]
    offset: Tuple[float, float, float]

    @property
    def rows(self) -> Tuple[Tuple[float, ...], ...]:
        """The full 4x5 matrix; the alpha row passes through unchanged."""
        (rs, gs, bs), (ro, go, bo) = self.scale, self.offset
        return (
            (rs, 0.0, 0.0, 0.0, ro),
            (0.0, gs, 0.0, 0.0, go),
            (0.0, 0.0, bs, 0.0, bo),
            (0.0, 0.0, 0.0, 1.0, 0.0),
        )

    @property
    def is_identity(self) -> bool:
        return self.scale == (1.0, 1.0, 1.0) and self.offset == (0.0, 0.0, 0.0)

    @property
    def text_color(self) -> RGB:
        """Color that original black maps to."""
        return tuple(_clamp_channel(o * 255) for o in self.offset)

    @property
    def page_color(self) -> RGB:
        """Color that original white maps to."""
        return tuple(_clamp_channel((s + o) * 255)
                     for s, o in zip(self.scale, self.offset))

    def apply(self, rgba: Tuple[int, ...]) -> Tuple[int, ...]:
        """Apply the filter to a single RGB or RGBA pixel (0-255 channels)."""
        channels = [
            _clamp_channel((v / 255 * s + o) * 255)
            for v, s, o in zip(rgba[:3], self.scale, self.offset)
        ]
        return tuple(channels) + tuple(rgba[3:])

    def apply_to_pixmap(self, pixmap: fitz.Pixmap) -> fitz.Pixmap:
        """
        Return a recolored copy of *pixmap*, leaving the original untouched.

        MuPDF's tint maps black and white to the two endpoints and interpolates
        linearly in between, which is exactly this matrix.
        """
        if self.is_identity:
            return pixmap
        tinted = fitz.Pixmap(pixmap)
        tinted.tint_with(rgb_to_int(self.text_color), rgb_to_int(self.page_color))
        return tinted


def _clamp_channel(value: float) -> int:
    return max(0, min(255, int(round(value))))


@lru_cache(maxsize=32)
def compile_color_filter(page_color: RGB, text_color: RGB) -> ColorFilterMatrix:
    """
    Compute the recoloring matrix for a page/text color pair.

    Results are cached, so the matrix is only recomputed when an endpoint
    color actually changes.
    """
    scale = tuple((bg - fg) / 255 for bg, fg in zip(page_color, text_color))
    offset = tuple(fg / 255 for fg in text_color)
    return ColorFilterMatrix(scale=scale, offset=offset)


def compile_hex_color_filter(page_color: str, text_color: str) -> ColorFilterMatrix:
    """Convenience wrapper taking "#rrggbb" strings."""
    return compile_color_filter(parse_hex_color(page_color),
                                parse_hex_color(text_color))


IDENTITY_FILTER = compile_color_filter(WHITE, BLACK)
