"""
Page rendering and the selectable text overlay.
"""

from .models import OverlaySpan, PageRenderState, TextItem, TextPosition
from .renderer import PageRenderer, RenderQueue
from .source import FitzPage, FitzPageSource, RasterSurface, Viewport
from .text_layer import OverlaySelection, TextOverlay, build_overlay_span

__all__ = [
    "PageRenderer",
    "RenderQueue",
    "PageRenderState",
    "TextItem",
    "OverlaySpan",
    "TextPosition",
    "TextOverlay",
    "OverlaySelection",
    "build_overlay_span",
    "FitzPage",
    "FitzPageSource",
    "RasterSurface",
    "Viewport",
]
