"""
Per-page rasterization and overlay construction.
"""

import logging
from collections import deque
from typing import Deque, Optional, Tuple

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from .models import PageRenderState
from .source import RasterSurface
from .text_layer import TextOverlay

logger = logging.getLogger(__name__)


class PageRenderer:
    """
    Produces a raster and a matching text overlay for one page.

    Raster and overlay are always rebuilt together from the same viewport so
    they cannot drift apart. Once torn down, a renderer discards any work
    still in progress.
    """

    def __init__(self, source, page_number: int):
        """
        Args:
            source: Rendering service exposing ``get_page(page_number)``
            page_number: 1-based page number
        """
        self._source = source
        self.page_number = page_number

        self.surface = RasterSurface()
        self.overlay = TextOverlay()
        self.state = PageRenderState()
        self.page_size: Tuple[float, float] = (0.0, 0.0)  # In points

        self._active = True

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def has_text(self) -> bool:
        return self.state.has_text

    @property
    def scale(self) -> float:
        return self.state.scale

    def needs_render(self, scale: float) -> bool:
        """Whether rendering at *scale* would do any work."""
        if not self.state.rendered:
            return True
        return abs(self.state.scale - scale) > 1e-9

    def render(self, scale: float) -> bool:
        """
        Render the page at *scale*.

        Returns:
            True if the page holds a complete render afterwards
        """
        if not self._active:
            return False

        try:
            page = self._source.get_page(self.page_number)
            viewport = page.get_viewport(scale)

            # Only render if dimensions change or not rendered yet
            if self.state.rendered and self.surface.size == viewport.pixel_size:
                return True

            surface = RasterSurface()
            page.render(surface, viewport)
            if not self._active:
                logger.debug("Discarding raster for torn down page %d", self.page_number)
                return False

            items = page.get_text_content()
            if not self._active:
                logger.debug("Discarding overlay for torn down page %d", self.page_number)
                return False

            overlay = TextOverlay.build(items, viewport)
            page_size = page.size

        except Exception:
            logger.exception("Error rendering page %d", self.page_number)
            if self._active:
                self._reset()
            return False

        self.surface = surface
        self.overlay = overlay
        self.page_size = page_size
        width, height = viewport.pixel_size
        self.state = PageRenderState(
            rendered=True,
            has_text=len(overlay) > 0,
            width=width,
            height=height,
            scale=scale,
        )
        return True

    def _reset(self):
        self.surface = RasterSurface()
        self.overlay = TextOverlay()
        self.state = PageRenderState()

    def teardown(self):
        """Stop accepting results; anything in flight is discarded."""
        self._active = False
        self._reset()

    def __repr__(self) -> str:
        return (f"PageRenderer(page={self.page_number}, "
                f"rendered={self.state.rendered}, has_text={self.state.has_text})")


class RenderQueue(QObject):
    """
    Cooperative scheduler that renders one page per event-loop turn.

    Pages interleave instead of blocking each other, and the UI stays
    responsive between pages.
    """

    # Signals
    page_rendered = pyqtSignal(int)  # page_number
    page_failed = pyqtSignal(int)  # page_number
    image_only_page = pyqtSignal(int)  # page_number

    def __init__(self, parent=None):
        super().__init__(parent)
        self._pending: Deque[Tuple[PageRenderer, float]] = deque()
        self._scheduled = False

    def schedule(self, renderer: PageRenderer, scale: float) -> None:
        """Queue *renderer* for rendering, replacing any older request for it."""
        self.cancel(renderer)
        self._pending.append((renderer, scale))
        self._kick()

    def cancel(self, renderer: PageRenderer) -> None:
        self._pending = deque(
            (queued, scale) for queued, scale in self._pending if queued is not renderer
        )

    def clear(self) -> None:
        self._pending.clear()

    def process_next(self) -> Optional[int]:
        """
        Render the next queued page.

        Returns:
            The page number that was processed, or None if nothing ran
        """
        while self._pending:
            renderer, scale = self._pending.popleft()
            if not renderer.is_active:
                continue

            if renderer.render(scale):
                self.page_rendered.emit(renderer.page_number)
                if not renderer.has_text:
                    self.image_only_page.emit(renderer.page_number)
            elif renderer.is_active:
                self.page_failed.emit(renderer.page_number)
            return renderer.page_number
        return None

    def _kick(self):
        if self._pending and not self._scheduled:
            self._scheduled = True
            QTimer.singleShot(0, self._run_next)

    def _run_next(self):
        self._scheduled = False
        self.process_next()
        self._kick()

    def __len__(self) -> int:
        return len(self._pending)
