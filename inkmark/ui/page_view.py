"""
Widgets for a single page: filtered raster, annotations and text overlay.
"""
import logging
from typing import List, Optional

from PyQt5.QtCore import QPoint, QRectF, Qt, pyqtSignal
from PyQt5.QtGui import QBrush, QColor, QImage, QMouseEvent, QPainter, QPixmap
from PyQt5.QtWidgets import QLabel, QMenu, QWidget

from inkmark.core.annotations import Annotation
from inkmark.core.page import OverlaySelection, PageRenderer, TextOverlay, TextPosition
from inkmark.core.selection import ToolMode

logger = logging.getLogger(__name__)

SELECTION_COLOR = QColor(0, 89, 195, 90)
PLACEHOLDER_COLOR = QColor(235, 235, 235)


def pixmap_to_qpixmap(pixmap) -> QPixmap:
    """Convert a PyMuPDF RGB pixmap into a QPixmap."""
    img = QImage(pixmap.samples, pixmap.width, pixmap.height, pixmap.stride,
                 QImage.Format_RGB888)
    # QImage does not own the buffer; copy before the pixmap goes away
    return QPixmap.fromImage(img.copy())


class TextOverlayWidget(QWidget):
    """
    Transparent layer over the raster that lets the user select text.

    It paints only the selection; the glyphs come from the raster below.
    """

    # Signals
    selection_started = pyqtSignal(int)  # page_number
    selection_changed = pyqtSignal()

    def __init__(self, page_number: int, parent=None):
        super().__init__(parent)
        self.page_number = page_number
        self.overlay = TextOverlay()

        self._anchor: Optional[TextPosition] = None
        self._focus: Optional[TextPosition] = None
        self._selection = OverlaySelection()
        self._is_selecting = False

        self.setAttribute(Qt.WA_TranslucentBackground)
        self.setMouseTracking(True)

    def set_overlay(self, overlay: TextOverlay):
        if overlay is not self.overlay:
            self.overlay = overlay
            self.clear_selection()

    @property
    def selection(self) -> OverlaySelection:
        return self._selection

    def has_selection(self) -> bool:
        return not self._selection.is_collapsed

    def clear_selection(self):
        had_selection = self.has_selection()
        self._anchor = self._focus = None
        self._selection = OverlaySelection()
        self._is_selecting = False
        if had_selection:
            self.selection_changed.emit()
        self.update()

    def select_all(self):
        self._selection = self.overlay.select_all()
        self.selection_started.emit(self.page_number)
        self.selection_changed.emit()
        self.update()

    def _update_selection(self):
        if self._anchor is None or self._focus is None:
            self._selection = OverlaySelection()
        else:
            self._selection = self.overlay.select(self._anchor, self._focus)
        self.selection_changed.emit()
        self.update()

    # Mouse event handlers

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)

        self.setFocus()
        position = self.overlay.position_at(event.x(), event.y())
        self.selection_started.emit(self.page_number)
        if position is None:
            self.clear_selection()
            return

        self._anchor = self._focus = position
        self._is_selecting = True
        self._update_selection()

    def mouseMoveEvent(self, event: QMouseEvent):
        if self._is_selecting and (event.buttons() & Qt.LeftButton):
            position = self.overlay.position_at(event.x(), event.y())
            if position is not None and position != self._focus:
                self._focus = position
                self._update_selection()
            return

        span = self.overlay.span_at(event.x(), event.y())
        self.setCursor(Qt.IBeamCursor if span is not None else Qt.ArrowCursor)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.LeftButton:
            self._is_selecting = False
        # Let the release reach the page so it can be observed there too
        event.ignore()

    def mouseDoubleClickEvent(self, event: QMouseEvent):
        span = self.overlay.span_at(event.x(), event.y())
        if span is None:
            return super().mouseDoubleClickEvent(event)

        self.selection_started.emit(self.page_number)
        self._anchor = TextPosition(span.index, 0)
        self._focus = TextPosition(span.index, len(span.text))
        self._update_selection()

    def paintEvent(self, event):
        if self._selection.is_collapsed:
            return

        painter = QPainter(self)
        painter.setBrush(QBrush(SELECTION_COLOR))
        painter.setPen(Qt.NoPen)
        for rect in self._selection.line_rects:
            painter.drawRect(QRectF(rect.x, rect.y, rect.width, rect.height))
        painter.end()


class NoteCallout(QLabel):
    """A pinned note shown at its anchor on the page."""

    delete_requested = pyqtSignal(str)  # annotation id

    MAX_WIDTH = 220

    def __init__(self, annotation: Annotation, parent=None):
        super().__init__(parent)
        self.annotation = annotation
        self.setProperty("interactive_chrome", True)

        self.setText(annotation.text)
        self.setToolTip(annotation.text)
        self.setWordWrap(True)
        self.setMaximumWidth(self.MAX_WIDTH)
        self.setStyleSheet(
            f"background-color: {annotation.color}; color: #1f2937;"
            "border: 1px solid #eab308; border-radius: 4px; padding: 4px 6px;"
        )
        self.adjustSize()

    def contextMenuEvent(self, event):
        if not self.annotation.id:
            return
        menu = QMenu(self)
        delete_action = menu.addAction("Delete note")
        if menu.exec_(event.globalPos()) == delete_action:
            self.delete_requested.emit(self.annotation.id)


class PageView(QWidget):
    """
    One page in the document column.

    The raster is recolored at paint time, so color changes never trigger a
    re-render. Annotations are scaled from their capture scale to the scale
    the raster was rendered at.
    """

    # Signals
    note_requested = pyqtSignal(int, float, float)  # page, x, y in page pixels
    delete_requested = pyqtSignal(str)  # annotation id

    def __init__(self, renderer: PageRenderer, settings, parent=None):
        super().__init__(parent)
        self.renderer = renderer
        self.settings = settings
        self.page_number = renderer.page_number

        self.annotations: List[Annotation] = []
        self.tool_mode = ToolMode.CURSOR
        self._pixmap: Optional[QPixmap] = None
        self._callouts: List[NoteCallout] = []

        self.text_layer = TextOverlayWidget(self.page_number, self)
        self.text_layer.setGeometry(self.rect())

        self.setObjectName(f"page-{self.page_number}")
        self.setAttribute(Qt.WA_OpaquePaintEvent)

    @property
    def render_scale(self) -> float:
        return self.renderer.scale or self.settings.scale

    def set_placeholder_size(self, width: int, height: int):
        """Reserve space before the page has been rendered."""
        if self._pixmap is None:
            self.setFixedSize(max(1, width), max(1, height))
            self.text_layer.setGeometry(self.rect())

    def refresh_raster(self):
        """Pick up the renderer's latest raster and overlay."""
        filtered = self.renderer.surface.filtered(self.settings.color_filter)
        if filtered is None:
            self._pixmap = None
            self.update()
            return

        self._pixmap = pixmap_to_qpixmap(filtered)
        self.setFixedSize(self._pixmap.size())
        self.text_layer.setGeometry(self.rect())
        self.text_layer.set_overlay(self.renderer.overlay)
        self._layout_callouts()
        self.update()

    def set_annotations(self, annotations: List[Annotation]):
        """Set annotations to display on this page."""
        self.annotations = list(annotations)

        for callout in self._callouts:
            callout.deleteLater()
        self._callouts = []

        for annotation in self.annotations:
            if annotation.is_note:
                callout = NoteCallout(annotation, self)
                callout.delete_requested.connect(self.delete_requested)
                callout.show()
                self._callouts.append(callout)

        self._layout_callouts()
        self.update()

    def set_tool_mode(self, mode: ToolMode):
        self.tool_mode = mode
        placing_notes = mode == ToolMode.NOTE
        # Clicks fall through to the page while placing notes
        self.text_layer.setAttribute(Qt.WA_TransparentForMouseEvents, placing_notes)
        self.setCursor(Qt.CrossCursor if placing_notes else Qt.ArrowCursor)
        if placing_notes:
            self.text_layer.clear_selection()

    def display_factor(self, annotation: Annotation) -> float:
        """Multiplier from an annotation's capture scale to the raster scale."""
        scale = self.render_scale
        return scale / annotation.scale_or(scale)

    def highlight_at(self, x: float, y: float) -> Optional[Annotation]:
        """Topmost highlight under a widget point."""
        for annotation in reversed(self.annotations):
            if not annotation.is_highlight:
                continue
            bbox = annotation.bbox.scaled(self.display_factor(annotation))
            if bbox.contains(x, y):
                return annotation
        return None

    def _layout_callouts(self):
        for callout in self._callouts:
            factor = self.display_factor(callout.annotation)
            bbox = callout.annotation.bbox
            callout.move(QPoint(int(bbox.x * factor), int(bbox.y * factor)))
            callout.raise_()

    # Event handlers

    def mousePressEvent(self, event: QMouseEvent):
        if self.tool_mode == ToolMode.NOTE and event.button() == Qt.LeftButton:
            self.note_requested.emit(self.page_number, float(event.x()), float(event.y()))
            event.accept()
            return
        super().mousePressEvent(event)

    def contextMenuEvent(self, event):
        annotation = self.highlight_at(event.x(), event.y())
        if annotation is None or not annotation.id:
            return super().contextMenuEvent(event)

        menu = QMenu(self)
        delete_action = menu.addAction("Delete highlight")
        if menu.exec_(event.globalPos()) == delete_action:
            self.delete_requested.emit(annotation.id)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.text_layer.setGeometry(self.rect())

    def paintEvent(self, event):
        painter = QPainter(self)

        if self._pixmap is None:
            painter.fillRect(self.rect(), PLACEHOLDER_COLOR)
            painter.end()
            return

        painter.drawPixmap(0, 0, self._pixmap)

        # Highlights darken the page like a marker would
        painter.setCompositionMode(QPainter.CompositionMode_Multiply)
        painter.setPen(Qt.NoPen)
        for annotation in self.annotations:
            if not annotation.is_highlight:
                continue
            color = QColor(annotation.color)
            color.setAlphaF(max(0.0, min(1.0, annotation.opacity)))
            painter.setBrush(QBrush(color))

            bbox = annotation.bbox.scaled(self.display_factor(annotation))
            painter.drawRect(QRectF(bbox.x, bbox.y, bbox.width, bbox.height))

        painter.end()
