"""
Scrolling column of pages with selection tracking and annotation tools.
"""
import logging
from typing import Dict, Optional, Set

import pyperclip
from PyQt5.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt5.QtWidgets import (
    QApplication,
    QInputDialog,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from inkmark.core.page import RenderQueue
from inkmark.core.selection import EventKind, InputEvent, SelectionTracker, ToolMode

from .page_view import PageView, TextOverlayWidget
from .selection_port import QtSelectionPort

logger = logging.getLogger(__name__)

_RELEASE_EVENTS = {
    QEvent.MouseButtonRelease: EventKind.POINTER_RELEASE,
    QEvent.TouchEnd: EventKind.TOUCH_RELEASE,
    QEvent.KeyRelease: EventKind.KEY_RELEASE,
}


class DocumentView(QScrollArea):
    """
    Shows an open DocumentSession page by page.

    Rendering goes through a RenderQueue so pages fill in one at a time
    while the UI stays responsive.
    """

    # Signals
    status_message = pyqtSignal(str)
    tool_mode_changed = pyqtSignal(object)  # ToolMode

    PAGE_SPACING = 24

    def __init__(self, settings, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.session = None
        self.page_views: Dict[int, PageView] = {}
        self.active_text_layer: Optional[TextOverlayWidget] = None
        self._warned_image_pages: Set[int] = set()

        self.page_container = QWidget()
        self.page_layout = QVBoxLayout(self.page_container)
        self.page_layout.setSpacing(self.PAGE_SPACING)
        self.page_layout.setContentsMargins(20, 20, 20, 20)
        self.page_layout.setAlignment(Qt.AlignHCenter | Qt.AlignTop)
        self.setWidget(self.page_container)
        self.setWidgetResizable(True)
        self.setAlignment(Qt.AlignHCenter)

        self.render_queue = RenderQueue(self)
        self.render_queue.page_rendered.connect(self._on_page_rendered)
        self.render_queue.page_failed.connect(self._on_page_failed)
        self.render_queue.image_only_page.connect(self._on_image_only_page)

        self.tracker = SelectionTracker(QtSelectionPort(self), settings.settle_delay_ms, self)
        self.tracker.selection_changed.connect(self._show_highlight_popup)
        self.tracker.selection_cleared.connect(self._hide_highlight_popup)

        self.highlight_button = QPushButton("Highlight", self.page_container)
        self.highlight_button.setProperty("interactive_chrome", True)
        self.highlight_button.setCursor(Qt.PointingHandCursor)
        self.highlight_button.setStyleSheet(
            "QPushButton { background: #1f2937; color: white; border-radius: 4px;"
            " padding: 4px 10px; }"
        )
        self.highlight_button.clicked.connect(self.confirm_highlight)
        self.highlight_button.hide()

        app = QApplication.instance()
        if app is not None:
            app.installEventFilter(self)

    @property
    def store(self):
        return self.session.store if self.session is not None else None

    @property
    def tool_mode(self) -> ToolMode:
        return self.tracker.mode

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def set_session(self, session):
        """Show *session*, replacing whatever was shown before."""
        self.clear()
        self.session = session

        for renderer in session.renderers_in_order():
            view = PageView(renderer, self.settings, self.page_container)
            view.note_requested.connect(self._on_note_requested)
            view.delete_requested.connect(self.delete_annotation)
            view.text_layer.selection_started.connect(self._on_selection_started)
            view.set_tool_mode(self.tool_mode)

            page = session.page_source.get_page(renderer.page_number)
            width, height = page.get_viewport(self.settings.scale).pixel_size
            view.set_placeholder_size(width, height)

            self.page_layout.addWidget(view, 0, Qt.AlignHCenter)
            self.page_views[renderer.page_number] = view

        session.store.annotations_changed.connect(self._on_annotations_changed)
        self._on_annotations_changed(set(self.page_views))
        self.render_all()

    def clear(self):
        """Remove all pages; any queued renders are dropped."""
        self.render_queue.clear()
        self.tracker.clear()
        self._hide_highlight_popup()
        self.active_text_layer = None
        self._warned_image_pages.clear()

        if self.session is not None and self.session.store is not None:
            try:
                self.session.store.annotations_changed.disconnect(self._on_annotations_changed)
            except TypeError:
                pass
        self.session = None

        for view in self.page_views.values():
            self.page_layout.removeWidget(view)
            view.deleteLater()
        self.page_views.clear()

    def render_all(self):
        if self.session is None:
            return
        for renderer in self.session.renderers_in_order():
            if renderer.needs_render(self.settings.scale):
                self.render_queue.schedule(renderer, self.settings.scale)

    def set_scale(self, scale: float):
        """Re-render every page at a new scale."""
        if scale <= 0 or scale == self.settings.scale:
            return
        self.settings.scale = scale
        self.tracker.clear(clear_view=True)
        self.render_all()

    def apply_colors(self):
        """Re-filter every rendered page with the current colors."""
        for view in self.page_views.values():
            view.refresh_raster()

    def scroll_to_page(self, page_number: int):
        view = self.page_views.get(page_number)
        if view is not None:
            self.verticalScrollBar().setValue(view.y() - self.PAGE_SPACING)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def set_tool_mode(self, mode: ToolMode):
        self.tracker.set_mode(mode)
        for view in self.page_views.values():
            view.set_tool_mode(mode)
        if mode == ToolMode.NOTE:
            self.clear_text_selection()
        self.tool_mode_changed.emit(mode)

    def confirm_highlight(self):
        """Turn the pending selection into highlights."""
        self.tracker.flush()
        pending = self.tracker.pending
        if pending is None or self.store is None:
            return

        created = self.store.create_highlight(
            pending,
            color=self.settings.highlight_color,
            opacity=self.settings.highlight_opacity,
            scale=self.capture_scale(pending.page),
        )
        logger.debug("Created %d highlights on page %d", len(created), pending.page)

    def capture_scale(self, page_number: int) -> float:
        """Scale of the raster a page currently shows; lags a zoom until re-rendered."""
        view = self.page_views.get(page_number)
        return view.render_scale if view is not None else self.settings.scale

    def copy_selection(self) -> bool:
        """Copy the selected text to the system clipboard."""
        text = ""
        if self.tracker.pending is not None:
            text = self.tracker.pending.text
        elif self.active_text_layer is not None:
            text = self.active_text_layer.selection.text

        if not text:
            return False
        pyperclip.copy(text)
        self.status_message.emit("Copied selection to clipboard")
        return True

    def select_all_on_page(self, page_number: int):
        view = self.page_views.get(page_number)
        if view is not None:
            view.text_layer.select_all()
            self.tracker.handle_release(InputEvent(EventKind.KEY_RELEASE))

    def clear_text_selection(self):
        for view in self.page_views.values():
            view.text_layer.clear_selection()
        self.active_text_layer = None

    def delete_annotation(self, annotation_id: str):
        if self.store is not None:
            self.store.delete(annotation_id)

    def current_page(self) -> int:
        """Page whose top is nearest above the middle of the viewport."""
        middle = self.verticalScrollBar().value() + self.viewport().height() // 2
        current = 1
        for page_number, view in sorted(self.page_views.items()):
            if view.y() <= middle:
                current = page_number
        return current

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        kind = _RELEASE_EVENTS.get(event.type())
        if kind is not None and isinstance(obj, QWidget) and self.page_container.isAncestorOf(obj):
            self.tracker.handle_release(InputEvent(kind, source=obj))
        return False

    def _on_selection_started(self, page_number: int):
        view = self.page_views.get(page_number)
        if view is None:
            return
        for other_number, other in self.page_views.items():
            if other_number != page_number:
                other.text_layer.clear_selection()
        self.active_text_layer = view.text_layer

    def _on_note_requested(self, page: int, x: float, y: float):
        if self.store is None:
            return
        text, ok = QInputDialog.getMultiLineText(self, "Add Note", "Note text:")
        if not ok:
            return

        note = self.store.create_note(page, x, y, text, scale=self.capture_scale(page),
                                      color=self.settings.note_color,
                                      opacity=self.settings.note_opacity)
        if note is not None:
            self.set_tool_mode(ToolMode.CURSOR)

    def _show_highlight_popup(self, pending):
        self.highlight_button.adjustSize()
        anchor_x, anchor_y = pending.anchor
        x = int(anchor_x - self.highlight_button.width() / 2)
        y = int(anchor_y - self.highlight_button.height())
        self.highlight_button.move(max(0, x), max(0, y))
        self.highlight_button.raise_()
        self.highlight_button.show()

    def _hide_highlight_popup(self):
        self.highlight_button.hide()

    def _on_annotations_changed(self, pages):
        if self.store is None:
            return
        for page_number in pages:
            view = self.page_views.get(page_number)
            if view is not None:
                view.set_annotations(self.store.for_page(page_number))

    def _on_page_rendered(self, page_number: int):
        view = self.page_views.get(page_number)
        if view is not None:
            view.refresh_raster()

    def _on_page_failed(self, page_number: int):
        self.status_message.emit(f"Page {page_number} could not be rendered")

    def _on_image_only_page(self, page_number: int):
        if page_number in self._warned_image_pages:
            return
        self._warned_image_pages.add(page_number)
        self.status_message.emit(
            f"Page {page_number} has no selectable text (scanned or image-only)")

    def shutdown(self):
        """Detach from the application; called before the window goes away."""
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)
        self.clear()
