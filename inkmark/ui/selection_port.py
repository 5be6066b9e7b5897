"""
SelectionPort implementation over the Qt document view.
"""
from typing import Optional, Tuple

from PyQt5.QtCore import QPoint
from PyQt5.QtWidgets import (
    QAbstractButton,
    QAbstractSpinBox,
    QAbstractSlider,
    QComboBox,
    QLineEdit,
    QTextEdit,
    QWidget,
)

from inkmark.core.selection import PageContainer, SelectionPort, SelectionSnapshot

from .page_view import PageView

_CHROME_TYPES = (
    QAbstractButton,
    QAbstractSpinBox,
    QAbstractSlider,
    QComboBox,
    QLineEdit,
    QTextEdit,
)


class QtSelectionPort(SelectionPort):
    """
    Reports the document view's live selection to the tracker.

    Rectangles are given in the scroll area's viewport coordinates.
    """

    def __init__(self, document_view):
        self._view = document_view

    def current_selection(self) -> Optional[SelectionSnapshot]:
        layer = self._view.active_text_layer
        if layer is None:
            return None

        selection = layer.selection
        if selection.is_collapsed:
            return SelectionSnapshot(text="", anchor_node=layer, is_collapsed=True)

        origin = layer.mapTo(self._view.viewport(), QPoint(0, 0))
        rects = tuple(rect.translated(origin.x(), origin.y())
                      for rect in selection.line_rects)
        return SelectionSnapshot(text=selection.text, anchor_node=layer,
                                 client_rects=rects)

    def parent_of(self, node):
        if isinstance(node, QWidget):
            return node.parentWidget()
        return None

    def page_info(self, node) -> Optional[PageContainer]:
        if not isinstance(node, PageView):
            return None
        origin = node.mapTo(self._view.viewport(), QPoint(0, 0))
        return PageContainer(page_number=node.page_number,
                             origin=(float(origin.x()), float(origin.y())))

    def is_interactive_chrome(self, source) -> bool:
        widget = source if isinstance(source, QWidget) else None
        while widget is not None:
            if isinstance(widget, _CHROME_TYPES) or widget.property("interactive_chrome"):
                return True
            widget = widget.parentWidget()
        return False

    def scroll_offset(self) -> Tuple[float, float]:
        return (float(self._view.horizontalScrollBar().value()),
                float(self._view.verticalScrollBar().value()))

    def viewport_origin(self) -> Tuple[float, float]:
        # Rects are already viewport-relative
        return 0.0, 0.0

    def clear_selection(self) -> None:
        self._view.clear_text_selection()
