"""
Qt user interface.
"""

from .document_view import DocumentView
from .main_window import MainWindow
from .page_view import NoteCallout, PageView, TextOverlayWidget
from .selection_port import QtSelectionPort

__all__ = [
    "MainWindow",
    "DocumentView",
    "PageView",
    "TextOverlayWidget",
    "NoteCallout",
    "QtSelectionPort",
]
