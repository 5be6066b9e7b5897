"""
Main application window for Inkmark PDF.
"""
import logging
import os
from typing import Optional

from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtGui import QColor, QKeySequence
from PyQt5.QtWidgets import (
    QAction,
    QActionGroup,
    QColorDialog,
    QComboBox,
    QDockWidget,
    QFileDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QProgressDialog,
    QSlider,
    QToolBar,
)

from inkmark.config import MAX_HIGHLIGHT_OPACITY, MIN_HIGHLIGHT_OPACITY, ViewerSettings
from inkmark.core.annotations import AnnotationBackend, JsonAnnotationBackend, SyncStatus
from inkmark.core.document import (
    DocumentSession,
    ExportPolicy,
    ExportPublisher,
    LocalFileSource,
    LocalFolderUploader,
    Uploader,
)
from inkmark.core.export import ExportController
from inkmark.core.selection import ToolMode
from inkmark.errors import DocumentLoadError
from inkmark.utils import WarningManager, WarningType

from .document_view import DocumentView

logger = logging.getLogger(__name__)

ZOOM_STEP = 0.2
MIN_SCALE = 0.4
MAX_SCALE = 4.0


def _sync_suffix(annotation) -> str:
    """Marker for records the backend has not confirmed."""
    if annotation.sync_status == SyncStatus.FAILED:
        return "  (not saved)"
    if annotation.sync_status == SyncStatus.PENDING or not annotation.is_persisted:
        return "  (saving...)"
    return ""


class MainWindow(QMainWindow):
    """Viewer window: page column, annotation list, tools and export."""

    # Signals
    document_loaded = pyqtSignal(str)
    document_closed = pyqtSignal()

    def __init__(self, file_path: Optional[str] = None,
                 settings: Optional[ViewerSettings] = None,
                 backend: Optional[AnnotationBackend] = None,
                 uploader: Optional[Uploader] = None):
        super().__init__()

        self.settings = settings or ViewerSettings.load()
        self.backend = backend or JsonAnnotationBackend()
        self.warning_manager = WarningManager()
        self.session: Optional[DocumentSession] = None

        publisher = ExportPublisher(uploader or LocalFolderUploader(self.settings.export_folder))
        self.export_controller = ExportController(publisher, parent=self)
        self._progress_dialog: Optional[QProgressDialog] = None

        self._setup_window()
        self._setup_ui()
        self._setup_connections()

        if file_path and os.path.exists(file_path):
            self.load_pdf(file_path)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _setup_window(self):
        self.setWindowTitle("Inkmark PDF")
        self.setMinimumSize(800, 600)

    def _setup_ui(self):
        self.document_view = DocumentView(self.settings, self)
        self.setCentralWidget(self.document_view)

        self._create_toolbar()
        self._create_annotation_dock()

        self.saving_label = QLabel("Saving...")
        self.saving_label.hide()
        self.statusBar().addPermanentWidget(self.saving_label)

    def _create_toolbar(self):
        toolbar = QToolBar("Main", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        # File operations
        self.open_action = self._add_action(toolbar, "Open", self.open_pdf, QKeySequence.Open)
        self.close_action = self._add_action(toolbar, "Close", self.close_pdf, QKeySequence.Close)
        toolbar.addSeparator()

        # Zoom
        self._add_action(toolbar, "Zoom Out", lambda: self.adjust_zoom(-ZOOM_STEP),
                         QKeySequence.ZoomOut)
        self.zoom_label = QLabel(self._zoom_text())
        self.zoom_label.setMinimumWidth(48)
        self.zoom_label.setAlignment(Qt.AlignCenter)
        toolbar.addWidget(self.zoom_label)
        self._add_action(toolbar, "Zoom In", lambda: self.adjust_zoom(ZOOM_STEP),
                         QKeySequence.ZoomIn)
        toolbar.addSeparator()

        # Tools
        tool_group = QActionGroup(self)
        self.cursor_action = self._add_action(
            toolbar, "Select", lambda: self.document_view.set_tool_mode(ToolMode.CURSOR))
        self.note_action = self._add_action(
            toolbar, "Note", lambda: self.document_view.set_tool_mode(ToolMode.NOTE))
        for action in (self.cursor_action, self.note_action):
            action.setCheckable(True)
            tool_group.addAction(action)
        self.cursor_action.setChecked(True)

        self.opacity_slider = QSlider(Qt.Horizontal)
        self.opacity_slider.setRange(int(MIN_HIGHLIGHT_OPACITY * 100),
                                     int(MAX_HIGHLIGHT_OPACITY * 100))
        self.opacity_slider.setValue(int(round(self.settings.highlight_opacity * 100)))
        self.opacity_slider.setFixedWidth(90)
        self.opacity_slider.setToolTip("Highlight opacity")
        toolbar.addWidget(self.opacity_slider)
        self._add_action(toolbar, "Highlight Color", self.choose_highlight_color)
        toolbar.addSeparator()

        # Reading colors
        self._add_action(toolbar, "Page Color", self.choose_page_color)
        self._add_action(toolbar, "Text Color", self.choose_text_color)
        self._add_action(toolbar, "Reset Colors", self.reset_colors)
        toolbar.addSeparator()

        # Export
        self.policy_combo = QComboBox()
        self.policy_combo.addItem("Save copy", ExportPolicy.COPY.value)
        self.policy_combo.addItem("Replace original", ExportPolicy.REPLACE.value)
        self.policy_combo.setCurrentIndex(
            self.policy_combo.findData(self.settings.export_policy))
        toolbar.addWidget(self.policy_combo)
        self.export_action = self._add_action(toolbar, "Export", self.export_pdf,
                                              QKeySequence.Save)
        self.retry_action = self._add_action(toolbar, "Retry Sync", self.retry_sync)

    def _add_action(self, toolbar: QToolBar, text: str, callback,
                    shortcut=None) -> QAction:
        action = QAction(text, self)
        if shortcut is not None:
            action.setShortcut(shortcut)
        action.triggered.connect(callback)
        toolbar.addAction(action)
        return action

    def _create_annotation_dock(self):
        self.annotation_list = QListWidget()
        self.annotation_list.itemActivated.connect(self._on_annotation_activated)
        self.annotation_list.itemClicked.connect(self._on_annotation_activated)

        self.annotation_dock = QDockWidget("Annotations (0)", self)
        self.annotation_dock.setWidget(self.annotation_list)
        self.annotation_dock.setFeatures(QDockWidget.DockWidgetMovable)
        self.addDockWidget(Qt.RightDockWidgetArea, self.annotation_dock)

    def _setup_connections(self):
        self.document_view.status_message.connect(self._show_status)
        self.document_view.tool_mode_changed.connect(self._on_tool_mode_changed)
        self.opacity_slider.valueChanged.connect(self._on_opacity_changed)
        self.policy_combo.currentIndexChanged.connect(self._on_policy_changed)

        self.export_controller.progress.connect(self._on_export_progress)
        self.export_controller.annotation_progress.connect(self._on_export_annotation_progress)
        self.export_controller.export_finished.connect(self._on_export_finished)

    # ------------------------------------------------------------------
    # Document management
    # ------------------------------------------------------------------

    def load_pdf(self, file_path: str) -> bool:
        """Open a PDF and its annotations."""
        if self.export_controller.is_running:
            QMessageBox.warning(self, "Export Running",
                                "Wait for the current export to finish.")
            return False

        self.close_pdf()

        session = DocumentSession(LocalFileSource(file_path), self.settings, self.backend)
        try:
            session.open(selection_tracker=self.document_view.tracker)
        except DocumentLoadError as e:
            logger.error("Failed to open %s: %s", file_path, e)
            session.close()
            QMessageBox.critical(self, "Error", f"Error loading PDF: {e}")
            return False

        self.session = session
        session.store.annotations_changed.connect(self._refresh_annotation_list)
        session.store.saving_changed.connect(self.saving_label.setVisible)
        session.store.sync_failed.connect(self._show_status)

        self.document_view.set_session(session)
        self._refresh_annotation_list()
        self.setWindowTitle(f"{session.name} - Inkmark PDF")

        self.document_loaded.emit(file_path)
        return True

    def open_pdf(self):
        """Open a PDF file dialog."""
        file_path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF Files (*.pdf)")
        if file_path:
            self.load_pdf(file_path)

    def close_pdf(self):
        """Close the current PDF."""
        if self.session is None:
            return
        if self.export_controller.is_running:
            QMessageBox.warning(self, "Export Running",
                                "Wait for the current export to finish.")
            return

        self.document_view.clear()
        self.session.close()
        self.session = None

        self.annotation_list.clear()
        self.annotation_dock.setWindowTitle("Annotations (0)")
        self.saving_label.hide()
        self.setWindowTitle("Inkmark PDF")
        self.document_closed.emit()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def _zoom_text(self) -> str:
        return f"{int(round(self.settings.scale * 100))}%"

    def adjust_zoom(self, delta: float):
        scale = round(min(MAX_SCALE, max(MIN_SCALE, self.settings.scale + delta)), 2)
        self.document_view.set_scale(scale)
        self.zoom_label.setText(self._zoom_text())

    def _pick_color(self, current: str, title: str) -> Optional[str]:
        color = QColorDialog.getColor(QColor(current), self, title)
        return color.name() if color.isValid() else None

    def choose_page_color(self):
        color = self._pick_color(self.settings.page_color, "Page Color")
        if color:
            self.settings.page_color = color
            self.document_view.apply_colors()

    def choose_text_color(self):
        color = self._pick_color(self.settings.text_color, "Text Color")
        if color:
            self.settings.text_color = color
            self.document_view.apply_colors()

    def reset_colors(self):
        self.settings.reset_colors()
        self.document_view.apply_colors()

    def choose_highlight_color(self):
        color = self._pick_color(self.settings.highlight_color, "Highlight Color")
        if color:
            self.settings.highlight_color = color

    def _on_opacity_changed(self, value: int):
        self.settings.set_highlight_opacity(value / 100.0)

    def _on_policy_changed(self, index: int):
        self.settings.export_policy = self.policy_combo.itemData(index)

    def _on_tool_mode_changed(self, mode: ToolMode):
        self.cursor_action.setChecked(mode == ToolMode.CURSOR)
        self.note_action.setChecked(mode == ToolMode.NOTE)

    def _show_status(self, message: str):
        self.statusBar().showMessage(message, 5000)

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def _refresh_annotation_list(self, pages=None):
        self.annotation_list.clear()
        if self.session is None or self.session.store is None:
            return

        annotations = self.session.store.annotations
        for annotation in annotations:
            snippet = " ".join(annotation.text.split())
            if len(snippet) > 60:
                snippet = snippet[:57] + "..."
            label = f"{annotation.type.value.title()} - p. {annotation.page}: {snippet}"
            label += _sync_suffix(annotation)

            item = QListWidgetItem(label)
            item.setData(Qt.UserRole, annotation.page)
            item.setToolTip(annotation.text)
            self.annotation_list.addItem(item)

        self.annotation_dock.setWindowTitle(f"Annotations ({len(annotations)})")

    def _on_annotation_activated(self, item: QListWidgetItem):
        page = item.data(Qt.UserRole)
        if page:
            self.document_view.scroll_to_page(int(page))

    def retry_sync(self):
        if self.session is None or self.session.store is None:
            return
        count = self.session.store.retry_failed()
        self._show_status(f"Retrying {count} annotation change(s)" if count
                          else "Nothing to retry")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_pdf(self) -> bool:
        """Burn annotations into the document and publish it."""
        if self.session is None or not self.session.is_open:
            QMessageBox.warning(self, "No PDF", "No PDF document is currently loaded.")
            return False
        if self.export_controller.is_running:
            QMessageBox.information(self, "Export Running", "An export is already running.")
            return False
        if len(self.session.store) == 0:
            QMessageBox.information(self, "No Annotations", "There are no annotations to export.")
            return False

        policy = ExportPolicy(self.settings.export_policy)
        if policy == ExportPolicy.REPLACE:
            confirmed = self.warning_manager.show_confirmation(
                self, WarningType.REPLACE_ORIGINAL, "Replace Original",
                f"The original file {self.session.name} will be deleted and replaced "
                "with the annotated version. Continue?",
            )
            if not confirmed:
                return False

        self._progress_dialog = QProgressDialog(
            "Preparing to export annotations...", None, 0, 100, self)
        self._progress_dialog.setWindowTitle("Exporting PDF")
        self._progress_dialog.setWindowModality(Qt.WindowModal)
        self._progress_dialog.setMinimumDuration(0)
        self._progress_dialog.setCancelButton(None)
        self._progress_dialog.setAutoClose(False)
        self._progress_dialog.setAutoReset(False)
        self._progress_dialog.show()

        return self.export_controller.start_export(
            self.session, policy, parent_folder=self.settings.export_folder)

    def _on_export_progress(self, message: str):
        if self._progress_dialog is not None:
            self._progress_dialog.setLabelText(message)

    def _on_export_annotation_progress(self, done: int, total: int):
        if self._progress_dialog is not None and total > 0:
            self._progress_dialog.setValue(int(done / total * 100))
            self._progress_dialog.setLabelText(f"Processing annotations: {done}/{total}")

    def _on_export_finished(self, success: bool, message: str):
        if self._progress_dialog is not None:
            self._progress_dialog.close()
            self._progress_dialog = None

        if success:
            QMessageBox.information(self, "Export Complete", message)
        else:
            QMessageBox.critical(self, "Export Failed", message)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def keyPressEvent(self, event):  # type: ignore[override]
        """Handle keyboard shortcuts."""
        if event.modifiers() & Qt.ControlModifier:
            if event.key() == Qt.Key_C:
                if not self.document_view.copy_selection():
                    self._show_status("No text has been selected.")
                event.accept()
                return
            if event.key() == Qt.Key_A:
                self.document_view.select_all_on_page(self.document_view.current_page())
                event.accept()
                return

        if event.key() == Qt.Key_Escape:
            self.document_view.tracker.clear(clear_view=True)
            self.document_view.set_tool_mode(ToolMode.CURSOR)
            event.accept()
            return

        super().keyPressEvent(event)

    def closeEvent(self, event):  # type: ignore[override]
        if self.export_controller.is_running:
            QMessageBox.warning(self, "Export Running",
                                "Wait for the current export to finish before closing.")
            event.ignore()
            return

        if self.session is not None and self.session.store is not None:
            store = self.session.store
            if store.is_saving and not store.outbox.wait_for_done(3000):
                confirmed = self.warning_manager.show_confirmation(
                    self, WarningType.CLOSE_WHILE_SAVING, "Still Saving",
                    "Some annotations are still being saved and may be lost. Close anyway?",
                )
                if not confirmed:
                    event.ignore()
                    return

        self.close_pdf()
        self.document_view.shutdown()
        self.settings.save()
        event.accept()
