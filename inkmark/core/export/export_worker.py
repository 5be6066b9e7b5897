"""
Background export: compile the annotated document, then publish it.
"""
import logging
from typing import List, Optional

from PyQt5.QtCore import QObject, QThread, pyqtSignal

from inkmark.core.annotations import Annotation
from inkmark.core.document.pdf_exporter import ExportCompiler
from inkmark.core.document.upload import ExportPolicy, ExportPublisher, PublishResult
from inkmark.errors import ExportError, ReplaceIncompleteError, UploadError

logger = logging.getLogger(__name__)


class ExportWorker(QThread):
    """Worker thread for exporting annotations to PDF without freezing the UI."""

    # Signals
    export_finished = pyqtSignal(bool, str)  # success, message
    progress = pyqtSignal(str)  # status message
    annotation_progress = pyqtSignal(int, int)  # done, total annotations

    def __init__(self, original: bytes, annotations: List[Annotation], scale: float,
                 publisher: ExportPublisher, original_name: str,
                 original_file_id: Optional[str] = None,
                 policy: ExportPolicy = ExportPolicy.COPY,
                 parent_folder: Optional[str] = None,
                 compiler: Optional[ExportCompiler] = None, parent=None):
        super().__init__(parent)
        self.original = original
        self.annotations = list(annotations)
        self.scale = scale
        self.publisher = publisher
        self.original_name = original_name
        self.original_file_id = original_file_id
        self.policy = policy
        self.parent_folder = parent_folder
        self.compiler = compiler or ExportCompiler()

        self.result: Optional[PublishResult] = None
        self.error: Optional[Exception] = None

    def run(self):
        """Execute the export in a background thread."""
        try:
            self.progress.emit("Exporting annotations...")
            data = self.compiler.compile(
                self.original, self.annotations, self.scale,
                progress=self.annotation_progress.emit,
            )

            self.progress.emit("Uploading...")
            self.result = self.publisher.publish(
                data, self.original_name,
                original_file_id=self.original_file_id,
                policy=self.policy,
                parent=self.parent_folder,
            )

        except ReplaceIncompleteError as e:
            self.error = e
            logger.error("Replace incomplete: %s", e)
            self.export_finished.emit(
                False,
                f"The annotated copy was saved to {e.new_file_id}, but the original "
                f"could not be removed. Both files now exist.")
        except ExportError as e:
            self.error = e
            logger.error("Export failed: %s", e)
            self.export_finished.emit(False, f"Failed to export annotations: {e}")
        except UploadError as e:
            self.error = e
            logger.error("Upload failed: %s", e)
            self.export_finished.emit(False, f"Failed to save the exported document: {e}")
        except Exception as e:
            self.error = e
            logger.exception("Unexpected error during export")
            self.export_finished.emit(False, f"Error during export: {e}")
        else:
            if self.result.replaced_original:
                message = "Original replaced with the annotated document."
            else:
                message = f"Annotated document saved to {self.result.file_id}"
            self.export_finished.emit(True, message)


class ExportController(QObject):
    """
    Runs at most one export at a time.

    A second request while one is running is refused rather than queued.
    """

    # Signals
    export_started = pyqtSignal()
    export_finished = pyqtSignal(bool, str)  # success, message
    progress = pyqtSignal(str)
    annotation_progress = pyqtSignal(int, int)

    def __init__(self, publisher: ExportPublisher,
                 compiler: Optional[ExportCompiler] = None, parent=None):
        super().__init__(parent)
        self.publisher = publisher
        self.compiler = compiler
        self._worker: Optional[ExportWorker] = None
        self.last_result: Optional[PublishResult] = None

    @property
    def is_running(self) -> bool:
        return self._worker is not None

    def start_export(self, session, policy: ExportPolicy = ExportPolicy.COPY,
                     parent_folder: Optional[str] = None) -> bool:
        """
        Begin exporting *session*'s annotations.

        Returns:
            False if an export is already running or nothing is open
        """
        if self._worker is not None:
            logger.warning("Export already in progress, ignoring request")
            return False
        if session is None or not session.is_open or session.store is None:
            logger.warning("No open document to export")
            return False

        source = session.source
        worker = ExportWorker(
            original=session.original_bytes,
            annotations=session.store.annotations,
            scale=session.settings.scale,
            publisher=self.publisher,
            original_name=source.name,
            original_file_id=getattr(source, "original_file_id", None),
            policy=policy,
            parent_folder=parent_folder or source.parent,
            compiler=self.compiler,
        )
        worker.progress.connect(self.progress)
        worker.annotation_progress.connect(self.annotation_progress)
        worker.export_finished.connect(self._on_worker_finished)

        self._worker = worker
        self.export_started.emit()
        worker.start()
        return True

    def wait(self, msecs: int = -1) -> bool:
        """Block until the running export thread exits."""
        if self._worker is None:
            return True
        if msecs < 0:
            return self._worker.wait()
        return self._worker.wait(msecs)

    def _on_worker_finished(self, success: bool, message: str):
        worker = self._worker
        self._worker = None
        if worker is not None:
            self.last_result = worker.result
            worker.wait()
            worker.deleteLater()
        self.export_finished.emit(success, message)
