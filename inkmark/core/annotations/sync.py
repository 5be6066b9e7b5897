"""
Fire-and-forget propagation of annotation changes to the backend.
"""
import itertools
import logging
from typing import Callable, Dict, Optional, Tuple

from PyQt5.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal

from .models import Annotation
from .persistence import AnnotationBackend

logger = logging.getLogger(__name__)


class _JobSignals(QObject):
    """QRunnable is not a QObject, so results travel through this."""
    succeeded = pyqtSignal(int, object)  # job id, result
    failed = pyqtSignal(int, str)  # job id, error message


class _BackendJob(QRunnable):
    """Runs one backend call off the UI thread."""

    def __init__(self, job_id: int, call: Callable[[], object]):
        super().__init__()
        self.job_id = job_id
        self.call = call
        self.signals = _JobSignals()
        self.setAutoDelete(True)

    def run(self):
        try:
            result = self.call()
        except Exception as e:
            logger.debug("Backend job %d raised", self.job_id, exc_info=True)
            self.signals.failed.emit(self.job_id, str(e) or type(e).__name__)
            return
        self.signals.succeeded.emit(self.job_id, result)


class AnnotationOutbox(QObject):
    """
    Sends saves and deletes to the backend one record at a time.

    Nothing waits on the result; outcomes come back as signals on the
    thread that owns the outbox.
    """

    # Signals
    saved = pyqtSignal(str, object)  # submitted id, stored Annotation
    save_failed = pyqtSignal(str, str)  # submitted id, error message
    deleted = pyqtSignal(str)  # annotation id
    delete_failed = pyqtSignal(str, str)  # annotation id, error message
    in_flight_changed = pyqtSignal(int)

    def __init__(self, backend: AnnotationBackend, user_id: str, file_id: str,
                 thread_pool: Optional[QThreadPool] = None,
                 run_inline: bool = False, parent=None):
        """
        Args:
            backend: Persistence collaborator
            user_id: Owner of the annotations
            file_id: Document the annotations belong to
            thread_pool: Pool to run jobs on; the global pool by default
            run_inline: Run jobs synchronously on the calling thread
        """
        super().__init__(parent)
        self.backend = backend
        self.user_id = user_id
        self.file_id = file_id

        self._pool = thread_pool or QThreadPool.globalInstance()
        self._run_inline = run_inline

        self._job_ids = itertools.count(1)
        self._jobs: Dict[int, Tuple[str, str, _JobSignals]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._jobs)

    def submit_save(self, annotation: Annotation) -> None:
        submitted_id = annotation.id or ""
        self._submit(
            "save", submitted_id,
            lambda: self.backend.save_annotation(self.user_id, self.file_id, annotation),
        )

    def submit_delete(self, annotation_id: str) -> None:
        self._submit(
            "delete", annotation_id,
            lambda: self.backend.delete_annotation(self.user_id, self.file_id, annotation_id),
        )

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Block until queued jobs finish; used on shutdown."""
        return self._pool.waitForDone(msecs)

    def _submit(self, kind: str, key: str, call: Callable[[], object]):
        job_id = next(self._job_ids)
        job = _BackendJob(job_id, call)
        job.signals.succeeded.connect(self._on_job_succeeded)
        job.signals.failed.connect(self._on_job_failed)

        self._jobs[job_id] = (kind, key, job.signals)
        self.in_flight_changed.emit(self.in_flight)

        if self._run_inline:
            job.setAutoDelete(False)
            job.run()
        else:
            self._pool.start(job)

    def _finish(self, job_id: int) -> Optional[Tuple[str, str]]:
        entry = self._jobs.pop(job_id, None)
        if entry is None:
            return None
        self.in_flight_changed.emit(self.in_flight)
        kind, key, _ = entry
        return kind, key

    def _on_job_succeeded(self, job_id: int, result: object):
        finished = self._finish(job_id)
        if finished is None:
            return
        kind, key = finished
        if kind == "save":
            self.saved.emit(key, result)
        else:
            self.deleted.emit(key)

    def _on_job_failed(self, job_id: int, message: str):
        finished = self._finish(job_id)
        if finished is None:
            return
        kind, key = finished
        if kind == "save":
            logger.error("Failed to save annotation %s: %s", key, message)
            self.save_failed.emit(key, message)
        else:
            logger.warning("Failed to delete annotation %s: %s", key, message)
            self.delete_failed.emit(key, message)
