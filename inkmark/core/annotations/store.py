"""
The annotation collection for one open document.
"""
import logging
import uuid
from typing import List, Optional, Set

from PyQt5.QtCore import QObject, pyqtSignal

from inkmark.core.geometry import Rect

from .models import (
    DEFAULT_STYLE,
    TEMP_ID_PREFIX,
    Annotation,
    AnnotationType,
    SyncStatus,
    is_temporary_id,
)
from .persistence import AnnotationBackend
from .sync import AnnotationOutbox

logger = logging.getLogger(__name__)


class AnnotationStore(QObject):
    """
    Owns the in-memory annotations and their sync with the backend.

    The collection keeps insertion order. New records appear immediately
    with a temporary id and are swapped for the stored record once the
    backend answers. Records are never edited, only deleted.
    """

    # Signals
    annotations_changed = pyqtSignal(object)  # set of affected page numbers
    saving_changed = pyqtSignal(bool)
    sync_failed = pyqtSignal(str)  # user-facing message

    def __init__(self, user_id: str, file_id: str, backend: AnnotationBackend,
                 outbox: Optional[AnnotationOutbox] = None,
                 selection_tracker=None, parent=None):
        """
        Args:
            user_id: Owner of the annotations
            file_id: Document the annotations belong to
            backend: Persistence collaborator
            outbox: Dispatcher for backend writes; one is created if omitted
            selection_tracker: Tracker whose pending selection a highlight consumes
        """
        super().__init__(parent)
        self.user_id = user_id
        self.file_id = file_id
        self.backend = backend
        self.selection_tracker = selection_tracker

        self.outbox = outbox or AnnotationOutbox(backend, user_id, file_id, parent=self)
        self.outbox.saved.connect(self._on_saved)
        self.outbox.save_failed.connect(self._on_save_failed)
        self.outbox.deleted.connect(self._on_deleted)
        self.outbox.delete_failed.connect(self._on_delete_failed)
        self.outbox.in_flight_changed.connect(self._on_in_flight_changed)

        self._annotations: List[Annotation] = []
        # Temp ids removed locally while their save was still in flight
        self._deleted_before_ack: Set[str] = set()
        self._failed_deletes: Set[str] = set()
        self._was_saving = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def annotations(self) -> List[Annotation]:
        return list(self._annotations)

    def for_page(self, page: int) -> List[Annotation]:
        """Get all annotations for a 1-based page, in insertion order."""
        return [ann for ann in self._annotations if ann.page == page]

    def get(self, annotation_id: str) -> Optional[Annotation]:
        index = self._index_of(annotation_id)
        return self._annotations[index] if index is not None else None

    @property
    def in_flight(self) -> int:
        return self.outbox.in_flight

    @property
    def is_saving(self) -> bool:
        return self.outbox.in_flight > 0

    @property
    def failed_count(self) -> int:
        failed_saves = sum(1 for ann in self._annotations
                           if ann.sync_status == SyncStatus.FAILED)
        return failed_saves + len(self._failed_deletes)

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self):
        return iter(list(self._annotations))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> int:
        """
        Replace the collection with what the backend holds.

        Returns:
            Number of annotations loaded
        """
        records = self.backend.load_annotations(self.user_id, self.file_id)
        self._annotations = list(records)
        self._deleted_before_ack.clear()
        logger.info("Loaded %d annotations for %s", len(records), self.file_id)

        self.annotations_changed.emit({ann.page for ann in records})
        return len(records)

    def create_highlight(self, selection, color: Optional[str] = None,
                         opacity: Optional[float] = None,
                         scale: Optional[float] = None) -> List[Annotation]:
        """
        Turn a pending selection into one highlight per line rectangle.

        Args:
            selection: PendingSelection to confirm
            color: Highlight color, the highlight default if omitted
            opacity: Highlight opacity, the highlight default if omitted
            scale: Rendering scale the selection was captured at

        Returns:
            The created highlights in line order
        """
        if selection is None or not selection.rects:
            return []

        default_color, default_opacity = DEFAULT_STYLE[AnnotationType.HIGHLIGHT]
        color = color or default_color
        opacity = default_opacity if opacity is None else opacity

        batch = [
            Annotation(
                page=selection.page,
                bbox=Rect(*rect),
                type=AnnotationType.HIGHLIGHT,
                text=selection.text,
                color=color,
                opacity=opacity,
                id=self._next_temp_id(),
                capture_scale=scale,
            )
            for rect in selection.rects
        ]

        self._annotations.extend(batch)
        if self.selection_tracker is not None:
            self.selection_tracker.clear(clear_view=True)
        self.annotations_changed.emit({selection.page})

        for annotation in batch:
            self.outbox.submit_save(annotation)
        return batch

    def create_note(self, page: int, x: float, y: float, text: str,
                    scale: Optional[float] = None,
                    color: Optional[str] = None,
                    opacity: Optional[float] = None) -> Optional[Annotation]:
        """
        Pin a note at page-pixel (x, y).

        Returns:
            The new note, or None when *text* is blank
        """
        if not text or not text.strip():
            return None

        default_color, default_opacity = DEFAULT_STYLE[AnnotationType.NOTE]
        note = Annotation(
            page=page,
            bbox=Rect(x, y, 0.0, 0.0),
            type=AnnotationType.NOTE,
            text=text,
            color=color or default_color,
            opacity=default_opacity if opacity is None else opacity,
            id=self._next_temp_id(),
            capture_scale=scale,
        )

        self._annotations.append(note)
        self.annotations_changed.emit({page})
        self.outbox.submit_save(note)
        return note

    def delete(self, annotation_id: str) -> bool:
        """
        Remove an annotation now and propagate the delete in the background.

        Returns:
            True if the annotation was present
        """
        index = self._index_of(annotation_id)
        if index is None:
            return False

        annotation = self._annotations.pop(index)
        self.annotations_changed.emit({annotation.page})

        if is_temporary_id(annotation_id):
            if annotation.sync_status == SyncStatus.PENDING:
                self._deleted_before_ack.add(annotation_id)
        else:
            self.outbox.submit_delete(annotation_id)
        return True

    def retry_failed(self) -> int:
        """
        Re-submit saves and deletes that previously failed.

        Returns:
            Number of operations re-submitted
        """
        count = 0
        for index, annotation in enumerate(self._annotations):
            if annotation.sync_status == SyncStatus.FAILED:
                pending = annotation.with_status(SyncStatus.PENDING)
                self._annotations[index] = pending
                self.outbox.submit_save(pending)
                count += 1

        for annotation_id in sorted(self._failed_deletes):
            self._failed_deletes.discard(annotation_id)
            self.outbox.submit_delete(annotation_id)
            count += 1

        if count:
            logger.info("Retrying %d annotation operations for %s", count, self.file_id)
        return count

    # ------------------------------------------------------------------
    # Outbox results
    # ------------------------------------------------------------------

    def _on_saved(self, submitted_id: str, stored: Annotation):
        if submitted_id in self._deleted_before_ack:
            self._deleted_before_ack.discard(submitted_id)
            if stored is not None and stored.id:
                self.outbox.submit_delete(stored.id)
            return

        index = self._index_of(submitted_id)
        if index is None or stored is None:
            return

        self._annotations[index] = stored.with_status(SyncStatus.SYNCED)
        self.annotations_changed.emit({stored.page})

    def _on_save_failed(self, submitted_id: str, message: str):
        if submitted_id in self._deleted_before_ack:
            self._deleted_before_ack.discard(submitted_id)
            return

        index = self._index_of(submitted_id)
        if index is None:
            return

        failed = self._annotations[index].with_status(SyncStatus.FAILED)
        self._annotations[index] = failed
        self.annotations_changed.emit({failed.page})
        self.sync_failed.emit(f"Could not save annotation on page {failed.page}: {message}")

    def _on_deleted(self, annotation_id: str):
        self._failed_deletes.discard(annotation_id)

    def _on_delete_failed(self, annotation_id: str, message: str):
        self._failed_deletes.add(annotation_id)
        self.sync_failed.emit(f"Could not delete annotation: {message}")

    def _on_in_flight_changed(self, count: int):
        saving = count > 0
        if saving != self._was_saving:
            self._was_saving = saving
            self.saving_changed.emit(saving)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _index_of(self, annotation_id: Optional[str]) -> Optional[int]:
        if annotation_id is None:
            return None
        for index, annotation in enumerate(self._annotations):
            if annotation.id == annotation_id:
                return index
        return None

    @staticmethod
    def _next_temp_id() -> str:
        return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"
