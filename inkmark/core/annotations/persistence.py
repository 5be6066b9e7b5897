"""
Annotation persistence: the backend contract and a JSON file implementation.
"""
import hashlib
import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from inkmark.utils.paths import get_annotations_dir

from .models import Annotation, SyncStatus, is_temporary_id

logger = logging.getLogger(__name__)


class AnnotationBackend(ABC):
    """
    Where annotations live between sessions.

    Implementations may be called from worker threads.
    """

    @abstractmethod
    def load_annotations(self, user_id: str, file_id: str) -> List[Annotation]:
        """All stored annotations for a file, in insertion order."""

    @abstractmethod
    def save_annotation(self, user_id: str, file_id: str,
                        annotation: Annotation) -> Annotation:
        """
        Store an annotation.

        Returns:
            The stored record, with its permanent id and provenance filled in
        """

    @abstractmethod
    def delete_annotation(self, user_id: str, file_id: str, annotation_id: str) -> None:
        """Remove a stored annotation. Unknown ids are not an error."""


class JsonAnnotationBackend(AnnotationBackend):
    """Keeps one JSON file per user and document in the app data directory."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        if self._base_dir is None:
            self._base_dir = get_annotations_dir()
        return self._base_dir

    def get_json_path(self, user_id: str, file_id: str) -> Path:
        """
        Get the JSON file path for a user's copy of a document.

        The name is a hash so any file id is safe to use on disk.
        """
        key_hash = hashlib.md5(f"{user_id}\0{file_id}".encode()).hexdigest()
        return self.base_dir / f"{key_hash}.json"

    # ------------------------------------------------------------------
    # AnnotationBackend
    # ------------------------------------------------------------------

    def load_annotations(self, user_id: str, file_id: str) -> List[Annotation]:
        with self._lock:
            records = self._read(user_id, file_id)

        annotations = []
        for data in records:
            try:
                annotations.append(Annotation.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed annotation record for %s: %s", file_id, e)
        return annotations

    def save_annotation(self, user_id: str, file_id: str,
                        annotation: Annotation) -> Annotation:
        now = datetime.now(timezone.utc).isoformat()
        annotation_id = (annotation.id if not is_temporary_id(annotation.id)
                         else uuid.uuid4().hex)

        stored = replace(
            annotation,
            id=annotation_id,
            author=user_id,
            created_at=annotation.created_at or now,
            updated_at=now,
            sync_status=SyncStatus.SYNCED,
        )

        with self._lock:
            records = self._read(user_id, file_id)
            records = [r for r in records if r.get("id") != annotation_id]
            records.append(stored.to_dict())
            self._write(user_id, file_id, records)

        logger.debug("Saved annotation %s for %s", annotation_id, file_id)
        return stored

    def delete_annotation(self, user_id: str, file_id: str, annotation_id: str) -> None:
        with self._lock:
            records = self._read(user_id, file_id)
            remaining = [r for r in records if r.get("id") != annotation_id]
            if len(remaining) != len(records):
                self._write(user_id, file_id, remaining)

        logger.debug("Deleted annotation %s for %s", annotation_id, file_id)

    # ------------------------------------------------------------------
    # File access; callers hold the lock
    # ------------------------------------------------------------------

    def _read(self, user_id: str, file_id: str) -> List[dict]:
        path = self.get_json_path(user_id, file_id)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to load annotations from %s: %s", path, e)
            return []

        stored_file_id = data.get("file_id")
        if stored_file_id != file_id:
            logger.warning("JSON file is for different document: %s", stored_file_id)

        return list(data.get("annotations", []))

    def _write(self, user_id: str, file_id: str, records: List[dict]) -> None:
        path = self.get_json_path(user_id, file_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "user_id": user_id,
            "file_id": file_id,
            "annotations": records,
        }

        # Write beside the target and swap, so readers never see half a file
        temp_path = path.with_suffix(".json.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(temp_path, path)
