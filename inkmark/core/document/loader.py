"""
Opening documents and the per-document viewing session.
"""
import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import fitz  # PyMuPDF

from inkmark.core.annotations import AnnotationBackend, AnnotationOutbox, AnnotationStore
from inkmark.core.page import FitzPageSource, PageRenderer
from inkmark.errors import DocumentLoadError

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"


class FileSource(ABC):
    """Where the document bytes come from."""

    file_id: str
    name: str
    # Folder or location of the original, if it has one
    parent: Optional[str] = None

    @abstractmethod
    def read(self) -> bytes:
        """
        Raises:
            DocumentLoadError: If the bytes cannot be obtained
        """


class LocalFileSource(FileSource):
    """A PDF on the local disk."""

    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.name = os.path.basename(self.path)
        self.parent = os.path.dirname(self.path)
        path_hash = hashlib.md5(self.path.encode()).hexdigest()
        self.file_id = f"{LOCAL_ID_PREFIX}{path_hash}"

    @property
    def original_file_id(self) -> str:
        """Id the uploader knows the original by."""
        return self.path

    def read(self) -> bytes:
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except OSError as e:
            raise DocumentLoadError(f"Cannot read {self.path}: {e}") from e


class BytesFileSource(FileSource):
    """Bytes obtained elsewhere, e.g. downloaded from a remote store."""

    def __init__(self, data: bytes, name: str, file_id: Optional[str] = None,
                 parent: Optional[str] = None):
        self._data = data
        self.name = name
        self.parent = parent
        self.file_id = file_id or f"{LOCAL_ID_PREFIX}{hashlib.md5(data).hexdigest()}"

    @property
    def original_file_id(self) -> Optional[str]:
        return None

    def read(self) -> bytes:
        return self._data


def open_document(data: bytes) -> fitz.Document:
    """
    Open PDF bytes.

    Raises:
        DocumentLoadError: If the bytes are empty, corrupt or not a PDF
    """
    if not data:
        raise DocumentLoadError("No document data")

    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DocumentLoadError(f"Could not open document: {e}") from e

    if doc.needs_pass:
        doc.close()
        raise DocumentLoadError("Document is password protected")
    if doc.page_count == 0:
        doc.close()
        raise DocumentLoadError("Document has no pages")
    return doc


class DocumentSession:
    """
    Everything that lives as long as one document is open: the original
    bytes, one renderer per page and the annotation store.
    """

    def __init__(self, source: Optional[FileSource], settings,
                 backend: AnnotationBackend,
                 outbox: Optional[AnnotationOutbox] = None):
        self.source = source
        self.settings = settings
        self.backend = backend
        self._outbox = outbox

        self.original_bytes: bytes = b""
        self.doc: Optional[fitz.Document] = None
        self.page_source: Optional[FitzPageSource] = None
        self.renderers: Dict[int, PageRenderer] = {}
        self.store: Optional[AnnotationStore] = None

    @property
    def is_open(self) -> bool:
        return self.doc is not None

    @property
    def page_count(self) -> int:
        return self.page_source.page_count if self.page_source else 0

    @property
    def file_id(self) -> Optional[str]:
        return self.source.file_id if self.source else None

    @property
    def name(self) -> str:
        return self.source.name if self.source else ""

    def open(self, selection_tracker=None) -> "DocumentSession":
        """
        Load the document and its annotations.

        Raises:
            DocumentLoadError: If there is no source or the bytes cannot be opened
        """
        if self.source is None:
            raise DocumentLoadError("No document source")

        data = self.source.read()
        doc = open_document(data)

        self.original_bytes = data
        self.doc = doc
        self.page_source = FitzPageSource(doc)
        self.renderers = {
            page_number: PageRenderer(self.page_source, page_number)
            for page_number in range(1, doc.page_count + 1)
        }
        logger.info("Opened %s (%d pages)", self.source.name, doc.page_count)

        self.store = AnnotationStore(
            self.settings.user_id, self.source.file_id, self.backend,
            outbox=self._outbox, selection_tracker=selection_tracker,
        )
        try:
            self.store.load()
        except Exception:
            logger.exception("Failed to load annotations for %s", self.source.file_id)

        # Anything left over from an earlier attempt goes out again
        self.store.retry_failed()
        return self

    def renderers_in_order(self) -> List[PageRenderer]:
        return [self.renderers[n] for n in sorted(self.renderers)]

    def close(self):
        """Tear down renderers and release the document."""
        for renderer in self.renderers.values():
            renderer.teardown()
        self.renderers.clear()

        if self.doc is not None:
            self.doc.close()
            self.doc = None
        self.page_source = None
        logger.debug("Closed %s", self.name)
