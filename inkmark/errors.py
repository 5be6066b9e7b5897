"""
Exception hierarchy for the annotator.
"""
from typing import Optional


class InkmarkError(Exception):
    """Base class for all annotator errors."""


class DocumentLoadError(InkmarkError):
    """The source document could not be opened. Fatal to the viewing session."""


class PageRenderError(InkmarkError):
    """A single page failed to rasterize or build its overlay."""

    def __init__(self, page_number: int, message: str):
        super().__init__(f"Page {page_number}: {message}")
        self.page_number = page_number


class ExportError(InkmarkError):
    """Compiling the annotated document failed. Nothing was uploaded."""


class UploadError(InkmarkError):
    """The upload collaborator rejected the exported document."""


class ReplaceIncompleteError(InkmarkError):
    """
    The exported copy was uploaded but the original could not be deleted.

    Both files now exist; callers must report this to the user.
    """

    def __init__(self, new_file_id: str, original_file_id: str,
                 reason: Optional[str] = None):
        message = (f"Uploaded {new_file_id} but failed to delete original "
                   f"{original_file_id}")
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.new_file_id = new_file_id
        self.original_file_id = original_file_id
