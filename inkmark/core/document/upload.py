"""
Publishing an exported document: uploading it and applying the export policy.
"""
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from inkmark.errors import ReplaceIncompleteError, UploadError

logger = logging.getLogger(__name__)


class ExportPolicy(Enum):
    COPY = "copy"  # Write alongside the original
    REPLACE = "replace"  # Upload, then delete the original


@dataclass(frozen=True)
class UploadRequest:
    data: bytes
    filename: str
    parent: Optional[str] = None  # Folder to upload into
    policy: ExportPolicy = ExportPolicy.COPY


@dataclass(frozen=True)
class PublishResult:
    file_id: str
    replaced_original: bool = False


def export_filename(original_name: str, policy: ExportPolicy) -> str:
    """
    Name for the exported file.

    Copies get an ``_annotated`` suffix; replacements keep the original name.
    """
    name = os.path.basename(original_name) or "document.pdf"
    if policy == ExportPolicy.REPLACE:
        return name

    stem, ext = os.path.splitext(name)
    return f"{stem}_annotated{ext or '.pdf'}"


class Uploader(ABC):
    """The upload collaborator."""

    @abstractmethod
    def upload(self, request: UploadRequest) -> str:
        """
        Store the document.

        Returns:
            Id of the stored file

        Raises:
            UploadError: If the document could not be stored
        """

    @abstractmethod
    def delete(self, file_id: str) -> None:
        """Delete a stored file."""


class LocalFolderUploader(Uploader):
    """Uploads into a folder on disk; file ids are absolute paths."""

    def __init__(self, default_folder: Optional[Union[str, Path]] = None):
        self.default_folder = Path(default_folder) if default_folder else None

    def upload(self, request: UploadRequest) -> str:
        folder = request.parent or self.default_folder
        if folder is None:
            raise UploadError("No destination folder for the exported document")

        folder = Path(folder)
        output_path = folder / request.filename
        temp_path = None
        try:
            folder.mkdir(parents=True, exist_ok=True)

            # Create temp file in same directory
            temp_fd, temp_path = tempfile.mkstemp(suffix='.pdf', dir=str(folder))
            with os.fdopen(temp_fd, 'wb') as f:
                f.write(request.data)

            shutil.move(temp_path, str(output_path))
            temp_path = None
        except OSError as e:
            raise UploadError(f"Could not write {output_path}: {e}") from e
        finally:
            # Clean up temp file on failure
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)

        logger.info("Wrote %d bytes to %s", len(request.data), output_path)
        return str(output_path.resolve())

    def delete(self, file_id: str) -> None:
        try:
            os.remove(file_id)
        except FileNotFoundError:
            logger.debug("Original %s already gone", file_id)


class ExportPublisher:
    """
    Hands exported bytes to the uploader and applies the export policy.

    Under the replace policy the original is only deleted after the upload
    succeeded; a failed delete is raised, never swallowed.
    """

    def __init__(self, uploader: Uploader):
        self.uploader = uploader

    def publish(self, data: bytes, original_name: str,
                original_file_id: Optional[str] = None,
                policy: ExportPolicy = ExportPolicy.COPY,
                parent: Optional[str] = None) -> PublishResult:
        """
        Upload *data* and, for replace, delete the original.

        Raises:
            UploadError: If the upload failed; the original is untouched
            ReplaceIncompleteError: If the upload worked but the delete did not
        """
        request = UploadRequest(
            data=data,
            filename=export_filename(original_name, policy),
            parent=parent,
            policy=policy,
        )

        try:
            new_file_id = self.uploader.upload(request)
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"Upload failed: {e}") from e

        if policy != ExportPolicy.REPLACE or not original_file_id:
            return PublishResult(file_id=new_file_id)

        if os.path.normcase(str(new_file_id)) == os.path.normcase(str(original_file_id)):
            # Written over the original in place
            return PublishResult(file_id=new_file_id, replaced_original=True)

        try:
            self.uploader.delete(original_file_id)
        except Exception as e:
            logger.error("Uploaded %s but could not delete original %s: %s",
                         new_file_id, original_file_id, e)
            raise ReplaceIncompleteError(new_file_id, original_file_id, str(e)) from e

        logger.info("Replaced %s with %s", original_file_id, new_file_id)
        return PublishResult(file_id=new_file_id, replaced_original=True)
