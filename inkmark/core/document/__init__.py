"""
PDF document loading, export and publishing.
"""
from .loader import (
    BytesFileSource,
    DocumentSession,
    FileSource,
    LocalFileSource,
    open_document,
)
from .pdf_exporter import ExportCompiler, FitzDocumentWriter
from .upload import (
    ExportPolicy,
    ExportPublisher,
    LocalFolderUploader,
    PublishResult,
    Uploader,
    UploadRequest,
    export_filename,
)

__all__ = [
    'FileSource',
    'LocalFileSource',
    'BytesFileSource',
    'DocumentSession',
    'open_document',
    'ExportCompiler',
    'FitzDocumentWriter',
    'ExportPolicy',
    'ExportPublisher',
    'LocalFolderUploader',
    'PublishResult',
    'Uploader',
    'UploadRequest',
    'export_filename',
]
