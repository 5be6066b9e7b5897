"""
Annotation system for PDF documents.
"""
from .models import (
    DEFAULT_STYLE,
    TEMP_ID_PREFIX,
    Annotation,
    AnnotationType,
    SyncStatus,
    is_temporary_id,
)
from .persistence import AnnotationBackend, JsonAnnotationBackend
from .store import AnnotationStore
from .sync import AnnotationOutbox

__all__ = [
    'Annotation',
    'AnnotationType',
    'SyncStatus',
    'DEFAULT_STYLE',
    'TEMP_ID_PREFIX',
    'is_temporary_id',
    'AnnotationStore',
    'AnnotationOutbox',
    'AnnotationBackend',
    'JsonAnnotationBackend',
]
