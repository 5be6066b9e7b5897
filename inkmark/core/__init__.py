"""
Core logic for Inkmark PDF: rendering pipeline, selection, annotations, export.
"""
from .annotations import Annotation, AnnotationStore, AnnotationType, SyncStatus
from .color_filter import ColorFilterMatrix, compile_color_filter, compile_hex_color_filter
from .geometry import Rect, pixel_to_point_rect, point_to_pixel_rect
from .page import PageRenderer, PageRenderState, RenderQueue, TextOverlay
from .selection import PendingSelection, SelectionTracker, ToolMode

__all__ = [
    'Annotation',
    'AnnotationStore',
    'AnnotationType',
    'SyncStatus',
    'ColorFilterMatrix',
    'compile_color_filter',
    'compile_hex_color_filter',
    'Rect',
    'pixel_to_point_rect',
    'point_to_pixel_rect',
    'PageRenderer',
    'PageRenderState',
    'RenderQueue',
    'TextOverlay',
    'PendingSelection',
    'SelectionTracker',
    'ToolMode',
]
