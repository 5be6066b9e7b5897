"""
Background export of annotated documents.
"""
from .export_worker import ExportController, ExportWorker

__all__ = ['ExportController', 'ExportWorker']
