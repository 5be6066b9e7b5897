"""
Inkmark PDF: page-by-page PDF viewing with highlights, notes and export.
"""

__version__ = "0.1.0"
