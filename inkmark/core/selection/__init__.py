"""
Text selection tracking over the page overlay.
"""

from .models import (
    EventKind,
    InputEvent,
    PageContainer,
    PendingSelection,
    SelectionSnapshot,
    ToolMode,
    TrackerState,
)
from .tracker import SelectionPort, SelectionTracker

__all__ = [
    "SelectionTracker",
    "SelectionPort",
    "PendingSelection",
    "SelectionSnapshot",
    "PageContainer",
    "InputEvent",
    "EventKind",
    "ToolMode",
    "TrackerState",
]
