from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from inkmark.core.geometry import Rect, bounding_rect


class ToolMode(Enum):
    """Active interaction tool, shared by selection tracking and note placement."""

    CURSOR = "cursor"
    NOTE = "note"


class TrackerState(Enum):
    IDLE = "idle"
    PENDING = "pending"  # Waiting for the selection to settle
    ACTIVE = "active"  # A pending selection is on offer


class EventKind(Enum):
    POINTER_RELEASE = "pointer_release"
    TOUCH_RELEASE = "touch_release"
    KEY_RELEASE = "key_release"


@dataclass(frozen=True)
class InputEvent:
    """A selection-ending input event and the element it came from."""

    kind: EventKind
    source: Any = None


@dataclass(frozen=True)
class SelectionSnapshot:
    """
    The view's current selection, as reported through a SelectionPort.

    ``client_rects`` holds one rectangle per visual line in viewport space.
    """

    text: str
    anchor_node: Any = None
    client_rects: Tuple[Rect, ...] = ()
    is_collapsed: bool = False


@dataclass(frozen=True)
class PageContainer:
    """A page element: its 1-based number and its origin in viewport space."""

    page_number: int
    origin: Tuple[float, float]


@dataclass(frozen=True)
class PendingSelection:
    """
    A settled selection waiting for the user to confirm it.

    Rectangles are page-relative pixels; the anchor is relative to the
    scrolling content and marks where the confirmation popup goes.
    """

    page: int
    text: str
    rects: Tuple[Rect, ...]
    anchor: Tuple[float, float]

    @property
    def bounds(self) -> Optional[Rect]:
        return bounding_rect(self.rects)

    @property
    def line_count(self) -> int:
        return len(self.rects)
