"""
Selection tracking: turns settled text selections into page-relative geometry.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from inkmark.core.geometry import bounding_rect

from .models import (
    InputEvent,
    PageContainer,
    PendingSelection,
    SelectionSnapshot,
    ToolMode,
    TrackerState,
)

logger = logging.getLogger(__name__)


class SelectionPort(ABC):
    """What the tracker needs to know about the view it is watching."""

    @abstractmethod
    def current_selection(self) -> Optional[SelectionSnapshot]:
        """The live selection, or None when nothing is selected."""

    @abstractmethod
    def parent_of(self, node: Any) -> Any:
        """Parent of a view node, or None at the root."""

    @abstractmethod
    def page_info(self, node: Any) -> Optional[PageContainer]:
        """Page container details if *node* is a page container."""

    @abstractmethod
    def is_interactive_chrome(self, source: Any) -> bool:
        """Whether *source* is a button, input or existing annotation."""

    @abstractmethod
    def scroll_offset(self) -> Tuple[float, float]:
        """Current scroll position of the scrolling viewport."""

    @abstractmethod
    def viewport_origin(self) -> Tuple[float, float]:
        """Top-left of the scrolling viewport in the coordinate space of rects."""

    @abstractmethod
    def clear_selection(self) -> None:
        """Drop the live selection in the view."""


class SelectionTracker(QObject):
    """
    Watches selection-ending input and offers a PendingSelection.

    State flow is idle -> pending (settle delay) -> active or idle. The
    tracker only describes selections; it never creates annotations.
    """

    # Signals
    selection_changed = pyqtSignal(object)  # PendingSelection
    selection_cleared = pyqtSignal()
    state_changed = pyqtSignal(object)  # TrackerState

    POPUP_OFFSET = 10  # Pixels above the selection

    def __init__(self, port: SelectionPort, settle_delay_ms: int = 50, parent=None):
        super().__init__(parent)
        self._port = port
        self._mode = ToolMode.CURSOR
        self._state = TrackerState.IDLE
        self._pending: Optional[PendingSelection] = None

        self._settle_timer = QTimer(self)
        self._settle_timer.setSingleShot(True)
        self._settle_timer.setInterval(settle_delay_ms)
        self._settle_timer.timeout.connect(self._inspect)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def mode(self) -> ToolMode:
        return self._mode

    @property
    def pending(self) -> Optional[PendingSelection]:
        return self._pending

    @property
    def settle_delay_ms(self) -> int:
        return self._settle_timer.interval()

    def set_settle_delay(self, delay_ms: int):
        self._settle_timer.setInterval(max(0, int(delay_ms)))

    def set_mode(self, mode: ToolMode):
        """Switch tool; note placement suspends tracking entirely."""
        if mode == self._mode:
            return
        self._mode = mode
        if mode == ToolMode.NOTE:
            self.clear()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_release(self, event: InputEvent) -> bool:
        """
        React to a pointer, touch or key release.

        Returns:
            True if the event started a settle delay
        """
        if self._mode != ToolMode.CURSOR:
            return False
        if event.source is not None and self._port.is_interactive_chrome(event.source):
            return False

        self._set_state(TrackerState.PENDING)
        self._settle_timer.start()
        return True

    def flush(self):
        """Run a scheduled inspection now instead of waiting for the timer."""
        if self._settle_timer.isActive():
            self._settle_timer.stop()
            self._inspect()

    def cancel(self):
        """Drop a scheduled inspection, keeping any pending selection."""
        if self._settle_timer.isActive():
            self._settle_timer.stop()
        if self._state == TrackerState.PENDING:
            self._set_state(TrackerState.ACTIVE if self._pending else TrackerState.IDLE)

    def clear(self, clear_view: bool = False):
        """Forget the pending selection and return to idle."""
        self._settle_timer.stop()
        had_selection = self._pending is not None
        self._pending = None
        self._set_state(TrackerState.IDLE)

        if clear_view:
            self._port.clear_selection()
        if had_selection:
            self.selection_cleared.emit()

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def _inspect(self):
        if self._mode != ToolMode.CURSOR:
            self.clear()
            return

        snapshot = self._port.current_selection()
        if snapshot is None or snapshot.is_collapsed or not snapshot.text.strip():
            self.clear()
            return

        container = self._find_page_container(snapshot.anchor_node)
        rects = [rect for rect in snapshot.client_rects if not rect.is_empty()]
        if container is None or not rects:
            logger.debug("Selection is not inside a page, ignoring")
            self.clear()
            return

        origin_x, origin_y = container.origin
        page_rects = tuple(rect.translated(-origin_x, -origin_y) for rect in rects)

        bounds = bounding_rect(rects)
        view_x, view_y = self._port.viewport_origin()
        scroll_x, scroll_y = self._port.scroll_offset()
        center_x, _ = bounds.center
        anchor = (
            center_x - view_x + scroll_x,
            bounds.y - view_y + scroll_y - self.POPUP_OFFSET,
        )

        self._pending = PendingSelection(
            page=container.page_number,
            text=snapshot.text,
            rects=page_rects,
            anchor=anchor,
        )
        self._set_state(TrackerState.ACTIVE)
        self.selection_changed.emit(self._pending)

    def _find_page_container(self, node: Any) -> Optional[PageContainer]:
        while node is not None:
            info = self._port.page_info(node)
            if info is not None:
                return info
            node = self._port.parent_of(node)
        return None

    def _set_state(self, state: TrackerState):
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)
