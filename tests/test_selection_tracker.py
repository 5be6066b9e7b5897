"""Tests for selection tracking."""

import pytest
from PyQt5.QtTest import QTest

from inkmark.core.geometry import Rect
from inkmark.core.selection import (
    EventKind,
    InputEvent,
    SelectionSnapshot,
    SelectionTracker,
    ToolMode,
    TrackerState,
)

from fakes import FakeNode, FakeSelectionPort

RELEASE = InputEvent(EventKind.POINTER_RELEASE)


@pytest.fixture
def port():
    return FakeSelectionPort()


@pytest.fixture
def tracker(qapp, port):
    tracker = SelectionTracker(port)
    yield tracker
    tracker.cancel()


def _page_selection(text="Hello world", page=2, origin=(100.0, 200.0)):
    page_node = FakeNode(page=page, origin=origin)
    span_node = FakeNode(parent=FakeNode(parent=page_node))
    return SelectionSnapshot(
        text=text,
        anchor_node=span_node,
        client_rects=(Rect(120, 250, 200, 20), Rect(100, 272, 150, 20)),
    )


class TestSelectionTracker:
    def test_defaults(self, tracker):
        assert tracker.state == TrackerState.IDLE
        assert tracker.mode == ToolMode.CURSOR
        assert tracker.settle_delay_ms == 50
        assert tracker.pending is None

    def test_release_waits_for_selection_to_settle(self, tracker, port):
        port.snapshot = _page_selection()

        assert tracker.handle_release(RELEASE)
        assert tracker.state == TrackerState.PENDING
        assert tracker.pending is None

        tracker.flush()
        assert tracker.state == TrackerState.ACTIVE

    def test_rects_are_page_relative(self, tracker, port):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()

        pending = tracker.pending
        assert pending.page == 2
        assert pending.text == "Hello world"
        assert pending.rects == (Rect(20, 50, 200, 20), Rect(0, 72, 150, 20))
        assert pending.line_count == 2

    def test_anchor_sits_above_selection_center(self, tracker, port):
        port.snapshot = _page_selection()
        port.scroll = (0.0, 400.0)
        tracker.handle_release(RELEASE)
        tracker.flush()

        # Bounds span x 100..320 and start at y 250
        assert tracker.pending.anchor == (210.0, 250.0 + 400.0 - 10)

    def test_selection_text_is_not_trimmed(self, tracker, port):
        port.snapshot = _page_selection(text="  padded  ")
        tracker.handle_release(RELEASE)
        tracker.flush()
        assert tracker.pending.text == "  padded  "

    def test_timer_settles_without_flush(self, tracker, port):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)

        QTest.qWait(150)
        assert tracker.state == TrackerState.ACTIVE

    def test_signal_carries_pending_selection(self, tracker, port):
        received = []
        tracker.selection_changed.connect(received.append)
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()

        assert received == [tracker.pending]

    @pytest.mark.parametrize("snapshot", [
        None,
        SelectionSnapshot(text="", is_collapsed=True),
        SelectionSnapshot(text="   \n", anchor_node=FakeNode(page=1),
                          client_rects=(Rect(0, 0, 10, 10),)),
    ])
    def test_empty_selection_clears(self, tracker, port, snapshot):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()
        cleared = []
        tracker.selection_cleared.connect(lambda: cleared.append(True))

        port.snapshot = snapshot
        tracker.handle_release(RELEASE)
        tracker.flush()

        assert tracker.state == TrackerState.IDLE
        assert tracker.pending is None
        assert cleared == [True]

    def test_selection_outside_pages_is_ignored(self, tracker, port):
        port.snapshot = SelectionSnapshot(
            text="toolbar label",
            anchor_node=FakeNode(parent=FakeNode()),
            client_rects=(Rect(0, 0, 50, 10),),
        )
        tracker.handle_release(RELEASE)
        tracker.flush()

        assert tracker.state == TrackerState.IDLE
        assert tracker.pending is None

    def test_releases_on_chrome_are_ignored(self, tracker, port):
        button = object()
        port.chrome.add(button)

        assert not tracker.handle_release(InputEvent(EventKind.POINTER_RELEASE, button))
        assert tracker.state == TrackerState.IDLE

    def test_note_mode_suspends_tracking(self, tracker, port):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()

        tracker.set_mode(ToolMode.NOTE)
        assert tracker.pending is None
        assert not tracker.handle_release(InputEvent(EventKind.KEY_RELEASE))
        assert tracker.state == TrackerState.IDLE

        tracker.set_mode(ToolMode.CURSOR)
        assert tracker.handle_release(RELEASE)

    def test_cancel_keeps_previous_selection(self, tracker, port):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()
        pending = tracker.pending

        tracker.handle_release(RELEASE)
        tracker.cancel()
        assert tracker.state == TrackerState.ACTIVE
        assert tracker.pending is pending

    def test_clear_view_drops_live_selection(self, tracker, port):
        port.snapshot = _page_selection()
        tracker.handle_release(RELEASE)
        tracker.flush()

        tracker.clear(clear_view=True)
        assert port.clear_calls == 1
        assert tracker.state == TrackerState.IDLE

    def test_custom_settle_delay(self, qapp, port):
        tracker = SelectionTracker(port, settle_delay_ms=120)
        assert tracker.settle_delay_ms == 120
        tracker.set_settle_delay(-5)
        assert tracker.settle_delay_ms == 0
