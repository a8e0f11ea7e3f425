"""Tests for confirm edge detection."""
from __future__ import annotations

from depth_adjust.input_edge import InputEdgeDetector


def _samples(detector: InputEdgeDetector, raws) -> list:
    return [detector.sample(raw) for raw in raws]


class TestSample:
    def test_rising_edge_only(self) -> None:
        detector = InputEdgeDetector()
        assert _samples(detector, [False, True, True, False, False]) == [
            False,
            True,
            False,
            False,
            False,
        ]

    def test_one_edge_per_press_cycle_regardless_of_hold_length(self) -> None:
        detector = InputEdgeDetector()
        raws = [True] * 30 + [False] * 3 + [True] * 2 + [False] + [True] * 100
        assert sum(_samples(detector, raws)) == 3

    def test_held_at_start_counts_as_press(self) -> None:
        detector = InputEdgeDetector()
        assert detector.sample(True) is True
        assert detector.sample(True) is False


class TestAvailability:
    def test_unavailable_source_never_edges(self) -> None:
        detector = InputEdgeDetector()
        detector.invalidate()
        assert _samples(detector, [False, True, False, True]) == [False] * 4

    def test_restore_resets_previous_state(self) -> None:
        detector = InputEdgeDetector()
        assert detector.sample(True) is True
        detector.invalidate()
        detector.restore()
        assert detector.previous_raw is False
        assert detector.sample(False) is False
        assert detector.sample(True) is True

    def test_poll_tracks_source_availability(self, confirm) -> None:
        detector = InputEdgeDetector()
        confirm.held = True
        assert detector.poll(confirm) is True

        confirm.available = False
        assert detector.poll(confirm) is False
        assert detector.available is False
        assert detector.previous_raw is False

        confirm.available = True
        confirm.held = False
        assert detector.poll(confirm) is False
        assert detector.available is True
        confirm.held = True
        assert detector.poll(confirm) is True
        assert detector.poll(confirm) is False

    def test_control_held_through_outage_needs_release(self, confirm) -> None:
        detector = InputEdgeDetector()
        confirm.held = True
        assert detector.poll(confirm) is True

        confirm.available = False
        assert detector.poll(confirm) is False
        confirm.available = True
        assert [detector.poll(confirm) for _ in range(5)] == [False] * 5
        assert detector.awaiting_release

        confirm.held = False
        assert detector.poll(confirm) is False
        assert not detector.awaiting_release
        confirm.held = True
        assert detector.poll(confirm) is True

    def test_restore_while_available_changes_nothing(self) -> None:
        detector = InputEdgeDetector()
        assert detector.sample(True) is True
        detector.restore()
        assert detector.previous_raw is True
        assert not detector.awaiting_release

    def test_source_polled_once_per_call(self, confirm) -> None:
        detector = InputEdgeDetector()
        for _ in range(5):
            detector.poll(confirm)
        assert confirm.polls == 5
