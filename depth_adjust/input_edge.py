"""Edge detection for the participant's confirm input.

Input devices report whether the confirm control is *currently held*.  The
controller needs one-shot presses instead, so :class:`InputEdgeDetector`
turns the per-tick held samples into press edges and suppresses everything
while the device is unavailable.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol


logger = logging.getLogger(__name__)


class ConfirmSource(Protocol):
    """Polling port for the confirm control, queried once per tick."""

    def poll(self) -> Optional[bool]:
        """Return the held state, or ``None`` if the device is unavailable."""
        ...


class InputEdgeDetector:
    """Convert raw held samples into False -> True press edges.

    After the source comes back from an outage the control must be seen
    released once before a press can register, so a control held through
    the outage does not fire on reconnect.
    """

    def __init__(self) -> None:
        self.previous_raw = False
        self.available = True
        self.awaiting_release = False

    def sample(self, raw: bool) -> bool:
        if not self.available:
            return False
        raw = bool(raw)
        if self.awaiting_release:
            if raw:
                return False
            self.awaiting_release = False
        edge = raw and not self.previous_raw
        self.previous_raw = raw
        return edge

    def invalidate(self) -> None:
        """Mark the source unavailable; samples read as no-press until restored."""

        if self.available:
            logger.warning("Confirm input unavailable; ignoring input until it returns")
        self.available = False
        self.previous_raw = False

    def restore(self) -> None:
        if self.available:
            return
        logger.info("Confirm input available again")
        self.available = True
        self.previous_raw = False
        self.awaiting_release = True

    def poll(self, source: ConfirmSource) -> bool:
        """Read ``source`` once and return whether this tick holds a press edge."""

        reading = source.poll()
        if reading is None:
            self.invalidate()
            return False
        if not self.available:
            self.restore()
        return self.sample(reading)


__all__ = ["ConfirmSource", "InputEdgeDetector"]
