"""Serial keypad confirm source for Mopii-style devices."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional


logger = logging.getLogger(__name__)


@dataclass
class SerialConfirmSource:
    """Non-blocking confirm source for a keypad that sends ASCII digits over serial.

    The keypad only reports key presses, not held state, so each confirm
    character received reads as "held" for one tick, with a released tick in
    between so that two quick presses stay two presses.  A serial failure
    closes the port and reports the device as unavailable; reopening is
    retried at most once every ``retry_interval_s`` seconds.
    """

    port: str
    baudrate: int = 9600
    timeout_s: float = 0.0
    encoding: str = "ascii"
    confirm_chars: str = "1"
    retry_interval_s: float = 1.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        try:
            import serial  # type: ignore
        except ImportError as exc:  # pragma: no cover - runtime environment specific
            raise RuntimeError(
                "pyserial is required for SerialConfirmSource support. Install it via 'pip install pyserial'."
            ) from exc

        self._serial_module = serial
        self._device = None
        self._pending_presses = 0
        self._last_held = False
        self._next_retry = 0.0
        self._outage_logged = False
        self._open()

    def _open(self) -> bool:
        self._next_retry = self.clock() + self.retry_interval_s
        try:
            self._device = self._serial_module.Serial(
                port=self.port,
                baudrate=self.baudrate,
                timeout=self.timeout_s,
            )
        except (self._serial_module.SerialException, OSError) as exc:
            self._device = None
            if not self._outage_logged:
                logger.warning("Could not open serial keypad on %s: %s", self.port, exc)
                self._outage_logged = True
            else:
                logger.debug("Serial keypad on %s still unavailable: %s", self.port, exc)
            return False
        if self._outage_logged:
            logger.info("Serial keypad on %s reconnected", self.port)
            self._outage_logged = False
        self._pending_presses = 0
        self._last_held = False
        return True

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def close(self) -> None:
        """Close the underlying serial port."""

        device, self._device = self._device, None
        if device is None:
            return
        try:
            device.close()
        except (self._serial_module.SerialException, OSError) as exc:
            logger.debug("Error while closing serial keypad: %s", exc)

    def poll(self) -> Optional[bool]:
        """Return whether a confirm key press is due this tick, or ``None``."""

        if self._device is None:
            if self.clock() < self._next_retry or not self._open():
                return None
        try:
            data = self._read_all()
        except (self._serial_module.SerialException, OSError) as exc:
            logger.warning("Serial keypad on %s failed: %s", self.port, exc)
            self._outage_logged = True
            self._next_retry = self.clock() + self.retry_interval_s
            self.close()
            return None
        self._pending_presses += sum(1 for char in data if char in self.confirm_chars)

        if self._last_held or not self._pending_presses:
            self._last_held = False
        else:
            self._pending_presses -= 1
            self._last_held = True
        return self._last_held

    def _read_all(self) -> str:
        """Read and decode any bytes currently waiting on the serial buffer."""

        waiting = self._device.in_waiting
        if not waiting:
            return ""
        data = self._device.read(waiting)
        if not data:
            return ""
        return data.decode(self.encoding, errors="ignore")


__all__ = ["SerialConfirmSource"]
