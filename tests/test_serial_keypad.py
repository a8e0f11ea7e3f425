"""Tests for the serial keypad confirm source (pyserial mocked at the port)."""
from __future__ import annotations

import logging

import pytest
import serial

from conftest import ManualClock
from depth_adjust.input_edge import InputEdgeDetector
from depth_adjust.serial_keypad import SerialConfirmSource


class FakeSerial:
    """Stand-in for ``serial.Serial`` fed with bytes by the test."""

    instances: list = []
    open_attempts = 0
    fail_open = False

    def __init__(self, port, baudrate, timeout) -> None:
        FakeSerial.open_attempts += 1
        if FakeSerial.fail_open:
            raise serial.SerialException(f"could not open port {port}")
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.pending = b""
        self.broken = False
        self.closed = False
        FakeSerial.instances.append(self)

    @property
    def in_waiting(self) -> int:
        if self.broken:
            raise serial.SerialException("device disconnected")
        return len(self.pending)

    def read(self, size: int) -> bytes:
        data, self.pending = self.pending[:size], self.pending[size:]
        return data

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def fake_serial(monkeypatch):
    FakeSerial.instances = []
    FakeSerial.open_attempts = 0
    FakeSerial.fail_open = False
    monkeypatch.setattr(serial, "Serial", FakeSerial)
    return FakeSerial


def _edges(source: SerialConfirmSource, chunks) -> int:
    device = FakeSerial.instances[-1]
    detector = InputEdgeDetector()
    edges = 0
    for chunk in chunks:
        device.pending = chunk
        edges += detector.poll(source)
    return edges


def test_opens_port_with_settings() -> None:
    source = SerialConfirmSource(port="COM3", baudrate=19200)
    (device,) = FakeSerial.instances
    assert (device.port, device.baudrate, device.timeout) == ("COM3", 19200, 0.0)
    assert source.is_open


def test_confirm_char_reads_as_held_for_one_poll() -> None:
    source = SerialConfirmSource(port="COM3")
    device = FakeSerial.instances[0]
    assert source.poll() is False
    device.pending = b"21"
    assert source.poll() is True
    assert source.poll() is False
    device.pending = b"2"
    assert source.poll() is False


def test_each_keypress_makes_one_edge() -> None:
    source = SerialConfirmSource(port="COM3")
    assert _edges(source, [b"1", b"", b"1", b"", b"", b"1"]) == 3


def test_presses_on_consecutive_polls_stay_separate() -> None:
    source = SerialConfirmSource(port="COM3")
    assert _edges(source, [b"1", b"1", b"", b""]) == 2


def test_presses_in_one_read_stay_separate() -> None:
    source = SerialConfirmSource(port="COM3")
    assert _edges(source, [b"11", b"", b"", b""]) == 2


def test_failure_reports_unavailable_then_reconnects() -> None:
    clock = ManualClock()
    source = SerialConfirmSource(port="COM3", retry_interval_s=1.0, clock=clock)
    first = FakeSerial.instances[0]
    first.broken = True
    assert source.poll() is None
    assert first.closed
    assert not source.is_open

    clock.advance(0.5)
    assert source.poll() is None
    assert FakeSerial.open_attempts == 1

    clock.advance(0.5)
    assert source.poll() is False
    assert FakeSerial.open_attempts == 2
    assert len(FakeSerial.instances) == 2


def test_unplugged_keypad_retries_on_interval_and_warns_once(caplog) -> None:
    FakeSerial.fail_open = True
    clock = ManualClock()
    with caplog.at_level(logging.DEBUG, logger="depth_adjust.serial_keypad"):
        source = SerialConfirmSource(port="COM9", retry_interval_s=1.0, clock=clock)
        for _ in range(120):
            clock.advance(0.02)
            assert source.poll() is None

        assert FakeSerial.open_attempts == 3
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

        FakeSerial.fail_open = False
        clock.advance(1.0)
        assert source.poll() is False
    assert source.is_open
    assert any(
        r.levelno == logging.INFO and "reconnected" in r.getMessage() for r in caplog.records
    )


def test_unopenable_port_starts_unavailable() -> None:
    FakeSerial.fail_open = True
    source = SerialConfirmSource(port="COM9")
    assert not source.is_open
    assert source.poll() is None
    assert FakeSerial.open_attempts == 1


def test_close_is_idempotent() -> None:
    source = SerialConfirmSource(port="COM3")
    source.close()
    source.close()
    assert FakeSerial.instances[0].closed
