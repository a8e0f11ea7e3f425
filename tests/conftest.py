"""Shared fakes for the controller tests.

The fakes stand in for the host: a clock advanced by hand, a confirm source
whose held state the test sets, and collaborators that record every call.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

import pytest

from depth_adjust.adapters import Collaborators
from depth_adjust.config import ExperimentConfig
from depth_adjust.controller import PhaseController
from depth_adjust.design import Trial, TrialDesignGenerator


SESSION_START = datetime(2026, 3, 14, 9, 30, 0)


class ManualClock:
    """Monotonic clock the test advances explicitly."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.start = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def wall(self) -> datetime:
        return SESSION_START + timedelta(seconds=self.now - self.start)


class ScriptedConfirm:
    """Confirm source whose held state (or unavailability) is set by the test."""

    def __init__(self) -> None:
        self.held = False
        self.available = True
        self.polls = 0

    def poll(self) -> Optional[bool]:
        self.polls += 1
        if not self.available:
            return None
        return self.held


class RecordingStimulus:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.visible = False

    def set_parameters(self, r1, r2, speed_deg_per_s, direction) -> None:
        self.calls.append(("set_parameters", r1, r2, speed_deg_per_s, direction))

    def set_visibility(self, visible: bool) -> None:
        self.calls.append(("set_visibility", visible))
        self.visible = visible


class ScriptedResponse:
    """Response collaborator returning queued (amplitude, confidence) answers."""

    def __init__(self, answers: Optional[List[Tuple[float, float]]] = None) -> None:
        self.answers = list(answers or [])
        self.calls: List[tuple] = []
        self.visible = False
        self.resets = 0

    def reset_parameters(self, r1, r2, phase_offset) -> None:
        self.calls.append(("reset_parameters", r1, r2, phase_offset))
        self.resets += 1

    def get_adjustment_values(self) -> Tuple[float, float]:
        self.calls.append(("get_adjustment_values",))
        index = self.resets - 1
        if 0 <= index < len(self.answers):
            return self.answers[index]
        return 0.0, 0.0

    def set_visibility(self, visible: bool) -> None:
        self.calls.append(("set_visibility", visible))
        self.visible = visible


class RecordingSink:
    def __init__(self) -> None:
        self.texts: List[str] = []

    def show_instruction(self, text: str) -> None:
        self.texts.append(text)


class FixedDesign:
    """Design stub returning the given trial lists."""

    def __init__(self, practice: List[Trial], main: List[Trial]) -> None:
        self.practice = list(practice)
        self.main = list(main)

    def generate_practice_trials(self) -> List[Trial]:
        return list(self.practice)

    def generate_main_trials(self) -> List[Trial]:
        return list(self.main)


TICK = 0.05


def tick(controller: PhaseController, clock: ManualClock, dt: float = TICK) -> None:
    clock.advance(dt)
    controller.step()


def press(controller: PhaseController, clock: ManualClock, confirm: ScriptedConfirm) -> None:
    """Hold the confirm control for one tick, then release it for one tick."""

    confirm.held = True
    tick(controller, clock)
    confirm.held = False
    tick(controller, clock)


def wait_for_confirm(
    controller: PhaseController, clock: ManualClock, max_ticks: int = 10_000
) -> None:
    for _ in range(max_ticks):
        if controller.awaiting_confirm or controller.finished:
            return
        tick(controller, clock)
    raise AssertionError("controller never waited for a confirm press")


def drive_session(
    controller: PhaseController,
    clock: ManualClock,
    confirm: ScriptedConfirm,
    max_ticks: int = 100_000,
) -> None:
    """Press confirm whenever the controller waits for it until the session ends."""

    for _ in range(max_ticks):
        if controller.finished:
            return
        if controller.awaiting_confirm:
            press(controller, clock, confirm)
        else:
            tick(controller, clock)
    raise AssertionError("session did not finish")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def confirm() -> ScriptedConfirm:
    return ScriptedConfirm()


@pytest.fixture
def config(tmp_path) -> ExperimentConfig:
    return ExperimentConfig(participant_id="P042", results_directory=str(tmp_path / "data"))


@pytest.fixture
def make_controller(config, clock, confirm):
    """Build a controller wired to the fakes; collaborators are keyword overrides."""

    def _make(
        *,
        design=None,
        stimulus=None,
        response=None,
        presentation=None,
        recorder=None,
        **overrides,
    ) -> PhaseController:
        for name, value in overrides.items():
            setattr(config, name, value)
        return PhaseController(
            config,
            confirm_source=confirm,
            collaborators=Collaborators(
                stimulus=stimulus, response=response, presentation=presentation
            ),
            recorder=recorder,
            design=design if design is not None else TrialDesignGenerator.from_seed(7),
            clock=clock,
            wall_clock=clock.wall,
        )

    return _make
