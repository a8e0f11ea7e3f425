"""Single-trial protocol shared by practice and main trials.

A trial moves through fixed stages, one :meth:`TrialRunner.step` per tick:

``SETTLING``
    parameters sent, collaborators still hidden for the settle delay.
``AWAITING_RESPONSE``
    stimulus and response visible; waits for a confirm edge with no timeout.
``POST_TRIAL``
    response captured, collaborators hidden for the post-trial delay.
``COMPLETE``
    the controller may start the next trial.

Only trials started with ``persist=True`` produce a :class:`TrialRecord`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Callable, Optional, Tuple

from .adapters import Collaborators, clamp, clamp_unit
from .design import Trial
from .recorder import DataRecorder, TrialRecord


logger = logging.getLogger(__name__)


class TrialStage(Enum):
    IDLE = auto()
    SETTLING = auto()
    AWAITING_RESPONSE = auto()
    POST_TRIAL = auto()
    COMPLETE = auto()


@dataclass(frozen=True)
class TrialOutcome:
    """What the participant submitted on one trial."""

    trial: Trial
    amplitude: float
    confidence: float
    reaction_time: float
    record: Optional[TrialRecord] = None


class TrialRunner:
    """Run one trial at a time against the session's collaborators."""

    def __init__(
        self,
        collaborators: Collaborators,
        recorder: DataRecorder,
        *,
        settle_delay_s: float = 0.5,
        post_trial_delay_s: float = 1.0,
        amplitude_range: Tuple[float, float] = (-2.0, 2.0),
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self.collaborators = collaborators
        self.capabilities = collaborators.capabilities()
        self.recorder = recorder
        self.settle_delay_s = settle_delay_s
        self.post_trial_delay_s = post_trial_delay_s
        self.amplitude_range = amplitude_range
        self.wall_clock = wall_clock
        self.stage = TrialStage.IDLE
        self.trial: Optional[Trial] = None
        self.persist = False
        self.trial_number: Optional[int] = None
        self.outcome: Optional[TrialOutcome] = None
        self.start_time: Optional[float] = None
        self._deadline = 0.0

    @property
    def awaiting_response(self) -> bool:
        return self.stage is TrialStage.AWAITING_RESPONSE

    def begin(
        self,
        trial: Trial,
        *,
        persist: bool,
        now: float,
        trial_number: Optional[int] = None,
    ) -> None:
        """Configure the collaborators for ``trial`` and start the settle delay."""

        if persist and trial_number is None:
            raise ValueError("A persisted trial needs a trial_number")
        self.trial = trial
        self.persist = persist
        self.trial_number = trial_number
        self.outcome = None
        self.start_time = None
        logger.debug(
            "Trial begin: R1=%s R2=%s speed=%s dir=%s persist=%s",
            trial.r1,
            trial.r2,
            trial.rotation_speed,
            trial.direction.value,
            persist,
        )

        if self.capabilities.stimulus:
            self.collaborators.stimulus.set_parameters(
                trial.r1, trial.r2, trial.rotation_speed, trial.direction
            )
        if self.capabilities.response:
            self.collaborators.response.reset_parameters(trial.r1, trial.r2, 0.0)

        self.stage = TrialStage.SETTLING
        self._deadline = now + self.settle_delay_s

    def step(self, now: float, confirm_edge: bool) -> bool:
        """Advance the trial by one tick; return ``True`` once it is complete."""

        if self.stage is TrialStage.SETTLING:
            if now >= self._deadline:
                self._set_visibility(True)
                self.start_time = now
                self.stage = TrialStage.AWAITING_RESPONSE
        elif self.stage is TrialStage.AWAITING_RESPONSE:
            if confirm_edge:
                self._capture(now)
                self._set_visibility(False)
                self.stage = TrialStage.POST_TRIAL
                self._deadline = now + self.post_trial_delay_s
        elif self.stage is TrialStage.POST_TRIAL:
            if now >= self._deadline:
                self.stage = TrialStage.COMPLETE
        return self.stage is TrialStage.COMPLETE

    def abort(self) -> None:
        """Hide everything and drop the trial in progress."""

        self._set_visibility(False)
        self.stage = TrialStage.IDLE

    def _capture(self, now: float) -> None:
        assert self.trial is not None and self.start_time is not None
        reaction_time = max(0.0, now - self.start_time)
        if self.capabilities.response:
            amplitude, confidence = self.collaborators.response.get_adjustment_values()
        else:
            amplitude, confidence = 0.0, 0.0
        amplitude = clamp(amplitude, *self.amplitude_range)
        confidence = clamp_unit(confidence)

        record = None
        if self.persist:
            record = TrialRecord(
                trial_number=self.trial_number,
                trial=self.trial,
                adjusted_amplitude=amplitude,
                confidence=confidence,
                reaction_time=reaction_time,
                timestamp=self.wall_clock().isoformat(timespec="milliseconds"),
            )
            self.recorder.append(record)

        self.outcome = TrialOutcome(
            trial=self.trial,
            amplitude=amplitude,
            confidence=confidence,
            reaction_time=reaction_time,
            record=record,
        )
        logger.info(
            "Trial completed: amplitude=%.4f confidence=%.4f RT=%.3fs%s",
            amplitude,
            confidence,
            reaction_time,
            "" if self.persist else " (practice, not saved)",
        )

    def _set_visibility(self, visible: bool) -> None:
        if self.capabilities.stimulus:
            self.collaborators.stimulus.set_visibility(visible)
        if self.capabilities.response:
            self.collaborators.response.set_visibility(visible)


__all__ = ["TrialOutcome", "TrialRunner", "TrialStage"]
