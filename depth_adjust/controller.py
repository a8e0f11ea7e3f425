"""Phase sequencing for a depth adjustment session.

:class:`PhaseController` is a tick-driven state machine.  The host calls
:meth:`PhaseController.step` once per frame; every wait (confirm presses,
delays, the trial in progress) is a named awaiting condition that the next
``step`` re-checks.  The session runs

    IDLE -> WELCOME -> PRACTICE_INTRO -> PRACTICE -> MAIN_INTRO -> MAIN -> END

and can be cancelled at any tick, which leads to ``ABORTED`` without saving.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from enum import Enum, auto
from typing import Callable, List, Optional, Sequence, Tuple

from .adapters import Collaborators
from .config import ExperimentConfig
from .design import Trial, TrialDesignGenerator
from .input_edge import ConfirmSource, InputEdgeDetector
from .recorder import DataRecorder, DataSaveError
from .trial import TrialRunner


logger = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = auto()
    WELCOME = auto()
    PRACTICE_INTRO = auto()
    PRACTICE = auto()
    MAIN_INTRO = auto()
    MAIN = auto()
    END = auto()
    ABORTED = auto()


class Await(Enum):
    """What the current phase is waiting for."""

    NOTHING = auto()
    CONFIRM = auto()
    DELAY = auto()
    TRIAL = auto()


_INTRO_NEXT = {
    Phase.WELCOME: Phase.PRACTICE_INTRO,
    Phase.PRACTICE_INTRO: Phase.PRACTICE,
    Phase.MAIN_INTRO: Phase.MAIN,
}


class PhaseController:
    """Own one session: trial lists, input edges, trial runner and recorder."""

    def __init__(
        self,
        config: ExperimentConfig | None = None,
        *,
        confirm_source: ConfirmSource,
        collaborators: Collaborators | None = None,
        recorder: DataRecorder | None = None,
        design: TrialDesignGenerator | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config if config is not None else ExperimentConfig()
        self.config.validate()
        self.confirm_source = confirm_source
        self.collaborators = collaborators if collaborators is not None else Collaborators()
        self.capabilities = self.collaborators.capabilities()
        if recorder is None:
            recorder = DataRecorder(
                self.config.results_directory,
                data_fields=self.config.data_fields,
                significant_digits=self.config.significant_digits,
            )
        self.recorder = recorder
        self.clock = clock
        self.wall_clock = wall_clock
        self.edge_detector = InputEdgeDetector()
        self.runner = TrialRunner(
            self.collaborators,
            self.recorder,
            settle_delay_s=self.config.settle_delay_s,
            post_trial_delay_s=self.config.post_trial_delay_s,
            amplitude_range=self.config.amplitude_range,
            wall_clock=wall_clock,
        )

        if design is None:
            design = TrialDesignGenerator.from_seed(self.config.random_seed)
        self._practice_trials: Tuple[Trial, ...] = tuple(design.generate_practice_trials())
        self._main_trials: Tuple[Trial, ...] = tuple(design.generate_main_trials())
        logger.info(
            "Generated %d practice trials and %d main trials",
            len(self._practice_trials),
            len(self._main_trials),
        )
        for name, present in (
            ("stimulus", self.capabilities.stimulus),
            ("response", self.capabilities.response),
            ("presentation", self.capabilities.presentation),
        ):
            if not present:
                logger.warning("No %s collaborator; its calls will be skipped", name)

        self.phase = Phase.IDLE
        self.finished = False
        self.breaks: List[int] = []
        self.current_trial_index: Optional[int] = None
        self.session_started_at: Optional[datetime] = None
        self.saved_path = None
        self.save_error: Optional[DataSaveError] = None
        self.cancel_reason: Optional[str] = None
        self._started = False
        self._cancel_requested = False
        self._await = Await.CONFIRM
        self._deadline = 0.0
        self._in_break = False

        self._publish(self.config.instruction_text("idle"))
        if self.config.auto_start:
            self.start()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def practice_trials(self) -> Tuple[Trial, ...]:
        return self._practice_trials

    @property
    def main_trials(self) -> Tuple[Trial, ...]:
        return self._main_trials

    @property
    def awaiting(self) -> Await:
        return self._await

    @property
    def in_break(self) -> bool:
        return self._in_break

    @property
    def awaiting_confirm(self) -> bool:
        """True when the next confirm press would be acted on."""

        if self.finished:
            return False
        if self._await is Await.CONFIRM:
            return True
        return self._await is Await.TRIAL and self.runner.awaiting_response

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------
    def start(self, now: Optional[float] = None) -> bool:
        """Begin the session; only the first request has any effect."""

        if self._started:
            logger.warning("Session already started; ignoring start request")
            return False
        if self._cancel_requested:
            logger.warning("Session was cancelled; ignoring start request")
            return False
        self._started = True
        self.session_started_at = self.wall_clock()
        logger.info(
            "Session started for participant %s at %s",
            self.config.participant_id,
            self.session_started_at.isoformat(timespec="seconds"),
        )
        self._enter(Phase.WELCOME, self.clock() if now is None else now)
        return True

    def cancel(self, reason: str = "cancelled") -> None:
        """Request an abort; honoured on the next :meth:`step` without saving."""

        if self.finished or self.phase is Phase.END:
            return
        self._cancel_requested = True
        self.cancel_reason = reason
        logger.warning("Session cancellation requested: %s", reason)

    def step(self) -> Phase:
        """Advance the session by one tick and return the active phase."""

        if self.finished:
            return self.phase

        now = self.clock()
        edge = self.edge_detector.poll(self.confirm_source)

        if self._cancel_requested:
            self._abort()
            return self.phase

        if self.phase is Phase.IDLE:
            if edge:
                self.start(now)
        elif self.phase in _INTRO_NEXT:
            self._step_intro(now, edge)
        elif self.phase in (Phase.PRACTICE, Phase.MAIN):
            self._step_block(now, edge)
        elif self.phase is Phase.END:
            if now >= self._deadline:
                self._teardown()
        return self.phase

    # ------------------------------------------------------------------
    # Phase handling
    # ------------------------------------------------------------------
    def _enter(self, phase: Phase, now: float) -> None:
        logger.info("Phase %s -> %s", self.phase.name, phase.name)
        self.phase = phase
        self._await = Await.NOTHING

        if phase is Phase.WELCOME:
            self._publish(self.config.instruction_text("welcome"))
            self._await = Await.CONFIRM
        elif phase is Phase.PRACTICE_INTRO:
            self._publish(
                self.config.instruction_text(
                    "practice_intro", count=len(self._practice_trials)
                )
            )
            self._await = Await.CONFIRM
        elif phase is Phase.MAIN_INTRO:
            self._publish(
                self.config.instruction_text("main_intro", count=len(self._main_trials))
            )
            self._await = Await.CONFIRM
        elif phase in (Phase.PRACTICE, Phase.MAIN):
            self._publish(self.config.instruction_text("trial"))
            self._start_trial(0, now)
        elif phase is Phase.END:
            self._finish_session(now)

    def _step_intro(self, now: float, edge: bool) -> None:
        if self._await is Await.CONFIRM:
            if edge:
                delay = (
                    self.config.welcome_confirm_delay_s
                    if self.phase is Phase.WELCOME
                    else self.config.confirm_delay_s
                )
                self._await = Await.DELAY
                self._deadline = now + delay
        elif self._await is Await.DELAY and now >= self._deadline:
            self._enter(_INTRO_NEXT[self.phase], now)

    def _step_block(self, now: float, edge: bool) -> None:
        if self._await is Await.TRIAL:
            if self.runner.step(now, edge):
                self._trial_completed(now)
        elif self._await is Await.CONFIRM:
            if edge:
                self._await = Await.DELAY
                self._deadline = now + self.config.confirm_delay_s
        elif self._await is Await.DELAY and now >= self._deadline:
            self._in_break = False
            self._start_trial(self.current_trial_index + 1, now)

    def _block_trials(self) -> Sequence[Trial]:
        return self._main_trials if self.phase is Phase.MAIN else self._practice_trials

    def _start_trial(self, index: int, now: float) -> None:
        trials = self._block_trials()
        if index >= len(trials):
            self._block_completed(now)
            return
        persist = self.phase is Phase.MAIN
        self.current_trial_index = index
        logger.info(
            "Starting %s trial %d/%d",
            "main" if persist else "practice",
            index + 1,
            len(trials),
        )
        if index > 0:
            self._publish(self.config.instruction_text("trial"))
        self.runner.begin(
            trials[index],
            persist=persist,
            now=now,
            trial_number=index if persist else None,
        )
        self._await = Await.TRIAL

    def _trial_completed(self, now: float) -> None:
        trials = self._block_trials()
        completed = self.current_trial_index + 1
        if completed >= len(trials):
            self._block_completed(now)
        elif self.phase is Phase.MAIN and completed % self.config.break_every == 0:
            self.breaks.append(completed)
            self._in_break = True
            logger.info("Break after %d of %d main trials", completed, len(trials))
            self._publish(
                self.config.instruction_text(
                    "break", completed=completed, count=len(trials)
                )
            )
            self._await = Await.CONFIRM
        else:
            self._start_trial(completed, now)

    def _block_completed(self, now: float) -> None:
        next_phase = Phase.MAIN_INTRO if self.phase is Phase.PRACTICE else Phase.END
        self._enter(next_phase, now)

    def _finish_session(self, now: float) -> None:
        session_info = None
        if self.config.save_session_info:
            session_info = {
                "experiment_name": self.config.experiment_name,
                "participant_id": self.config.participant_id,
                "session_started_at": self.session_started_at,
                "random_seed": self.config.random_seed,
                "main_trials": len(self._main_trials),
                "records": len(self.recorder),
            }
        try:
            self.saved_path = self.recorder.flush(
                self.config.participant_id,
                self.session_started_at or self.wall_clock(),
                session_info=session_info,
            )
        except DataSaveError as exc:
            self.save_error = exc
            logger.error("Session data was not saved: %s", exc)
            self._publish(self.config.instruction_text("save_failed"))
        else:
            self._publish(self.config.instruction_text("end"))
        self._await = Await.DELAY
        self._deadline = now + self.config.end_display_s

    def _teardown(self) -> None:
        self.runner.abort()
        self._await = Await.NOTHING
        self.finished = True
        logger.info("Session finished")

    def _abort(self) -> None:
        logger.warning(
            "Aborting session in phase %s (%s); no data will be saved",
            self.phase.name,
            self.cancel_reason,
        )
        self.phase = Phase.ABORTED
        self._in_break = False
        self._publish(self.config.instruction_text("aborted"))
        self._teardown()

    def _publish(self, text: str) -> None:
        if self.capabilities.presentation:
            self.collaborators.presentation.show_instruction(text)


__all__ = ["Await", "Phase", "PhaseController"]
