"""PsychoPy host for the depth adjustment task.

The host owns the window and the per-frame loop.  Each frame it updates the
keyboard response model, calls :meth:`PhaseController.step` once and flips
the window.  Curve rendering is not provided here: a stimulus collaborator
can be injected by callers that have one.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from psychopy import core, event, gui, logging, visual
from pyglet.window import key as pyglet_key

from .adapters import Collaborators, ResponseState, StimulusAdapter
from .config import ExperimentConfig
from .controller import Phase, PhaseController
from .serial_keypad import SerialConfirmSource


def _key_symbol(name: str) -> int:
    try:
        return getattr(pyglet_key, name.upper())
    except AttributeError as exc:
        raise ValueError(f"Unknown key name '{name}'") from exc


def _attach_key_state(win: visual.Window) -> Optional[pyglet_key.KeyStateHandler]:
    """Push a pyglet key state handler onto ``win`` (``None`` without a pyglet window)."""

    win_handle = getattr(win, "winHandle", None)
    if win_handle is None or not hasattr(win_handle, "push_handlers"):
        return None
    handler = pyglet_key.KeyStateHandler()
    win_handle.push_handlers(handler)
    return handler


class KeyboardConfirmSource:
    """Report whether the confirm key is currently held down."""

    def __init__(self, key_state: Optional[pyglet_key.KeyStateHandler], key_name: str = "space"):
        self.key_state = key_state
        self.symbol = _key_symbol(key_name)

    def poll(self) -> Optional[bool]:
        if self.key_state is None:
            return None
        return bool(self.key_state[self.symbol])


class CombinedConfirmSource:
    """Treat the confirm control as held if any available source holds it."""

    def __init__(self, *sources: Any):
        self.sources = [source for source in sources if source is not None]

    def poll(self) -> Optional[bool]:
        readings = [source.poll() for source in self.sources]
        available = [reading for reading in readings if reading is not None]
        if not available:
            return None
        return any(available)


class TextInstructionSink:
    """Draw the latest instruction text every frame."""

    def __init__(self, win: visual.Window):
        wrap = win.size[0] * 0.8 if win.units == "pix" else None
        self.text_stim = visual.TextStim(
            win,
            text="",
            color="white",
            height=32 if win.units == "pix" else 0.075,
            wrapWidth=wrap,
            pos=(0, win.size[1] * 0.25) if win.units == "pix" else (0, 0.5),
        )

    def show_instruction(self, text: str) -> None:
        self.text_stim.text = text
        logging.exp(f"Instruction shown: {text[:50]}...")

    def draw(self) -> None:
        self.text_stim.draw()


class KeyboardResponse:
    """Arrow keys adjust depth amplitude (UP/DOWN) and confidence (LEFT/RIGHT)."""

    def __init__(
        self,
        win: visual.Window,
        key_state: Optional[pyglet_key.KeyStateHandler],
        config: ExperimentConfig,
    ):
        self.key_state = key_state
        self.state = ResponseState(
            min_amplitude=config.min_amplitude,
            max_amplitude=config.max_amplitude,
            amplitude_speed=config.amplitude_speed,
            confidence_speed=config.confidence_speed,
        )
        self.visible = False
        self.readout = visual.TextStim(
            win,
            text="",
            color="white",
            height=24 if win.units == "pix" else 0.05,
            pos=(0, -win.size[1] * 0.35) if win.units == "pix" else (0, -0.7),
        )

    def _axis(self, negative: int, positive: int) -> float:
        if self.key_state is None:
            return 0.0
        return float(bool(self.key_state[positive])) - float(bool(self.key_state[negative]))

    def update(self, dt: float) -> None:
        if not self.visible:
            return
        self.state.advance(
            self._axis(pyglet_key.LEFT, pyglet_key.RIGHT),
            self._axis(pyglet_key.DOWN, pyglet_key.UP),
            dt,
        )

    def reset_parameters(self, r1: float, r2: float, phase_offset: float) -> None:
        self.state.reset(r1, r2, phase_offset)

    def get_adjustment_values(self) -> Tuple[float, float]:
        return self.state.values()

    def set_visibility(self, visible: bool) -> None:
        self.visible = visible

    def draw(self) -> None:
        if not self.visible:
            return
        amplitude, confidence = self.state.values()
        self.readout.text = f"Depth: {amplitude:+.2f}    Confidence: {confidence:.0%}"
        self.readout.draw()


class DepthAdjustmentExperiment:
    """Run one participant session in a PsychoPy window."""

    def __init__(
        self,
        config: ExperimentConfig | None = None,
        *,
        stimulus: StimulusAdapter | None = None,
    ):
        self.config = config or ExperimentConfig()
        self.config.validate()
        self.stimulus = stimulus
        self.controller: PhaseController | None = None
        self._window: visual.Window | None = None
        self._global_keys_registered = False

    # ------------------------------------------------------------------
    # GUI helpers
    # ------------------------------------------------------------------
    def collect_participant_info(self) -> Dict[str, str]:
        """Display an info dialog to confirm the participant ID."""

        info = {"Participant ID": self.config.participant_id}
        dialog = gui.DlgFromDict(info, title="Depth Adjustment Task")
        if not dialog.OK:
            core.quit()
        participant = str(info["Participant ID"]).strip()
        if participant:
            self.config.participant_id = participant
        return info

    def create_window(self) -> visual.Window:
        if self.config.debug_mode:
            size = list(self.config.debug_window_size)
            fullscr = False
        else:
            size = list(self.config.window_size)
            fullscr = self.config.full_screen
        win = visual.Window(
            size=size,
            fullscr=fullscr,
            screen=self.config.screen_index,
            units=self.config.window_units,
            color=list(self.config.background_color),
            allowGUI=self.config.debug_mode,
        )
        self._window = win
        return win

    def _register_global_quit_handler(self) -> None:
        """Install a global key hook so ESC cancels the session safely."""

        if self._global_keys_registered:
            return

        def _handle_global_quit() -> None:
            logging.warning("Global quit key detected; cancelling session.")
            if self.controller is not None:
                self.controller.cancel("quit key pressed")

        for key in self.config.quit_keys:
            event.globalKeys.add(key=key, func=_handle_global_quit)
        self._global_keys_registered = True

    def _create_serial_source(self) -> SerialConfirmSource | None:
        port = self.config.participant_serial_port
        if not port:
            return None
        return SerialConfirmSource(port=port, baudrate=self.config.participant_serial_baud)

    def _open_log_file(self) -> None:
        log_dir = Path(self.config.results_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{self.config.experiment_name}_{self.config.participant_id}.log"
        logging.LogFile(os.fspath(log_path), level=logging.EXP)
        logging.console.setLevel(logging.WARNING)

    # ------------------------------------------------------------------
    # Experiment entry point
    # ------------------------------------------------------------------
    def run(self) -> PhaseController:
        """Execute the full session and return the finished controller."""

        self.collect_participant_info()
        self._open_log_file()
        logging.exp(f"Session: participant={self.config.participant_id}")

        serial_source = self._create_serial_source()
        win = self.create_window()
        key_state = _attach_key_state(win)
        sink = TextInstructionSink(win)
        response = KeyboardResponse(win, key_state, self.config)
        confirm = CombinedConfirmSource(
            KeyboardConfirmSource(key_state, self.config.confirm_key),
            serial_source,
        )
        clock = core.monotonicClock.getTime
        try:
            self.controller = PhaseController(
                self.config,
                confirm_source=confirm,
                collaborators=Collaborators(
                    stimulus=self.stimulus,
                    response=response,
                    presentation=sink,
                ),
                clock=clock,
            )
            self._register_global_quit_handler()
            last = clock()
            while not self.controller.finished:
                now = clock()
                response.update(now - last)
                last = now
                self.controller.step()
                sink.draw()
                response.draw()
                win.flip()
        finally:
            win.close()
            if serial_source is not None:
                serial_source.close()

        controller = self.controller
        if controller.phase is Phase.ABORTED:
            logging.exp(f"Session aborted: {controller.cancel_reason}")
        elif controller.save_error is not None:
            logging.error(f"Session data was not saved: {controller.save_error}")
        else:
            logging.exp(f"Data saved to {controller.saved_path}")
        logging.flush()
        return controller


__all__ = [
    "CombinedConfirmSource",
    "DepthAdjustmentExperiment",
    "KeyboardConfirmSource",
    "KeyboardResponse",
    "TextInstructionSink",
]
