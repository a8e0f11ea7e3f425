"""Configuration helpers for the depth adjustment experiment.

The :class:`ExperimentConfig` dataclass stores the user-editable parameters for
running the depth-matching task.  Keeping these values in a separate module
makes it easy to discover what can be tweaked without touching the controller
or data management code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .recorder import DATA_FIELDS


DEFAULT_INSTRUCTIONS: Dict[str, str] = {
    "idle": "Welcome to the Depth Adjustment Task!\n\nPress {confirm} to begin.",
    "welcome": (
        "In this task, you will see a rotating black curve (right eye only).\n\n"
        "Adjust the white curve (UP/DOWN) to match the depth you perceive in "
        "the black curve.\n\n"
        "Use LEFT/RIGHT to indicate your confidence.\n\n"
        "Press {confirm} to continue."
    ),
    "practice_intro": (
        "Practice Trials\n\n"
        "You will now have {count} practice trials.\n\n"
        "When ready, press {confirm} to submit your adjustment.\n\n"
        "Press {confirm} to start practice."
    ),
    "main_intro": (
        "Main Experiment\n\n"
        "The practice is complete.\n\n"
        "You will now complete {count} trials.\n\n"
        "Press {confirm} to begin."
    ),
    "trial": (
        "Adjust the white curve to match the black curve\n\n"
        "Press {confirm} when ready to submit"
    ),
    "break": (
        "Break\n\nCompleted {completed} of {count} trials.\n\n"
        "Take a short break if needed.\n\n"
        "Press {confirm} to continue."
    ),
    "end": (
        "Experiment Complete!\n\n"
        "Thank you for your participation.\n\n"
        "Data has been saved."
    ),
    "save_failed": (
        "Experiment Complete!\n\n"
        "Thank you for your participation.\n\n"
        "Data could not be saved. Please notify the experimenter."
    ),
    "aborted": "Session cancelled.\n\nNo data was saved.",
}


@dataclass
class ExperimentConfig:
    """Container for experiment parameters and runtime options."""

    experiment_name: str = "depth_adjustment"
    participant_id: str = "P001"
    auto_start: bool = False
    results_directory: str = "DepthAdjustmentData"
    data_fields: List[str] = field(default_factory=lambda: list(DATA_FIELDS))
    settle_delay_s: float = 0.5
    post_trial_delay_s: float = 1.0
    welcome_confirm_delay_s: float = 0.3
    confirm_delay_s: float = 0.5
    end_display_s: float = 3.0
    break_every: int = 10
    min_amplitude: float = -2.0
    max_amplitude: float = 2.0
    amplitude_speed: float = 2.0
    confidence_speed: float = 1.0
    significant_digits: int = 6
    random_seed: Optional[int] = None
    save_session_info: bool = False
    instructions: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_INSTRUCTIONS)
    )
    confirm_label: str = "SPACE"
    confirm_key: str = "space"
    quit_keys: Tuple[str, ...] = ("escape",)
    participant_serial_port: Optional[str] = None
    participant_serial_baud: int = 9600
    full_screen: bool = True
    window_size: Tuple[int, int] = (1280, 720)
    window_units: str = "pix"
    background_color: Sequence[float] = (0.0, 0.0, 0.0)
    screen_index: int = 0
    debug_mode: bool = False
    debug_window_size: Tuple[int, int] = (1024, 768)

    @property
    def amplitude_range(self) -> Tuple[float, float]:
        return self.min_amplitude, self.max_amplitude

    def validate(self) -> None:
        """Raise ``ValueError`` when the settings cannot drive a session."""

        if self.min_amplitude > self.max_amplitude:
            raise ValueError(
                f"min_amplitude ({self.min_amplitude}) must not exceed "
                f"max_amplitude ({self.max_amplitude})"
            )
        if self.break_every < 1:
            raise ValueError("break_every must be at least 1")
        if self.significant_digits < 1:
            raise ValueError("significant_digits must be at least 1")
        delays = {
            "settle_delay_s": self.settle_delay_s,
            "post_trial_delay_s": self.post_trial_delay_s,
            "welcome_confirm_delay_s": self.welcome_confirm_delay_s,
            "confirm_delay_s": self.confirm_delay_s,
            "end_display_s": self.end_display_s,
        }
        for name, value in delays.items():
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    def instruction_text(self, name: str, **values: object) -> str:
        """Return the instruction string ``name`` with its placeholders filled."""

        template = self.instructions.get(name)
        if template is None:
            template = DEFAULT_INSTRUCTIONS[name]
        return template.format(confirm=self.confirm_label, **values)
