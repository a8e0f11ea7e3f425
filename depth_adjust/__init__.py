"""Controller package for the depth adjustment (depth matching) experiment.

The package exposes the trial design, input edge detection, trial runner,
phase controller and data recorder.  None of these import PsychoPy; the
PsychoPy host lives in :mod:`depth_adjust.experiment` and is only imported
when a live session is launched.
"""

from .adapters import Capabilities, Collaborators, ResponseState
from .config import ExperimentConfig
from .controller import Await, Phase, PhaseController
from .design import Direction, Trial, TrialDesignGenerator, factorial_key
from .input_edge import InputEdgeDetector
from .recorder import DATA_FIELDS, DataRecorder, DataSaveError, TrialRecord
from .trial import TrialOutcome, TrialRunner, TrialStage
from .cli import main as run_experiment

__all__ = [
    "ExperimentConfig",
    "PhaseController",
    "Phase",
    "Await",
    "TrialRunner",
    "TrialStage",
    "TrialOutcome",
    "TrialDesignGenerator",
    "Trial",
    "Direction",
    "factorial_key",
    "InputEdgeDetector",
    "DataRecorder",
    "DataSaveError",
    "TrialRecord",
    "DATA_FIELDS",
    "Collaborators",
    "Capabilities",
    "ResponseState",
    "run_experiment",
]
