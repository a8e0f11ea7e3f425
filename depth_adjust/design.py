"""Trial design for the depth adjustment task.

Practice trials are a fixed pair.  Main trials are the full factorial of
curve shape (R2), rotation direction and rotation speed, each repeated five
times and then shuffled.  The random source is injected so a seeded
``random.Random`` reproduces the exact presentation order.
"""
from __future__ import annotations

import itertools
import random
from dataclasses import dataclass
from enum import Enum
from typing import List, MutableSequence, Optional, Protocol, Tuple


class Direction(Enum):
    """Rotation direction of the reference curve."""

    CW = "CW"
    CCW = "CCW"

    @property
    def sign(self) -> int:
        return 1 if self is Direction.CW else -1


@dataclass(frozen=True)
class Trial:
    """Parameters of one stimulus presentation."""

    r1: float
    r2: float
    rotation_speed: float
    direction: Direction


PRACTICE_R1: float = 1.0
PRACTICE_R2: float = 1.5
PRACTICE_SPEED: float = 60.0

MAIN_R1: float = 1.0
MAIN_R2_LEVELS: Tuple[float, ...] = (1.5, 2.0)
MAIN_DIRECTIONS: Tuple[Direction, ...] = (Direction.CW, Direction.CCW)
MAIN_SPEED_LEVELS: Tuple[float, ...] = (90.0, 180.0)
MAIN_REPEATS: int = 5


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int:
        ...


def factorial_key(trial: Trial) -> Tuple[float, str, float]:
    """Return the (R2, direction, speed) condition a trial belongs to."""

    return trial.r2, trial.direction.value, trial.rotation_speed


def fisher_yates_shuffle(items: MutableSequence, rng: RandomSource) -> None:
    """Shuffle ``items`` in place with a uniform Fisher-Yates permutation."""

    for i in range(len(items) - 1, 0, -1):
        j = rng.randrange(i + 1)
        items[i], items[j] = items[j], items[i]


class TrialDesignGenerator:
    """Build the practice and main trial lists for one session."""

    def __init__(self, rng: Optional[RandomSource] = None):
        self.rng: RandomSource = rng if rng is not None else random.Random()

    @classmethod
    def from_seed(cls, seed: Optional[int]) -> "TrialDesignGenerator":
        return cls(random.Random(seed))

    @staticmethod
    def generate_practice_trials() -> List[Trial]:
        return [
            Trial(PRACTICE_R1, PRACTICE_R2, PRACTICE_SPEED, Direction.CW),
            Trial(PRACTICE_R1, PRACTICE_R2, PRACTICE_SPEED, Direction.CCW),
        ]

    @staticmethod
    def canonical_main_trials() -> List[Trial]:
        """Return the unshuffled factorial (R2, then direction, then speed)."""

        trials: List[Trial] = []
        for r2, direction, speed in itertools.product(
            MAIN_R2_LEVELS, MAIN_DIRECTIONS, MAIN_SPEED_LEVELS
        ):
            trials.extend(
                Trial(MAIN_R1, r2, speed, direction) for _ in range(MAIN_REPEATS)
            )
        return trials

    def generate_main_trials(self) -> List[Trial]:
        trials = self.canonical_main_trials()
        fisher_yates_shuffle(trials, self.rng)
        return trials


__all__ = [
    "Direction",
    "Trial",
    "TrialDesignGenerator",
    "factorial_key",
    "fisher_yates_shuffle",
]
