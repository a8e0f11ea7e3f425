"""Interfaces to the collaborators the controller drives.

The controller never renders anything itself.  It talks to a stimulus (the
rotating reference curve), a response model (the adjustable curve) and a
presentation sink (instruction text) through the small protocols below.  Any
of them may be absent; :class:`Collaborators` resolves which ones exist once
per session.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from .design import Direction


class StimulusAdapter(Protocol):
    def set_parameters(
        self, r1: float, r2: float, speed_deg_per_s: float, direction: Direction
    ) -> None:
        """Regenerate the reference curve and reset its rotation angle to 0."""
        ...

    def set_visibility(self, visible: bool) -> None:
        ...


class ResponseAdapter(Protocol):
    def reset_parameters(self, r1: float, r2: float, phase_offset: float) -> None:
        """Reshape the adjustable curve and zero amplitude and confidence."""
        ...

    def get_adjustment_values(self) -> Tuple[float, float]:
        """Return ``(amplitude, confidence)`` as currently set by the participant."""
        ...

    def set_visibility(self, visible: bool) -> None:
        ...


class PresentationSink(Protocol):
    def show_instruction(self, text: str) -> None:
        ...


@dataclass(frozen=True)
class Capabilities:
    stimulus: bool
    response: bool
    presentation: bool


@dataclass
class Collaborators:
    """The optional collaborators of one session."""

    stimulus: Optional[StimulusAdapter] = None
    response: Optional[ResponseAdapter] = None
    presentation: Optional[PresentationSink] = None

    def capabilities(self) -> Capabilities:
        return Capabilities(
            stimulus=self.stimulus is not None,
            response=self.response is not None,
            presentation=self.presentation is not None,
        )


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, float(value)))


def clamp_unit(value: float) -> float:
    return clamp(value, 0.0, 1.0)


class ResponseState:
    """Adjustment state behind a response collaborator.

    Axis values in [-1, 1] are integrated over time: the Y axis drives the
    depth amplitude, the X axis drives confidence.  Both stay clamped.
    """

    def __init__(
        self,
        *,
        min_amplitude: float = -2.0,
        max_amplitude: float = 2.0,
        amplitude_speed: float = 2.0,
        confidence_speed: float = 1.0,
    ):
        if min_amplitude > max_amplitude:
            raise ValueError("min_amplitude must not exceed max_amplitude")
        self.min_amplitude = min_amplitude
        self.max_amplitude = max_amplitude
        self.amplitude_speed = amplitude_speed
        self.confidence_speed = confidence_speed
        self.r1 = 1.0
        self.r2 = 1.5
        self.phase_offset = 0.0
        self.amplitude = clamp(0.0, min_amplitude, max_amplitude)
        self.confidence = 0.0

    def reset(self, r1: float, r2: float, phase_offset: float) -> None:
        self.r1 = r1
        self.r2 = r2
        self.phase_offset = phase_offset
        self.amplitude = clamp(0.0, self.min_amplitude, self.max_amplitude)
        self.confidence = 0.0

    def advance(self, axis_x: float, axis_y: float, dt: float) -> None:
        self.amplitude = clamp(
            self.amplitude + axis_y * self.amplitude_speed * dt,
            self.min_amplitude,
            self.max_amplitude,
        )
        self.confidence = clamp_unit(self.confidence + axis_x * self.confidence_speed * dt)

    def values(self) -> Tuple[float, float]:
        return self.amplitude, self.confidence

    def depth_at(self, phi: float) -> float:
        """Depth offset of the adjustable curve at path angle ``phi`` (radians)."""

        return self.amplitude * math.sin(phi + self.phase_offset)


__all__ = [
    "Capabilities",
    "Collaborators",
    "PresentationSink",
    "ResponseAdapter",
    "ResponseState",
    "StimulusAdapter",
    "clamp",
    "clamp_unit",
]
