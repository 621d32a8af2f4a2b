"""
Device orientation samples and the smoothing filter applied to them.

Raw compass/tilt readings from a handheld device jitter by a few degrees
between events. The smoother trades a little latency for a stable target
indicator, and handles the 0/360 degree wraparound of the heading so the
indicator never spins through the long arc.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from .angles import normalize_degrees, wrap_degrees

logger = logging.getLogger(__name__)


DEFAULT_SMOOTHING_ALPHA = 0.05


@dataclass(frozen=True)
class Orientation:
    """Device orientation in degrees. None means the sensor did not report the axis."""
    heading: Optional[float] = None    # Compass heading, 0 = North, [0, 360)
    pitch: Optional[float] = None      # Front-to-back tilt, 90 = upright facing the horizon
    roll: Optional[float] = None       # Left-to-right tilt

    @property
    def has_aim(self) -> bool:
        """True when both heading and pitch are known."""
        return self.heading is not None and self.pitch is not None

    @classmethod
    def from_dict(cls, data: dict) -> "Orientation":
        """Build from a mapping, keeping missing or null axes unknown."""
        def read(key: str) -> Optional[float]:
            value = data.get(key)
            return None if value is None else float(value)

        return cls(heading=read("heading"), pitch=read("pitch"), roll=read("roll"))


class OrientationSmoother:
    """
    Exponential smoothing filter for orientation samples.

    Each instance owns its previous smoothed value. A session keeps one
    smoother and calls reset() on teardown so a new search never starts
    from stale memory.
    """

    def __init__(self, alpha: float = DEFAULT_SMOOTHING_ALPHA):
        """
        Initialize the smoother.

        Args:
            alpha: Smoothing factor in (0, 1]. Lower is smoother and slower.
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"Smoothing factor must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self._state: Optional[Orientation] = None

    @property
    def state(self) -> Optional[Orientation]:
        """Current smoothed orientation, or None before the first sample."""
        return self._state

    def reset(self) -> None:
        """Forget the smoothed state; the next sample is adopted unchanged."""
        self._state = None

    def update(self, sample: Orientation) -> Orientation:
        """
        Feed a raw sample and return the new smoothed orientation.

        Args:
            sample: Raw orientation sample

        Returns:
            Smoothed orientation (also stored as the new state)
        """
        previous = self._state

        if previous is None or not previous.has_aim or not sample.has_aim:
            self._state = sample
            return sample

        alpha = self.alpha

        delta = wrap_degrees(sample.heading - previous.heading)
        heading = normalize_degrees(previous.heading + delta * alpha + 360.0)

        pitch = previous.pitch + (sample.pitch - previous.pitch) * alpha

        prev_roll = previous.roll if previous.roll is not None else 0.0
        raw_roll = sample.roll if sample.roll is not None else 0.0
        roll = prev_roll + (raw_roll - prev_roll) * alpha

        self._state = Orientation(heading=heading, pitch=pitch, roll=roll)
        return self._state
