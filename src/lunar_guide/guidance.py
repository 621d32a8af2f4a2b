"""
Guidance calculator.

Turns a smoothed device orientation and the Moon's horizontal position into
screen guidance: how far off the aim is on each axis, whether the Moon is
inside the capture cone, where to draw the target indicator and which way
the pointer arrow should point.
"""

import math
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import logging

import numpy as np

from .angles import clamp, wrap_degrees
from .ephemeris import CelestialPosition, MoonEphemeris, to_celestial_position
from .orientation import Orientation

logger = logging.getLogger(__name__)


VIEW_THRESHOLD = 5.0      # Degrees on both axes within which the Moon counts as found
HORIZONTAL_FOV = 60.0     # Approximate horizontal field of view of a phone camera
VERTICAL_FOV = 80.0       # Approximate vertical field of view

SCREEN_MIN = 5.0
SCREEN_MAX = 95.0
SCREEN_CENTER = 50.0


@dataclass(frozen=True)
class GeoPosition:
    """Observer location in decimal degrees."""
    latitude: float
    longitude: float
    acquired_at: Optional[float] = None   # Session clock timestamp of the fix


@dataclass(frozen=True)
class GuidanceResult:
    """Screen guidance for one (orientation, Moon position) pair."""
    in_view: bool
    screen_x: float             # Percent of screen width, [5, 95]
    screen_y: float             # Percent of screen height, [5, 95]
    pointer_rotation: float     # Degrees, 0 = arrow pointing up
    delta_azimuth: float = 0.0
    delta_altitude: float = 0.0
    ready: bool = True

    @property
    def screen_position(self) -> Tuple[float, float]:
        return self.screen_x, self.screen_y

    @property
    def target_position(self) -> Tuple[float, float]:
        """Where to draw the target; snaps to centre once the Moon is found."""
        if self.in_view:
            return SCREEN_CENTER, SCREEN_CENTER
        return self.screen_x, self.screen_y


NEUTRAL_GUIDANCE = GuidanceResult(
    in_view=False,
    screen_x=SCREEN_CENTER,
    screen_y=SCREEN_CENTER,
    pointer_rotation=0.0,
    ready=False,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GuidanceCalculator:
    """
    Computes guidance towards the Moon.

    The ephemeris provider is passed in explicitly so tests and offline
    tools can substitute a deterministic one.
    """

    def __init__(
        self,
        ephemeris: MoonEphemeris,
        view_threshold: float = VIEW_THRESHOLD,
        horizontal_fov: float = HORIZONTAL_FOV,
        vertical_fov: float = VERTICAL_FOV,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the calculator.

        Args:
            ephemeris: Moon position provider
            view_threshold: Half-width of the in-view cone in degrees
            horizontal_fov: Horizontal field of view mapped onto the screen
            vertical_fov: Vertical field of view mapped onto the screen
            clock: Returns the current UTC time (defaults to the system clock)
        """
        if horizontal_fov <= 0 or vertical_fov <= 0:
            raise ValueError("Field of view must be positive")

        self.ephemeris = ephemeris
        self.view_threshold = view_threshold
        self.horizontal_fov = horizontal_fov
        self.vertical_fov = vertical_fov
        self._clock = clock or _utc_now

    def locate_moon(self, position: GeoPosition,
                    when: Optional[datetime] = None) -> CelestialPosition:
        """
        Compute the Moon's horizontal position for an observer.

        Args:
            position: Observer location
            when: Time of observation (defaults to now)

        Returns:
            North-referenced azimuth and altitude in degrees
        """
        when = when or self._clock()
        raw = self.ephemeris.position_of(when, position.latitude, position.longitude)
        celestial = to_celestial_position(raw)
        logger.debug(
            f"Moon at az={celestial.azimuth:.2f}°, alt={celestial.altitude:.2f}° "
            f"for ({position.latitude:.4f}, {position.longitude:.4f})"
        )
        return celestial

    def illumination(self, when: Optional[datetime] = None) -> float:
        """Illuminated fraction of the Moon's disc (0-1)."""
        return self.ephemeris.illumination_of(when or self._clock())

    def is_in_view(self, delta_az: float, delta_alt: float) -> bool:
        return abs(delta_az) < self.view_threshold and abs(delta_alt) < self.view_threshold

    def screen_position(self, delta_az: float, delta_alt: float) -> Tuple[float, float]:
        """
        Map angular error onto screen percentages.

        The indicator is clamped to [5, 95] so it stays visible even when the
        error exceeds the field of view.
        """
        x = SCREEN_CENTER + delta_az / (self.horizontal_fov / 2) * 50
        y = SCREEN_CENTER - delta_alt / (self.vertical_fov / 2) * 50
        return clamp(x, SCREEN_MIN, SCREEN_MAX), clamp(y, SCREEN_MIN, SCREEN_MAX)

    @staticmethod
    def pointer_rotation(delta_az: float, delta_alt: float) -> float:
        """Arrow rotation in degrees; the +90 offset makes 'up' zero."""
        return math.degrees(math.atan2(-delta_alt, delta_az)) + 90.0

    def compute(self, smoothed: Optional[Orientation],
                celestial: Optional[CelestialPosition]) -> GuidanceResult:
        """
        Compute guidance.

        Args:
            smoothed: Smoothed device orientation
            celestial: Moon position

        Returns:
            GuidanceResult; NEUTRAL_GUIDANCE when any input is missing
        """
        if smoothed is None or not smoothed.has_aim or celestial is None:
            return NEUTRAL_GUIDANCE

        delta_az = wrap_degrees(celestial.azimuth - smoothed.heading)
        device_altitude = 90.0 - smoothed.pitch
        delta_alt = celestial.altitude - device_altitude

        screen_x, screen_y = self.screen_position(delta_az, delta_alt)

        return GuidanceResult(
            in_view=self.is_in_view(delta_az, delta_alt),
            screen_x=screen_x,
            screen_y=screen_y,
            pointer_rotation=self.pointer_rotation(delta_az, delta_alt),
            delta_azimuth=delta_az,
            delta_altitude=delta_alt,
        )

    def direction_hint(self, result: GuidanceResult) -> str:
        """Text cue such as 'Turn Right & Tilt Up'; empty when found or not ready."""
        if not result.ready or result.in_view:
            return ""

        parts = []
        if abs(result.delta_azimuth) > self.view_threshold:
            parts.append("Turn Right" if result.delta_azimuth > 0 else "Turn Left")
        if abs(result.delta_altitude) > self.view_threshold:
            parts.append("Tilt Up" if result.delta_altitude > 0 else "Tilt Down")
        return " & ".join(parts)

    @staticmethod
    def angular_separation(smoothed: Optional[Orientation],
                           celestial: Optional[CelestialPosition]) -> Optional[float]:
        """Great-circle angle between the device aim and the Moon, in degrees."""
        if smoothed is None or not smoothed.has_aim or celestial is None:
            return None

        aim = CelestialPosition(azimuth=smoothed.heading, altitude=90.0 - smoothed.pitch)
        cos_angle = float(np.dot(aim.to_direction_vector(), celestial.to_direction_vector()))
        return math.degrees(math.acos(np.clip(cos_angle, -1.0, 1.0)))
