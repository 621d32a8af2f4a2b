"""
Angle helpers shared by the smoothing filter and the guidance calculator.
"""

import math


def wrap_degrees(delta: float) -> float:
    """
    Wrap an angular difference into [-180, 180].

    Args:
        delta: Difference between two angles in degrees

    Returns:
        Shortest signed difference in degrees
    """
    if not math.isfinite(delta):
        return delta

    delta = math.fmod(delta, 360.0)
    if delta > 180.0:
        delta -= 360.0
    elif delta < -180.0:
        delta += 360.0
    return delta


def normalize_degrees(angle: float) -> float:
    """Normalize an angle to [0, 360)."""
    angle = angle % 360.0
    # -1e-15 % 360 rounds to 360.0
    if angle >= 360.0:
        angle -= 360.0
    return angle


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]; NaN maps to the midpoint."""
    if math.isnan(value):
        return (low + high) / 2
    return max(low, min(high, value))
