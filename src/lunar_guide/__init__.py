"""
Lunar Guide
===========

Guides a handheld camera towards the Moon by fusing device orientation
with the Moon's computed position.

Main components:
- orientation: Orientation samples and the wraparound-aware smoothing filter
- ephemeris: Moon ephemeris capability and a low-precision default provider
- guidance: Angular error, in-view verdict, screen position and pointer arrow
- session: Search session state machine (permissions, calibration, guidance)
- sources: Camera, location and orientation sources
- blessing: Remote blessing text with a local fallback
"""

__version__ = "0.1.0"

from .config import Config
from .ephemeris import CelestialPosition, MeeusMoonEphemeris, MoonEphemeris, MoonPosition
from .errors import (
    FailureKind,
    LocationUnavailableError,
    MediaUnavailableError,
    PermissionDeniedError,
    SessionStateError,
)
from .guidance import GeoPosition, GuidanceCalculator, GuidanceResult
from .orientation import Orientation, OrientationSmoother
from .session import LunarGuideSession, SessionState, create_session

__all__ = [
    "Config",
    "CelestialPosition",
    "MeeusMoonEphemeris",
    "MoonEphemeris",
    "MoonPosition",
    "FailureKind",
    "LocationUnavailableError",
    "MediaUnavailableError",
    "PermissionDeniedError",
    "SessionStateError",
    "GeoPosition",
    "GuidanceCalculator",
    "GuidanceResult",
    "Orientation",
    "OrientationSmoother",
    "LunarGuideSession",
    "SessionState",
    "create_session",
    "__version__",
]
