"""
Exception hierarchy and failure classification for acquisition errors.
"""

from enum import Enum


class LunarGuideError(Exception):
    """Base class for lunar guide errors."""


class AcquisitionError(LunarGuideError):
    """A camera or location acquisition failed."""


class PermissionDeniedError(AcquisitionError):
    """The user refused camera or location access."""


class LocationUnavailableError(AcquisitionError):
    """No location fix could be obtained (rejected or timed out)."""


class MediaUnavailableError(AcquisitionError):
    """The camera stream could not be opened."""


class SessionStateError(LunarGuideError, RuntimeError):
    """An operation was requested in a state that does not allow it."""


class FailureKind(Enum):
    """Why a session failed; each kind has its own user-facing message."""
    LOCATION_UNAVAILABLE = "location_unavailable"
    PERMISSION_DENIED = "permission_denied"
    UNEXPECTED = "unexpected"

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self]


FAILURE_MESSAGES = {
    FailureKind.LOCATION_UNAVAILABLE:
        "Could not get your location. Please enable location services.",
    FailureKind.PERMISSION_DENIED:
        "Camera and location access are required. Please grant permissions and try again.",
    FailureKind.UNEXPECTED:
        "An unexpected error occurred. Please try again.",
}


def classify_error(error: BaseException, from_location: bool = False) -> FailureKind:
    """
    Classify an acquisition error.

    Args:
        error: The exception reported by a source
        from_location: True if the location source reported it

    Returns:
        FailureKind for display
    """
    if isinstance(error, (PermissionDeniedError, PermissionError)):
        return FailureKind.PERMISSION_DENIED
    if isinstance(error, (LocationUnavailableError, TimeoutError)) or from_location:
        return FailureKind.LOCATION_UNAVAILABLE
    return FailureKind.UNEXPECTED
