"""
Input sources feeding a guidance session.

A session talks to three collaborators:

- a media source that acquires a camera stream once,
- a location source that delivers a first fix and then keeps delivering
  updates until the watch is cancelled,
- an orientation source producing device orientation samples.

All of them report through callbacks on the caller's timeline. Callbacks
may fire synchronously from within acquire()/watch().
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol
import logging

import cv2
import numpy as np
import yaml

from .errors import MediaUnavailableError
from .guidance import GeoPosition, GuidanceResult
from .orientation import Orientation

logger = logging.getLogger(__name__)


ErrorCallback = Callable[[BaseException], None]


class MediaStream(Protocol):
    def stop(self) -> None:
        """Stop all tracks. Safe to call more than once."""
        ...


class MediaSource(Protocol):
    def acquire(self, on_ready: Callable[[MediaStream], None],
                on_error: ErrorCallback) -> None:
        ...


class LocationWatch(Protocol):
    def cancel(self) -> None:
        """Stop delivering fixes. Safe to call more than once."""
        ...


@dataclass
class LocationOptions:
    """Options for a location watch."""
    timeout_s: float = 15.0       # Bounded wait for the first fix
    maximum_age_s: float = 0.0    # 0 = cached fixes are never accepted
    high_accuracy: bool = True


class LocationSource(Protocol):
    """
    Watches the observer position.

    A fix that carries `acquired_at` must read it from the same clock as the
    session consuming it; a fix without one is taken as freshly acquired.
    """

    def watch(self, on_fix: Callable[[GeoPosition], None],
              on_error: ErrorCallback,
              options: LocationOptions) -> LocationWatch:
        ...


# =============================================================================
# Camera
# =============================================================================

class CaptureStream:
    """Camera stream backed by an OpenCV VideoCapture."""

    def __init__(self, capture: "cv2.VideoCapture"):
        self._capture = capture

    @property
    def active(self) -> bool:
        return self._capture is not None

    def read(self) -> Optional[np.ndarray]:
        """Grab the latest frame, or None if the stream is stopped or empty."""
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def stop(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera stream stopped")


class OpenCVCameraSource:
    """Acquires a camera stream through OpenCV."""

    def __init__(self, index: int = 0, width: int = 1280, height: int = 720):
        self.index = index
        self.width = width
        self.height = height

    def acquire(self, on_ready: Callable[[MediaStream], None],
                on_error: ErrorCallback) -> None:
        logger.info(f"Opening camera {self.index}...")

        try:
            capture = cv2.VideoCapture(self.index)
        except cv2.error as e:
            on_error(MediaUnavailableError(f"Could not open camera {self.index}: {e}"))
            return

        if not capture.isOpened():
            capture.release()
            on_error(MediaUnavailableError(f"Could not open camera {self.index}"))
            return

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        actual_w = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Camera resolution: {actual_w}x{actual_h}")

        on_ready(CaptureStream(capture))


class NullStream:
    """Stream placeholder for headless runs."""

    def __init__(self):
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class NullMediaSource:
    """Delivers a NullStream immediately."""

    def acquire(self, on_ready: Callable[[MediaStream], None],
                on_error: ErrorCallback) -> None:
        on_ready(NullStream())


# =============================================================================
# Location
# =============================================================================

class _StaticWatch:
    def __init__(self, source: "StaticLocationSource",
                 on_fix: Callable[[GeoPosition], None]):
        self._source = source
        self.on_fix = on_fix
        self.cancelled = False

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._source._watches.remove(self)


class StaticLocationSource:
    """
    Location source for a fixed, configured observer position.

    Without GPS the observer location has to be configured manually. The
    first fix is delivered as soon as a watch starts; push() delivers
    updates to every live watch. Fixes are only timestamped when the
    session's clock is passed in.
    """

    def __init__(self, latitude: float, longitude: float,
                 clock: Optional[Callable[[], float]] = None):
        self.latitude = latitude
        self.longitude = longitude
        self._clock = clock
        self._watches: List[_StaticWatch] = []

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def _fix(self) -> GeoPosition:
        acquired_at = self._clock() if self._clock is not None else None
        return GeoPosition(self.latitude, self.longitude, acquired_at=acquired_at)

    def watch(self, on_fix: Callable[[GeoPosition], None],
              on_error: ErrorCallback,
              options: LocationOptions) -> _StaticWatch:
        watch = _StaticWatch(self, on_fix)
        self._watches.append(watch)
        on_fix(self._fix())
        return watch

    def push(self, latitude: float, longitude: float) -> None:
        """Move the observer and notify live watches."""
        self.latitude = latitude
        self.longitude = longitude
        for watch in list(self._watches):
            watch.on_fix(self._fix())


# =============================================================================
# Orientation
# =============================================================================

class SimulatedOrientationSource:
    """
    Simulated device for testing without hardware.

    Produces samples around a true aim with Gaussian sensor jitter, and can
    slew towards a guidance target the way a user following the on-screen
    hints would.
    """

    def __init__(self, heading: float = 180.0, pitch: float = 60.0,
                 roll: float = 0.0, jitter_deg: float = 0.5,
                 seed: Optional[int] = None):
        self.heading = heading % 360.0
        self.pitch = pitch
        self.roll = roll
        self.jitter_deg = jitter_deg
        self._rng = np.random.default_rng(seed)

    def read(self) -> Orientation:
        """Return one noisy sample."""
        noise = self._rng.normal(0.0, self.jitter_deg, size=3) if self.jitter_deg > 0 else np.zeros(3)
        return Orientation(
            heading=float((self.heading + noise[0]) % 360.0),
            pitch=float(self.pitch + noise[1]),
            roll=float(self.roll + noise[2]),
        )

    def slew(self, guidance: GuidanceResult, gain: float = 0.3,
             max_step_deg: float = 10.0) -> None:
        """
        Turn the simulated device towards the target.

        Args:
            guidance: Latest guidance result
            gain: Fraction of the remaining error corrected per step
            max_step_deg: Largest rotation per step on each axis
        """
        if not guidance.ready:
            return

        d_heading = float(np.clip(guidance.delta_azimuth * gain, -max_step_deg, max_step_deg))
        # Raising the aim means lowering pitch (device altitude = 90 - pitch)
        d_pitch = float(np.clip(-guidance.delta_altitude * gain, -max_step_deg, max_step_deg))

        self.heading = (self.heading + d_heading) % 360.0
        self.pitch = float(np.clip(self.pitch + d_pitch, 0.0, 180.0))


def load_orientation_samples(path: Path) -> List[Orientation]:
    """
    Load recorded orientation samples from YAML.

    The file holds either a list of samples or a mapping with a 'samples'
    list. Each sample maps heading/pitch/roll to degrees or null.
    """
    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("samples", [])
    if not isinstance(data, list):
        raise ValueError(f"No orientation samples found in {path}")

    return [Orientation.from_dict(item or {}) for item in data]
