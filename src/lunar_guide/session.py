"""
Search session state machine.

    AWAITING_PERMISSIONS --begin--> CALIBRATING --stream + first fix--> ACTIVE
            ^    |                       |                                |
            |    +------error-------+    +--error/timeout--+              |
            |                       v                      v              |
            +-------retry-------- FAILED <-----------------+              |
            +--------------------------finish-----------------------------+

Calibration joins two independent acquisitions, the camera stream and the
first location fix, and only activates once both are in, whichever arrives
first. Every attempt carries a generation token: results that arrive after
the attempt failed or was torn down are discarded, and late streams are
stopped so they do not leak.
"""

import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, List, Optional
import logging

from .blessing import BlessingProvider, GeminiBlessingProvider, receive_blessing
from .config import Config
from .ephemeris import CelestialPosition, MeeusMoonEphemeris, MoonEphemeris
from .errors import (
    FailureKind,
    LocationUnavailableError,
    SessionStateError,
    classify_error,
)
from .guidance import NEUTRAL_GUIDANCE, GeoPosition, GuidanceCalculator, GuidanceResult
from .orientation import Orientation, OrientationSmoother
from .sources import (
    LocationOptions,
    LocationSource,
    LocationWatch,
    MediaSource,
    MediaStream,
    NullMediaSource,
    OpenCVCameraSource,
    StaticLocationSource,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    AWAITING_PERMISSIONS = "awaiting_permissions"
    CALIBRATING = "calibrating"
    ACTIVE = "active"
    FAILED = "failed"


@dataclass(frozen=True)
class SessionFailure:
    """Why the last attempt failed."""
    kind: FailureKind
    message: str
    cause: Optional[BaseException] = None


class AcquisitionJoin:
    """Completes once both the media stream and the first location fix are in."""

    def __init__(self):
        self.stream: Optional[MediaStream] = None
        self.first_fix: Optional[GeoPosition] = None

    @property
    def stream_ready(self) -> bool:
        return self.stream is not None

    @property
    def location_ready(self) -> bool:
        return self.first_fix is not None

    @property
    def complete(self) -> bool:
        return self.stream_ready and self.location_ready

    def resolve_stream(self, stream: MediaStream) -> bool:
        self.stream = stream
        return self.complete

    def resolve_fix(self, fix: GeoPosition) -> bool:
        if self.first_fix is None:
            self.first_fix = fix
        return self.complete


class LunarGuideSession:
    """
    Owns one search for the Moon, from permission acquisition to teardown.

    All handlers are expected to run on a single event timeline.
    """

    def __init__(
        self,
        media_source: MediaSource,
        location_source: LocationSource,
        calculator: GuidanceCalculator,
        smoother: Optional[OrientationSmoother] = None,
        blessing_provider: Optional[BlessingProvider] = None,
        location_options: Optional[LocationOptions] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.media_source = media_source
        self.location_source = location_source
        self.calculator = calculator
        self.smoother = smoother or OrientationSmoother()
        self.blessing_provider = blessing_provider
        self.location_options = location_options or LocationOptions()
        self._clock = clock

        self.state = SessionState.AWAITING_PERMISSIONS
        self.failure: Optional[SessionFailure] = None

        self._generation = 0
        self._join: Optional[AcquisitionJoin] = None
        self._started_at: Optional[float] = None
        self._stream: Optional[MediaStream] = None
        self._location_watch: Optional[LocationWatch] = None
        self._subscribers: List[Callable[["LunarGuideSession"], None]] = []

        self._clear_derived_state()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def location_watch(self) -> Optional[LocationWatch]:
        return self._location_watch

    def subscribe(self, callback: Callable[["LunarGuideSession"], None]) -> None:
        """Register a callback run after every state change and guidance update."""
        self._subscribers.append(callback)

    def begin(self) -> None:
        """Start acquiring the camera stream and a location fix."""
        if self.state is not SessionState.AWAITING_PERMISSIONS:
            raise SessionStateError(f"Cannot begin a search while {self.state.value}")

        self._generation += 1
        token = self._generation
        self._join = AcquisitionJoin()
        self._started_at = self._clock()
        self._set_state(SessionState.CALIBRATING)
        logger.info("Calibrating: waiting for camera stream and location fix")

        try:
            watch = self.location_source.watch(
                partial(self._on_location_fix, token),
                partial(self._on_acquisition_error, token, True),
                self.location_options,
            )
        except Exception as e:
            self._on_acquisition_error(token, True, e)
            return

        if not self._is_current(token):
            # Failed synchronously from inside watch()
            watch.cancel()
            return
        self._location_watch = watch

        try:
            self.media_source.acquire(
                partial(self._on_stream_ready, token),
                partial(self._on_acquisition_error, token, False),
            )
        except Exception as e:
            self._on_acquisition_error(token, False, e)

    def finish(self) -> None:
        """Release all resources and return to AWAITING_PERMISSIONS. Idempotent."""
        self._teardown()
        self.failure = None
        self._set_state(SessionState.AWAITING_PERMISSIONS)

    def retry(self) -> None:
        """Leave FAILED and return to AWAITING_PERMISSIONS."""
        if self.state is not SessionState.FAILED:
            raise SessionStateError(f"Nothing to retry while {self.state.value}")
        self.finish()

    def tick(self) -> None:
        """Enforce the location timeout while calibrating."""
        if self.state is not SessionState.CALIBRATING or self._join is None:
            return
        if self._join.location_ready:
            return

        elapsed = self._clock() - self._started_at
        if elapsed >= self.location_options.timeout_s:
            self._fail(LocationUnavailableError(
                f"No location fix within {self.location_options.timeout_s:.0f}s"
            ), from_location=True)

    def handle_orientation(self, sample: Orientation) -> GuidanceResult:
        """
        Process one orientation sample.

        Samples are only used while ACTIVE; in other states they are dropped
        and the current guidance is returned unchanged.
        """
        if self.state is not SessionState.ACTIVE:
            return self.guidance

        self.orientation = sample
        self.smoothed = self.smoother.update(sample)
        self._update_guidance()
        return self.guidance

    def request_blessing(self) -> str:
        """Fetch a blessing; only allowed while the Moon is in view."""
        if self.state is not SessionState.ACTIVE or not self.guidance.in_view:
            raise SessionStateError("The Moon must be in view to receive a blessing")

        self.blessing = receive_blessing(self.blessing_provider)
        self._notify()
        return self.blessing

    # -------------------------------------------------------------------------
    # Acquisition callbacks
    # -------------------------------------------------------------------------

    def _is_current(self, token: int) -> bool:
        return token == self._generation and self.state in (
            SessionState.CALIBRATING, SessionState.ACTIVE
        )

    def _on_stream_ready(self, token: int, stream: MediaStream) -> None:
        if not self._is_current(token):
            logger.debug("Discarding camera stream from a stale attempt")
            stream.stop()
            return

        if self._stream is not None:
            logger.debug("Camera stream already acquired, stopping duplicate")
            stream.stop()
            return

        self._stream = stream
        logger.info("Camera stream ready")
        if self._join.resolve_stream(stream):
            self._activate()

    def _on_location_fix(self, token: int, fix: GeoPosition) -> None:
        if not self._is_current(token):
            logger.debug("Ignoring location fix from a stale attempt")
            return

        if fix.acquired_at is not None:
            oldest = self._started_at - self.location_options.maximum_age_s
            if fix.acquired_at < oldest:
                logger.debug("Ignoring cached location fix")
                return

        self.geo_position = fix
        self.celestial = self.calculator.locate_moon(fix)

        if self.state is SessionState.CALIBRATING:
            logger.info(f"Location fix: {fix.latitude:.4f}, {fix.longitude:.4f}")
            if self._join.resolve_fix(fix):
                self._activate()
        else:
            self._update_guidance()

    def _on_acquisition_error(self, token: int, from_location: bool,
                              error: BaseException) -> None:
        if not self._is_current(token):
            logger.debug(f"Ignoring error from a stale attempt: {error}")
            return
        if self.state is SessionState.ACTIVE:
            # Only acquisition can fail; later watch errors keep the last fix
            logger.warning(f"Location update failed, keeping last fix: {error}")
            return
        self._fail(error, from_location=from_location)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _activate(self) -> None:
        self._set_state(SessionState.ACTIVE)
        logger.info("Search active")
        self._update_guidance()

    def _fail(self, error: BaseException, from_location: bool) -> None:
        kind = classify_error(error, from_location=from_location)
        logger.error(f"Acquisition failed ({kind.value}): {error}")
        self._teardown()
        self.failure = SessionFailure(kind=kind, message=kind.message, cause=error)
        self._set_state(SessionState.FAILED)

    def _teardown(self) -> None:
        # Invalidate callbacks from the current attempt
        self._generation += 1
        self._join = None
        self._started_at = None

        stream, self._stream = self._stream, None
        watch, self._location_watch = self._location_watch, None

        self.smoother.reset()
        self._clear_derived_state()

        # Release both even if one of them fails
        if stream is not None:
            try:
                stream.stop()
            except Exception as e:
                logger.warning(f"Failed to stop camera stream: {e}")
        if watch is not None:
            try:
                watch.cancel()
            except Exception as e:
                logger.warning(f"Failed to cancel location watch: {e}")

    def _clear_derived_state(self) -> None:
        self.orientation: Optional[Orientation] = None
        self.smoothed: Optional[Orientation] = None
        self.geo_position: Optional[GeoPosition] = None
        self.celestial: Optional[CelestialPosition] = None
        self.guidance: GuidanceResult = NEUTRAL_GUIDANCE
        self.blessing: Optional[str] = None

    def _update_guidance(self) -> None:
        was_in_view = self.guidance.in_view
        self.guidance = self.calculator.compute(self.smoothed, self.celestial)

        if self.guidance.in_view and not was_in_view:
            logger.info("Moon in view")
        elif was_in_view and not self.guidance.in_view:
            logger.info("Moon lost")
        self._notify()

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            logger.debug(f"Session state: {self.state.value} -> {state.value}")
            self.state = state
        self._notify()

    def _notify(self) -> None:
        for callback in self._subscribers:
            callback(self)


def create_session(
    config: Config,
    media_source: Optional[MediaSource] = None,
    location_source: Optional[LocationSource] = None,
    ephemeris: Optional[MoonEphemeris] = None,
    blessing_provider: Optional[BlessingProvider] = None,
    clock: Callable[[], float] = time.monotonic,
) -> LunarGuideSession:
    """
    Create a session wired from configuration.

    Args:
        config: Application configuration
        media_source: Camera source (default: OpenCV camera if enabled, else headless)
        location_source: Location source (default: configured static location)
        ephemeris: Moon ephemeris (default: MeeusMoonEphemeris)
        blessing_provider: Blessing provider (default: Gemini, key from environment)
        clock: Monotonic clock shared by the session and the default location source

    Returns:
        LunarGuideSession in AWAITING_PERMISSIONS
    """
    if media_source is None:
        if config.camera.enabled:
            media_source = OpenCVCameraSource(
                index=config.camera.index,
                width=config.camera.width,
                height=config.camera.height,
            )
        else:
            media_source = NullMediaSource()

    if location_source is None:
        location_source = StaticLocationSource(
            latitude=config.location.latitude,
            longitude=config.location.longitude,
            clock=clock,
        )

    if blessing_provider is None:
        blessing_provider = GeminiBlessingProvider.from_env(
            config.blessing.api_key_env,
            model=config.blessing.model,
            temperature=config.blessing.temperature,
            max_output_tokens=config.blessing.max_output_tokens,
            timeout=config.blessing.timeout_s,
        )

    calculator = GuidanceCalculator(
        ephemeris or MeeusMoonEphemeris(),
        view_threshold=config.guidance.view_threshold,
        horizontal_fov=config.guidance.horizontal_fov,
        vertical_fov=config.guidance.vertical_fov,
    )

    return LunarGuideSession(
        media_source=media_source,
        location_source=location_source,
        calculator=calculator,
        smoother=OrientationSmoother(alpha=config.smoothing.alpha),
        blessing_provider=blessing_provider,
        location_options=config.location.to_options(),
        clock=clock,
    )
