# ambient_parallax/parallax_engine/tracking/orientation_estimator.py
import logging
from typing import Awaitable, Callable, Optional, Protocol
from ..common.config import TrackingConfig
from ..common.enums import TrackerState, TrackingSource
from ..common.errors import InvalidReading
from ..common.models import NormalizedOffset, OrientationReading
from ..processing.math_utils import clamp, is_finite_number, map_range
from .base import Estimator, OffsetCallback

logger = logging.getLogger(__name__)

def validate_angles(beta, gamma):
    if not (is_finite_number(beta) and is_finite_number(gamma)):
        raise InvalidReading(f"beta={beta!r} gamma={gamma!r}")

class OrientationSensor(Protocol):
    needs_permission: bool

    def request_permission(self) -> Awaitable[bool]:
        ...

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        ...

class OrientationEstimator(Estimator):
    """
    Device tilt tracking. A comfortable handheld forward tilt counts as neutral;
    deviation from it and left/right tilt are clamped to the max tilt window and
    mapped to [-1, 1]. Smoothing happens downstream.
    """

    source = TrackingSource.ORIENTATION

    def __init__(self, config: TrackingConfig, sensor: Optional[OrientationSensor] = None,
                 on_update: Optional[OffsetCallback] = None):
        super().__init__(on_update)
        self.config = config
        self.sensor = sensor
        self.has_permission = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._current: Optional[OrientationReading] = None

    @property
    def needs_permission(self) -> bool:
        return bool(self.sensor is not None and getattr(self.sensor, 'needs_permission', False))

    def requires_user_gesture(self) -> bool:
        return self.needs_permission and not self.has_permission

    def is_available(self) -> bool:
        return self.sensor is not None

    async def request_permission(self) -> bool:
        """Must be driven from a user gesture on platforms that gate orientation."""
        if not self.needs_permission:
            self.has_permission = self.is_available()
            return self.has_permission
        try:
            self.has_permission = bool(await self.sensor.request_permission())
        except Exception as e:
            logger.warning("Orientation permission request failed: %s", e)
            self.has_permission = False
        if not self.has_permission:
            logger.info("Orientation permission denied")
        return self.has_permission

    async def start(self) -> bool:
        if self.state is TrackerState.ACTIVE:
            return True
        if not self.is_available():
            logger.warning("Device orientation not available")
            self.state = TrackerState.UNAVAILABLE
            return False

        if self.requires_user_gesture():
            self.state = TrackerState.AWAITING_PERMISSION
            granted = await self.request_permission()
            if self.state is not TrackerState.AWAITING_PERMISSION:
                return False
            if not granted:
                self.state = TrackerState.DENIED
                return False

        self._unsubscribe = self.sensor.subscribe(self.handle_orientation)
        self.state = TrackerState.ACTIVE
        logger.info("Orientation tracking started")
        return True

    def normalize(self, beta: float, gamma: float) -> NormalizedOffset:
        max_tilt = self.config.gyro_max_tilt
        sensitivity = self.config.gyro_sensitivity
        beta_offset = beta - self.config.gyro_neutral_beta
        clamped_beta = clamp(beta_offset, -max_tilt, max_tilt)
        clamped_gamma = clamp(gamma, -max_tilt, max_tilt)
        # Tilt right moves right; tilting forward past neutral moves down
        x = map_range(clamped_gamma, -max_tilt, max_tilt, -1.0, 1.0) * sensitivity
        y = map_range(-clamped_beta, -max_tilt, max_tilt, -1.0, 1.0) * sensitivity
        return NormalizedOffset.of(x, y, 0.0)

    def handle_orientation(self, beta, gamma, alpha=None):
        if self.state is not TrackerState.ACTIVE:
            return
        try:
            validate_angles(beta, gamma)
        except InvalidReading as e:
            logger.debug("Dropping orientation reading: %s", e)
            return

        self._current = OrientationReading(
            beta=beta, gamma=gamma, alpha=alpha if is_finite_number(alpha) else 0.0)
        self._emit(self.normalize(beta, gamma))

    def current_orientation(self) -> Optional[OrientationReading]:
        return self._current

    def _release(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
