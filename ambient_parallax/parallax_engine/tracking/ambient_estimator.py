# ambient_parallax/parallax_engine/tracking/ambient_estimator.py
import math
import time
from typing import Callable, Optional, Tuple
from ..common.config import TrackingConfig
from ..common.enums import TrackerState, TrackingSource
from ..common.models import NormalizedOffset
from .base import Estimator, OffsetCallback

def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0

class AmbientEstimator(Estimator):
    """
    Synthetic idle motion with no sensor dependency.

    A Lissajous figure-eight (x and y at a 1:2 frequency ratio, y phase-shifted
    by pi/4) scaled by the radius, plus a slow low-amplitude breathing term on y.
    The curve is a pure function of elapsed time, and elapsed time restarts at
    zero on every start().
    """

    source = TrackingSource.AMBIENT

    FREQUENCY = (1.0, 2.0)
    PHASE = (0.0, math.pi / 4)
    BREATHING_FREQUENCY = 0.3

    def __init__(self, config: TrackingConfig, on_update: Optional[OffsetCallback] = None,
                 clock: Callable[[], float] = monotonic_ms):
        super().__init__(on_update)
        self.config = config
        self.speed = config.fallback_animation_speed
        self.radius: Tuple[float, float] = tuple(config.fallback_animation_radius)
        self.breathing = config.fallback_breathing
        self._clock = clock
        self._start_time = 0.0

    def set_speed(self, speed: float):
        self.speed = speed

    def set_radius(self, radius: Tuple[float, float]):
        self.radius = tuple(radius)

    def reset_parameters(self):
        """Back to the configured full-motion speed and radius."""
        self.speed = self.config.fallback_animation_speed
        self.radius = tuple(self.config.fallback_animation_radius)

    async def start(self) -> bool:
        self.restart()
        return True

    def restart(self):
        """Synchronous start; the ambient source can never fail."""
        self._start_time = self._clock()
        self.state = TrackerState.ACTIVE

    def sample(self, elapsed_ms: float) -> NormalizedOffset:
        t = elapsed_ms * self.speed
        x = math.sin(t * self.FREQUENCY[0] + self.PHASE[0]) * self.radius[0]
        y = math.sin(t * self.FREQUENCY[1] + self.PHASE[1]) * self.radius[1]
        breathe = math.sin(t * self.BREATHING_FREQUENCY) * self.breathing
        return NormalizedOffset.of(x, y + breathe, 0.0)

    def update(self, now_ms: Optional[float] = None):
        """Called from the render loop."""
        if self.state is not TrackerState.ACTIVE:
            return
        now = self._clock() if now_ms is None else now_ms
        self._emit(self.sample(now - self._start_time))

    def _release(self):
        pass
