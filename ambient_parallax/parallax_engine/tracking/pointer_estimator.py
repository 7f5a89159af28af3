# ambient_parallax/parallax_engine/tracking/pointer_estimator.py
import logging
from typing import Optional
from ..common.enums import TrackerState, TrackingSource
from ..common.models import NormalizedOffset
from ..processing.math_utils import is_finite_number
from .base import Estimator, OffsetCallback

logger = logging.getLogger(__name__)

class PointerEstimator(Estimator):
    """Pointer or touch position in viewport pixels. Screen-up is positive y; no depth."""

    source = TrackingSource.POINTER

    def __init__(self, viewport_width: int = 1280, viewport_height: int = 720,
                 on_update: Optional[OffsetCallback] = None):
        super().__init__(on_update)
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height

    async def start(self) -> bool:
        if self.state is not TrackerState.ACTIVE:
            self.state = TrackerState.ACTIVE
            logger.info("Pointer tracking enabled")
        return True

    def resize(self, width: int, height: int):
        if width <= 0 or height <= 0:
            logger.debug("Ignoring degenerate viewport %sx%s", width, height)
            return
        self.viewport_width = width
        self.viewport_height = height

    def normalize(self, px: float, py: float) -> NormalizedOffset:
        x = (px / self.viewport_width) * 2 - 1
        y = -((py / self.viewport_height) * 2 - 1)
        return NormalizedOffset.of(x, y, 0.0)

    def handle_pointer(self, px: float, py: float):
        if self.state is not TrackerState.ACTIVE:
            return
        if not (is_finite_number(px) and is_finite_number(py)):
            return
        self._emit(self.normalize(px, py))

    def _release(self):
        logger.info("Pointer tracking disabled")
