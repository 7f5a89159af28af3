# ambient_parallax/parallax_engine/tracking/base.py
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional
from ..common.enums import TrackerState, TrackingSource
from ..common.models import NormalizedOffset, ZERO_OFFSET

logger = logging.getLogger(__name__)

OffsetCallback = Callable[[NormalizedOffset], None]

class Estimator(ABC):
    """
    Turns one raw motion signal into a NormalizedOffset.

    start() is a coroutine that reports success as a bool; failures are handled
    inside the estimator and never raised. stop() is synchronous and idempotent.
    """

    source: TrackingSource

    def __init__(self, on_update: Optional[OffsetCallback] = None):
        self.on_update = on_update
        self.state = TrackerState.UNINITIALIZED
        self._last_offset = ZERO_OFFSET

    @abstractmethod
    async def start(self) -> bool:
        ...

    @abstractmethod
    def _release(self) -> None:
        """Drops timers, listeners and hardware handles."""

    def stop(self):
        if self.state not in (TrackerState.ACTIVE, TrackerState.INITIALIZING, TrackerState.AWAITING_PERMISSION):
            return
        self._release()
        self.state = TrackerState.STOPPED
        logger.debug("%s estimator stopped", self.source.value)

    def is_active(self) -> bool:
        return self.state is TrackerState.ACTIVE

    def last_offset(self) -> NormalizedOffset:
        return self._last_offset

    def _emit(self, offset: NormalizedOffset):
        self._last_offset = offset
        if self.on_update is not None:
            self.on_update(offset)

    def dispose(self):
        """Final teardown at pipeline shutdown."""
        self.stop()
