# ambient_parallax/parallax_engine/broadcast/offset_broadcaster.py
import logging
from typing import List, Protocol
from ..common.models import NormalizedOffset, ZERO_OFFSET

logger = logging.getLogger(__name__)

class OffsetConsumer(Protocol):
    """A visual element that reinterprets the shared offset in its own space."""

    def set_target_offset(self, offset: NormalizedOffset) -> None:
        ...

    def update(self, dt_ms: float) -> None:
        ...

class OffsetBroadcaster:
    """Fans the coordinator's offset out to every registered consumer."""

    def __init__(self):
        self._consumers: List[OffsetConsumer] = []
        self._latest = ZERO_OFFSET
        self.publish_count = 0

    @property
    def consumers(self) -> List[OffsetConsumer]:
        return list(self._consumers)

    @property
    def latest(self) -> NormalizedOffset:
        return self._latest

    def register(self, consumer: OffsetConsumer) -> OffsetConsumer:
        if consumer not in self._consumers:
            self._consumers.append(consumer)
            consumer.set_target_offset(self._latest)
        return consumer

    def unregister(self, consumer: OffsetConsumer):
        if consumer in self._consumers:
            self._consumers.remove(consumer)

    def publish(self, offset: NormalizedOffset):
        self._latest = offset
        self.publish_count += 1
        for consumer in list(self._consumers):
            try:
                consumer.set_target_offset(offset)
            except Exception:
                logger.exception("Consumer %s rejected offset", type(consumer).__name__)

    def update(self, dt_ms: float):
        """Advances every consumer's smoothing by one render frame."""
        for consumer in list(self._consumers):
            try:
                consumer.update(dt_ms)
            except Exception:
                logger.exception("Consumer %s failed to update", type(consumer).__name__)
