# ambient_parallax/parallax_engine/device/orientation_sensor.py
import logging
from typing import Callable, List, Optional
from ..common.models import OrientationReading

logger = logging.getLogger(__name__)

OrientationCallback = Callable[[Optional[float], Optional[float], Optional[float]], None]

class OrientationSensorHub:
    """
    Host-fed device orientation source.

    The embedding host pushes raw tilt events with push(); subscribers receive
    (beta, gamma, alpha) exactly as pushed, including nulls. Platforms that gate
    orientation behind a user gesture set needs_permission and decide the
    outcome of request_permission() with set_permission_result().
    """

    def __init__(self, needs_permission: bool = False, permission_granted: bool = True):
        self.needs_permission = needs_permission
        self._permission_granted = permission_granted
        self._listeners: List[OrientationCallback] = []
        self.permission_requests = 0
        self.last_reading: Optional[OrientationReading] = None

    def set_permission_result(self, granted: bool):
        self._permission_granted = granted

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        logger.info("Orientation permission requested (granted=%s)", self._permission_granted)
        return self._permission_granted

    def subscribe(self, callback: OrientationCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def push(self, beta: Optional[float], gamma: Optional[float], alpha: Optional[float] = None):
        if beta is not None and gamma is not None:
            self.last_reading = OrientationReading(beta=beta, gamma=gamma, alpha=alpha or 0.0)
        for listener in list(self._listeners):
            listener(beta, gamma, alpha)
