# ambient_parallax/parallax_engine/pipeline.py
import logging
import numpy as np
from typing import Callable, Dict, List, Mapping, Optional
from .broadcast.offset_broadcaster import OffsetBroadcaster
from .common.config import AppConfig
from .common.enums import TrackingSource
from .common.models import HostEnvironment, TrackingStatus
from .device.capabilities import probe_capabilities
from .tracking.ambient_estimator import AmbientEstimator, monotonic_ms
from .tracking.base import Estimator
from .tracking.coordinator import TrackingCoordinator
from .tracking.face_estimator import FaceEstimator
from .tracking.orientation_estimator import OrientationEstimator
from .tracking.pointer_estimator import PointerEstimator
from .visualization.consumers import CameraRig, OverlayLayer, ParallaxLayers, SpotlightTarget

logger = logging.getLogger(__name__)

def build_estimators(config: AppConfig, environment: HostEnvironment,
                     clock: Callable[[], float] = monotonic_ms) -> Dict[TrackingSource, Estimator]:
    """Creates one estimator per source the host can possibly provide."""
    estimators: Dict[TrackingSource, Estimator] = {
        TrackingSource.AMBIENT: AmbientEstimator(config.tracking, clock=clock),
        TrackingSource.POINTER: PointerEstimator(environment.viewport_width, environment.viewport_height),
    }
    if environment.orientation_sensor is not None:
        estimators[TrackingSource.ORIENTATION] = OrientationEstimator(config.tracking, environment.orientation_sensor)
    if environment.camera_api:
        estimators[TrackingSource.FACE] = FaceEstimator(config.tracking, config.camera)
    return estimators

class TrackingPipeline:
    """
    Wires estimators, the coordinator, the broadcaster and the consumers
    together, and advances the consumers once per render frame.
    """

    def __init__(self, config: AppConfig, environment: HostEnvironment,
                 estimators: Optional[Mapping[TrackingSource, Estimator]] = None,
                 clock: Callable[[], float] = monotonic_ms):
        self.config = config
        self.environment = environment
        self.capabilities = probe_capabilities(environment)
        self._clock = clock
        self._last_tick: Optional[float] = None
        self.paused = False
        self._resize_listeners: List[Callable[[int, int], None]] = []

        vis = config.visualization
        self.broadcaster = OffsetBroadcaster()
        self.camera_rig = self.broadcaster.register(
            CameraRig(vis, config.tracking.tracking_sensitivity, config.tracking.smoothing_factor))
        self.parallax = self.broadcaster.register(ParallaxLayers(vis))
        self.overlay = self.broadcaster.register(OverlayLayer(vis))
        self.spotlight = self.broadcaster.register(SpotlightTarget(vis))

        if estimators is None:
            estimators = build_estimators(config, environment, clock)
        self.coordinator = TrackingCoordinator(
            config.tracking, self.capabilities, self.broadcaster.publish, estimators)
        logger.info("Tracking pipeline created (mobile=%s, camera=%s, orientation=%s, reduced_motion=%s)",
                    self.capabilities.is_mobile, self.capabilities.has_camera_api,
                    self.capabilities.has_orientation_sensor, self.capabilities.prefers_reduced_motion)

    async def start(self) -> Optional[TrackingSource]:
        return await self.coordinator.setup()

    def tick(self, now_ms: Optional[float] = None) -> TrackingStatus:
        """One render frame: drive the ambient source, then advance every consumer."""
        now = self._clock() if now_ms is None else now_ms
        if not self.paused:
            dt = 0.0 if self._last_tick is None else now - self._last_tick
            self._last_tick = now
            self.coordinator.tick(now)
            self.broadcaster.update(dt)
        return self.status(now)

    def pause(self):
        self.paused = True

    def resume(self):
        # Forget the last frame time so the first frame after a pause has dt 0
        self.paused = False
        self._last_tick = None

    def status(self, now_ms: float) -> TrackingStatus:
        coordinator = self.coordinator
        metrics = {"published_offsets": float(self.broadcaster.publish_count)}
        face = self.face_estimator()
        if face is not None and face.is_active():
            metrics.update(face.video_stats())
        return TrackingStatus(
            timestamp=now_ms,
            state=coordinator.state,
            active_source=coordinator.active_source,
            offset=self.broadcaster.latest,
            dropped_updates=coordinator.dropped_updates,
            permission_pending=coordinator.pending_permission is not None,
            reduced_motion=coordinator.reduced_motion,
            performance_metrics=metrics,
        )

    def handle_pointer(self, px: float, py: float):
        self.coordinator.handle_pointer(px, py)

    def on_resize(self, listener: Callable[[int, int], None]):
        """Registers a renderer-side callback for viewport changes."""
        self._resize_listeners.append(listener)

    def resize(self, width: int, height: int):
        if width <= 0 or height <= 0:
            return
        self.coordinator.resize(width, height)
        for listener in self._resize_listeners:
            listener(width, height)

    def set_reduced_motion(self, enabled: bool):
        self.coordinator.set_reduced_motion(enabled)

    async def request_motion_permission(self) -> bool:
        pending = self.coordinator.pending_permission
        if pending is None:
            return False
        return await pending.resolve()

    def recalibrate(self):
        self.coordinator.recalibrate()

    def face_estimator(self) -> Optional[FaceEstimator]:
        return self.coordinator.estimators.get(TrackingSource.FACE)

    def preview_frame(self) -> Optional[np.ndarray]:
        face = self.face_estimator()
        if face is None or self.coordinator.active_source is not TrackingSource.FACE:
            return None
        return face.preview_frame()

    def toggle_preview(self):
        face = self.face_estimator()
        if face is not None:
            face.preview_visible = not face.preview_visible

    def shutdown(self):
        self.coordinator.shutdown()
