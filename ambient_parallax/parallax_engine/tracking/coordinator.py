# ambient_parallax/parallax_engine/tracking/coordinator.py
import asyncio
import logging
from functools import partial
from typing import Callable, Dict, List, Mapping, Optional
from ..common.config import TrackingConfig
from ..common.enums import ArbitratorState, TrackingSource
from ..common.models import DeviceCapabilities, NormalizedOffset, ZERO_OFFSET
from .ambient_estimator import AmbientEstimator
from .base import Estimator
from .pointer_estimator import PointerEstimator

logger = logging.getLogger(__name__)

OffsetSink = Callable[[NormalizedOffset], None]

class PendingPermission:
    """
    A permission request waiting for a user gesture.

    The UI layer calls resolve() from its gesture handler. It resolves at most
    once, and leaving it unresolved forever is harmless.
    """

    def __init__(self, coordinator: "TrackingCoordinator", source: TrackingSource):
        self.source = source
        self.resolved = False
        self.cancelled = False
        self._coordinator = coordinator

    async def resolve(self) -> bool:
        if self.resolved or self.cancelled:
            return False
        self.resolved = True
        return await self._coordinator._complete_permission(self)

class TrackingCoordinator:
    """
    Selects the single authoritative estimator and gates everything else.

    Every estimator's callback is bound to the one intake method, which only
    forwards offsets from the currently active source to the sink. Background
    continuations (the delayed face upgrade, a pending permission) carry the
    generation they were created in and become no-ops once superseded.
    """

    def __init__(self, config: TrackingConfig, capabilities: DeviceCapabilities, sink: OffsetSink,
                 estimators: Optional[Mapping[TrackingSource, Estimator]] = None):
        self.config = config
        self.capabilities = capabilities
        self._sink = sink

        self.estimators: Dict[TrackingSource, Estimator] = dict(estimators or {})
        self.estimators.setdefault(TrackingSource.AMBIENT, AmbientEstimator(config))
        self.estimators.setdefault(TrackingSource.POINTER, PointerEstimator())
        for source, estimator in self.estimators.items():
            estimator.on_update = partial(self._intake, source)

        self.state = ArbitratorState.SELECTING
        self.active_source: Optional[TrackingSource] = None
        self.reduced_motion = capabilities.prefers_reduced_motion
        self.pending_permission: Optional[PendingPermission] = None
        self.dropped_updates = 0
        self._last_offset = ZERO_OFFSET
        self._generation = 0
        self._upgrade_task: Optional[asyncio.Task] = None

    @property
    def ambient(self) -> AmbientEstimator:
        return self.estimators[TrackingSource.AMBIENT]

    @property
    def last_offset(self) -> NormalizedOffset:
        return self._last_offset

    def running_sources(self) -> List[TrackingSource]:
        return [source for source, estimator in self.estimators.items() if estimator.is_active()]

    # --- Selection ---

    async def setup(self) -> Optional[TrackingSource]:
        """Runs source selection once. The face upgrade, if any, continues in the background."""
        self.state = ArbitratorState.SELECTING
        if self.reduced_motion:
            logger.info("Reduced motion preferred - using minimal ambient motion")
            self._enter_reduced_motion()
        elif self.capabilities.is_mobile:
            await self._setup_mobile()
        else:
            await self._setup_desktop()
        return self.active_source

    async def _setup_mobile(self):
        fallback = self.config.mobile_fallback
        orientation = self.estimators.get(TrackingSource.ORIENTATION)
        if orientation is None or not self.capabilities.has_orientation_sensor:
            logger.info("Orientation sensor not available - using %s fallback", fallback.value)
            await self._use(fallback, ArbitratorState.TRACKING)
            return

        if self.capabilities.orientation_needs_permission:
            await self._use(fallback, ArbitratorState.WAITING_PERMISSION)
            self.pending_permission = PendingPermission(self, TrackingSource.ORIENTATION)
            logger.info("Orientation needs a user gesture - waiting on %s fallback", fallback.value)
            return

        if await orientation.start():
            self._promote(TrackingSource.ORIENTATION)
        else:
            await self._use(fallback, ArbitratorState.DEGRADED)

    async def _setup_desktop(self):
        fallback = self.config.desktop_fallback
        face = self.estimators.get(TrackingSource.FACE)
        if face is None or not self.capabilities.has_camera_api:
            logger.info("Camera access not available - using %s fallback", fallback.value)
            await self._use(fallback, ArbitratorState.TRACKING)
            return

        # Interim source runs while the page settles and the camera is negotiated
        await self._use(fallback, ArbitratorState.TRACKING)
        self._upgrade_task = asyncio.get_running_loop().create_task(
            self._upgrade_to_face(self._generation))

    async def _upgrade_to_face(self, generation: int):
        await asyncio.sleep(self.config.settle_delay_ms / 1000.0)
        if generation != self._generation:
            return

        logger.info("Attempting to start face tracking...")
        face = self.estimators[TrackingSource.FACE]
        started = await face.start()
        if generation != self._generation:
            face.stop()
            return

        if started:
            interim = self.active_source
            self._promote(TrackingSource.FACE)
            logger.info("Face tracking active - %s stopped", interim.value if interim else "fallback")
        else:
            self.state = ArbitratorState.DEGRADED
            logger.info("Camera denied - continuing with %s", self.active_source.value)

    async def _complete_permission(self, pending: PendingPermission) -> bool:
        if pending is not self.pending_permission or self.state is not ArbitratorState.WAITING_PERMISSION:
            return False

        generation = self._generation
        estimator = self.estimators[pending.source]
        granted = await estimator.request_permission()
        if generation != self._generation:
            return False

        started = granted and await estimator.start()
        if generation != self._generation:
            estimator.stop()
            return False

        self.pending_permission = None
        if started:
            self._promote(pending.source)
            logger.info("%s tracking active", pending.source.value)
            return True

        self.state = ArbitratorState.DEGRADED
        logger.info("Motion permission not granted - staying on %s", self.active_source.value)
        return False

    async def _use(self, source: TrackingSource, state: ArbitratorState):
        """Makes a fallback source the sole authority, stopping everything else first."""
        self._stop_others(source)
        if source is TrackingSource.AMBIENT:
            self.ambient.reset_parameters()
        estimator = self.estimators[source]
        if await estimator.start():
            self.active_source = source
            self.state = state
            return
        # Ambient is the guaranteed last resort
        self._stop_others(TrackingSource.AMBIENT)
        self.ambient.reset_parameters()
        self.ambient.restart()
        self.active_source = TrackingSource.AMBIENT
        self.state = ArbitratorState.DEGRADED

    def _promote(self, source: TrackingSource):
        """Hands authority to an already-started estimator."""
        self._stop_others(source)
        self.active_source = source
        self.state = ArbitratorState.TRACKING

    def _stop_others(self, keep: TrackingSource):
        for source, estimator in self.estimators.items():
            if source is not keep:
                estimator.stop()

    def _supersede(self):
        """Invalidates every in-flight continuation."""
        self._generation += 1
        if self._upgrade_task is not None and not self._upgrade_task.done():
            self._upgrade_task.cancel()
        self._upgrade_task = None
        if self.pending_permission is not None:
            self.pending_permission.cancelled = True
            self.pending_permission = None

    def _enter_reduced_motion(self):
        self._stop_others(TrackingSource.AMBIENT)
        ambient = self.ambient
        ambient.set_speed(self.config.fallback_animation_speed * self.config.reduced_motion_speed_scale)
        ambient.set_radius(self.config.reduced_motion_radius)
        ambient.restart()
        self.active_source = TrackingSource.AMBIENT
        self.state = ArbitratorState.TRACKING

    # --- Live events ---

    def set_reduced_motion(self, enabled: bool):
        """Preference change. Turning it on overrides every other source immediately."""
        self.reduced_motion = enabled
        if not enabled:
            logger.info("Reduced motion preference cleared - keeping %s",
                        self.active_source.value if self.active_source else "no source")
            return
        logger.info("Reduced motion enabled - switching to ambient")
        self._supersede()
        self._enter_reduced_motion()

    def _intake(self, source: TrackingSource, offset: NormalizedOffset):
        if source is not self.active_source or not self.estimators[source].is_active():
            self.dropped_updates += 1
            return
        self._last_offset = offset
        self._sink(offset)

    def tick(self, now_ms: Optional[float] = None):
        if self.active_source is TrackingSource.AMBIENT:
            self.ambient.update(now_ms)

    def handle_pointer(self, px: float, py: float):
        self.estimators[TrackingSource.POINTER].handle_pointer(px, py)

    def resize(self, width: int, height: int):
        self.estimators[TrackingSource.POINTER].resize(width, height)

    def recalibrate(self):
        face = self.estimators.get(TrackingSource.FACE)
        if face is not None:
            face.recalibrate()

    async def wait_until_settled(self):
        task = self._upgrade_task
        if task is not None:
            await asyncio.wait({task})

    async def restart(self) -> Optional[TrackingSource]:
        """Explicit recovery: tear down and run selection again."""
        self._supersede()
        for estimator in self.estimators.values():
            estimator.stop()
        self.active_source = None
        return await self.setup()

    def shutdown(self):
        self._supersede()
        for estimator in self.estimators.values():
            estimator.dispose()
        self.active_source = None
        self.state = ArbitratorState.STOPPED
        logger.info("Tracking coordinator stopped")
