"""Scenario tests for TrackingCoordinator source selection and gating."""

import asyncio
import pytest

from conftest import CountingFactory, FakeDetector, FakeVideoSource, RecordingSink
from parallax_engine.common.enums import ArbitratorState, TrackerState, TrackingSource
from parallax_engine.common.errors import PermissionDenied
from parallax_engine.common.models import DeviceCapabilities, NormalizedOffset
from parallax_engine.device.orientation_sensor import OrientationSensorHub
from parallax_engine.tracking.ambient_estimator import AmbientEstimator
from parallax_engine.tracking.coordinator import TrackingCoordinator
from parallax_engine.tracking.face_estimator import FaceEstimator
from parallax_engine.tracking.orientation_estimator import OrientationEstimator
from parallax_engine.tracking.pointer_estimator import PointerEstimator


DESKTOP = DeviceCapabilities(has_camera_api=True)
MOBILE = DeviceCapabilities(touch_capable=True, is_mobile=True, has_orientation_sensor=True)


class Rig:
    """A coordinator plus handles on every fake it was built from."""

    def __init__(self, config, capabilities, video_error=None, hub=None, video=None, detector_error=None):
        self.sink = RecordingSink()
        self.video = video or FakeVideoSource()
        self.video_factory = CountingFactory(self.video, error=video_error)
        self.hub = hub or OrientationSensorHub()
        self.face = FaceEstimator(
            config,
            detector_factory=CountingFactory(FakeDetector(), error=detector_error),
            video_source_factory=self.video_factory,
        )
        self.orientation = OrientationEstimator(config, self.hub)
        self.pointer = PointerEstimator(800, 600)
        self.ambient = AmbientEstimator(config)
        self.coordinator = TrackingCoordinator(config, capabilities, self.sink, {
            TrackingSource.FACE: self.face,
            TrackingSource.ORIENTATION: self.orientation,
            TrackingSource.POINTER: self.pointer,
            TrackingSource.AMBIENT: self.ambient,
        })

    def assert_single_running(self):
        running = self.coordinator.running_sources()
        assert running == [self.coordinator.active_source]


class TestReducedMotion:
    def test_startup_preference_wins(self, tracking_config):
        caps = DeviceCapabilities(has_camera_api=True, prefers_reduced_motion=True)
        hub = OrientationSensorHub(needs_permission=True)
        rig = Rig(tracking_config, caps, hub=hub)

        async def scenario():
            await rig.coordinator.setup()
            await rig.coordinator.wait_until_settled()
            await asyncio.sleep(0.03)
            rig.assert_single_running()
            rig.coordinator.shutdown()

        asyncio.run(scenario())
        assert rig.coordinator.active_source is None
        assert rig.video_factory.calls == 0
        assert hub.permission_requests == 0
        assert rig.ambient.speed == pytest.approx(
            tracking_config.fallback_animation_speed * tracking_config.reduced_motion_speed_scale)
        assert rig.ambient.radius == tuple(tracking_config.reduced_motion_radius)

    def test_mobile_reduced_motion_never_prompts(self, tracking_config):
        caps = MOBILE.model_copy(update={"orientation_needs_permission": True, "prefers_reduced_motion": True})
        hub = OrientationSensorHub(needs_permission=True)
        rig = Rig(tracking_config, caps, hub=hub)

        async def scenario():
            await rig.coordinator.setup()
            return rig.coordinator.active_source, rig.coordinator.pending_permission

        source, pending = asyncio.run(scenario())
        assert source is TrackingSource.AMBIENT
        assert pending is None
        assert hub.permission_requests == 0

    def test_live_toggle_stops_face(self, tracking_config):
        rig = Rig(tracking_config, DESKTOP)

        async def scenario():
            await rig.coordinator.setup()
            await rig.coordinator.wait_until_settled()
            assert rig.coordinator.active_source is TrackingSource.FACE
            rig.coordinator.set_reduced_motion(True)
            rig.assert_single_running()
            result = rig.coordinator.active_source, rig.coordinator.state
            rig.coordinator.shutdown()
            return result

        source, state = asyncio.run(scenario())
        assert source is TrackingSource.AMBIENT
        assert state is ArbitratorState.TRACKING
        assert rig.face.state is TrackerState.STOPPED
        assert rig.video.stop_calls == 1

    def test_live_toggle_cancels_pending_upgrade(self, tracking_config):
        config = tracking_config.model_copy(update={"settle_delay_ms": 50})
        rig = Rig(config, DESKTOP)

        async def scenario():
            await rig.coordinator.setup()
            rig.coordinator.set_reduced_motion(True)
            await rig.coordinator.wait_until_settled()
            await asyncio.sleep(0.1)
            rig.assert_single_running()
            return rig.coordinator.active_source

        assert asyncio.run(scenario()) is TrackingSource.AMBIENT
        assert rig.video_factory.calls == 0

    def test_restart_restores_full_ambient_motion(self, tracking_config):
        caps = MOBILE.model_copy(update={"has_orientation_sensor": False})
        rig = Rig(tracking_config, caps)

        async def scenario():
            await rig.coordinator.setup()
            rig.coordinator.set_reduced_motion(True)
            reduced = rig.ambient.speed, rig.ambient.radius
            rig.coordinator.set_reduced_motion(False)
            await rig.coordinator.restart()
            return reduced

        reduced_speed, reduced_radius = asyncio.run(scenario())
        assert reduced_speed < tracking_config.fallback_animation_speed
        assert reduced_radius == tuple(tracking_config.reduced_motion_radius)
        assert rig.coordinator.active_source is TrackingSource.AMBIENT
        assert rig.ambient.speed == tracking_config.fallback_animation_speed
        assert rig.ambient.radius == tuple(tracking_config.fallback_animation_radius)

    def test_clearing_preference_keeps_ambient(self, tracking_config):
        rig = Rig(tracking_config, DeviceCapabilities())

        async def scenario():
            await rig.coordinator.setup()
            rig.coordinator.set_reduced_motion(True)
            rig.coordinator.set_reduced_motion(False)
            return rig.coordinator.active_source

        assert asyncio.run(scenario()) is TrackingSource.AMBIENT


class TestMobile:
    def test_no_sensor_uses_ambient(self, tracking_config):
        caps = MOBILE.model_copy(update={"has_orientation_sensor": False})
        rig = Rig(tracking_config, caps)
        asyncio.run(rig.coordinator.setup())
        assert rig.coordinator.active_source is TrackingSource.AMBIENT
        assert rig.coordinator.state is ArbitratorState.TRACKING
        rig.assert_single_running()

    def test_sensor_without_permission_starts_directly(self, tracking_config):
        rig = Rig(tracking_config, MOBILE)
        asyncio.run(rig.coordinator.setup())
        assert rig.coordinator.active_source is TrackingSource.ORIENTATION
        rig.assert_single_running()
        rig.hub.push(45.0, 40.0)
        assert rig.sink.offsets[-1].x == pytest.approx(1.0)

    def test_permission_denied_stays_on_fallback(self, tracking_config):
        caps = MOBILE.model_copy(update={"orientation_needs_permission": True})
        hub = OrientationSensorHub(needs_permission=True, permission_granted=False)
        rig = Rig(tracking_config, caps, hub=hub)

        async def scenario():
            await rig.coordinator.setup()
            assert rig.coordinator.state is ArbitratorState.WAITING_PERMISSION
            assert rig.coordinator.active_source is TrackingSource.AMBIENT
            pending = rig.coordinator.pending_permission
            first = await pending.resolve()
            second = await pending.resolve()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is False
        assert second is False
        assert hub.permission_requests == 1
        assert rig.coordinator.pending_permission is None
        assert rig.coordinator.state is ArbitratorState.DEGRADED
        assert rig.coordinator.active_source is TrackingSource.AMBIENT
        rig.assert_single_running()

    def test_permission_granted_switches_to_orientation(self, tracking_config):
        caps = MOBILE.model_copy(update={"orientation_needs_permission": True})
        hub = OrientationSensorHub(needs_permission=True, permission_granted=True)
        rig = Rig(tracking_config, caps, hub=hub)

        async def scenario():
            await rig.coordinator.setup()
            return await rig.coordinator.pending_permission.resolve()

        assert asyncio.run(scenario()) is True
        assert rig.coordinator.active_source is TrackingSource.ORIENTATION
        assert rig.coordinator.state is ArbitratorState.TRACKING
        assert rig.ambient.state is TrackerState.STOPPED
        rig.assert_single_running()

    def test_unresolved_permission_is_harmless(self, tracking_config):
        caps = MOBILE.model_copy(update={"orientation_needs_permission": True})
        rig = Rig(tracking_config, caps, hub=OrientationSensorHub(needs_permission=True))
        asyncio.run(rig.coordinator.setup())
        rig.coordinator.tick(1000.0)
        assert rig.coordinator.active_source is TrackingSource.AMBIENT
        assert len(rig.sink.offsets) == 1


class TestDesktop:
    def test_no_camera_uses_pointer(self, tracking_config):
        rig = Rig(tracking_config, DeviceCapabilities())
        asyncio.run(rig.coordinator.setup())
        assert rig.coordinator.active_source is TrackingSource.POINTER
        assert rig.video_factory.calls == 0
        rig.assert_single_running()

    def test_interim_pointer_then_face(self, tracking_config):
        rig = Rig(tracking_config, DESKTOP)

        async def scenario():
            await rig.coordinator.setup()
            interim = rig.coordinator.active_source
            rig.assert_single_running()
            await rig.coordinator.wait_until_settled()
            rig.assert_single_running()
            await asyncio.sleep(0.03)
            final = rig.coordinator.active_source
            rig.coordinator.shutdown()
            return interim, final

        interim, final = asyncio.run(scenario())
        assert interim is TrackingSource.POINTER
        assert final is TrackingSource.FACE
        assert rig.pointer.state is TrackerState.STOPPED
        assert len(rig.sink.offsets) > 0

    def test_camera_denied_is_permanent(self, tracking_config):
        rig = Rig(tracking_config, DESKTOP, video_error=PermissionDenied("blocked"))

        async def scenario():
            await rig.coordinator.setup()
            await rig.coordinator.wait_until_settled()
            await asyncio.sleep(0.05)
            rig.pointer.handle_pointer(800, 0)

        asyncio.run(scenario())
        assert rig.coordinator.state is ArbitratorState.DEGRADED
        assert rig.coordinator.active_source is TrackingSource.POINTER
        assert rig.video_factory.calls == 1
        assert rig.sink.offsets[-1].x == pytest.approx(1.0)
        rig.assert_single_running()

    def test_unexpected_face_error_degrades_to_pointer(self, tracking_config):
        rig = Rig(tracking_config, DESKTOP, detector_error=ValueError("model asset missing"))

        async def scenario():
            await rig.coordinator.setup()
            await rig.coordinator.wait_until_settled()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert rig.coordinator.state is ArbitratorState.DEGRADED
        assert rig.coordinator.active_source is TrackingSource.POINTER
        assert rig.face.state is TrackerState.UNAVAILABLE
        assert rig.video_factory.calls == 0
        rig.assert_single_running()

    def test_ambient_interim_is_configurable(self, tracking_config):
        config = tracking_config.model_copy(update={"desktop_fallback": TrackingSource.AMBIENT})
        rig = Rig(config, DeviceCapabilities())
        asyncio.run(rig.coordinator.setup())
        assert rig.coordinator.active_source is TrackingSource.AMBIENT


class TestGating:
    def test_stale_source_is_dropped(self, tracking_config):
        rig = Rig(tracking_config, DeviceCapabilities())
        asyncio.run(rig.coordinator.setup())
        # An in-flight callback from a source that is not the authority
        rig.face.on_update(NormalizedOffset.of(0.9, 0.9, 0.9))
        rig.ambient.on_update(NormalizedOffset.of(0.1, 0.1))
        assert rig.sink.offsets == []
        assert rig.coordinator.dropped_updates == 2

        rig.pointer.handle_pointer(400, 300)
        assert len(rig.sink.offsets) == 1
        assert rig.coordinator.last_offset == rig.sink.offsets[0]

    def test_single_running_across_transitions(self, tracking_config):
        caps = MOBILE.model_copy(update={"orientation_needs_permission": True, "has_camera_api": True})
        hub = OrientationSensorHub(needs_permission=True, permission_granted=True)
        rig = Rig(tracking_config, caps, hub=hub)

        async def scenario():
            await rig.coordinator.setup()
            rig.assert_single_running()
            await rig.coordinator.pending_permission.resolve()
            rig.assert_single_running()
            rig.coordinator.set_reduced_motion(True)
            rig.assert_single_running()
            rig.coordinator.set_reduced_motion(False)
            await rig.coordinator.restart()
            rig.assert_single_running()
            rig.coordinator.shutdown()

        asyncio.run(scenario())
        assert rig.coordinator.running_sources() == []
        assert rig.coordinator.state is ArbitratorState.STOPPED

    def test_recalibrate_resets_face_baseline(self, tracking_config):
        rig = Rig(tracking_config, DESKTOP)

        async def scenario():
            await rig.coordinator.setup()
            await rig.coordinator.wait_until_settled()
            await asyncio.sleep(0.02)
            had_baseline = rig.face.baseline is not None
            rig.coordinator.recalibrate()
            cleared = rig.face.baseline
            rig.coordinator.shutdown()
            return had_baseline, cleared

        had_baseline, cleared = asyncio.run(scenario())
        assert had_baseline
        assert cleared is None
