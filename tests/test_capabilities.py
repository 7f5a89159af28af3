"""Tests for the capability probe."""

from parallax_engine.common.models import HostEnvironment
from parallax_engine.device import capabilities
from parallax_engine.device.orientation_sensor import OrientationSensorHub


IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"


class TestProbe:
    def test_bare_desktop(self):
        caps = capabilities.probe_capabilities(HostEnvironment())
        assert not caps.touch_capable
        assert not caps.has_orientation_sensor
        assert not caps.orientation_needs_permission
        assert not caps.has_camera_api
        assert not caps.prefers_reduced_motion
        assert not caps.is_mobile

    def test_touch_small_screen_is_mobile(self):
        env = HostEnvironment(max_touch_points=5, viewport_width=390)
        assert capabilities.is_touch_capable(env)
        assert capabilities.is_mobile(env)

    def test_touch_large_screen_is_not_mobile(self):
        env = HostEnvironment(has_touch_events=True, viewport_width=1920)
        assert not capabilities.is_mobile(env)

    def test_mobile_user_agent(self):
        env = HostEnvironment(user_agent=IPHONE_UA, viewport_width=1920)
        assert capabilities.is_mobile(env)
        assert capabilities.is_ios(env)

    def test_ipad_desktop_mode_is_ios(self):
        env = HostEnvironment(platform="MacIntel", max_touch_points=5)
        assert capabilities.is_ios(env)

    def test_orientation_permission_follows_sensor(self):
        gated = HostEnvironment(orientation_sensor=OrientationSensorHub(needs_permission=True))
        open_ = HostEnvironment(orientation_sensor=OrientationSensorHub(needs_permission=False))
        assert capabilities.has_orientation_sensor(gated)
        assert capabilities.orientation_needs_permission(gated)
        assert not capabilities.orientation_needs_permission(open_)

    def test_probe_collects_everything(self):
        env = HostEnvironment(camera_api=True, reduced_motion=True)
        caps = capabilities.probe_capabilities(env)
        assert caps.has_camera_api
        assert caps.prefers_reduced_motion


class TestDetectHostEnvironment:
    def test_reduced_motion_from_environment_variable(self, monkeypatch):
        monkeypatch.setenv(capabilities.REDUCED_MOTION_ENV, "1")
        env = capabilities.detect_host_environment()
        assert env.reduced_motion

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.delenv(capabilities.REDUCED_MOTION_ENV, raising=False)
        env = capabilities.detect_host_environment(viewport=(800, 600), camera_api=False, user_agent=None)
        assert env.viewport_width == 800
        assert env.viewport_height == 600
        assert env.camera_api is False
        assert env.user_agent == ""
        assert not env.reduced_motion

    def test_sensor_is_passed_through(self):
        hub = OrientationSensorHub()
        env = capabilities.detect_host_environment(orientation_sensor=hub)
        assert env.orientation_sensor is hub
