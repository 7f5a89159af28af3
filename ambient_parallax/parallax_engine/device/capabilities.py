# ambient_parallax/parallax_engine/device/capabilities.py
import importlib.util
import os
import re
from ..common.models import DeviceCapabilities, HostEnvironment

SMALL_SCREEN_MAX_WIDTH = 1024
MOBILE_UA = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)
IOS_UA = re.compile(r"iPad|iPhone|iPod")
REDUCED_MOTION_ENV = "PREFERS_REDUCED_MOTION"

def is_touch_capable(env: HostEnvironment) -> bool:
    return env.has_touch_events or env.max_touch_points > 0

def has_orientation_sensor(env: HostEnvironment) -> bool:
    return env.orientation_sensor is not None

def orientation_needs_permission(env: HostEnvironment) -> bool:
    sensor = env.orientation_sensor
    return bool(sensor is not None and getattr(sensor, 'needs_permission', False))

def has_camera_api(env: HostEnvironment) -> bool:
    return env.camera_api

def prefers_reduced_motion(env: HostEnvironment) -> bool:
    return env.reduced_motion

def is_ios(env: HostEnvironment) -> bool:
    if IOS_UA.search(env.user_agent):
        return True
    # iPadOS reports itself as a desktop Mac with touch points
    return env.platform == 'MacIntel' and env.max_touch_points > 1

def is_mobile(env: HostEnvironment) -> bool:
    small_screen = env.viewport_width <= SMALL_SCREEN_MAX_WIDTH
    return (is_touch_capable(env) and small_screen) or bool(MOBILE_UA.search(env.user_agent))

def probe_capabilities(env: HostEnvironment) -> DeviceCapabilities:
    """Answers every static capability question at once. Touches no hardware."""
    return DeviceCapabilities(
        touch_capable=is_touch_capable(env),
        has_orientation_sensor=has_orientation_sensor(env),
        orientation_needs_permission=orientation_needs_permission(env),
        has_camera_api=has_camera_api(env),
        prefers_reduced_motion=prefers_reduced_motion(env),
        is_mobile=is_mobile(env),
        is_ios=is_ios(env),
    )

def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "reduce")

def detect_host_environment(viewport=(1280, 720), orientation_sensor=None, **overrides) -> HostEnvironment:
    """Describes the local Python host: a desktop with a camera API iff OpenCV is importable."""
    fields = dict(
        viewport_width=viewport[0],
        viewport_height=viewport[1],
        platform=os.name,
        camera_api=importlib.util.find_spec('cv2') is not None,
        reduced_motion=_env_flag(REDUCED_MOTION_ENV),
        orientation_sensor=orientation_sensor,
    )
    fields.update({k: v for k, v in overrides.items() if v is not None})
    return HostEnvironment(**fields)
