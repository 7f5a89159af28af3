# ambient_parallax/parallax_engine/visualization/consumers.py
import numpy as np
from typing import Tuple
from ..common.config import VisualizationConfig
from ..common.models import NormalizedOffset
from ..processing.smoothing import ExponentialSmoother

class CameraRig:
    """
    Head-coupled camera. Offsets are scaled into world units, clamped to the
    maximum excursion per axis, then followed with frame-rate-independent
    smoothing. The camera always looks at the origin.
    """

    def __init__(self, config: VisualizationConfig, sensitivity: float = 0.8, smoothing: float = 0.06):
        self.sensitivity = sensitivity
        self.max_offset = np.array(config.max_camera_offset, dtype=np.float64)
        self.base_position = np.array([0.0, 0.0, config.camera_distance])
        self._smoother = ExponentialSmoother(smoothing)

    def set_target_offset(self, offset: NormalizedOffset):
        scaled = np.clip(offset.as_array() * self.sensitivity * self.max_offset, -self.max_offset, self.max_offset)
        self._smoother.set_target(NormalizedOffset.of(*scaled))

    def update(self, dt_ms: float):
        self._smoother.step(dt_ms)

    def reset(self, immediate: bool = False):
        self._smoother.reset(immediate=immediate)

    @property
    def position(self) -> np.ndarray:
        return self.base_position + self._smoother.value.as_array()

    @property
    def current_offset(self) -> NormalizedOffset:
        return self._smoother.value

    @property
    def target_offset(self) -> NormalizedOffset:
        return self._smoother.target

class ParallaxLayers:
    """Background grid that tilts and shifts with the planar offset."""

    SHIFT_SCALE = (3.0, 2.0)
    PITCH_RATIO = 0.6

    def __init__(self, config: VisualizationConfig):
        self.tilt_strength = config.parallax_tilt_strength
        self._smoother = ExponentialSmoother(config.parallax_smoothing)

    def set_target_offset(self, offset: NormalizedOffset):
        self._smoother.set_target(NormalizedOffset.of(offset.x, offset.y, 0.0))

    def update(self, dt_ms: float):
        self._smoother.step(dt_ms)

    @property
    def offset(self) -> Tuple[float, float]:
        current = self._smoother.value
        return current.x, current.y

    @property
    def rotation(self) -> Tuple[float, float]:
        """(pitch, yaw) in radians."""
        x, y = self.offset
        return -y * self.tilt_strength * self.PITCH_RATIO, x * self.tilt_strength

    @property
    def shift(self) -> Tuple[float, float]:
        x, y = self.offset
        return x * self.SHIFT_SCALE[0], y * self.SHIFT_SCALE[1]

class OverlayLayer:
    """HUD overlay nudged by a few pixels for a sense of depth."""

    PIXEL_SCALE = 10.0

    def __init__(self, config: VisualizationConfig):
        self.multiplier = config.ui_multiplier
        self._smoother = ExponentialSmoother(config.overlay_smoothing)

    def set_target_offset(self, offset: NormalizedOffset):
        self._smoother.set_target(NormalizedOffset.of(offset.x, offset.y, 0.0))

    def update(self, dt_ms: float):
        self._smoother.step(dt_ms)

    @property
    def translation(self) -> Tuple[float, float]:
        current = self._smoother.value
        scale = self.multiplier * self.PIXEL_SCALE
        return current.x * scale, current.y * scale

class SpotlightTarget:
    """Spotlight center in [0, 1] screen space, y up."""

    def __init__(self, config: VisualizationConfig):
        self._smoother = ExponentialSmoother(config.spotlight_smoothing, NormalizedOffset.of(0.5, 0.5))

    def set_target_offset(self, offset: NormalizedOffset):
        self._smoother.set_target(NormalizedOffset.of((offset.x + 1) * 0.5, (offset.y + 1) * 0.5))

    def update(self, dt_ms: float):
        self._smoother.step(dt_ms)

    @property
    def position(self) -> Tuple[float, float]:
        current = self._smoother.value
        return current.x, current.y
