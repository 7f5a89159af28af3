# ambient_parallax/parallax_engine/processing/smoothing.py
import numpy as np
from typing import Optional
from ..common.models import NormalizedOffset, ZERO_OFFSET

REFERENCE_FRAME_MS = 16.67

def frame_rate_factor(smoothing: float, dt_ms: float) -> float:
    """Per-frame interpolation factor that settles identically at any frame rate.

    A factor `smoothing` applied once per 60 Hz frame is equivalent to
    1 - (1 - smoothing) ** (dt / 16.67) applied once over `dt` milliseconds.
    """
    if dt_ms <= 0:
        return 0.0
    return 1.0 - (1.0 - smoothing) ** (dt_ms / REFERENCE_FRAME_MS)

class LowPassFilter:
    """
    A vectorized fixed-coefficient low-pass filter, one step per reading.
    Higher alpha is more responsive, lower alpha is smoother.
    """
    def __init__(self, alpha: float, initial: Optional[NormalizedOffset] = None):
        self.alpha = alpha
        self._value = (initial or ZERO_OFFSET).as_array()

    def __call__(self, target: NormalizedOffset) -> NormalizedOffset:
        self._value = self._value + (target.as_array() - self._value) * self.alpha
        return self.value

    def decay(self, factor: float) -> NormalizedOffset:
        """Scales the current estimate toward zero without snapping."""
        self._value = self._value * factor
        return self.value

    def reset(self, value: Optional[NormalizedOffset] = None):
        self._value = (value or ZERO_OFFSET).as_array()

    @property
    def value(self) -> NormalizedOffset:
        return NormalizedOffset.of(*self._value)

class ExponentialSmoother:
    """
    Frame-rate-independent exponential follower: the shared mutable accumulator
    behind a consumer's smoothed offset. Readers get immutable snapshots.
    """
    def __init__(self, smoothing: float, initial: Optional[NormalizedOffset] = None):
        if not 0.0 < smoothing <= 1.0:
            raise ValueError(f"smoothing must be in (0, 1], got {smoothing}")
        self.smoothing = smoothing
        self._current = (initial or ZERO_OFFSET).as_array()
        self._target = self._current.copy()

    def set_target(self, target: NormalizedOffset):
        self._target = target.as_array()

    def step(self, dt_ms: float) -> NormalizedOffset:
        t = frame_rate_factor(self.smoothing, dt_ms)
        self._current = self._current + (self._target - self._current) * t
        return self.value

    def reset(self, value: Optional[NormalizedOffset] = None, immediate: bool = True):
        self._target = (value or ZERO_OFFSET).as_array()
        if immediate:
            self._current = self._target.copy()

    @property
    def value(self) -> NormalizedOffset:
        return NormalizedOffset.of(*self._current)

    @property
    def target(self) -> NormalizedOffset:
        return NormalizedOffset.of(*self._target)

    def settled(self, tolerance: float = 1e-4) -> bool:
        return bool(np.all(np.abs(self._target - self._current) <= tolerance))
