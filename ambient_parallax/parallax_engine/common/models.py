# ambient_parallax/parallax_engine/common/models.py
import math
import numpy as np
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Tuple
from .enums import ArbitratorState, TrackingSource

class NormalizedOffset(BaseModel):
    """Viewer displacement from center, each axis nominally in [-1, 1].

    x is left/right, y is up/down, z is near/far. Instances are frozen so every
    consumer receives a value it cannot mutate for anyone else.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    class Config:
        frozen = True

    @classmethod
    def of(cls, x: float, y: float, z: float = 0.0) -> "NormalizedOffset":
        return cls(x=float(x), y=float(y), z=float(z))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def scaled(self, factor: float) -> "NormalizedOffset":
        return NormalizedOffset.of(self.x * factor, self.y * factor, self.z * factor)

    def clamped(self, lo: float = -1.0, hi: float = 1.0) -> "NormalizedOffset":
        return NormalizedOffset.of(*np.clip(self.as_array(), lo, hi))

    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

ZERO_OFFSET = NormalizedOffset()

class FrameMetadata(BaseModel):
    """Metadata associated with a single camera frame."""
    frame_id: int
    timestamp: float
    source_resolution: Tuple[int, int]

class FaceDetection(BaseModel):
    """A single face bounding box in normalized [0, 1] video space."""
    cx: float
    cy: float
    width: float
    height: float
    score: float = 1.0

    @property
    def size(self) -> float:
        return self.width * self.height

class OrientationReading(BaseModel):
    """Device tilt in degrees. beta is forward/back, gamma is left/right."""
    beta: float
    gamma: float
    alpha: float = 0.0

class DeviceCapabilities(BaseModel):
    """Static answers about the current device, produced by the capability probe."""
    touch_capable: bool = False
    has_orientation_sensor: bool = False
    orientation_needs_permission: bool = False
    has_camera_api: bool = False
    prefers_reduced_motion: bool = False
    is_mobile: bool = False
    is_ios: bool = False

class HostEnvironment(BaseModel):
    """Description of the runtime the engine is embedded in.

    Supplied by the host; the capability probe only ever reads it.
    """
    has_touch_events: bool = False
    max_touch_points: int = 0
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str = ""
    platform: str = ""
    camera_api: bool = False
    reduced_motion: bool = False
    orientation_sensor: Optional[Any] = None

    class Config:
        arbitrary_types_allowed = True

class TrackingStatus(BaseModel):
    """Snapshot of the tracking pipeline for one rendered frame."""
    timestamp: float
    state: ArbitratorState
    active_source: Optional[TrackingSource] = None
    offset: NormalizedOffset = ZERO_OFFSET
    dropped_updates: int = 0
    permission_pending: bool = False
    reduced_motion: bool = False
    performance_metrics: Dict[str, float] = Field(default_factory=dict)
