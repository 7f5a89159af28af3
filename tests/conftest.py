import numpy as np
import pytest
from typing import List, Optional

from parallax_engine.common.config import TrackingConfig
from parallax_engine.common.models import FaceDetection, NormalizedOffset


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms


class FakeVideoSource:
    def __init__(self, ready: bool = True):
        self.ready = ready
        self.start_calls = 0
        self.stop_calls = 0

    def start(self):
        self.start_calls += 1

    def stop(self):
        self.stop_calls += 1

    def get_frame(self):
        if not self.ready:
            return None, None
        return np.zeros((8, 8, 3), dtype=np.uint8), None


class FakeDetector:
    """Returns queued detections in order, then repeats the last one."""

    def __init__(self, detections: Optional[List[Optional[FaceDetection]]] = None):
        self.detections = list(detections or [FaceDetection(cx=0.5, cy=0.5, width=0.2, height=0.2)])
        self.calls = 0
        self.closed = False

    def detect(self, frame):
        self.calls += 1
        if len(self.detections) > 1:
            return self.detections.pop(0)
        return self.detections[0]

    def close(self):
        self.closed = True


class CountingFactory:
    """Builds a fixed product, or raises a fixed error, and counts calls."""

    def __init__(self, product=None, error: Optional[Exception] = None):
        self.product = product
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.product


class RecordingSink:
    def __init__(self):
        self.offsets: List[NormalizedOffset] = []

    def __call__(self, offset: NormalizedOffset):
        self.offsets.append(offset)


@pytest.fixture
def tracking_config():
    return TrackingConfig(settle_delay_ms=10, face_detection_fps=200, video_ready_timeout_s=0.2)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()
