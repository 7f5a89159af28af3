# ambient_parallax/parallax_engine/tracking/face_estimator.py
import asyncio
import logging
import threading
import numpy as np
from typing import Callable, Dict, Optional, Protocol, Tuple
from ..camera.camera_manager import CameraManager
from ..common.config import CameraConfig, TrackingConfig
from ..common.enums import TrackerState, TrackingSource
from ..common.errors import PermissionDenied, Timeout, TrackingError
from ..common.models import FaceDetection, FrameMetadata, NormalizedOffset
from ..processing.math_utils import clamp, map_range
from ..processing.smoothing import LowPassFilter
from .base import Estimator, OffsetCallback
from .face_detector import FaceDetector, MediaPipeFaceDetector

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL_S = 0.01

def _stop_abandoned_video(future: asyncio.Future):
    if future.cancelled() or future.exception() is not None:
        return
    future.result().stop()

class VideoSource(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def get_frame(self) -> Tuple[Optional[np.ndarray], Optional[FrameMetadata]]:
        ...

class FaceEstimator(Estimator):
    """
    Head-coupled tracking from a camera feed.

    A fixed-rate detection loop, independent of the render loop, maps the face
    centroid to x/y and its apparent size, relative to the first detection, to
    depth. The video is mirrored, so both planar axes are inverted.
    """

    source = TrackingSource.FACE

    def __init__(self, config: TrackingConfig, camera_config: Optional[CameraConfig] = None,
                 on_update: Optional[OffsetCallback] = None,
                 detector_factory: Optional[Callable[[], FaceDetector]] = None,
                 video_source_factory: Optional[Callable[[], VideoSource]] = None):
        super().__init__(on_update)
        self.config = config
        self.camera_config = camera_config or CameraConfig()
        self._detector_factory = detector_factory or (
            lambda: MediaPipeFaceDetector(min_detection_confidence=config.face_min_detection_confidence))
        self._video_source_factory = video_source_factory or (lambda: CameraManager(self.camera_config))
        self._detector: Optional[FaceDetector] = None
        self._detector_lock = threading.Lock()
        self._video: Optional[VideoSource] = None
        self._task: Optional[asyncio.Task] = None
        self._filter = LowPassFilter(config.face_smoothing)
        self._baseline: Optional[float] = None
        self._latest_frame: Optional[np.ndarray] = None
        self.preview_visible = True

    @property
    def baseline(self) -> Optional[float]:
        return self._baseline

    @staticmethod
    def map_detection(detection: FaceDetection, baseline: Optional[float],
                      depth_ratio_range: Tuple[float, float] = (0.6, 1.6)) -> NormalizedOffset:
        """Raw, unsmoothed offset for one detection."""
        x = map_range(detection.cx, 0.0, 1.0, 1.0, -1.0)
        y = map_range(detection.cy, 0.0, 1.0, 1.0, -1.0)
        z = 0.0
        if baseline:
            ratio = detection.size / baseline
            near, far = depth_ratio_range
            # Larger face than baseline means closer, which is negative z.
            # The calibration size itself is always z = 0.
            if ratio >= 1.0:
                z = map_range(ratio, 1.0, far, 0.0, -1.0)
            else:
                z = map_range(ratio, near, 1.0, 1.0, 0.0)
            z = clamp(z, -1.0, 1.0)
        return NormalizedOffset.of(x, y, z)

    async def start(self) -> bool:
        if self.state is TrackerState.ACTIVE:
            return True

        self.state = TrackerState.INITIALIZING
        self._baseline = None
        self._filter.reset()
        try:
            if self._detector is None:
                detector = await asyncio.to_thread(self._detector_factory)
                with self._detector_lock:
                    self._detector = detector
            logger.info("Requesting camera access...")
            await self._open_video()
        except PermissionDenied as e:
            logger.warning("Camera access denied: %s", e)
            self._release()
            self.state = TrackerState.DENIED
            return False
        except TrackingError as e:
            logger.warning("Face tracking unavailable: %s", e)
            self._release()
            self.state = TrackerState.UNAVAILABLE
            return False
        except asyncio.CancelledError:
            self._release()
            self.state = TrackerState.STOPPED
            raise
        except Exception:
            logger.exception("Face tracking failed to start")
            self._release()
            self.state = TrackerState.UNAVAILABLE
            return False

        if self.state is not TrackerState.INITIALIZING:
            # stop() arrived while we were opening the stream
            return False

        self.state = TrackerState.ACTIVE
        self._task = asyncio.get_running_loop().create_task(self._detection_loop())
        logger.info("Face tracking started")
        return True

    async def _open_video(self):
        """Opens the device off the event loop and waits for its first frame, both within the ready timeout."""
        async def open_and_wait():
            if self.state is not TrackerState.INITIALIZING:
                return
            video = await self._create_video_source()
            if self.state is not TrackerState.INITIALIZING:
                video.stop()
                return
            self._video = video
            video.start()
            while self.state is TrackerState.INITIALIZING:
                frame, _ = video.get_frame()
                if frame is not None:
                    return
                await asyncio.sleep(READY_POLL_INTERVAL_S)

        try:
            await asyncio.wait_for(open_and_wait(), timeout=self.config.video_ready_timeout_s)
        except asyncio.TimeoutError as e:
            raise Timeout(f"Video stream not ready after {self.config.video_ready_timeout_s}s") from e

    async def _create_video_source(self) -> VideoSource:
        future = asyncio.get_running_loop().run_in_executor(None, self._video_source_factory)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # The device may still open after we stop waiting for it
            future.add_done_callback(_stop_abandoned_video)
            raise

    async def _detection_loop(self):
        interval = 1.0 / self.config.face_detection_fps
        while self.state is TrackerState.ACTIVE:
            frame, _ = self._video.get_frame()
            if frame is not None:
                self._latest_frame = frame
                try:
                    detection = await asyncio.to_thread(self._detect, frame)
                except Exception as e:
                    logger.warning("Face detection error: %s", e)
                else:
                    self.handle_detection(detection)
            await asyncio.sleep(interval)

    def _detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        """Runs on a worker thread; the lock keeps dispose() from closing the detector mid-inference."""
        with self._detector_lock:
            if self._detector is None:
                return None
            return self._detector.detect(frame)

    def handle_detection(self, detection: Optional[FaceDetection]):
        """Folds one detection tick into the smoothed estimate and emits it."""
        if self.state is not TrackerState.ACTIVE:
            return

        if detection is None:
            # Drift back toward center instead of snapping on momentary loss
            offset = self._filter.decay(self.config.face_decay)
        else:
            if self._baseline is None and detection.size > 0:
                self._baseline = detection.size
                logger.debug("Face depth baseline captured: %.4f", self._baseline)
            raw = self.map_detection(detection, self._baseline, self.config.depth_ratio_range)
            offset = self._filter(raw)
        self._emit(offset)

    def recalibrate(self):
        self._baseline = None
        logger.info("Face depth baseline reset")

    def preview_frame(self) -> Optional[np.ndarray]:
        if not self.preview_visible or self._latest_frame is None or not self.is_active():
            return None
        if self.camera_config.mirror_preview:
            return np.ascontiguousarray(self._latest_frame[:, ::-1])
        return self._latest_frame

    def video_stats(self) -> Dict[str, float]:
        get_stats = getattr(self._video, 'get_stats', None)
        if get_stats is None:
            return {}
        return {f"camera_{key}": float(value) for key, value in get_stats().items()}

    def _release(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._video is not None:
            self._video.stop()
            self._video = None
        self._baseline = None
        self._latest_frame = None

    def dispose(self):
        self.stop()
        with self._detector_lock:
            if self._detector is not None:
                self._detector.close()
                self._detector = None
