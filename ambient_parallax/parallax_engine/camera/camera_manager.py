# ambient_parallax/parallax_engine/camera/camera_manager.py
import cv2
import logging
import time
import threading
import numpy as np
from collections import deque
from typing import Tuple, Optional
from ..common.config import CameraConfig
from ..common.errors import HardwareUnavailable
from ..common.models import FrameMetadata

logger = logging.getLogger(__name__)

class CameraManager:
    """Owns the exclusive camera handle and grabs frames in a separate thread."""

    def __init__(self, config: CameraConfig):
        self.config = config
        self._source = config.source
        self._resolution = tuple(config.resolution)
        self._target_fps = config.target_fps
        self._cap = cv2.VideoCapture(self._source)
        if not self._cap.isOpened():
            self._cap.release()
            raise HardwareUnavailable(f"Cannot open camera source: {self._source}")

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._resolution[0])
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._resolution[1])
        self._cap.set(cv2.CAP_PROP_FPS, self._target_fps)

        self._buffer = deque(maxlen=config.buffer_size)
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._released = False
        self._frame_id = 0
        self._dropped_frames = 0

    def _update(self):
        """The core frame-grabbing loop running in a dedicated thread."""
        while self._running:
            grabbed = self._cap.grab()
            if not grabbed:
                self._dropped_frames += 1
                time.sleep(0.01) # Avoid busy-waiting on error
                continue

            ret, frame = self._cap.retrieve()
            if ret:
                timestamp = time.perf_counter()
                self._frame_id += 1
                with self._lock:
                    self._buffer.append((frame, self._frame_id, timestamp))
            else:
                self._dropped_frames += 1

    def start(self):
        if self._running or self._released:
            return
        self._running = True
        self._thread = threading.Thread(target=self._update, daemon=True)
        self._thread.start()
        logger.info("CameraManager started on source %s", self._source)

    def stop(self):
        """Halts the grab thread and releases the device. Safe to call repeatedly."""
        if self._released:
            return
        self._running = False
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._cap.release()
        self._released = True
        with self._lock:
            self._buffer.clear()
        logger.info("CameraManager stopped and resources released.")

    def get_frame(self) -> Tuple[Optional[np.ndarray], Optional[FrameMetadata]]:
        """Returns the latest frame and its metadata from the buffer."""
        with self._lock:
            if not self._buffer:
                return None, None
            frame, frame_id, timestamp = self._buffer[-1]

        metadata = FrameMetadata(
            frame_id=frame_id,
            timestamp=timestamp,
            source_resolution=(frame.shape[1], frame.shape[0])
        )
        return frame.copy(), metadata

    def get_stats(self) -> dict:
        """Returns camera health and performance statistics."""
        return {
            "is_running": self.is_running(),
            "buffer_size": len(self._buffer),
            "dropped_frames": self._dropped_frames,
            "target_fps": self._target_fps,
        }

    def is_running(self) -> bool:
        return self._running

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
