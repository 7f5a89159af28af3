# ambient_parallax/parallax_engine/tracking/face_detector.py
import cv2
import logging
import numpy as np
from typing import Optional, Protocol
from ..common.errors import LibraryLoadFailure
from ..common.models import FaceDetection

logger = logging.getLogger(__name__)

class FaceDetector(Protocol):
    """Black-box detector: zero or one face per frame."""

    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        ...

    def close(self) -> None:
        ...

class MediaPipeFaceDetector:
    """MediaPipe short-range face detection, imported only when first needed."""

    def __init__(self, min_detection_confidence: float = 0.5, model_selection: int = 0):
        try:
            import mediapipe as mp
            self.mp_face_detection = mp.solutions.face_detection
            self.detector = self.mp_face_detection.FaceDetection(
                model_selection=model_selection,
                min_detection_confidence=min_detection_confidence,
            )
        except (ImportError, AttributeError, RuntimeError) as e:
            raise LibraryLoadFailure(f"MediaPipe face detection unavailable: {e}") from e
        logger.info("MediaPipe face detection loaded")

    def detect(self, frame: np.ndarray) -> Optional[FaceDetection]:
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        frame_rgb.flags.writeable = False # Performance optimization
        results = self.detector.process(frame_rgb)

        if not results.detections:
            return None

        detection = results.detections[0]
        bbox = detection.location_data.relative_bounding_box
        return FaceDetection(
            cx=bbox.xmin + bbox.width / 2.0,
            cy=bbox.ymin + bbox.height / 2.0,
            width=bbox.width,
            height=bbox.height,
            score=detection.score[0] if detection.score else 0.0,
        )

    def close(self):
        self.detector.close()
