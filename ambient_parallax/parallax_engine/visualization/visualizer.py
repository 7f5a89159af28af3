# ambient_parallax/parallax_engine/visualization/visualizer.py
import cv2
import numpy as np
from typing import Optional
from ..common.config import VisualizationConfig
from ..common.models import TrackingStatus
from .consumers import CameraRig, OverlayLayer, ParallaxLayers, SpotlightTarget

BACKGROUND_COLOR = (15, 10, 10)
DOT_COLOR_DARK = np.array([60, 45, 45], dtype=np.float64)
DOT_COLOR_LIGHT = np.array([255, 235, 225], dtype=np.float64)
HUD_COLOR = (240, 240, 240)
PREVIEW_SIZE = (200, 150)

class Visualizer:
    """Draws the dot-grid spotlight scene and HUD from the consumers' smoothed state."""

    def __init__(self, config: VisualizationConfig, camera_rig: CameraRig, parallax: ParallaxLayers,
                 overlay: OverlayLayer, spotlight: SpotlightTarget):
        self.config = config
        self.camera_rig = camera_rig
        self.parallax = parallax
        self.overlay = overlay
        self.spotlight = spotlight
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.resize(config.width, config.height)

    def resize(self, width: int, height: int):
        self.width = width
        self.height = height
        spacing = self.config.dot_spacing
        xs = np.arange(spacing // 2, width + spacing, spacing, dtype=np.float64)
        ys = np.arange(spacing // 2, height + spacing, spacing, dtype=np.float64)
        self._grid_x, self._grid_y = np.meshgrid(xs, ys)

    def render(self, status: TrackingStatus, current_fps: float, preview: Optional[np.ndarray] = None) -> np.ndarray:
        frame = np.full((self.height, self.width, 3), BACKGROUND_COLOR, dtype=np.uint8)
        self._draw_grid(frame)
        if preview is not None and self.config.show_camera_preview:
            self._draw_preview(frame, preview)
        if self.config.draw_hud:
            self._draw_hud(frame, status, current_fps)
        return frame

    def _draw_grid(self, frame: np.ndarray):
        w, h = self.width, self.height
        pitch, yaw = self.parallax.rotation
        shift_x, shift_y = self.parallax.shift
        half = self.config.dot_spacing * 0.5

        # Cheap perspective: skew the grid by the layer tilt, then shift it
        xs = self._grid_x + (self._grid_y - h / 2) * yaw * 0.5 + shift_x * half
        ys = self._grid_y + (self._grid_x - w / 2) * pitch * 0.5 - shift_y * half

        sx, sy = self.spotlight.position
        center = np.array([sx * w, (1.0 - sy) * h])
        radius = self.config.spotlight_radius * min(w, h)
        dist_sq = (xs - center[0]) ** 2 + (ys - center[1]) ** 2
        light = np.exp(-dist_sq / (2.0 * radius * radius))

        # Closer camera means slightly larger dots
        depth = self.camera_rig.current_offset.z / max(self.camera_rig.max_offset[2], 1e-6)
        base_size = max(1, int(round(2 - depth)))

        for x, y, lit in zip(xs.ravel(), ys.ravel(), light.ravel()):
            if 0 <= x < w and 0 <= y < h:
                color = DOT_COLOR_DARK + (DOT_COLOR_LIGHT - DOT_COLOR_DARK) * lit
                size = base_size + int(lit * 2)
                cv2.circle(frame, (int(x), int(y)), size, tuple(int(c) for c in color), -1, cv2.LINE_AA)

    def _draw_preview(self, frame: np.ndarray, preview: np.ndarray):
        pw, ph = PREVIEW_SIZE
        if frame.shape[1] < pw + 20 or frame.shape[0] < ph + 20:
            return
        thumb = cv2.resize(preview, (pw, ph))
        x0, y0 = frame.shape[1] - pw - 20, frame.shape[0] - ph - 20
        frame[y0:y0 + ph, x0:x0 + pw] = thumb
        cv2.rectangle(frame, (x0, y0), (x0 + pw, y0 + ph), (120, 120, 120), 2)

    def _draw_hud(self, frame: np.ndarray, status: TrackingStatus, fps: float):
        """Draws the Heads-Up Display, nudged by the overlay layer."""
        dx, dy = self.overlay.translation
        ox, oy = int(round(dx)), int(round(-dy))
        source = status.active_source.value if status.active_source else "none"
        hud_elements = [
            f"FPS: {fps:.1f}",
            f"Source: {source}",
            f"State: {status.state.value}",
            f"Offset: {status.offset.x:+.2f} {status.offset.y:+.2f} {status.offset.z:+.2f}",
        ]
        if status.reduced_motion:
            hud_elements.append("Reduced motion")
        if status.permission_pending:
            hud_elements.append("Press P to enable motion tracking")

        for i, text in enumerate(hud_elements):
            cv2.putText(frame, text, (20 + ox, 40 + i * 30 + oy), self.font, 0.7, HUD_COLOR, 2, cv2.LINE_AA)

        # Corner brackets
        m, arm = 12, 30
        w, h = self.width, self.height
        for cx, cy, sx, sy in ((m, m, 1, 1), (w - m, m, -1, 1), (m, h - m, 1, -1), (w - m, h - m, -1, -1)):
            px, py = cx + ox, cy + oy
            cv2.line(frame, (px, py), (px + sx * arm, py), HUD_COLOR, 1, cv2.LINE_AA)
            cv2.line(frame, (px, py), (px, py + sy * arm), HUD_COLOR, 1, cv2.LINE_AA)
