# ambient_parallax/parallax_engine/common/config.py
import copy
import logging
import yaml
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict, Optional, Tuple
from .enums import LogLevel, TrackingSource
from .errors import ConfigError

logger = logging.getLogger(__name__)

class TrackingConfig(BaseModel):
    """Flat set of tracking options consumed at construction time."""
    tracking_sensitivity: float = 0.8
    smoothing_factor: float = Field(0.06, gt=0.0, le=1.0)
    face_detection_fps: float = Field(20.0, gt=0.0)
    settle_delay_ms: float = Field(1000.0, ge=0.0)
    video_ready_timeout_s: float = Field(5.0, gt=0.0)
    face_smoothing: float = Field(0.15, gt=0.0, le=1.0)
    face_decay: float = Field(0.92, ge=0.0, lt=1.0)
    face_min_detection_confidence: float = Field(0.5, ge=0.0, le=1.0)
    depth_ratio_range: Tuple[float, float] = (0.6, 1.6)
    gyro_max_tilt: float = Field(40.0, gt=0.0)
    gyro_sensitivity: float = 1.0
    gyro_neutral_beta: float = 45.0
    fallback_animation_speed: float = 0.0003
    fallback_animation_radius: Tuple[float, float] = (0.4, 0.25)
    fallback_breathing: float = 0.1
    reduced_motion_speed_scale: float = 0.3
    reduced_motion_radius: Tuple[float, float] = (0.1, 0.05)
    desktop_fallback: TrackingSource = TrackingSource.POINTER
    mobile_fallback: TrackingSource = TrackingSource.AMBIENT

class CameraConfig(BaseModel):
    source: Any = 0
    resolution: Tuple[int, int] = (640, 480)
    target_fps: int = 30
    buffer_size: int = 5
    mirror_preview: bool = True

class VisualizationConfig(BaseModel):
    window_name: str = "Ambient Parallax"
    width: int = 1280
    height: int = 720
    draw_hud: bool = True
    show_camera_preview: bool = True
    camera_distance: float = 6.0
    max_camera_offset: Tuple[float, float, float] = (8.0, 1.4, 3.0)
    parallax_smoothing: float = Field(0.04, gt=0.0, le=1.0)
    parallax_tilt_strength: float = 0.25
    overlay_smoothing: float = Field(0.08, gt=0.0, le=1.0)
    ui_multiplier: float = 0.6
    spotlight_smoothing: float = Field(0.08, gt=0.0, le=1.0)
    spotlight_radius: float = 0.35
    dot_spacing: int = 24

class EnvironmentConfig(BaseModel):
    """Host facts the embedding page would normally supply."""
    has_touch_events: Optional[bool] = None
    max_touch_points: Optional[int] = None
    user_agent: Optional[str] = None
    camera_api: Optional[bool] = None
    reduced_motion: Optional[bool] = None

class LoggingConfig(BaseModel):
    level: LogLevel = LogLevel.INFO

class AppConfig(BaseModel):
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

def deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merges overrides into a copy of base. Lists are replaced, not merged."""
    result = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result

def build_config(raw: Optional[Dict[str, Any]] = None, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    data = deep_merge(raw or {}, overrides or {})
    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """Loads a YAML config file, filling every missing option with its default."""
    raw: Dict[str, Any] = {}
    if path is not None:
        try:
            with open(path, 'r') as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError as e:
            raise ConfigError(f"Configuration file '{path}' not found.") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse configuration file '{path}'. {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration file '{path}' must contain a mapping.")
        logger.debug("Loaded configuration from %s", path)
    return build_config(raw, overrides)
