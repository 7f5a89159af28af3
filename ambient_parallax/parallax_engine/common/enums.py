# ambient_parallax/parallax_engine/common/enums.py
from enum import Enum

class TrackerState(str, Enum):
    """Defines the lifecycle state of a single estimator."""
    UNINITIALIZED = "UNINITIALIZED"
    INITIALIZING = "INITIALIZING"
    AWAITING_PERMISSION = "AWAITING_PERMISSION"
    ACTIVE = "ACTIVE"
    DENIED = "DENIED"
    UNAVAILABLE = "UNAVAILABLE"
    STOPPED = "STOPPED"

class TrackingSource(str, Enum):
    """The closed set of motion sources the coordinator can select."""
    FACE = "face"
    ORIENTATION = "orientation"
    POINTER = "pointer"
    AMBIENT = "ambient"

class ArbitratorState(str, Enum):
    """Defines the operational state of the TrackingCoordinator."""
    SELECTING = "SELECTING"
    WAITING_PERMISSION = "WAITING_PERMISSION"
    TRACKING = "TRACKING"
    DEGRADED = "DEGRADED"
    STOPPED = "STOPPED"

class LogLevel(str, Enum):
    """Defines logging levels for structured logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
