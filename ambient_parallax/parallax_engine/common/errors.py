# ambient_parallax/parallax_engine/common/errors.py

class TrackingError(Exception):
    """Base class for every estimator-level failure."""

class PermissionDenied(TrackingError):
    """The user or platform refused access to a sensor or camera."""

class HardwareUnavailable(TrackingError):
    """No sensor or camera is present."""

class LibraryLoadFailure(TrackingError):
    """The face detection backend could not be imported or constructed."""

class Timeout(TrackingError):
    """The video stream never delivered a frame within the allowed window."""

class InvalidReading(TrackingError):
    """A sensor reading was null or non-finite. Dropped, never surfaced."""

class ConfigError(Exception):
    """Raised when a configuration file cannot be read or validated."""
