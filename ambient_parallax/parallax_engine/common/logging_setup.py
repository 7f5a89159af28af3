# ambient_parallax/parallax_engine/common/logging_setup.py
import logging
from .enums import LogLevel

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

def configure_logging(level: LogLevel = LogLevel.INFO) -> None:
    """Configures the root logger once for the application."""
    logging.basicConfig(level=getattr(logging, LogLevel(level).value), format=LOG_FORMAT)
