"""
Logging setup for SafetyTrack.

All SafetyTrack modules log through children of the "safetytrack"
logger. configure_logging() attaches a single handler to that logger
based on LoggingConfig.
"""

import logging
import sys

from safetytrack.config.schema import LoggingConfig

ROOT_LOGGER_NAME = "safetytrack"


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """
    Configure the "safetytrack" logger.

    Replaces any handler a previous call installed, so calling this
    again with a new config takes effect.

    Args:
        config: Logging configuration.

    Returns:
        The configured "safetytrack" logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(config.level.upper())

    for existing in list(logger.handlers):
        if getattr(existing, "_safetytrack_handler", False):
            logger.removeHandler(existing)
            existing.close()

    handler: logging.Handler
    if config.output_path:
        handler = logging.FileHandler(config.output_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(config.format))
    handler._safetytrack_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    return logger
