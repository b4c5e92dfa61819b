"""
Configuration system for SafetyTrack.

This module provides configuration loading, validation, and logging
setup. Configuration can be loaded from YAML files with environment
variable overrides.
"""

from safetytrack.config.loader import ConfigLoader, load_config
from safetytrack.config.logging_setup import configure_logging
from safetytrack.config.schema import (
    DatabaseConfig,
    IncidentRulesConfig,
    LoggingConfig,
    SafetyTrackConfig,
)

__all__ = [
    "ConfigLoader",
    "load_config",
    "configure_logging",
    "SafetyTrackConfig",
    "DatabaseConfig",
    "IncidentRulesConfig",
    "LoggingConfig",
]
