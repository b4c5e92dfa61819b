"""
Configuration schema definitions for SafetyTrack.

This module defines the configuration structure using dataclasses.
All configuration options are strongly typed with validation support.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class DatabaseConfig:
    """
    Database configuration options.

    Attributes:
        path: Path to the SQLite database file. Use ":memory:" for
            in-memory database (useful for testing).
        pool_size: Maximum number of connections in the connection pool.
        timeout_seconds: Busy timeout in seconds for database operations.
            Operations exceeding this surface as StorageError.
    """

    path: str = "safetytrack.db"
    pool_size: int = 5
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.pool_size < 1:
            raise ValueError("pool_size must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


@dataclass
class IncidentRulesConfig:
    """
    Thresholds used by the incident rule engine.

    Attributes:
        max_incident_age_months: How far back an incident date may lie.
        training_recency_months: How recent an involved employee's safety
            training must be for an ImproperUseOfPPE incident.
        approval_cost_threshold: Estimated cost above which manager
            approval is always required.
        review_cost_threshold: Estimated cost above which safety review
            is always required. Also the high-risk cost cutoff.
        max_location_length: Maximum length of the location field.
        max_description_length: Maximum length of the description field.
        max_corrective_action_length: Maximum length of corrective action.
        max_investigation_notes_length: Maximum length of investigation notes.
        max_witnesses_length: Maximum length of the witnesses field.
    """

    max_incident_age_months: int = 12
    training_recency_months: int = 6
    approval_cost_threshold: int = 5000
    review_cost_threshold: int = 10000
    max_location_length: int = 200
    max_description_length: int = 1000
    max_corrective_action_length: int = 500
    max_investigation_notes_length: int = 1000
    max_witnesses_length: int = 500

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_incident_age_months < 1:
            raise ValueError("max_incident_age_months must be at least 1")
        if self.training_recency_months < 1:
            raise ValueError("training_recency_months must be at least 1")
        if self.approval_cost_threshold < 0:
            raise ValueError("approval_cost_threshold must be non-negative")
        if self.review_cost_threshold < self.approval_cost_threshold:
            raise ValueError("review_cost_threshold must be >= approval_cost_threshold")
        for name in (
            "max_location_length",
            "max_description_length",
            "max_corrective_action_length",
            "max_investigation_notes_length",
            "max_witnesses_length",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")


@dataclass
class LoggingConfig:
    """
    Logging configuration options.

    Attributes:
        level: Minimum log level to output. One of: DEBUG, INFO,
            WARNING, ERROR, CRITICAL.
        format: Log message format string. Supports standard Python
            logging format specifiers.
        output_path: Path to log file. If empty, logs are written to
            stderr only.
    """

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    output_path: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {valid_levels}")


@dataclass
class SafetyTrackConfig:
    """
    Root configuration object for SafetyTrack.

    Attributes:
        environment: The environment profile name (development, staging,
            production, test).
        database: Database configuration options.
        rules: Incident rule engine thresholds.
        logging: Logging configuration options.
        metadata: Additional custom configuration as key-value pairs.
    """

    environment: str = "development"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    rules: IncidentRulesConfig = field(default_factory=IncidentRulesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        valid_environments = ["development", "staging", "production", "test"]
        if self.environment.lower() not in valid_environments:
            raise ValueError(f"environment must be one of: {valid_environments}")

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary."""
        return {
            "environment": self.environment,
            "database": {
                "path": self.database.path,
                "pool_size": self.database.pool_size,
                "timeout_seconds": self.database.timeout_seconds,
            },
            "rules": {
                "max_incident_age_months": self.rules.max_incident_age_months,
                "training_recency_months": self.rules.training_recency_months,
                "approval_cost_threshold": self.rules.approval_cost_threshold,
                "review_cost_threshold": self.rules.review_cost_threshold,
                "max_location_length": self.rules.max_location_length,
                "max_description_length": self.rules.max_description_length,
                "max_corrective_action_length": self.rules.max_corrective_action_length,
                "max_investigation_notes_length": self.rules.max_investigation_notes_length,
                "max_witnesses_length": self.rules.max_witnesses_length,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "output_path": self.logging.output_path,
            },
            "metadata": self.metadata,
        }
