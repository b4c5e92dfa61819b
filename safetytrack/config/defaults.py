"""
Default configuration values for SafetyTrack.

The rule thresholds mirror the organisation's safety policy: incidents
may be reported up to a year after the fact, PPE incidents need training
within the last six months, and costs above 5000 / 10000 escalate to
manager approval / safety review.
"""

from safetytrack.config.schema import (
    DatabaseConfig,
    IncidentRulesConfig,
    LoggingConfig,
    SafetyTrackConfig,
)

DEFAULT_DATABASE = DatabaseConfig(
    path="safetytrack.db",
    pool_size=5,
    timeout_seconds=30.0,
)

DEFAULT_RULES = IncidentRulesConfig(
    max_incident_age_months=12,
    training_recency_months=6,
    approval_cost_threshold=5000,
    review_cost_threshold=10000,
)

DEFAULT_LOGGING = LoggingConfig(
    level="INFO",
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    output_path="",  # stderr only
)


def get_default_config() -> SafetyTrackConfig:
    """
    Get the default configuration.

    Returns:
        SafetyTrackConfig with default values.
    """
    return SafetyTrackConfig(
        environment="development",
        database=DatabaseConfig(
            path=DEFAULT_DATABASE.path,
            pool_size=DEFAULT_DATABASE.pool_size,
            timeout_seconds=DEFAULT_DATABASE.timeout_seconds,
        ),
        rules=IncidentRulesConfig(
            max_incident_age_months=DEFAULT_RULES.max_incident_age_months,
            training_recency_months=DEFAULT_RULES.training_recency_months,
            approval_cost_threshold=DEFAULT_RULES.approval_cost_threshold,
            review_cost_threshold=DEFAULT_RULES.review_cost_threshold,
        ),
        logging=LoggingConfig(
            level=DEFAULT_LOGGING.level,
            format=DEFAULT_LOGGING.format,
            output_path=DEFAULT_LOGGING.output_path,
        ),
        metadata={},
    )


def get_production_config() -> SafetyTrackConfig:
    """
    Get a production configuration.

    Returns:
        SafetyTrackConfig with quieter logging.
    """
    config = get_default_config()
    config.environment = "production"
    config.logging.level = "WARNING"
    return config


def get_development_config() -> SafetyTrackConfig:
    """
    Get a development configuration.

    Returns:
        SafetyTrackConfig with verbose logging and a separate database file.
    """
    config = get_default_config()
    config.environment = "development"
    config.logging.level = "DEBUG"
    config.database.path = "safetytrack_dev.db"
    return config


def get_test_config() -> SafetyTrackConfig:
    """
    Get a test configuration.

    Returns:
        SafetyTrackConfig using an in-memory database.
    """
    config = get_default_config()
    config.environment = "test"
    config.database.path = ":memory:"
    config.logging.level = "DEBUG"
    return config
