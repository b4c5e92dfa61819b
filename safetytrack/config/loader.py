"""
Configuration loader for SafetyTrack.

This module provides the ConfigLoader class for loading configuration
from YAML files with environment variable overrides.
"""

import os
from pathlib import Path
from typing import Any

import yaml

from safetytrack.config.defaults import (
    get_default_config,
    get_development_config,
    get_production_config,
    get_test_config,
)
from safetytrack.config.schema import (
    DatabaseConfig,
    IncidentRulesConfig,
    LoggingConfig,
    SafetyTrackConfig,
)
from safetytrack.exceptions import ConfigurationError


class ConfigLoader:
    """
    Loads and validates SafetyTrack configuration.

    Configuration sources are applied in order, with later sources
    overriding earlier ones:
    1. Default values for the environment profile
    2. YAML configuration file
    3. Environment variables (SAFETYTRACK_ prefix)

    Example:
        Loading configuration::

            loader = ConfigLoader()
            config = loader.load("config/safetytrack.yaml", environment="production")
    """

    ENV_PREFIX = "SAFETYTRACK_"

    def __init__(self) -> None:
        """Initialize the configuration loader."""
        self._config: SafetyTrackConfig | None = None

    def load(
        self,
        config_path: str | Path | None = None,
        environment: str | None = None,
    ) -> SafetyTrackConfig:
        """
        Load configuration from file and environment.

        Args:
            config_path: Path to a YAML configuration file. If None,
                only defaults and environment variables are used.
            environment: Environment profile to use. Overrides any
                environment setting in the config file.

        Returns:
            A validated SafetyTrackConfig object.

        Raises:
            ConfigurationError: If configuration is invalid or file not found.
        """
        if environment:
            config = self._get_environment_defaults(environment)
        else:
            config = get_default_config()

        try:
            if config_path:
                file_config = self._load_yaml(config_path)
                config = self._merge_config(config, file_config)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid configuration value: {e}",
                details={"path": str(config_path)},
            ) from e

        config = self._apply_env_overrides(config)

        if environment:
            config.environment = environment

        self._validate(config)

        self._config = config
        return config

    def _get_environment_defaults(self, environment: str) -> SafetyTrackConfig:
        """Get default configuration for an environment."""
        env_lower = environment.lower()
        if env_lower == "production":
            return get_production_config()
        elif env_lower == "development":
            return get_development_config()
        elif env_lower == "test":
            return get_test_config()
        else:
            config = get_default_config()
            config.environment = environment
            return config

    def _load_yaml(self, path: str | Path) -> dict[str, Any]:
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: If file not found or invalid YAML.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                details={"path": str(path)},
            )

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {e}",
                details={"path": str(path)},
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {e}",
                details={"path": str(path)},
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping at the top level",
                details={"path": str(path)},
            )
        return data

    def _merge_config(
        self,
        base: SafetyTrackConfig,
        override: dict[str, Any],
    ) -> SafetyTrackConfig:
        """Merge file configuration into base configuration."""
        if not override:
            return base

        if "environment" in override:
            base.environment = str(override["environment"])

        if "metadata" in override and isinstance(override["metadata"], dict):
            base.metadata.update(override["metadata"])

        if "database" in override:
            base.database = self._merge_database(base.database, override["database"])

        if "rules" in override:
            base.rules = self._merge_rules(base.rules, override["rules"])

        if "logging" in override:
            base.logging = self._merge_logging(base.logging, override["logging"])

        return base

    def _merge_database(
        self,
        base: DatabaseConfig,
        override: dict[str, Any],
    ) -> DatabaseConfig:
        """Merge database configuration."""
        return DatabaseConfig(
            path=override.get("path", base.path),
            pool_size=override.get("pool_size", base.pool_size),
            timeout_seconds=override.get("timeout_seconds", base.timeout_seconds),
        )

    def _merge_rules(
        self,
        base: IncidentRulesConfig,
        override: dict[str, Any],
    ) -> IncidentRulesConfig:
        """Merge rule engine configuration."""
        return IncidentRulesConfig(
            max_incident_age_months=override.get(
                "max_incident_age_months", base.max_incident_age_months
            ),
            training_recency_months=override.get(
                "training_recency_months", base.training_recency_months
            ),
            approval_cost_threshold=override.get(
                "approval_cost_threshold", base.approval_cost_threshold
            ),
            review_cost_threshold=override.get(
                "review_cost_threshold", base.review_cost_threshold
            ),
            max_location_length=override.get(
                "max_location_length", base.max_location_length
            ),
            max_description_length=override.get(
                "max_description_length", base.max_description_length
            ),
            max_corrective_action_length=override.get(
                "max_corrective_action_length", base.max_corrective_action_length
            ),
            max_investigation_notes_length=override.get(
                "max_investigation_notes_length", base.max_investigation_notes_length
            ),
            max_witnesses_length=override.get(
                "max_witnesses_length", base.max_witnesses_length
            ),
        )

    def _merge_logging(
        self,
        base: LoggingConfig,
        override: dict[str, Any],
    ) -> LoggingConfig:
        """Merge logging configuration."""
        return LoggingConfig(
            level=override.get("level", base.level),
            format=override.get("format", base.format),
            output_path=override.get("output_path", base.output_path),
        )

    def _apply_env_overrides(self, config: SafetyTrackConfig) -> SafetyTrackConfig:
        """
        Apply environment variable overrides to configuration.

        Environment variables use the format SAFETYTRACK_SECTION_OPTION=value,
        for example SAFETYTRACK_DATABASE_PATH=incidents.db or
        SAFETYTRACK_RULES_APPROVAL_COST_THRESHOLD=7500.
        """
        env_mapping = {
            "SAFETYTRACK_ENVIRONMENT": ("environment", str),
            # Database
            "SAFETYTRACK_DATABASE_PATH": ("database.path", str),
            "SAFETYTRACK_DATABASE_POOL_SIZE": ("database.pool_size", int),
            "SAFETYTRACK_DATABASE_TIMEOUT_SECONDS": ("database.timeout_seconds", float),
            # Rules
            "SAFETYTRACK_RULES_MAX_INCIDENT_AGE_MONTHS": (
                "rules.max_incident_age_months",
                int,
            ),
            "SAFETYTRACK_RULES_TRAINING_RECENCY_MONTHS": (
                "rules.training_recency_months",
                int,
            ),
            "SAFETYTRACK_RULES_APPROVAL_COST_THRESHOLD": (
                "rules.approval_cost_threshold",
                int,
            ),
            "SAFETYTRACK_RULES_REVIEW_COST_THRESHOLD": (
                "rules.review_cost_threshold",
                int,
            ),
            # Logging
            "SAFETYTRACK_LOGGING_LEVEL": ("logging.level", str),
            "SAFETYTRACK_LOGGING_OUTPUT_PATH": ("logging.output_path", str),
        }

        for env_var, (path, converter) in env_mapping.items():
            value = os.environ.get(env_var)
            if value is not None:
                try:
                    converted = converter(value)
                    self._set_nested_attr(config, path, converted)
                except (ValueError, TypeError) as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_var}: {e}",
                        details={"env_var": env_var, "value": value},
                    ) from e

        return config

    def _set_nested_attr(self, obj: Any, path: str, value: Any) -> None:
        """Set a nested attribute using dot notation."""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        setattr(obj, parts[-1], value)

    def _validate(self, config: SafetyTrackConfig) -> None:
        """
        Validate the complete configuration.

        Environment overrides bypass __post_init__, so each section is
        rebuilt to re-run its checks.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        errors: list[str] = []

        try:
            SafetyTrackConfig(environment=config.environment)
        except ValueError as e:
            errors.append(f"environment: {e}")

        try:
            DatabaseConfig(
                path=config.database.path,
                pool_size=config.database.pool_size,
                timeout_seconds=config.database.timeout_seconds,
            )
        except ValueError as e:
            errors.append(f"database: {e}")

        try:
            IncidentRulesConfig(**vars(config.rules))
        except ValueError as e:
            errors.append(f"rules: {e}")

        try:
            LoggingConfig(
                level=config.logging.level,
                format=config.logging.format,
                output_path=config.logging.output_path,
            )
        except ValueError as e:
            errors.append(f"logging: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                details={"errors": errors},
            )

    @property
    def config(self) -> SafetyTrackConfig:
        """Get the currently loaded configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded. Call load() first.")
        return self._config


def load_config(
    config_path: str | Path | None = None,
    environment: str | None = None,
) -> SafetyTrackConfig:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to a YAML configuration file.
        environment: Environment profile to use.

    Returns:
        A validated SafetyTrackConfig object.
    """
    loader = ConfigLoader()
    return loader.load(config_path, environment)
