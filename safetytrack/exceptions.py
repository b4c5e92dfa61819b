"""
Exception classes for SafetyTrack.

This module defines the exception hierarchy used for infrastructure and
collaborator failures. Incident business-rule rejections are not raised;
they are returned as IncidentResult values (see
safetytrack.incidents.results). All custom exceptions inherit from
SafetyTrackError to allow for easy catching of any SafetyTrack-specific
exception.
"""

from typing import Any


class SafetyTrackError(Exception):
    """
    Base exception for all SafetyTrack errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


class ConfigurationError(SafetyTrackError):
    """
    Raised when there is an error in SafetyTrack configuration.

    Examples:
        - Missing configuration file
        - Invalid YAML syntax in configuration
        - Configuration value out of allowed range
        - Unparseable environment variable override
    """

    pass


class ValidationError(SafetyTrackError):
    """
    Raised when input to a collaborator fails validation.

    Used by the employee directory and inspection registration, which
    sit outside the incident rule engine.

    Examples:
        - Duplicate employee code
        - Hire date in the future
        - Training date before hire date
    """

    pass


class StorageError(SafetyTrackError):
    """
    Raised when there is an error in the storage layer.

    This is the infrastructure failure kind: the boundary layer should
    map it to a different response than a domain rejection.

    Examples:
        - Database connection failed
        - Query execution error or busy timeout
        - Constraint violation
    """

    pass


class ConcurrentModificationError(StorageError):
    """
    Raised when a versioned write loses a race.

    The incident was modified by another caller between the read that
    evaluated the guards and the write that applied the new state.
    """

    pass


class IncidentError(SafetyTrackError):
    """
    Raised when a rejected incident operation is unwrapped.

    The incident manager never raises this itself; it is produced by
    IncidentResult.unwrap() for callers that prefer exceptions.

    Attributes:
        code: The machine-readable rule violation code, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.code = code
