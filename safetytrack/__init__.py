"""
SafetyTrack: Workplace Safety Incident Tracking.

SafetyTrack records workplace safety incidents reported by employees,
decides which incidents need manager approval or a safety review, and
tracks each incident from report to closure.

Example:
    Reporting and closing an incident::

        from datetime import datetime, timezone

        from safetytrack.incidents import (
            IncidentCreateRequest,
            IncidentManager,
            IncidentSeverity,
            IncidentType,
        )
        from safetytrack.storage import Database

        db = Database("safetytrack.db")
        db.initialize()
        manager = IncidentManager.from_database(db)

        result = manager.create_incident(
            IncidentCreateRequest(
                incident_date=datetime.now(timezone.utc),
                location="Loading dock",
                description="Pallet jack clipped a shelf",
                incident_type=IncidentType.COLLISION,
                severity=IncidentSeverity.LOW,
                reported_by_id=employee_id,
            )
        )
        manager.close_incident(result.unwrap().id)

Public API:
    Version:
        __version__: The package version string

    Exceptions:
        SafetyTrackError: Base exception for all SafetyTrack errors
        ConfigurationError: Configuration-related errors
        ValidationError: Collaborator input errors
        StorageError: Storage layer errors
        ConcurrentModificationError: Lost optimistic version check
        IncidentError: Rejected incident operation, raised by unwrap()

    Incidents (via safetytrack.incidents):
        IncidentManager: Entry point for incident operations
        RuleEngine: Validation and classification rules
        IncidentLifecycle: Approve, close, update and review guards
"""

from safetytrack.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    IncidentError,
    SafetyTrackError,
    StorageError,
    ValidationError,
)
from safetytrack.version import __version__

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "SafetyTrackError",
    "ConfigurationError",
    "ValidationError",
    "StorageError",
    "ConcurrentModificationError",
    "IncidentError",
]
