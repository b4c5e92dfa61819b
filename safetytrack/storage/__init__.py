"""
Storage layer for SafetyTrack.

This module provides database connectivity, schema management, and
repository classes for persisting employees, inspections, and incidents.
"""

from safetytrack.storage.database import Database
from safetytrack.storage.repositories import (
    EmployeeRepository,
    IncidentRepository,
    InspectionRepository,
)

__all__ = [
    "Database",
    "EmployeeRepository",
    "IncidentRepository",
    "InspectionRepository",
]
