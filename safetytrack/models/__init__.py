"""
Data models for SafetyTrack.

This module exports the collaborator data models used by the incident
core. Incident models live in safetytrack.incidents.
"""

from safetytrack.models.base import (
    generate_uuid,
    model_to_dict,
    model_to_json,
    utc_now,
)
from safetytrack.models.employee import SAFETY_TRAINING_LEVELS, Employee
from safetytrack.models.inspection import (
    InspectionStatus,
    InspectionType,
    SafetyInspection,
)

__all__ = [
    # Helpers
    "generate_uuid",
    "model_to_dict",
    "model_to_json",
    "utc_now",
    # Employees
    "Employee",
    "SAFETY_TRAINING_LEVELS",
    # Inspections
    "InspectionStatus",
    "InspectionType",
    "SafetyInspection",
]
