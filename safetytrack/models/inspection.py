"""
Safety inspection data model for SafetyTrack.

Incidents may reference the safety inspection that uncovered them. The
incident core only checks that a referenced inspection exists.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from safetytrack.models.base import generate_uuid, model_to_dict, model_to_json, utc_now


class InspectionType(Enum):
    """Kinds of safety inspection."""

    ROUTINE = "Routine"
    INCIDENT_FOLLOW_UP = "IncidentFollowUp"
    COMPLIANCE = "Compliance"
    EMERGENCY = "Emergency"
    PRE_SHIFT = "PreShift"


class InspectionStatus(Enum):
    """Progress of a safety inspection."""

    SCHEDULED = "Scheduled"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    REQUIRES_ACTION = "RequiresAction"
    CLOSED = "Closed"


@dataclass(frozen=True)
class SafetyInspection:
    """
    A workplace safety inspection.

    Attributes:
        id: Unique identifier for the inspection.
        inspection_date: When the inspection took place.
        location: Where the inspection took place.
        inspector_name: Name of the inspector.
        inspector_id: Employee id of the inspector.
        inspection_type: Kind of inspection.
        status: Current inspection status.
        risk_score: Inspector's risk score for the location.
        findings: What the inspection found.
        recommendations: Suggested remediation, if any.
        follow_up_date: When a follow-up is due, if any.
        requires_follow_up: Whether a follow-up inspection is needed.
    """

    id: str = field(default_factory=generate_uuid)
    inspection_date: datetime = field(default_factory=utc_now)
    location: str = ""
    inspector_name: str = ""
    inspector_id: str | None = None
    inspection_type: InspectionType = InspectionType.ROUTINE
    status: InspectionStatus = InspectionStatus.SCHEDULED
    risk_score: int = 0
    findings: str = ""
    recommendations: str | None = None
    follow_up_date: datetime | None = None
    requires_follow_up: bool = False

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the inspection to a dictionary."""
        return model_to_dict(self, exclude_none)

    def to_json(self, indent: int | None = None, exclude_none: bool = False) -> str:
        """Convert the inspection to a JSON string."""
        return model_to_json(self, indent, exclude_none)
