"""
Incident data models for SafetyTrack.

This module defines the incident aggregate, its enumerations, the
request objects used to create and update incidents, and the timeline
entries that record every state change.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from safetytrack.models.base import generate_uuid, model_to_dict, model_to_json, utc_now


class IncidentSeverity(Enum):
    """
    Ordinal risk classification for incidents.

    Severity sets the baseline approval and review requirements.
    """

    LOW = "Low"
    """Minor event with no lasting harm. No approval required."""

    MEDIUM = "Medium"
    """Event with moderate harm or cost. Requires manager approval."""

    HIGH = "High"
    """
    Serious event. Requires manager approval and safety review.
    Examples: fall from height, hospitalization, major equipment damage.
    """


class IncidentType(Enum):
    """Categories of workplace safety incident."""

    FALL = "Fall"
    """Slip, trip, or fall."""

    ELECTRIC_SHOCK = "ElectricShock"
    """Contact with live electrical equipment."""

    IMPROPER_USE_OF_PPE = "ImproperUseOfPPE"
    """Personal protective equipment missing or misused."""

    COLLISION = "Collision"
    """Collision with a vehicle, equipment, or structure."""

    OTHER = "Other"
    """Anything not covered above."""


class IncidentStatus(Enum):
    """
    Lifecycle states of an incident.

    UNDER_INVESTIGATION and REQUIRES_FOLLOW_UP are recognised but no
    modeled transition leads into them.
    """

    REPORTED = "Reported"
    """Recorded; no approval required."""

    PENDING_APPROVAL = "PendingApproval"
    """Waiting for a manager to approve."""

    APPROVED = "Approved"
    """A manager approved the incident; it may now be closed."""

    CLOSED = "Closed"
    """Resolved. Terminal."""

    UNDER_INVESTIGATION = "UnderInvestigation"
    REQUIRES_FOLLOW_UP = "RequiresFollowUp"


class TimelineEventType(Enum):
    """Types of events recorded in an incident timeline."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    RECLASSIFIED = "RECLASSIFIED"
    APPROVED = "APPROVED"
    SAFETY_REVIEWED = "SAFETY_REVIEWED"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class Incident:
    """
    A reported workplace safety incident.

    This class is immutable (frozen). The rule engine and lifecycle
    state machine return updated copies rather than mutating in place.

    Relationships are plain ids. Resolving them to full records is the
    job of the employee directory and inspection repository.

    Attributes:
        id: Unique identifier for the incident.
        incident_date: When the incident happened.
        location: Where the incident happened.
        description: What happened.
        incident_type: Category of the incident.
        severity: Severity of the incident.
        reported_by_id: Employee who reported the incident.
        involved_employee_id: Employee involved, if any.
        safety_inspection_id: Inspection that uncovered the incident, if any.
        corrective_action: Action taken to prevent recurrence.
        investigation_notes: Notes from the investigation.
        witnesses: Free-text list of witnesses.
        estimated_cost: Estimated cost in whole currency units.
        is_near_miss: Whether nobody was actually harmed.
        status: Current lifecycle state.
        requires_manager_approval: Whether a manager must approve
            before the incident can be closed.
        requires_safety_review: Whether a safety officer should review
            the incident.
        manager_approval_date: When a manager approved the incident.
        manager_approved_by: Name of the approving manager.
        safety_review_date: When the safety review was recorded.
        safety_reviewed_by: Name of the safety reviewer.
        is_resolved: Whether the incident has been closed.
        resolved_date: When the incident was closed.
        created_at: When the record was created.
        updated_at: When the record was last written.
        version: Optimistic concurrency counter, incremented on every write.
    """

    id: str = field(default_factory=generate_uuid)
    incident_date: datetime = field(default_factory=utc_now)
    location: str = ""
    description: str = ""
    incident_type: IncidentType = IncidentType.OTHER
    severity: IncidentSeverity = IncidentSeverity.LOW
    reported_by_id: str = ""
    involved_employee_id: str | None = None
    safety_inspection_id: str | None = None
    corrective_action: str | None = None
    investigation_notes: str | None = None
    witnesses: str | None = None
    estimated_cost: int = 0
    is_near_miss: bool = False
    status: IncidentStatus = IncidentStatus.REPORTED
    requires_manager_approval: bool = False
    requires_safety_review: bool = False
    manager_approval_date: datetime | None = None
    manager_approved_by: str | None = None
    safety_review_date: datetime | None = None
    safety_reviewed_by: str | None = None
    is_resolved: bool = False
    resolved_date: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 0

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the incident to a dictionary."""
        return model_to_dict(self, exclude_none)

    def to_json(self, indent: int | None = None, exclude_none: bool = False) -> str:
        """Convert the incident to a JSON string."""
        return model_to_json(self, indent, exclude_none)

    def __hash__(self) -> int:
        """Return hash based on the incident's id."""
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        """Check equality based on incident id."""
        if not isinstance(other, Incident):
            return NotImplemented
        return self.id == other.id

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return (
            f"Incident(id={self.id!r}, type={self.incident_type.value}, "
            f"severity={self.severity.value}, status={self.status.value})"
        )

    def is_pending_approval(self) -> bool:
        """Check if the incident is waiting for manager approval."""
        return (
            self.requires_manager_approval
            and self.status == IncidentStatus.PENDING_APPROVAL
        )

    def is_approved(self) -> bool:
        """Check if the incident is currently approved or was closed after approval."""
        return (
            self.status in (IncidentStatus.APPROVED, IncidentStatus.CLOSED)
            and self.manager_approval_date is not None
        )

    def is_safety_reviewed(self) -> bool:
        """Check if a safety review has been recorded."""
        return self.safety_review_date is not None

    def is_high_risk(self, cost_threshold: int = 10000) -> bool:
        """Check if the incident is High severity or costs more than the threshold."""
        return (
            self.severity == IncidentSeverity.HIGH
            or self.estimated_cost > cost_threshold
        )


@dataclass(frozen=True)
class IncidentCreateRequest:
    """
    Everything needed to report a new incident.

    Attributes mirror the descriptive, optional, and relationship fields
    of Incident. Managed fields (status, flags, timestamps) are derived
    by the rule engine and cannot be supplied.
    """

    incident_date: datetime
    location: str
    description: str
    incident_type: IncidentType
    severity: IncidentSeverity
    reported_by_id: str
    involved_employee_id: str | None = None
    safety_inspection_id: str | None = None
    corrective_action: str | None = None
    investigation_notes: str | None = None
    witnesses: str | None = None
    estimated_cost: int = 0
    is_near_miss: bool = False

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the request to a dictionary."""
        return model_to_dict(self, exclude_none)


@dataclass(frozen=True)
class IncidentUpdateRequest:
    """
    A partial change to an existing incident.

    Only fields that are not None are applied. Supplying severity
    re-runs classification.
    """

    location: str | None = None
    description: str | None = None
    incident_type: IncidentType | None = None
    severity: IncidentSeverity | None = None
    corrective_action: str | None = None
    investigation_notes: str | None = None
    witnesses: str | None = None
    involved_employee_id: str | None = None
    safety_inspection_id: str | None = None
    estimated_cost: int | None = None
    is_near_miss: bool | None = None

    def changed_fields(self) -> dict[str, Any]:
        """Return the supplied fields as a name -> value mapping."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        """Check if no fields were supplied."""
        return not self.changed_fields()


@dataclass(frozen=True)
class IncidentTimelineEntry:
    """
    An entry in an incident's audit trail.

    Attributes:
        id: Unique identifier for the timeline entry.
        incident_id: ID of the incident this entry belongs to.
        event_type: Type of event that occurred.
        old_value: Previous value (for changes).
        new_value: New value (for changes).
        actor: Who performed the action.
        timestamp: When the event occurred.
    """

    id: int = 0
    incident_id: str = ""
    event_type: TimelineEventType = TimelineEventType.CREATED
    old_value: str | None = None
    new_value: str | None = None
    actor: str | None = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the timeline entry to a dictionary."""
        return model_to_dict(self, exclude_none)

    def __repr__(self) -> str:
        return (
            f"IncidentTimelineEntry(id={self.id}, event={self.event_type.value}, "
            f"actor={self.actor!r})"
        )
