"""
Incident management for SafetyTrack.

This module provides the IncidentManager class, the entry point for
reporting, updating, approving, reviewing and closing workplace safety
incidents.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from safetytrack.config.schema import IncidentRulesConfig, SafetyTrackConfig
from safetytrack.employees.directory import EmployeeDirectory
from safetytrack.incidents.lifecycle import IncidentLifecycle
from safetytrack.incidents.models import (
    Incident,
    IncidentCreateRequest,
    IncidentSeverity,
    IncidentStatus,
    IncidentTimelineEntry,
    IncidentType,
    IncidentUpdateRequest,
    TimelineEventType,
)
from safetytrack.incidents.results import (
    IncidentResult,
    IncidentRuleError,
    RuleViolationCode,
)
from safetytrack.incidents.rules import RuleEngine
from safetytrack.models.base import ensure_utc, generate_uuid, parse_datetime, utc_now
from safetytrack.storage import (
    Database,
    EmployeeRepository,
    IncidentRepository,
    InspectionRepository,
)

logger = logging.getLogger("safetytrack.incidents.manager")


# Type alias for incident callbacks
IncidentCallback = Callable[["IncidentEvent"], None]


@dataclass
class IncidentEvent:
    """
    Event emitted when an incident state changes.

    Attributes:
        event_type: Type of event that occurred.
        incident_id: ID of the incident.
        incident: The incident after the change.
        actor: Who triggered the event.
        old_value: Previous value (for changes).
        new_value: New value (for changes).
        timestamp: When the event occurred.
    """

    event_type: TimelineEventType
    incident_id: str
    incident: Incident
    actor: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if self.timestamp is None:
            self.timestamp = utc_now()


class IncidentManager:
    """
    Manages the lifecycle of workplace safety incidents.

    The IncidentManager provides functionality to:
    - Report incidents through the validation and classification rules
    - Update, approve, review and close incidents
    - Query incidents by severity, risk, employee, location and date
    - Emit events for incident state changes

    Rejections are returned as failed IncidentResults. Storage failures
    are raised as StorageError, and a write that lost a race with another
    writer raises ConcurrentModificationError.

    Example:
        Using the IncidentManager::

            from safetytrack.incidents import IncidentManager
            from safetytrack.storage import Database

            db = Database("safetytrack.db")
            db.initialize()
            manager = IncidentManager.from_database(db)

            result = manager.create_incident(request)
            if result.ok and result.incident.is_pending_approval():
                manager.approve_incident(result.incident.id, "M. Okafor")
            manager.close_incident(result.incident.id)
    """

    def __init__(
        self,
        repository: IncidentRepository,
        directory: EmployeeDirectory,
        inspections: InspectionRepository,
        config: IncidentRulesConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the IncidentManager.

        Args:
            repository: Repository for incident persistence.
            directory: Employee lookups.
            inspections: Repository for safety inspections.
            config: Rule thresholds.
            clock: Source of the current time.
        """
        self._repository = repository
        self._config = config or IncidentRulesConfig()
        self._clock = clock
        self._rules = RuleEngine(
            directory, repository, inspections, self._config, clock
        )
        self._lifecycle = IncidentLifecycle(clock)
        self._callbacks: list[IncidentCallback] = []

    @classmethod
    def from_database(
        cls,
        db: Database,
        config: SafetyTrackConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "IncidentManager":
        """
        Build a manager and its collaborators over one database.

        Args:
            db: An initialized Database.
            config: Application configuration; rule thresholds are taken
                from config.rules.
            clock: Source of the current time.
        """
        rules = config.rules if config else None
        return cls(
            repository=IncidentRepository(db),
            directory=EmployeeDirectory(EmployeeRepository(db), clock),
            inspections=InspectionRepository(db),
            config=rules,
            clock=clock,
        )

    @property
    def rules(self) -> RuleEngine:
        """The rule engine used for validation and classification."""
        return self._rules

    @property
    def lifecycle(self) -> IncidentLifecycle:
        """The lifecycle state machine."""
        return self._lifecycle

    # -------------------------------------------------------------------------
    # Incident Operations
    # -------------------------------------------------------------------------

    def create_incident(self, request: IncidentCreateRequest) -> IncidentResult:
        """
        Report a new incident.

        The request is validated, the incident is built and classified,
        then persisted with a CREATED timeline entry.

        Args:
            request: The creation request.

        Returns:
            The stored incident, or the first rule violation.
        """
        error = self._rules.validate_creation(request)
        if error:
            return self._reject("create", None, error)

        now = self._clock()
        incident = Incident(
            id=generate_uuid(),
            incident_date=ensure_utc(request.incident_date),
            location=request.location,
            description=request.description,
            incident_type=request.incident_type,
            severity=request.severity,
            reported_by_id=request.reported_by_id,
            involved_employee_id=request.involved_employee_id,
            safety_inspection_id=request.safety_inspection_id,
            corrective_action=request.corrective_action,
            investigation_notes=request.investigation_notes,
            witnesses=request.witnesses,
            estimated_cost=request.estimated_cost,
            is_near_miss=request.is_near_miss,
            created_at=now,
            updated_at=now,
            version=0,
        )
        incident = self._rules.classify(incident)

        self._repository.add(
            incident.to_dict(),
            actor=request.reported_by_id,
            timestamp=now.isoformat(),
        )
        logger.info(
            f"Created incident {incident.id} ({incident.incident_type.value}/"
            f"{incident.severity.value}) with status {incident.status.value}"
        )
        self._emit_event(
            TimelineEventType.CREATED,
            incident,
            actor=request.reported_by_id,
            new_value=incident.status.value,
        )
        return IncidentResult.success(incident)

    def update_incident(
        self, incident_id: str, changes: IncidentUpdateRequest
    ) -> IncidentResult:
        """
        Apply a partial update to an incident.

        Supplying severity re-runs classification, which re-derives the
        approval and review flags and the status. Earlier approval and
        review metadata is kept.

        Args:
            incident_id: The incident ID.
            changes: The supplied fields.

        Returns:
            The updated incident, or the rule violation.
        """
        incident = self.get(incident_id)
        if incident is None:
            return self._not_found("update", incident_id)

        error = self._lifecycle.check_update(incident)
        if error:
            return self._reject("update", incident_id, error)

        error = self._rules.validate_update(incident, changes)
        if error:
            return self._reject("update", incident_id, error)

        if changes.is_empty():
            return IncidentResult.success(incident)

        result = self._lifecycle.apply_update(incident, changes)
        if result.error is not None:
            return self._reject("update", incident_id, result.error)
        updated = result.unwrap()

        changed = ", ".join(sorted(changes.changed_fields()))
        event_type = TimelineEventType.UPDATED
        old_value = None
        new_value = changed
        if changes.severity is not None:
            updated = self._rules.classify(updated)
            event_type = TimelineEventType.RECLASSIFIED
            old_value = incident.status.value
            new_value = updated.status.value

        updated = self._save(updated, incident.version, event_type, old_value, new_value)
        logger.info(f"Updated incident {incident_id}: {changed}")
        self._emit_event(event_type, updated, old_value=old_value, new_value=new_value)
        return IncidentResult.success(updated)

    def approve_incident(self, incident_id: str, approver_name: str) -> IncidentResult:
        """
        Record manager approval for a pending incident.

        Args:
            incident_id: The incident ID.
            approver_name: Name of the approving manager.

        Returns:
            The Approved incident, or the rule violation.
        """
        incident = self.get(incident_id)
        if incident is None:
            return self._not_found("approve", incident_id)

        result = self._lifecycle.approve(incident, approver_name)
        if result.error is not None:
            return self._reject("approve", incident_id, result.error)

        approved = self._save(
            result.unwrap(),
            incident.version,
            TimelineEventType.APPROVED,
            incident.status.value,
            IncidentStatus.APPROVED.value,
            actor=approver_name,
        )
        logger.info(f"Incident {incident_id} approved by {approved.manager_approved_by}")
        self._emit_event(
            TimelineEventType.APPROVED,
            approved,
            actor=approver_name,
            old_value=incident.status.value,
            new_value=approved.status.value,
        )
        return IncidentResult.success(approved)

    def close_incident(self, incident_id: str) -> IncidentResult:
        """
        Close an incident.

        Incidents that require manager approval must be Approved first.

        Args:
            incident_id: The incident ID.

        Returns:
            The Closed incident, or the rule violation.
        """
        incident = self.get(incident_id)
        if incident is None:
            return self._not_found("close", incident_id)

        result = self._lifecycle.close(incident)
        if result.error is not None:
            return self._reject("close", incident_id, result.error)

        closed = self._save(
            result.unwrap(),
            incident.version,
            TimelineEventType.CLOSED,
            incident.status.value,
            IncidentStatus.CLOSED.value,
        )
        logger.info(f"Closed incident {incident_id}")
        self._emit_event(
            TimelineEventType.CLOSED,
            closed,
            old_value=incident.status.value,
            new_value=closed.status.value,
        )
        return IncidentResult.success(closed)

    def record_safety_review(self, incident_id: str, reviewer_name: str) -> IncidentResult:
        """
        Record that a safety officer reviewed an incident.

        The review does not change status and is not required for closing.

        Args:
            incident_id: The incident ID.
            reviewer_name: Name of the safety reviewer.

        Returns:
            The reviewed incident, or the rule violation.
        """
        incident = self.get(incident_id)
        if incident is None:
            return self._not_found("review", incident_id)

        result = self._lifecycle.record_safety_review(incident, reviewer_name)
        if result.error is not None:
            return self._reject("review", incident_id, result.error)

        reviewed = self._save(
            result.unwrap(),
            incident.version,
            TimelineEventType.SAFETY_REVIEWED,
            new_value=reviewer_name.strip(),
            actor=reviewer_name,
        )
        logger.info(f"Safety review recorded for incident {incident_id}")
        self._emit_event(
            TimelineEventType.SAFETY_REVIEWED,
            reviewed,
            actor=reviewer_name,
            new_value=reviewed.safety_reviewed_by,
        )
        return IncidentResult.success(reviewed)

    # -------------------------------------------------------------------------
    # Incident Queries
    # -------------------------------------------------------------------------

    def get(self, incident_id: str) -> Incident | None:
        """
        Get an incident by ID.

        Args:
            incident_id: The incident ID.

        Returns:
            The Incident if found, None otherwise.
        """
        data = self._repository.get_by_id(incident_id)
        if data is None:
            return None
        return self._dict_to_incident(data)

    def get_details(self, incident_id: str) -> dict[str, Any] | None:
        """
        Get an incident as a dict with employee names resolved.

        Adds reported_by_name and involved_employee_name to the
        incident's to_dict() output.
        """
        data = self._repository.get_by_id_with_relations(incident_id)
        if data is None:
            return None
        details = self._dict_to_incident(data).to_dict()
        details["reported_by_name"] = data.get("reported_by_name")
        details["involved_employee_name"] = data.get("involved_employee_name")
        return details

    def list_incidents(
        self,
        status: IncidentStatus | None = None,
        severity: IncidentSeverity | None = None,
        incident_type: IncidentType | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Incident]:
        """
        List incidents with optional filters, newest incident date first.

        Args:
            status: Filter by status.
            severity: Filter by severity.
            incident_type: Filter by type.
            limit: Maximum number of results.
            offset: Number of results to skip.
        """
        results = self._repository.list_all(
            status=status.value if status else None,
            severity=severity.value if severity else None,
            incident_type=incident_type.value if incident_type else None,
            limit=limit,
            offset=offset,
        )
        return [self._dict_to_incident(r) for r in results]

    def find_by_severity(self, severity: IncidentSeverity) -> list[Incident]:
        """Get incidents of a given severity."""
        return self._to_incidents(self._repository.find_by_severity(severity.value))

    def find_pending_approval(self) -> list[Incident]:
        """Get incidents waiting for manager approval."""
        return self._to_incidents(self._repository.find_pending_approval())

    def find_high_risk(self) -> list[Incident]:
        """Get High severity incidents and those above the review cost threshold."""
        return self._to_incidents(
            self._repository.find_high_risk(self._config.review_cost_threshold)
        )

    def find_by_employee(self, employee_id: str) -> list[Incident]:
        """Get incidents reported by or involving an employee."""
        return self._to_incidents(self._repository.find_by_employee(employee_id))

    def find_recent(self, limit: int = 5) -> list[Incident]:
        """Get the most recent incidents by incident date."""
        return self._to_incidents(self._repository.find_recent(limit))

    def find_by_location(self, fragment: str) -> list[Incident]:
        """Get incidents whose location contains the fragment."""
        return self._to_incidents(self._repository.find_by_location(fragment))

    def find_by_date_range(self, start: datetime, end: datetime) -> list[Incident]:
        """Get incidents dated between start and end, inclusive."""
        return self._to_incidents(
            self._repository.find_by_date_range(
                ensure_utc(start).isoformat(), ensure_utc(end).isoformat()
            )
        )

    def get_timeline(self, incident_id: str) -> list[IncidentTimelineEntry]:
        """
        Get the audit trail of an incident, oldest first.

        Args:
            incident_id: The incident ID.
        """
        return [
            self._dict_to_timeline_entry(d)
            for d in self._repository.get_timeline(incident_id)
        ]

    # -------------------------------------------------------------------------
    # Event Callbacks
    # -------------------------------------------------------------------------

    def on_event(self, callback: IncidentCallback) -> None:
        """
        Register a callback for incident events.

        Args:
            callback: Function to call when events occur.
        """
        self._callbacks.append(callback)

    def remove_callback(self, callback: IncidentCallback) -> bool:
        """
        Remove a callback.

        Args:
            callback: The callback to remove.

        Returns:
            True if the callback was removed, False if not found.
        """
        try:
            self._callbacks.remove(callback)
            return True
        except ValueError:
            return False

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _save(
        self,
        incident: Incident,
        expected_version: int,
        event_type: TimelineEventType,
        old_value: str | None = None,
        new_value: str | None = None,
        actor: str | None = None,
    ) -> Incident:
        """Persist a changed incident and return it with its new version."""
        version = self._repository.save(
            incident.to_dict(),
            expected_version=expected_version,
            event_type=event_type.value,
            old_value=old_value,
            new_value=new_value,
            actor=actor,
            timestamp=self._clock().isoformat(),
        )
        return replace(incident, version=version)

    def _not_found(self, operation: str, incident_id: str) -> IncidentResult:
        return self._reject(
            operation,
            incident_id,
            IncidentRuleError(
                code=RuleViolationCode.INCIDENT_NOT_FOUND,
                message="Incident not found.",
                details={"incident_id": incident_id},
            ),
        )

    def _reject(
        self,
        operation: str,
        incident_id: str | None,
        error: IncidentRuleError,
    ) -> IncidentResult:
        logger.info(
            f"Rejected {operation} for incident {incident_id or '<new>'}: "
            f"{error.code.value} ({error.message})"
        )
        return IncidentResult.failure(error)

    def _emit_event(
        self,
        event_type: TimelineEventType,
        incident: Incident,
        actor: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> None:
        """Emit an event to all registered callbacks."""
        event = IncidentEvent(
            event_type=event_type,
            incident_id=incident.id,
            incident=incident,
            actor=actor,
            old_value=old_value,
            new_value=new_value,
            timestamp=self._clock(),
        )
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    f"Incident callback failed for {event_type.value} on {incident.id}"
                )

    def _to_incidents(self, rows: list[dict[str, Any]]) -> list[Incident]:
        return [self._dict_to_incident(r) for r in rows]

    def _dict_to_incident(self, data: dict[str, Any]) -> Incident:
        """Convert a repository dict to an Incident."""
        now = self._clock()
        return Incident(
            id=data["id"],
            incident_date=parse_datetime(data.get("incident_date")) or now,
            location=data.get("location", ""),
            description=data.get("description", ""),
            incident_type=IncidentType(data.get("incident_type", "Other")),
            severity=IncidentSeverity(data.get("severity", "Low")),
            reported_by_id=data.get("reported_by_id", ""),
            involved_employee_id=data.get("involved_employee_id"),
            safety_inspection_id=data.get("safety_inspection_id"),
            corrective_action=data.get("corrective_action"),
            investigation_notes=data.get("investigation_notes"),
            witnesses=data.get("witnesses"),
            estimated_cost=data.get("estimated_cost") or 0,
            is_near_miss=bool(data.get("is_near_miss")),
            status=IncidentStatus(data.get("status", "Reported")),
            requires_manager_approval=bool(data.get("requires_manager_approval")),
            requires_safety_review=bool(data.get("requires_safety_review")),
            manager_approval_date=parse_datetime(data.get("manager_approval_date")),
            manager_approved_by=data.get("manager_approved_by"),
            safety_review_date=parse_datetime(data.get("safety_review_date")),
            safety_reviewed_by=data.get("safety_reviewed_by"),
            is_resolved=bool(data.get("is_resolved")),
            resolved_date=parse_datetime(data.get("resolved_date")),
            created_at=parse_datetime(data.get("created_at")) or now,
            updated_at=parse_datetime(data.get("updated_at")) or now,
            version=data.get("version") or 0,
        )

    def _dict_to_timeline_entry(self, data: dict[str, Any]) -> IncidentTimelineEntry:
        """Convert a repository dict to an IncidentTimelineEntry."""
        return IncidentTimelineEntry(
            id=data.get("id", 0),
            incident_id=data.get("incident_id", ""),
            event_type=TimelineEventType(data.get("event_type", "CREATED")),
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            actor=data.get("actor"),
            timestamp=parse_datetime(data.get("timestamp")) or self._clock(),
        )
