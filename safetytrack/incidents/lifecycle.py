"""
Incident lifecycle state machine for SafetyTrack.

Guards and mutations for approve, close, update and safety review. Every
operation takes the current incident and returns an IncidentResult with
an updated copy; nothing here touches storage.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from safetytrack.incidents.models import (
    Incident,
    IncidentStatus,
    IncidentUpdateRequest,
)
from safetytrack.incidents.results import (
    IncidentResult,
    IncidentRuleError,
    RuleViolationCode,
)
from safetytrack.models.base import utc_now

logger = logging.getLogger("safetytrack.incidents.lifecycle")

# Closed is terminal. UnderInvestigation and RequiresFollowUp have no
# operation leading into them but may still be closed.
VALID_TRANSITIONS: dict[IncidentStatus, frozenset[IncidentStatus]] = {
    IncidentStatus.REPORTED: frozenset({IncidentStatus.CLOSED}),
    IncidentStatus.PENDING_APPROVAL: frozenset(
        {IncidentStatus.APPROVED, IncidentStatus.CLOSED}
    ),
    IncidentStatus.APPROVED: frozenset({IncidentStatus.CLOSED}),
    IncidentStatus.UNDER_INVESTIGATION: frozenset({IncidentStatus.CLOSED}),
    IncidentStatus.REQUIRES_FOLLOW_UP: frozenset({IncidentStatus.CLOSED}),
    IncidentStatus.CLOSED: frozenset(),
}


def is_valid_transition(old_status: IncidentStatus, new_status: IncidentStatus) -> bool:
    """Check if a status transition is listed in VALID_TRANSITIONS."""
    return new_status in VALID_TRANSITIONS.get(old_status, frozenset())


class IncidentLifecycle:
    """
    Applies lifecycle transitions to incidents.

    Each public operation first runs its guard (the matching check_*
    method) and only then builds the updated incident.

    Example:
        Approving and closing::

            lifecycle = IncidentLifecycle()
            incident = lifecycle.approve(incident, "M. Okafor").unwrap()
            incident = lifecycle.close(incident).unwrap()
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        """
        Initialize the lifecycle.

        Args:
            clock: Source of the current time.
        """
        self._clock = clock

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def check_approve(
        self, incident: Incident, approver_name: str
    ) -> IncidentRuleError | None:
        """Return the reason approval is refused, or None."""
        if not incident.requires_manager_approval:
            return IncidentRuleError(
                code=RuleViolationCode.APPROVAL_NOT_REQUIRED,
                message="This incident does not require approval.",
                details={"incident_id": incident.id},
            )
        if incident.status != IncidentStatus.PENDING_APPROVAL:
            return IncidentRuleError(
                code=RuleViolationCode.NOT_PENDING_APPROVAL,
                message="Incident is not pending approval.",
                details={"incident_id": incident.id, "status": incident.status.value},
            )
        if not approver_name or not approver_name.strip():
            return IncidentRuleError(
                code=RuleViolationCode.INVALID_FIELD,
                message="Approver name is required.",
                field_name="approver_name",
            )
        return self._check_transition(incident, IncidentStatus.APPROVED)

    def check_close(self, incident: Incident) -> IncidentRuleError | None:
        """Return the reason closing is refused, or None."""
        if incident.is_resolved:
            return IncidentRuleError(
                code=RuleViolationCode.ALREADY_RESOLVED,
                message="Incident is already resolved.",
                details={"incident_id": incident.id},
            )
        if (
            incident.requires_manager_approval
            and incident.status != IncidentStatus.APPROVED
        ):
            return IncidentRuleError(
                code=RuleViolationCode.APPROVAL_REQUIRED_BEFORE_CLOSE,
                message="Incident requires manager approval before closing.",
                details={"incident_id": incident.id, "status": incident.status.value},
            )
        return self._check_transition(incident, IncidentStatus.CLOSED)

    def check_update(self, incident: Incident) -> IncidentRuleError | None:
        """Return the reason updates are refused, or None."""
        if incident.is_resolved:
            return IncidentRuleError(
                code=RuleViolationCode.RESOLVED_INCIDENT_IMMUTABLE,
                message="Cannot update a resolved incident.",
                details={"incident_id": incident.id},
            )
        return None

    def check_safety_review(
        self, incident: Incident, reviewer_name: str
    ) -> IncidentRuleError | None:
        """Return the reason a safety review cannot be recorded, or None."""
        if incident.is_resolved:
            return IncidentRuleError(
                code=RuleViolationCode.ALREADY_RESOLVED,
                message="Incident is already resolved.",
                details={"incident_id": incident.id},
            )
        if not incident.requires_safety_review:
            return IncidentRuleError(
                code=RuleViolationCode.SAFETY_REVIEW_NOT_REQUIRED,
                message="This incident does not require a safety review.",
                details={"incident_id": incident.id},
            )
        if incident.is_safety_reviewed():
            return IncidentRuleError(
                code=RuleViolationCode.ALREADY_REVIEWED,
                message="Safety review has already been recorded.",
                details={
                    "incident_id": incident.id,
                    "safety_reviewed_by": incident.safety_reviewed_by,
                },
            )
        if not reviewer_name or not reviewer_name.strip():
            return IncidentRuleError(
                code=RuleViolationCode.INVALID_FIELD,
                message="Reviewer name is required.",
                field_name="reviewer_name",
            )
        return None

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def approve(self, incident: Incident, approver_name: str) -> IncidentResult:
        """
        Record manager approval.

        Returns:
            The Approved incident with approver and timestamp set, or the
            refusal.
        """
        error = self.check_approve(incident, approver_name)
        if error:
            return IncidentResult.failure(error)

        now = self._clock()
        return IncidentResult.success(
            replace(
                incident,
                status=IncidentStatus.APPROVED,
                manager_approval_date=now,
                manager_approved_by=approver_name.strip(),
                updated_at=now,
            )
        )

    def close(self, incident: Incident) -> IncidentResult:
        """
        Close an incident.

        Returns:
            The Closed, resolved incident, or the refusal.
        """
        error = self.check_close(incident)
        if error:
            return IncidentResult.failure(error)

        now = self._clock()
        return IncidentResult.success(
            replace(
                incident,
                status=IncidentStatus.CLOSED,
                is_resolved=True,
                resolved_date=now,
                updated_at=now,
            )
        )

    def apply_update(
        self, incident: Incident, changes: IncidentUpdateRequest
    ) -> IncidentResult:
        """
        Apply the supplied fields of a change set.

        Managed fields are left alone; reclassification is the caller's
        job.
        """
        error = self.check_update(incident)
        if error:
            return IncidentResult.failure(error)

        return IncidentResult.success(
            replace(incident, **changes.changed_fields(), updated_at=self._clock())
        )

    def record_safety_review(self, incident: Incident, reviewer_name: str) -> IncidentResult:
        """
        Record a completed safety review.

        Status is unchanged.
        """
        error = self.check_safety_review(incident, reviewer_name)
        if error:
            return IncidentResult.failure(error)

        now = self._clock()
        return IncidentResult.success(
            replace(
                incident,
                safety_review_date=now,
                safety_reviewed_by=reviewer_name.strip(),
                updated_at=now,
            )
        )

    def _check_transition(
        self, incident: Incident, new_status: IncidentStatus
    ) -> IncidentRuleError | None:
        if is_valid_transition(incident.status, new_status):
            return None
        logger.warning(
            f"Refused transition {incident.status.value} -> {new_status.value} "
            f"for incident {incident.id}"
        )
        return IncidentRuleError(
            code=RuleViolationCode.INVALID_TRANSITION,
            message=(
                f"Cannot move incident from {incident.status.value} "
                f"to {new_status.value}."
            ),
            details={
                "incident_id": incident.id,
                "from": incident.status.value,
                "to": new_status.value,
            },
        )
