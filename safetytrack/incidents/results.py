"""
Result types for incident operations.

Business-rule rejections are returned, not raised. Every incident
operation produces an IncidentResult that either carries the resulting
Incident or an IncidentRuleError tagged with a RuleViolationCode.
Infrastructure failures are still raised (see safetytrack.exceptions).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from safetytrack.exceptions import IncidentError
from safetytrack.incidents.models import Incident


class RuleViolationCode(Enum):
    """Machine-readable codes for rejected incident operations."""

    INVALID_FIELD = "InvalidField"
    INVALID_DATE = "InvalidDate"
    UNKNOWN_REPORTER = "UnknownReporter"
    INACTIVE_REPORTER = "InactiveReporter"
    UNKNOWN_INVOLVED_EMPLOYEE = "UnknownInvolvedEmployee"
    INACTIVE_INVOLVED_EMPLOYEE = "InactiveInvolvedEmployee"
    UNKNOWN_INSPECTION = "UnknownInspection"
    DUPLICATE_INCIDENT = "DuplicateIncident"
    MISSING_CORRECTIVE_ACTION = "MissingCorrectiveAction"
    MISSING_INVESTIGATION_NOTES = "MissingInvestigationNotes"
    STALE_SAFETY_TRAINING = "StaleSafetyTraining"
    INCIDENT_NOT_FOUND = "IncidentNotFound"
    APPROVAL_NOT_REQUIRED = "ApprovalNotRequired"
    NOT_PENDING_APPROVAL = "NotPendingApproval"
    ALREADY_RESOLVED = "AlreadyResolved"
    APPROVAL_REQUIRED_BEFORE_CLOSE = "ApprovalRequiredBeforeClose"
    RESOLVED_INCIDENT_IMMUTABLE = "ResolvedIncidentImmutable"
    SAFETY_REVIEW_NOT_REQUIRED = "SafetyReviewNotRequired"
    ALREADY_REVIEWED = "AlreadyReviewed"
    INVALID_TRANSITION = "InvalidTransition"


@dataclass(frozen=True)
class IncidentRuleError:
    """
    A rejected incident operation.

    Attributes:
        code: Machine-readable violation code.
        message: Human-readable description.
        field_name: The request field at fault, if the violation is tied to one.
        details: Additional context (ids, thresholds).
    """

    code: RuleViolationCode
    message: str
    field_name: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "field": self.field_name,
            "details": self.details,
        }


@dataclass(frozen=True)
class IncidentResult:
    """
    Outcome of an incident operation.

    Exactly one of incident and error is set.

    Example:
        Handling a result::

            result = manager.close_incident(incident_id)
            if not result.ok:
                print(result.error.code.value, result.error.message)
    """

    incident: Incident | None = None
    error: IncidentRuleError | None = None

    def __post_init__(self) -> None:
        """Validate that exactly one of incident and error is set."""
        if (self.incident is None) == (self.error is None):
            raise ValueError("IncidentResult needs exactly one of incident or error")

    @classmethod
    def success(cls, incident: Incident) -> "IncidentResult":
        """Build a successful result."""
        return cls(incident=incident)

    @classmethod
    def failure(cls, error: IncidentRuleError) -> "IncidentResult":
        """Build a rejected result."""
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @property
    def code(self) -> RuleViolationCode | None:
        """The violation code, or None on success."""
        return self.error.code if self.error else None

    def unwrap(self) -> Incident:
        """
        Return the incident, raising if the operation was rejected.

        Raises:
            IncidentError: If the result carries an error.
        """
        if self.error is not None:
            raise IncidentError(
                self.error.message,
                details={"code": self.error.code.value, **self.error.details},
                code=self.error.code.value,
            )
        if self.incident is None:
            raise IncidentError("Result carries no incident")
        return self.incident

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "ok": self.ok,
            "incident": self.incident.to_dict() if self.incident else None,
            "error": self.error.to_dict() if self.error else None,
        }
