"""
Incident rule engine for SafetyTrack.

This module decides whether an incident request is admissible and which
approval and review gates the stored incident must carry.

Classification is table-driven. Each table entry contributes flags that
can only be switched on, never off, so the final flags are the union of
every matching rule:

1. Severity baseline (SEVERITY_BASELINE)
2. Type rules (TYPE_RULES), keyed by (type, severity) with None as a
   severity wildcard
3. Cost rules, built from the configured thresholds

Status follows the approval flag: PendingApproval whenever approval is
required, Reported otherwise.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from safetytrack.config.schema import IncidentRulesConfig
from safetytrack.employees.directory import EmployeeDirectory
from safetytrack.incidents.models import (
    Incident,
    IncidentCreateRequest,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    IncidentUpdateRequest,
)
from safetytrack.incidents.results import IncidentRuleError, RuleViolationCode
from safetytrack.models.base import ensure_utc, subtract_months, utc_now
from safetytrack.models.employee import Employee
from safetytrack.storage.repositories import IncidentRepository, InspectionRepository

logger = logging.getLogger("safetytrack.incidents.rules")


@dataclass(frozen=True)
class RuleContribution:
    """
    Flags a single classification rule switches on.

    Attributes:
        requires_manager_approval: Rule forces manager approval.
        requires_safety_review: Rule forces safety review.
    """

    requires_manager_approval: bool = False
    requires_safety_review: bool = False


@dataclass(frozen=True)
class Classification:
    """
    Result of evaluating the classification rules for an incident.

    Attributes:
        requires_manager_approval: Final approval flag.
        requires_safety_review: Final review flag.
        status: Status derived from the approval flag.
        matched_rules: Names of the rules that contributed, in
            evaluation order.
    """

    requires_manager_approval: bool
    requires_safety_review: bool
    status: IncidentStatus
    matched_rules: tuple[str, ...] = ()

    def apply_to(self, incident: Incident) -> Incident:
        """Return a copy of the incident carrying these flags and status."""
        return replace(
            incident,
            requires_manager_approval=self.requires_manager_approval,
            requires_safety_review=self.requires_safety_review,
            status=self.status,
        )


SEVERITY_BASELINE: dict[IncidentSeverity, RuleContribution] = {
    IncidentSeverity.HIGH: RuleContribution(
        requires_manager_approval=True, requires_safety_review=True
    ),
    IncidentSeverity.MEDIUM: RuleContribution(requires_manager_approval=True),
    IncidentSeverity.LOW: RuleContribution(),
}

TYPE_RULES: dict[tuple[IncidentType, IncidentSeverity | None], RuleContribution] = {
    (IncidentType.ELECTRIC_SHOCK, None): RuleContribution(requires_safety_review=True),
    (IncidentType.FALL, IncidentSeverity.HIGH): RuleContribution(
        requires_manager_approval=True, requires_safety_review=True
    ),
}


class IncidentClassifier:
    """
    Derives approval/review flags and initial status from an incident.

    Pure: depends only on severity, type and estimated cost, and never
    performs I/O. Classifying an already classified incident returns
    the same flags.

    Example:
        Classifying an incident::

            classifier = IncidentClassifier()
            incident = classifier.classify(incident)
    """

    def __init__(self, config: IncidentRulesConfig | None = None) -> None:
        """
        Initialize the classifier.

        Args:
            config: Rule thresholds. Defaults to IncidentRulesConfig().
        """
        self._config = config or IncidentRulesConfig()
        self._cost_rules: tuple[tuple[str, int, RuleContribution], ...] = (
            (
                f"cost>{self._config.approval_cost_threshold}",
                self._config.approval_cost_threshold,
                RuleContribution(requires_manager_approval=True),
            ),
            (
                f"cost>{self._config.review_cost_threshold}",
                self._config.review_cost_threshold,
                RuleContribution(requires_safety_review=True),
            ),
        )

    def evaluate(self, incident: Incident) -> Classification:
        """
        Evaluate every rule against an incident.

        Args:
            incident: The incident to classify. Only severity, type and
                estimated cost are read.

        Returns:
            The resulting Classification.
        """
        matched: list[tuple[str, RuleContribution]] = [
            (f"severity:{incident.severity.value}", SEVERITY_BASELINE[incident.severity])
        ]

        for severity_key in (incident.severity, None):
            contribution = TYPE_RULES.get((incident.incident_type, severity_key))
            if contribution is not None:
                label = severity_key.value if severity_key else "*"
                matched.append(
                    (f"type:{incident.incident_type.value}/{label}", contribution)
                )

        for name, threshold, contribution in self._cost_rules:
            if incident.estimated_cost > threshold:
                matched.append((name, contribution))

        approval = any(c.requires_manager_approval for _, c in matched)
        review = any(c.requires_safety_review for _, c in matched)

        return Classification(
            requires_manager_approval=approval,
            requires_safety_review=review,
            status=(
                IncidentStatus.PENDING_APPROVAL if approval else IncidentStatus.REPORTED
            ),
            matched_rules=tuple(name for name, _ in matched),
        )

    def classify(self, incident: Incident) -> Incident:
        """Return a copy of the incident with flags and status derived."""
        classification = self.evaluate(incident)
        logger.debug(
            f"Classified incident {incident.id}: "
            f"approval={classification.requires_manager_approval} "
            f"review={classification.requires_safety_review} "
            f"rules={','.join(classification.matched_rules)}"
        )
        return classification.apply_to(incident)


@dataclass(frozen=True)
class GateContext:
    """
    Everything a type-specific gate may look at.

    Attributes:
        request: The creation request.
        involved_employee: The resolved involved employee, if any.
        now: The current time.
        config: Rule thresholds.
    """

    request: IncidentCreateRequest
    involved_employee: Employee | None
    now: datetime
    config: IncidentRulesConfig


# A type gate returns an error when the request fails it, else None
TypeGate = Callable[[GateContext], IncidentRuleError | None]


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _require_corrective_action(ctx: GateContext) -> IncidentRuleError | None:
    """High severity falls need a corrective action."""
    if ctx.request.severity != IncidentSeverity.HIGH:
        return None
    if _is_blank(ctx.request.corrective_action):
        return IncidentRuleError(
            code=RuleViolationCode.MISSING_CORRECTIVE_ACTION,
            message="High severity fall incidents require corrective action.",
            field_name="corrective_action",
        )
    return None


def _require_investigation_notes(ctx: GateContext) -> IncidentRuleError | None:
    """Electric shocks above Low severity need investigation notes."""
    if ctx.request.severity == IncidentSeverity.LOW:
        return None
    if _is_blank(ctx.request.investigation_notes):
        return IncidentRuleError(
            code=RuleViolationCode.MISSING_INVESTIGATION_NOTES,
            message="Electric shock incidents require investigation notes.",
            field_name="investigation_notes",
        )
    return None


def _require_recent_training(ctx: GateContext) -> IncidentRuleError | None:
    """PPE incidents with an involved employee need recent safety training."""
    if ctx.involved_employee is None:
        return None
    cutoff = subtract_months(ctx.now, ctx.config.training_recency_months)
    if not ctx.involved_employee.has_training_since(cutoff):
        return IncidentRuleError(
            code=RuleViolationCode.STALE_SAFETY_TRAINING,
            message="Employee involved in PPE incident must have recent safety training.",
            field_name="involved_employee_id",
            details={
                "employee_id": ctx.involved_employee.id,
                "training_recency_months": ctx.config.training_recency_months,
            },
        )
    return None


TYPE_GATES: dict[IncidentType, TypeGate] = {
    IncidentType.FALL: _require_corrective_action,
    IncidentType.ELECTRIC_SHOCK: _require_investigation_notes,
    IncidentType.IMPROPER_USE_OF_PPE: _require_recent_training,
}


class RuleEngine:
    """
    Validates incident requests and classifies incidents.

    The engine reads from its collaborators but never writes. It is
    constructed with explicit references to the employee directory and
    the incident and inspection repositories.

    Example:
        Validating and classifying a request::

            engine = RuleEngine(directory, incidents, inspections)
            error = engine.validate_creation(request)
            if error is None:
                incident = engine.classify(build_incident(request))
    """

    def __init__(
        self,
        directory: EmployeeDirectory,
        incidents: IncidentRepository,
        inspections: InspectionRepository,
        config: IncidentRulesConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the rule engine.

        Args:
            directory: Employee lookups.
            incidents: Incident repository, for duplicate detection.
            inspections: Inspection repository, for reference checks.
            config: Rule thresholds.
            clock: Source of the current time.
        """
        self._directory = directory
        self._incidents = incidents
        self._inspections = inspections
        self._config = config or IncidentRulesConfig()
        self._clock = clock
        self._classifier = IncidentClassifier(self._config)

    @property
    def config(self) -> IncidentRulesConfig:
        """The rule thresholds in use."""
        return self._config

    @property
    def classifier(self) -> IncidentClassifier:
        """The classifier used by classify()."""
        return self._classifier

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_creation(self, request: IncidentCreateRequest) -> IncidentRuleError | None:
        """
        Decide whether a creation request is admissible.

        Checks run in order and the first failure is returned: fields,
        date window, reporter, involved employee, inspection, duplicate,
        then the type-specific gate.

        Args:
            request: The creation request.

        Returns:
            None if the request is admissible, otherwise the first error.
        """
        error = self._check_fields(
            {
                "location": request.location,
                "description": request.description,
                "corrective_action": request.corrective_action,
                "investigation_notes": request.investigation_notes,
                "witnesses": request.witnesses,
                "estimated_cost": request.estimated_cost,
            },
            required=("location", "description"),
        )
        if error:
            return error

        now = self._clock()
        error = self._check_date(request.incident_date, now)
        if error:
            return error

        error = self._check_reporter(request.reported_by_id)
        if error:
            return error

        involved: Employee | None = None
        if request.involved_employee_id is not None:
            involved, error = self._check_involved_employee(request.involved_employee_id)
            if error:
                return error

        if request.safety_inspection_id is not None:
            error = self._check_inspection(request.safety_inspection_id)
            if error:
                return error

        if self._incidents.exists_matching(
            location=request.location,
            description=request.description,
            incident_day=ensure_utc(request.incident_date).date().isoformat(),
            reported_by_id=request.reported_by_id,
        ):
            return IncidentRuleError(
                code=RuleViolationCode.DUPLICATE_INCIDENT,
                message="Duplicate incident detected: same location, description, and date.",
                details={"reported_by_id": request.reported_by_id},
            )

        gate = TYPE_GATES.get(request.incident_type)
        if gate is not None:
            return gate(GateContext(request, involved, now, self._config))

        return None

    def validate_update(
        self,
        incident: Incident,
        changes: IncidentUpdateRequest,
    ) -> IncidentRuleError | None:
        """
        Decide whether an update is admissible.

        Only supplied fields are checked. Type-specific gates apply at
        creation only.

        Args:
            incident: The stored incident.
            changes: The partial change set.

        Returns:
            None if the update is admissible, otherwise the first error.
        """
        supplied = changes.changed_fields()
        error = self._check_fields(
            {
                name: supplied[name]
                for name in (
                    "location",
                    "description",
                    "corrective_action",
                    "investigation_notes",
                    "witnesses",
                    "estimated_cost",
                )
                if name in supplied
            },
            required=("location", "description"),
        )
        if error:
            return error

        if changes.involved_employee_id is not None:
            _, error = self._check_involved_employee(changes.involved_employee_id)
            if error:
                return error

        if changes.safety_inspection_id is not None:
            error = self._check_inspection(changes.safety_inspection_id)
            if error:
                return error

        return None

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    def evaluate(self, incident: Incident) -> Classification:
        """Evaluate the classification rules without applying them."""
        return self._classifier.evaluate(incident)

    def classify(self, incident: Incident) -> Incident:
        """Return a copy of the incident with flags and status derived."""
        return self._classifier.classify(incident)

    # -------------------------------------------------------------------------
    # Private checks
    # -------------------------------------------------------------------------

    def _max_length(self, field_name: str) -> int:
        return getattr(self._config, f"max_{field_name}_length")

    def _check_fields(
        self,
        values: dict[str, object],
        required: tuple[str, ...],
    ) -> IncidentRuleError | None:
        """Check required text, text lengths and the cost lower bound."""
        for name, value in values.items():
            if name == "estimated_cost":
                if value is not None and (not isinstance(value, int) or value < 0):
                    return IncidentRuleError(
                        code=RuleViolationCode.INVALID_FIELD,
                        message="Estimated cost must be a non-negative integer.",
                        field_name=name,
                    )
                continue

            if name in required and _is_blank(value):  # type: ignore[arg-type]
                return IncidentRuleError(
                    code=RuleViolationCode.INVALID_FIELD,
                    message=f"{name.replace('_', ' ').capitalize()} is required.",
                    field_name=name,
                )
            limit = self._max_length(name)
            if isinstance(value, str) and len(value) > limit:
                return IncidentRuleError(
                    code=RuleViolationCode.INVALID_FIELD,
                    message=(
                        f"{name.replace('_', ' ').capitalize()} cannot exceed "
                        f"{limit} characters."
                    ),
                    field_name=name,
                    details={"max_length": limit, "length": len(value)},
                )
        return None

    def _check_date(self, incident_date: datetime, now: datetime) -> IncidentRuleError | None:
        incident_date = ensure_utc(incident_date)
        if incident_date > now:
            return IncidentRuleError(
                code=RuleViolationCode.INVALID_DATE,
                message="Incident date cannot be in the future.",
                field_name="incident_date",
            )
        months = self._config.max_incident_age_months
        if incident_date < subtract_months(now, months):
            return IncidentRuleError(
                code=RuleViolationCode.INVALID_DATE,
                message=f"Incident date cannot be more than {months} months in the past.",
                field_name="incident_date",
                details={"max_incident_age_months": months},
            )
        return None

    def _check_reporter(self, employee_id: str) -> IncidentRuleError | None:
        reporter = self._directory.find_by_id(employee_id) if employee_id else None
        if reporter is None:
            return IncidentRuleError(
                code=RuleViolationCode.UNKNOWN_REPORTER,
                message="Reported by employee not found.",
                field_name="reported_by_id",
                details={"employee_id": employee_id},
            )
        if not reporter.is_active:
            return IncidentRuleError(
                code=RuleViolationCode.INACTIVE_REPORTER,
                message="Cannot report incident with inactive employee.",
                field_name="reported_by_id",
                details={"employee_id": employee_id},
            )
        return None

    def _check_involved_employee(
        self, employee_id: str
    ) -> tuple[Employee | None, IncidentRuleError | None]:
        employee = self._directory.find_by_id(employee_id)
        if employee is None:
            return None, IncidentRuleError(
                code=RuleViolationCode.UNKNOWN_INVOLVED_EMPLOYEE,
                message="Involved employee not found.",
                field_name="involved_employee_id",
                details={"employee_id": employee_id},
            )
        if not employee.is_active:
            return employee, IncidentRuleError(
                code=RuleViolationCode.INACTIVE_INVOLVED_EMPLOYEE,
                message="Cannot involve inactive employee in incident.",
                field_name="involved_employee_id",
                details={"employee_id": employee_id},
            )
        return employee, None

    def _check_inspection(self, inspection_id: str) -> IncidentRuleError | None:
        if self._inspections.get_by_id(inspection_id) is None:
            return IncidentRuleError(
                code=RuleViolationCode.UNKNOWN_INSPECTION,
                message="Safety inspection not found.",
                field_name="safety_inspection_id",
                details={"inspection_id": inspection_id},
            )
        return None
