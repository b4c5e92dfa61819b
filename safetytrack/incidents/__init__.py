"""
Incident management for SafetyTrack.

This module provides the incident rule engine, the lifecycle state
machine, and the IncidentManager that ties them to storage.
"""

from safetytrack.incidents.lifecycle import (
    VALID_TRANSITIONS,
    IncidentLifecycle,
    is_valid_transition,
)
from safetytrack.incidents.manager import (
    IncidentCallback,
    IncidentEvent,
    IncidentManager,
)
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
from safetytrack.incidents.rules import (
    SEVERITY_BASELINE,
    TYPE_GATES,
    TYPE_RULES,
    Classification,
    IncidentClassifier,
    RuleContribution,
    RuleEngine,
)

__all__ = [
    # Manager
    "IncidentManager",
    "IncidentEvent",
    "IncidentCallback",
    # Rules
    "RuleEngine",
    "IncidentClassifier",
    "Classification",
    "RuleContribution",
    "SEVERITY_BASELINE",
    "TYPE_RULES",
    "TYPE_GATES",
    # Lifecycle
    "IncidentLifecycle",
    "VALID_TRANSITIONS",
    "is_valid_transition",
    # Models
    "Incident",
    "IncidentCreateRequest",
    "IncidentUpdateRequest",
    "IncidentSeverity",
    "IncidentStatus",
    "IncidentType",
    "IncidentTimelineEntry",
    "TimelineEventType",
    # Results
    "IncidentResult",
    "IncidentRuleError",
    "RuleViolationCode",
]
