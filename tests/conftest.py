"""
Pytest configuration and shared fixtures for SafetyTrack tests.

This module provides:
- A fixed clock so date rules are deterministic
- Database fixtures (fresh in-memory database)
- Repository and directory fixtures
- Seeded employees and a safety inspection
- A rule engine and an incident manager wired to the above
- A factory for incident creation requests
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from safetytrack.config.schema import IncidentRulesConfig
from safetytrack.employees import EmployeeDirectory
from safetytrack.incidents import (
    IncidentCreateRequest,
    IncidentLifecycle,
    IncidentManager,
    IncidentSeverity,
    IncidentType,
    RuleEngine,
)
from safetytrack.models.employee import Employee
from safetytrack.models.inspection import (
    InspectionStatus,
    InspectionType,
    SafetyInspection,
)
from safetytrack.storage import (
    Database,
    EmployeeRepository,
    IncidentRepository,
    InspectionRepository,
)

# All tests run "now" at this instant
FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    """Clock returning FIXED_NOW."""
    return FIXED_NOW


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """Create a temporary in-memory database for testing.

    Yields:
        Initialized Database instance.
    """
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def employee_repository(db: Database) -> EmployeeRepository:
    """Create an employee repository."""
    return EmployeeRepository(db)


@pytest.fixture
def inspection_repository(db: Database) -> InspectionRepository:
    """Create an inspection repository."""
    return InspectionRepository(db)


@pytest.fixture
def incident_repository(db: Database) -> IncidentRepository:
    """Create an incident repository."""
    return IncidentRepository(db)


# =============================================================================
# Employee Fixtures
# =============================================================================


@pytest.fixture
def directory(employee_repository: EmployeeRepository) -> EmployeeDirectory:
    """Create an employee directory on the fixed clock."""
    return EmployeeDirectory(employee_repository, clock=fixed_clock)


@pytest.fixture
def reporter(directory: EmployeeDirectory) -> Employee:
    """An active employee trained a month ago."""
    return directory.register(
        name="Ana Silva",
        employee_code="EMP001",
        department="Operations",
        position="Supervisor",
        hire_date=FIXED_NOW - timedelta(days=3 * 365),
        safety_training_level="advanced",
        last_safety_training=FIXED_NOW - timedelta(days=30),
    )


@pytest.fixture
def trained_worker(directory: EmployeeDirectory) -> Employee:
    """An active employee trained two weeks ago."""
    return directory.register(
        name="Bruno Costa",
        employee_code="EMP002",
        department="Maintenance",
        position="Electrician",
        hire_date=FIXED_NOW - timedelta(days=2 * 365),
        safety_training_level="intermediate",
        last_safety_training=FIXED_NOW - timedelta(days=14),
    )


@pytest.fixture
def stale_worker(directory: EmployeeDirectory) -> Employee:
    """An active employee last trained eight months ago."""
    return directory.register(
        name="Carla Mendes",
        employee_code="EMP003",
        department="Warehouse",
        position="Forklift Operator",
        hire_date=FIXED_NOW - timedelta(days=4 * 365),
        safety_training_level="basic",
        last_safety_training=datetime(2026, 2, 18, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def untrained_worker(directory: EmployeeDirectory) -> Employee:
    """An active employee with no training record."""
    return directory.register(
        name="Diego Rocha",
        employee_code="EMP004",
        department="Warehouse",
        position="Picker",
        hire_date=FIXED_NOW - timedelta(days=60),
    )


@pytest.fixture
def inactive_employee(directory: EmployeeDirectory) -> Employee:
    """An employee who has been deactivated."""
    employee = directory.register(
        name="Elisa Prado",
        employee_code="EMP005",
        department="Operations",
        position="Technician",
        hire_date=FIXED_NOW - timedelta(days=5 * 365),
        last_safety_training=FIXED_NOW - timedelta(days=10),
    )
    return directory.deactivate(employee.id)


@pytest.fixture
def inspection(inspection_repository: InspectionRepository) -> SafetyInspection:
    """A completed routine inspection."""
    record = SafetyInspection(
        inspection_date=FIXED_NOW - timedelta(days=7),
        location="2nd Floor - North Wing",
        inspector_name="Fabio Lima",
        inspection_type=InspectionType.ROUTINE,
        status=InspectionStatus.COMPLETED,
        risk_score=3,
        findings="Wet floor signage missing",
    )
    inspection_repository.create(record.to_dict())
    return record


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def rules_config() -> IncidentRulesConfig:
    """Default rule thresholds."""
    return IncidentRulesConfig()


@pytest.fixture
def rule_engine(
    directory: EmployeeDirectory,
    incident_repository: IncidentRepository,
    inspection_repository: InspectionRepository,
    rules_config: IncidentRulesConfig,
) -> RuleEngine:
    """Create a rule engine on the fixed clock."""
    return RuleEngine(
        directory,
        incident_repository,
        inspection_repository,
        rules_config,
        clock=fixed_clock,
    )


@pytest.fixture
def lifecycle() -> IncidentLifecycle:
    """Create a lifecycle state machine on the fixed clock."""
    return IncidentLifecycle(clock=fixed_clock)


@pytest.fixture
def manager(
    incident_repository: IncidentRepository,
    directory: EmployeeDirectory,
    inspection_repository: InspectionRepository,
    rules_config: IncidentRulesConfig,
) -> IncidentManager:
    """Create an incident manager on the fixed clock."""
    return IncidentManager(
        repository=incident_repository,
        directory=directory,
        inspections=inspection_repository,
        config=rules_config,
        clock=fixed_clock,
    )


@pytest.fixture
def make_request(reporter: Employee) -> Callable[..., IncidentCreateRequest]:
    """Factory for creation requests reported by the seeded reporter.

    Keyword arguments override the defaults of a low severity fall.
    """

    def _make(**overrides: Any) -> IncidentCreateRequest:
        values: dict[str, Any] = {
            "incident_date": FIXED_NOW - timedelta(days=1),
            "location": "2nd Floor - North Wing",
            "description": "Slipped on wet floor",
            "incident_type": IncidentType.FALL,
            "severity": IncidentSeverity.LOW,
            "reported_by_id": reporter.id,
            "estimated_cost": 500,
        }
        values.update(overrides)
        return IncidentCreateRequest(**values)

    return _make
