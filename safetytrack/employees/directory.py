"""
Employee directory for SafetyTrack.

The directory is the incident core's read-only view of employees
(lookup by id, active flag, last safety training). It also owns the
plumbing the core does not: registering employees and recording
completed safety training.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from safetytrack.exceptions import ValidationError
from safetytrack.models.base import (
    ensure_utc,
    generate_uuid,
    parse_datetime,
    subtract_months,
    utc_now,
)
from safetytrack.models.employee import SAFETY_TRAINING_LEVELS, Employee
from safetytrack.storage.repositories import EmployeeRepository

logger = logging.getLogger("safetytrack.employees.directory")

# Hire dates further back than this are assumed to be data entry errors
MAX_HIRE_AGE_YEARS = 50

# Training records further back than this are rejected
MAX_TRAINING_AGE_YEARS = 5


class EmployeeDirectory:
    """
    Looks up and maintains employee records.

    Example:
        Registering and looking up an employee::

            directory = EmployeeDirectory(EmployeeRepository(db))
            employee = directory.register(
                name="Ana Silva",
                employee_code="EMP001",
                department="Operations",
                position="Technician",
                hire_date=datetime(2020, 3, 1, tzinfo=timezone.utc),
            )
            assert directory.find_by_id(employee.id) == employee
    """

    def __init__(
        self,
        repository: EmployeeRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize the directory.

        Args:
            repository: Repository for employee persistence.
            clock: Source of the current time.
        """
        self._repository = repository
        self._clock = clock

    def find_by_id(self, employee_id: str) -> Employee | None:
        """
        Get an employee by ID.

        Args:
            employee_id: The employee ID.

        Returns:
            The Employee if found, None otherwise.
        """
        data = self._repository.get_by_id(employee_id)
        if data is None:
            return None
        return self._dict_to_employee(data)

    def find_by_code(self, employee_code: str) -> Employee | None:
        """Get an employee by employee code."""
        data = self._repository.get_by_code(employee_code)
        if data is None:
            return None
        return self._dict_to_employee(data)

    def list_active(self, department: str | None = None) -> list[Employee]:
        """List active employees ordered by name, optionally filtered by department."""
        return [
            self._dict_to_employee(d) for d in self._repository.list_active(department)
        ]

    def find_needing_training(self, recency_months: int = 6) -> list[Employee]:
        """
        List active employees without safety training in the recency window.

        Args:
            recency_months: Size of the window in months.

        Returns:
            Employees never trained first, then oldest training first.
        """
        cutoff = subtract_months(self._clock(), recency_months)
        return [
            self._dict_to_employee(d)
            for d in self._repository.find_needing_training(cutoff.isoformat())
        ]

    def register(
        self,
        name: str,
        employee_code: str,
        department: str,
        position: str,
        hire_date: datetime,
        safety_training_level: str | None = None,
        last_safety_training: datetime | None = None,
    ) -> Employee:
        """
        Register a new employee.

        Raises:
            ValidationError: If the code is taken, a date is out of
                range, or the training level is unknown.
        """
        now = self._clock()
        hire_date = ensure_utc(hire_date)
        if last_safety_training is not None:
            last_safety_training = ensure_utc(last_safety_training)

        for field_name, value in (
            ("name", name),
            ("employee_code", employee_code),
            ("department", department),
            ("position", position),
        ):
            if not value or not value.strip():
                raise ValidationError(
                    f"{field_name} is required.", details={"field": field_name}
                )

        if self._repository.code_exists(employee_code):
            raise ValidationError(
                "Employee code already exists.",
                details={"employee_code": employee_code},
            )

        if hire_date > now:
            raise ValidationError("Hire date cannot be in the future.")
        if hire_date < subtract_months(now, MAX_HIRE_AGE_YEARS * 12):
            raise ValidationError(
                f"Hire date cannot be more than {MAX_HIRE_AGE_YEARS} years in the past."
            )

        if last_safety_training is not None:
            if last_safety_training > now:
                raise ValidationError(
                    "Last safety training date cannot be in the future."
                )
            if last_safety_training < hire_date:
                raise ValidationError(
                    "Last safety training date cannot be before hire date."
                )

        if (
            safety_training_level
            and safety_training_level.lower() not in SAFETY_TRAINING_LEVELS
        ):
            raise ValidationError(
                "Invalid safety training level.",
                details={
                    "level": safety_training_level,
                    "allowed": list(SAFETY_TRAINING_LEVELS),
                },
            )

        employee = Employee(
            id=generate_uuid(),
            name=name.strip(),
            employee_code=employee_code.strip(),
            department=department.strip(),
            position=position.strip(),
            hire_date=hire_date,
            is_active=True,
            safety_training_level=(
                safety_training_level.lower() if safety_training_level else None
            ),
            last_safety_training=last_safety_training,
        )
        self._repository.create(employee.to_dict())
        logger.info(f"Registered employee {employee.employee_code} ({employee.id})")
        return employee

    def update_training_record(self, employee_id: str, training_date: datetime) -> Employee:
        """
        Record a completed safety training.

        Raises:
            ValidationError: If the employee is missing or inactive, or the
                date is in the future or too old.
        """
        employee = self.find_by_id(employee_id)
        if employee is None:
            raise ValidationError(
                "Employee not found.", details={"employee_id": employee_id}
            )
        if not employee.is_active:
            raise ValidationError(
                "Cannot update training record for inactive employee.",
                details={"employee_id": employee_id},
            )

        now = self._clock()
        training_date = ensure_utc(training_date)
        if training_date > now:
            raise ValidationError("Training date cannot be in the future.")
        if training_date < subtract_months(now, MAX_TRAINING_AGE_YEARS * 12):
            raise ValidationError(
                f"Training date cannot be more than {MAX_TRAINING_AGE_YEARS} years in the past."
            )

        self._repository.update_training(employee_id, training_date.isoformat())
        logger.info(f"Recorded safety training for employee {employee_id}")
        return self._require(employee_id)

    def deactivate(self, employee_id: str) -> Employee:
        """
        Mark an employee inactive.

        Inactive employees can no longer report or be involved in incidents.

        Raises:
            ValidationError: If the employee does not exist.
        """
        if not self._repository.set_active(employee_id, False):
            raise ValidationError(
                "Employee not found.", details={"employee_id": employee_id}
            )
        logger.info(f"Deactivated employee {employee_id}")
        return self._require(employee_id)

    def _require(self, employee_id: str) -> Employee:
        employee = self.find_by_id(employee_id)
        if employee is None:
            raise ValidationError(
                "Employee not found.", details={"employee_id": employee_id}
            )
        return employee

    def _dict_to_employee(self, data: dict[str, Any]) -> Employee:
        """Convert a repository dict to an Employee."""
        return Employee(
            id=data["id"],
            name=data.get("name", ""),
            employee_code=data.get("employee_code", ""),
            department=data.get("department", ""),
            position=data.get("position", ""),
            hire_date=parse_datetime(data.get("hire_date")) or self._clock(),
            is_active=bool(data.get("is_active", True)),
            safety_training_level=data.get("safety_training_level"),
            last_safety_training=parse_datetime(data.get("last_safety_training")),
        )
