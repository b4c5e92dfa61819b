"""
Employee data model for SafetyTrack.

Employees are owned by the employee directory. The incident rule engine
only reads them: to check that reporters and involved employees exist
and are active, and to check safety training recency.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from safetytrack.models.base import generate_uuid, model_to_dict, model_to_json, utc_now


# Accepted values for Employee.safety_training_level
SAFETY_TRAINING_LEVELS = ("basic", "intermediate", "advanced", "specialist")


@dataclass(frozen=True)
class Employee:
    """
    An employee record as seen by the incident core.

    Attributes:
        id: Unique identifier for the employee.
        name: Full name.
        employee_code: Unique badge or payroll code.
        department: Department name.
        position: Job title.
        hire_date: Date the employee was hired.
        is_active: Whether the employee is currently active. Inactive
            employees cannot report or be involved in new incidents.
        safety_training_level: One of SAFETY_TRAINING_LEVELS, if known.
        last_safety_training: When the employee last completed safety
            training, if ever.
    """

    id: str = field(default_factory=generate_uuid)
    name: str = ""
    employee_code: str = ""
    department: str = ""
    position: str = ""
    hire_date: datetime = field(default_factory=utc_now)
    is_active: bool = True
    safety_training_level: str | None = None
    last_safety_training: datetime | None = None

    def to_dict(self, exclude_none: bool = False) -> dict[str, Any]:
        """Convert the employee to a dictionary."""
        return model_to_dict(self, exclude_none)

    def to_json(self, indent: int | None = None, exclude_none: bool = False) -> str:
        """Convert the employee to a JSON string."""
        return model_to_json(self, indent, exclude_none)

    def __repr__(self) -> str:
        return (
            f"Employee(id={self.id!r}, code={self.employee_code!r}, "
            f"active={self.is_active})"
        )

    def has_training_since(self, cutoff: datetime) -> bool:
        """Check if the employee's last safety training is on or after cutoff."""
        return (
            self.last_safety_training is not None
            and self.last_safety_training >= cutoff
        )
