"""
Employee directory for SafetyTrack.

The incident core reads employees through EmployeeDirectory.
"""

from safetytrack.employees.directory import EmployeeDirectory

__all__ = ["EmployeeDirectory"]
