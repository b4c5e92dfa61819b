"""
Repository classes for SafetyTrack data access.

Repositories speak plain dictionaries: values are JSON-compatible
(ISO 8601 strings for timestamps, enum values as strings). Converting to
and from model objects is the job of the managers that own them.
"""

from typing import Any

from safetytrack.exceptions import ConcurrentModificationError
from safetytrack.models.base import utc_now
from safetytrack.storage.database import Database


class BaseRepository:
    """
    Base class for all repositories.

    Provides common functionality for database operations.
    """

    def __init__(self, db: Database) -> None:
        """
        Initialize the repository.

        Args:
            db: The Database instance to use for operations.
        """
        self.db = db

    def _to_bool_fields(self, row: dict[str, Any], names: tuple[str, ...]) -> dict[str, Any]:
        """Convert SQLite 0/1 integer columns to bools."""
        return {**row, **{name: bool(row[name]) for name in names if name in row}}


class EmployeeRepository(BaseRepository):
    """
    Repository for employee records.

    Backs the employee directory.
    """

    _BOOL_FIELDS = ("is_active",)

    def create(self, record: dict[str, Any]) -> str:
        """
        Insert an employee.

        Args:
            record: Serialized Employee fields.

        Returns:
            The employee ID.
        """
        self.db.execute_write(
            """
            INSERT INTO employees
                (id, name, employee_code, department, position, hire_date,
                 is_active, safety_training_level, last_safety_training)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record["id"],
                record["name"],
                record["employee_code"],
                record["department"],
                record["position"],
                record["hire_date"],
                int(record.get("is_active", True)),
                record.get("safety_training_level"),
                record.get("last_safety_training"),
            ),
        )
        return record["id"]

    def get_by_id(self, employee_id: str) -> dict[str, Any] | None:
        """Get an employee by ID."""
        result = self.db.execute_one(
            "SELECT * FROM employees WHERE id = ?", (employee_id,)
        )
        return self._deserialize_employee(result) if result else None

    def get_by_code(self, employee_code: str) -> dict[str, Any] | None:
        """Get an employee by employee code."""
        result = self.db.execute_one(
            "SELECT * FROM employees WHERE employee_code = ?", (employee_code,)
        )
        return self._deserialize_employee(result) if result else None

    def code_exists(self, employee_code: str) -> bool:
        """Check if an employee code is already taken."""
        return (
            self.db.execute_one(
                "SELECT 1 FROM employees WHERE employee_code = ?", (employee_code,)
            )
            is not None
        )

    def list_active(self, department: str | None = None) -> list[dict[str, Any]]:
        """List active employees ordered by name, optionally by department substring."""
        if department:
            results = self.db.execute(
                """
                SELECT * FROM employees
                WHERE is_active = 1 AND department LIKE ?
                ORDER BY name
                """,
                (f"%{department}%",),
            )
        else:
            results = self.db.execute(
                "SELECT * FROM employees WHERE is_active = 1 ORDER BY name"
            )
        return [self._deserialize_employee(r) for r in results]

    def find_needing_training(self, cutoff: str) -> list[dict[str, Any]]:
        """
        List active employees with no training on or after cutoff.

        Employees who were never trained sort first.
        """
        results = self.db.execute(
            """
            SELECT * FROM employees
            WHERE is_active = 1
              AND (last_safety_training IS NULL OR last_safety_training < ?)
            ORDER BY last_safety_training
            """,
            (cutoff,),
        )
        return [self._deserialize_employee(r) for r in results]

    def update_training(self, employee_id: str, training_date: str) -> bool:
        """Record a completed safety training."""
        return (
            self.db.execute_write(
                "UPDATE employees SET last_safety_training = ? WHERE id = ?",
                (training_date, employee_id),
            )
            > 0
        )

    def set_active(self, employee_id: str, is_active: bool) -> bool:
        """Activate or deactivate an employee."""
        return (
            self.db.execute_write(
                "UPDATE employees SET is_active = ? WHERE id = ?",
                (int(is_active), employee_id),
            )
            > 0
        )

    def _deserialize_employee(self, row: dict[str, Any]) -> dict[str, Any]:
        return self._to_bool_fields(row, self._BOOL_FIELDS)


class InspectionRepository(BaseRepository):
    """
    Repository for safety inspection records.

    Incidents only need to confirm that a referenced inspection exists.
    """

    def create(self, record: dict[str, Any]) -> str:
        """
        Insert an inspection.

        Args:
            record: Serialized SafetyInspection fields.

        Returns:
            The inspection ID.
        """
        self.db.execute_write(
            """
            INSERT INTO safety_inspections
                (id, inspection_date, location, inspector_name, inspector_id,
                 inspection_type, status, risk_score, findings, recommendations,
                 follow_up_date, requires_follow_up)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record["id"],
                record["inspection_date"],
                record["location"],
                record["inspector_name"],
                record.get("inspector_id"),
                record["inspection_type"],
                record["status"],
                record.get("risk_score", 0),
                record.get("findings", ""),
                record.get("recommendations"),
                record.get("follow_up_date"),
                int(record.get("requires_follow_up", False)),
            ),
        )
        return record["id"]

    def get_by_id(self, inspection_id: str) -> dict[str, Any] | None:
        """Get an inspection by ID."""
        result = self.db.execute_one(
            "SELECT * FROM safety_inspections WHERE id = ?", (inspection_id,)
        )
        return self._to_bool_fields(result, ("requires_follow_up",)) if result else None


class IncidentRepository(BaseRepository):
    """
    Repository for incident records.

    Every write is versioned: save() only succeeds if the stored version
    still matches the version the caller read, and each write appends
    to the incident timeline in the same transaction.
    """

    _BOOL_FIELDS = (
        "is_near_miss",
        "requires_manager_approval",
        "requires_safety_review",
        "is_resolved",
    )

    # Columns rewritten by save(); id and created_at never change
    _MUTABLE_COLUMNS = (
        "location",
        "description",
        "incident_type",
        "severity",
        "involved_employee_id",
        "safety_inspection_id",
        "corrective_action",
        "investigation_notes",
        "witnesses",
        "estimated_cost",
        "is_near_miss",
        "status",
        "requires_manager_approval",
        "requires_safety_review",
        "manager_approval_date",
        "manager_approved_by",
        "safety_review_date",
        "safety_reviewed_by",
        "is_resolved",
        "resolved_date",
    )

    _INSERT_COLUMNS = (
        "id",
        "incident_date",
        "reported_by_id",
        *_MUTABLE_COLUMNS,
        "created_at",
        "updated_at",
        "version",
    )

    def add(
        self,
        record: dict[str, Any],
        actor: str | None = None,
        timestamp: str | None = None,
    ) -> str:
        """
        Insert a new incident and its CREATED timeline entry.

        Args:
            record: Serialized Incident fields.
            actor: Who reported the incident.
            timestamp: When the report was recorded; defaults to now.

        Returns:
            The incident ID.
        """
        columns = ", ".join(self._INSERT_COLUMNS)
        placeholders = ", ".join("?" for _ in self._INSERT_COLUMNS)
        values = tuple(self._column_value(record, c) for c in self._INSERT_COLUMNS)

        with self.db.transaction() as conn:
            conn.execute(
                f"INSERT INTO incidents ({columns}) VALUES ({placeholders})",
                values,
            )
            self._insert_timeline(
                conn,
                record["id"],
                "CREATED",
                None,
                record["status"],
                actor,
                timestamp,
            )

        return record["id"]

    def save(
        self,
        record: dict[str, Any],
        expected_version: int,
        event_type: str,
        old_value: str | None = None,
        new_value: str | None = None,
        actor: str | None = None,
        timestamp: str | None = None,
    ) -> int:
        """
        Write an updated incident if nobody else wrote it first.

        Args:
            record: Serialized Incident fields.
            expected_version: The version the caller read.
            event_type: Timeline event type to record.
            old_value: Previous value for the timeline.
            new_value: New value for the timeline.
            actor: Who made the change.
            timestamp: When the change was made; defaults to now.

        Returns:
            The new version number.

        Raises:
            ConcurrentModificationError: If the stored version differs or
                the incident no longer exists.
        """
        assignments = ", ".join(f"{c} = ?" for c in self._MUTABLE_COLUMNS)
        values = [self._column_value(record, c) for c in self._MUTABLE_COLUMNS]
        new_version = expected_version + 1
        values.extend(
            [record.get("updated_at") or utc_now().isoformat(), new_version]
        )
        values.extend([record["id"], expected_version])

        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"""
                UPDATE incidents
                SET {assignments}, updated_at = ?, version = ?
                WHERE id = ? AND version = ?
                """,
                tuple(values),
            )
            if cursor.rowcount == 0:
                raise ConcurrentModificationError(
                    f"Incident {record['id']} was modified concurrently",
                    details={
                        "incident_id": record["id"],
                        "expected_version": expected_version,
                    },
                )
            self._insert_timeline(
                conn,
                record["id"],
                event_type,
                old_value,
                new_value,
                actor,
                timestamp,
            )

        return new_version

    def get_by_id(self, incident_id: str) -> dict[str, Any] | None:
        """Get an incident by ID."""
        result = self.db.execute_one(
            "SELECT * FROM incidents WHERE id = ?", (incident_id,)
        )
        return self._deserialize_incident(result) if result else None

    def get_by_id_with_relations(self, incident_id: str) -> dict[str, Any] | None:
        """
        Get an incident by ID with employee names resolved.

        Adds reported_by_name and involved_employee_name keys.
        """
        result = self.db.execute_one(
            """
            SELECT i.*,
                   r.name AS reported_by_name,
                   e.name AS involved_employee_name
            FROM incidents i
            LEFT JOIN employees r ON r.id = i.reported_by_id
            LEFT JOIN employees e ON e.id = i.involved_employee_id
            WHERE i.id = ?
            """,
            (incident_id,),
        )
        return self._deserialize_incident(result) if result else None

    def exists_matching(
        self,
        location: str,
        description: str,
        incident_day: str,
        reported_by_id: str,
    ) -> bool:
        """
        Check for an incident with the same location, description,
        calendar day (YYYY-MM-DD, UTC) and reporter.
        """
        return (
            self.db.execute_one(
                """
                SELECT 1 FROM incidents
                WHERE location = ?
                  AND description = ?
                  AND substr(incident_date, 1, 10) = ?
                  AND reported_by_id = ?
                LIMIT 1
                """,
                (location, description, incident_day, reported_by_id),
            )
            is not None
        )

    def list_all(
        self,
        status: str | None = None,
        severity: str | None = None,
        incident_type: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """List incidents with filters, newest incident date first."""
        conditions = []
        params: list[Any] = []

        if status:
            conditions.append("status = ?")
            params.append(status)
        if severity:
            conditions.append("severity = ?")
            params.append(severity)
        if incident_type:
            conditions.append("incident_type = ?")
            params.append(incident_type)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.extend([limit, offset])

        results = self.db.execute(
            f"""
            SELECT * FROM incidents
            {where}
            ORDER BY incident_date DESC
            LIMIT ? OFFSET ?
            """,
            tuple(params),
        )
        return [self._deserialize_incident(r) for r in results]

    def find_by_severity(self, severity: str) -> list[dict[str, Any]]:
        """Get incidents of a given severity."""
        return self._find("severity = ?", (severity,))

    def find_pending_approval(self) -> list[dict[str, Any]]:
        """Get incidents that require approval and are waiting for it."""
        return self._find(
            "requires_manager_approval = 1 AND status = ?", ("PendingApproval",)
        )

    def find_high_risk(self, cost_threshold: int) -> list[dict[str, Any]]:
        """Get High severity incidents and incidents costing more than the threshold."""
        return self._find("severity = ? OR estimated_cost > ?", ("High", cost_threshold))

    def find_by_employee(self, employee_id: str) -> list[dict[str, Any]]:
        """Get incidents reported by or involving an employee."""
        return self._find(
            "reported_by_id = ? OR involved_employee_id = ?", (employee_id, employee_id)
        )

    def find_by_location(self, fragment: str) -> list[dict[str, Any]]:
        """Get incidents whose location contains the fragment."""
        return self._find("location LIKE ?", (f"%{fragment}%",))

    def find_by_date_range(self, start: str, end: str) -> list[dict[str, Any]]:
        """Get incidents dated within [start, end]."""
        return self._find("incident_date >= ? AND incident_date <= ?", (start, end))

    def find_recent(self, limit: int = 5) -> list[dict[str, Any]]:
        """Get the most recent incidents by incident date."""
        return self.list_all(limit=limit)

    def get_timeline(self, incident_id: str) -> list[dict[str, Any]]:
        """Get the timeline for an incident in insertion order."""
        return self.db.execute(
            "SELECT * FROM incident_timeline WHERE incident_id = ? ORDER BY id",
            (incident_id,),
        )

    def _find(self, where: str, params: tuple[Any, ...]) -> list[dict[str, Any]]:
        results = self.db.execute(
            f"SELECT * FROM incidents WHERE {where} ORDER BY incident_date DESC",
            params,
        )
        return [self._deserialize_incident(r) for r in results]

    def _insert_timeline(
        self,
        conn: Any,
        incident_id: str,
        event_type: str,
        old_value: str | None,
        new_value: str | None,
        actor: str | None,
        timestamp: str | None,
    ) -> None:
        conn.execute(
            """
            INSERT INTO incident_timeline
                (incident_id, event_type, old_value, new_value, actor, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                incident_id,
                event_type,
                old_value,
                new_value,
                actor,
                timestamp or utc_now().isoformat(),
            ),
        )

    def _column_value(self, record: dict[str, Any], column: str) -> Any:
        value = record.get(column)
        if column in self._BOOL_FIELDS:
            return int(bool(value))
        if column == "estimated_cost":
            return value or 0
        if column == "version":
            return value or 0
        return value

    def _deserialize_incident(self, row: dict[str, Any]) -> dict[str, Any]:
        return self._to_bool_fields(row, self._BOOL_FIELDS)
