"""
Database schema definitions for SafetyTrack.

This module defines the SQLite schema as SQL strings: employees, safety
inspections, incidents, and the incident timeline. Timestamps are stored
as ISO 8601 strings in UTC, so the first ten characters of incident_date
are its calendar date.
"""

# Current schema version - increment when making schema changes
SCHEMA_VERSION = 1

SCHEMA_VERSION_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    version INTEGER NOT NULL UNIQUE,
    applied_at TEXT NOT NULL DEFAULT (datetime('now')),
    description TEXT
);
"""

EMPLOYEES_SQL = """
CREATE TABLE IF NOT EXISTS employees (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    employee_code TEXT NOT NULL UNIQUE,
    department TEXT NOT NULL,
    position TEXT NOT NULL,
    hire_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    safety_training_level TEXT,
    last_safety_training TEXT
);

CREATE INDEX IF NOT EXISTS idx_employees_department ON employees(department);
CREATE INDEX IF NOT EXISTS idx_employees_is_active ON employees(is_active);
"""

SAFETY_INSPECTIONS_SQL = """
CREATE TABLE IF NOT EXISTS safety_inspections (
    id TEXT PRIMARY KEY,
    inspection_date TEXT NOT NULL,
    location TEXT NOT NULL,
    inspector_name TEXT NOT NULL,
    inspector_id TEXT,
    inspection_type TEXT NOT NULL,
    status TEXT NOT NULL,
    risk_score INTEGER NOT NULL DEFAULT 0,
    findings TEXT NOT NULL DEFAULT '',
    recommendations TEXT,
    follow_up_date TEXT,
    requires_follow_up INTEGER NOT NULL DEFAULT 0
);
"""

# Relationships are plain ids; existence is checked by the rule engine
INCIDENTS_SQL = """
CREATE TABLE IF NOT EXISTS incidents (
    id TEXT PRIMARY KEY,
    incident_date TEXT NOT NULL,
    location TEXT NOT NULL,
    description TEXT NOT NULL,
    incident_type TEXT NOT NULL,
    severity TEXT NOT NULL,
    reported_by_id TEXT NOT NULL,
    involved_employee_id TEXT,
    safety_inspection_id TEXT,
    corrective_action TEXT,
    investigation_notes TEXT,
    witnesses TEXT,
    estimated_cost INTEGER NOT NULL DEFAULT 0,
    is_near_miss INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    requires_manager_approval INTEGER NOT NULL DEFAULT 0,
    requires_safety_review INTEGER NOT NULL DEFAULT 0,
    manager_approval_date TEXT,
    manager_approved_by TEXT,
    safety_review_date TEXT,
    safety_reviewed_by TEXT,
    is_resolved INTEGER NOT NULL DEFAULT 0,
    resolved_date TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_incidents_incident_date ON incidents(incident_date);
CREATE INDEX IF NOT EXISTS idx_incidents_severity ON incidents(severity);
CREATE INDEX IF NOT EXISTS idx_incidents_status ON incidents(status);
CREATE INDEX IF NOT EXISTS idx_incidents_reported_by_id ON incidents(reported_by_id);
CREATE INDEX IF NOT EXISTS idx_incidents_involved_employee_id ON incidents(involved_employee_id);
"""

INCIDENT_TIMELINE_SQL = """
CREATE TABLE IF NOT EXISTS incident_timeline (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    incident_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    old_value TEXT,
    new_value TEXT,
    actor TEXT,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_incident_timeline_incident_id ON incident_timeline(incident_id);
"""

SCHEMA_SQL = f"""
-- SafetyTrack Database Schema v{SCHEMA_VERSION}

{SCHEMA_VERSION_SQL}

{EMPLOYEES_SQL}

{SAFETY_INSPECTIONS_SQL}

{INCIDENTS_SQL}

{INCIDENT_TIMELINE_SQL}

INSERT OR IGNORE INTO schema_version (version, description)
VALUES ({SCHEMA_VERSION}, 'Initial schema');
"""

TABLES = [
    "schema_version",
    "employees",
    "safety_inspections",
    "incidents",
    "incident_timeline",
]
