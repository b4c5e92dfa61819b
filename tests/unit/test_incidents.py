"""
Tests for incident management.

This module tests the IncidentManager operations, queries, timeline,
event callbacks and concurrency handling.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from safetytrack.exceptions import ConcurrentModificationError, IncidentError, StorageError
from safetytrack.incidents import (
    Incident,
    IncidentEvent,
    IncidentManager,
    IncidentResult,
    IncidentRuleError,
    IncidentSeverity,
    IncidentStatus,
    IncidentType,
    IncidentUpdateRequest,
    RuleViolationCode,
    TimelineEventType,
)
from safetytrack.storage import Database

from conftest import FIXED_NOW


# =============================================================================
# Model Tests
# =============================================================================


class TestIncidentModels:
    """Tests for incident data models."""

    def test_incident_defaults(self) -> None:
        """Test a new incident's managed fields."""
        incident = Incident(location="Dock", description="Trip")

        assert incident.status == IncidentStatus.REPORTED
        assert incident.is_resolved is False
        assert incident.version == 0
        assert incident.id != ""

    def test_equality_by_id(self) -> None:
        """Test that incidents compare by id."""
        incident = Incident(location="Dock")

        assert incident == Incident(id=incident.id, location="Elsewhere")
        assert incident != Incident(location="Dock")

    def test_is_high_risk(self) -> None:
        """Test the high risk helper."""
        assert Incident(severity=IncidentSeverity.HIGH).is_high_risk() is True
        assert Incident(estimated_cost=10001).is_high_risk() is True
        assert Incident(estimated_cost=10000).is_high_risk() is False

    def test_to_dict_serializes_enums_and_dates(self) -> None:
        """Test converting an incident to a dict."""
        incident = Incident(
            incident_date=FIXED_NOW,
            incident_type=IncidentType.ELECTRIC_SHOCK,
            severity=IncidentSeverity.MEDIUM,
        )

        data = incident.to_dict()

        assert data["incident_type"] == "ElectricShock"
        assert data["severity"] == "Medium"
        assert data["status"] == "Reported"
        assert data["incident_date"] == FIXED_NOW.isoformat()

    def test_update_request_changed_fields(self) -> None:
        """Test that only supplied fields count as changes."""
        changes = IncidentUpdateRequest(location="Dock 3", is_near_miss=False)

        assert changes.changed_fields() == {"location": "Dock 3", "is_near_miss": False}
        assert IncidentUpdateRequest().is_empty() is True

    def test_is_approved_follows_status(self) -> None:
        """Test that a stale approval date alone does not count as approved."""
        assert Incident(
            status=IncidentStatus.APPROVED, manager_approval_date=FIXED_NOW
        ).is_approved() is True
        assert Incident(
            status=IncidentStatus.CLOSED, manager_approval_date=FIXED_NOW
        ).is_approved() is True
        assert Incident(
            status=IncidentStatus.PENDING_APPROVAL, manager_approval_date=FIXED_NOW
        ).is_approved() is False
        assert Incident(status=IncidentStatus.CLOSED).is_approved() is False

    def test_result_needs_exactly_one_side(self) -> None:
        """Test that a result carries either an incident or an error."""
        with pytest.raises(ValueError):
            IncidentResult()
        with pytest.raises(ValueError):
            IncidentResult(
                incident=Incident(),
                error=_error(RuleViolationCode.INVALID_FIELD, "Bad field."),
            )

    def test_result_unwrap_raises(self) -> None:
        """Test that unwrap converts a failure into IncidentError."""
        result = IncidentResult.failure(
            _error(RuleViolationCode.NOT_PENDING_APPROVAL, "Incident is not pending approval.")
        )

        with pytest.raises(IncidentError) as exc_info:
            result.unwrap()

        assert exc_info.value.code == "NotPendingApproval"
        assert result.to_dict()["error"]["code"] == "NotPendingApproval"


def _error(code: RuleViolationCode, message: str) -> IncidentRuleError:
    return IncidentRuleError(code=code, message=message)


# =============================================================================
# Create Tests
# =============================================================================


class TestCreateIncident:
    """Tests for IncidentManager.create_incident."""

    def test_create_low_severity(self, manager: IncidentManager, make_request) -> None:
        """Test creating an incident that needs no approval."""
        result = manager.create_incident(make_request())

        assert result.ok
        incident = result.incident
        assert incident.status == IncidentStatus.REPORTED
        assert incident.requires_manager_approval is False
        assert incident.created_at == FIXED_NOW
        assert manager.get(incident.id).status == IncidentStatus.REPORTED

    def test_create_persists_all_fields(
        self, manager: IncidentManager, make_request, trained_worker, inspection
    ) -> None:
        """Test that every supplied field round-trips through storage."""
        request = make_request(
            incident_type=IncidentType.COLLISION,
            involved_employee_id=trained_worker.id,
            safety_inspection_id=inspection.id,
            witnesses="Bruno, Carla",
            corrective_action="Mirror installed",
            is_near_miss=True,
        )

        created = manager.create_incident(request).unwrap()
        stored = manager.get(created.id)

        assert stored.involved_employee_id == trained_worker.id
        assert stored.safety_inspection_id == inspection.id
        assert stored.witnesses == "Bruno, Carla"
        assert stored.is_near_miss is True
        assert stored.incident_date == request.incident_date
        assert stored.version == 0

    def test_create_rejected(self, manager: IncidentManager, make_request) -> None:
        """Test that a rejected request stores nothing."""
        result = manager.create_incident(make_request(reported_by_id="missing"))

        assert not result.ok
        assert result.code == RuleViolationCode.UNKNOWN_REPORTER
        assert manager.list_incidents() == []

    def test_create_records_timeline(
        self, manager: IncidentManager, make_request, reporter
    ) -> None:
        """Test that creation writes a CREATED timeline entry."""
        incident = manager.create_incident(make_request()).unwrap()

        timeline = manager.get_timeline(incident.id)

        assert len(timeline) == 1
        assert timeline[0].event_type == TimelineEventType.CREATED
        assert timeline[0].new_value == "Reported"
        assert timeline[0].actor == reporter.id

    def test_get_missing(self, manager: IncidentManager) -> None:
        """Test getting a non-existent incident."""
        assert manager.get("missing") is None

    def test_get_details(
        self, manager: IncidentManager, make_request, reporter, trained_worker
    ) -> None:
        """Test that details resolve employee names."""
        incident = manager.create_incident(
            make_request(involved_employee_id=trained_worker.id)
        ).unwrap()

        details = manager.get_details(incident.id)

        assert details["id"] == incident.id
        assert details["reported_by_name"] == reporter.name
        assert details["involved_employee_name"] == trained_worker.name
        assert manager.get_details("missing") is None


# =============================================================================
# Update Tests
# =============================================================================


class TestUpdateIncident:
    """Tests for IncidentManager.update_incident."""

    def test_update_fields(self, manager: IncidentManager, make_request) -> None:
        """Test updating descriptive fields."""
        incident = manager.create_incident(make_request()).unwrap()

        updated = manager.update_incident(
            incident.id,
            IncidentUpdateRequest(corrective_action="Mopped and signed", estimated_cost=800),
        ).unwrap()

        assert updated.corrective_action == "Mopped and signed"
        assert updated.estimated_cost == 800
        assert updated.version == 1
        assert manager.get(incident.id).corrective_action == "Mopped and signed"

        timeline = manager.get_timeline(incident.id)
        assert timeline[-1].event_type == TimelineEventType.UPDATED
        assert timeline[-1].new_value == "corrective_action, estimated_cost"

    def test_update_without_severity_keeps_classification(
        self, manager: IncidentManager, make_request
    ) -> None:
        """Test that cost changes alone do not reclassify."""
        incident = manager.create_incident(make_request()).unwrap()

        updated = manager.update_incident(
            incident.id, IncidentUpdateRequest(estimated_cost=20000)
        ).unwrap()

        assert updated.requires_manager_approval is False
        assert updated.status == IncidentStatus.REPORTED

    def test_update_severity_reclassifies(self, manager: IncidentManager, make_request) -> None:
        """Test that a severity change re-derives flags and status."""
        incident = manager.create_incident(make_request()).unwrap()

        updated = manager.update_incident(
            incident.id, IncidentUpdateRequest(severity=IncidentSeverity.HIGH)
        ).unwrap()

        assert updated.requires_manager_approval is True
        assert updated.requires_safety_review is True
        assert updated.status == IncidentStatus.PENDING_APPROVAL

        entry = manager.get_timeline(incident.id)[-1]
        assert entry.event_type == TimelineEventType.RECLASSIFIED
        assert entry.old_value == "Reported"
        assert entry.new_value == "PendingApproval"

    def test_reclassify_uses_current_cost(self, manager: IncidentManager, make_request) -> None:
        """Test that reclassification sees the stored cost."""
        incident = manager.create_incident(make_request(estimated_cost=12000)).unwrap()
        assert incident.requires_safety_review is True

        updated = manager.update_incident(
            incident.id, IncidentUpdateRequest(severity=IncidentSeverity.LOW)
        ).unwrap()

        assert updated.requires_manager_approval is True
        assert updated.requires_safety_review is True

    def test_update_missing(self, manager: IncidentManager) -> None:
        """Test updating a non-existent incident."""
        result = manager.update_incident("missing", IncidentUpdateRequest(location="x"))

        assert result.code == RuleViolationCode.INCIDENT_NOT_FOUND

    def test_update_resolved(self, manager: IncidentManager, make_request) -> None:
        """Test that closed incidents reject any update."""
        incident = manager.create_incident(make_request()).unwrap()
        manager.close_incident(incident.id).unwrap()

        result = manager.update_incident(incident.id, IncidentUpdateRequest())

        assert result.code == RuleViolationCode.RESOLVED_INCIDENT_IMMUTABLE

    def test_update_invalid_field(self, manager: IncidentManager, make_request) -> None:
        """Test that update validation failures are returned."""
        incident = manager.create_incident(make_request()).unwrap()

        result = manager.update_incident(incident.id, IncidentUpdateRequest(location=""))

        assert result.code == RuleViolationCode.INVALID_FIELD
        assert manager.get(incident.id).location == incident.location

    def test_empty_update_writes_nothing(self, manager: IncidentManager, make_request) -> None:
        """Test that an empty change set returns the incident unchanged."""
        incident = manager.create_incident(make_request()).unwrap()

        result = manager.update_incident(incident.id, IncidentUpdateRequest())

        assert result.ok
        assert result.incident.version == 0
        assert len(manager.get_timeline(incident.id)) == 1


# =============================================================================
# Approve / Close / Review Tests
# =============================================================================


class TestApproveAndClose:
    """Tests for approval, closing and safety review through the manager."""

    def test_approve_and_close(self, manager: IncidentManager, make_request) -> None:
        """Test the approval path end to end."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()

        approved = manager.approve_incident(incident.id, "Manager Name").unwrap()
        closed = manager.close_incident(incident.id).unwrap()

        assert approved.status == IncidentStatus.APPROVED
        assert approved.version == 1
        assert closed.status == IncidentStatus.CLOSED
        assert closed.version == 2
        stored = manager.get(incident.id)
        assert stored.is_resolved is True
        assert stored.resolved_date == FIXED_NOW
        assert stored.manager_approved_by == "Manager Name"

        events = [e.event_type for e in manager.get_timeline(incident.id)]
        assert events == [
            TimelineEventType.CREATED,
            TimelineEventType.APPROVED,
            TimelineEventType.CLOSED,
        ]

    def test_approve_missing(self, manager: IncidentManager) -> None:
        """Test approving a non-existent incident."""
        assert manager.approve_incident("missing", "M").code == RuleViolationCode.INCIDENT_NOT_FOUND

    def test_close_missing(self, manager: IncidentManager) -> None:
        """Test closing a non-existent incident."""
        assert manager.close_incident("missing").code == RuleViolationCode.INCIDENT_NOT_FOUND

    def test_approve_low_severity(self, manager: IncidentManager, make_request) -> None:
        """Test that Low incidents cannot be approved."""
        incident = manager.create_incident(make_request()).unwrap()

        result = manager.approve_incident(incident.id, "Manager Name")

        assert result.code == RuleViolationCode.APPROVAL_NOT_REQUIRED

    def test_close_twice(self, manager: IncidentManager, make_request) -> None:
        """Test closing an already closed incident."""
        incident = manager.create_incident(make_request()).unwrap()
        manager.close_incident(incident.id).unwrap()

        assert manager.close_incident(incident.id).code == RuleViolationCode.ALREADY_RESOLVED

    def test_approve_after_close(self, manager: IncidentManager, make_request) -> None:
        """Test that a closed incident cannot be approved again."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.HIGH, corrective_action="Rails fitted")
        ).unwrap()
        manager.approve_incident(incident.id, "Manager Name").unwrap()
        manager.close_incident(incident.id).unwrap()

        result = manager.approve_incident(incident.id, "Other Manager")

        assert result.code == RuleViolationCode.NOT_PENDING_APPROVAL
        stored = manager.get(incident.id)
        assert stored.manager_approved_by == "Manager Name"
        assert stored.version == 2

    def test_escalation_after_approval_needs_new_approval(
        self, manager: IncidentManager, make_request
    ) -> None:
        """Test that raising severity after approval puts the incident back in the queue."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()
        approved = manager.approve_incident(incident.id, "Manager Name").unwrap()
        assert approved.is_approved() is True

        escalated = manager.update_incident(
            incident.id, IncidentUpdateRequest(severity=IncidentSeverity.HIGH)
        ).unwrap()

        assert escalated.status == IncidentStatus.PENDING_APPROVAL
        assert escalated.manager_approval_date is not None
        assert escalated.is_approved() is False
        assert escalated.is_pending_approval() is True
        assert manager.get(incident.id).is_approved() is False
        assert manager.close_incident(incident.id).code == (
            RuleViolationCode.APPROVAL_REQUIRED_BEFORE_CLOSE
        )

        reapproved = manager.approve_incident(incident.id, "Second Manager").unwrap()

        assert reapproved.is_approved() is True
        assert reapproved.manager_approved_by == "Second Manager"

    def test_timeline_uses_manager_clock(self, manager: IncidentManager, make_request) -> None:
        """Test that every audit entry is stamped with the injected clock."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()
        manager.approve_incident(incident.id, "Manager Name").unwrap()
        closed = manager.close_incident(incident.id).unwrap()

        timeline = manager.get_timeline(incident.id)

        assert [e.timestamp for e in timeline] == [FIXED_NOW, FIXED_NOW, FIXED_NOW]
        assert timeline[0].timestamp == closed.created_at
        assert timeline[1].timestamp == closed.manager_approval_date

    def test_safety_review(self, manager: IncidentManager, make_request) -> None:
        """Test recording a safety review."""
        incident = manager.create_incident(
            make_request(incident_type=IncidentType.ELECTRIC_SHOCK)
        ).unwrap()

        reviewed = manager.record_safety_review(incident.id, "Safety Officer").unwrap()

        assert reviewed.safety_reviewed_by == "Safety Officer"
        assert manager.get(incident.id).is_safety_reviewed() is True
        assert manager.get_timeline(incident.id)[-1].event_type == TimelineEventType.SAFETY_REVIEWED
        assert (
            manager.record_safety_review(incident.id, "Safety Officer").code
            == RuleViolationCode.ALREADY_REVIEWED
        )

    def test_review_missing(self, manager: IncidentManager) -> None:
        """Test reviewing a non-existent incident."""
        assert (
            manager.record_safety_review("missing", "S").code
            == RuleViolationCode.INCIDENT_NOT_FOUND
        )


# =============================================================================
# Query Tests
# =============================================================================


class TestQueries:
    """Tests for incident queries."""

    @pytest.fixture
    def incidents(self, manager: IncidentManager, make_request, trained_worker) -> dict[str, Incident]:
        """Create a small mix of incidents on different days."""
        return {
            "low": manager.create_incident(
                make_request(incident_date=FIXED_NOW - timedelta(days=10))
            ).unwrap(),
            "high": manager.create_incident(
                make_request(
                    incident_date=FIXED_NOW - timedelta(days=5),
                    location="Loading Dock",
                    description="Fell from ladder",
                    severity=IncidentSeverity.HIGH,
                    corrective_action="Ladder inspection",
                )
            ).unwrap(),
            "costly": manager.create_incident(
                make_request(
                    incident_date=FIXED_NOW - timedelta(days=1),
                    location="Warehouse B",
                    description="Forklift hit rack",
                    incident_type=IncidentType.COLLISION,
                    estimated_cost=15000,
                    involved_employee_id=trained_worker.id,
                )
            ).unwrap(),
        }

    def test_list_ordered_newest_first(self, manager: IncidentManager, incidents) -> None:
        """Test default listing order."""
        ids = [i.id for i in manager.list_incidents()]

        assert ids == [incidents["costly"].id, incidents["high"].id, incidents["low"].id]

    def test_list_filters(self, manager: IncidentManager, incidents) -> None:
        """Test listing with filters and paging."""
        assert [i.id for i in manager.list_incidents(severity=IncidentSeverity.HIGH)] == [
            incidents["high"].id
        ]
        assert [i.id for i in manager.list_incidents(incident_type=IncidentType.COLLISION)] == [
            incidents["costly"].id
        ]
        assert [i.id for i in manager.list_incidents(status=IncidentStatus.REPORTED)] == [
            incidents["low"].id
        ]
        assert [i.id for i in manager.list_incidents(limit=1, offset=1)] == [incidents["high"].id]

    def test_find_by_severity(self, manager: IncidentManager, incidents) -> None:
        """Test finding by severity."""
        found = manager.find_by_severity(IncidentSeverity.LOW)

        assert {i.id for i in found} == {incidents["low"].id, incidents["costly"].id}

    def test_find_pending_approval(self, manager: IncidentManager, incidents) -> None:
        """Test finding incidents waiting for approval."""
        manager.approve_incident(incidents["high"].id, "Manager Name").unwrap()

        assert [i.id for i in manager.find_pending_approval()] == [incidents["costly"].id]

    def test_find_high_risk(self, manager: IncidentManager, incidents) -> None:
        """Test finding High severity or costly incidents."""
        found = manager.find_high_risk()

        assert [i.id for i in found] == [incidents["costly"].id, incidents["high"].id]

    def test_find_by_employee(
        self, manager: IncidentManager, incidents, reporter, trained_worker
    ) -> None:
        """Test finding incidents reported by or involving an employee."""
        assert len(manager.find_by_employee(reporter.id)) == 3
        assert [i.id for i in manager.find_by_employee(trained_worker.id)] == [
            incidents["costly"].id
        ]

    def test_find_recent(self, manager: IncidentManager, incidents) -> None:
        """Test finding the most recent incidents."""
        assert [i.id for i in manager.find_recent(2)] == [
            incidents["costly"].id,
            incidents["high"].id,
        ]

    def test_find_by_location(self, manager: IncidentManager, incidents) -> None:
        """Test substring location search."""
        assert [i.id for i in manager.find_by_location("Dock")] == [incidents["high"].id]

    def test_find_by_date_range(self, manager: IncidentManager, incidents) -> None:
        """Test inclusive date range search."""
        found = manager.find_by_date_range(
            FIXED_NOW - timedelta(days=5), FIXED_NOW - timedelta(days=1)
        )

        assert [i.id for i in found] == [incidents["costly"].id, incidents["high"].id]


# =============================================================================
# Event Tests
# =============================================================================


class TestEvents:
    """Tests for event callbacks."""

    def test_events_emitted(self, manager: IncidentManager, make_request) -> None:
        """Test that state changes emit events."""
        events: list[IncidentEvent] = []
        manager.on_event(events.append)

        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()
        manager.approve_incident(incident.id, "Manager Name")
        manager.close_incident(incident.id)

        assert [e.event_type for e in events] == [
            TimelineEventType.CREATED,
            TimelineEventType.APPROVED,
            TimelineEventType.CLOSED,
        ]
        assert events[1].actor == "Manager Name"
        assert events[2].incident.status == IncidentStatus.CLOSED
        assert events[0].timestamp == FIXED_NOW

    def test_rejections_emit_nothing(self, manager: IncidentManager, make_request) -> None:
        """Test that failed operations do not emit events."""
        callback = MagicMock()
        manager.on_event(callback)

        manager.create_incident(make_request(reported_by_id="missing"))

        callback.assert_not_called()

    def test_remove_callback(self, manager: IncidentManager, make_request) -> None:
        """Test removing a callback."""
        callback = MagicMock()
        manager.on_event(callback)

        assert manager.remove_callback(callback) is True
        assert manager.remove_callback(callback) is False

        manager.create_incident(make_request())
        callback.assert_not_called()

    def test_callback_failure_is_logged(
        self, manager: IncidentManager, make_request, caplog
    ) -> None:
        """Test that a failing callback does not break the operation."""
        manager.on_event(MagicMock(side_effect=RuntimeError("boom")))
        later = MagicMock()
        manager.on_event(later)

        with caplog.at_level("ERROR", logger="safetytrack.incidents.manager"):
            result = manager.create_incident(make_request())

        assert result.ok
        later.assert_called_once()
        assert "Incident callback failed" in caplog.text


# =============================================================================
# Concurrency and Storage Failure Tests
# =============================================================================


class TestConcurrency:
    """Tests for optimistic version checks and storage failures."""

    def test_stale_write_raises(
        self, manager: IncidentManager, incident_repository, make_request
    ) -> None:
        """Test that a write based on an old version is refused."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()

        # Another writer gets in first
        incident_repository.save(
            incident.to_dict(), expected_version=0, event_type="UPDATED"
        )

        with pytest.raises(ConcurrentModificationError):
            incident_repository.save(
                incident.to_dict(), expected_version=0, event_type="APPROVED"
            )

    def test_lost_race_in_manager(
        self, manager: IncidentManager, incident_repository, make_request
    ) -> None:
        """Test that the manager surfaces a lost race as an exception."""
        incident = manager.create_incident(
            make_request(severity=IncidentSeverity.MEDIUM)
        ).unwrap()
        stale = incident_repository.get_by_id(incident.id)
        manager.update_incident(incident.id, IncidentUpdateRequest(witnesses="Ana"))

        with patch.object(incident_repository, "get_by_id", return_value=stale):
            with pytest.raises(ConcurrentModificationError):
                manager.approve_incident(incident.id, "Manager Name")

        assert manager.get(incident.id).status == IncidentStatus.PENDING_APPROVAL

    def test_storage_error_propagates(self, manager: IncidentManager, make_request) -> None:
        """Test that storage failures are raised, not returned."""
        with patch.object(
            Database, "transaction", side_effect=StorageError("Transaction failed")
        ):
            with pytest.raises(StorageError):
                manager.create_incident(make_request())
