"""
Tests for the availability session lifecycle.
"""

from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from pipelines.sessions import lifecycle
from pipelines.sessions.lifecycle import (
    assign_unassigned_to_session,
    close_session,
    get_availability_by_session,
    start_new_session,
    submit_crew_availability,
    submit_equipment_availability,
)
from stormcrew.database import AvailabilitySession, CrewAvailability, EquipmentAvailability
from stormcrew.errors import InvalidArgument, NotFound, TransactionAborted
from storage.repositories.sessions import count_active_sessions, get_active_session, list_sessions

JAN_15 = datetime(2025, 1, 15, 9, 30)
JAN_22 = datetime(2025, 1, 22, 9, 30)


@pytest.fixture
def contractor(make_contractor):
    return make_contractor("Acme Corp", "John Doe")


class TestRotation:
    """Test start_new_session."""

    def test_first_rotation_sweeps_unassigned_into_snapshot(self, db_session, contractor, make_crew):
        for _ in range(5):
            make_crew(contractor.id)

        new = start_new_session(db_session, now=JAN_15)

        sessions = list_sessions(db_session)
        assert len(sessions) == 2
        snapshot = next(s for s in sessions if s.id != new.id)
        assert snapshot.label == "Historical Data - Jan 15, 2025"
        assert snapshot.is_active is False
        assert snapshot.closed_at == JAN_15
        assert snapshot.end_date == JAN_15

        assert new.is_active is True
        assert new.label == "Week of Jan 15, 2025"
        assert len(get_availability_by_session(db_session, snapshot.id)) == 5
        assert get_availability_by_session(db_session, "unassigned") == []
        assert get_availability_by_session(db_session, "active") == []

    def test_first_rotation_without_unassigned_creates_no_snapshot(self, db_session):
        new = start_new_session(db_session, now=JAN_15)

        assert [s.id for s in list_sessions(db_session)] == [new.id]

    def test_equipment_is_swept_too(self, db_session, contractor, make_equipment):
        make_equipment(contractor.id)

        start_new_session(db_session, now=JAN_15)

        assert get_availability_by_session(db_session, "unassigned", EquipmentAvailability) == []

    def test_custom_labels(self, db_session, contractor, make_crew):
        make_crew(contractor.id)

        new = start_new_session(db_session, label="Hurricane Milton", snapshot_label="Pre-launch", now=JAN_15)

        labels = {s.label for s in list_sessions(db_session)}
        assert labels == {"Hurricane Milton", "Pre-launch"}
        assert new.label == "Hurricane Milton"

    def test_second_rotation_closes_previous(self, db_session):
        first = start_new_session(db_session, now=JAN_15)
        second = start_new_session(db_session, now=JAN_22)
        db_session.expire_all()

        assert first.is_active is False
        assert first.end_date == JAN_22
        assert first.closed_at == JAN_22
        assert second.is_active is True
        assert get_active_session(db_session).id == second.id
        assert count_active_sessions(db_session) == 1

    def test_rotation_with_active_session_leaves_unassigned_alone(self, db_session, contractor, make_crew):
        start_new_session(db_session, now=JAN_15)
        stray = make_crew(contractor.id)

        start_new_session(db_session, now=JAN_22)
        db_session.expire_all()

        assert stray.session_id is None
        assert len(list_sessions(db_session)) == 2

    def test_never_more_than_one_active(self, db_session, contractor, make_crew):
        for day in range(1, 6):
            make_crew(contractor.id)
            start_new_session(db_session, now=datetime(2025, 2, day))
            assert count_active_sessions(db_session) == 1

    def test_rotation_after_admin_close_sweeps_again(self, db_session, contractor, make_crew):
        first = start_new_session(db_session, now=JAN_15)
        close_session(db_session, first.id, now=JAN_22)
        make_crew(contractor.id)

        start_new_session(db_session, now=JAN_22)

        assert get_availability_by_session(db_session, "unassigned") == []
        assert len(list_sessions(db_session)) == 3

    def test_rotation_recorded_in_metrics(self, db_session):
        before = lifecycle.logger.get_metrics()["session_rotations"]

        start_new_session(db_session, now=JAN_15)

        assert lifecycle.logger.get_metrics()["session_rotations"] == before + 1


class TestSingleActiveGuard:
    """The store itself refuses a second active session."""

    def test_unique_index_rejects_two_active_rows(self, db_session):
        db_session.add(AvailabilitySession(label="one", is_active=True))
        db_session.add(AvailabilitySession(label="two", is_active=True))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_many_inactive_rows_allowed(self, db_session):
        for i in range(3):
            db_session.add(AvailabilitySession(label=f"old {i}", is_active=False))
        db_session.commit()

        assert db_session.query(AvailabilitySession).count() == 3

    def test_racing_rotation_aborts(self, db_session, monkeypatch):
        """A rotation that missed the competing active session fails atomically."""
        existing = start_new_session(db_session, now=JAN_15)
        monkeypatch.setattr(lifecycle, "get_active_session", lambda session: None)

        with pytest.raises(TransactionAborted):
            start_new_session(db_session, label="loser", now=JAN_22)

        monkeypatch.undo()
        assert count_active_sessions(db_session) == 1
        assert get_active_session(db_session).id == existing.id
        assert "loser" not in {s.label for s in list_sessions(db_session)}


class TestCloseSession:
    """Test administrative close."""

    def test_close_active_session(self, db_session):
        active = start_new_session(db_session, now=JAN_15)

        closed = close_session(db_session, active.id, now=JAN_22)

        assert closed.is_active is False
        assert closed.closed_at == JAN_22
        assert get_active_session(db_session) is None
        assert get_availability_by_session(db_session, "active") == []

    def test_close_is_noop_when_already_closed(self, db_session):
        active = start_new_session(db_session, now=JAN_15)
        close_session(db_session, active.id, now=JAN_15)

        again = close_session(db_session, active.id, now=JAN_22)

        assert again.closed_at == JAN_15

    def test_close_unknown_session(self, db_session):
        with pytest.raises(NotFound):
            close_session(db_session, 42)

    def test_close_malformed_id(self, db_session):
        with pytest.raises(InvalidArgument):
            close_session(db_session, "latest")

    def test_close_superscript_digit_id(self, db_session):
        with pytest.raises(InvalidArgument):
            close_session(db_session, "²")


class TestAssignUnassigned:
    """Test bulk bucketing."""

    def test_assign_is_idempotent(self, db_session, contractor, make_crew, make_equipment):
        target = start_new_session(db_session, now=JAN_15)
        make_crew(contractor.id)
        make_crew(contractor.id)
        make_equipment(contractor.id)

        assert assign_unassigned_to_session(db_session, target.id) == 3
        assert assign_unassigned_to_session(db_session, target.id) == 0
        assert len(get_availability_by_session(db_session, target.id)) == 2

    def test_assign_leaves_bucketed_rows_alone(self, db_session, contractor, make_crew):
        first = start_new_session(db_session, now=JAN_15)
        kept = make_crew(contractor.id, session_id=first.id)
        second = start_new_session(db_session, now=JAN_22)
        make_crew(contractor.id)

        assert assign_unassigned_to_session(db_session, second.id) == 1
        db_session.expire_all()
        assert kept.session_id == first.id

    def test_assign_to_closed_session_allowed(self, db_session, contractor, make_crew):
        first = start_new_session(db_session, now=JAN_15)
        start_new_session(db_session, now=JAN_22)
        make_crew(contractor.id)

        assert assign_unassigned_to_session(db_session, first.id) == 1

    def test_assign_unknown_session(self, db_session):
        with pytest.raises(NotFound):
            assign_unassigned_to_session(db_session, 7)

    def test_assign_superscript_digit_id(self, db_session):
        with pytest.raises(InvalidArgument):
            assign_unassigned_to_session(db_session, "²")


class TestSessionSelectors:
    """Test get_availability_by_session selectors."""

    def test_active_selector_default(self, db_session, contractor, make_crew):
        active = start_new_session(db_session, now=JAN_15)
        row = make_crew(contractor.id, session_id=active.id)

        assert [r.id for r in get_availability_by_session(db_session)] == [row.id]
        assert [r.id for r in get_availability_by_session(db_session, "active")] == [row.id]

    def test_no_active_session_gives_empty_list(self, db_session, contractor, make_crew):
        make_crew(contractor.id)
        assert get_availability_by_session(db_session, "active") == []

    def test_unassigned_selector(self, db_session, contractor, make_crew):
        row = make_crew(contractor.id)
        assert [r.id for r in get_availability_by_session(db_session, "unassigned")] == [row.id]

    def test_numeric_string_selector(self, db_session, contractor, make_crew):
        active = start_new_session(db_session, now=JAN_15)
        make_crew(contractor.id, session_id=active.id)

        assert len(get_availability_by_session(db_session, str(active.id))) == 1

    def test_soft_deleted_rows_hidden(self, db_session, contractor, make_crew):
        make_crew(contractor.id, deleted_at=datetime.now())
        assert get_availability_by_session(db_session, "unassigned") == []

    def test_unknown_selector_string(self, db_session):
        with pytest.raises(InvalidArgument):
            get_availability_by_session(db_session, "latest")

    @pytest.mark.parametrize("selector", ["²", "1²", "-1"])
    def test_non_ascii_or_signed_selector(self, db_session, selector):
        with pytest.raises(InvalidArgument):
            get_availability_by_session(db_session, selector)

    def test_unknown_session_id(self, db_session):
        with pytest.raises(NotFound):
            get_availability_by_session(db_session, 404)


class TestSubmitAvailability:
    """New submissions land in the active session."""

    def test_submission_bucketed_into_active_session(self, db_session, contractor):
        active = start_new_session(db_session, now=JAN_15)

        row = submit_crew_availability(
            db_session, contractor.id,
            available_start_date=JAN_15,
            departure_location="Tampa, FL",
            total_fte=12,
        )

        assert row.session_id == active.id
        assert isinstance(row, CrewAvailability)

    def test_submission_without_active_session_is_unassigned(self, db_session, contractor):
        row = submit_crew_availability(db_session, contractor.id, available_start_date=JAN_15)

        assert row.session_id is None
        assert len(get_availability_by_session(db_session, "unassigned")) == 1

    def test_equipment_submission(self, db_session, contractor):
        active = start_new_session(db_session, now=JAN_15)

        row = submit_equipment_availability(
            db_session, contractor.id,
            equipment_type="digger",
            quantity=2,
            available_start_date=JAN_15,
        )

        assert row.session_id == active.id
        assert row.quantity == 2

    def test_submission_for_unknown_contractor(self, db_session):
        with pytest.raises(NotFound):
            submit_crew_availability(db_session, 999, available_start_date=JAN_15)
