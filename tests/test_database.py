"""
Tests for database.py - SQLite schema and connection management.
"""

import pytest
from datetime import datetime
from sqlalchemy.exc import IntegrityError

from stormcrew.database import (
    AvailabilitySession,
    Contractor,
    CrewAvailability,
    UserAccount,
    dispose_engine,
    get_engine,
    get_session,
    init_database,
)


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        """Test that init_database creates the database file."""
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        """Test that init_database creates every table."""
        db_path = tmp_path / "test.db"
        init_database(db_path)

        session = get_session(db_path)
        assert session.query(Contractor).count() == 0
        assert session.query(AvailabilitySession).count() == 0
        assert session.query(CrewAvailability).count() == 0
        session.close()

    def test_init_creates_parent_directories(self, tmp_path):
        """Test that init_database creates parent directories if missing."""
        db_path = tmp_path / "nested" / "dir" / "test.db"
        assert not db_path.parent.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_is_repeatable(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)
        init_database(db_path)

    def test_engine_is_cached_per_path(self, tmp_path):
        assert get_engine(tmp_path / "a.db") is get_engine(tmp_path / "a.db")
        assert get_engine(tmp_path / "a.db") is not get_engine(tmp_path / "b.db")
        dispose_engine(tmp_path / "a.db")
        dispose_engine(tmp_path / "b.db")

    def test_engine_cache_keyed_on_resolved_path(self, tmp_path, monkeypatch):
        (tmp_path / "sub").mkdir()
        monkeypatch.chdir(tmp_path)

        engine = get_engine(tmp_path / "a.db")

        assert get_engine(tmp_path / "sub" / ".." / "a.db") is engine
        assert get_engine("a.db") is engine
        assert dispose_engine(tmp_path / "a.db") == 1

    def test_dispose_drops_cached_engine(self, tmp_path):
        first = get_engine(tmp_path / "a.db")

        assert dispose_engine(tmp_path / "a.db") == 1
        assert dispose_engine(tmp_path / "a.db") == 0

        second = get_engine(tmp_path / "a.db")
        assert second is not first
        dispose_engine(tmp_path / "a.db")

    def test_dispose_all(self, tmp_path):
        get_engine(tmp_path / "a.db")
        get_engine(tmp_path / "b.db")

        assert dispose_engine() >= 2
        assert dispose_engine(tmp_path / "a.db") == 0

    def test_session_usable_after_dispose(self, db_path):
        dispose_engine(db_path)

        session = get_session(db_path)
        session.add(Contractor(company="Acme Corp", name="John Doe"))
        session.commit()

        assert session.query(Contractor).count() == 1
        session.close()


class TestContractorModel:
    """Test Contractor defaults and constraints."""

    def test_defaults(self, db_session):
        before = datetime.now()
        contractor = Contractor(company="Acme Corp", name="John Doe")
        db_session.add(contractor)
        db_session.commit()

        assert contractor.category == ""
        assert contractor.needs_review is False
        assert contractor.deleted_at is None
        assert before <= contractor.created_at <= datetime.now()

    def test_missing_company_fails(self, db_session):
        db_session.add(Contractor(name="John Doe"))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_departure_locations_json_round_trip(self, db_session):
        locations = [{"location": "Tampa, FL", "latitude": 27.9, "longitude": -82.4}]
        contractor = Contractor(company="Acme Corp", name="John Doe", departure_locations=locations)
        db_session.add(contractor)
        db_session.commit()
        db_session.expire_all()

        assert contractor.departure_locations == locations


class TestForeignKeys:
    """SQLite foreign key enforcement is on."""

    def test_crew_row_requires_existing_contractor(self, db_session):
        db_session.add(CrewAvailability(contractor_id=999, available_start_date=datetime.now()))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_crew_row_requires_existing_session(self, db_session, make_contractor):
        contractor = make_contractor("Acme Corp", "John Doe")
        db_session.add(CrewAvailability(
            contractor_id=contractor.id,
            session_id=555,
            available_start_date=datetime.now(),
        ))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_user_account_gets_uuid(self, db_session, make_contractor):
        contractor = make_contractor("Acme Corp", "John Doe")
        user = UserAccount(email="john@acme.com", contractor_id=contractor.id)
        db_session.add(user)
        db_session.commit()

        assert len(user.id) == 36
        assert user.role == "CONTRACTOR"
