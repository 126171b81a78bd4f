"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime
from pathlib import Path
from typing import Dict, Any

from stormcrew.database import (
    Contractor,
    CrewAvailability,
    EquipmentAvailability,
    dispose_engine,
    init_database,
    get_session,
)
from stormcrew.service import CoordinationService


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create an initialized temporary database."""
    path = tmp_path / "test.db"
    init_database(path)
    yield path
    dispose_engine(path)


@pytest.fixture
def db_session(db_path):
    """Session on the temporary database."""
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def service(db_path) -> CoordinationService:
    service = CoordinationService(db_path)
    yield service
    service.close()


@pytest.fixture
def make_contractor(db_session):
    """Factory for committed contractors."""

    def _make(company: str, name: str, email: str = None, phone: str = None, **fields) -> Contractor:
        fields.setdefault("category", "Union")
        contractor = Contractor(company=company, name=name, email=email, phone=phone, **fields)
        db_session.add(contractor)
        db_session.commit()
        return contractor

    return _make


@pytest.fixture
def make_crew(db_session):
    """Factory for committed crew availability rows (unassigned by default)."""

    def _make(contractor_id: int, session_id: int = None, **fields) -> CrewAvailability:
        fields.setdefault("available_start_date", datetime(2025, 1, 15, 7, 0))
        row = CrewAvailability(contractor_id=contractor_id, session_id=session_id, **fields)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_equipment(db_session):
    """Factory for committed equipment availability rows (unassigned by default)."""

    def _make(contractor_id: int, session_id: int = None, **fields) -> EquipmentAvailability:
        fields.setdefault("available_start_date", datetime(2025, 1, 15, 7, 0))
        fields.setdefault("equipment_type", "bucket_truck")
        row = EquipmentAvailability(contractor_id=contractor_id, session_id=session_id, **fields)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def valid_identity_record() -> Dict[str, Any]:
    """Valid identity record as an importer would send it."""
    return {
        "company": "Acme Corp",
        "name": "John Doe",
        "email": "john@acme.com",
        "phone": "555-123-4567",
        "category": "Union",
    }


@pytest.fixture
def invalid_identity_record() -> Dict[str, Any]:
    """Invalid identity record (missing required fields)."""
    return {
        "company": "Acme Corp",
        # Missing name
        "email": "john@acme.com",
    }
