"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for contractor, availability and session storage.
"""

import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Contractor(Base):
    """Contractor identity record."""

    __tablename__ = "contractors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    company = Column(String, nullable=False)
    email = Column(String)  # comma/semicolon delimited
    phone = Column(String)  # comma/semicolon delimited
    category = Column(String, nullable=False, default="")  # Veg, Union, Non-Union, ...
    city = Column(String)
    state = Column(String)
    full_address = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    departure_locations = Column(JSON)  # [{"location", "latitude", "longitude"}]
    needs_review = Column(Boolean, nullable=False, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime)


class AvailabilitySession(Base):
    """Administrative time window grouping availability submissions."""

    __tablename__ = "availability_sessions"
    __table_args__ = (
        # At most one active session at any instant
        Index(
            "uq_availability_sessions_single_active",
            "is_active",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String, nullable=False)  # e.g. "Week of Jan 15, 2025"
    start_date = Column(DateTime, nullable=False, default=datetime.now)
    end_date = Column(DateTime)
    is_active = Column(Boolean, nullable=False, default=True)
    closed_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class CrewAvailability(Base):
    """Crew availability submission. session_id is NULL until bucketed."""

    __tablename__ = "crew_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("availability_sessions.id"), index=True)
    submission_date = Column(DateTime, nullable=False, default=datetime.now)
    available_start_date = Column(DateTime, nullable=False)
    available_end_date = Column(DateTime)
    departure_city = Column(String)
    departure_state = Column(String)
    departure_location = Column(String)
    departure_latitude = Column(Float)
    departure_longitude = Column(Float)
    total_fte = Column(Integer, default=0)
    buckets = Column(Integer, default=0)
    diggers = Column(Integer, default=0)
    pickups = Column(Integer, default=0)
    backyard_machines = Column(Integer, default=0)
    status = Column(String, nullable=False, default="submitted")  # submitted, approved, deployed, expired
    notes = Column(Text)
    submitted_by = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    deleted_at = Column(DateTime)


class EquipmentAvailability(Base):
    """Equipment offered alongside (or independently of) a crew submission."""

    __tablename__ = "equipment_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True)
    crew_availability_id = Column(Integer, ForeignKey("crew_availability.id", ondelete="CASCADE"))
    session_id = Column(Integer, ForeignKey("availability_sessions.id"), index=True)
    equipment_type = Column(String, nullable=False)  # bucket_truck, digger, crane, ...
    quantity = Column(Integer, nullable=False, default=1)
    daily_rate = Column(Float)
    available_start_date = Column(DateTime, nullable=False)
    available_end_date = Column(DateTime)
    status = Column(String, nullable=False, default="available")
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    deleted_at = Column(DateTime)


class AvailabilitySubmission(Base):
    """Raw availability form payload as received, before parsing."""

    __tablename__ = "availability_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id", ondelete="CASCADE"), index=True)
    submitter_email = Column(String)
    payload = Column(JSON)
    status = Column(String, nullable=False, default="received")
    created_at = Column(DateTime, nullable=False, default=datetime.now)


class ContractorFile(Base):
    """Uploaded document attached to a contractor."""

    __tablename__ = "contractor_files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_size = Column(Integer)
    mime_type = Column(String)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.now)
    deleted_at = Column(DateTime)


class ContractorReview(Base):
    """Post-storm performance review of a contractor."""

    __tablename__ = "contractor_reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contractor_id = Column(Integer, ForeignKey("contractors.id", ondelete="CASCADE"), nullable=False, index=True)
    submitter_name = Column(String, nullable=False)
    communication_rating = Column(Integer, nullable=False)  # 1-5
    work_quality_rating = Column(Integer, nullable=False)  # 1-5
    would_recommend = Column(Boolean, nullable=False, default=True)
    comments = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    deleted_at = Column(DateTime)


class UserAccount(Base):
    """Login account, optionally linked to the contractor it represents."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True)
    first_name = Column(String)
    last_name = Column(String)
    role = Column(String, nullable=False, default="CONTRACTOR")  # ADMIN, CONTRACTOR, MANAGER, UTILITY
    contractor_id = Column(Integer, ForeignKey("contractors.id"), index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    deleted_at = Column(DateTime)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_engines = {}


def get_engine(db_path: Path):
    """
    Get the (cached) engine for a SQLite database file.

    Engines are cached per resolved path, so different spellings of the same
    file share one engine. Use dispose_engine() to release them.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine with foreign key enforcement turned on
    """
    key = Path(db_path).resolve()
    engine = _engines.get(key)
    if engine is None:
        engine = create_engine(f"sqlite:///{key}")
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        _engines[key] = engine
    return engine


def dispose_engine(db_path: Optional[Path] = None) -> int:
    """
    Close pooled connections and drop cached engines.

    Args:
        db_path: Database to release; every cached engine when omitted

    Returns:
        Number of engines disposed
    """
    if db_path is None:
        keys = list(_engines)
    else:
        keys = [Path(db_path).resolve()]

    disposed = 0
    for key in keys:
        engine = _engines.pop(key, None)
        if engine is not None:
            engine.dispose()
            disposed += 1
    return disposed


def init_database(db_path: Path):
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy engine bound to the database
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)
    return engine


def get_session(db_path: Path, **kwargs):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file
        **kwargs: Extra sessionmaker options (e.g. expire_on_commit=False)

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(Path(db_path)), **kwargs)
    return Session()
