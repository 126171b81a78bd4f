"""
Availability Sessions Repository.

Responsibilities:
- Read accessors for the availability_sessions table.

Non-Responsibilities:
- No activation or closing. Only the session lifecycle manager
  writes is_active.

Invariant:
Repositories must not encode domain decisions.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from stormcrew.database import AvailabilitySession


def get_session_by_id(session: Session, session_id: int) -> Optional[AvailabilitySession]:
    return session.query(AvailabilitySession).filter(AvailabilitySession.id == session_id).first()


def get_active_session(session: Session) -> Optional[AvailabilitySession]:
    return session.query(AvailabilitySession).filter(AvailabilitySession.is_active.is_(True)).first()


def count_active_sessions(session: Session) -> int:
    return session.query(AvailabilitySession).filter(AvailabilitySession.is_active.is_(True)).count()


def list_sessions(session: Session) -> List[AvailabilitySession]:
    return (
        session.query(AvailabilitySession)
        .order_by(AvailabilitySession.created_at.asc(), AvailabilitySession.id.asc())
        .all()
    )
