"""
Availability Repository.

Responsibilities:
- Read accessors for crew and equipment availability rows.
- Bucketing queries by session reference (id or NULL).

Non-Responsibilities:
- No session selection ("active" is resolved by the lifecycle manager).
- No departure location aggregation.

Invariant:
Soft-deleted rows are never returned by read accessors.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from stormcrew.database import CrewAvailability

# Crew and equipment tables share the columns used here.


def _live(session: Session, model):
    return session.query(model).filter(model.deleted_at.is_(None))


def list_by_session(session: Session, session_id: Optional[int], model=CrewAvailability) -> List:
    """Rows bucketed into session_id, or unassigned rows when session_id is None."""
    query = _live(session, model)
    if session_id is None:
        query = query.filter(model.session_id.is_(None))
    else:
        query = query.filter(model.session_id == session_id)
    return query.order_by(model.id.asc()).all()


def list_by_contractor(session: Session, contractor_id: int, model=CrewAvailability) -> List:
    return _live(session, model).filter(model.contractor_id == contractor_id).order_by(model.id.asc()).all()


def count_unassigned(session: Session, model=CrewAvailability) -> int:
    """Count NULL-session rows, soft-deleted ones included (they still need a bucket)."""
    return session.query(model).filter(model.session_id.is_(None)).count()
