"""
Contractors Repository.

Responsibilities:
- Read accessors for the contractors table.
- Creation of new contractor rows.

Non-Responsibilities:
- No matching decisions.
- No reference re-pointing.

Invariant:
Soft-deleted contractors (deleted_at set) are never returned.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from stormcrew.database import Contractor


def _live(session: Session):
    return session.query(Contractor).filter(Contractor.deleted_at.is_(None))


def get_contractor(session: Session, contractor_id: int) -> Optional[Contractor]:
    return _live(session).filter(Contractor.id == contractor_id).first()


def list_contractors(session: Session) -> List[Contractor]:
    """All live contractors in id order (the order matching scans them in)."""
    return _live(session).order_by(Contractor.id.asc()).all()


def list_needing_review(session: Session) -> List[Contractor]:
    return _live(session).filter(Contractor.needs_review.is_(True)).order_by(Contractor.id.asc()).all()


def create_contractor(session: Session, fields: Dict[str, Any]) -> Contractor:
    """Stage a new contractor and flush so the caller gets its id. Does not commit."""
    contractor = Contractor(**fields)
    session.add(contractor)
    session.flush()
    return contractor


def soft_delete_contractor(session: Session, contractor: Contractor, when: Optional[datetime] = None) -> None:
    contractor.deleted_at = when or datetime.now()
