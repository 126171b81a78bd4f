"""
Departure Location Backfill.

Responsibilities:
- Recompute each contractor's departure_locations from its crew
  availability submissions.
- Replay submissions in id order so the first spelling seen wins.

Non-Responsibilities:
- No geocoding: coordinates are copied from submissions as-is.
- No merging. Run it for a merge target after the merge commits.

Invariant:
A full rebuild must be idempotent and reproducible.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stormcrew.errors import NotFound, TransactionAborted
from stormcrew.logger import get_logger
from stormcrew.normalize import normalize_location
from storage.repositories.availability import list_by_contractor
from storage.repositories.contractors import get_contractor, list_contractors

logger = get_logger()


def collect_departure_locations(session: Session, contractor_id: int) -> List[Dict]:
    """Unique departure locations from a contractor's crew submissions."""
    locations: Dict[str, Dict] = {}
    for submission in list_by_contractor(session, contractor_id):
        raw = (submission.departure_location or "").strip()
        key = normalize_location(raw)
        if key and key not in locations:
            locations[key] = {
                "location": raw,
                "latitude": submission.departure_latitude,
                "longitude": submission.departure_longitude,
            }
    return list(locations.values())


def _rebuild_one(session: Session, contractor, now: datetime) -> bool:
    locations = collect_departure_locations(session, contractor.id)
    # Keep hand-entered locations when there is nothing to derive from
    if not locations or locations == contractor.departure_locations:
        return False
    contractor.departure_locations = locations
    contractor.updated_at = now
    return True


def rebuild_departure_locations(session: Session, contractor_id: Optional[int] = None) -> int:
    """
    Rebuild departure locations for one contractor, or all live contractors.

    Returns:
        Number of contractors whose departure_locations changed

    Raises:
        NotFound: contractor_id given but absent
        TransactionAborted: Store failure; nothing was committed
    """
    now = datetime.now()
    if contractor_id is not None:
        contractor = get_contractor(session, contractor_id)
        if contractor is None:
            raise NotFound(f"Contractor {contractor_id} not found")
        contractors = [contractor]
    else:
        contractors = list_contractors(session)

    try:
        updated = sum(1 for c in contractors if _rebuild_one(session, c, now))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Departure location rebuild aborted: {e}") from e

    logger.info(
        "Rebuilt departure locations",
        contractors_checked=len(contractors),
        contractors_updated=updated,
    )
    return updated
