"""
Cleanup module for retiring merged duplicate contractors.

A merge leaves the source contractor intact but reference-free. Whether it is
then soft-deleted or only flagged for review is the caller's decision; this
module carries it out, and refuses while any dependent row still points at
the contractor.
"""

from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from pipelines.merge.coordinator import count_references
from storage.repositories.contractors import get_contractor, soft_delete_contractor

from .errors import InvalidArgument, NotFound
from .logger import get_logger
from .schema import coerce_record_id

logger = get_logger()

RETIRE_MODES = ("soft_delete", "flag")


def retire_contractor(
    session: Session,
    contractor_id,
    mode: str = "soft_delete",
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Soft-delete or flag a contractor that no longer owns any references.

    Args:
        session: SQLAlchemy session; committed on success
        contractor_id: Contractor to retire (typically a merge source)
        mode: "soft_delete" sets deleted_at; "flag" sets needs_review
        now: Clock override

    Returns:
        Per-entity reference counts (all zero)

    Raises:
        InvalidArgument: Unknown mode, malformed id, or references remain
        NotFound: Contractor absent or already soft-deleted
    """
    if mode not in RETIRE_MODES:
        raise InvalidArgument(f"Unknown retire mode: {mode!r}")
    contractor_id = coerce_record_id(contractor_id, "contractor")

    contractor = get_contractor(session, contractor_id)
    if contractor is None:
        raise NotFound(f"Contractor {contractor_id} not found")

    references = count_references(session, contractor_id)
    remaining = {name: count for name, count in references.items() if count}
    if remaining:
        logger.warning("Refusing to retire referenced contractor", contractor_id=contractor_id, references=remaining)
        raise InvalidArgument(
            f"Contractor {contractor_id} still has references: {remaining}"
        )

    try:
        if mode == "soft_delete":
            soft_delete_contractor(session, contractor, now)
        else:
            contractor.needs_review = True
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Retired contractor", contractor_id=contractor_id, mode=mode)
    return references
