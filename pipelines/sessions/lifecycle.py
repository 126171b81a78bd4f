"""
Availability Session Lifecycle.

Responsibilities:
- Rotate the active availability session (close current, open next).
- Sweep unassigned submissions into a historical snapshot when rotating
  without an active session, so nothing is stranded outside a session.
- Administrative close, bulk bucketing, and session-selector reads.
- Bucket new submissions into the active session.

Non-Responsibilities:
- No contractor identity decisions.
- No retries: callers re-check the active session before trying again.

Invariant:
At most one session has is_active = true. This module is the only writer of
that flag, and the partial unique index on availability_sessions rejects any
transaction that would leave two active rows.
"""

from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stormcrew.database import AvailabilitySession, CrewAvailability, EquipmentAvailability
from stormcrew.errors import InvalidArgument, NotFound, TransactionAborted
from stormcrew.logger import get_logger
from stormcrew.schema import coerce_record_id, is_id_string
from storage.repositories.availability import count_unassigned, list_by_session
from storage.repositories.contractors import get_contractor
from storage.repositories.sessions import get_active_session, get_session_by_id

logger = get_logger()

BUCKETED_MODELS = (CrewAvailability, EquipmentAvailability)

ACTIVE = "active"
UNASSIGNED = "unassigned"

Selector = Union[int, str, None]


def _label_date(now: datetime) -> str:
    return now.strftime("%b %d, %Y")


def default_session_label(now: datetime) -> str:
    return f"Week of {_label_date(now)}"


def default_snapshot_label(now: datetime) -> str:
    return f"Historical Data - {_label_date(now)}"


def _close(session_row: AvailabilitySession, now: datetime) -> None:
    session_row.is_active = False
    session_row.end_date = now
    session_row.closed_at = now


def _bucket_unassigned(session: Session, session_id: int) -> int:
    moved = 0
    for model in BUCKETED_MODELS:
        moved += (
            session.query(model)
            .filter(model.session_id.is_(None))
            .update({model.session_id: session_id}, synchronize_session=False)
        )
    return moved


def _unassigned_total(session: Session) -> int:
    return sum(count_unassigned(session, model) for model in BUCKETED_MODELS)


def start_new_session(
    session: Session,
    label: Optional[str] = None,
    snapshot_label: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AvailabilitySession:
    """
    Close the active session (if any) and open a new active one.

    Without an active session, unassigned crew and equipment rows are first
    swept into a closed snapshot session. Everything happens in one
    transaction.

    Args:
        session: SQLAlchemy session; committed on success
        label: Label for the new session (default "Week of <date>")
        snapshot_label: Label for the snapshot (default "Historical Data - <date>")
        now: Clock override

    Returns:
        The new active AvailabilitySession

    Raises:
        TransactionAborted: Store failure, including a concurrent rotation
            that activated another session first
    """
    now = now or datetime.now()
    try:
        active = get_active_session(session)
        if active is not None:
            _close(active, now)
            closed_id = active.id
            session.flush()  # deactivate before the new row is inserted
            logger.info("Closed availability session", session_id=closed_id)
            leftover = _unassigned_total(session)
            if leftover:
                logger.warning(
                    "Unassigned availability left outside any session",
                    count=leftover,
                    closed_session_id=closed_id,
                )
        else:
            unassigned = _unassigned_total(session)
            if unassigned:
                snapshot = AvailabilitySession(
                    label=snapshot_label or default_snapshot_label(now),
                    is_active=False,
                    start_date=now,
                    end_date=now,
                    closed_at=now,
                    created_at=now,
                )
                session.add(snapshot)
                session.flush()
                moved = _bucket_unassigned(session, snapshot.id)
                logger.info(
                    "Swept unassigned availability into snapshot",
                    snapshot_id=snapshot.id,
                    rows=moved,
                )

        new_session = AvailabilitySession(
            label=label or default_session_label(now),
            is_active=True,
            start_date=now,
            created_at=now,
        )
        session.add(new_session)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Session rotation rolled back", error=str(e))
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Availability session rotation aborted: {e}") from e

    logger.info("Started availability session", session_id=new_session.id, label=new_session.label)
    logger.record_rotation()
    return new_session


def close_session(session: Session, session_id, now: Optional[datetime] = None) -> AvailabilitySession:
    """
    Administratively close a session without opening a replacement.

    Closing an already closed session changes nothing.

    Raises:
        InvalidArgument: Malformed id
        NotFound: No such session
        TransactionAborted: Store failure
    """
    session_id = coerce_record_id(session_id, "availability session")
    row = get_session_by_id(session, session_id)
    if row is None:
        raise NotFound(f"Availability session {session_id} not found")
    if not row.is_active and row.closed_at is not None:
        return row

    try:
        _close(row, now or datetime.now())
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Closing availability session {session_id} aborted: {e}") from e

    logger.info("Closed availability session", session_id=session_id)
    return row


def assign_unassigned_to_session(session: Session, session_id) -> int:
    """
    Point every unassigned crew and equipment row at session_id.

    Idempotent: a repeat call finds nothing unassigned and changes 0 rows.

    Returns:
        Number of rows bucketed

    Raises:
        InvalidArgument: Malformed id
        NotFound: No such session
        TransactionAborted: Store failure
    """
    session_id = coerce_record_id(session_id, "availability session")
    if get_session_by_id(session, session_id) is None:
        raise NotFound(f"Availability session {session_id} not found")

    try:
        moved = _bucket_unassigned(session, session_id)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Bucketing unassigned availability aborted: {e}") from e

    logger.info("Assigned unassigned availability", session_id=session_id, rows=moved)
    return moved


def get_availability_by_session(session: Session, selector: Selector = None, model=CrewAvailability) -> List:
    """
    Read availability rows by session selector.

    Args:
        selector: A session id, "active" (empty list when no session is
            active), "unassigned", or None (same as "active")
        model: CrewAvailability or EquipmentAvailability

    Raises:
        InvalidArgument: Unknown selector string or malformed id
        NotFound: Session id does not exist
    """
    if selector is None or selector == ACTIVE:
        active = get_active_session(session)
        if active is None:
            return []
        return list_by_session(session, active.id, model)
    if selector == UNASSIGNED:
        return list_by_session(session, None, model)
    if isinstance(selector, str) and not is_id_string(selector):
        raise InvalidArgument(f"Unknown session selector: {selector!r}")

    session_id = coerce_record_id(selector, "availability session")
    if get_session_by_id(session, session_id) is None:
        raise NotFound(f"Availability session {session_id} not found")
    return list_by_session(session, session_id, model)


def _submit(session: Session, model, contractor_id, fields: dict):
    contractor_id = coerce_record_id(contractor_id, "contractor")
    if get_contractor(session, contractor_id) is None:
        raise NotFound(f"Contractor {contractor_id} not found")

    values = dict(fields)
    if values.get("session_id") is None:
        active = get_active_session(session)
        values["session_id"] = active.id if active is not None else None

    row = model(contractor_id=contractor_id, **values)
    try:
        session.add(row)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Recording {model.__tablename__} aborted: {e}") from e

    if row.session_id is None:
        logger.debug("Availability recorded unassigned", table=model.__tablename__, row_id=row.id)
    return row


def submit_crew_availability(session: Session, contractor_id, **fields) -> CrewAvailability:
    """Record crew availability, bucketed into the active session if one exists."""
    return _submit(session, CrewAvailability, contractor_id, fields)


def submit_equipment_availability(session: Session, contractor_id, **fields) -> EquipmentAvailability:
    """Record equipment availability, bucketed into the active session if one exists."""
    return _submit(session, EquipmentAvailability, contractor_id, fields)
