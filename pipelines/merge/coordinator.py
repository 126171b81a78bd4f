"""
Contractor Merge Coordinator.

Responsibilities:
- Validate a confirmed (source, target) contractor pair.
- Re-point every registered dependent reference from source to target in a
  single transaction, then verify none remain.

Non-Responsibilities:
- No field reconciliation (see reconciliation.py; stage it on the same
  session before calling merge_contractors).
- No deletion or flagging of the source contractor (see stormcrew.cleanup).
- No retries. Concurrent merges of the same source must be serialized by
  the caller.

Invariant:
After a successful merge, zero rows of any registered type reference the
source id. On failure nothing is committed.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stormcrew.errors import InvalidArgument, NotFound, TransactionAborted
from stormcrew.logger import get_logger
from stormcrew.schema import coerce_record_id
from storage.repositories.contractors import get_contractor

from .migrators import ReferenceMigrator, registered_migrators

logger = get_logger()


@dataclass
class MergeReport:
    source_id: int
    target_id: int
    rows_by_entity: Dict[str, int] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(self.rows_by_entity.values())


def count_references(
    session: Session,
    contractor_id: int,
    migrators: Optional[Sequence[ReferenceMigrator]] = None,
) -> Dict[str, int]:
    """Rows referencing contractor_id, per registered dependent type."""
    if migrators is None:
        migrators = registered_migrators()
    return {m.name: m.count(session, contractor_id) for m in migrators}


def merge_contractors(
    session: Session,
    source_id,
    target_id,
    migrators: Optional[Sequence[ReferenceMigrator]] = None,
) -> MergeReport:
    """
    Move every dependent reference from source_id to target_id and commit.

    Anything already staged on the session (e.g. reconciled target fields)
    commits in the same transaction.

    Args:
        session: SQLAlchemy session; committed on success, rolled back on
            store failure
        source_id: Duplicate contractor whose references move
        target_id: Canonical contractor that receives them
        migrators: Dependent types to sweep (default: the registry)

    Returns:
        MergeReport with rows moved per entity type

    Raises:
        InvalidArgument: Malformed ids or source_id == target_id
        NotFound: Either contractor is absent or soft-deleted
        TransactionAborted: Store failure; nothing was committed
    """
    source_id = coerce_record_id(source_id, "source contractor")
    target_id = coerce_record_id(target_id, "target contractor")
    if source_id == target_id:
        raise InvalidArgument(f"Cannot merge contractor {source_id} into itself")

    if migrators is None:
        migrators = registered_migrators()

    logger.record_merge_attempt()

    if get_contractor(session, source_id) is None:
        logger.record_error("NotFound")
        raise NotFound(f"Source contractor {source_id} not found")
    if get_contractor(session, target_id) is None:
        logger.record_error("NotFound")
        raise NotFound(f"Target contractor {target_id} not found")

    report = MergeReport(source_id=source_id, target_id=target_id)
    try:
        for migrator in migrators:
            moved = migrator.migrate(session, source_id, target_id)
            report.rows_by_entity[migrator.name] = moved
            logger.debug("Re-pointed references", entity=migrator.name, rows=moved)

        leftovers = {
            name: count
            for name, count in count_references(session, source_id, migrators).items()
            if count
        }
        if leftovers:
            raise TransactionAborted(
                f"References to contractor {source_id} remain after re-point: {leftovers}"
            )

        session.commit()
    except TransactionAborted as e:
        session.rollback()
        logger.error("Merge rolled back", source_id=source_id, target_id=target_id, error=str(e))
        logger.record_merge_failure("TransactionAborted")
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "Merge rolled back",
            source_id=source_id,
            target_id=target_id,
            error=str(e),
        )
        logger.record_merge_failure("TransactionAborted")
        raise TransactionAborted(
            f"Merge of contractor {source_id} into {target_id} aborted: {e}"
        ) from e
    except Exception as e:
        # Not a store failure: roll back and let it propagate as-is
        session.rollback()
        logger.record_merge_failure(type(e).__name__)
        raise

    logger.info(
        "Merged contractor references",
        source_id=source_id,
        target_id=target_id,
        rows=report.rows_by_entity,
    )
    logger.record_merge_success(report.total_rows)
    return report
