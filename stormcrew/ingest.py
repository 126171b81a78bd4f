from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pipelines.entity_resolution.features import IdentityCandidate
from pipelines.entity_resolution.resolver import resolve_match_in_store
from storage.repositories.contractors import create_contractor

from .errors import TransactionAborted
from .logger import get_logger
from .schema import validate_identity_record, validate_identity_record_strict

logger = get_logger()

CONTRACTOR_FIELDS = (
    "company",
    "name",
    "email",
    "phone",
    "category",
    "city",
    "state",
    "full_address",
    "latitude",
    "longitude",
    "notes",
)


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def ingest_identity_record(session: Session, record: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
    """
    Match a raw identity record against the store, creating it when unmatched.

    New contractors are flagged needs_review so an operator can confirm they
    are not a duplicate the cascade was too cautious to link.

    Returns:
        {"status": "matched", "contractor_id", "strategy"} |
        {"status": "new", "contractor_id", "strategy": "none"} |
        {"status": "validation_error", "errors"}
    """
    if strict:
        _, errors = validate_identity_record_strict(record)
    else:
        errors = validate_identity_record(record)
    if errors:
        logger.warning("Identity record rejected", errors=errors)
        return {"contractor_id": None, "status": "validation_error", "errors": errors}

    candidate = IdentityCandidate(
        company=record["company"],
        name=record["name"],
        email=record.get("email"),
        phone=record.get("phone"),
    )
    result = resolve_match_in_store(session, candidate)
    if result.matched:
        return {
            "contractor_id": result.contractor_id,
            "status": "matched",
            "strategy": result.strategy.value,
            "ambiguous": [s.value for s in result.ambiguous_strategies],
        }

    fields = {f: _clean(record.get(f)) for f in CONTRACTOR_FIELDS if record.get(f) is not None}
    fields["company"] = record["company"].strip()
    fields["name"] = record["name"].strip()
    fields["category"] = fields.get("category") or ""
    fields["needs_review"] = True

    try:
        contractor = create_contractor(session, fields)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.record_error("TransactionAborted")
        raise TransactionAborted(f"Creating contractor {fields['company']} / {fields['name']} aborted: {e}") from e

    logger.info("Created contractor pending review", contractor_id=contractor.id, company=contractor.company)
    return {
        "contractor_id": contractor.id,
        "status": "new",
        "strategy": result.strategy.value,
        "ambiguous": [s.value for s in result.ambiguous_strategies],
    }
