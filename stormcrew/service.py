"""
Library-level API consumed by the UI/CRUD layer and importers.

Each call runs in its own SQLAlchemy session against the configured SQLite
database. Returned ORM objects are detached but fully loaded.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from pipelines.backfill.full_rebuild import rebuild_departure_locations
from pipelines.entity_resolution.features import IdentityCandidate
from pipelines.entity_resolution.resolver import MatchResult, resolve_match_in_store
from pipelines.merge.coordinator import MergeReport, count_references, merge_contractors
from pipelines.merge.reconciliation import ReconciliationPlan, apply_reconciliation, plan_reconciliation
from pipelines.sessions import lifecycle
from storage.repositories.contractors import get_contractor
from storage.repositories.sessions import get_active_session, list_sessions

from .cleanup import retire_contractor
from .database import (
    AvailabilitySession,
    CrewAvailability,
    EquipmentAvailability,
    dispose_engine,
    get_session,
    init_database,
)
from .env import Settings
from .errors import InvalidArgument, NotFound
from .ingest import ingest_identity_record
from .schema import coerce_record_id


class CoordinationService:
    """Contractor identity and availability-session operations over one database."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path is not None else Settings.from_env().db_path

    def init(self) -> None:
        init_database(self.db_path)

    def close(self) -> None:
        """Release pooled connections to this database."""
        dispose_engine(self.db_path)

    @contextmanager
    def _session(self):
        session = get_session(self.db_path, expire_on_commit=False)
        try:
            yield session
        finally:
            session.close()

    # Identity

    def resolve_match(self, candidate: IdentityCandidate) -> MatchResult:
        with self._session() as session:
            return resolve_match_in_store(session, candidate)

    def ingest(self, record: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
        with self._session() as session:
            return ingest_identity_record(session, record, strict=strict)

    def _pair(self, session, source_id, target_id):
        source_id = coerce_record_id(source_id, "source contractor")
        target_id = coerce_record_id(target_id, "target contractor")
        if source_id == target_id:
            raise InvalidArgument(f"Cannot merge contractor {source_id} into itself")
        source = get_contractor(session, source_id)
        if source is None:
            raise NotFound(f"Source contractor {source_id} not found")
        target = get_contractor(session, target_id)
        if target is None:
            raise NotFound(f"Target contractor {target_id} not found")
        return source, target

    def plan_merge(self, source_id, target_id) -> ReconciliationPlan:
        """Preview the reconciled target fields without writing anything."""
        with self._session() as session:
            source, target = self._pair(session, source_id, target_id)
            return plan_reconciliation(source, target)

    def merge_contractors(self, source_id, target_id, reconcile: bool = False) -> MergeReport:
        """
        Re-point all references from source to target.

        With reconcile=True the target's contact fields are first widened to
        the superset of both records, in the same transaction.
        """
        with self._session() as session:
            if reconcile:
                source, target = self._pair(session, source_id, target_id)
                apply_reconciliation(session, target, plan_reconciliation(source, target))
            return merge_contractors(session, source_id, target_id)

    def count_references(self, contractor_id) -> Dict[str, int]:
        contractor_id = coerce_record_id(contractor_id, "contractor")
        with self._session() as session:
            return count_references(session, contractor_id)

    def retire_contractor(self, contractor_id, mode: str = "soft_delete") -> Dict[str, int]:
        with self._session() as session:
            return retire_contractor(session, contractor_id, mode=mode)

    def rebuild_departure_locations(self, contractor_id: Optional[int] = None) -> int:
        with self._session() as session:
            return rebuild_departure_locations(session, contractor_id)

    # Availability sessions

    def start_new_availability_session(self, label: Optional[str] = None) -> AvailabilitySession:
        with self._session() as session:
            return lifecycle.start_new_session(session, label=label)

    def close_availability_session(self, session_id) -> AvailabilitySession:
        with self._session() as session:
            return lifecycle.close_session(session, session_id)

    def get_active_availability_session(self) -> Optional[AvailabilitySession]:
        with self._session() as session:
            return get_active_session(session)

    def list_availability_sessions(self) -> List[AvailabilitySession]:
        with self._session() as session:
            return list_sessions(session)

    def get_crew_availability_by_session(self, selector=None) -> List[CrewAvailability]:
        with self._session() as session:
            return lifecycle.get_availability_by_session(session, selector, CrewAvailability)

    def get_equipment_availability_by_session(self, selector=None) -> List[EquipmentAvailability]:
        with self._session() as session:
            return lifecycle.get_availability_by_session(session, selector, EquipmentAvailability)

    def assign_unassigned_to_session(self, session_id) -> int:
        with self._session() as session:
            return lifecycle.assign_unassigned_to_session(session, session_id)

    def submit_crew_availability(self, contractor_id, **fields) -> CrewAvailability:
        with self._session() as session:
            return lifecycle.submit_crew_availability(session, contractor_id, **fields)

    def submit_equipment_availability(self, contractor_id, **fields) -> EquipmentAvailability:
        with self._session() as session:
            return lifecycle.submit_equipment_availability(session, contractor_id, **fields)
