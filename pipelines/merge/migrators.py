"""
Reference Migrators.

Responsibilities:
- Describe every entity type that stores a contractor reference.
- Re-point (or count) rows of one type from a source contractor id.

Non-Responsibilities:
- No transaction control: migrators run inside the coordinator's transaction.
- No contractor field changes.

Invariant:
A migrator touches exactly the rows whose reference equals the source id,
soft-deleted rows included, so no dangling reference can survive a merge.
"""

from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session

from stormcrew.database import (
    AvailabilitySubmission,
    ContractorFile,
    ContractorReview,
    CrewAvailability,
    EquipmentAvailability,
    UserAccount,
)


@dataclass(frozen=True)
class ReferenceMigrator:
    name: str
    model: type
    column: str = "contractor_id"

    def _column(self):
        return getattr(self.model, self.column)

    def count(self, session: Session, contractor_id: int) -> int:
        return session.query(self.model).filter(self._column() == contractor_id).count()

    def migrate(self, session: Session, source_id: int, target_id: int) -> int:
        """Re-point rows from source_id to target_id. Returns rows changed."""
        return (
            session.query(self.model)
            .filter(self._column() == source_id)
            .update({self.column: target_id}, synchronize_session=False)
        )


_REGISTRY: List[ReferenceMigrator] = []


def register_reference_migrator(migrator: ReferenceMigrator) -> ReferenceMigrator:
    """
    Register a dependent entity type with the merge coordinator.

    Registering the same name twice replaces the earlier entry.
    """
    for i, existing in enumerate(_REGISTRY):
        if existing.name == migrator.name:
            _REGISTRY[i] = migrator
            return migrator
    _REGISTRY.append(migrator)
    return migrator


def unregister_reference_migrator(name: str) -> None:
    _REGISTRY[:] = [m for m in _REGISTRY if m.name != name]


def registered_migrators() -> List[ReferenceMigrator]:
    return list(_REGISTRY)


for _migrator in (
    ReferenceMigrator("crew_availability", CrewAvailability),
    ReferenceMigrator("equipment_availability", EquipmentAvailability),
    ReferenceMigrator("availability_submissions", AvailabilitySubmission),
    ReferenceMigrator("contractor_files", ContractorFile),
    ReferenceMigrator("contractor_reviews", ContractorReview),
    ReferenceMigrator("users", UserAccount),
):
    register_reference_migrator(_migrator)
