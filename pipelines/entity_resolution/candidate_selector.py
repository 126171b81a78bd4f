"""
Candidate Selection Logic.

Responsibilities:
- Load the existing contractor set the resolver compares against.
- Pair each contractor with its precomputed identity keys.

Non-Responsibilities:
- No strategy evaluation.
- No resolution decisions.

Invariant:
Candidate selection must never exclude a live contractor: strategies 4 and 5
count matches across the entire set, so a narrowed pool would turn an
ambiguous email/phone into a false unique hit. Soft-deleted rows are excluded.
"""

from typing import Iterable, List, Tuple

from sqlalchemy.orm import Session

from storage.repositories.contractors import list_contractors

from .features import ContractorKeys, contractor_keys


def build_pool(contractors: Iterable) -> List[Tuple[object, ContractorKeys]]:
    """Key every contractor, keeping id order so first-hit scans are deterministic."""
    ordered = sorted(contractors, key=lambda c: c.id)
    return [(c, contractor_keys(c)) for c in ordered]


def select_candidates(session: Session) -> List[Tuple[object, ContractorKeys]]:
    return build_pool(list_contractors(session))
