"""
Entity Resolution Orchestrator.

Responsibilities:
- Run the ordered strategy cascade over the selected contractor pool.
- Return an explainable result: the match and the strategy that produced it.

Non-Responsibilities:
- No database writes.
- No scoring or ranking: a strategy either hits or it does not.
- No merging.

Invariant:
This module must be deterministic given the same inputs. Strategies run in
CASCADE order and the first hit wins; reordering them changes which
duplicates get auto-associated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from stormcrew.logger import get_logger

from .candidate_selector import build_pool, select_candidates
from .features import CandidateKeys, ContractorKeys, IdentityCandidate, candidate_keys

logger = get_logger()

Pool = Sequence[Tuple[object, ContractorKeys]]


class MatchStrategy(str, Enum):
    COMPANY_NAME = "company_name"
    COMPANY_EMAIL = "company_email"
    COMPANY_PHONE = "company_phone"
    EMAIL_ONLY = "email_only"
    PHONE_ONLY = "phone_only"
    NONE = "none"


@dataclass
class MatchResult:
    contractor: Optional[object]
    strategy: MatchStrategy
    ambiguous_strategies: List[MatchStrategy] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.contractor is not None

    @property
    def contractor_id(self) -> Optional[int]:
        return self.contractor.id if self.contractor is not None else None


class _Ambiguous:
    """Marker returned by unique-only strategies that found several contractors."""

    def __init__(self, count: int):
        self.count = count


def _first(pool: Pool, predicate: Callable[[ContractorKeys], bool]):
    for contractor, keys in pool:
        if predicate(keys):
            return contractor
    return None


def _unique(pool: Pool, predicate: Callable[[ContractorKeys], bool]):
    hits = [contractor for contractor, keys in pool if predicate(keys)]
    if len(hits) == 1:
        return hits[0]
    if len(hits) > 1:
        return _Ambiguous(len(hits))
    return None


def _company_name(c: CandidateKeys, pool: Pool):
    if not (c.company and c.name):
        return None
    return _first(pool, lambda k: k.company == c.company and k.name == c.name)


def _company_email(c: CandidateKeys, pool: Pool):
    if not (c.company and c.email):
        return None
    return _first(pool, lambda k: k.company == c.company and c.email in k.emails)


def _company_phone(c: CandidateKeys, pool: Pool):
    if not (c.company and c.usable_phone):
        return None
    return _first(pool, lambda k: k.company == c.company and c.usable_phone in k.phones)


def _email_only(c: CandidateKeys, pool: Pool):
    if not c.email:
        return None
    return _unique(pool, lambda k: c.email in k.emails)


def _phone_only(c: CandidateKeys, pool: Pool):
    if not c.usable_phone:
        return None
    return _unique(pool, lambda k: c.usable_phone in k.phones)


CASCADE = [
    (MatchStrategy.COMPANY_NAME, _company_name),
    (MatchStrategy.COMPANY_EMAIL, _company_email),
    (MatchStrategy.COMPANY_PHONE, _company_phone),
    (MatchStrategy.EMAIL_ONLY, _email_only),
    (MatchStrategy.PHONE_ONLY, _phone_only),
]


def resolve_in_pool(candidate: IdentityCandidate, pool: Pool) -> MatchResult:
    """Run the cascade against an already keyed pool."""
    keys = candidate_keys(candidate)
    ambiguous: List[MatchStrategy] = []

    for strategy, rule in CASCADE:
        outcome = rule(keys, pool)
        if outcome is None:
            continue
        if isinstance(outcome, _Ambiguous):
            # Precision over recall: several owners means no owner
            ambiguous.append(strategy)
            logger.info(
                "Ambiguous match skipped",
                strategy=strategy.value,
                candidates=outcome.count,
                company=candidate.company,
                name=candidate.name,
            )
            logger.record_ambiguous(strategy.value)
            continue
        logger.info(
            "Matched contractor",
            strategy=strategy.value,
            contractor_id=outcome.id,
            company=outcome.company,
            name=outcome.name,
        )
        logger.record_match(strategy.value)
        return MatchResult(contractor=outcome, strategy=strategy, ambiguous_strategies=ambiguous)

    logger.info(
        "No match found",
        company=candidate.company,
        name=candidate.name,
    )
    logger.record_match(MatchStrategy.NONE.value)
    return MatchResult(contractor=None, strategy=MatchStrategy.NONE, ambiguous_strategies=ambiguous)


def resolve_match(candidate: IdentityCandidate, contractors: Sequence) -> MatchResult:
    """
    Resolve a candidate identity against an in-memory contractor set.

    Args:
        candidate: Raw identity (company, name, optional email and phone)
        contractors: Existing contractor records (anything with id, company,
            name, email and phone attributes)

    Returns:
        MatchResult with the matched contractor, or contractor=None and
        strategy NONE
    """
    return resolve_in_pool(candidate, build_pool(contractors))


def resolve_match_in_store(session: Session, candidate: IdentityCandidate) -> MatchResult:
    """Resolve against every live contractor in the store. Read-only."""
    return resolve_in_pool(candidate, select_candidates(session))
