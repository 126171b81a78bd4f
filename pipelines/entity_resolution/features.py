"""
Identity Keys for Entity Resolution.

Responsibilities:
- Reduce a candidate identity or an existing contractor to normalized,
  directly comparable keys (company, name, email set, phone set).

Non-Responsibilities:
- No strategy ordering.
- No persistence.

Invariant:
Missing data normalizes to empty keys and must never be treated as a match.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from stormcrew.normalize import (
    normalize_company,
    normalize_email,
    normalize_email_list,
    normalize_name,
    normalize_phone,
    normalize_phone_list,
)

MIN_PHONE_DIGITS = 10


@dataclass(frozen=True)
class IdentityCandidate:
    """A raw identity record as received from an importer or form."""

    company: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class CandidateKeys:
    company: str
    name: str
    email: str
    phone: str

    @property
    def usable_phone(self) -> str:
        """Phone key if long enough to identify a line, else empty."""
        return self.phone if len(self.phone) >= MIN_PHONE_DIGITS else ""


@dataclass(frozen=True)
class ContractorKeys:
    contractor_id: int
    company: str
    name: str
    emails: FrozenSet[str]
    phones: FrozenSet[str]


def candidate_keys(candidate: IdentityCandidate) -> CandidateKeys:
    return CandidateKeys(
        company=normalize_company(candidate.company),
        name=normalize_name(candidate.name),
        email=normalize_email(candidate.email),
        phone=normalize_phone(candidate.phone),
    )


def contractor_keys(contractor) -> ContractorKeys:
    return ContractorKeys(
        contractor_id=contractor.id,
        company=normalize_company(contractor.company),
        name=normalize_name(contractor.name),
        emails=frozenset(normalize_email_list(contractor.email)),
        phones=frozenset(
            p for p in normalize_phone_list(contractor.phone) if len(p) >= MIN_PHONE_DIGITS
        ),
    )
