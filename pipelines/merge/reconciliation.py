"""
Merge Field Reconciliation.

Responsibilities:
- Propose the target contractor's contact fields after a merge: the
  superset of both records' names, emails, phones and departure locations.
- Report the proposal as a field-level diff for human review.

Non-Responsibilities:
- No reference re-pointing (see coordinator.py).
- No commit: apply_reconciliation only stages changes so they commit
  atomically with the merge.

Invariant:
Target entries keep their order and come first; source entries are appended
only when their normalized key is new.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from stormcrew.normalize import (
    normalize_email,
    normalize_location,
    normalize_name,
    normalize_phone,
    normalize_text,
    split_list,
)

RECONCILED_FIELDS = ("name", "email", "phone", "departure_locations")
JOINER = ", "


def diff_dict(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    changed = {}
    keys = set(old.keys()) | set(new.keys())
    for k in keys:
        ov = old.get(k)
        nv = new.get(k)
        if ov != nv:
            changed[k] = {"old": ov, "new": nv}
    return changed


def _union(entries: Iterable[str], key: Callable[[str], str]) -> List[str]:
    seen = set()
    merged = []
    for entry in entries:
        k = key(entry) or normalize_text(entry)
        if k and k not in seen:
            seen.add(k)
            merged.append(entry)
    return merged


def _union_locations(target: Optional[list], source: Optional[list]) -> Optional[list]:
    merged = []
    seen = set()
    for loc in list(target or []) + list(source or []):
        k = normalize_location((loc or {}).get("location"))
        if k and k not in seen:
            seen.add(k)
            merged.append(loc)
    return merged or None


@dataclass
class ReconciliationPlan:
    target_id: int
    source_id: int
    fields: Dict[str, Any]
    changes: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


def plan_reconciliation(source, target) -> ReconciliationPlan:
    """
    Compute the proposed target fields for merging source into target.

    Names are split on commas only (a company contact list), emails and
    phones on commas or semicolons.
    """
    names = _union(
        [n.strip() for n in (target.name or "").split(",") if n.strip()]
        + [n.strip() for n in (source.name or "").split(",") if n.strip()],
        normalize_name,
    )
    emails = _union(split_list(target.email) + split_list(source.email), normalize_email)
    phones = _union(split_list(target.phone) + split_list(source.phone), normalize_phone)

    proposed = {
        "name": JOINER.join(names) if names else target.name,
        "email": JOINER.join(emails) if emails else None,
        "phone": JOINER.join(phones) if phones else None,
        "departure_locations": _union_locations(target.departure_locations, source.departure_locations),
    }
    current = {f: getattr(target, f) for f in RECONCILED_FIELDS}

    return ReconciliationPlan(
        target_id=target.id,
        source_id=source.id,
        fields=proposed,
        changes=diff_dict(current, proposed),
    )


def apply_reconciliation(session: Session, target, plan: ReconciliationPlan) -> None:
    """Stage the plan's changed fields on target. The caller commits (via merge)."""
    for name, change in plan.changes.items():
        setattr(target, name, change["new"])
    session.add(target)
