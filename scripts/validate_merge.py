#!/usr/bin/env python3
"""
Validate that a merged contractor no longer owns any references.

Usage:
    python scripts/validate_merge.py --source 12 --target 7 --db data/stormcrew.db
"""

import argparse
import sys
from pathlib import Path

from pipelines.merge.coordinator import count_references
from stormcrew.database import Contractor, get_session


def validate(db_path: Path, source_id: int, target_id: int) -> bool:
    """
    Check the post-merge state of a source/target pair.

    Returns True if the source is reference-free and both rows still exist.
    """
    print(f"Querying database at {db_path}...")
    session = get_session(db_path)
    try:
        source = session.query(Contractor).filter_by(id=source_id).first()
        target = session.query(Contractor).filter_by(id=target_id).first()

        ok = True
        if source is None:
            print(f"❌ Source contractor {source_id} is missing (merge must not delete it)")
            ok = False
        if target is None:
            print(f"❌ Target contractor {target_id} is missing")
            ok = False

        dangling = {name: n for name, n in count_references(session, source_id).items() if n}
        if dangling:
            print(f"\n❌ DANGLING REFERENCES to contractor {source_id}:")
            for name, n in dangling.items():
                print(f"   - {name}: {n}")
            ok = False

        if ok:
            target_refs = count_references(session, target_id)
            print("✅ Merge validated successfully!")
            print(f"   - Contractor {source_id} has no references")
            print(f"   - Contractor {target_id} holds {sum(target_refs.values())} references")
        return ok
    finally:
        session.close()


def main():
    parser = argparse.ArgumentParser(description="Validate a contractor merge")
    parser.add_argument("--source", type=int, required=True,
                       help="Merged (duplicate) contractor id")
    parser.add_argument("--target", type=int, required=True,
                       help="Canonical contractor id")
    parser.add_argument("--db", type=Path, default=Path("data/stormcrew.db"),
                       help="Path to SQLite database file")

    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    success = validate(args.db, args.source, args.target)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
