#!/usr/bin/env python3
"""
Import contractor identity records from a CSV export.

Each row is matched against existing contractors; unmatched rows become new
contractors flagged for review.

Usage:
    python scripts/import_contractors.py --csv roster.csv --db data/stormcrew.db
"""

import argparse
import csv
import sys
from pathlib import Path

from stormcrew.service import CoordinationService

COLUMNS = ["company", "name", "email", "phone", "category", "city", "state", "full_address"]


def read_rows(csv_path: Path):
    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            yield {
                key.strip().lower(): (value or "").strip()
                for key, value in row.items()
                if key and key.strip().lower() in COLUMNS
            }


def run_import(csv_path: Path, db_path: Path, dry_run: bool = False, strict: bool = False):
    """
    Import contractors from CSV.

    Args:
        csv_path: Path to CSV file with a header row
        db_path: Path to SQLite database file
        dry_run: If True, only resolve matches; never create contractors
        strict: Reject rows with malformed emails or short phone numbers

    Returns:
        Dict of counts by outcome
    """
    print(f"Loading contractors from {csv_path}...")
    rows = list(read_rows(csv_path))
    print(f"Found {len(rows)} rows")

    service = CoordinationService(db_path)
    service.init()

    counts = {"matched": 0, "new": 0, "validation_error": 0, "would_create": 0}

    if dry_run:
        from pipelines.entity_resolution.features import IdentityCandidate

        print("\n[DRY RUN] Resolving without writing:")
        for i, row in enumerate(rows, 1):
            result = service.resolve_match(
                IdentityCandidate(
                    company=row.get("company", ""),
                    name=row.get("name", ""),
                    email=row.get("email") or None,
                    phone=row.get("phone") or None,
                )
            )
            if result.matched:
                counts["matched"] += 1
                print(f"  {i}. {row.get('company')} / {row.get('name')} -> #{result.contractor_id} ({result.strategy.value})")
            else:
                counts["would_create"] += 1
                print(f"  {i}. {row.get('company')} / {row.get('name')} -> new")
        return counts

    for i, row in enumerate(rows, 1):
        outcome = service.ingest(row, strict=strict)
        counts[outcome["status"]] += 1
        if outcome["status"] == "validation_error":
            print(f"⚠️  Row {i} skipped: {'; '.join(outcome['errors'])}")
        if i % 20 == 0:
            print(f"  Processed {i} rows...")

    print("\n✅ Import complete!")
    print(f"   Matched: {counts['matched']}")
    print(f"   New:     {counts['new']}")
    print(f"   Invalid: {counts['validation_error']}")
    return counts


def main():
    parser = argparse.ArgumentParser(description="Import contractors from CSV")
    parser.add_argument("--csv", type=Path, required=True,
                       help="Path to CSV file")
    parser.add_argument("--db", type=Path, default=Path("data/stormcrew.db"),
                       help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                       help="Show matches without writing")
    parser.add_argument("--strict", action="store_true",
                       help="Reject malformed emails and phone numbers")

    args = parser.parse_args()

    if not args.csv.exists():
        print(f"❌ CSV file not found: {args.csv}")
        sys.exit(1)

    run_import(args.csv, args.db, dry_run=args.dry_run, strict=args.strict)


if __name__ == "__main__":
    main()
