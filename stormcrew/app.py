import argparse
import json
from pathlib import Path

from .env import Settings, load_env
from .logger import configure_logger_from_env

from . import __version__
from .database import dispose_engine
from .errors import StormcrewError
from .schema import is_id_string
from .service import CoordinationService
from pipelines.entity_resolution.features import IdentityCandidate


def _service(args: argparse.Namespace) -> CoordinationService:
    service = CoordinationService(Path(args.db))
    service.init()
    return service


def _fmt_date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _load_records(input_path: Path) -> list:
    with input_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


def cmd_init_db(args: argparse.Namespace) -> None:
    _service(args)
    print(f"Database ready: {args.db}")


def cmd_ingest(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")

    service = _service(args)
    matched = new = invalid = 0
    for record in _load_records(input_path):
        outcome = service.ingest(record, strict=args.strict)
        status = outcome["status"]
        if status == "validation_error":
            invalid += 1
            print(f"[validation_error] {record.get('company')} / {record.get('name')} - {outcome['errors']}")
            continue
        if status == "matched":
            matched += 1
        else:
            new += 1
        print(f"[{status}] contractor={outcome['contractor_id']} strategy={outcome['strategy']}")
    print(f"Done. matched={matched} new={new} invalid={invalid}")


def cmd_match(args: argparse.Namespace) -> None:
    service = _service(args)
    result = service.resolve_match(
        IdentityCandidate(company=args.company, name=args.name, email=args.email, phone=args.phone)
    )
    if result.ambiguous_strategies:
        print(f"Ambiguous (skipped): {', '.join(s.value for s in result.ambiguous_strategies)}")
    if not result.matched:
        print("No match.")
        return
    c = result.contractor
    print(f"Match via {result.strategy.value}: #{c.id} {c.company} - {c.name}")


def cmd_merge(args: argparse.Namespace) -> None:
    service = _service(args)
    if args.reconcile:
        plan = service.plan_merge(args.source, args.target)
        for name, change in sorted(plan.changes.items()):
            print(f"  {name}: {change['old']!r} -> {change['new']!r}")
    report = service.merge_contractors(args.source, args.target, reconcile=args.reconcile)
    print(f"Merged contractor {report.source_id} into {report.target_id}:")
    for name, rows in report.rows_by_entity.items():
        print(f"  {name}: {rows}")
    print(f"Total re-pointed: {report.total_rows}")


def cmd_check_refs(args: argparse.Namespace) -> None:
    service = _service(args)
    counts = service.count_references(args.contractor)
    for name, count in counts.items():
        print(f"  {name}: {count}")
    if any(counts.values()):
        raise SystemExit(1)
    print("No references.")


def cmd_retire(args: argparse.Namespace) -> None:
    service = _service(args)
    service.retire_contractor(args.contractor, mode="flag" if args.flag else "soft_delete")
    print(f"Contractor {args.contractor} retired ({'flagged' if args.flag else 'soft-deleted'}).")


def cmd_rebuild_departures(args: argparse.Namespace) -> None:
    service = _service(args)
    updated = service.rebuild_departure_locations(args.contractor)
    print(f"Departure locations updated for {updated} contractor(s).")


def cmd_session_start(args: argparse.Namespace) -> None:
    service = _service(args)
    session = service.start_new_availability_session(args.label)
    print(f"Active session #{session.id}: {session.label}")


def cmd_session_close(args: argparse.Namespace) -> None:
    service = _service(args)
    session = service.close_availability_session(args.id)
    print(f"Closed session #{session.id}: {session.label} at {_fmt_date(session.closed_at)}")


def cmd_session_list(args: argparse.Namespace) -> None:
    service = _service(args)
    sessions = service.list_availability_sessions()
    if not sessions:
        print("No availability sessions.")
        return
    for s in sessions:
        marker = "*" if s.is_active else " "
        print(f"{marker} #{s.id} {s.label} (start {_fmt_date(s.start_date)}, closed {_fmt_date(s.closed_at)})")


def cmd_availability(args: argparse.Namespace) -> None:
    service = _service(args)
    selector = args.session
    if is_id_string(selector):
        selector = int(selector)
    rows = service.get_crew_availability_by_session(selector)
    if not rows:
        print("No crew availability.")
        return
    print(f"Found {len(rows)} crew availability rows:\n")
    for row in rows:
        print(f"#{row.id} contractor={row.contractor_id} session={row.session_id}")
        print(f"  Available: {_fmt_date(row.available_start_date)} -> {_fmt_date(row.available_end_date)}")
        print(f"  Departure: {row.departure_location or '-'}")
        print(f"  FTE: {row.total_fte}  Status: {row.status}")


def cmd_assign_unassigned(args: argparse.Namespace) -> None:
    service = _service(args)
    moved = service.assign_unassigned_to_session(args.session)
    print(f"Assigned {moved} row(s) to session {args.session}.")


def build_parser(default_db: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stormcrew", description="Contractor identity and availability sessions")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=default_db, help=f"Path to SQLite database (default: {default_db})")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the database tables")
    ini.set_defaults(func=cmd_init_db)

    ing = subparsers.add_parser("ingest", help="Match or create contractors from a JSON record (or list)")
    ing.add_argument("--input", required=True, help="Path to JSON input")
    ing.add_argument("--strict", action="store_true", help="Reject malformed emails/phones")
    ing.set_defaults(func=cmd_ingest)

    mat = subparsers.add_parser("match", help="Resolve an identity against existing contractors")
    mat.add_argument("--company", required=True)
    mat.add_argument("--name", required=True)
    mat.add_argument("--email")
    mat.add_argument("--phone")
    mat.set_defaults(func=cmd_match)

    mrg = subparsers.add_parser("merge", help="Re-point all references from one contractor to another")
    mrg.add_argument("--source", required=True, help="Duplicate contractor id")
    mrg.add_argument("--target", required=True, help="Canonical contractor id")
    mrg.add_argument("--reconcile", action="store_true", help="Widen target contact fields first")
    mrg.set_defaults(func=cmd_merge)

    chk = subparsers.add_parser("check-refs", help="Count rows still referencing a contractor")
    chk.add_argument("--contractor", required=True)
    chk.set_defaults(func=cmd_check_refs)

    ret = subparsers.add_parser("retire", help="Soft-delete (or flag) a reference-free contractor")
    ret.add_argument("--contractor", required=True)
    ret.add_argument("--flag", action="store_true", help="Flag for review instead of soft-deleting")
    ret.set_defaults(func=cmd_retire)

    reb = subparsers.add_parser("rebuild-departures", help="Recompute departure locations from crew submissions")
    reb.add_argument("--contractor", type=int, help="Only this contractor")
    reb.set_defaults(func=cmd_rebuild_departures)

    sst = subparsers.add_parser("session-start", help="Rotate to a new active availability session")
    sst.add_argument("--label", help="Session label (default: 'Week of <date>')")
    sst.set_defaults(func=cmd_session_start)

    scl = subparsers.add_parser("session-close", help="Close an availability session without replacement")
    scl.add_argument("--id", required=True)
    scl.set_defaults(func=cmd_session_close)

    sls = subparsers.add_parser("session-list", help="List availability sessions")
    sls.set_defaults(func=cmd_session_list)

    av = subparsers.add_parser("availability", help="List crew availability by session")
    av.add_argument("--session", default="active", help="Session id, 'active' or 'unassigned'")
    av.set_defaults(func=cmd_availability)

    asg = subparsers.add_parser("assign-unassigned", help="Bucket unassigned availability into a session")
    asg.add_argument("--session", required=True)
    asg.set_defaults(func=cmd_assign_unassigned)

    return parser


def main():
    # Load .env if present (STORMCREW_DB, STORMCREW_LOG_LEVEL, ...)
    load_env()
    configure_logger_from_env()
    settings = Settings.from_env()
    parser = build_parser(str(settings.db_path))
    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        try:
            args.func(args)
        except StormcrewError as e:
            raise SystemExit(f"{type(e).__name__}: {e}")
        finally:
            dispose_engine()
        return

    parser.print_help()


if __name__ == "__main__":
    main()
