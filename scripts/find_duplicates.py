#!/usr/bin/env python3
"""
List likely duplicate schools or coaches, highest confidence first.

Usage:
    python scripts/find_duplicates.py --kind schools
    python scripts/find_duplicates.py --kind coaches --filter fuzzy
    python scripts/find_duplicates.py --kind schools --workers 4 --limit 50
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dedup.database import SessionLocal, init_db
from dedup.engine import DedupEngine
from dedup.errors import DedupError
from dedup.records import RecordKind

KINDS = {
    "schools": RecordKind.ORGANIZATION,
    "coaches": RecordKind.CONTACT,
}


def describe(record, kind: RecordKind) -> str:
    if kind == RecordKind.ORGANIZATION:
        location = ", ".join(p for p in (record.city, record.state) if p)
        extra = " / ".join(p for p in (record.conference, record.division) if p)
        parts = [record.name]
        if location:
            parts.append(f"({location})")
        if extra:
            parts.append(f"[{extra}]")
        return " ".join(parts)
    parts = [record.full_name]
    if record.title:
        parts.append(f"- {record.title}")
    if record.email:
        parts.append(f"<{record.email}>")
    return " ".join(parts)


def main():
    parser = argparse.ArgumentParser(description="Find duplicate schools or coaches")
    parser.add_argument(
        "--kind",
        choices=sorted(KINDS),
        default="schools",
        help="Record kind to check (default: schools)",
    )
    parser.add_argument(
        "--filter",
        choices=["all", "exact", "fuzzy"],
        default="all",
        help="Only show one match type",
    )
    parser.add_argument("--limit", type=int, default=None, help="Show at most N pairs")
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes for pair comparison (default: CANDIDATE_WORKERS)",
    )
    parser.add_argument(
        "--block-by-state",
        action="store_true",
        help="Only compare schools in the same state",
    )

    args = parser.parse_args()
    kind = KINDS[args.kind]

    init_db()
    engine = DedupEngine.from_session_factory(
        SessionLocal,
        workers=args.workers,
        block_by_state=True if args.block_by_state else None,
    )

    try:
        report = engine.find_duplicates(kind)
    except DedupError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("=" * 60)
    print(f"DUPLICATE {args.kind.upper()}")
    print("=" * 60)
    print(f"Records:          {report.total_records}")
    print(f"Exact matches:    {report.exact_count}")
    print(f"Fuzzy matches:    {report.fuzzy_count}")
    print(f"Ignored pairs:    {report.dismissed_count}")
    if report.truncated:
        print("Warning: comparison bound reached, some pairs were not checked")
    print("=" * 60)

    candidates = report.filter(args.filter)
    if args.limit is not None:
        candidates = candidates[:args.limit]

    if not candidates:
        print("\nNo duplicates found.")
        return

    strategy = engine.generator(kind).strategy
    for candidate in candidates:
        a, b = candidate.record_a, candidate.record_b
        print(f"\n[{candidate.match_type.value.upper()}] score {candidate.score}")
        for record in (a, b):
            dependents = strategy.describe_dependents(report.dependents_of(record.id))
            print(f"  {record.id}  {describe(record, kind)}  ({dependents})")


if __name__ == "__main__":
    main()
