#!/usr/bin/env python3
"""
Look up which existing school a free-text name refers to.

Usage:
    python scripts/lookup_school.py "Mizzou"
    python scripts/lookup_school.py "Saint Marys" --state CA
    python scripts/lookup_school.py "Ohio St" --threshold 80
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dedup.database import SessionLocal, init_db
from dedup.errors import DedupError
from dedup.lookup import OrganizationLookup
from dedup.records import RecordKind
from dedup.store import SqlRecordStore


def main():
    parser = argparse.ArgumentParser(description="Match a school name against the directory")
    parser.add_argument("names", nargs="+", help="School name(s) to look up")
    parser.add_argument("--state", default=None, help="Prefer schools in this state")
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Minimum fuzzy score 0-100 (default: LOOKUP_MATCH_THRESHOLD)",
    )

    args = parser.parse_args()

    init_db()
    store = SqlRecordStore(SessionLocal)

    try:
        lookup = OrganizationLookup(
            store.list_all(RecordKind.ORGANIZATION), threshold=args.threshold
        )
        for name in args.names:
            result = lookup.match(name, state=args.state)
            if result.is_match:
                print(
                    f"✓ {name} -> {result.school.name} ({result.school.id}) "
                    f"[{result.confidence.value}, {result.score:.0f}]"
                )
            else:
                print(f"✗ {name}: no match (best score {result.score:.0f})")
    except DedupError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
