#!/usr/bin/env python3
"""
Mark a pair of records as "not a duplicate", or forget every such mark.

Usage:
    python scripts/dismiss_pair.py --kind schools <id_a> <id_b>
    python scripts/dismiss_pair.py --kind coaches --clear-all
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


def main():
    parser = argparse.ArgumentParser(description="Ignore a duplicate pair")
    parser.add_argument("--kind", choices=sorted(KINDS), required=True)
    parser.add_argument("ids", nargs="*", help="The two record ids")
    parser.add_argument(
        "--clear-all",
        action="store_true",
        help="Forget every ignored pair for this kind and re-check",
    )

    args = parser.parse_args()
    kind = KINDS[args.kind]

    if not args.clear_all and len(args.ids) != 2:
        parser.error("give exactly two record ids, or --clear-all")

    init_db()
    engine = DedupEngine.from_session_factory(SessionLocal)

    try:
        if args.clear_all:
            report = engine.clear_dismissed(kind)
            print(
                f"Cleared ignored {args.kind}; {len(report.candidates)} "
                f"candidate pair(s) now listed"
            )
        else:
            key = engine.dismiss(kind, *args.ids)
            print(f"Ignored pair {key}")
    except DedupError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
