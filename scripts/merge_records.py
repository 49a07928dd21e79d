#!/usr/bin/env python3
"""
Merge one school or coach into another.

The discarded record's coaches (or attendance) move to the kept record,
empty fields on the kept record are filled from the discarded one, and the
discarded record is deleted.

Usage:
    python scripts/merge_records.py --kind schools --keep <id> --discard <id>
    python scripts/merge_records.py --kind coaches --keep <id> --discard <id> --history
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dedup.cancel import CancelToken
from dedup.database import SessionLocal, init_db
from dedup.engine import DedupEngine
from dedup.errors import DedupError, PartialMergeFailure, StaleRecord
from dedup.records import RecordKind

KINDS = {
    "schools": RecordKind.ORGANIZATION,
    "coaches": RecordKind.CONTACT,
}


def main():
    parser = argparse.ArgumentParser(description="Merge duplicate schools or coaches")
    parser.add_argument("--kind", choices=sorted(KINDS), required=True)
    parser.add_argument("--keep", required=True, help="Id of the record to keep")
    parser.add_argument("--discard", required=True, help="Id of the record to merge away")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up on store calls after this many seconds",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        help="Print the kept record's merge history afterwards",
    )

    args = parser.parse_args()
    kind = KINDS[args.kind]

    init_db()
    engine = DedupEngine.from_session_factory(SessionLocal)

    token = None
    if args.timeout is not None:
        token = CancelToken(timeout=args.timeout)

    try:
        summary = engine.merge(kind, args.keep, args.discard, token=token)
    except StaleRecord as e:
        print(f"Record not found: {e}. Re-run find_duplicates.py for fresh candidates.")
        sys.exit(1)
    except PartialMergeFailure as e:
        print(f"Merge stopped part-way: {e}")
        print("Run the same command again to finish it.")
        sys.exit(2)
    except DedupError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(summary.message)
    if not summary.audited:
        print("Warning: merge was not written to the merge log")
    if not summary.refreshed:
        print("Warning: candidates could not be refreshed; re-run find_duplicates.py")

    if args.history:
        print("\nMerge history:")
        for entry in engine.resolver.audit.history(summary.kept_id):
            print(f"  {entry.created_at:%Y-%m-%d %H:%M}  {entry.discarded_label} -> {entry.kept_label}")


if __name__ == "__main__":
    main()
