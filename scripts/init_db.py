#!/usr/bin/env python3
"""
Create the directory, dismissal and merge log tables.

Usage:
    python scripts/init_db.py
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from dedup.database import init_db


def main():
    init_db()
    print(f"Database ready: {settings.DATABASE_URL}")


if __name__ == "__main__":
    main()
