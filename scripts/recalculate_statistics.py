#!/usr/bin/env python3
"""Rebuild every statistics rollup from the source rows.

Usage:
  Run from the project root:
    python scripts/recalculate_statistics.py
"""

import os
import sys

# Ensure project root is on the import path when running as a script
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from db import SessionLocal, transaction
from utils.statistics import recalculate_all_statistics


def main() -> None:
    db = SessionLocal()
    try:
        with transaction(db):
            summary = recalculate_all_statistics(db)
    finally:
        db.close()

    print(
        f"Recalculated {summary['assignments']} assignments, {summary['students']} students, "
        f"{summary['classes']} classes and {summary['teachers']} teachers."
    )


if __name__ == "__main__":
    main()
