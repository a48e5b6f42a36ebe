#!/usr/bin/env python3
"""Publish every scheduled assignment whose publish time has passed.

Usage:
  Run from the project root, e.g. from cron every few minutes:
    python scripts/publish_scheduled.py
"""

import os
import sys

# Ensure project root is on the import path when running as a script
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from db import SessionLocal
from utils.scheduler import publish_due_assignments


def main() -> None:
    db = SessionLocal()
    try:
        published = publish_due_assignments(db)
    finally:
        db.close()

    if published:
        print(f"Published {len(published)} assignment(s): {', '.join(published)}")
    else:
        print("No scheduled assignments due.")


if __name__ == "__main__":
    main()
