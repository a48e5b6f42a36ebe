#!/usr/bin/env python3
"""Create an admin user, or reset the password of an existing one.

Usage:
  Run from the project root:
    python scripts/create_admin_user.py <username> <password> [email]
"""

from typing import Optional
import os
import sys

# Ensure project root is on the import path when running as a script
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from db import SessionLocal, transaction
from models import User, UserRole
from utils.auth import hash_password


def create_admin(db, username: str, password: str, email: Optional[str] = None) -> User:
    user: Optional[User] = db.query(User).filter(User.username == username).first()
    if user is None:
        user = User(username=username, email=email, role=UserRole.ADMIN, confirmed=True)
        db.add(user)
        print(f"Creating admin user '{username}'.")
    else:
        user.role = UserRole.ADMIN
        user.blocked = False
        print(f"User '{username}' already exists, promoting to admin and resetting password.")
    user.password = hash_password(password)
    return user


def main() -> None:
    if len(sys.argv) < 3:
        print(__doc__)
        sys.exit(1)

    username, password = sys.argv[1], sys.argv[2]
    email = sys.argv[3] if len(sys.argv) > 3 else None

    db = SessionLocal()
    try:
        with transaction(db):
            user = create_admin(db, username, password, email)
        print(f"Admin user ready with id {user.id}.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
