"""
Give a user the admin role (or another role) by email.

Usage:
    python scripts/promote_admin.py <email> [--role operator]
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cargotrack.db import SessionLocal
from cargotrack.schemas.auth import UserRole
from cargotrack.services.users import get_user_by_email, set_role


def promote(email: str, role: str = UserRole.admin.value) -> bool:
    db = SessionLocal()
    try:
        user = get_user_by_email(db, email)
        if not user:
            print(f"User not found: {email} (the user must log in once first)")
            return False
        set_role(db, user, role)
        print(f"{user.email} is now {user.role}")
        return True
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Change a user's role")
    parser.add_argument("email")
    parser.add_argument("--role", default=UserRole.admin.value, choices=[r.value for r in UserRole])
    args = parser.parse_args()
    sys.exit(0 if promote(args.email, args.role) else 1)
