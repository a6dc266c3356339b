#!/usr/bin/env python3
"""
Fancy Blog - Admin Promotion CLI

Promote or demote a user to/from admin. Tokens issued before the change
stop working, so the user has to log in again.

Usage:
    python scripts/promote_admin.py some_username          # promote
    python scripts/promote_admin.py some_username --demote  # demote
"""
import sys
import os

# Add project root to path so we can import fancyblog modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fancyblog.config import load_settings
from fancyblog.database import create_app_engine, create_session_factory, init_db
from fancyblog.auth.service import AuthService


def promote_admin(username: str, demote: bool = False):
    settings = load_settings()
    engine = create_app_engine(settings)
    init_db(engine)
    db = create_session_factory(engine)()
    auth_service = AuthService(settings)

    try:
        user = auth_service.get_user_by_username(username, db)
        if not user:
            print(f"Error: No user found with username '{username}'")
            sys.exit(1)

        if demote:
            if not user.is_admin:
                print(f"{username} is already not an admin.")
                return
            user.is_admin = False
            db.commit()
            print(f"Demoted {username}, no longer an admin.")
        else:
            if user.is_admin:
                print(f"{username} is already an admin.")
                return
            user.is_admin = True
            db.commit()
            print(f"Promoted {username} to admin.")

    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2 or len(sys.argv) > 3:
        print("Usage: python scripts/promote_admin.py <username> [--demote]")
        print("Examples:")
        print("  python scripts/promote_admin.py alice_writer          # promote")
        print("  python scripts/promote_admin.py alice_writer --demote  # demote")
        sys.exit(1)

    demote = "--demote" in sys.argv
    username = sys.argv[1]
    promote_admin(username, demote=demote)
