#!/usr/bin/env python3
"""
Fancy Blog - Password Reset CLI

Reset a user's password from the command line.

Usage:
    python scripts/reset_password.py some_username newpassword123
"""
import sys
import os

# Add project root to path so we can import fancyblog modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fancyblog.config import load_settings
from fancyblog.database import create_app_engine, create_session_factory, init_db
from fancyblog.auth.schemas import check_password
from fancyblog.auth.service import AuthService


def reset_password(username: str, new_password: str):
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

        # Same length rules as the API
        try:
            check_password(new_password)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

        # Revokes all refresh sessions (force re-login everywhere)
        auth_service.set_password(user, new_password, db)
        print(f"Password reset successfully for {username}")
        print("All active sessions have been revoked. The user must log in again.")

    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python scripts/reset_password.py <username> <new_password>")
        print("Example: python scripts/reset_password.py alice_writer MyNewPass123")
        sys.exit(1)

    reset_password(sys.argv[1], sys.argv[2])
