"""
Fancy Blog - Authentication Service

Core authentication logic: account lifecycle, access token issuance and
server-side refresh sessions.

Features:
- Bcrypt password hashing (PasswordHasher)
- JWT access token issuance with a stable per-user token
- Refresh sessions with rotation
- Soft deletion that frees the username
- OAuth account linking helpers

Token policy:
    users.token_epoch is the issued-at of the one access token the API
    accepts for a user. Re-signing at the stored epoch reproduces that token
    exactly, so login and password-only updates hand back the same token.
    The epoch moves forward when the username or admin flag changes, on
    refresh and logout, and when the current token has expired.
"""
from datetime import datetime, timedelta
from typing import Optional, Tuple, List
import hashlib
import hmac
import re
import secrets
import time
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import (
    Conflict, Forbidden, InvalidCredentials, InvalidInput, NoFields,
    NotFound, TokenExpired, TokenInvalid, Unauthenticated,
)
from .models import User, RefreshSession, OAuthAccount
from .security import PasswordHasher, TokenSigner

logger = logging.getLogger("fancyblog.auth")

USERNAME_TAKEN = "Username already exists"


class UserNotFound(TokenInvalid):
    message = "User not found"


class TokenStale(TokenInvalid):
    message = "Token is no longer valid, please login again."


def token_payload(user: User) -> dict:
    """The claims every token carries, read from the stored user."""
    return {"id": user.id, "username": user.username, "isAdmin": bool(user.is_admin)}


class AuthService:
    """
    Authentication service for user management and token handling.

    Provides:
    - Signup, login, update and soft delete
    - Access token verification against the stored user
    - Refresh session creation, rotation and revocation
    - OAuth account linking
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.hasher = PasswordHasher(rounds=settings.auth.bcrypt_rounds)
        self.signer = TokenSigner(settings.auth)

    # -------------------------------------------------------------------------
    # Access Tokens
    # -------------------------------------------------------------------------

    def _advance_epoch(self, user: User) -> None:
        user.token_epoch = max(int(time.time()), (user.token_epoch or 0) + 1)

    def issue_access_token(self, user: User, db: Session) -> str:
        """
        Return the user's current access token, starting a new epoch first
        if the one at the stored epoch has expired.
        """
        if not user.token_epoch or user.token_epoch + self.signer.access_ttl <= time.time():
            self._advance_epoch(user)
            db.commit()
        return self.signer.sign(token_payload(user), issued_at=user.token_epoch)

    def resolve_access_token(self, token: str, db: Session) -> User:
        """
        Verify an access token and load the active user it names.

        Raises:
            TokenExpired / TokenInvalid: from signature or claim checks
            UserNotFound: user missing or soft-deleted
            TokenStale: user changed (username, admin flag, epoch) since signing
        """
        claims = self.signer.verify_access(token)

        user = self.get_active_user(claims["id"], db)
        if not user:
            logger.warning(f"Token valid but user {claims['id']} not found")
            raise UserNotFound()

        if (
            claims["username"] != user.username
            or claims["isAdmin"] != bool(user.is_admin)
            or claims["iat"] != user.token_epoch
        ):
            logger.debug(f"Stale token presented for user {user.id}")
            raise TokenStale()

        return user

    # -------------------------------------------------------------------------
    # Refresh Sessions
    # -------------------------------------------------------------------------

    def open_session(self, user: User, db: Session, replaces: Optional[str] = None) -> str:
        """
        Create a refresh session for the user and return its session id.

        The refresh token is stored server-side; only the id goes to the client.
        `replaces` is the session id the client held before; that session is
        revoked so one cookie never keeps more than one live session. The
        access token epoch is left alone.
        """
        if replaces:
            db.query(RefreshSession).filter(
                RefreshSession.session_id == replaces,
                RefreshSession.revoked == False  # noqa: E712
            ).update({"revoked": True})

        session_id = secrets.token_urlsafe(32)
        now = int(time.time())
        db_session = RefreshSession(
            session_id=session_id,
            user_id=user.id,
            token=self.signer.sign_refresh(token_payload(user), issued_at=now),
            expires_at=datetime.utcnow() + timedelta(seconds=self.signer.refresh_ttl),
        )
        db.add(db_session)
        db.commit()

        logger.debug(f"Opened refresh session for user {user.id}")
        return session_id

    def refresh(self, session_id: Optional[str], db: Session) -> Tuple[User, str, str]:
        """
        Exchange a refresh session for a new access token.

        Implements rotation: the old session is revoked and a new one opened.
        The token payload is rebuilt from the stored user, never from the
        old refresh token.

        Returns:
            Tuple of (user, access_token, new_session_id)

        Raises:
            Unauthenticated: missing, revoked or expired session, or inactive user
        """
        if not session_id:
            raise Unauthenticated("No refresh session")

        db_session = db.query(RefreshSession).filter(
            RefreshSession.session_id == session_id,
            RefreshSession.revoked == False,  # noqa: E712
            RefreshSession.expires_at > datetime.utcnow()
        ).first()
        if not db_session:
            logger.debug("Refresh session not found or expired")
            raise Unauthenticated("Invalid or expired refresh session")

        try:
            claims = self.signer.verify_refresh(db_session.token)
        except (TokenExpired, TokenInvalid):
            db_session.revoked = True
            db.commit()
            raise Unauthenticated("Invalid or expired refresh session")

        user = self.get_active_user(db_session.user_id, db)
        if not user or claims["id"] != user.id:
            logger.warning(f"User {db_session.user_id} not active for refresh session")
            db_session.revoked = True
            db.commit()
            raise Unauthenticated("Invalid or expired refresh session")

        db_session.revoked = True
        self._advance_epoch(user)
        db.commit()

        new_session_id = self.open_session(user, db)
        access_token = self.signer.sign(token_payload(user), issued_at=user.token_epoch)
        logger.info(f"Rotated refresh session for user {user.id}")
        return user, access_token, new_session_id

    def close_session(self, session_id: Optional[str], user: User, db: Session) -> None:
        """Logout: revoke the refresh session and invalidate the access token."""
        if session_id:
            db.query(RefreshSession).filter(
                RefreshSession.session_id == session_id,
                RefreshSession.user_id == user.id
            ).update({"revoked": True})
        self._advance_epoch(user)
        db.commit()
        logger.info(f"User {user.id} logged out")

    def revoke_all_sessions(self, user_id: int, db: Session) -> int:
        """Revoke all refresh sessions for a user (logout from all devices)."""
        count = db.query(RefreshSession).filter(
            RefreshSession.user_id == user_id,
            RefreshSession.revoked == False  # noqa: E712
        ).update({"revoked": True})

        db.commit()
        logger.info(f"Revoked {count} refresh sessions for user {user_id}")
        return count

    def cleanup_expired_sessions(self, db: Session) -> int:
        """
        Delete expired refresh sessions from database.

        Should be run periodically (e.g., daily) to clean up old sessions.
        """
        count = db.query(RefreshSession).filter(
            RefreshSession.expires_at < datetime.utcnow()
        ).delete()

        db.commit()
        logger.info(f"Cleaned up {count} expired refresh sessions")
        return count

    # -------------------------------------------------------------------------
    # User Management
    # -------------------------------------------------------------------------

    def get_active_user(self, user_id: int, db: Session) -> Optional[User]:
        return db.query(User).filter(
            User.id == user_id,
            User.is_deleted == False  # noqa: E712
        ).first()

    def get_user_by_username(self, username: str, db: Session) -> Optional[User]:
        return db.query(User).filter(
            User.username == username,
            User.is_deleted == False  # noqa: E712
        ).first()

    def username_taken(self, username: str, db: Session) -> bool:
        return db.query(User.id).filter(User.username == username).first() is not None

    def create_user(self, username: str, password: str, db: Session) -> User:
        """
        Create a new user with username/password.

        Raises:
            Conflict: username already exists (also when a concurrent signup wins)
        """
        if self.username_taken(username, db):
            raise Conflict(USERNAME_TAKEN)

        user = User(
            username=username,
            hashed_password=self.hasher.hash(password),
            is_admin=False,
            token_epoch=int(time.time()),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Conflict(USERNAME_TAKEN)
        db.refresh(user)

        logger.info(f"Created new user: {user.id} ({username})")
        return user

    def authenticate(self, username: str, password: str, db: Session) -> User:
        """
        Authenticate a user by username and password.

        Raises:
            InvalidCredentials: unknown/deleted user, OAuth-only account, wrong password
        """
        user = self.get_user_by_username(username, db)

        if not user:
            logger.debug(f"User not found: {username}")
            raise InvalidCredentials()

        if not user.hashed_password:
            logger.debug(f"User {username} is OAuth-only (no password)")
            raise InvalidCredentials()

        try:
            matches = self.hasher.verify(password, user.hashed_password)
        except InvalidInput:
            matches = False
        if not matches:
            logger.debug(f"Invalid password for user: {username}")
            raise InvalidCredentials()

        logger.info(f"User authenticated: {user.id} ({username})")
        return user

    def update_user(
        self,
        user_id: int,
        db: Session,
        username: Optional[str] = None,
        password: Optional[str] = None,
        admin_code: Optional[str] = None,
    ) -> User:
        """
        Apply a partial update to a user.

        A new token epoch starts only when the username or admin flag changes;
        a password change keeps the current token valid.

        Raises:
            NoFields: nothing to update
            Forbidden: admin code does not match the configured one
            NotFound: user no longer exists
            Conflict: new username already taken
        """
        if username is None and password is None and admin_code is None:
            raise NoFields()

        user = self.get_active_user(user_id, db)
        if not user:
            raise NotFound("User not found")

        material_change = False

        if admin_code is not None:
            expected = self.settings.auth.admin_code
            if not expected or not hmac.compare_digest(admin_code.encode(), expected.encode()):
                logger.warning(f"User {user.id} supplied a wrong admin code")
                raise Forbidden("Invalid admin code")
            if not user.is_admin:
                user.is_admin = True
                material_change = True
                logger.info(f"User {user.id} promoted to admin")

        if username is not None and username != user.username:
            if self.username_taken(username, db):
                db.rollback()
                raise Conflict(USERNAME_TAKEN)
            user.username = username
            material_change = True

        if password is not None:
            user.hashed_password = self.hasher.hash(password)

        if material_change:
            self._advance_epoch(user)
        user.updated_at = datetime.utcnow()

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Conflict(USERNAME_TAKEN)
        db.refresh(user)

        logger.info(f"Updated user {user.id}")
        return user

    def delete_user(self, user_id: int, db: Session) -> None:
        """
        Soft delete a user.

        The username is replaced by a hash-derived marker so it can be
        registered again; OAuth links are removed and sessions revoked.

        Raises:
            NotFound: user missing or already deleted
        """
        user = self.get_active_user(user_id, db)
        if not user:
            raise NotFound("User not found")

        digest = hashlib.sha256(
            f"{user.username}:{secrets.token_hex(8)}".encode()
        ).hexdigest()
        user.username = f"deleted_{digest[:40]}"
        user.is_deleted = True
        user.deleted_at = datetime.utcnow()

        db.query(OAuthAccount).filter(OAuthAccount.user_id == user.id).delete()
        db.query(RefreshSession).filter(
            RefreshSession.user_id == user.id
        ).update({"revoked": True})
        db.commit()

        logger.info(f"Soft deleted user {user.id}")

    def set_password(self, user: User, new_password: str, db: Session) -> None:
        """Replace a password (CLI reset) and revoke all refresh sessions."""
        user.hashed_password = self.hasher.hash(new_password)
        user.updated_at = datetime.utcnow()
        db.commit()
        self.revoke_all_sessions(user.id, db)
        logger.info(f"Password reset for user {user.id}")

    # -------------------------------------------------------------------------
    # OAuth Support
    # -------------------------------------------------------------------------

    def find_oauth_owner(self, provider: str, subject: str, db: Session) -> Optional[User]:
        """Owner of the (provider, subject) link, ignoring deleted users."""
        return db.query(User).join(OAuthAccount).filter(
            OAuthAccount.provider == provider,
            OAuthAccount.subject == subject,
            User.is_deleted == False  # noqa: E712
        ).first()

    def available_username(self, display_name: Optional[str], provider: str, db: Session) -> str:
        """
        Derive a free, valid username from a provider display name.

        Characters outside [A-Za-z0-9_-] are dropped, short names are padded
        with the provider name, and a random suffix is added while taken.
        """
        base = re.sub(r"[^A-Za-z0-9_-]", "", display_name or "")
        if len(base) < 6:
            base = f"{provider}_{base}" if base else f"{provider}_user"
        base = base[:56].ljust(6, "_")

        candidate = base
        while self.username_taken(candidate, db):
            candidate = f"{base}-{secrets.token_hex(3)}"
        return candidate

    def get_user_oauth_accounts(self, user_id: int, db: Session) -> List[OAuthAccount]:
        return db.query(OAuthAccount).filter(
            OAuthAccount.user_id == user_id
        ).order_by(OAuthAccount.id).all()

    def unlink_oauth_account(self, user: User, provider: str, db: Session) -> None:
        """
        Unlink an OAuth account from a user.

        Raises:
            NotFound: no link for that provider
            InvalidInput: it is the last way to sign in to a password-less account
        """
        accounts = self.get_user_oauth_accounts(user.id, db)
        target = [acc for acc in accounts if acc.provider == provider]
        if not target:
            raise NotFound(f"No {provider} account linked")

        if not user.hashed_password and len(accounts) <= len(target):
            raise InvalidInput("Cannot unlink last OAuth account without setting a password")

        for acc in target:
            db.delete(acc)
        db.commit()
        logger.info(f"Unlinked {provider} OAuth account from user {user.id}")
