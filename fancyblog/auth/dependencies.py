"""
Fancy Blog - Authentication Dependencies

FastAPI dependencies for route protection and user injection.

Usage in routers:
    from ..auth.dependencies import require_auth

    @router.get("/protected")
    def protected_route(current_user: User = Depends(require_auth())):
        return {"user_id": current_user.id}

    @router.post("/admin-only")
    def admin_route(admin: User = Depends(require_auth(admin_only=True))):
        ...

Dependency hierarchy:
    get_auth_context - Base: verifies the bearer token, never raises; records
                       either the user or why authentication failed
    require_auth     - Gate: 401 without a user, 403 for non-admins on
                       admin-only routes
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..errors import Forbidden, TokenExpired, TokenInvalid, Unauthenticated
from .models import User
from .service import AuthService, TokenStale, UserNotFound

logger = logging.getLogger("fancyblog.auth")

# auto_error=False allows us to handle missing tokens ourselves
bearer_scheme = HTTPBearer(auto_error=False)


class AuthFailure(str, Enum):
    TOKEN_EXPIRED = "TokenExpired"
    TOKEN_INVALID = "TokenInvalid"
    USER_NOT_FOUND = "UserNotFound"
    TOKEN_STALE = "TokenStale"


FAILURE_MESSAGES = {
    None: "Not authenticated",
    AuthFailure.TOKEN_EXPIRED: TokenExpired.message,
    AuthFailure.TOKEN_INVALID: TokenInvalid.message,
    AuthFailure.USER_NOT_FOUND: UserNotFound.message,
    AuthFailure.TOKEN_STALE: TokenStale.message,
}


@dataclass
class AuthContext:
    """What the session layer learned about the caller."""
    user: Optional[User] = None
    failure: Optional[AuthFailure] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def token_expired(self) -> bool:
        return self.user is None and self.failure == AuthFailure.TOKEN_EXPIRED


# -----------------------------------------------------------------------------
# Application-scoped objects
# -----------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


# -----------------------------------------------------------------------------
# Session Layer
# -----------------------------------------------------------------------------

async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthContext:
    """
    Resolve the bearer token (if any) into an AuthContext.

    Never rejects the request: a bad token only records a failure reason,
    so routes like the OAuth callback can tell "no session" apart from
    "session present but expired". The context is also kept on
    request.state.auth.
    """
    context = AuthContext()

    if credentials is not None and credentials.credentials:
        try:
            context.user = auth_service.resolve_access_token(credentials.credentials, db)
        except TokenExpired:
            context.failure = AuthFailure.TOKEN_EXPIRED
        except UserNotFound:
            context.failure = AuthFailure.USER_NOT_FOUND
        except TokenStale:
            context.failure = AuthFailure.TOKEN_STALE
        except TokenInvalid:
            context.failure = AuthFailure.TOKEN_INVALID

        if context.failure:
            logger.debug(f"Bearer token rejected: {context.failure.value}")

    request.state.auth = context
    return context


# -----------------------------------------------------------------------------
# Authorization Gate
# -----------------------------------------------------------------------------

def require_auth(admin_only: bool = False):
    """
    Build a dependency that only lets authenticated (and, if asked, admin)
    users through.

    Args:
        admin_only: also require the admin flag

    Returns:
        Dependency resolving to the authenticated User

    Raises:
        Unauthenticated: 401 if no user is attached
        Forbidden: 403 if admin_only and the user is not an admin
    """
    async def guard(context: AuthContext = Depends(get_auth_context)) -> User:
        if context.user is None:
            raise Unauthenticated(FAILURE_MESSAGES[context.failure])
        if admin_only and not context.user.is_admin:
            logger.warning(f"Non-admin user {context.user.id} attempted admin access")
            raise Forbidden()
        return context.user

    return guard
