"""
Fancy Blog - Authentication Module

Password and OAuth (Google/GitHub) authentication with JWT access tokens
and server-side refresh sessions.

Usage:
    from fancyblog.auth import require_auth, User

    @router.get("/protected")
    def protected_route(current_user: User = Depends(require_auth())):
        return {"user_id": current_user.id}

Configuration (environment variables):
    FANCYBLOG_JWT_SECRET=<key>               - Access token signing key
    FANCYBLOG_JWT_REFRESH_SECRET=<key>       - Refresh token signing key
    FANCYBLOG_ACCESS_TOKEN_EXPIRE_MINUTES=30
    FANCYBLOG_REFRESH_TOKEN_EXPIRE_DAYS=7
"""

# Models
from .models import User, OAuthAccount, RefreshSession

# Service
from .service import AuthService

# Dependencies (for use in routers)
from .dependencies import (
    AuthContext,
    AuthFailure,
    get_auth_context,
    get_auth_service,
    get_settings,
    require_auth,
)

# Router (for mounting in main.py)
from .router import router

__all__ = [
    # Models
    "User",
    "OAuthAccount",
    "RefreshSession",
    # Service
    "AuthService",
    # Dependencies
    "AuthContext",
    "AuthFailure",
    "get_auth_context",
    "get_auth_service",
    "get_settings",
    "require_auth",
    # Router
    "router",
]
