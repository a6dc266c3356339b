"""
Fancy Blog - User Router

API endpoints for accounts and authentication.

Endpoints:
    POST   /api/user                          - Signup -> identity + token
    POST   /api/user/login                    - Username/password login
    POST   /api/user/refresh                  - New access token from the refresh session
    GET    /api/user/logout                   - Revoke the refresh session and token
    GET    /api/user                          - Current user + linked providers
    PUT    /api/user                          - Update username/password/admin status
    DELETE /api/user                          - Soft delete the account
    GET    /api/user/oauth/providers          - Configured OAuth providers
    GET    /api/user/oauth/{provider}         - Redirect to the provider
    GET    /api/user/oauth/{provider}/callback - Login, link or create via provider
    DELETE /api/user/oauth/{provider}         - Unlink a provider
"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
import logging

from ..database import get_db
from ..errors import NotFound
from ..rate_limit import RateLimit, RATE_LIMIT_AUTH
from .dependencies import AuthContext, get_auth_context, get_auth_service, require_auth
from .models import User
from .oauth import SUPPORTED_PROVIDERS, OAuthProvider
from .schemas import (
    UserCredentials, UserUpdate, UserToken, UserProfile,
    OAuthProviderLink, OAuthProviders, Message,
)
from .service import AuthService

logger = logging.getLogger("fancyblog.auth")
router = APIRouter()

SESSION_KEY = "sid"
PROFILE_LOCATION = "/api/user"


# -----------------------------------------------------------------------------
# Signup & Login
# -----------------------------------------------------------------------------

@router.post(
    "", response_model=UserToken, status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit(RATE_LIMIT_AUTH))],
)
async def signup(
    request: Request,
    response: Response,
    credentials: UserCredentials,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user with username and password.

    Requires:
    - Username of 6 to 64 letters, digits, '_' or '-', not already taken
    - Password of 6 to 64 characters

    Returns the new identity and its access token.
    """
    user = auth_service.create_user(credentials.username, credentials.password, db)
    request.session[SESSION_KEY] = auth_service.open_session(
        user, db, replaces=request.session.get(SESSION_KEY)
    )

    response.headers["Location"] = PROFILE_LOCATION
    return _user_token(user, auth_service.issue_access_token(user, db))


@router.post(
    "/login", response_model=UserToken,
    dependencies=[Depends(RateLimit(RATE_LIMIT_AUTH))],
)
async def login(
    request: Request,
    credentials: UserCredentials,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Login with username and password.

    Returns the user's current access token: logging in twice without any
    change to the account gives the same token. A refresh session is
    opened alongside it.
    """
    user = auth_service.authenticate(credentials.username, credentials.password, db)
    request.session[SESSION_KEY] = auth_service.open_session(
        user, db, replaces=request.session.get(SESSION_KEY)
    )
    return _user_token(user, auth_service.issue_access_token(user, db))


@router.post(
    "/refresh", response_model=UserToken,
    dependencies=[Depends(RateLimit(RATE_LIMIT_AUTH))],
)
async def refresh(
    request: Request,
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Get a new access token from the refresh session in the session cookie.

    Implements rotation: the old refresh session is revoked, a new one is
    opened, and the previous access token stops working.
    """
    user, access_token, session_id = auth_service.refresh(request.session.get(SESSION_KEY), db)
    request.session[SESSION_KEY] = session_id
    return _user_token(user, access_token)


@router.get("/logout", response_model=Message)
async def logout(
    request: Request,
    current_user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke the refresh session and invalidate the current access token."""
    auth_service.close_session(request.session.pop(SESSION_KEY, None), current_user, db)
    return Message(message="OK")


# -----------------------------------------------------------------------------
# Current User
# -----------------------------------------------------------------------------

@router.get("", response_model=UserProfile)
async def get_me(
    current_user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Get the current user's profile and linked OAuth providers."""
    accounts = auth_service.get_user_oauth_accounts(current_user.id, db)
    return UserProfile(
        id=current_user.id,
        username=current_user.username,
        is_admin=current_user.is_admin,
        oauth_providers=[
            OAuthProviderLink(provider=acc.provider, subject=acc.subject)
            for acc in accounts
        ],
    )


@router.put("", response_model=UserToken)
async def update_me(
    user_data: UserUpdate,
    current_user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Update the current user.

    Only provided fields are updated. adminCode promotes the user to admin
    when it matches the server's admin code. The returned token is new only
    if the username or admin status changed.
    """
    user = auth_service.update_user(
        current_user.id,
        db,
        username=user_data.username,
        password=user_data.password,
        admin_code=user_data.admin_code,
    )
    return _user_token(user, auth_service.issue_access_token(user, db))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    request: Request,
    current_user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Delete the current user's account.

    The account is soft deleted: its posts and comments keep their author,
    while the username becomes free for new signups.
    """
    auth_service.delete_user(current_user.id, db)
    request.session.pop(SESSION_KEY, None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------------------------------------------------------
# OAuth2
# -----------------------------------------------------------------------------

@router.get("/oauth/providers", response_model=OAuthProviders)
async def list_oauth_providers(request: Request):
    """List configured OAuth providers, so the login page can show/hide buttons."""
    return OAuthProviders(
        configured=list(request.app.state.oauth_providers),
        available=SUPPORTED_PROVIDERS,
    )


@router.get("/oauth/{provider}")
async def oauth_login(provider: str, request: Request):
    """Redirect to the OAuth provider for authentication."""
    oauth_provider = _get_provider(request, provider)
    redirect_uri = request.url_for("oauth_callback", provider=provider)
    return await oauth_provider.authorize_redirect(request, str(redirect_uri))


@router.get("/oauth/{provider}/callback", response_model=UserToken)
async def oauth_callback(
    provider: str,
    request: Request,
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Handle the OAuth callback from the provider.

    With no bearer token this logs in (or creates) the linked account; with
    a valid bearer token it links the provider to that account. Answers 409
    when the provider account already belongs to someone else.
    """
    oauth_provider = _get_provider(request, provider)
    profile = await oauth_provider.fetch_profile(request)

    user = oauth_provider.verify(profile, context, auth_service, db)
    request.session[SESSION_KEY] = auth_service.open_session(
        user, db, replaces=request.session.get(SESSION_KEY)
    )
    return _user_token(user, auth_service.issue_access_token(user, db))


@router.delete("/oauth/{provider}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_oauth_account(
    provider: str,
    current_user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Unlink an OAuth account from the current user.

    Cannot unlink the last OAuth account if user has no password.
    """
    auth_service.unlink_oauth_account(current_user, provider, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _get_provider(request: Request, provider: str) -> OAuthProvider:
    oauth_provider = request.app.state.oauth_providers.get(provider)
    if oauth_provider is None:
        raise NotFound(f"OAuth provider '{provider}' is not configured")
    return oauth_provider


def _user_token(user: User, token: str) -> UserToken:
    """Convert User model to the identity + token response."""
    return UserToken(
        id=user.id,
        username=user.username,
        is_admin=user.is_admin,
        token=token,
    )
