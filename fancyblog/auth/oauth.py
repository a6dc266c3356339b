"""
Fancy Blog - OAuth2 Providers

Google and GitHub sign-in, plus the verify step that decides between
logging in a linked account, linking a new provider to the signed-in
account, and creating a new account.

Dependencies:
    pip install authlib httpx

Setup:
    1. Google OAuth:
       - Go to https://console.cloud.google.com/apis/credentials
       - Create OAuth 2.0 Client ID
       - Set authorized redirect URI: {YOUR_URL}/api/user/oauth/google/callback
       - Set FANCYBLOG_GOOGLE_CLIENT_ID and FANCYBLOG_GOOGLE_CLIENT_SECRET in .env

    2. GitHub OAuth:
       - Go to https://github.com/settings/developers
       - Create new OAuth App
       - Set callback URL: {YOUR_URL}/api/user/oauth/github/callback
       - Set FANCYBLOG_GITHUB_CLIENT_ID and FANCYBLOG_GITHUB_CLIENT_SECRET in .env
"""
from dataclasses import dataclass
from typing import Dict, Optional
import logging

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import AccountAlreadyBound, SessionExpired, Unauthenticated
from .dependencies import AuthContext
from .models import User, OAuthAccount
from .service import AuthService

logger = logging.getLogger("fancyblog.auth")

SUPPORTED_PROVIDERS = ["google", "github"]

OAUTH_FAILED = "OAuth authentication failed."


@dataclass(frozen=True)
class OAuthProfile:
    """The part of a provider profile we rely on."""
    subject: str
    display_name: Optional[str] = None


class OAuthProvider:
    """
    One configured OAuth provider.

    Subclasses know how to talk to their provider (fetch_profile); verify()
    holds the account binding rules shared by every provider.
    """
    name = ""

    def __init__(self, client=None):
        self.client = client

    async def authorize_redirect(self, request, redirect_uri: str):
        return await self.client.authorize_redirect(request, redirect_uri)

    async def fetch_profile(self, request) -> OAuthProfile:
        raise NotImplementedError

    def verify(
        self,
        profile: OAuthProfile,
        context: AuthContext,
        auth_service: AuthService,
        db: Session,
    ) -> User:
        """
        Resolve a provider profile to a local user.

        1. A link for (provider, subject) exists: log in its owner, unless a
           different user is signed in (AccountAlreadyBound).
        2. No link and the caller's token had expired: refuse (SessionExpired),
           the account to link to cannot be confirmed.
        3. No link and a user is signed in: link the provider to that user.
        4. No link and nobody signed in: create a password-less user and link it.

        Steps 3 and 4 are committed as one unit.
        """
        owner = auth_service.find_oauth_owner(self.name, profile.subject, db)

        if owner:
            if context.user is None or context.user.id == owner.id:
                logger.debug(f"OAuth login via {self.name} for user {owner.id}")
                return owner
            logger.warning(
                f"{self.name} identity of user {owner.id} presented by user {context.user.id}"
            )
            raise AccountAlreadyBound()

        if context.token_expired:
            raise SessionExpired()

        try:
            if context.user is not None:
                user = context.user
                db.add(OAuthAccount(user_id=user.id, provider=self.name, subject=profile.subject))
                db.commit()
                logger.info(f"Linked {self.name} OAuth account to user {user.id}")
                return user

            user = User(
                username=auth_service.available_username(profile.display_name, self.name, db),
                hashed_password=None,
                is_admin=False,
            )
            user.oauth_accounts.append(OAuthAccount(provider=self.name, subject=profile.subject))
            db.add(user)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Concurrent {self.name} link for subject {profile.subject}")
            raise AccountAlreadyBound()

        db.refresh(user)
        logger.info(f"Created new OAuth user: {user.id} ({user.username}) via {self.name}")
        return user


class GoogleProvider(OAuthProvider):
    name = "google"

    async def fetch_profile(self, request) -> OAuthProfile:
        try:
            token = await self.client.authorize_access_token(request)
            user_info = token.get("userinfo")
            if not user_info:
                user_info = await self.client.userinfo(token=token)
        except (OAuthError, httpx.HTTPError) as e:
            logger.warning(f"Google OAuth exchange failed: {e}")
            raise Unauthenticated(OAUTH_FAILED)
        return extract_google_profile(dict(user_info))


class GitHubProvider(OAuthProvider):
    name = "github"
    api_base_url = "https://api.github.com"

    async def fetch_profile(self, request) -> OAuthProfile:
        try:
            token = await self.client.authorize_access_token(request)
            headers = {
                "Authorization": f"Bearer {token.get('access_token')}",
                "Accept": "application/json",
            }
            async with httpx.AsyncClient(base_url=self.api_base_url) as http:
                resp = await http.get("/user", headers=headers)
                resp.raise_for_status()
                user_data = resp.json()
        except (OAuthError, httpx.HTTPError) as e:
            logger.warning(f"GitHub OAuth exchange failed: {e}")
            raise Unauthenticated(OAUTH_FAILED)
        return extract_github_profile(user_data)


# OAuth profile extraction helpers
def extract_google_profile(user_info: dict) -> OAuthProfile:
    if not user_info.get("sub"):
        raise Unauthenticated(OAUTH_FAILED)
    return OAuthProfile(
        subject=str(user_info["sub"]),
        display_name=user_info.get("name") or user_info.get("given_name"),
    )


def extract_github_profile(user_data: dict) -> OAuthProfile:
    if not user_data.get("id"):
        raise Unauthenticated(OAUTH_FAILED)
    return OAuthProfile(
        subject=str(user_data["id"]),
        display_name=user_data.get("name") or user_data.get("login"),
    )


def build_oauth_providers(settings: Settings) -> Dict[str, OAuthProvider]:
    """
    Register every provider whose client id and secret are configured.

    Returns:
        Lookup table of provider name -> OAuthProvider
    """
    oauth = OAuth()
    providers: Dict[str, OAuthProvider] = {}

    if settings.auth.google_client_id and settings.auth.google_client_secret:
        oauth.register(
            name="google",
            client_id=settings.auth.google_client_id,
            client_secret=settings.auth.google_client_secret,
            server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
            client_kwargs={
                "scope": "openid profile"
            }
        )
        providers["google"] = GoogleProvider(oauth.google)

    if settings.auth.github_client_id and settings.auth.github_client_secret:
        oauth.register(
            name="github",
            client_id=settings.auth.github_client_id,
            client_secret=settings.auth.github_client_secret,
            authorize_url="https://github.com/login/oauth/authorize",
            access_token_url="https://github.com/login/oauth/access_token",
            api_base_url="https://api.github.com/",
            client_kwargs={
                "scope": "read:user"
            }
        )
        providers["github"] = GitHubProvider(oauth.github)

    logger.info(f"Configured OAuth providers: {list(providers) or 'none'}")
    return providers
