"""
Fancy Blog - Application configuration.

Centralized configuration using Pydantic Settings for environment variable management.
Settings objects are immutable: build one at startup with load_settings() (or
construct one explicitly in tests) and hand it to create_app().

Environment Variables:
    All settings can be overridden via environment variables with FANCYBLOG_ prefix.

    Auth Settings:
        FANCYBLOG_JWT_SECRET=...              - Access token signing key (required in production)
        FANCYBLOG_JWT_REFRESH_SECRET=...      - Refresh token signing key (required in production)
        FANCYBLOG_ADMIN_CODE=...              - Code that promotes a user to admin
        FANCYBLOG_GOOGLE_CLIENT_ID=...        - Enables Google login together with the secret
        FANCYBLOG_GITHUB_CLIENT_ID=...        - Enables GitHub login together with the secret
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class AuthSettings(BaseSettings):
    """
    Authentication configuration settings.

    For production deployment:
        1. Generate two secret keys: openssl rand -hex 32
        2. Set FANCYBLOG_JWT_SECRET and FANCYBLOG_JWT_REFRESH_SECRET
        3. Set FANCYBLOG_ADMIN_CODE to something only admins know
        4. Optionally configure OAuth providers
    """
    jwt_secret: str = "development-secret-key-change-in-production"
    jwt_refresh_secret: str = "development-refresh-secret-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7
    bcrypt_rounds: int = 12
    admin_code: Optional[str] = None

    # OAuth2 providers
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    github_client_id: Optional[str] = None
    github_client_secret: Optional[str] = None

    class Config:
        env_prefix = "FANCYBLOG_"
        env_file = ".env"
        extra = "ignore"
        frozen = True


class Settings(BaseSettings):
    """Combined application settings."""
    auth: AuthSettings = Field(default_factory=AuthSettings)

    # "development" exposes internal error messages in 500 responses
    environment: str = "development"

    # CORS allowed origins (comma-separated, e.g. "http://localhost:5173,https://blog.example.com")
    allowed_origins: str = "*"

    # Database
    database_url: str = "sqlite:///./data/fancyblog.db"

    # Database connection pool (PostgreSQL only)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Pagination and listing
    max_page_size: int = 30
    max_abstract_length: int = 100

    rate_limit_enabled: bool = True

    # Name of the signed cookie holding the server-side session id
    session_cookie: str = "fancyblog_session"

    class Config:
        env_prefix = "FANCYBLOG_"
        env_file = ".env"
        extra = "ignore"
        frozen = True

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def load_settings() -> Settings:
    """Read settings from the environment once per process."""
    return Settings()
