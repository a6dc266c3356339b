"""
Fancy Blog - Authentication Schemas

Pydantic schemas for auth request/response validation.
JSON field names are camelCase (isAdmin, adminCode, oauthProviders).
"""
import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..schemas import CamelModel

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

USERNAME_LENGTH_MSG = "Username must be between 6 and 64 characters"
USERNAME_CHARS_MSG = "Username must be alphanumeric characters, and '_' or '-'"
PASSWORD_LENGTH_MSG = "Password must be between 6 and 64 characters"
ADMIN_CODE_LENGTH_MSG = "Admin code must be between 6 and 64 characters"


def check_username(value: Optional[str]) -> str:
    value = value or ""
    errors = []
    if not 6 <= len(value) <= 64:
        errors.append(USERNAME_LENGTH_MSG)
    if not USERNAME_PATTERN.match(value):
        errors.append(USERNAME_CHARS_MSG)
    if errors:
        raise ValueError(" ".join(errors))
    return value


def check_password(value: Optional[str]) -> str:
    if not value or not 6 <= len(value) <= 64:
        raise ValueError(PASSWORD_LENGTH_MSG)
    return value


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------

class UserCredentials(CamelModel):
    """Schema for signup and login."""
    username: Optional[str] = Field(None, validate_default=True)
    password: Optional[str] = Field(None, validate_default=True)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        return check_username(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return check_password(v)


class UserUpdate(CamelModel):
    """Schema for a partial profile update. Only provided fields are checked."""
    username: Optional[str] = None
    password: Optional[str] = None
    admin_code: Optional[str] = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        return None if v is None else check_username(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return None if v is None else check_password(v)

    @field_validator("admin_code")
    @classmethod
    def validate_admin_code(cls, v):
        if v is not None and not 6 <= len(v) <= 64:
            raise ValueError(ADMIN_CODE_LENGTH_MSG)
        return v


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------

class UserToken(CamelModel):
    """Identity plus the access token to use for it."""
    id: int
    username: str
    is_admin: bool
    token: str


class OAuthProviderLink(CamelModel):
    provider: str
    subject: str


class UserProfile(CamelModel):
    id: int
    username: str
    is_admin: bool
    oauth_providers: List[OAuthProviderLink] = []


class OAuthProviders(CamelModel):
    configured: List[str]
    available: List[str]


class Message(BaseModel):
    message: str
