"""
Fancy Blog - Password hashing and JWT signing.

Setup:
    pip install python-jose[cryptography] passlib[bcrypt]

PasswordHasher wraps passlib's bcrypt context; TokenSigner issues and checks
HS256 access/refresh tokens with python-jose. Neither lets a library
exception escape: callers only ever see the errors from ..errors.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ..config import AuthSettings
from ..errors import IllegalPayload, InvalidInput, SigningError, TokenExpired, TokenInvalid

logger = logging.getLogger("fancyblog.auth")

ACCESS = "access"
REFRESH = "refresh"


class PasswordHasher:
    """Salted bcrypt hashing with a tunable cost factor."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        if not isinstance(password, str) or not password:
            raise InvalidInput("Password must be a non-empty string")
        return self._context.hash(password)

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        Check a plaintext candidate against a stored hash.

        Raises:
            InvalidInput: non-string candidate or a hash passlib cannot parse
        """
        if not isinstance(password, str) or not isinstance(hashed_password, str):
            raise InvalidInput("Password and hash must be strings")
        try:
            return self._context.verify(password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password verification against malformed hash: {e}")
            raise InvalidInput("Malformed password hash")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def is_legal_payload(payload: Optional[Dict[str, Any]]) -> bool:
    """A payload needs a non-empty id and username plus a boolean isAdmin."""
    return bool(
        payload
        and payload.get("id")
        and payload.get("username")
        and isinstance(payload.get("isAdmin"), bool)
    )


class TokenSigner:
    """
    Signs and verifies access and refresh tokens.

    Access and refresh tokens use different secrets and lifetimes so a
    refresh token can outlive access tokens and be revoked independently.
    Signing is deterministic: one payload at one issued_at gives one token.
    """

    def __init__(self, settings: AuthSettings):
        self._settings = settings

    @property
    def access_ttl(self) -> int:
        return self._settings.access_token_expire_minutes * 60

    @property
    def refresh_ttl(self) -> int:
        return self._settings.refresh_token_expire_days * 86400

    def _encode(self, payload: Dict[str, Any], secret: str, ttl: int,
                token_type: str, issued_at: Optional[int]) -> str:
        if not is_legal_payload(payload):
            raise IllegalPayload()
        if not secret:
            raise SigningError("Token secret is not configured")

        iat = int(issued_at if issued_at is not None else time.time())
        claims = {
            "id": payload["id"],
            "username": payload["username"],
            "isAdmin": payload["isAdmin"],
            "type": token_type,
            "iat": iat,
            "exp": iat + ttl,
        }
        try:
            return jwt.encode(claims, secret, algorithm=self._settings.algorithm)
        except (JWTError, TypeError, ValueError) as e:
            logger.error(f"Failed to sign {token_type} token: {e}")
            raise SigningError()

    def sign(self, payload: Dict[str, Any], issued_at: Optional[int] = None) -> str:
        """Create an access token for {id, username, isAdmin}."""
        return self._encode(payload, self._settings.jwt_secret, self.access_ttl, ACCESS, issued_at)

    def sign_refresh(self, payload: Dict[str, Any], issued_at: Optional[int] = None) -> str:
        return self._encode(
            payload, self._settings.jwt_refresh_secret, self.refresh_ttl, REFRESH, issued_at
        )

    def sign_pair(self, payload: Dict[str, Any], issued_at: Optional[int] = None) -> TokenPair:
        return TokenPair(
            access_token=self.sign(payload, issued_at),
            refresh_token=self.sign_refresh(payload, issued_at),
        )

    def _decode(self, token: str, secret: str, token_type: str) -> Dict[str, Any]:
        if not token or not isinstance(token, str):
            raise TokenInvalid()
        try:
            claims = jwt.decode(token, secret, algorithms=[self._settings.algorithm])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            raise TokenInvalid()

        if claims.get("type") != token_type:
            logger.debug(f"Expected a {token_type} token, got {claims.get('type')}")
            raise TokenInvalid()
        if not is_legal_payload(claims) or "iat" not in claims:
            logger.warning("Token missing required claims")
            raise TokenInvalid()
        return claims

    def verify_access(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, expiry and type of an access token.

        Returns:
            The decoded claims

        Raises:
            TokenExpired: the exp claim is in the past
            TokenInvalid: anything else wrong with the token
        """
        return self._decode(token, self._settings.jwt_secret, ACCESS)

    def verify_refresh(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self._settings.jwt_refresh_secret, REFRESH)
