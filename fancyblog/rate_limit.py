"""
Fancy Blog - Centralized rate limiting configuration.

Each application gets its own slowapi Limiter, built by create_app() from
Settings.rate_limit_enabled and kept on app.state.limiter. Routes declare
their limit with the RateLimit dependency, which counts the request against
the limiter of the app serving it, keyed on client IP.

Usage:
    @router.post("/login", dependencies=[Depends(RateLimit(RATE_LIMIT_AUTH))])
"""
from fastapi import Request
from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import Settings
from .errors import TooManyRequests

# --- Rate limit constants ---

# Auth endpoints (signup, login, refresh): strict to prevent brute force
RATE_LIMIT_AUTH = "5/minute"

# Write operations (posts, comments): moderate
RATE_LIMIT_GENERAL = "30/minute"


def create_limiter(settings: Settings) -> Limiter:
    return Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class RateLimit:
    """Route dependency enforcing one limit string through app.state.limiter."""

    def __init__(self, limit_value: str):
        self.limit_value = limit_value
        self.item = parse(limit_value)

    def __call__(self, request: Request) -> None:
        limiter: Limiter = request.app.state.limiter
        if not limiter.enabled:
            return

        # Count per route, like slowapi's own decorator does
        endpoint = request.scope.get("endpoint")
        scope = f"{endpoint.__module__}.{endpoint.__name__}" if endpoint else request.url.path

        if not limiter.limiter.hit(self.item, scope, get_remote_address(request)):
            raise TooManyRequests(f"Rate limit exceeded: {self.item}")
