"""
Fancy Blog - FastAPI application entry point.

A CRUD blogging platform: users, posts, comments and tags behind a JSON API,
with password and OAuth (Google/GitHub) sign-in.

Run with:
    uvicorn fancyblog.main:app --reload
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
import logging
import os

from . import __version__
from .config import Settings, load_settings
from .rate_limit import create_limiter
from .database import create_app_engine, create_session_factory, get_resilient_session, init_db
from .errors import register_exception_handlers
from .routers import posts, comments, tags
from .auth import router as user_router
from .auth.oauth import build_oauth_providers
from .auth.service import AuthService

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("fancyblog")


def setup_database(app: FastAPI):
    """Create missing tables and drop refresh sessions that already expired."""
    settings = app.state.settings
    if settings.database_url.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(settings.database_url[len("sqlite:///"):]), exist_ok=True)

    init_db(app.state.engine)
    with get_resilient_session(app.state.session_factory) as db:
        removed = app.state.auth_service.cleanup_expired_sessions(db)
        if removed:
            logger.info(f"Removed {removed} expired refresh sessions")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    logger.info("Starting Fancy Blog...")
    setup_database(app)
    logger.info(f"Fancy Blog ready! OAuth providers: {sorted(app.state.oauth_providers) or 'none'}")
    yield
    logger.info("Shutting down Fancy Blog...")
    app.state.engine.dispose()


# --- Security Headers Middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(settings: Settings = None) -> FastAPI:
    """
    Build the application around one immutable Settings object.

    Everything that depends on configuration (database engine, auth service,
    OAuth providers) is created here and kept on app.state.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Fancy Blog",
        description="CRUD blogging platform - users, posts, comments and tags",
        version=__version__,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.engine = create_app_engine(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    app.state.auth_service = AuthService(settings)
    app.state.oauth_providers = build_oauth_providers(settings)

    # --- Rate Limiting ---
    app.state.limiter = create_limiter(settings)

    register_exception_handlers(app)

    # --- Middleware ---
    allowed_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.auth.jwt_secret,  # Refresh session id and OAuth state
        session_cookie=settings.session_cookie,
    )

    # Include routers
    app.include_router(user_router, prefix="/api/user", tags=["user"])
    app.include_router(posts.router, prefix="/api/post", tags=["post"])
    app.include_router(comments.router, prefix="/api/comment", tags=["comment"])
    app.include_router(tags.router, prefix="/api/tag", tags=["tag"])

    @app.get("/api/health", tags=["system"])
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.utcnow().isoformat()
        }

    return app


app = create_app()
