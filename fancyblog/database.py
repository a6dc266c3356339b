"""
Database connection and session management.

Supports both SQLite (local development and tests) and PostgreSQL (hosted deployment).
The engine and session factory are built per application in create_app() and
kept on app.state, so tests can point each app at its own database.
"""
import logging
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import Settings

logger = logging.getLogger("fancyblog.database")

Base = declarative_base()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_app_engine(settings: Settings):
    """
    Create a SQLAlchemy engine appropriate for the database backend.

    SQLite: WAL mode, busy_timeout, foreign keys, check_same_thread=False
    PostgreSQL: connection pooling with pre-ping
    """
    url = settings.database_url

    if _is_sqlite(url):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        logger.info("Created SQLite engine with WAL mode")
    else:
        engine = create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle,
        )
        logger.info("Created PostgreSQL engine with connection pooling")

    return engine


def create_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """FastAPI dependency that yields a database session bound to the current app."""
    db = request.app.state.session_factory()
    try:
        yield db
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Rolled back session after database error: %s", exc)
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_resilient_session(session_factory):
    """
    Context manager for database sessions outside of FastAPI endpoints.

    Usage:
        with get_resilient_session(session_factory) as db:
            db.query(...)
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Resilient session rolled back after database error: %s", exc)
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine):
    """
    Create all tables from model metadata.

    Intended for local development and tests. In production,
    use Alembic migrations instead: `alembic upgrade head`
    """
    # Import models so Base.metadata knows about every table
    from . import models  # noqa: F401
    from .auth import models as auth_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
