"""
Reusable query helpers for soft-deleted records and pagination.

These functions eliminate repetitive is_deleted filtering and limit
clamping across routers. cursor_param and limit_param are query-string
dependencies that reject bad values with the messages clients display.
"""
from typing import Optional

from sqlalchemy.orm import Session

from .config import Settings
from .errors import InvalidInput, NotFound
from .schemas import CURSOR_MSG, LIMIT_MSG


def live_query(db: Session, model):
    """Return a query over records that are not soft deleted."""
    return db.query(model).filter(model.is_deleted == False)  # noqa: E712


def get_live_or_404(db: Session, model, record_id: int, label: str = "Record"):
    """Fetch a non-deleted record by id, or raise 404."""
    record = live_query(db, model).filter(model.id == record_id).first()
    if not record:
        raise NotFound(f"{label} not found")
    return record


def _to_int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except ValueError:
        return None


def cursor_param(cursor: Optional[str] = None) -> Optional[int]:
    """Query parameter: id of the last record of the previous page."""
    if cursor is None:
        return None
    parsed = _to_int(cursor)
    if parsed is None:
        raise InvalidInput(CURSOR_MSG)
    return parsed


def limit_param(limit: Optional[str] = None) -> Optional[int]:
    """Query parameter: requested page size, at least 1."""
    if limit is None:
        return None
    parsed = _to_int(limit)
    if parsed is None or parsed < 1:
        raise InvalidInput(LIMIT_MSG)
    return parsed


def page_size(limit: Optional[int], settings: Settings) -> int:
    """Clamp a requested page size to the configured maximum."""
    if not limit or limit > settings.max_page_size:
        return settings.max_page_size
    return limit


def cut_string(text: str, length: int) -> str:
    """Shorten text to at most `length` characters, ending in '...' when cut."""
    return text[:length - 3] + "..." if len(text) > length else text
