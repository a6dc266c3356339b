"""
Fancy Blog - CRUD API for posts.

Anyone can list and read published posts; admins also see drafts and are
the only ones who can create, edit and delete posts.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_
from typing import List, Optional
from datetime import date, datetime, time
import logging

from ..config import Settings
from ..database import get_db
from ..errors import InvalidInput, NotFound
from ..models import Post, Tag
from ..schemas import (
    PostCreate, PostUpdate, PostCreated, PostSummary, PostResponse,
    FROM_MSG, TAGS_MSG, TAGS_PATTERN, TO_MSG, split_tags,
)
from ..auth.dependencies import AuthContext, get_auth_context, get_settings, require_auth
from ..auth.models import User
from ..query_helpers import (
    live_query, get_live_or_404, page_size, cut_string, cursor_param, limit_param,
)
from ..rate_limit import RateLimit, RATE_LIMIT_GENERAL

logger = logging.getLogger("fancyblog.posts")
router = APIRouter()


def _tags_filter(tags: Optional[str] = None) -> List[str]:
    """Query parameter: comma separated tag names."""
    if tags is not None and not TAGS_PATTERN.match(tags.strip()):
        raise InvalidInput(TAGS_MSG)
    return split_tags(tags)


def _parse_date(value: Optional[str], message: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidInput(message)


def _from_filter(from_value: Optional[str] = Query(None, alias="from")) -> Optional[date]:
    return _parse_date(from_value, FROM_MSG)


def _to_filter(to_value: Optional[str] = Query(None, alias="to")) -> Optional[date]:
    return _parse_date(to_value, TO_MSG)


@router.get("", response_model=List[PostSummary])
def list_posts(
    cursor: Optional[int] = Depends(cursor_param),
    limit: Optional[int] = Depends(limit_param),
    tags: List[str] = Depends(_tags_filter),
    from_date: Optional[date] = Depends(_from_filter),
    to_date: Optional[date] = Depends(_to_filter),
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    List posts, newest update first, with cursor pagination.

    - cursor: id of the last post of the previous page
    - limit: page size, capped at the configured maximum
    - tags: only posts carrying at least one of these tags
    - from / to: updated date range; a missing bound means epoch / now
    """
    query = live_query(db, Post)

    # Drafts are visible to admins only
    if not (context.user and context.user.is_admin):
        query = query.filter(Post.published == True)  # noqa: E712

    if tags:
        query = query.filter(Post.tags.any(Tag.tag.in_(tags)))

    if from_date or to_date:
        start = datetime.combine(from_date, time.min) if from_date else datetime(1970, 1, 1)
        end = datetime.combine(to_date, time.max) if to_date else datetime.utcnow()
        query = query.filter(Post.updated_at >= start, Post.updated_at <= end)

    if cursor is not None:
        anchor = db.query(Post).filter(Post.id == cursor).first()
        if not anchor:
            return []
        query = query.filter(
            or_(
                Post.updated_at < anchor.updated_at,
                and_(Post.updated_at == anchor.updated_at, Post.id < anchor.id)
            )
        )

    posts = query.order_by(
        Post.updated_at.desc(), Post.id.desc()
    ).limit(page_size(limit, settings)).all()

    return [_post_summary(post, settings) for post in posts]


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: int,
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    """Get a single post with its full content."""
    post = get_live_or_404(db, Post, post_id, "Post")
    if not post.published and not (context.user and context.user.is_admin):
        raise NotFound("Post not found")
    return _post_response(post)


@router.post(
    "", response_model=PostCreated, status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def create_post(
    response: Response,
    post_data: PostCreate,
    admin: User = Depends(require_auth(admin_only=True)),
    db: Session = Depends(get_db),
):
    """Create a new post. Tags that do not exist yet are created."""
    post = Post(
        title=post_data.title,
        content=post_data.content,
        author_id=admin.id,
        tags=_resolve_tags(db, split_tags(post_data.tags)),
    )
    db.add(post)
    db.commit()
    db.refresh(post)

    logger.info(f"Post {post.id} created by user {admin.id}")
    response.headers["Location"] = f"/api/post/{post.id}"
    return PostCreated(id=post.id)


@router.put(
    "/{post_id}", response_model=PostResponse,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def update_post(
    post_id: int,
    post_data: PostUpdate,
    admin: User = Depends(require_auth(admin_only=True)),
    db: Session = Depends(get_db),
):
    """
    Update a post.

    Only provided fields are updated; a tags string replaces the whole tag set.
    """
    post = get_live_or_404(db, Post, post_id, "Post")

    if post_data.title is not None:
        post.title = post_data.title
    if post_data.content is not None:
        post.content = post_data.content
    if post_data.published is not None:
        post.published = post_data.published
    if post_data.tags is not None:
        post.tags = _resolve_tags(db, split_tags(post_data.tags))

    post.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(post)

    logger.info(f"Post {post.id} updated by user {admin.id}")
    return _post_response(post)


@router.delete(
    "/{post_id}", status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def delete_post(
    post_id: int,
    admin: User = Depends(require_auth(admin_only=True)),
    db: Session = Depends(get_db),
):
    """Soft delete a post."""
    post = get_live_or_404(db, Post, post_id, "Post")
    post.is_deleted = True
    db.commit()

    logger.info(f"Post {post.id} deleted by user {admin.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _resolve_tags(db: Session, names: List[str]) -> List[Tag]:
    """Connect-or-create: existing Tag rows for known names, new ones for the rest."""
    if not names:
        return []
    existing = {t.tag: t for t in db.query(Tag).filter(Tag.tag.in_(names)).all()}
    return [existing.get(name) or Tag(tag=name) for name in names]


def _post_summary(post: Post, settings: Settings) -> PostSummary:
    return PostSummary(
        id=post.id,
        title=post.title,
        abstract=cut_string(post.content, settings.max_abstract_length),
        published=post.published,
        tags=[t.tag for t in post.tags],
        updated_at=post.updated_at,
        author_id=post.author_id,
        author_name=post.author.username,
    )


def _post_response(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        published=post.published,
        tags=[t.tag for t in post.tags],
        updated_at=post.updated_at,
        author_id=post.author_id,
        author_name=post.author.username,
    )
