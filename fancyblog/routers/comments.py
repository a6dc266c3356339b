"""
Fancy Blog - Comments API

Comments hang off a post. Reading is public; writing needs a signed-in user,
and only the author may edit a comment. Authors and admins may delete it.
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import logging

from ..config import Settings
from ..database import get_db
from ..errors import NotFound
from ..models import Comment, Post
from ..schemas import CommentWrite, CommentResponse
from ..auth.dependencies import AuthContext, get_auth_context, get_settings, require_auth
from ..auth.models import User
from ..query_helpers import live_query, get_live_or_404, page_size, cursor_param, limit_param
from ..rate_limit import RateLimit, RATE_LIMIT_GENERAL

logger = logging.getLogger("fancyblog.comments")
router = APIRouter()


@router.get("", response_model=List[CommentResponse])
def list_comments(
    post_id: int = Query(..., alias="postId"),
    cursor: Optional[int] = Depends(cursor_param),
    limit: Optional[int] = Depends(limit_param),
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """List comments of a post, newest first. The cursor is the last seen comment id."""
    post = live_query(db, Post).filter(Post.id == post_id).first()
    if not post or not _visible(post, context.user):
        return []

    query = live_query(db, Comment).filter(Comment.post_id == post_id)
    if cursor is not None:
        query = query.filter(Comment.id < cursor)

    comments = query.order_by(Comment.id.desc()).limit(page_size(limit, settings)).all()
    return [_comment_response(c) for c in comments]


@router.post(
    "", response_model=CommentResponse, status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def create_comment(
    response: Response,
    comment_data: CommentWrite,
    post_id: int = Query(..., alias="postId"),
    user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
):
    """Comment on a post."""
    post = get_live_or_404(db, Post, post_id, "Post")
    if not _visible(post, user):
        raise NotFound("Post not found")

    comment = Comment(post_id=post.id, author_id=user.id, content=comment_data.content)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    logger.info(f"Comment {comment.id} added to post {post.id} by user {user.id}")
    response.headers["Location"] = f"/api/comment?postId={post.id}"
    return _comment_response(comment)


@router.put(
    "/{comment_id}", response_model=CommentResponse,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def update_comment(
    comment_id: int,
    comment_data: CommentWrite,
    user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
):
    """Edit a comment. Comments of other users look missing."""
    comment = get_live_or_404(db, Comment, comment_id, "Comment")
    if comment.author_id != user.id:
        raise NotFound("Comment not found")

    comment.content = comment_data.content
    comment.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(comment)
    return _comment_response(comment)


@router.delete(
    "/{comment_id}", status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(RateLimit(RATE_LIMIT_GENERAL))],
)
def delete_comment(
    comment_id: int,
    user: User = Depends(require_auth()),
    db: Session = Depends(get_db),
):
    comment = get_live_or_404(db, Comment, comment_id, "Comment")
    if comment.author_id != user.id and not user.is_admin:
        raise NotFound("Comment not found")

    comment.is_deleted = True
    db.commit()

    logger.info(f"Comment {comment.id} deleted by user {user.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _visible(post: Post, user: Optional[User]) -> bool:
    """Drafts behave as missing for everyone but admins."""
    return post.published or bool(user and user.is_admin)


def _comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        author_id=comment.author_id,
        author_name=comment.author.username,
        content=comment.content,
        updated_at=comment.updated_at,
    )
