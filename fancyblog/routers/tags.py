"""
Fancy Blog - Tags API

Tag cloud over published posts.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List

from ..database import get_db
from ..models import Post, Tag, post_tags
from ..schemas import TagCount

router = APIRouter()


@router.get("", response_model=List[TagCount])
def list_tags(db: Session = Depends(get_db)):
    """Tags with the number of published posts using them, most used first."""
    count = func.count(Post.id).label("count")
    rows = db.query(Tag.tag, count).join(
        post_tags, post_tags.c.tag_id == Tag.id
    ).join(
        Post, Post.id == post_tags.c.post_id
    ).filter(
        Post.is_deleted == False,  # noqa: E712
        Post.published == True,  # noqa: E712
    ).group_by(Tag.id, Tag.tag).order_by(count.desc(), Tag.tag.asc()).all()

    return [TagCount(tag=tag, count=n) for tag, n in rows if n > 0]
