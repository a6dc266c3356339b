"""
Fancy Blog - Pydantic schemas for request/response validation.

Defines the post, comment and tag payloads. Fields are snake_case in Python
and camelCase on the wire (updatedAt, authorId, postId).
"""
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List
import re

TAGS_PATTERN = re.compile(r"^[A-Za-z0-9, ]*$")

TITLE_MSG = "Title must be between 1 and 255 characters"
CONTENT_MSG = "Content must be at least 1 character"
TAGS_MSG = "Tags must be alphanumeric"
PUBLISHED_MSG = "Published must be a boolean"
COMMENT_MSG = "Comment must be between 1 and 1024 characters"
CURSOR_MSG = "Cursor must be an integer"
LIMIT_MSG = "Limit must be an integer greater than 0"
FROM_MSG = "From must be a date"
TO_MSG = "To must be a date"


# --- Helper validators ---

def validate_title(value) -> str:
    if not isinstance(value, str) or not 1 <= len(value.strip()) <= 255:
        raise ValueError(TITLE_MSG)
    return value.strip()


def validate_content(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(CONTENT_MSG)
    return value.strip()


def validate_tags(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not TAGS_PATTERN.match(value.strip()):
        raise ValueError(TAGS_MSG)
    return value.strip()


def split_tags(value: Optional[str]) -> List[str]:
    """Turn "a, b,,c" into ["a", "b", "c"], keeping first-seen order."""
    if not value:
        return []
    tags = []
    for tag in (t.strip() for t in value.split(",")):
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- Post Schemas ---

class PostCreate(CamelModel):
    title: Optional[str] = Field(None, validate_default=True)
    content: Optional[str] = Field(None, validate_default=True)
    tags: Optional[str] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return validate_title(v)

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, v):
        return validate_content(v)

    @field_validator("tags", mode="before")
    @classmethod
    def check_tags(cls, v):
        return validate_tags(v)


class PostUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[str] = None
    published: Optional[bool] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return None if v is None else validate_title(v)

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, v):
        return None if v is None else validate_content(v)

    @field_validator("tags", mode="before")
    @classmethod
    def check_tags(cls, v):
        return validate_tags(v)

    @field_validator("published", mode="before")
    @classmethod
    def check_published(cls, v):
        if v is not None and not isinstance(v, bool):
            raise ValueError(PUBLISHED_MSG)
        return v


class PostCreated(CamelModel):
    id: int


class PostSummary(CamelModel):
    """A post in a listing: abstract instead of full content."""
    id: int
    title: str
    abstract: str
    published: bool
    tags: List[str]
    updated_at: datetime
    author_id: int
    author_name: str


class PostResponse(CamelModel):
    id: int
    title: str
    content: str
    published: bool
    tags: List[str]
    updated_at: datetime
    author_id: int
    author_name: str


# --- Comment Schemas ---

class CommentWrite(CamelModel):
    content: Optional[str] = Field(None, validate_default=True)

    @field_validator("content", mode="before")
    @classmethod
    def check_content(cls, v):
        if not isinstance(v, str) or not 1 <= len(v.strip()) <= 1024:
            raise ValueError(COMMENT_MSG)
        return v.strip()


class CommentResponse(CamelModel):
    id: int
    post_id: int
    author_id: int
    author_name: str
    content: str
    updated_at: datetime


# --- Tag Schemas ---

class TagCount(CamelModel):
    tag: str
    count: int
