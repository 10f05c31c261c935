from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Schema

from apps.core.pagination import PaginationOut
from .models import PostType


@dataclass(frozen=True)
class LikeResultDTO:
    liked: bool
    like_count: int


class AuthorOut(Schema):
    id: UUID
    full_name: str
    email: str
    avatar_url: Optional[str] = None


class CommentOut(Schema):
    id: UUID
    post_id: UUID
    content: str
    parent_comment_id: Optional[UUID] = None
    user: Optional[AuthorOut] = None
    likes_count: int = 0
    user_liked: bool = False
    created_at: datetime
    updated_at: datetime


class PostOut(Schema):
    id: UUID
    content: str
    post_type: str
    image_url: Optional[str] = None
    is_anonymous: bool
    user: Optional[AuthorOut] = None
    likes_count: int = 0
    comments_count: int = 0
    user_liked: bool = False
    comments: List[CommentOut] = []
    created_at: datetime
    updated_at: datetime


class PublicPostOut(Schema):
    """Landing page card: no comments and no contact details."""
    id: UUID
    content: str
    post_type: str
    image_url: Optional[str] = None
    is_anonymous: bool
    author_name: Optional[str] = None
    author_avatar_url: Optional[str] = None
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime


class PostListOut(Schema):
    data: List[PostOut]
    pagination: PaginationOut


class PostIn(Schema):
    content: str
    post_type: str = PostType.GENERAL
    image_url: Optional[str] = None
    is_anonymous: bool = False


class PostUpdate(Schema):
    content: Optional[str] = None
    post_type: Optional[str] = None
    image_url: Optional[str] = None
    is_anonymous: Optional[bool] = None


class CommentIn(Schema):
    content: str
    parent_comment_id: Optional[UUID] = None


class CommentUpdate(Schema):
    content: str


class LikeOut(Schema):
    success: bool = True
    liked: bool
    like_count: int
