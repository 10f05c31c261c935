"""
Community feed services.

Posts, comments and likes for residents of one organization. Authors and
moderators (COMMUNITY_MODERATE) may edit or remove content.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import Count, Prefetch

from apps.core.pagination import PageInfo, paginate
from apps.identity.permissions import Permissions, user_has_permission
from .models import Post, PostType, Comment
from .dtos import AuthorOut, CommentOut, PostOut, PublicPostOut, LikeResultDTO

logger = logging.getLogger(__name__)

POST_MAX_LENGTH = 2000
COMMENT_MAX_LENGTH = 500

POST_NOT_FOUND_MESSAGE = "Không tìm thấy bài đăng"
COMMENT_NOT_FOUND_MESSAGE = "Không tìm thấy bình luận"


# =============================================================================
# Validation & Serialization
# =============================================================================

def is_moderator(user) -> bool:
    return user_has_permission(user, Permissions.COMMUNITY_MODERATE)


def clean_post_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise ValueError("Nội dung bài đăng không được để trống")
    if len(content) > POST_MAX_LENGTH:
        raise ValueError(f"Nội dung bài đăng không được vượt quá {POST_MAX_LENGTH} ký tự")
    return content


def clean_comment_content(content: Optional[str]) -> str:
    content = (content or "").strip()
    if not content:
        raise ValueError("Nội dung bình luận không được để trống")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValueError(f"Nội dung bình luận không được vượt quá {COMMENT_MAX_LENGTH} ký tự")
    return content


def validate_post_type(post_type: Optional[str]) -> str:
    if post_type not in PostType.values:
        raise ValueError("Loại bài đăng không hợp lệ")
    return post_type


def _author_out(user) -> AuthorOut:
    return AuthorOut(
        id=user.id,
        full_name=user.full_name,
        email=user.email,
        avatar_url=user.avatar_url,
    )


def serialize_comment(comment: Comment, viewer=None) -> CommentOut:
    like_ids = {u.id for u in comment.likes.all()}
    return CommentOut(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        parent_comment_id=comment.parent_id,
        user=_author_out(comment.author),
        likes_count=len(like_ids),
        user_liked=bool(viewer and viewer.id in like_ids),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def serialize_post(post: Post, viewer=None) -> PostOut:
    """
    Post with its comments as seen by the viewer.

    The author of an anonymous post is only shown to the author and moderators.
    """
    like_ids = {u.id for u in post.likes.all()}
    comments = [serialize_comment(c, viewer) for c in post.comments.all()]

    show_author = not post.is_anonymous or (
        viewer is not None and (viewer.id == post.author_id or is_moderator(viewer))
    )

    return PostOut(
        id=post.id,
        content=post.content,
        post_type=post.post_type,
        image_url=post.image_url,
        is_anonymous=post.is_anonymous,
        user=_author_out(post.author) if show_author else None,
        likes_count=len(like_ids),
        comments_count=len(comments),
        user_liked=bool(viewer and viewer.id in like_ids),
        comments=comments,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def build_comment_threads(comments: Iterable[CommentOut]) -> List[Dict]:
    """
    Group flat comments into top-level threads in one pass over the list.

    Each node is the comment's dict with a `replies` list. Replies whose
    parent is missing from the input are treated as top-level.
    """
    comments = list(comments)
    nodes = {c.id: {**c.dict(), "replies": []} for c in comments}

    threads = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_comment_id)
        if parent is not None:
            parent["replies"].append(node)
        else:
            threads.append(node)
    return threads


def _post_queryset():
    return (
        Post.objects
        .select_related('author')
        .prefetch_related(
            'likes',
            Prefetch('comments', queryset=Comment.objects.select_related('author').prefetch_related('likes')),
        )
    )


# =============================================================================
# Posts
# =============================================================================

def list_posts(
    org_id: UUID,
    viewer=None,
    post_type: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[PostOut], PageInfo]:
    """Posts of the organization, newest first."""
    queryset = _post_queryset().filter(org_id=org_id)
    if post_type:
        queryset = queryset.filter(post_type=post_type)

    posts, page_info = paginate(queryset.order_by('-created_at'), page, limit)
    return [serialize_post(p, viewer) for p in posts], page_info


def serialize_public_post(post: Post) -> PublicPostOut:
    author = None if post.is_anonymous else post.author
    return PublicPostOut(
        id=post.id,
        content=post.content,
        post_type=post.post_type,
        image_url=post.image_url,
        is_anonymous=post.is_anonymous,
        author_name=author.full_name if author else None,
        author_avatar_url=author.avatar_url if author else None,
        likes_count=post.like_count,
        comments_count=post.comment_count,
        created_at=post.created_at,
    )


def list_recent_posts(org_id: UUID, limit: int = 5) -> List[PublicPostOut]:
    """Latest announcements, events and general posts of one organization."""
    queryset = (
        Post.objects
        .filter(
            org_id=org_id,
            post_type__in=[PostType.ANNOUNCEMENT, PostType.EVENT, PostType.GENERAL],
        )
        .select_related('author')
        .annotate(like_count=Count('likes', distinct=True), comment_count=Count('comments', distinct=True))
        .order_by('-created_at')
    )
    return [serialize_public_post(p) for p in queryset[:limit]]


def get_post(org_id: UUID, post_id: UUID) -> Optional[Post]:
    try:
        return _post_queryset().get(org_id=org_id, id=post_id)
    except Post.DoesNotExist:
        return None


def create_post(
    author,
    content: str,
    post_type: str = PostType.GENERAL,
    image_url: Optional[str] = None,
    is_anonymous: bool = False,
) -> Post:
    """
    Raises:
        ValueError: Empty/too long content or unknown post type
    """
    post = Post.objects.create(
        org_id=author.org_id,
        author=author,
        content=clean_post_content(content),
        post_type=validate_post_type(post_type),
        image_url=image_url or None,
        is_anonymous=bool(is_anonymous),
    )
    logger.info(f"Post {post.id} created by {author.id}")
    return post


def update_post(post: Post, user, data: dict) -> Post:
    """
    Raises:
        PermissionError: Caller is neither author nor moderator
        ValueError: Invalid content or post type
    """
    if post.author_id != user.id and not is_moderator(user):
        raise PermissionError("Bạn không có quyền sửa bài đăng này")

    data = {k: v for k, v in data.items() if v is not None}
    if 'content' in data:
        post.content = clean_post_content(data['content'])
    if 'post_type' in data:
        post.post_type = validate_post_type(data['post_type'])
    if 'image_url' in data:
        post.image_url = data['image_url'] or None
    if 'is_anonymous' in data:
        post.is_anonymous = data['is_anonymous']

    post.save()
    return post


def delete_post(post: Post, user) -> None:
    """
    Raises:
        PermissionError: Caller is neither author nor moderator
    """
    if post.author_id != user.id and not is_moderator(user):
        raise PermissionError("Bạn không có quyền xóa bài đăng này")
    post.delete()


def toggle_post_like(post_id: UUID, user) -> LikeResultDTO:
    """Like the post, or remove the like when the user already likes it."""
    with transaction.atomic():
        post = Post.objects.select_for_update().get(id=post_id)
        if post.likes.filter(id=user.id).exists():
            post.likes.remove(user)
            liked = False
        else:
            post.likes.add(user)
            liked = True
        count = post.likes.count()

    return LikeResultDTO(liked=liked, like_count=count)


# =============================================================================
# Comments
# =============================================================================

def list_comments(post: Post, viewer=None) -> List[CommentOut]:
    comments = post.comments.select_related('author').prefetch_related('likes').order_by('created_at')
    return [serialize_comment(c, viewer) for c in comments]


def get_comment(post: Post, comment_id: UUID) -> Optional[Comment]:
    try:
        return Comment.objects.select_related('author').get(post=post, id=comment_id)
    except Comment.DoesNotExist:
        return None


def create_comment(post: Post, author, content: str, parent_comment_id: Optional[UUID] = None) -> Comment:
    """
    Raises:
        ValueError: Empty/too long content, or a parent comment from another post
    """
    content = clean_comment_content(content)

    parent = None
    if parent_comment_id:
        parent = get_comment(post, parent_comment_id)
        if parent is None:
            raise ValueError(COMMENT_NOT_FOUND_MESSAGE)

    return Comment.objects.create(post=post, author=author, content=content, parent=parent)


def update_comment(comment: Comment, user, content: str) -> Comment:
    """
    Raises:
        PermissionError: Caller is neither author nor moderator
        ValueError: Empty/too long content
    """
    if comment.author_id != user.id and not is_moderator(user):
        raise PermissionError("Bạn không có quyền sửa bình luận này")

    comment.content = clean_comment_content(content)
    comment.save(update_fields=['content', 'updated_at'])
    return comment


def delete_comment(comment: Comment, user) -> None:
    """
    Raises:
        PermissionError: Caller is neither author nor moderator
    """
    if comment.author_id != user.id and not is_moderator(user):
        raise PermissionError("Bạn không có quyền xóa bình luận này")
    comment.delete()


def toggle_comment_like(comment_id: UUID, user) -> LikeResultDTO:
    with transaction.atomic():
        comment = Comment.objects.select_for_update().get(id=comment_id)
        if comment.likes.filter(id=user.id).exists():
            comment.likes.remove(user)
            liked = False
        else:
            comment.likes.add(user)
            liked = True
        count = comment.likes.count()

    return LikeResultDTO(liked=liked, like_count=count)
