"""
Community feed endpoints: posts, comments and likes.
"""
from typing import Optional
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import login_required
from apps.governance.audit_service import log_action, AuditAction
from .dtos import (
    PostOut, PostListOut, PostIn, PostUpdate, CommentOut, CommentIn, CommentUpdate, LikeOut,
)
from .models import Post, Comment
from . import services

router = Router(tags=["Community"])


def _get_post_or_404(request: HttpRequest, post_id: UUID) -> Post:
    post = services.get_post(request.user.org_id, post_id)
    if not post:
        raise HttpError(404, services.POST_NOT_FOUND_MESSAGE)
    return post


def _get_comment_or_404(post: Post, comment_id: UUID) -> Comment:
    comment = services.get_comment(post, comment_id)
    if not comment:
        raise HttpError(404, services.COMMENT_NOT_FOUND_MESSAGE)
    return comment


# =============================================================================
# Posts
# =============================================================================

@router.get("", response=PostListOut, auth=None)
@login_required
def list_posts(request: HttpRequest, post_type: Optional[str] = None, page: int = 1, limit: int = 10):
    """
    Community feed, newest first, with comments and like state for the caller.
    """
    posts, page_info = services.list_posts(
        request.user.org_id,
        viewer=request.user,
        post_type=post_type,
        page=page,
        limit=limit,
    )
    return {"data": posts, "pagination": page_info}


@router.post("", response={201: PostOut}, auth=None)
@login_required
def create_post(request: HttpRequest, payload: PostIn):
    try:
        post = services.create_post(
            request.user,
            payload.content,
            post_type=payload.post_type,
            image_url=payload.image_url,
            is_anonymous=payload.is_anonymous,
        )
    except ValueError as e:
        raise HttpError(400, str(e))
    return 201, services.serialize_post(_get_post_or_404(request, post.id), request.user)


@router.get("/{post_id}", response=PostOut, auth=None)
@login_required
def get_post(request: HttpRequest, post_id: UUID):
    return services.serialize_post(_get_post_or_404(request, post_id), request.user)


@router.put("/{post_id}", response=PostOut, auth=None)
@login_required
def update_post(request: HttpRequest, post_id: UUID, payload: PostUpdate):
    post = _get_post_or_404(request, post_id)
    try:
        services.update_post(post, request.user, payload.dict(exclude_unset=True))
    except PermissionError as e:
        raise HttpError(403, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return services.serialize_post(_get_post_or_404(request, post_id), request.user)


@router.delete("/{post_id}", response={204: None}, auth=None)
@login_required
def delete_post(request: HttpRequest, post_id: UUID):
    """Author or moderator. Removals by a moderator are audited."""
    user = request.user
    post = _get_post_or_404(request, post_id)
    author_id = post.author_id
    try:
        services.delete_post(post, user)
    except PermissionError as e:
        raise HttpError(403, str(e))

    if author_id != user.id:
        log_action(
            org_id=user.org_id,
            action=AuditAction.DELETE_POST,
            target_type="Post",
            target_id=post_id,
            target_label=str(post_id),
            performed_by=user,
            context={"author_id": str(author_id)},
        )
    return 204


@router.post("/{post_id}/like", response=LikeOut, auth=None)
@login_required
def like_post(request: HttpRequest, post_id: UUID):
    """Toggle the caller's like on a post."""
    post = _get_post_or_404(request, post_id)
    result = services.toggle_post_like(post.id, request.user)
    return {"liked": result.liked, "like_count": result.like_count}


# =============================================================================
# Comments
# =============================================================================

@router.get("/{post_id}/comments", response=dict, auth=None)
@login_required
def list_comments(request: HttpRequest, post_id: UUID):
    """
    Comments of a post, both flat (with parent_comment_id) and grouped into threads.
    """
    post = _get_post_or_404(request, post_id)
    comments = services.list_comments(post, request.user)
    return {
        "comments": [c.dict() for c in comments],
        "threads": services.build_comment_threads(comments),
    }


@router.post("/{post_id}/comments", response={201: CommentOut}, auth=None)
@login_required
def create_comment(request: HttpRequest, post_id: UUID, payload: CommentIn):
    post = _get_post_or_404(request, post_id)
    try:
        comment = services.create_comment(post, request.user, payload.content, payload.parent_comment_id)
    except ValueError as e:
        raise HttpError(400, str(e))
    return 201, services.serialize_comment(comment, request.user)


@router.put("/{post_id}/comments/{comment_id}", response=CommentOut, auth=None)
@login_required
def update_comment(request: HttpRequest, post_id: UUID, comment_id: UUID, payload: CommentUpdate):
    comment = _get_comment_or_404(_get_post_or_404(request, post_id), comment_id)
    try:
        services.update_comment(comment, request.user, payload.content)
    except PermissionError as e:
        raise HttpError(403, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return services.serialize_comment(comment, request.user)


@router.delete("/{post_id}/comments/{comment_id}", response={204: None}, auth=None)
@login_required
def delete_comment(request: HttpRequest, post_id: UUID, comment_id: UUID):
    comment = _get_comment_or_404(_get_post_or_404(request, post_id), comment_id)
    try:
        services.delete_comment(comment, request.user)
    except PermissionError as e:
        raise HttpError(403, str(e))
    return 204


@router.post("/{post_id}/comments/{comment_id}/like", response=LikeOut, auth=None)
@login_required
def like_comment(request: HttpRequest, post_id: UUID, comment_id: UUID):
    comment = _get_comment_or_404(_get_post_or_404(request, post_id), comment_id)
    result = services.toggle_comment_like(comment.id, request.user)
    return {"liked": result.liked, "like_count": result.like_count}
