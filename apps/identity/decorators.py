from functools import wraps
from typing import Callable, Optional
from ninja.errors import HttpError
from django.http import HttpRequest

from .models import User
from .jwt_auth import ACCESS_COOKIE, get_user_id_from_token
from .permissions import get_user_permissions

UNAUTHENTICATED_MESSAGE = "Người dùng chưa đăng nhập"
FORBIDDEN_MESSAGE = "Không có quyền truy cập"


def get_current_user(request: HttpRequest) -> Optional[User]:
    """
    Resolve the caller from the Django session, then the JWT access cookie.

    Returns an active User, or None.
    """
    session_user = getattr(request, 'user', None)
    if session_user is not None and session_user.is_authenticated:
        return session_user if session_user.is_active else None

    access_token = request.COOKIES.get(ACCESS_COOKIE)
    if not access_token:
        return None

    user_id = get_user_id_from_token(access_token)
    if not user_id:
        return None

    try:
        return User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        return None


def require_auth(request: HttpRequest) -> User:
    """
    Require authentication. Raises 401 if not authenticated.

    Binds the resolved user to request.user so views can read it directly.
    """
    user = get_current_user(request)
    if not user:
        raise HttpError(401, UNAUTHENTICATED_MESSAGE)
    request.user = user
    return user


def require_permission(request: HttpRequest, permission: str) -> User:
    user = require_auth(request)
    if permission not in get_user_permissions(user):
        raise HttpError(403, FORBIDDEN_MESSAGE)
    return user


def has_permission(required_perm: str):
    """
    Decorator to enforce a specific permission on a Django Ninja endpoint.

    Usage:
        @router.get("/some-path", auth=None)
        @has_permission(Permissions.SOME_PERM)
        def my_view(request):
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            require_permission(request, required_perm)
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


def login_required(view_func: Callable):
    """Decorator form of require_auth for endpoints open to any signed-in user."""
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        require_auth(request)
        return view_func(request, *args, **kwargs)
    return wrapper
