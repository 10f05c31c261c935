"""
Identity API endpoints with JWT authentication.

Provides register, login, logout, token refresh, the signed-in user's
profile and admin user management. JWT tokens travel in httpOnly cookies.
"""
from dataclasses import asdict
from typing import List, Optional
from uuid import UUID
from ninja import Router, Schema
from django.conf import settings
from django.db import transaction
from django.contrib.auth.signals import user_logged_in
from django.http import HttpRequest, HttpResponse
from ninja.errors import HttpError

from apps.governance.audit_service import log_action, AuditAction
from .models import User, UserRole, UserStatus
from .dtos import (
    UserDTO, UserCreate, UserUpdate, RegisterIn, ProfileUpdate, ChangePasswordIn,
)
from .services import (
    get_user_dto,
    create_user,
    list_users,
    update_user,
    delete_user,
    change_password,
)
from .permissions import Permissions
from .decorators import get_current_user, require_auth, has_permission, login_required
from .jwt_auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    create_token_pair,
    create_access_token,
    get_user_id_from_token,
    get_access_token_cookie_settings,
    get_refresh_token_cookie_settings,
)

auth_router = Router(tags=["Auth"])
me_router = Router(tags=["Me"])
users_router = Router(tags=["Users"])

__all__ = ['auth_router', 'me_router', 'users_router', 'get_current_user', 'require_auth']


# =============================================================================
# Schemas
# =============================================================================

class LoginSchema(Schema):
    email: str
    password: str


class TokenResponse(Schema):
    success: bool
    user: Optional[UserDTO] = None
    message: Optional[str] = None


class AdminUserCreate(UserCreate):
    apartment_id: Optional[UUID] = None


class MessageOut(Schema):
    message: str


# =============================================================================
# Helper Functions
# =============================================================================

def is_production() -> bool:
    return not settings.DEBUG


def _token_response(user: User, status: int = 200) -> HttpResponse:
    """Serialize the user and attach a fresh access/refresh cookie pair."""
    access_token, refresh_token = create_token_pair(user.id, user.org_id, user.role)

    response = HttpResponse(
        TokenResponse(success=True, user=get_user_dto(user.id)).model_dump_json(),
        content_type='application/json',
        status=status,
    )

    prod = is_production()
    response.set_cookie(ACCESS_COOKIE, access_token, **get_access_token_cookie_settings(prod))
    response.set_cookie(REFRESH_COOKIE, refresh_token, **get_refresh_token_cookie_settings(prod))
    return response


def _get_org_user_or_404(request: HttpRequest, user_id: UUID) -> UserDTO:
    # Ensure target user belongs to same org
    target_user = get_user_dto(user_id)
    if not target_user or target_user.org_id != request.user.org_id:
        raise HttpError(404, "Không tìm thấy người dùng")
    return target_user


# =============================================================================
# Auth Endpoints
# =============================================================================

@auth_router.post("/register", auth=None)
def register(request: HttpRequest, payload: RegisterIn):
    """
    **Public Endpoint**: self-registration as a resident of an organization.

    Sets the JWT cookies so the new resident is signed in immediately.
    """
    from apps.organizations.services import organization_exists

    if not organization_exists(payload.org_id):
        raise HttpError(400, "Tổ chức không tồn tại")

    try:
        user_dto = create_user(
            payload.org_id,
            UserCreate(
                email=payload.email,
                password=payload.password,
                full_name=payload.full_name,
                phone=payload.phone,
                role=UserRole.RESIDENT,
            ),
        )
    except ValueError as e:
        raise HttpError(400, str(e))

    return _token_response(User.objects.get(id=user_dto.id), status=201)


@auth_router.post("/login", response=TokenResponse, auth=None)
def login_user(request: HttpRequest, payload: LoginSchema):
    """
    Authenticate by email and password and set JWT tokens in httpOnly cookies.
    """
    email = payload.email.strip().lower()
    user = User.objects.filter(email__iexact=email).first()

    if user is None or not user.check_password(payload.password):
        raise HttpError(401, "Email hoặc mật khẩu không đúng")

    if user.status != UserStatus.ACTIVE:
        raise HttpError(403, "Tài khoản đã bị vô hiệu hóa")

    user_logged_in.send(sender=user.__class__, request=request, user=user)
    return _token_response(user)


@auth_router.post("/logout", response=TokenResponse, auth=None)
def logout_user(request: HttpRequest):
    """Clear authentication cookies."""
    response = HttpResponse(
        TokenResponse(success=True, message="Đăng xuất thành công").model_dump_json(),
        content_type='application/json'
    )

    response.delete_cookie(ACCESS_COOKIE, path='/')
    response.delete_cookie(REFRESH_COOKIE, path='/')

    return response


@auth_router.post("/refresh", response=TokenResponse, auth=None)
def refresh_token(request: HttpRequest):
    """
    Refresh the access token using the refresh token cookie.
    """
    refresh_token_value = request.COOKIES.get(REFRESH_COOKIE)
    if not refresh_token_value:
        raise HttpError(401, "Không có refresh token")

    user_id = get_user_id_from_token(refresh_token_value, token_type='refresh')
    if not user_id:
        raise HttpError(401, "Refresh token không hợp lệ")

    try:
        user = User.objects.get(id=user_id, is_active=True)
    except User.DoesNotExist:
        raise HttpError(401, "Refresh token không hợp lệ")

    new_access_token = create_access_token(user.id, user.org_id, user.role)

    response = HttpResponse(
        TokenResponse(success=True, user=get_user_dto(user.id)).model_dump_json(),
        content_type='application/json'
    )
    response.set_cookie(ACCESS_COOKIE, new_access_token, **get_access_token_cookie_settings(is_production()))

    return response


# =============================================================================
# Me Endpoints
# =============================================================================

@me_router.get("", response=UserDTO, auth=None)
@login_required
def get_me(request: HttpRequest):
    """Current authenticated user's profile."""
    user_dto = get_user_dto(request.user.id)
    if not user_dto:
        raise HttpError(404, "Không tìm thấy người dùng")
    return user_dto


@me_router.patch("", response=UserDTO, auth=None)
@login_required
def update_me(request: HttpRequest, payload: ProfileUpdate):
    return update_user(request.user.id, payload.dict(exclude_unset=True))


@me_router.post("/change-password", response=MessageOut, auth=None)
@login_required
def change_my_password(request: HttpRequest, payload: ChangePasswordIn):
    try:
        change_password(request.user, payload.current_password, payload.new_password)
    except ValueError as e:
        raise HttpError(400, str(e))
    return {"message": "Đổi mật khẩu thành công"}


@me_router.get("/apartment", auth=None)
@login_required
def get_my_apartment(request: HttpRequest):
    """The resident's apartment together with their lease terms."""
    from apps.apartments.services import get_apartment_dto
    from .services import get_lease_dto

    user = request.user
    if not user.apartment_id:
        raise HttpError(404, "Bạn chưa được gán căn hộ")

    apartment = get_apartment_dto(user.apartment_id)
    if not apartment:
        raise HttpError(404, "Không tìm thấy căn hộ")

    return {
        "apartment": asdict(apartment),
        "lease": asdict(get_lease_dto(user.id)),
    }


# =============================================================================
# User Management Endpoints
# =============================================================================

@users_router.get("", response=List[UserDTO], auth=None)
@has_permission(Permissions.IDENTITY_VIEW_USER)
def list_org_users(
    request: HttpRequest,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
):
    """List users in the organization."""
    return list_users(request.user.org_id, role=role, status=status, search=search)


@users_router.post("", response={201: UserDTO}, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def create_org_user(request: HttpRequest, payload: AdminUserCreate):
    """
    Create a user in the organization.

    When apartment_id is given the new user is assigned to it as a resident,
    which marks the apartment occupied.
    """
    from apps.apartments.resident_service import assign_resident

    data = payload.dict(exclude={'apartment_id'})
    try:
        with transaction.atomic():
            user_dto = create_user(request.user.org_id, UserCreate(**data))
            if payload.apartment_id:
                assign_resident(
                    org_id=request.user.org_id,
                    user_id=user_dto.id,
                    apartment_id=payload.apartment_id,
                )
                user_dto = get_user_dto(user_dto.id)
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.CREATE_USER,
        target_type="User",
        target_id=user_dto.id,
        target_label=user_dto.email,
        performed_by=request.user,
        context={"role": user_dto.role},
    )
    return 201, user_dto


@users_router.get("/{user_id}", response=UserDTO, auth=None)
@has_permission(Permissions.IDENTITY_VIEW_USER)
def get_org_user(request: HttpRequest, user_id: UUID):
    return _get_org_user_or_404(request, user_id)


@users_router.put("/{user_id}", response=UserDTO, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def update_org_user(request: HttpRequest, user_id: UUID, payload: UserUpdate):
    target = _get_org_user_or_404(request, user_id)

    try:
        updated = update_user(user_id, payload.dict(exclude_unset=True))
    except ValueError as e:
        raise HttpError(400, str(e))
    if not updated:
        raise HttpError(404, "Không tìm thấy người dùng")

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_USER,
        target_type="User",
        target_id=user_id,
        target_label=target.email,
        performed_by=request.user,
        context=payload.dict(exclude_unset=True),
    )
    return updated


@users_router.delete("/{user_id}", response={204: None}, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def delete_org_user(request: HttpRequest, user_id: UUID):
    """
    Delete a user from the organization.

    A resident's apartment returns to available.
    """
    if user_id == request.user.id:
        raise HttpError(400, "Không thể xóa tài khoản của chính bạn")

    target = _get_org_user_or_404(request, user_id)

    if not delete_user(user_id):
        raise HttpError(404, "Không tìm thấy người dùng")

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.DELETE_USER,
        target_type="User",
        target_id=user_id,
        target_label=target.email,
        performed_by=request.user,
    )
    return 204
