"""Services for Identity app."""
import logging
from typing import List, Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Q

from .models import User, UserRole, UserStatus
from .dtos import UserDTO, UserCreate, LeaseDTO, VALID_ROLES, VALID_STATUSES
from .permissions import get_user_permissions

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _to_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role,
        status=user.status,
        org_id=user.org_id,
        avatar_url=user.avatar_url,
        apartment_id=user.apartment_id,
        is_active=user.is_active,
        created_at=user.date_joined,
        permissions=get_user_permissions(user),
    )


def get_user_dto(user_id) -> UserDTO | None:
    try:
        return _to_dto(User.objects.get(id=user_id))
    except User.DoesNotExist:
        return None


def get_lease_dto(user_id) -> LeaseDTO | None:
    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        return None
    return LeaseDTO(
        apartment_id=user.apartment_id,
        move_in_date=user.move_in_date,
        lease_start_date=user.lease_start_date,
        lease_end_date=user.lease_end_date,
        monthly_rent=user.monthly_rent,
        deposit_amount=user.deposit_amount,
    )


def email_exists(email: str) -> bool:
    return User.objects.filter(email__iexact=email.strip()).exists()


def create_user(org_id, payload: UserCreate) -> UserDTO:
    """
    Create an active user in the organization.

    Raises:
        ValueError: On missing fields, short password, bad role or duplicate email
    """
    email = (payload.email or '').strip().lower()
    if not email or not payload.password or not (payload.full_name or '').strip():
        raise ValueError("Vui lòng điền đầy đủ thông tin bắt buộc")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Mật khẩu phải có ít nhất {MIN_PASSWORD_LENGTH} ký tự")
    if payload.role not in VALID_ROLES:
        raise ValueError("Vai trò không hợp lệ")
    if email_exists(email):
        raise ValueError("Email đã được sử dụng")

    user = User.objects.create_user(
        username=payload.username or email,
        email=email,
        password=payload.password,
        full_name=payload.full_name.strip(),
        role=payload.role,
        phone=payload.phone or "",
        org_id=org_id,
        status=UserStatus.ACTIVE,
    )
    logger.info(f"Created {user.role} user {user.email} in org {org_id}")
    return get_user_dto(user.id)


def list_users(
    org_id,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[UserDTO]:
    queryset = User.objects.filter(org_id=org_id)

    if role:
        queryset = queryset.filter(role=role)
    if status:
        queryset = queryset.filter(status=status)
    if search:
        queryset = queryset.filter(
            Q(full_name__icontains=search) |
            Q(email__icontains=search) |
            Q(phone__icontains=search)
        )

    return [_to_dto(u) for u in queryset.order_by('-date_joined')]


def update_user(user_id, data: dict) -> UserDTO | None:
    """
    Apply a partial update. None values are ignored.

    Raises:
        ValueError: On an unknown role or status
    """
    if data.get('role') is not None and data['role'] not in VALID_ROLES:
        raise ValueError("Vai trò không hợp lệ")
    if data.get('status') is not None and data['status'] not in VALID_STATUSES:
        raise ValueError("Trạng thái không hợp lệ")

    try:
        user = User.objects.get(id=user_id)
    except User.DoesNotExist:
        return None

    for key, value in data.items():
        if value is not None:
            setattr(user, key, value)

    user.save()
    return get_user_dto(user_id)


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not user.check_password(current_password):
        raise ValueError("Mật khẩu hiện tại không đúng")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Mật khẩu phải có ít nhất {MIN_PASSWORD_LENGTH} ký tự")

    user.set_password(new_password)
    user.save()


def delete_user(user_id) -> bool:
    """
    Permanently delete a user.

    Apartment release for residents is handled by the apartments app's
    pre_delete receiver, inside the same transaction.
    """
    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id)
        except User.DoesNotExist:
            return False
        user.delete()

    logger.info(f"Deleted user {user_id}")
    return True


def count_users(org_id, roles: List[str]) -> int:
    return User.objects.filter(org_id=org_id, role__in=roles).count()


def count_active_residents(org_id) -> int:
    return User.objects.filter(
        org_id=org_id,
        role=UserRole.RESIDENT,
        status=UserStatus.ACTIVE,
        apartment_id__isnull=False,
    ).count()


def get_user_summaries(user_ids) -> dict:
    """Map user id -> (full_name, email) for display in other apps."""
    return {
        u['id']: u
        for u in User.objects.filter(id__in=set(user_ids)).values('id', 'full_name', 'email', 'avatar_url')
    }
