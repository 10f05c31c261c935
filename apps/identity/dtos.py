"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional, List


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    email: str
    full_name: str
    phone: str
    role: str
    status: str
    org_id: Optional[UUID]
    avatar_url: Optional[str]
    apartment_id: Optional[UUID]
    is_active: bool
    created_at: datetime
    permissions: List[str]


@dataclass(frozen=True)
class LeaseDTO:
    """Lease terms carried on a resident's account."""
    apartment_id: Optional[UUID]
    move_in_date: Optional[date]
    lease_start_date: Optional[date]
    lease_end_date: Optional[date]
    monthly_rent: Optional[Decimal]
    deposit_amount: Optional[Decimal]


from ninja import Schema
from .models import UserRole, UserStatus


class UserCreate(Schema):
    email: str
    password: str
    full_name: str
    username: Optional[str] = None
    role: str = UserRole.RESIDENT
    phone: Optional[str] = None


class UserUpdate(Schema):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    avatar_url: Optional[str] = None


class RegisterIn(Schema):
    email: str
    password: str
    full_name: str
    org_id: UUID
    phone: Optional[str] = None


class ProfileUpdate(Schema):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class ChangePasswordIn(Schema):
    current_password: str
    new_password: str


VALID_ROLES = {choice for choice, _ in UserRole.choices}
VALID_STATUSES = {choice for choice, _ in UserStatus.choices}
