"""
Resident assignment service.

Links users to apartments. Every write touches both the user row and one or
two apartment rows, so each operation runs in a single transaction with the
apartments locked; a failed check leaves all rows unchanged.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from django.db import transaction

from apps.identity.models import User, UserRole, UserStatus
from .models import Apartment, ApartmentStatus
from .dtos import ResidentOut, ResidentApartmentOut

logger = logging.getLogger(__name__)

LEASE_FIELDS = (
    'move_in_date',
    'lease_start_date',
    'lease_end_date',
    'monthly_rent',
    'deposit_amount',
)


def _lock_available_apartment(org_id: UUID, apartment_id: UUID) -> Apartment:
    try:
        apartment = Apartment.objects.select_for_update().get(org_id=org_id, id=apartment_id)
    except Apartment.DoesNotExist:
        raise ValueError("Căn hộ không tồn tại")
    if apartment.status != ApartmentStatus.AVAILABLE:
        raise ValueError("Căn hộ không khả dụng")
    return apartment


def _release_apartment(apartment_id: Optional[UUID]) -> None:
    if apartment_id:
        Apartment.objects.filter(id=apartment_id).update(status=ApartmentStatus.AVAILABLE)


def assign_resident(
    *,
    org_id: UUID,
    user_id: Optional[UUID],
    apartment_id: Optional[UUID],
    move_in_date: Optional[date] = None,
    lease_start_date: Optional[date] = None,
    lease_end_date: Optional[date] = None,
    monthly_rent: Optional[Decimal] = None,
    deposit_amount: Optional[Decimal] = None,
    status: Optional[str] = None,
) -> User:
    """
    Assign a user to an available apartment and record the lease terms.

    The user becomes a resident and the apartment becomes occupied.

    Raises:
        ValueError: On missing ids, unknown user/apartment or an unavailable apartment
    """
    if not user_id or not apartment_id:
        raise ValueError("Vui lòng chọn cư dân và căn hộ")

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id, org_id=org_id)
        except User.DoesNotExist:
            raise ValueError("Không tìm thấy cư dân")

        apartment = _lock_available_apartment(org_id, apartment_id)

        if user.apartment_id and user.apartment_id != apartment.id:
            _release_apartment(user.apartment_id)

        user.apartment_id = apartment.id
        user.role = UserRole.RESIDENT
        user.status = status or UserStatus.ACTIVE
        user.move_in_date = move_in_date
        user.lease_start_date = lease_start_date
        user.lease_end_date = lease_end_date
        user.monthly_rent = monthly_rent
        user.deposit_amount = deposit_amount
        user.save()

        apartment.status = ApartmentStatus.OCCUPIED
        apartment.save(update_fields=['status', 'updated_at'])

    logger.info(f"Assigned user {user.id} to apartment {apartment.apartment_number}")
    return user


def update_resident(org_id: UUID, user_id: UUID, data: dict) -> Optional[User]:
    """
    Update profile and lease fields; None values are ignored.

    Moving to another apartment frees the old one and occupies the new one,
    which must be available.
    """
    data = {key: value for key, value in data.items() if value is not None}
    if 'status' in data and data['status'] not in UserStatus.values:
        raise ValueError("Trạng thái không hợp lệ")

    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id, org_id=org_id)
        except User.DoesNotExist:
            return None

        new_apartment_id = data.pop('apartment_id', None)
        if new_apartment_id and new_apartment_id != user.apartment_id:
            apartment = _lock_available_apartment(org_id, new_apartment_id)
            _release_apartment(user.apartment_id)

            apartment.status = ApartmentStatus.OCCUPIED
            apartment.save(update_fields=['status', 'updated_at'])
            user.apartment_id = apartment.id

        for attr in ('full_name', 'phone', 'status') + LEASE_FIELDS:
            if attr in data:
                setattr(user, attr, data[attr])

        user.save()

    return user


def remove_resident(org_id: UUID, user_id: UUID) -> bool:
    """Free the resident's apartment and delete the account."""
    with transaction.atomic():
        try:
            user = User.objects.select_for_update().get(id=user_id, org_id=org_id)
        except User.DoesNotExist:
            return False

        # pre_delete receiver in signals.py frees the apartment
        user.delete()

    logger.info(f"Removed resident {user_id}")
    return True


def list_residents(
    org_id: UUID,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[ResidentOut]:
    """Residents of the organization with a short view of their apartment."""
    queryset = User.objects.filter(org_id=org_id, role=UserRole.RESIDENT)
    if status:
        queryset = queryset.filter(status=status)
    if search:
        queryset = queryset.filter(full_name__icontains=search) | queryset.filter(email__icontains=search)

    residents = list(queryset.order_by('-date_joined'))
    apartments = Apartment.objects.in_bulk(
        [r.apartment_id for r in residents if r.apartment_id]
    )

    results = []
    for resident in residents:
        apartment = apartments.get(resident.apartment_id)
        results.append(ResidentOut(
            id=resident.id,
            email=resident.email,
            full_name=resident.full_name,
            phone=resident.phone,
            status=resident.status,
            apartment=ResidentApartmentOut(
                id=apartment.id,
                apartment_number=apartment.apartment_number,
                building=apartment.building,
                floor=apartment.floor,
            ) if apartment else None,
            move_in_date=resident.move_in_date,
            lease_start_date=resident.lease_start_date,
            lease_end_date=resident.lease_end_date,
            monthly_rent=resident.monthly_rent,
            deposit_amount=resident.deposit_amount,
            created_at=resident.date_joined,
        ))
    return results
