import logging
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import IntegrityError, transaction
from django.db.models import Q

from apps.core.pagination import PageInfo, paginate
from .models import Apartment, ApartmentStatus
from .dtos import ApartmentDTO, ApartmentIn

logger = logging.getLogger(__name__)

VALID_STATUSES = {choice for choice, _ in ApartmentStatus.choices}

DUPLICATE_NUMBER_MESSAGE = "Số căn hộ đã tồn tại"
NOT_FOUND_MESSAGE = "Căn hộ không tồn tại"
OCCUPIED_STATUS_MESSAGE = "Không thể đổi trạng thái căn hộ đang có cư dân"
MANUAL_OCCUPY_MESSAGE = "Căn hộ chỉ chuyển sang đã thuê khi gán cư dân"


def _to_dto(apartment: Apartment) -> ApartmentDTO:
    return ApartmentDTO(
        id=apartment.id,
        org_id=apartment.org_id,
        apartment_number=apartment.apartment_number,
        building=apartment.building,
        floor=apartment.floor,
        area=apartment.area,
        bedrooms=apartment.bedrooms,
        bathrooms=apartment.bathrooms,
        rent_price=apartment.rent_price,
        status=apartment.status,
        description=apartment.description,
        image_url=apartment.image_url,
        images=list(apartment.images or []),
        amenities=list(apartment.amenities or []),
    )


def get_apartment_dto(apartment_id: UUID) -> Optional[ApartmentDTO]:
    """
    Get an Apartment as a DTO for cross-app communication.
    Used by billing and identity to validate apartment references.
    """
    try:
        return _to_dto(Apartment.objects.get(id=apartment_id))
    except Apartment.DoesNotExist:
        return None


def validate_apartment_fields(data: dict) -> None:
    """
    Check the numeric and enum bounds of an apartment payload.

    Raises:
        ValueError: On the first field out of range
    """
    if 'apartment_number' in data and not (data['apartment_number'] or '').strip():
        raise ValueError("Số căn hộ không được để trống")
    if 'building' in data and not (data['building'] or '').strip():
        raise ValueError("Tòa nhà không được để trống")
    if 'floor' in data and data['floor'] < 1:
        raise ValueError("Tầng phải lớn hơn hoặc bằng 1")
    if 'area' in data and Decimal(data['area']) <= 0:
        raise ValueError("Diện tích phải lớn hơn 0")
    if 'bedrooms' in data and data['bedrooms'] < 0:
        raise ValueError("Số phòng ngủ không hợp lệ")
    if 'bathrooms' in data and data['bathrooms'] < 0:
        raise ValueError("Số phòng tắm không hợp lệ")
    if 'rent_price' in data and Decimal(data['rent_price']) < 0:
        raise ValueError("Giá thuê không được âm")
    if 'status' in data and data['status'] not in VALID_STATUSES:
        raise ValueError("Trạng thái căn hộ không hợp lệ")


def list_apartments(
    org_id: UUID,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    building: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    search: Optional[str] = None,
) -> Tuple[List[Apartment], PageInfo]:
    """
    List apartments ordered by building, floor and number, one page at a time.
    """
    queryset = Apartment.objects.filter(org_id=org_id)

    if status:
        queryset = queryset.filter(status=status)
    if building:
        queryset = queryset.filter(building=building)
    if min_price is not None:
        queryset = queryset.filter(rent_price__gte=min_price)
    if max_price is not None:
        queryset = queryset.filter(rent_price__lte=max_price)
    if search:
        queryset = queryset.filter(
            Q(apartment_number__icontains=search) |
            Q(building__icontains=search)
        )

    return paginate(queryset.order_by('building', 'floor', 'apartment_number'), page, limit)


def get_apartment(org_id: UUID, apartment_id: UUID) -> Optional[Apartment]:
    try:
        return Apartment.objects.get(org_id=org_id, id=apartment_id)
    except Apartment.DoesNotExist:
        return None


def create_apartment(org_id: UUID, payload: ApartmentIn) -> Apartment:
    """
    Raises:
        ValueError: On invalid fields or a duplicate apartment number
    """
    data = payload.dict()
    validate_apartment_fields(data)
    if data.get('status') == ApartmentStatus.OCCUPIED:
        raise ValueError(MANUAL_OCCUPY_MESSAGE)
    data['apartment_number'] = data['apartment_number'].strip()
    data['building'] = data['building'].strip()

    if Apartment.objects.filter(org_id=org_id, apartment_number=data['apartment_number']).exists():
        raise ValueError(DUPLICATE_NUMBER_MESSAGE)

    try:
        with transaction.atomic():
            apartment = Apartment.objects.create(org_id=org_id, **data)
    except IntegrityError:
        # Lost a race with a concurrent insert of the same number
        raise ValueError(DUPLICATE_NUMBER_MESSAGE)

    logger.info(f"Created apartment {apartment.apartment_number} in org {org_id}")
    return apartment


def update_apartment(org_id: UUID, apartment_id: UUID, data: dict) -> Optional[Apartment]:
    """
    Apply a partial update. None values are ignored.

    Occupancy follows resident assignment: a unit with a linked resident
    stays occupied, and an empty one cannot be marked occupied by hand.

    Raises:
        ValueError: On invalid fields, a duplicate apartment number or a
            status that contradicts the resident linkage
    """
    from apps.identity.models import User

    data = {key: value for key, value in data.items() if value is not None}
    validate_apartment_fields(data)

    with transaction.atomic():
        try:
            apartment = Apartment.objects.select_for_update().get(org_id=org_id, id=apartment_id)
        except Apartment.DoesNotExist:
            return None

        number = data.get('apartment_number')
        if number is not None:
            data['apartment_number'] = number.strip()
            if Apartment.objects.filter(
                org_id=org_id, apartment_number=data['apartment_number']
            ).exclude(id=apartment_id).exists():
                raise ValueError(DUPLICATE_NUMBER_MESSAGE)

        status = data.get('status')
        if status is not None and status != apartment.status:
            has_resident = User.objects.filter(apartment_id=apartment.id).exists()
            if has_resident:
                raise ValueError(OCCUPIED_STATUS_MESSAGE)
            if status == ApartmentStatus.OCCUPIED:
                raise ValueError(MANUAL_OCCUPY_MESSAGE)

        for attr, value in data.items():
            setattr(apartment, attr, value)
        apartment.save()

    return apartment


def delete_apartment(org_id: UUID, apartment_id: UUID) -> bool:
    """
    Hard delete an apartment nobody lives in.

    Raises:
        ValueError: When a resident is still assigned
    """
    from apps.identity.models import User

    with transaction.atomic():
        try:
            apartment = Apartment.objects.select_for_update().get(org_id=org_id, id=apartment_id)
        except Apartment.DoesNotExist:
            return False

        if User.objects.filter(apartment_id=apartment.id).exists():
            raise ValueError("Không thể xóa căn hộ đang có cư dân")

        apartment.delete()

    logger.info(f"Deleted apartment {apartment_id} in org {org_id}")
    return True


def count_apartments(org_id: Optional[UUID] = None) -> dict:
    queryset = Apartment.objects.all()
    if org_id:
        queryset = queryset.filter(org_id=org_id)
    return {
        "total": queryset.count(),
        "available": queryset.filter(status=ApartmentStatus.AVAILABLE).count(),
        "occupied": queryset.filter(status=ApartmentStatus.OCCUPIED).count(),
    }


def list_available_apartments(org_id: Optional[UUID] = None, limit: int = 6) -> List[Apartment]:
    queryset = Apartment.objects.filter(status=ApartmentStatus.AVAILABLE)
    if org_id:
        queryset = queryset.filter(org_id=org_id)
    return list(queryset.order_by('-created_at')[:limit])
