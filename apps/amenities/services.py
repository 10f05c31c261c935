"""Services for Amenities app."""
import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from .models import Amenity, AmenityType, AmenityStatus, PricingType
from .dtos import AmenityIn

logger = logging.getLogger(__name__)

VALID_TYPES = set(AmenityType.values)
VALID_STATUSES = set(AmenityStatus.values)
VALID_PRICING = set(PricingType.values)


def _validate(data: dict) -> None:
    if 'name' in data and not (data['name'] or '').strip():
        raise ValueError("Vui lòng điền đầy đủ thông tin bắt buộc")
    if 'description' in data and not (data['description'] or '').strip():
        raise ValueError("Vui lòng điền đầy đủ thông tin bắt buộc")
    if 'amenity_type' in data and data['amenity_type'] not in VALID_TYPES:
        raise ValueError("Loại tiện ích không hợp lệ")
    if 'status' in data and data['status'] not in VALID_STATUSES:
        raise ValueError("Trạng thái tiện ích không hợp lệ")
    if 'pricing_type' in data and data['pricing_type'] not in VALID_PRICING:
        raise ValueError("Hình thức tính phí không hợp lệ")
    if data.get('capacity') is not None and data['capacity'] < 1:
        raise ValueError("Sức chứa phải lớn hơn 0")
    if data.get('price_amount') is not None and Decimal(data['price_amount']) < 0:
        raise ValueError("Giá không được âm")


def list_amenities(
    org_id: Optional[UUID],
    amenity_type: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Amenity]:
    queryset = Amenity.objects.all()
    if org_id:
        queryset = queryset.filter(org_id=org_id)
    if amenity_type:
        queryset = queryset.filter(amenity_type=amenity_type)
    if status:
        queryset = queryset.filter(status=status)
    return list(queryset.order_by('name'))


def get_amenity(org_id: UUID, amenity_id: UUID) -> Optional[Amenity]:
    try:
        return Amenity.objects.get(org_id=org_id, id=amenity_id)
    except Amenity.DoesNotExist:
        return None


def create_amenity(org_id: UUID, payload: AmenityIn) -> Amenity:
    data = payload.dict()
    if data.get('status') is None:
        data['status'] = AmenityStatus.ACTIVE
    _validate(data)

    data['name'] = data['name'].strip()
    amenity = Amenity.objects.create(org_id=org_id, **data)
    logger.info(f"Created amenity {amenity.name} in org {org_id}")
    return amenity


def update_amenity(org_id: UUID, amenity_id: UUID, data: dict) -> Optional[Amenity]:
    data = {key: value for key, value in data.items() if value is not None}
    _validate(data)

    amenity = get_amenity(org_id, amenity_id)
    if not amenity:
        return None

    for attr, value in data.items():
        setattr(amenity, attr, value)
    amenity.save()
    return amenity


def delete_amenity(org_id: UUID, amenity_id: UUID) -> bool:
    deleted, _ = Amenity.objects.filter(org_id=org_id, id=amenity_id).delete()
    return deleted > 0
