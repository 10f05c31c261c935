from decimal import Decimal
from typing import List, Optional

from ninja import Schema
from ninja.orm import create_schema

from .models import Amenity, PricingType

AmenityOut = create_schema(Amenity, exclude=['org_id', 'updated_at'])


class AmenityIn(Schema):
    name: str
    description: str
    amenity_type: str
    status: Optional[str] = None
    capacity: Optional[int] = None
    operating_hours: str = ""
    location: str = ""
    image_url: Optional[str] = None
    images: List[str] = []
    pricing_type: str = PricingType.FREE
    price_amount: Optional[Decimal] = None
    currency: str = "VND"
    booking_required: bool = False


class AmenityUpdate(Schema):
    name: Optional[str] = None
    description: Optional[str] = None
    amenity_type: Optional[str] = None
    status: Optional[str] = None
    capacity: Optional[int] = None
    operating_hours: Optional[str] = None
    location: Optional[str] = None
    image_url: Optional[str] = None
    images: Optional[List[str]] = None
    pricing_type: Optional[str] = None
    price_amount: Optional[Decimal] = None
    currency: Optional[str] = None
    booking_required: Optional[bool] = None
