from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from ninja import Schema
from ninja.orm import create_schema

from apps.core.pagination import PaginationOut
from .models import Apartment, ApartmentStatus


@dataclass(frozen=True)
class ApartmentDTO:
    """Data Transfer Object for Apartment - used for cross-app communication."""
    id: UUID
    org_id: UUID
    apartment_number: str
    building: str
    floor: int
    area: Decimal
    bedrooms: int
    bathrooms: int
    rent_price: Decimal
    status: str
    description: str
    image_url: Optional[str]
    images: List[str]
    amenities: List[str]

    @property
    def label(self) -> str:
        return f"{self.building} - {self.apartment_number}"


ApartmentOut = create_schema(Apartment, exclude=['org_id', 'updated_at'])


class ApartmentIn(Schema):
    apartment_number: str
    building: str
    floor: int
    area: Decimal
    bedrooms: int = 0
    bathrooms: int = 0
    rent_price: Decimal
    status: str = ApartmentStatus.AVAILABLE
    description: str = ""
    image_url: Optional[str] = None
    images: List[str] = []
    amenities: List[str] = []


class ApartmentUpdate(Schema):
    apartment_number: Optional[str] = None
    building: Optional[str] = None
    floor: Optional[int] = None
    area: Optional[Decimal] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    rent_price: Optional[Decimal] = None
    status: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    images: Optional[List[str]] = None
    amenities: Optional[List[str]] = None


class ApartmentListOut(Schema):
    data: List[ApartmentOut]
    pagination: PaginationOut


# =============================================================================
# Residents
# =============================================================================

class ResidentIn(Schema):
    user_id: Optional[UUID] = None
    apartment_id: Optional[UUID] = None
    move_in_date: Optional[date] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = None
    deposit_amount: Optional[Decimal] = None
    status: Optional[str] = None


class ResidentUpdate(Schema):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    apartment_id: Optional[UUID] = None
    move_in_date: Optional[date] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = None
    deposit_amount: Optional[Decimal] = None


class ResidentApartmentOut(Schema):
    id: UUID
    apartment_number: str
    building: str
    floor: int


class ResidentOut(Schema):
    id: UUID
    email: str
    full_name: str
    phone: str
    status: str
    apartment: Optional[ResidentApartmentOut] = None
    move_in_date: Optional[date] = None
    lease_start_date: Optional[date] = None
    lease_end_date: Optional[date] = None
    monthly_rent: Optional[Decimal] = None
    deposit_amount: Optional[Decimal] = None
    created_at: datetime
