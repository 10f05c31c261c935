from datetime import datetime
from typing import List, Optional
from uuid import UUID

from ninja import Schema

from apps.core.pagination import PaginationOut
from .models import RequestCategory


class PersonOut(Schema):
    id: UUID
    full_name: str
    email: str
    phone: str = ""


class RequestApartmentOut(Schema):
    id: UUID
    apartment_number: str
    building: str
    floor: int


class ServiceRequestOut(Schema):
    id: UUID
    title: str
    description: str
    category: str
    status: str
    images: List[str] = []
    user: PersonOut
    apartment: Optional[RequestApartmentOut] = None
    assigned_to: Optional[PersonOut] = None
    created_at: datetime
    updated_at: datetime


class ServiceRequestListOut(Schema):
    data: List[ServiceRequestOut]
    pagination: PaginationOut


class ServiceRequestIn(Schema):
    title: str
    description: str
    category: str = RequestCategory.OTHER
    images: List[str] = []


class StatusUpdateIn(Schema):
    status: str


class MessageIn(Schema):
    content: str


class MessageOut(Schema):
    id: UUID
    request_id: UUID
    sender: PersonOut
    content: str
    created_at: datetime
