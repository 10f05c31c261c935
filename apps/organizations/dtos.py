from ninja import Schema
from ninja.orm import create_schema
from typing import Optional, Dict, Any
from .models import Organization

OrganizationOut = create_schema(Organization, exclude=['created_at', 'updated_at'])


class OrganizationIn(Schema):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    settings: Dict[str, Any] = {}
    logo: Optional[str] = None


from apps.identity.dtos import UserCreate, UserDTO


class OnboardingRequest(Schema):
    organization: OrganizationIn
    admin_user: UserCreate


class OnboardingResponse(Schema):
    organization: OrganizationOut
    admin_user: UserDTO
