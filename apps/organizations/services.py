"""
Services for Organizations app.
This is the public API for other apps to interact with organizations.
"""
import logging
from django.db import transaction
from .models import Organization
from .dtos import OnboardingRequest, OnboardingResponse, OrganizationOut
from apps.identity.services import create_user, email_exists
from apps.identity.models import UserRole

logger = logging.getLogger(__name__)


def get_organization_dto(org_id) -> OrganizationOut | None:
    """
    Get an organization by ID and return as DTO.
    This is the only way other apps should access organization data.
    """
    try:
        org = Organization.objects.get(id=org_id)
        return OrganizationOut.from_orm(org)
    except Organization.DoesNotExist:
        return None


def organization_exists(org_id) -> bool:
    return Organization.objects.filter(id=org_id, is_active=True).exists()


def onboard_organization(payload: OnboardingRequest) -> OnboardingResponse:
    """
    Create an organization together with its first administrator.

    Raises:
        ValueError: If the admin email is already registered
    """
    if email_exists(payload.admin_user.email):
        raise ValueError("Email đã được sử dụng")

    with transaction.atomic():
        org = Organization.objects.create(**payload.organization.dict())

        # Enforce ADMIN role
        user_payload = payload.admin_user
        user_payload.role = UserRole.ADMIN

        user_dto = create_user(org_id=org.id, payload=user_payload)

    logger.info(f"Onboarded organization {org.id} ({org.name}) with admin {user_dto.email}")

    return OnboardingResponse(
        organization=OrganizationOut.from_orm(org),
        admin_user=user_dto,
    )


def update_organization(org_id, data: dict) -> Organization | None:
    try:
        org = Organization.objects.get(id=org_id)
    except Organization.DoesNotExist:
        return None

    for attr, value in data.items():
        setattr(org, attr, value)
    org.save()
    return org
