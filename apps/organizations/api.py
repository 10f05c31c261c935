from django.http import HttpRequest
from django.shortcuts import get_object_or_404
from ninja import Router
from ninja.errors import HttpError

from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from apps.governance.audit_service import log_action, AuditAction
from .models import Organization
from .dtos import OrganizationOut, OrganizationIn, OnboardingRequest, OnboardingResponse
from .services import onboard_organization, update_organization

router = Router(tags=["Organizations"])


@router.post("/onboard", response=OnboardingResponse, auth=None)
def create_onboard(request: HttpRequest, payload: OnboardingRequest):
    """
    **Public Endpoint**: Register a new Organization.

    This creates:
    1. A new Organization tenant.
    2. An 'Initial Administrator' user linked to that organization.

    No authentication is required.
    """
    try:
        return onboard_organization(payload)
    except ValueError as e:
        raise HttpError(400, str(e))


@router.get("/current", response=OrganizationOut, auth=None)
@has_permission(Permissions.ORGANIZATION_MANAGE)
def get_current_organization(request: HttpRequest):
    """Organization of the signed-in administrator."""
    if not request.user.org_id:
        raise HttpError(404, "Không tìm thấy tổ chức")
    return get_object_or_404(Organization, id=request.user.org_id)


@router.put("/current", response=OrganizationOut, auth=None)
@has_permission(Permissions.ORGANIZATION_MANAGE)
def update_current_organization(request: HttpRequest, payload: OrganizationIn):
    # Tenant admins may only edit their own organization
    org = update_organization(request.user.org_id, payload.dict(exclude_unset=True))
    if not org:
        raise HttpError(404, "Không tìm thấy tổ chức")

    log_action(
        org_id=org.id,
        action=AuditAction.UPDATE_ORGANIZATION,
        target_type="Organization",
        target_id=org.id,
        target_label=org.name,
        performed_by=request.user,
    )
    return org
