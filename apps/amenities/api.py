from typing import List, Optional
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import has_permission, login_required
from apps.identity.permissions import Permissions
from apps.governance.audit_service import log_action, AuditAction
from .dtos import AmenityOut, AmenityIn, AmenityUpdate
from .services import list_amenities, get_amenity, create_amenity, update_amenity, delete_amenity

router = Router(tags=["Amenities"])

NOT_FOUND_MESSAGE = "Không tìm thấy tiện ích"


@router.get("", response=List[AmenityOut], auth=None)
@login_required
def get_amenities(request: HttpRequest, amenity_type: Optional[str] = None, status: Optional[str] = None):
    return list_amenities(request.user.org_id, amenity_type=amenity_type, status=status)


@router.get("/{amenity_id}", response=AmenityOut, auth=None)
@login_required
def get_amenity_api(request: HttpRequest, amenity_id: UUID):
    amenity = get_amenity(request.user.org_id, amenity_id)
    if not amenity:
        raise HttpError(404, NOT_FOUND_MESSAGE)
    return amenity


@router.post("", response={201: AmenityOut}, auth=None)
@has_permission(Permissions.AMENITIES_MANAGE)
def create_amenity_api(request: HttpRequest, payload: AmenityIn):
    try:
        amenity = create_amenity(request.user.org_id, payload)
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.CREATE_AMENITY,
        target_type="Amenity",
        target_id=amenity.id,
        target_label=amenity.name,
        performed_by=request.user,
    )
    return 201, amenity


@router.put("/{amenity_id}", response=AmenityOut, auth=None)
@has_permission(Permissions.AMENITIES_MANAGE)
def update_amenity_api(request: HttpRequest, amenity_id: UUID, payload: AmenityUpdate):
    try:
        amenity = update_amenity(request.user.org_id, amenity_id, payload.dict(exclude_unset=True))
    except ValueError as e:
        raise HttpError(400, str(e))
    if not amenity:
        raise HttpError(404, NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_AMENITY,
        target_type="Amenity",
        target_id=amenity.id,
        target_label=amenity.name,
        performed_by=request.user,
    )
    return amenity


@router.delete("/{amenity_id}", response={204: None}, auth=None)
@has_permission(Permissions.AMENITIES_MANAGE)
def delete_amenity_api(request: HttpRequest, amenity_id: UUID):
    if not delete_amenity(request.user.org_id, amenity_id):
        raise HttpError(404, NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.DELETE_AMENITY,
        target_type="Amenity",
        target_id=amenity_id,
        target_label=str(amenity_id),
        performed_by=request.user,
    )
    return 204
