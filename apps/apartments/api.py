"""
Apartment catalog and resident assignment endpoints.
"""
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import has_permission, login_required
from apps.identity.permissions import Permissions
from apps.governance.audit_service import log_action, AuditAction
from .dtos import (
    ApartmentOut, ApartmentIn, ApartmentUpdate, ApartmentListOut,
    ResidentIn, ResidentUpdate, ResidentOut,
)
from .services import (
    list_apartments,
    get_apartment,
    create_apartment,
    update_apartment,
    delete_apartment,
    NOT_FOUND_MESSAGE,
)
from .resident_service import assign_resident, update_resident, remove_resident, list_residents

router = Router(tags=["Apartments"])
residents_router = Router(tags=["Residents"])


# =============================================================================
# Apartments
# =============================================================================

@router.get("", response=ApartmentListOut, auth=None)
@login_required
def get_apartments(
    request: HttpRequest,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    building: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    search: Optional[str] = None,
):
    """
    List apartments of the organization.

    Query Parameters:
    - status: available, occupied or maintenance
    - building: exact building name
    - min_price / max_price: rent price range
    - search: matches apartment number or building
    """
    items, page_info = list_apartments(
        request.user.org_id,
        page=page,
        limit=limit,
        status=status,
        building=building,
        min_price=min_price,
        max_price=max_price,
        search=search,
    )
    return {"data": items, "pagination": page_info}


@router.get("/{apartment_id}", response=ApartmentOut, auth=None)
@login_required
def get_apartment_api(request: HttpRequest, apartment_id: UUID):
    apartment = get_apartment(request.user.org_id, apartment_id)
    if not apartment:
        raise HttpError(404, NOT_FOUND_MESSAGE)
    return apartment


@router.post("", response={201: ApartmentOut}, auth=None)
@has_permission(Permissions.APARTMENTS_MANAGE)
def create_apartment_api(request: HttpRequest, payload: ApartmentIn):
    user = request.user
    try:
        apartment = create_apartment(user.org_id, payload)
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=user.org_id,
        action=AuditAction.CREATE_APARTMENT,
        target_type="Apartment",
        target_id=apartment.id,
        target_label=str(apartment),
        performed_by=user,
    )
    return 201, apartment


@router.put("/{apartment_id}", response=ApartmentOut, auth=None)
@has_permission(Permissions.APARTMENTS_MANAGE)
def update_apartment_api(request: HttpRequest, apartment_id: UUID, payload: ApartmentUpdate):
    changes = payload.dict(exclude_unset=True)
    try:
        apartment = update_apartment(request.user.org_id, apartment_id, changes)
    except ValueError as e:
        raise HttpError(400, str(e))
    if not apartment:
        raise HttpError(404, NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_APARTMENT,
        target_type="Apartment",
        target_id=apartment.id,
        target_label=str(apartment),
        performed_by=request.user,
        context={"fields": sorted(changes)},
    )
    return apartment


@router.delete("/{apartment_id}", response={204: None}, auth=None)
@has_permission(Permissions.APARTMENTS_MANAGE)
def delete_apartment_api(request: HttpRequest, apartment_id: UUID):
    """
    Delete an apartment. Fails while a resident is assigned to it.
    """
    try:
        deleted = delete_apartment(request.user.org_id, apartment_id)
    except ValueError as e:
        raise HttpError(400, str(e))
    if not deleted:
        raise HttpError(404, NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.DELETE_APARTMENT,
        target_type="Apartment",
        target_id=apartment_id,
        target_label=str(apartment_id),
        performed_by=request.user,
    )
    return 204


# =============================================================================
# Residents
# =============================================================================

@residents_router.get("", response=List[ResidentOut], auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_RESIDENT)
def get_residents(request: HttpRequest, status: Optional[str] = None, search: Optional[str] = None):
    return list_residents(request.user.org_id, status=status, search=search)


@residents_router.post("", response={201: dict}, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_RESIDENT)
def create_resident_api(request: HttpRequest, payload: ResidentIn):
    """
    Assign a user to an available apartment with lease terms.
    """
    try:
        user = assign_resident(org_id=request.user.org_id, **payload.dict())
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.ASSIGN_RESIDENT,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=request.user,
        context={"apartment_id": str(user.apartment_id)},
    )
    return 201, {"success": True, "message": "Phân công cư dân thành công"}


@residents_router.put("/{user_id}", response=dict, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_RESIDENT)
def update_resident_api(request: HttpRequest, user_id: UUID, payload: ResidentUpdate):
    try:
        user = update_resident(request.user.org_id, user_id, payload.dict(exclude_unset=True))
    except ValueError as e:
        raise HttpError(400, str(e))
    if not user:
        raise HttpError(404, "Không tìm thấy cư dân")

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_RESIDENT,
        target_type="User",
        target_id=user.id,
        target_label=user.email,
        performed_by=request.user,
    )
    return {"success": True, "message": "Cập nhật cư dân thành công"}


@residents_router.delete("/{user_id}", response={204: None}, auth=None)
@has_permission(Permissions.IDENTITY_MANAGE_RESIDENT)
def delete_resident_api(request: HttpRequest, user_id: UUID):
    if not remove_resident(request.user.org_id, user_id):
        raise HttpError(404, "Không tìm thấy cư dân")

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.REMOVE_RESIDENT,
        target_type="User",
        target_id=user_id,
        target_label=str(user_id),
        performed_by=request.user,
    )
    return 204
