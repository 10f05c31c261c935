"""
Service request endpoints: tickets, acceptance and message threads.
"""
from typing import List, Optional
from uuid import UUID
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from apps.identity.decorators import has_permission, login_required, FORBIDDEN_MESSAGE
from apps.identity.permissions import Permissions
from apps.governance.audit_service import log_action, AuditAction
from .dtos import (
    ServiceRequestOut, ServiceRequestListOut, ServiceRequestIn, StatusUpdateIn, MessageIn, MessageOut,
)
from .models import ServiceRequest
from . import services

router = Router(tags=["Service Requests"])


def _get_visible_request(request: HttpRequest, request_id: UUID) -> ServiceRequest:
    service_request = services.get_request(request.user.org_id, request_id)
    if not service_request:
        raise HttpError(404, services.NOT_FOUND_MESSAGE)
    if not services.can_view(service_request, request.user):
        raise HttpError(403, FORBIDDEN_MESSAGE)
    return service_request


def _out(service_request: ServiceRequest) -> ServiceRequestOut:
    return services.serialize_requests([service_request])[0]


@router.get("", response=ServiceRequestListOut, auth=None)
@login_required
def list_requests(
    request: HttpRequest,
    status: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
):
    """
    Residents get their own tickets; staff and admins get the whole queue.
    """
    items, page_info = services.list_requests(
        request.user, status=status, category=category, page=page, limit=limit,
    )
    return {"data": services.serialize_requests(items), "pagination": page_info}


@router.post("", response={201: ServiceRequestOut}, auth=None)
@login_required
def create_request(request: HttpRequest, payload: ServiceRequestIn):
    try:
        service_request = services.create_request(
            request.user,
            payload.title,
            payload.description,
            category=payload.category,
            images=payload.images,
        )
    except ValueError as e:
        raise HttpError(400, str(e))
    return 201, _out(services.get_request(request.user.org_id, service_request.id))


@router.get("/{request_id}", response=ServiceRequestOut, auth=None)
@login_required
def get_request(request: HttpRequest, request_id: UUID):
    return _out(_get_visible_request(request, request_id))


@router.patch("/{request_id}", response=ServiceRequestOut, auth=None)
@has_permission(Permissions.MAINTENANCE_UPDATE_STATUS)
def update_request_status(request: HttpRequest, request_id: UUID, payload: StatusUpdateIn):
    service_request = _get_visible_request(request, request_id)
    try:
        service_request = services.update_status(service_request, request.user, payload.status)
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_REQUEST_STATUS,
        target_type="ServiceRequest",
        target_id=service_request.id,
        target_label=service_request.title,
        performed_by=request.user,
        context={"status": service_request.status},
    )
    return _out(service_request)


@router.post("/{request_id}/accept", response=dict, auth=None)
@has_permission(Permissions.MAINTENANCE_ACCEPT)
def accept_request(request: HttpRequest, request_id: UUID):
    """Staff takes an unassigned ticket and starts working on it."""
    service_request = _get_visible_request(request, request_id)
    try:
        service_request = services.accept_request(service_request, request.user)
    except ValueError as e:
        raise HttpError(400, str(e))
    return {"message": "Đã nhận yêu cầu", "data": _out(service_request).dict()}


@router.delete("/{request_id}", response={204: None}, auth=None)
@has_permission(Permissions.MAINTENANCE_MANAGE)
def delete_request(request: HttpRequest, request_id: UUID):
    if not services.delete_request(request.user.org_id, request_id):
        raise HttpError(404, services.NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.DELETE_REQUEST,
        target_type="ServiceRequest",
        target_id=request_id,
        target_label=str(request_id),
        performed_by=request.user,
    )
    return 204


# =============================================================================
# Messages
# =============================================================================

def _get_conversation(request: HttpRequest, request_id: UUID) -> ServiceRequest:
    service_request = services.get_request(request.user.org_id, request_id)
    if not service_request:
        raise HttpError(404, services.NOT_FOUND_MESSAGE)
    if not services.can_message(service_request, request.user):
        raise HttpError(403, FORBIDDEN_MESSAGE)
    return service_request


@router.get("/{request_id}/messages", response=List[MessageOut], auth=None)
@login_required
def list_messages(request: HttpRequest, request_id: UUID):
    return services.list_messages(_get_conversation(request, request_id))


@router.post("/{request_id}/messages", response={201: MessageOut}, auth=None)
@login_required
def post_message(request: HttpRequest, request_id: UUID, payload: MessageIn):
    service_request = _get_conversation(request, request_id)
    try:
        message = services.post_message(service_request, request.user, payload.content)
    except ValueError as e:
        raise HttpError(400, str(e))
    return 201, services.serialize_message(message)
