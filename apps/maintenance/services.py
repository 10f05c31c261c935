"""
Service request (maintenance ticket) services.

Residents raise tickets for their apartment; staff accept and work them;
admins oversee the whole queue. Every ticket carries a message thread.
"""
import logging
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import transaction

from apps.core.pagination import PageInfo, paginate
from apps.identity.permissions import Permissions, user_has_permission
from .models import ServiceRequest, ServiceRequestMessage, RequestCategory, RequestStatus
from .dtos import PersonOut, RequestApartmentOut, ServiceRequestOut, MessageOut

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
MESSAGE_MAX_LENGTH = 1000

NOT_FOUND_MESSAGE = "Không tìm thấy yêu cầu"


# =============================================================================
# Access rules
# =============================================================================

def sees_all_requests(user) -> bool:
    return user_has_permission(user, Permissions.MAINTENANCE_VIEW_ALL)


def can_view(service_request: ServiceRequest, user) -> bool:
    """Owner, assignee, staff or admin."""
    return (
        service_request.user_id == user.id
        or service_request.assigned_to_id == user.id
        or sees_all_requests(user)
    )


def can_message(service_request: ServiceRequest, user) -> bool:
    """Owner, assignee or admin."""
    return (
        service_request.user_id == user.id
        or service_request.assigned_to_id == user.id
        or user_has_permission(user, Permissions.MAINTENANCE_MANAGE)
    )


# =============================================================================
# Serialization
# =============================================================================

def _person(user) -> Optional[PersonOut]:
    if user is None:
        return None
    return PersonOut(id=user.id, full_name=user.full_name, email=user.email, phone=user.phone or "")


def serialize_requests(requests: List[ServiceRequest]) -> List[ServiceRequestOut]:
    """Attach requester, assignee and apartment details for API output."""
    from apps.apartments.models import Apartment

    apartments = Apartment.objects.in_bulk({r.apartment_id for r in requests})

    results = []
    for sr in requests:
        apartment = apartments.get(sr.apartment_id)
        results.append(ServiceRequestOut(
            id=sr.id,
            title=sr.title,
            description=sr.description,
            category=sr.category,
            status=sr.status,
            images=sr.images or [],
            user=_person(sr.user),
            apartment=RequestApartmentOut(
                id=apartment.id,
                apartment_number=apartment.apartment_number,
                building=apartment.building,
                floor=apartment.floor,
            ) if apartment else None,
            assigned_to=_person(sr.assigned_to),
            created_at=sr.created_at,
            updated_at=sr.updated_at,
        ))
    return results


def serialize_message(message: ServiceRequestMessage) -> MessageOut:
    return MessageOut(
        id=message.id,
        request_id=message.request_id,
        sender=_person(message.sender),
        content=message.content,
        created_at=message.created_at,
    )


# =============================================================================
# Tickets
# =============================================================================

def create_request(
    user,
    title: str,
    description: str,
    category: str = RequestCategory.OTHER,
    images: Optional[List[str]] = None,
) -> ServiceRequest:
    """
    Raise a ticket for the resident's assigned apartment.

    Raises:
        ValueError: No apartment assigned, or invalid fields
    """
    if not user.apartment_id:
        raise ValueError("Bạn chưa được gán căn hộ. Vui lòng liên hệ quản trị viên.")

    title = (title or "").strip()
    description = (description or "").strip()
    if not title or not description:
        raise ValueError("Vui lòng nhập tiêu đề và mô tả")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError(f"Tiêu đề không được vượt quá {TITLE_MAX_LENGTH} ký tự")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Mô tả không được vượt quá {DESCRIPTION_MAX_LENGTH} ký tự")
    if category not in RequestCategory.values:
        raise ValueError("Danh mục không hợp lệ")

    service_request = ServiceRequest.objects.create(
        org_id=user.org_id,
        user=user,
        apartment_id=user.apartment_id,
        title=title,
        description=description,
        category=category,
        images=list(images or []),
    )
    logger.info(f"Service request {service_request.id} raised by {user.id} ({category})")
    return service_request


def list_requests(
    user,
    status: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[ServiceRequest], PageInfo]:
    """
    Residents see their own tickets; staff and admins see the organization's.
    """
    queryset = ServiceRequest.objects.filter(org_id=user.org_id).select_related('user', 'assigned_to')
    if not sees_all_requests(user):
        queryset = queryset.filter(user=user)
    if status:
        queryset = queryset.filter(status=status)
    if category:
        queryset = queryset.filter(category=category)
    return paginate(queryset.order_by('-created_at'), page, limit)


def get_request(org_id: UUID, request_id: UUID) -> Optional[ServiceRequest]:
    try:
        return ServiceRequest.objects.select_related('user', 'assigned_to').get(org_id=org_id, id=request_id)
    except ServiceRequest.DoesNotExist:
        return None


def update_status(service_request: ServiceRequest, user, new_status: str) -> ServiceRequest:
    """
    Move a ticket to a new status. Starting work on an unassigned ticket
    assigns it to the caller.

    Raises:
        ValueError: Unknown status
    """
    if not new_status:
        raise ValueError("Thiếu trạng thái")
    if new_status not in RequestStatus.values:
        raise ValueError("Trạng thái không hợp lệ")

    with transaction.atomic():
        service_request = ServiceRequest.objects.select_for_update().get(id=service_request.id)
        service_request.status = new_status
        if new_status == RequestStatus.IN_PROGRESS and service_request.assigned_to_id is None:
            service_request.assigned_to = user
        service_request.save()

    logger.info(f"Service request {service_request.id} moved to {new_status} by {user.id}")
    return get_request(service_request.org_id, service_request.id)


def accept_request(service_request: ServiceRequest, user) -> ServiceRequest:
    """
    Staff picks up an unassigned ticket.

    Raises:
        ValueError: Already assigned or closed
    """
    with transaction.atomic():
        service_request = ServiceRequest.objects.select_for_update().get(id=service_request.id)
        if service_request.assigned_to_id is not None:
            raise ValueError("Yêu cầu này đã được nhận")
        if service_request.status in (RequestStatus.RESOLVED, RequestStatus.CANCELLED):
            raise ValueError("Yêu cầu đã đóng")

        service_request.assigned_to = user
        service_request.status = RequestStatus.IN_PROGRESS
        service_request.save()

    logger.info(f"Service request {service_request.id} accepted by {user.id}")
    return get_request(service_request.org_id, service_request.id)


def delete_request(org_id: UUID, request_id: UUID) -> bool:
    deleted, _ = ServiceRequest.objects.filter(org_id=org_id, id=request_id).delete()
    return deleted > 0


def count_requests(org_id: UUID, status: Optional[str] = None, assigned_to_id: Optional[UUID] = None) -> int:
    queryset = ServiceRequest.objects.filter(org_id=org_id)
    if status:
        queryset = queryset.filter(status=status)
    if assigned_to_id:
        queryset = queryset.filter(assigned_to_id=assigned_to_id)
    return queryset.count()


def recent_requests(org_id: UUID, limit: int = 5, **filters) -> List[ServiceRequestOut]:
    queryset = (
        ServiceRequest.objects
        .filter(org_id=org_id, **filters)
        .select_related('user', 'assigned_to')
        .order_by('-created_at')
    )
    return serialize_requests(list(queryset[:limit]))


# =============================================================================
# Messages
# =============================================================================

def list_messages(service_request: ServiceRequest) -> List[MessageOut]:
    messages = service_request.messages.select_related('sender').order_by('created_at')
    return [serialize_message(m) for m in messages]


def post_message(service_request: ServiceRequest, sender, content: str) -> ServiceRequestMessage:
    """
    Raises:
        ValueError: Empty or too long content
    """
    content = (content or "").strip()
    if not content:
        raise ValueError("Nội dung tin nhắn không được để trống")
    if len(content) > MESSAGE_MAX_LENGTH:
        raise ValueError(f"Nội dung tin nhắn không được vượt quá {MESSAGE_MAX_LENGTH} ký tự")

    return ServiceRequestMessage.objects.create(request=service_request, sender=sender, content=content)
