"""
Audit trail endpoints for organization administrators.
"""
from typing import List, Optional
from uuid import UUID
from datetime import date
from django.http import HttpRequest
from ninja import Router, Schema
from ninja.errors import HttpError

from apps.core.pagination import paginate, PaginationOut
from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from .models import AuditLog
from .dtos import AuditLogOut

router = Router(tags=["Audit Logs"])


class AuditLogListOut(Schema):
    data: List[AuditLogOut]
    pagination: PaginationOut


def _serialize_log(log: AuditLog) -> AuditLogOut:
    actor = log.performed_by
    return AuditLogOut(
        id=log.id,
        org_id=log.org_id,
        action=log.action,
        target_type=log.target_type,
        target_id=log.target_id,
        target_label=log.target_label,
        performed_by_id=actor.id if actor else None,
        performed_by_name=(actor.full_name or actor.email) if actor else None,
        created_at=log.created_at,
        context=log.context,
    )


@router.get("", response=AuditLogListOut, auth=None)
@has_permission(Permissions.GOVERNANCE_VIEW_AUDIT)
def list_audit_logs(
    request: HttpRequest,
    action: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    limit: int = 20,
):
    """
    Newest entries first. Dates filter on the day the action happened.
    """
    queryset = AuditLog.objects.filter(org_id=request.user.org_id).select_related("performed_by")

    if action:
        queryset = queryset.filter(action=action)
    if target_type:
        queryset = queryset.filter(target_type=target_type)
    if target_id:
        queryset = queryset.filter(target_id=target_id)
    if start_date:
        queryset = queryset.filter(created_at__date__gte=start_date)
    if end_date:
        queryset = queryset.filter(created_at__date__lte=end_date)

    items, page_info = paginate(queryset, page, limit)
    return {"data": [_serialize_log(log) for log in items], "pagination": page_info}


@router.get("/{log_id}", response=AuditLogOut, auth=None)
@has_permission(Permissions.GOVERNANCE_VIEW_AUDIT)
def get_audit_log(request: HttpRequest, log_id: UUID):
    log = (
        AuditLog.objects.select_related("performed_by")
        .filter(id=log_id, org_id=request.user.org_id)
        .first()
    )
    if log is None:
        raise HttpError(404, "Không tìm thấy nhật ký")
    return _serialize_log(log)
