"""
Dashboard and landing page endpoints.

Admin and staff dashboards answer in camelCase; the public home feed in
snake_case.
"""
from dataclasses import asdict
from uuid import UUID
from ninja import Router
from django.http import HttpRequest

from apps.core.transform import to_report_payload
from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from . import services

dashboard_router = Router(tags=["Dashboard"])
home_router = Router(tags=["Home"])


@dashboard_router.get("/stats", response=dict, auth=None)
@has_permission(Permissions.DASHBOARD_VIEW_ADMIN)
def admin_stats(request: HttpRequest):
    """
    Organization overview: users, occupancy, open tickets and the latest
    invoices and service requests.
    """
    return to_report_payload(asdict(services.get_admin_stats(request.user.org_id)))


@dashboard_router.get("/staff", response=dict, auth=None)
@has_permission(Permissions.DASHBOARD_VIEW_STAFF)
def staff_stats(request: HttpRequest):
    return to_report_payload(asdict(services.get_staff_stats(request.user)))


@home_router.get("", response=dict, auth=None)
def home(request: HttpRequest, org_id: UUID, limit: int = 6):
    """
    **Public Endpoint**: available apartments, active amenities, recent
    posts and apartment counts of one organization for the landing page.
    """
    return asdict(services.get_home_data(org_id, apartment_limit=limit))
