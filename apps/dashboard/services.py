"""
Dashboard services.

Read-only aggregations over the other apps for the admin and staff
dashboards and the public landing page. Each app is queried through its
own service module.
"""
from uuid import UUID

from apps.identity.models import UserRole
from apps.identity.services import count_users, count_active_residents
from apps.apartments.services import count_apartments, list_available_apartments
from apps.apartments.dtos import ApartmentOut
from apps.amenities.services import list_amenities
from apps.amenities.dtos import AmenityOut
from apps.amenities.models import AmenityStatus
from apps.billing import invoice_service
from apps.community.services import list_recent_posts
from apps.maintenance import services as maintenance_service
from apps.maintenance.models import RequestStatus
from .dtos import AdminStatsDTO, StaffStatsDTO, HomeDTO

RECENT_LIMIT = 5


def occupancy_rate(occupied: int, total: int) -> int:
    """Occupied share of apartments as a rounded percentage."""
    if not total:
        return 0
    return round(occupied * 100 / total)


def get_admin_stats(org_id: UUID) -> AdminStatsDTO:
    apartments = count_apartments(org_id)
    invoices, _ = invoice_service.list_invoices(org_id, page=1, limit=RECENT_LIMIT)

    return AdminStatsDTO(
        total_users=count_users(org_id, [UserRole.RESIDENT, UserRole.STAFF]),
        total_apartments=apartments["total"],
        occupied_apartments=apartments["occupied"],
        active_residents=count_active_residents(org_id),
        occupancy_rate=occupancy_rate(apartments["occupied"], apartments["total"]),
        pending_requests=maintenance_service.count_requests(org_id, status=RequestStatus.PENDING),
        recent_invoices=[i.dict() for i in invoice_service.serialize_invoices(invoices)],
        recent_requests=[r.dict() for r in maintenance_service.recent_requests(org_id, RECENT_LIMIT)],
    )


def get_staff_stats(user) -> StaffStatsDTO:
    """Queue size plus the caller's own workload by status."""
    by_status = {
        status: maintenance_service.count_requests(user.org_id, status=status, assigned_to_id=user.id)
        for status in RequestStatus.values
    }
    recent = maintenance_service.recent_requests(user.org_id, RECENT_LIMIT, assigned_to=user)

    return StaffStatsDTO(
        pending_requests=maintenance_service.count_requests(user.org_id, status=RequestStatus.PENDING),
        assigned_total=sum(by_status.values()),
        assigned_by_status=by_status,
        recent_assigned=[r.dict() for r in recent],
    )


def get_home_data(
    org_id: UUID,
    apartment_limit: int = 6,
    post_limit: int = RECENT_LIMIT,
) -> HomeDTO:
    """
    Public landing data of one organization. Posts are reduced to their
    public card so comments and contact details stay inside the tenant.
    """
    apartments = list_available_apartments(org_id, limit=apartment_limit)
    amenities = list_amenities(org_id, status=AmenityStatus.ACTIVE)
    posts = list_recent_posts(org_id, limit=post_limit)

    return HomeDTO(
        apartments=[ApartmentOut.from_orm(a).dict() for a in apartments],
        amenities=[AmenityOut.from_orm(a).dict() for a in amenities],
        posts=[p.dict() for p in posts],
        stats=count_apartments(org_id),
    )
