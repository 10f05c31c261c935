from typing import List, Dict
from .models import UserRole, User


# Define all available permissions here for reference
class Permissions:
    # Identity
    IDENTITY_VIEW_USER = "identity.view_user"
    IDENTITY_MANAGE_USER = "identity.manage_user"
    IDENTITY_MANAGE_RESIDENT = "identity.manage_resident"

    # Apartments & Amenities
    APARTMENTS_MANAGE = "apartments.manage"
    AMENITIES_MANAGE = "amenities.manage"

    # Billing
    BILLING_VIEW_ALL_INVOICES = "billing.view_all_invoices"
    BILLING_MANAGE_INVOICES = "billing.manage_invoices"
    BILLING_CONFIRM_PAYMENT = "billing.confirm_payment"
    BILLING_VIEW_REPORTS = "billing.view_reports"

    # Community
    COMMUNITY_MODERATE = "community.moderate"

    # Maintenance
    MAINTENANCE_VIEW_ALL = "maintenance.view_all"
    MAINTENANCE_ACCEPT = "maintenance.accept"
    MAINTENANCE_UPDATE_STATUS = "maintenance.update_status"
    MAINTENANCE_MANAGE = "maintenance.manage"  # delete tickets, join any conversation

    # Dashboards & Governance
    DASHBOARD_VIEW_ADMIN = "dashboard.view_admin"
    DASHBOARD_VIEW_STAFF = "dashboard.view_staff"
    GOVERNANCE_VIEW_AUDIT = "governance.view_audit"

    # Organizations
    ORGANIZATION_MANAGE = "organization.manage"


# Static Role -> Permission Mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    UserRole.ADMIN: [
        # Identity
        Permissions.IDENTITY_VIEW_USER,
        Permissions.IDENTITY_MANAGE_USER,
        Permissions.IDENTITY_MANAGE_RESIDENT,
        # Catalogs
        Permissions.APARTMENTS_MANAGE,
        Permissions.AMENITIES_MANAGE,
        # Billing - Full access
        Permissions.BILLING_VIEW_ALL_INVOICES,
        Permissions.BILLING_MANAGE_INVOICES,
        Permissions.BILLING_CONFIRM_PAYMENT,
        Permissions.BILLING_VIEW_REPORTS,
        # Community
        Permissions.COMMUNITY_MODERATE,
        # Maintenance - can reassign and delete but does not accept tickets
        Permissions.MAINTENANCE_VIEW_ALL,
        Permissions.MAINTENANCE_UPDATE_STATUS,
        Permissions.MAINTENANCE_MANAGE,
        # Dashboards & Governance
        Permissions.DASHBOARD_VIEW_ADMIN,
        Permissions.DASHBOARD_VIEW_STAFF,
        Permissions.GOVERNANCE_VIEW_AUDIT,
        # Organizations
        Permissions.ORGANIZATION_MANAGE,
    ],
    UserRole.STAFF: [
        # Identity
        Permissions.IDENTITY_VIEW_USER,
        # Maintenance - works the ticket queue
        Permissions.MAINTENANCE_VIEW_ALL,
        Permissions.MAINTENANCE_ACCEPT,
        Permissions.MAINTENANCE_UPDATE_STATUS,
        # Dashboards
        Permissions.DASHBOARD_VIEW_STAFF,
    ],
    UserRole.RESIDENT: [
        # Residents only see their own invoices, requests and profile.
        # This is enforced at the service level, not here
    ],
}


def get_user_permissions(user: User) -> List[str]:
    """
    Returns a list of permission strings for the given user based on their role.
    """
    if not user or not user.is_active:
        return []

    return ROLE_PERMISSIONS.get(user.role, [])


def user_has_permission(user: User, permission: str) -> bool:
    return permission in get_user_permissions(user)
