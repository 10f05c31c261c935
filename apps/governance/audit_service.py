"""
Centralized audit logging service.

Use log_action() to record any critical mutation. It never raises, so a
logging failure will never break the calling request.

Usage:
    from apps.governance.audit_service import log_action, AuditAction

    log_action(
        org_id=org_id,
        action=AuditAction.CREATE_INVOICE,
        target_type="Invoice",
        target_id=invoice.id,
        target_label=invoice.invoice_number,
        performed_by=request.user,
        context={"amount": str(invoice.amount)},
    )
"""
import logging
from uuid import UUID
from typing import Optional

from .models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """
    Canonical string constants for audit log actions.
    Prevents scattered string literals and typos across apps.
    """
    # ── Identity ──────────────────────────────────────────────────────
    USER_LOGIN = "USER_LOGIN"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"

    # ── Residents ─────────────────────────────────────────────────────
    ASSIGN_RESIDENT = "ASSIGN_RESIDENT"
    UPDATE_RESIDENT = "UPDATE_RESIDENT"
    REMOVE_RESIDENT = "REMOVE_RESIDENT"

    # ── Apartments & Amenities ────────────────────────────────────────
    CREATE_APARTMENT = "CREATE_APARTMENT"
    UPDATE_APARTMENT = "UPDATE_APARTMENT"
    DELETE_APARTMENT = "DELETE_APARTMENT"
    CREATE_AMENITY = "CREATE_AMENITY"
    UPDATE_AMENITY = "UPDATE_AMENITY"
    DELETE_AMENITY = "DELETE_AMENITY"

    # ── Billing ───────────────────────────────────────────────────────
    CREATE_INVOICE = "CREATE_INVOICE"
    UPDATE_INVOICE_STATUS = "UPDATE_INVOICE_STATUS"
    DELETE_INVOICE = "DELETE_INVOICE"
    CONFIRM_PAYMENT = "CONFIRM_PAYMENT"

    # ── Maintenance ───────────────────────────────────────────────────
    UPDATE_REQUEST_STATUS = "UPDATE_REQUEST_STATUS"
    DELETE_REQUEST = "DELETE_REQUEST"

    # ── Community ─────────────────────────────────────────────────────
    DELETE_POST = "DELETE_POST"

    # ── Organizations ─────────────────────────────────────────────────
    UPDATE_ORGANIZATION = "UPDATE_ORGANIZATION"


def log_action(
    *,
    org_id: UUID,
    action: str,
    target_type: str,
    target_id: UUID,
    performed_by,
    target_label: str = "",
    context: Optional[dict] = None,
) -> Optional[AuditLog]:
    """
    Create an AuditLog entry for a critical action.

    Never raises. Any DB or serialization error is logged and swallowed so
    audit logging never degrades the user-facing request.

    Args:
        org_id:        Organisation UUID for multi-tenant isolation.
        action:        Action constant from AuditAction (e.g. "CREATE_INVOICE").
        target_type:   Human-readable type of the object acted on (e.g. "Invoice").
        target_id:     Primary key of the object acted on.
        performed_by:  Django User instance or None.
        target_label:  Optional human-readable description of the object.
        context:       Optional dict of additional metadata to store as JSON.

    Returns:
        The created AuditLog instance, or None if creation failed.
    """
    if org_id is None:
        return None
    try:
        return AuditLog.objects.create(
            org_id=org_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            target_label=target_label[:255],
            performed_by=performed_by,
            context=context or {},
        )
    except Exception:
        logger.warning(f"Failed to write audit log {action} for {target_type} {target_id}", exc_info=True)
        return None
