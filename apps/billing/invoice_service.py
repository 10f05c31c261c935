"""
Invoice service.
Handles invoice issuance, numbering, status changes and the overdue sweep.
Payment settlement lives in payment_service.
"""
import logging
import time
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
from uuid import UUID

from django.db import IntegrityError, transaction as db_transaction
from django.utils import timezone

from apps.core.pagination import PageInfo, paginate
from .models import Invoice, InvoiceStatus, InvoiceType
from .schemas import InvoiceOut

logger = logging.getLogger(__name__)

INVOICE_NUMBER_ATTEMPTS = 5

# Upper-case billing labels used by the admin invoice form
INVOICE_TYPE_ALIASES = {
    "RENT": InvoiceType.RENT,
    "ELECTRICITY": InvoiceType.UTILITIES,
    "WATER": InvoiceType.UTILITIES,
    "INTERNET": InvoiceType.UTILITIES,
    "SERVICE": InvoiceType.MAINTENANCE,
    "REPAIR": InvoiceType.MAINTENANCE,
    "PARKING": InvoiceType.PARKING,
    "OTHER": InvoiceType.OTHER,
}

# Manual status changes an admin may make; paid goes through settlement
ALLOWED_STATUS_CHANGES = {
    InvoiceStatus.PENDING: {InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.CANCELLED},
}

NOT_FOUND_MESSAGE = "Không tìm thấy hóa đơn"


def normalize_invoice_type(value: Optional[str]) -> str:
    """
    Map a billing label to an invoice type.

    Lower-case enum values pass through; upper-case labels are mapped;
    anything else is filed as other.
    """
    if value in InvoiceType.values:
        return value
    return INVOICE_TYPE_ALIASES.get((value or "").strip().upper(), InvoiceType.OTHER)


def generate_invoice_number(attempt: int = 0) -> str:
    """INV-<epoch millis>-<sequence>, sequence = invoice count + 1 (+ retry offset)."""
    epoch_ms = int(time.time() * 1000)
    return f"INV-{epoch_ms}-{Invoice.objects.count() + 1 + attempt}"


def create_invoice(
    *,
    org_id: UUID,
    user_id: UUID,
    apartment_id: UUID,
    invoice_type: str,
    amount,
    due_date: date,
    description: str = "",
    issue_date: Optional[date] = None,
) -> Invoice:
    """
    Issue a pending invoice to a resident for an apartment.

    Raises:
        ValueError: On an unknown user/apartment, a negative amount or
            when no unique invoice number could be allocated
    """
    from apps.identity.services import get_user_dto
    from apps.apartments.services import get_apartment_dto

    user = get_user_dto(user_id)
    if not user or user.org_id != org_id:
        raise ValueError("Không tìm thấy cư dân")

    apartment = get_apartment_dto(apartment_id)
    if not apartment or apartment.org_id != org_id:
        raise ValueError("Căn hộ không tồn tại")

    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValueError("Số tiền không hợp lệ")
    if amount < 0:
        raise ValueError("Số tiền không hợp lệ")
    if not due_date:
        raise ValueError("Vui lòng chọn ngày đến hạn")

    for attempt in range(INVOICE_NUMBER_ATTEMPTS):
        invoice_number = generate_invoice_number(attempt)
        try:
            with db_transaction.atomic():
                invoice = Invoice.objects.create(
                    org_id=org_id,
                    user_id=user_id,
                    apartment_id=apartment_id,
                    invoice_number=invoice_number,
                    invoice_type=normalize_invoice_type(invoice_type),
                    amount=amount,
                    issue_date=issue_date or timezone.localdate(),
                    due_date=due_date,
                    description=description or "",
                    status=InvoiceStatus.PENDING,
                )
        except IntegrityError:
            logger.warning(f"Invoice number collision on {invoice_number}, retrying")
            continue

        logger.info(f"Created invoice {invoice.invoice_number} for user {user_id} amount {amount}")
        return invoice

    raise ValueError("Không thể tạo số hóa đơn, vui lòng thử lại")


def get_invoice(org_id: UUID, invoice_id: UUID) -> Optional[Invoice]:
    try:
        return Invoice.objects.get(org_id=org_id, id=invoice_id)
    except Invoice.DoesNotExist:
        return None


def list_invoices(
    org_id: UUID,
    status: Optional[str] = None,
    user_id: Optional[UUID] = None,
    apartment_id: Optional[UUID] = None,
    invoice_type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[Invoice], PageInfo]:
    """All invoices of the organization, newest first."""
    queryset = Invoice.objects.filter(org_id=org_id)
    if status:
        queryset = queryset.filter(status=status)
    if user_id:
        queryset = queryset.filter(user_id=user_id)
    if apartment_id:
        queryset = queryset.filter(apartment_id=apartment_id)
    if invoice_type:
        queryset = queryset.filter(invoice_type=normalize_invoice_type(invoice_type))
    return paginate(queryset.order_by('-created_at'), page, limit)


def list_user_invoices(
    user_id: UUID,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[Invoice], PageInfo]:
    """A resident's own invoices, latest due date first."""
    queryset = Invoice.objects.filter(user_id=user_id)
    if status:
        queryset = queryset.filter(status=status)
    return paginate(queryset.order_by('-due_date', '-created_at'), page, limit)


def update_invoice_status(org_id: UUID, invoice_id: UUID, new_status: str) -> Optional[Invoice]:
    """
    Cancel an invoice or flag it overdue by hand.

    Raises:
        ValueError: When the transition is not allowed
    """
    with db_transaction.atomic():
        try:
            invoice = Invoice.objects.select_for_update().get(org_id=org_id, id=invoice_id)
        except Invoice.DoesNotExist:
            return None

        if invoice.status == new_status:
            return invoice
        if new_status == InvoiceStatus.PAID:
            raise ValueError("Vui lòng sử dụng chức năng xác nhận thanh toán")
        if new_status not in ALLOWED_STATUS_CHANGES.get(invoice.status, set()):
            raise ValueError("Không thể chuyển trạng thái hóa đơn")

        invoice.status = new_status
        invoice.save(update_fields=['status', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} moved to {new_status}")
    return invoice


def delete_invoice(org_id: UUID, invoice_id: UUID) -> bool:
    """
    Raises:
        ValueError: When the invoice is already paid
    """
    invoice = get_invoice(org_id, invoice_id)
    if not invoice:
        return False
    if invoice.status == InvoiceStatus.PAID:
        raise ValueError("Không thể xóa hóa đơn đã thanh toán")

    invoice.delete()
    return True


def mark_overdue_invoices(today: Optional[date] = None) -> int:
    """
    Move pending invoices whose due date has passed to overdue.

    Returns:
        Number of invoices updated
    """
    today = today or timezone.localdate()
    count = Invoice.objects.filter(
        status=InvoiceStatus.PENDING,
        due_date__lt=today,
    ).update(status=InvoiceStatus.OVERDUE, updated_at=timezone.now())

    logger.info(f"Overdue sweep as of {today}: {count} invoices marked overdue")
    return count


def serialize_invoices(invoices: List[Invoice]) -> List[InvoiceOut]:
    """Attach resident and apartment labels to invoices for API output."""
    from apps.identity.services import get_user_summaries
    from apps.apartments.models import Apartment

    users = get_user_summaries(i.user_id for i in invoices)
    apartments = Apartment.objects.in_bulk({i.apartment_id for i in invoices})

    results = []
    for invoice in invoices:
        user = users.get(invoice.user_id, {})
        apartment = apartments.get(invoice.apartment_id)
        results.append(InvoiceOut(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            user_id=invoice.user_id,
            user_name=user.get('full_name'),
            user_email=user.get('email'),
            apartment_id=invoice.apartment_id,
            apartment_number=apartment.apartment_number if apartment else None,
            building=apartment.building if apartment else None,
            type=invoice.invoice_type,
            amount=invoice.amount,
            status=invoice.status,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            paid_date=invoice.paid_date,
            description=invoice.description,
            created_at=invoice.created_at,
        ))
    return results
