"""
Payment service.

Creates payment sessions (transaction code + payment page URL), renders the
bank-transfer QR, and settles invoices from gateway callbacks or manual
confirmation. settle_invoice() is the only code path that marks an invoice
paid.
"""
import hashlib
import hmac
import logging
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple
from urllib.parse import quote
from uuid import UUID

from django.conf import settings
from django.db import transaction as db_transaction
from django.utils import timezone

from apps.core.pagination import PageInfo, paginate
from apps.core.transform import to_snake_case
from apps.identity.permissions import Permissions, user_has_permission
from .models import (
    Invoice, InvoiceStatus, Transaction, TransactionStatus, PaymentGateway,
)
from .dtos import (
    PaymentUrlDTO, PaymentQrDTO, PaymentStatusDTO, CallbackResultDTO,
)
from . import qr_service

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.digits + string.ascii_uppercase
CODE_SUFFIX_LENGTH = 6

CALLBACK_STATUSES = {"SUCCESS", "FAILED", "PENDING"}

ALREADY_PAID_MESSAGE = "Hóa đơn đã được thanh toán"
NOT_OWNER_MESSAGE = "Bạn không có quyền thanh toán hóa đơn này"
TRANSACTION_NOT_FOUND_MESSAGE = "Không tìm thấy giao dịch"
CODE_MISMATCH_MESSAGE = "Mã giao dịch không khớp với hóa đơn"
NO_ACCESS_TRANSACTION_MESSAGE = "Bạn không có quyền xem giao dịch này"


# =============================================================================
# Helpers
# =============================================================================

def payment_expiry_window() -> timedelta:
    return timedelta(minutes=getattr(settings, 'PAYMENT_EXPIRY_MINUTES', 15))


def generate_transaction_code(now: Optional[datetime] = None) -> str:
    """STAY-YYYYMMDD-XXXXXX with six random upper-case base-36 characters."""
    now = now or timezone.now()
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))
    return f"STAY-{now:%Y%m%d}-{suffix}"


def _unique_transaction_code() -> str:
    while True:
        code = generate_transaction_code()
        if not Transaction.objects.filter(transaction_code=code).exists():
            return code


def normalize_gateway(gateway: Optional[str]) -> str:
    gateway = (gateway or PaymentGateway.BANK_TRANSFER).strip().lower()
    if gateway not in PaymentGateway.values:
        raise ValueError("Cổng thanh toán không hợp lệ")
    return gateway


def _assert_owner(invoice: Invoice, user) -> None:
    if invoice.user_id != user.id:
        raise PermissionError(NOT_OWNER_MESSAGE)


def _assert_payable(invoice: Invoice) -> None:
    if invoice.status == InvoiceStatus.PAID:
        raise ValueError(ALREADY_PAID_MESSAGE)
    if invoice.status == InvoiceStatus.CANCELLED:
        raise ValueError("Hóa đơn đã bị hủy")


def canonical_amount(amount) -> str:
    """Two-decimal string used in callback signatures."""
    return format(Decimal(str(amount)).quantize(Decimal("0.01")), 'f')


def compute_signature(transaction_code: str, amount, status: str) -> str:
    """hex(HMAC-SHA256(secret, "<code>|<amount>|<STATUS>"))"""
    message = f"{transaction_code}|{canonical_amount(amount)}|{status.upper()}"
    return hmac.new(
        settings.PAYMENT_CALLBACK_SECRET.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def verify_signature(transaction_code: str, amount, status: str, signature: Optional[str]) -> bool:
    if not signature:
        return False
    expected = compute_signature(transaction_code, amount, status)
    return hmac.compare_digest(expected, signature.strip().lower())


# =============================================================================
# Payment session
# =============================================================================

def create_payment_url(
    invoice_id: UUID,
    user,
    gateway: Optional[str] = None,
    return_url: Optional[str] = None,
) -> PaymentUrlDTO:
    """
    Open a payment session for the invoice owner.

    Inserts a pending Transaction for the invoice amount and returns the
    payment page URL. No external gateway is contacted.

    Raises:
        Invoice.DoesNotExist: Unknown invoice
        PermissionError: Caller does not own the invoice
        ValueError: Invoice already paid/cancelled or unknown gateway
    """
    invoice = Invoice.objects.get(id=invoice_id)
    _assert_owner(invoice, user)
    _assert_payable(invoice)
    gateway = normalize_gateway(gateway)

    now = timezone.now()
    txn = Transaction.objects.create(
        org_id=invoice.org_id,
        invoice=invoice,
        user_id=user.id,
        payment_gateway=gateway,
        transaction_code=_unique_transaction_code(),
        amount_paid=invoice.amount,
        payment_date=now,
        status=TransactionStatus.PENDING,
    )

    return_url = return_url or f"{settings.APP_URL}/resident/invoices"
    payment_url = (
        f"/payment/{invoice.id}?gateway={gateway}"
        f"&returnUrl={quote(return_url, safe='')}&txn={txn.transaction_code}"
    )

    logger.info(f"Opened payment session {txn.transaction_code} for invoice {invoice.invoice_number}")
    return PaymentUrlDTO(
        payment_url=payment_url,
        transaction_code=txn.transaction_code,
        expires_at=now + payment_expiry_window(),
    )


def generate_payment_qr(invoice_id: UUID, user, transaction_code: str) -> PaymentQrDTO:
    """
    Build the bank-transfer QR for an invoice.

    Raises:
        Invoice.DoesNotExist: Unknown invoice
        PermissionError: Caller does not own the invoice
        ValueError: Invoice already paid/cancelled, or the code belongs to another invoice
    """
    invoice = Invoice.objects.get(id=invoice_id)
    _assert_owner(invoice, user)
    _assert_payable(invoice)

    txn = Transaction.objects.filter(transaction_code=transaction_code).first()
    if txn and txn.invoice_id != invoice.id:
        raise ValueError(CODE_MISMATCH_MESSAGE)

    bank_info = qr_service.get_bank_info()
    content = qr_service.build_transfer_content(invoice.invoice_number, invoice.amount)
    payload = qr_service.build_qr_payload(bank_info, invoice.amount, content)

    started_at = txn.payment_date if txn else timezone.now()

    return PaymentQrDTO(
        qr_code_data_url=qr_service.render_qr_data_url(payload),
        bank_info=bank_info,
        amount=invoice.amount,
        transfer_content=content,
        transaction_code=transaction_code,
        invoice_number=invoice.invoice_number,
        expires_at=started_at + payment_expiry_window(),
    )


def check_payment_status(transaction_code: str, user) -> PaymentStatusDTO:
    """
    Status of one transaction for its payer or a billing admin of its
    organization.

    Raises:
        Transaction.DoesNotExist: Unknown transaction code
        PermissionError: Caller is neither the payer nor a billing admin
    """
    txn = Transaction.objects.select_related('invoice').get(transaction_code=transaction_code)
    is_admin = (
        txn.org_id == user.org_id
        and user_has_permission(user, Permissions.BILLING_VIEW_ALL_INVOICES)
    )
    if txn.user_id != user.id and not is_admin:
        raise PermissionError(NO_ACCESS_TRANSACTION_MESSAGE)
    return PaymentStatusDTO(
        transaction_code=txn.transaction_code,
        status=txn.status,
        invoice_id=txn.invoice_id,
        invoice_status=txn.invoice.status,
    )


# =============================================================================
# Settlement
# =============================================================================

def settle_invoice(
    invoice_id: UUID,
    txn: Transaction,
    gateway: Optional[str] = None,
    gateway_response: Optional[dict] = None,
) -> bool:
    """
    Mark the transaction completed and the invoice paid, atomically.

    Returns:
        True if the invoice moved to paid, False if it was already paid.

    Raises:
        ValueError: The invoice was cancelled
    """
    with db_transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(id=invoice_id)
        txn = Transaction.objects.select_for_update().get(id=txn.id)

        if invoice.status == InvoiceStatus.PAID:
            logger.warning(
                f"Settlement of {txn.transaction_code} skipped: invoice {invoice.invoice_number} already paid"
            )
            return False
        if invoice.status == InvoiceStatus.CANCELLED:
            raise ValueError("Hóa đơn đã bị hủy")

        now = timezone.now()

        txn.status = TransactionStatus.COMPLETED
        txn.payment_date = now
        if gateway:
            txn.payment_gateway = normalize_gateway(gateway)
        if gateway_response is not None:
            txn.gateway_response = gateway_response
        txn.save()

        invoice.status = InvoiceStatus.PAID
        invoice.paid_date = now
        invoice.save(update_fields=['status', 'paid_date', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} settled by {txn.transaction_code}")
    return True


def confirm_payment(
    invoice_id: UUID,
    user,
    transaction_code: Optional[str] = None,
    gateway: Optional[str] = None,
) -> Tuple[Invoice, Transaction]:
    """
    Manual confirmation by the invoice owner or a billing admin.

    Completes the transaction found by code, or records a completed one
    when the code is unknown.

    Raises:
        Invoice.DoesNotExist: Unknown invoice
        PermissionError: Caller is neither owner nor billing admin
        ValueError: Invoice already paid/cancelled, or the code belongs to another invoice
    """
    invoice = Invoice.objects.get(id=invoice_id)
    is_admin = (
        user_has_permission(user, Permissions.BILLING_CONFIRM_PAYMENT)
        and invoice.org_id == user.org_id
    )
    if invoice.user_id != user.id and not is_admin:
        raise PermissionError(NOT_OWNER_MESSAGE)
    _assert_payable(invoice)

    with db_transaction.atomic():
        txn = None
        if transaction_code:
            txn = Transaction.objects.filter(transaction_code=transaction_code).first()
            if txn and txn.invoice_id != invoice.id:
                raise ValueError(CODE_MISMATCH_MESSAGE)

        if txn is None:
            txn = Transaction.objects.create(
                org_id=invoice.org_id,
                invoice=invoice,
                user_id=invoice.user_id,
                payment_gateway=normalize_gateway(gateway),
                transaction_code=transaction_code or _unique_transaction_code(),
                amount_paid=invoice.amount,
                payment_date=timezone.now(),
                status=TransactionStatus.PENDING,
                notes=f"Confirmed manually by {user.email}",
            )

        if not settle_invoice(invoice.id, txn, gateway=gateway):
            raise ValueError(ALREADY_PAID_MESSAGE)

    invoice.refresh_from_db()
    txn.refresh_from_db()
    return invoice, txn


def process_payment_callback(data: dict, signature: Optional[str] = None) -> CallbackResultDTO:
    """
    Apply a gateway callback.

    Keys may be camelCase or snake_case. SUCCESS settles the invoice,
    FAILED fails the transaction, PENDING leaves it as is. A callback for a
    completed transaction changes nothing.

    Raises:
        ValueError: Missing/invalid fields or amount mismatch
        PermissionError: Bad signature
        Transaction.DoesNotExist: Unknown transaction code
    """
    data = to_snake_case(dict(data))
    query_signature = data.pop('signature', None)
    signature = signature or query_signature

    transaction_code = (data.get('transaction_code') or '').strip()
    raw_amount = data.get('amount')
    status = (data.get('status') or '').strip().upper()

    if not transaction_code or raw_amount in (None, '') or not status:
        raise ValueError("Thiếu thông tin callback")
    if status not in CALLBACK_STATUSES:
        raise ValueError("Trạng thái callback không hợp lệ")
    try:
        amount = Decimal(str(raw_amount))
    except (InvalidOperation, ValueError):
        raise ValueError("Số tiền không hợp lệ")

    if not verify_signature(transaction_code, amount, status, signature):
        logger.warning(f"Rejected callback for {transaction_code}: bad signature")
        raise PermissionError("Chữ ký callback không hợp lệ")

    txn = Transaction.objects.select_related('invoice').get(transaction_code=transaction_code)

    if amount != txn.amount_paid:
        logger.warning(
            f"Rejected callback for {transaction_code}: amount {amount} != {txn.amount_paid}"
        )
        raise ValueError("Số tiền không khớp với giao dịch")

    if txn.status == TransactionStatus.COMPLETED:
        logger.info(f"Callback for completed transaction {transaction_code} ignored")
        return CallbackResultDTO(
            transaction_code=transaction_code,
            status=txn.status,
            invoice_status=txn.invoice.status,
            processed=False,
        )

    gateway_response = data.get('gateway_response') or data

    if status == "SUCCESS":
        processed = settle_invoice(txn.invoice_id, txn, gateway_response=gateway_response)
    else:
        with db_transaction.atomic():
            txn = Transaction.objects.select_for_update().get(id=txn.id)
            if status == "FAILED":
                txn.status = TransactionStatus.FAILED
            txn.gateway_response = gateway_response
            txn.save()
        processed = status == "FAILED"

    txn.refresh_from_db()
    logger.info(f"Callback {status} applied to {transaction_code}")
    return CallbackResultDTO(
        transaction_code=transaction_code,
        status=txn.status,
        invoice_status=txn.invoice.status,
        processed=processed,
    )


# =============================================================================
# Resident history
# =============================================================================

def list_user_transactions(user_id: UUID, page: int = 1, limit: int = 10) -> Tuple[list, PageInfo]:
    queryset = Transaction.objects.filter(user_id=user_id).select_related('invoice')
    return paginate(queryset.order_by('-created_at'), page, limit)
