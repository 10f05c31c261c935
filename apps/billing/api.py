"""
Billing API endpoints.

Invoices and their payment flow, the gateway callback, financial reports
for admins, and the resident's own invoices and transactions.
"""
import json
from dataclasses import asdict
from datetime import date
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.http import HttpRequest, HttpResponseRedirect
from ninja import Router
from ninja.errors import HttpError

from apps.core.task_service import TaskService
from apps.core.transform import to_report_payload
from apps.governance.audit_service import log_action, AuditAction
from apps.identity.decorators import has_permission, login_required
from apps.identity.permissions import Permissions, user_has_permission
from .models import Invoice, Transaction
from .schemas import (
    InvoiceIn, InvoiceStatusIn, InvoiceOut, InvoiceListOut,
    CreatePaymentUrlIn, PaymentUrlOut, GenerateQrIn, PaymentQrOut,
    ConfirmPaymentIn, PaymentStatusOut, TransactionOut, TransactionListOut,
)
from . import invoice_service, payment_service, analytics_service

invoices_router = Router(tags=["Invoices"])
payment_router = Router(tags=["Payment"])
financial_router = Router(tags=["Financial"])
me_router = Router(tags=["Me"])


# =============================================================================
# Helper Functions
# =============================================================================

def _invoice_out(invoice: Invoice) -> InvoiceOut:
    return invoice_service.serialize_invoices([invoice])[0]


def _transaction_out(txn: Transaction) -> TransactionOut:
    return TransactionOut(
        id=txn.id,
        invoice_id=txn.invoice_id,
        invoice_number=txn.invoice.invoice_number,
        payment_gateway=txn.payment_gateway.upper(),
        transaction_code=txn.transaction_code,
        amount_paid=txn.amount_paid,
        payment_date=txn.payment_date,
        status=txn.status.upper(),
        created_at=txn.created_at,
    )


# =============================================================================
# Invoices
# =============================================================================

@invoices_router.get("", response=InvoiceListOut, auth=None)
@has_permission(Permissions.BILLING_VIEW_ALL_INVOICES)
def list_invoices(
    request: HttpRequest,
    status: Optional[str] = None,
    user_id: Optional[UUID] = None,
    apartment_id: Optional[UUID] = None,
    type: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
):
    """
    List invoices of the organization.

    Query Parameters:
    - status: pending, paid, overdue or cancelled
    - user_id / apartment_id: restrict to one resident or apartment
    - type: invoice type (billing labels such as ELECTRICITY are accepted)
    """
    invoices, page_info = invoice_service.list_invoices(
        request.user.org_id,
        status=status,
        user_id=user_id,
        apartment_id=apartment_id,
        invoice_type=type,
        page=page,
        limit=limit,
    )
    return {"data": invoice_service.serialize_invoices(invoices), "pagination": page_info}


@invoices_router.post("", response={201: InvoiceOut}, auth=None)
@has_permission(Permissions.BILLING_MANAGE_INVOICES)
def create_invoice(request: HttpRequest, payload: InvoiceIn):
    user = request.user
    try:
        invoice = invoice_service.create_invoice(
            org_id=user.org_id,
            user_id=payload.user_id,
            apartment_id=payload.apartment_id,
            invoice_type=payload.type,
            amount=payload.amount,
            due_date=payload.due_date,
            description=payload.description,
            issue_date=payload.issue_date,
        )
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=user.org_id,
        action=AuditAction.CREATE_INVOICE,
        target_type="Invoice",
        target_id=invoice.id,
        target_label=invoice.invoice_number,
        performed_by=user,
        context={"amount": str(invoice.amount), "type": invoice.invoice_type},
    )
    return 201, _invoice_out(invoice)


@invoices_router.get("/stats", response=dict, auth=None)
@has_permission(Permissions.BILLING_VIEW_REPORTS)
def invoice_stats(request: HttpRequest):
    return to_report_payload(asdict(analytics_service.get_invoice_stats(request.user.org_id)))


@invoices_router.post("/mark-overdue", response=dict, auth=None)
@has_permission(Permissions.BILLING_MANAGE_INVOICES)
def run_overdue_sweep(request: HttpRequest, as_of: Optional[date] = None):
    """
    Queue the pending -> overdue sweep now instead of waiting for the daily run.
    """
    task_id = TaskService.mark_overdue_invoices(as_of)
    return {"task_id": task_id}


@invoices_router.get("/payment-status/{transaction_code}", response=PaymentStatusOut, auth=None)
@login_required
def payment_status(request: HttpRequest, transaction_code: str):
    try:
        result = payment_service.check_payment_status(transaction_code, request.user)
    except Transaction.DoesNotExist:
        raise HttpError(404, payment_service.TRANSACTION_NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(403, str(e))
    return asdict(result)


@invoices_router.get("/{invoice_id}", response=InvoiceOut, auth=None)
@login_required
def get_invoice(request: HttpRequest, invoice_id: UUID):
    """Owner or billing admin only."""
    user = request.user
    invoice = Invoice.objects.filter(id=invoice_id).first()
    if not invoice:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)

    is_admin = (
        user_has_permission(user, Permissions.BILLING_VIEW_ALL_INVOICES)
        and invoice.org_id == user.org_id
    )
    if invoice.user_id != user.id and not is_admin:
        raise HttpError(403, "Không có quyền truy cập")
    return _invoice_out(invoice)


@invoices_router.patch("/{invoice_id}/status", response=InvoiceOut, auth=None)
@has_permission(Permissions.BILLING_MANAGE_INVOICES)
def update_invoice_status(request: HttpRequest, invoice_id: UUID, payload: InvoiceStatusIn):
    try:
        invoice = invoice_service.update_invoice_status(request.user.org_id, invoice_id, payload.status)
    except ValueError as e:
        raise HttpError(400, str(e))
    if not invoice:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.UPDATE_INVOICE_STATUS,
        target_type="Invoice",
        target_id=invoice.id,
        target_label=invoice.invoice_number,
        performed_by=request.user,
        context={"status": invoice.status},
    )
    return _invoice_out(invoice)


@invoices_router.delete("/{invoice_id}", response={204: None}, auth=None)
@has_permission(Permissions.BILLING_MANAGE_INVOICES)
def delete_invoice(request: HttpRequest, invoice_id: UUID):
    try:
        deleted = invoice_service.delete_invoice(request.user.org_id, invoice_id)
    except ValueError as e:
        raise HttpError(400, str(e))
    if not deleted:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)

    log_action(
        org_id=request.user.org_id,
        action=AuditAction.DELETE_INVOICE,
        target_type="Invoice",
        target_id=invoice_id,
        target_label=str(invoice_id),
        performed_by=request.user,
    )
    return 204


# =============================================================================
# Payment flow
# =============================================================================

@invoices_router.post("/{invoice_id}/create-payment-url", response=PaymentUrlOut, auth=None)
@login_required
def create_payment_url(request: HttpRequest, invoice_id: UUID, payload: CreatePaymentUrlIn):
    """
    Open a payment session for one of the caller's invoices.
    """
    try:
        result = payment_service.create_payment_url(
            invoice_id,
            request.user,
            gateway=payload.payment_gateway,
            return_url=payload.return_url,
        )
    except Invoice.DoesNotExist:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(403, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return asdict(result)


@invoices_router.post("/{invoice_id}/generate-qr", response=PaymentQrOut, auth=None)
@login_required
def generate_qr(request: HttpRequest, invoice_id: UUID, payload: GenerateQrIn):
    try:
        result = payment_service.generate_payment_qr(invoice_id, request.user, payload.transaction_code)
    except Invoice.DoesNotExist:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(403, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return asdict(result)


@invoices_router.post("/{invoice_id}/confirm-payment", response=dict, auth=None)
@login_required
def confirm_payment(request: HttpRequest, invoice_id: UUID, payload: ConfirmPaymentIn):
    """
    Manually confirm payment of an invoice (owner or billing admin).
    """
    user = request.user
    try:
        invoice, txn = payment_service.confirm_payment(
            invoice_id,
            user,
            transaction_code=payload.transaction_code,
            gateway=payload.payment_gateway,
        )
    except Invoice.DoesNotExist:
        raise HttpError(404, invoice_service.NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(403, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))

    log_action(
        org_id=invoice.org_id,
        action=AuditAction.CONFIRM_PAYMENT,
        target_type="Invoice",
        target_id=invoice.id,
        target_label=invoice.invoice_number,
        performed_by=user,
        context={"transaction_code": txn.transaction_code, "gateway": txn.payment_gateway},
    )
    return {
        "success": True,
        "message": "Xác nhận thanh toán thành công",
        "invoice": _invoice_out(invoice).dict(),
        "transaction_code": txn.transaction_code,
    }


@payment_router.post("/callback", response=dict, auth=None)
def payment_callback(request: HttpRequest):
    """
    **Public Endpoint**: gateway callback, signed with X-Payment-Signature.

    Accepts camelCase or snake_case JSON keys.
    """
    try:
        payload = json.loads(request.body or b"{}")
    except ValueError:
        raise HttpError(400, "Dữ liệu không hợp lệ")
    if not isinstance(payload, dict):
        raise HttpError(400, "Dữ liệu không hợp lệ")

    signature = request.headers.get("X-Payment-Signature")
    try:
        result = payment_service.process_payment_callback(payload, signature)
    except Transaction.DoesNotExist:
        raise HttpError(404, payment_service.TRANSACTION_NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(401, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return {"success": True, **asdict(result)}


@payment_router.get("/callback", auth=None)
def payment_callback_redirect(request: HttpRequest):
    """
    **Public Endpoint**: browser-redirect callback. Query parameters carry the
    callback fields and the signature; on success the browser is sent to the
    payment success page.
    """
    data = request.GET.dict()
    signature = request.headers.get("X-Payment-Signature")
    try:
        result = payment_service.process_payment_callback(data, signature)
    except Transaction.DoesNotExist:
        raise HttpError(404, payment_service.TRANSACTION_NOT_FOUND_MESSAGE)
    except PermissionError as e:
        raise HttpError(401, str(e))
    except ValueError as e:
        raise HttpError(400, str(e))
    return HttpResponseRedirect(
        f"{settings.APP_URL}/payment/success?transaction_code={result.transaction_code}"
    )


# =============================================================================
# Financial reports
# =============================================================================

@financial_router.get("/stats", response=dict, auth=None)
@has_permission(Permissions.BILLING_VIEW_REPORTS)
def financial_stats(request: HttpRequest):
    return to_report_payload(asdict(analytics_service.get_invoice_stats(request.user.org_id)))


@financial_router.get("/revenue", response=dict, auth=None)
@has_permission(Permissions.BILLING_VIEW_REPORTS)
def financial_revenue(
    request: HttpRequest,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """
    Revenue from paid invoices within an optional paid-date range.
    """
    summary = analytics_service.get_revenue_summary(request.user.org_id, start_date, end_date)
    return to_report_payload(asdict(summary))


@financial_router.get("/activities", response=dict, auth=None)
@has_permission(Permissions.BILLING_VIEW_REPORTS)
def financial_activities(request: HttpRequest):
    activities = analytics_service.get_financial_activities(request.user.org_id)
    return {"activities": to_report_payload([asdict(a) for a in activities])}


# =============================================================================
# Resident self-service
# =============================================================================

@me_router.get("/invoices", response=InvoiceListOut, auth=None)
@login_required
def my_invoices(request: HttpRequest, status: Optional[str] = None, page: int = 1, limit: int = 50):
    invoices, page_info = invoice_service.list_user_invoices(
        request.user.id, status=status, page=page, limit=limit,
    )
    return {"data": invoice_service.serialize_invoices(invoices), "pagination": page_info}


@me_router.get("/transactions", response=TransactionListOut, auth=None)
@login_required
def my_transactions(request: HttpRequest, page: int = 1, limit: int = 10):
    transactions, page_info = payment_service.list_user_transactions(request.user.id, page, limit)
    return {"data": [_transaction_out(t) for t in transactions], "pagination": page_info}
