"""Request/response schemas for the Billing API."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from ninja import Schema

from apps.core.pagination import PaginationOut


class InvoiceIn(Schema):
    user_id: UUID
    apartment_id: UUID
    type: str
    amount: Decimal
    due_date: date
    issue_date: Optional[date] = None
    description: str = ""


class InvoiceStatusIn(Schema):
    status: str


class InvoiceOut(Schema):
    id: UUID
    invoice_number: str
    user_id: UUID
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    apartment_id: UUID
    apartment_number: Optional[str] = None
    building: Optional[str] = None
    type: str
    amount: Decimal
    status: str
    issue_date: date
    due_date: date
    paid_date: Optional[datetime] = None
    description: str = ""
    created_at: datetime


class InvoiceListOut(Schema):
    data: List[InvoiceOut]
    pagination: PaginationOut


class CreatePaymentUrlIn(Schema):
    payment_gateway: str = "bank_transfer"
    return_url: Optional[str] = None


class PaymentUrlOut(Schema):
    payment_url: str
    transaction_code: str
    expires_at: datetime


class GenerateQrIn(Schema):
    transaction_code: str


class BankInfoOut(Schema):
    bank_id: str
    account_no: str
    account_name: str


class PaymentQrOut(Schema):
    qr_code_data_url: str
    bank_info: BankInfoOut
    amount: Decimal
    transfer_content: str
    transaction_code: str
    invoice_number: str
    expires_at: datetime


class ConfirmPaymentIn(Schema):
    transaction_code: Optional[str] = None
    payment_gateway: Optional[str] = None


class PaymentStatusOut(Schema):
    transaction_code: str
    status: str
    invoice_id: UUID
    invoice_status: str


class TransactionOut(Schema):
    id: UUID
    invoice_id: UUID
    invoice_number: Optional[str] = None
    payment_gateway: str
    transaction_code: str
    amount_paid: Decimal
    payment_date: datetime
    status: str
    created_at: datetime


class TransactionListOut(Schema):
    data: List[TransactionOut]
    pagination: PaginationOut
