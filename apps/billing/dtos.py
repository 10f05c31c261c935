"""Data Transfer Objects for the Billing app."""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID


@dataclass(frozen=True)
class PaymentUrlDTO:
    payment_url: str
    transaction_code: str
    expires_at: datetime


@dataclass(frozen=True)
class BankInfoDTO:
    bank_id: str
    account_no: str
    account_name: str


@dataclass(frozen=True)
class PaymentQrDTO:
    qr_code_data_url: str
    bank_info: BankInfoDTO
    amount: Decimal
    transfer_content: str
    transaction_code: str
    invoice_number: str
    expires_at: datetime


@dataclass(frozen=True)
class PaymentStatusDTO:
    transaction_code: str
    status: str
    invoice_id: UUID
    invoice_status: str


@dataclass(frozen=True)
class CallbackResultDTO:
    transaction_code: str
    status: str
    invoice_status: str
    processed: bool


@dataclass(frozen=True)
class InvoiceStatsDTO:
    total_invoices: int
    paid_invoices: int
    pending_invoices: int
    overdue_invoices: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    overdue_amount: Decimal


@dataclass(frozen=True)
class MonthlyRevenueDTO:
    year: int
    month: int
    revenue: Decimal
    count: int


@dataclass(frozen=True)
class RevenueSummaryDTO:
    total: Decimal
    monthly: List[MonthlyRevenueDTO] = field(default_factory=list)


@dataclass(frozen=True)
class FinancialActivityDTO:
    id: str
    type: str
    title: str
    description: str
    amount: Decimal
    timestamp: datetime
    icon: str
    color: str
    invoice_id: Optional[UUID] = None
