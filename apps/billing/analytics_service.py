"""
Analytics services for Billing.
Provides invoice totals, revenue by month and the recent-activity feed.
"""
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone

from .models import Invoice, InvoiceStatus
from .dtos import (
    InvoiceStatsDTO, MonthlyRevenueDTO, RevenueSummaryDTO, FinancialActivityDTO,
)

RECENT_ACTIVITY_LIMIT = 5
RECENT_PER_KIND = 3
UPCOMING_DUE_DAYS = 3


def get_invoice_stats(org_id: UUID) -> InvoiceStatsDTO:
    """
    Counts and amount sums of all, paid, pending and overdue invoices.
    """
    aggregated = Invoice.objects.filter(org_id=org_id).aggregate(
        total_invoices=Count('id'),
        paid_invoices=Count('id', filter=Q(status=InvoiceStatus.PAID)),
        pending_invoices=Count('id', filter=Q(status=InvoiceStatus.PENDING)),
        overdue_invoices=Count('id', filter=Q(status=InvoiceStatus.OVERDUE)),
        total_amount=Sum('amount'),
        paid_amount=Sum('amount', filter=Q(status=InvoiceStatus.PAID)),
        pending_amount=Sum('amount', filter=Q(status=InvoiceStatus.PENDING)),
        overdue_amount=Sum('amount', filter=Q(status=InvoiceStatus.OVERDUE)),
    )

    return InvoiceStatsDTO(
        total_invoices=aggregated['total_invoices'],
        paid_invoices=aggregated['paid_invoices'],
        pending_invoices=aggregated['pending_invoices'],
        overdue_invoices=aggregated['overdue_invoices'],
        total_amount=aggregated['total_amount'] or Decimal('0.00'),
        paid_amount=aggregated['paid_amount'] or Decimal('0.00'),
        pending_amount=aggregated['pending_amount'] or Decimal('0.00'),
        overdue_amount=aggregated['overdue_amount'] or Decimal('0.00'),
    )


def _day_start(value: date) -> datetime:
    return timezone.make_aware(datetime.combine(value, time.min))


def get_revenue_summary(
    org_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> RevenueSummaryDTO:
    """
    Revenue from paid invoices, bucketed by the month they were paid.

    Both bounds are inclusive calendar days. Months are returned newest first.
    """
    queryset = Invoice.objects.filter(org_id=org_id, status=InvoiceStatus.PAID)
    if start_date:
        queryset = queryset.filter(paid_date__gte=_day_start(start_date))
    if end_date:
        queryset = queryset.filter(paid_date__lt=_day_start(end_date + timedelta(days=1)))

    monthly_data = (
        queryset
        .annotate(month=TruncMonth('paid_date'))
        .values('month')
        .annotate(revenue=Sum('amount'), count=Count('id'))
        .order_by('-month')
    )

    monthly = [
        MonthlyRevenueDTO(
            year=row['month'].year,
            month=row['month'].month,
            revenue=row['revenue'] or Decimal('0.00'),
            count=row['count'],
        )
        for row in monthly_data
    ]

    total = queryset.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
    return RevenueSummaryDTO(total=total, monthly=monthly)


def get_financial_activities(org_id: UUID) -> List[FinancialActivityDTO]:
    """
    Recent payments and new invoices plus an upcoming-due reminder,
    newest first.
    """
    activities = []

    recent_payments = (
        Invoice.objects
        .filter(org_id=org_id, status=InvoiceStatus.PAID, paid_date__isnull=False)
        .order_by('-paid_date')[:RECENT_PER_KIND]
    )
    for invoice in recent_payments:
        activities.append(FinancialActivityDTO(
            id=f"payment-{invoice.id}",
            type="payment",
            title="Thanh toán thành công",
            description=f"Hóa đơn {invoice.invoice_number} đã được thanh toán",
            amount=invoice.amount,
            timestamp=invoice.paid_date,
            icon="dollar",
            color="green",
            invoice_id=invoice.id,
        ))

    recent_invoices = Invoice.objects.filter(org_id=org_id).order_by('-created_at')[:RECENT_PER_KIND]
    for invoice in recent_invoices:
        activities.append(FinancialActivityDTO(
            id=f"invoice-{invoice.id}",
            type="invoice",
            title="Hóa đơn mới",
            description=f"Hóa đơn {invoice.invoice_number} đã được tạo",
            amount=invoice.amount,
            timestamp=invoice.created_at,
            icon="receipt",
            color="blue",
            invoice_id=invoice.id,
        ))

    today = timezone.localdate()
    upcoming = Invoice.objects.filter(
        org_id=org_id,
        status=InvoiceStatus.PENDING,
        due_date__gte=today,
        due_date__lte=today + timedelta(days=UPCOMING_DUE_DAYS),
    ).aggregate(count=Count('id'), total=Sum('amount'))

    if upcoming['count']:
        activities.append(FinancialActivityDTO(
            id="upcoming-due",
            type="reminder",
            title="Hóa đơn sắp đến hạn",
            description=f"{upcoming['count']} hóa đơn sẽ đến hạn trong {UPCOMING_DUE_DAYS} ngày tới",
            amount=upcoming['total'] or Decimal('0.00'),
            timestamp=timezone.now(),
            icon="calendar",
            color="yellow",
        ))

    activities.sort(key=lambda a: a.timestamp, reverse=True)
    return activities[:RECENT_ACTIVITY_LIMIT]
