import uuid
from django.core.validators import MinValueValidator
from django.db import models


class InvoiceType(models.TextChoices):
    RENT = 'rent', 'Rent'
    UTILITIES = 'utilities', 'Utilities'
    MAINTENANCE = 'maintenance', 'Maintenance'
    PARKING = 'parking', 'Parking'
    OTHER = 'other', 'Other'


class InvoiceStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    OVERDUE = 'overdue', 'Overdue'
    CANCELLED = 'cancelled', 'Cancelled'


class PaymentGateway(models.TextChoices):
    VNPAY = 'vnpay', 'VNPay'
    MOMO = 'momo', 'MoMo'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    CASH = 'cash', 'Cash'


class TransactionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


class Invoice(models.Model):
    """
    A charge issued to a resident for one apartment.

    State machine:
        pending -> paid | overdue | cancelled
        overdue -> paid | cancelled
    Paid and cancelled are terminal. Only payment_service.settle_invoice
    moves an invoice to paid.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)

    # Cross-app references (no FK - modular boundary)
    user_id = models.UUIDField(db_index=True)
    apartment_id = models.UUIDField(db_index=True)

    invoice_number = models.CharField(max_length=50, unique=True)
    invoice_type = models.CharField(max_length=20, choices=InvoiceType.choices, default=InvoiceType.OTHER)
    amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(0)])

    issue_date = models.DateField()
    due_date = models.DateField(db_index=True)
    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.PENDING,
        db_index=True,
    )
    paid_date = models.DateTimeField(null=True, blank=True, db_index=True)
    description = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.invoice_number} ({self.status})"

    @property
    def is_payable(self) -> bool:
        return self.status in (InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)


class Transaction(models.Model):
    """
    One payment attempt against an invoice, identified by its transaction code.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    org_id = models.UUIDField(db_index=True)

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='transactions')
    user_id = models.UUIDField(db_index=True)

    payment_gateway = models.CharField(
        max_length=20,
        choices=PaymentGateway.choices,
        default=PaymentGateway.BANK_TRANSFER,
    )
    transaction_code = models.CharField(max_length=50, unique=True)
    amount_paid = models.DecimalField(max_digits=14, decimal_places=2)
    payment_date = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING,
        db_index=True,
    )
    gateway_response = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.transaction_code} ({self.status})"
