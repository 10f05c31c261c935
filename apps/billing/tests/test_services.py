"""
Unit tests for billing services.
Tests invoice numbering, settlement, callbacks, the overdue sweep and reports.
"""
import re
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.conf import settings
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from apps.apartments.models import Apartment
from apps.identity.models import UserRole
from apps.billing import invoice_service, payment_service, analytics_service, qr_service
from apps.billing.models import Invoice, InvoiceStatus, InvoiceType, Transaction, TransactionStatus


User = get_user_model()

CODE_PATTERN = re.compile(r"^STAY-\d{8}-[0-9A-Z]{6}$")


class BillingFixtureMixin:
    """Shared org, resident, admin and apartment."""

    def setUp(self):
        self.org_id = uuid4()
        self.admin = User.objects.create_user(
            username='billing_admin',
            email='billing_admin@test.com',
            password='testpass123',
            org_id=self.org_id,
            role=UserRole.ADMIN,
        )
        self.resident = User.objects.create_user(
            username='billing_resident',
            email='billing_resident@test.com',
            password='testpass123',
            full_name='Nguyen Van A',
            org_id=self.org_id,
            role=UserRole.RESIDENT,
        )
        self.apartment = Apartment.objects.create(
            org_id=self.org_id,
            apartment_number='A101',
            building='A',
            floor=1,
            area=Decimal('60'),
            rent_price=Decimal('5000000'),
        )

    def make_invoice(self, amount='5000000', due_in_days=7, **kwargs):
        return invoice_service.create_invoice(
            org_id=self.org_id,
            user_id=self.resident.id,
            apartment_id=self.apartment.id,
            invoice_type=kwargs.pop('invoice_type', 'rent'),
            amount=Decimal(amount),
            due_date=timezone.localdate() + timedelta(days=due_in_days),
            **kwargs,
        )

    def callback(self, txn, status='SUCCESS', amount=None, signature=None):
        amount = txn.amount_paid if amount is None else amount
        data = {
            'transactionCode': txn.transaction_code,
            'amount': str(amount),
            'status': status,
        }
        if signature is None:
            signature = payment_service.compute_signature(txn.transaction_code, amount, status)
        return payment_service.process_payment_callback(data, signature)


class InvoiceServiceTest(BillingFixtureMixin, TestCase):

    def test_create_invoice_is_pending_with_number(self):
        invoice = self.make_invoice()

        self.assertEqual(invoice.status, InvoiceStatus.PENDING)
        self.assertEqual(invoice.issue_date, timezone.localdate())
        self.assertTrue(re.match(r"^INV-\d+-1$", invoice.invoice_number))

    def test_billing_labels_are_mapped(self):
        self.assertEqual(invoice_service.normalize_invoice_type('ELECTRICITY'), InvoiceType.UTILITIES)
        self.assertEqual(invoice_service.normalize_invoice_type('REPAIR'), InvoiceType.MAINTENANCE)
        self.assertEqual(invoice_service.normalize_invoice_type('rent'), InvoiceType.RENT)
        self.assertEqual(invoice_service.normalize_invoice_type('GYM'), InvoiceType.OTHER)

    def test_negative_amount_rejected(self):
        with self.assertRaisesMessage(ValueError, "Số tiền không hợp lệ"):
            self.make_invoice(amount='-1')
        self.assertEqual(Invoice.objects.count(), 0)

    def test_resident_of_other_org_rejected(self):
        outsider = User.objects.create_user(
            username='outsider',
            email='outsider@test.com',
            password='testpass123',
            org_id=uuid4(),
        )
        with self.assertRaisesMessage(ValueError, "Không tìm thấy cư dân"):
            invoice_service.create_invoice(
                org_id=self.org_id,
                user_id=outsider.id,
                apartment_id=self.apartment.id,
                invoice_type='rent',
                amount=Decimal('100'),
                due_date=timezone.localdate(),
            )

    def test_status_change_to_paid_is_refused(self):
        invoice = self.make_invoice()
        with self.assertRaisesMessage(ValueError, "Vui lòng sử dụng chức năng xác nhận thanh toán"):
            invoice_service.update_invoice_status(self.org_id, invoice.id, InvoiceStatus.PAID)

    def test_cancel_pending_invoice(self):
        invoice = self.make_invoice()
        updated = invoice_service.update_invoice_status(self.org_id, invoice.id, InvoiceStatus.CANCELLED)
        self.assertEqual(updated.status, InvoiceStatus.CANCELLED)

    def test_paid_invoice_cannot_be_deleted(self):
        invoice = self.make_invoice()
        payment_service.confirm_payment(invoice.id, self.admin)

        with self.assertRaisesMessage(ValueError, "Không thể xóa hóa đơn đã thanh toán"):
            invoice_service.delete_invoice(self.org_id, invoice.id)


class OverdueSweepTest(BillingFixtureMixin, TestCase):

    def test_only_past_due_pending_invoices_become_overdue(self):
        past_due = self.make_invoice(due_in_days=-1)
        due_today = self.make_invoice(due_in_days=0)
        future = self.make_invoice(due_in_days=5)
        paid_past_due = self.make_invoice(due_in_days=-3)
        payment_service.confirm_payment(paid_past_due.id, self.resident)
        cancelled = self.make_invoice(due_in_days=-3)
        invoice_service.update_invoice_status(self.org_id, cancelled.id, InvoiceStatus.CANCELLED)

        count = invoice_service.mark_overdue_invoices()

        self.assertEqual(count, 1)
        statuses = {
            i.id: i.status for i in Invoice.objects.all()
        }
        self.assertEqual(statuses[past_due.id], InvoiceStatus.OVERDUE)
        self.assertEqual(statuses[due_today.id], InvoiceStatus.PENDING)
        self.assertEqual(statuses[future.id], InvoiceStatus.PENDING)
        self.assertEqual(statuses[paid_past_due.id], InvoiceStatus.PAID)
        self.assertEqual(statuses[cancelled.id], InvoiceStatus.CANCELLED)

    def test_celery_task_runs_sweep(self):
        from apps.billing.tasks import mark_overdue_invoices

        self.make_invoice(due_in_days=-1)
        as_of = (timezone.localdate() + timedelta(days=10)).isoformat()

        result = mark_overdue_invoices(as_of=as_of)

        self.assertEqual(result, "Marked 1 invoices overdue")
        self.assertFalse(Invoice.objects.filter(status=InvoiceStatus.PENDING).exists())


class PaymentSessionTest(BillingFixtureMixin, TestCase):

    def test_transaction_code_format(self):
        for _ in range(20):
            self.assertRegex(payment_service.generate_transaction_code(), CODE_PATTERN)

    def test_create_payment_url(self):
        invoice = self.make_invoice()

        result = payment_service.create_payment_url(invoice.id, self.resident, gateway='vnpay')

        self.assertRegex(result.transaction_code, CODE_PATTERN)
        self.assertTrue(result.payment_url.startswith(f"/payment/{invoice.id}?gateway=vnpay&returnUrl="))
        self.assertTrue(result.payment_url.endswith(f"&txn={result.transaction_code}"))
        self.assertIn("%2Fresident%2Finvoices", result.payment_url)

        txn = Transaction.objects.get(transaction_code=result.transaction_code)
        self.assertEqual(txn.status, TransactionStatus.PENDING)
        self.assertEqual(txn.amount_paid, invoice.amount)
        self.assertEqual(result.expires_at - txn.payment_date, timedelta(minutes=15))

    def test_paid_invoice_creates_no_transaction(self):
        invoice = self.make_invoice()
        payment_service.confirm_payment(invoice.id, self.admin)
        count_before = Transaction.objects.count()

        with self.assertRaisesMessage(ValueError, "Hóa đơn đã được thanh toán"):
            payment_service.create_payment_url(invoice.id, self.resident)

        self.assertEqual(Transaction.objects.count(), count_before)

    def test_only_owner_may_pay(self):
        invoice = self.make_invoice()
        with self.assertRaisesMessage(PermissionError, "Bạn không có quyền thanh toán hóa đơn này"):
            payment_service.create_payment_url(invoice.id, self.admin)

    def test_generate_qr(self):
        invoice = self.make_invoice()
        session = payment_service.create_payment_url(invoice.id, self.resident)

        qr = payment_service.generate_payment_qr(invoice.id, self.resident, session.transaction_code)

        self.assertTrue(qr.qr_code_data_url.startswith("data:image/png;base64,"))
        self.assertEqual(qr.transfer_content, f"STAYEASE {invoice.invoice_number} 5000000")
        self.assertEqual(qr.bank_info.bank_id, settings.BANK_ID)
        self.assertEqual(qr.expires_at, session.expires_at)

    def test_qr_refuses_code_of_other_invoice(self):
        invoice = self.make_invoice()
        other = self.make_invoice(amount='100000')
        session = payment_service.create_payment_url(other.id, self.resident)

        with self.assertRaisesMessage(ValueError, "Mã giao dịch không khớp với hóa đơn"):
            payment_service.generate_payment_qr(invoice.id, self.resident, session.transaction_code)

    def test_qr_payload_layout(self):
        bank = qr_service.get_bank_info()
        payload = qr_service.build_qr_payload(bank, Decimal('5000000.00'), "STAYEASE INV-1-1 5000000")
        self.assertEqual(
            payload,
            f"{bank.bank_id}|{bank.account_no}|{bank.account_name}|5000000|STAYEASE INV-1-1 5000000",
        )


class SettlementTest(BillingFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.invoice = self.make_invoice()
        session = payment_service.create_payment_url(self.invoice.id, self.resident)
        self.txn = Transaction.objects.get(transaction_code=session.transaction_code)

    def test_success_callback_settles_invoice(self):
        result = self.callback(self.txn)

        self.assertTrue(result.processed)
        self.txn.refresh_from_db()
        self.invoice.refresh_from_db()
        self.assertEqual(self.txn.status, TransactionStatus.COMPLETED)
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(self.invoice.paid_date)

    def test_repeated_callback_is_noop(self):
        self.callback(self.txn)
        self.invoice.refresh_from_db()
        paid_date = self.invoice.paid_date

        result = self.callback(self.txn)

        self.assertFalse(result.processed)
        self.assertEqual(result.status, TransactionStatus.COMPLETED)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.paid_date, paid_date)

    def test_bad_signature_changes_nothing(self):
        with self.assertRaises(PermissionError):
            self.callback(self.txn, signature='0' * 64)

        self.txn.refresh_from_db()
        self.invoice.refresh_from_db()
        self.assertEqual(self.txn.status, TransactionStatus.PENDING)
        self.assertEqual(self.invoice.status, InvoiceStatus.PENDING)

    def test_amount_mismatch_changes_nothing(self):
        with self.assertRaisesMessage(ValueError, "Số tiền không khớp với giao dịch"):
            self.callback(self.txn, amount=Decimal('1000'))

        self.txn.refresh_from_db()
        self.invoice.refresh_from_db()
        self.assertEqual(self.txn.status, TransactionStatus.PENDING)
        self.assertIsNone(self.invoice.paid_date)

    def test_missing_fields(self):
        with self.assertRaisesMessage(ValueError, "Thiếu thông tin callback"):
            payment_service.process_payment_callback({'transaction_code': self.txn.transaction_code})

    def test_failed_callback_marks_transaction_failed(self):
        result = self.callback(self.txn, status='FAILED')

        self.assertEqual(result.status, TransactionStatus.FAILED)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PENDING)

    def test_pending_callback_keeps_pending(self):
        result = self.callback(self.txn, status='PENDING')
        self.assertEqual(result.status, TransactionStatus.PENDING)

    def test_settle_returns_false_when_already_paid(self):
        self.assertTrue(payment_service.settle_invoice(self.invoice.id, self.txn))
        self.assertFalse(payment_service.settle_invoice(self.invoice.id, self.txn))

    def test_settle_cancelled_invoice_refused(self):
        invoice_service.update_invoice_status(self.org_id, self.invoice.id, InvoiceStatus.CANCELLED)
        with self.assertRaisesMessage(ValueError, "Hóa đơn đã bị hủy"):
            payment_service.settle_invoice(self.invoice.id, self.txn)

    def test_confirm_payment_with_code(self):
        invoice, txn = payment_service.confirm_payment(
            self.invoice.id, self.admin, transaction_code=self.txn.transaction_code,
        )
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(txn.id, self.txn.id)
        self.assertEqual(txn.status, TransactionStatus.COMPLETED)

    def test_confirm_payment_without_code_records_transaction(self):
        invoice, txn = payment_service.confirm_payment(self.invoice.id, self.resident, gateway='cash')
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertEqual(txn.payment_gateway, 'cash')
        self.assertEqual(txn.status, TransactionStatus.COMPLETED)

    def test_confirm_payment_code_of_other_invoice(self):
        other = self.make_invoice()
        with self.assertRaisesMessage(ValueError, "Mã giao dịch không khớp với hóa đơn"):
            payment_service.confirm_payment(other.id, self.admin, transaction_code=self.txn.transaction_code)

    def test_check_payment_status(self):
        status = payment_service.check_payment_status(self.txn.transaction_code, self.resident)
        self.assertEqual(status.status, TransactionStatus.PENDING)
        self.assertEqual(status.invoice_status, InvoiceStatus.PENDING)

        with self.assertRaises(Transaction.DoesNotExist):
            payment_service.check_payment_status("STAY-20250101-XXXXXX", self.resident)

    def test_payment_status_visible_to_payer_and_admin_only(self):
        neighbour = User.objects.create_user(
            username='neighbour',
            email='neighbour@test.com',
            password='testpass123',
            org_id=self.org_id,
            role=UserRole.RESIDENT,
        )
        outside_admin = User.objects.create_user(
            username='outside_admin',
            email='outside_admin@test.com',
            password='testpass123',
            org_id=uuid4(),
            role=UserRole.ADMIN,
        )

        status = payment_service.check_payment_status(self.txn.transaction_code, self.admin)
        self.assertEqual(status.invoice_id, self.invoice.id)
        for user in (neighbour, outside_admin):
            with self.assertRaises(PermissionError):
                payment_service.check_payment_status(self.txn.transaction_code, user)


class AnalyticsServiceTest(BillingFixtureMixin, TestCase):

    def test_invoice_stats(self):
        paid = self.make_invoice(amount='100')
        payment_service.confirm_payment(paid.id, self.resident)
        self.make_invoice(amount='200')
        overdue = self.make_invoice(amount='300', due_in_days=-2)
        invoice_service.mark_overdue_invoices()

        stats = analytics_service.get_invoice_stats(self.org_id)

        self.assertEqual(stats.total_invoices, 3)
        self.assertEqual(stats.paid_invoices, 1)
        self.assertEqual(stats.pending_invoices, 1)
        self.assertEqual(stats.overdue_invoices, 1)
        self.assertEqual(stats.total_amount, Decimal('600'))
        self.assertEqual(stats.paid_amount, Decimal('100'))
        self.assertEqual(stats.overdue_amount, Decimal(str(overdue.amount)))

    def test_revenue_summary_counts_paid_only(self):
        for amount in ('100', '250'):
            invoice = self.make_invoice(amount=amount)
            payment_service.confirm_payment(invoice.id, self.resident)
        self.make_invoice(amount='999')

        today = timezone.localdate()
        summary = analytics_service.get_revenue_summary(self.org_id, today - timedelta(days=1), today)

        self.assertEqual(summary.total, Decimal('350'))
        self.assertEqual(len(summary.monthly), 1)
        self.assertEqual(summary.monthly[0].count, 2)
        self.assertEqual(summary.monthly[0].revenue, Decimal('350'))

    def test_revenue_outside_range_is_empty(self):
        invoice = self.make_invoice()
        payment_service.confirm_payment(invoice.id, self.resident)

        start = timezone.localdate() + timedelta(days=30)
        summary = analytics_service.get_revenue_summary(self.org_id, start, start + timedelta(days=30))

        self.assertEqual(summary.total, Decimal('0.00'))
        self.assertEqual(summary.monthly, [])

    def test_financial_activities(self):
        paid = self.make_invoice(amount='100', due_in_days=10)
        payment_service.confirm_payment(paid.id, self.resident)
        self.make_invoice(amount='200', due_in_days=2)
        self.make_invoice(amount='300', due_in_days=1)

        activities = analytics_service.get_financial_activities(self.org_id)

        self.assertLessEqual(len(activities), 5)
        kinds = {a.type for a in activities}
        self.assertEqual(kinds, {"payment", "invoice", "reminder"})

        reminder = next(a for a in activities if a.type == "reminder")
        self.assertEqual(reminder.id, "upcoming-due")
        self.assertEqual(reminder.amount, Decimal('500'))

        timestamps = [a.timestamp for a in activities]
        self.assertEqual(timestamps, sorted(timestamps, reverse=True))
