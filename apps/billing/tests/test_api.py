"""
Integration tests for billing API endpoints.
Tests API responses, permissions, and the end-to-end payment flow.
"""
import json
import re
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.conf import settings
from django.contrib.auth import get_user_model
from django.test import TestCase, Client
from django.utils import timezone

from apps.apartments.models import Apartment
from apps.governance.models import AuditLog
from apps.identity.models import UserRole
from apps.billing import payment_service
from apps.billing.models import Invoice, InvoiceStatus, Transaction, TransactionStatus


User = get_user_model()


class BillingAPITestBase(TestCase):

    def setUp(self):
        self.client = Client()
        self.org_id = uuid4()

        self.admin_user = User.objects.create_user(
            username='admin_test',
            email='admin@test.com',
            password='testpass123',
            org_id=self.org_id,
            role=UserRole.ADMIN,
        )
        self.resident = User.objects.create_user(
            username='resident_test',
            email='resident@test.com',
            password='testpass123',
            full_name='Tran Thi B',
            org_id=self.org_id,
            role=UserRole.RESIDENT,
        )
        self.other_resident = User.objects.create_user(
            username='other_test',
            email='other@test.com',
            password='testpass123',
            org_id=self.org_id,
            role=UserRole.RESIDENT,
        )
        self.apartment = Apartment.objects.create(
            org_id=self.org_id,
            apartment_number='B202',
            building='B',
            floor=2,
            area=Decimal('72'),
            rent_price=Decimal('5000000'),
        )

    def post_json(self, url, payload=None, **extra):
        return self.client.post(
            url,
            data=json.dumps(payload or {}),
            content_type='application/json',
            **extra,
        )

    def create_invoice_as_admin(self, amount="5000000", due_in_days=7, invoice_type="rent"):
        self.client.force_login(self.admin_user)
        return self.post_json('/api/invoices', {
            'user_id': str(self.resident.id),
            'apartment_id': str(self.apartment.id),
            'type': invoice_type,
            'amount': amount,
            'due_date': (timezone.localdate() + timedelta(days=due_in_days)).isoformat(),
            'description': 'Tiền thuê tháng này',
        })


class InvoiceAPITest(BillingAPITestBase):

    def test_admin_creates_invoice(self):
        response = self.create_invoice_as_admin(invoice_type="ELECTRICITY")

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(data['type'], 'utilities')
        self.assertEqual(data['apartment_number'], 'B202')
        self.assertEqual(data['user_name'], 'Tran Thi B')
        self.assertTrue(AuditLog.objects.filter(action='CREATE_INVOICE', org_id=self.org_id).exists())

    def test_resident_cannot_create_invoice(self):
        self.client.force_login(self.resident)
        response = self.post_json('/api/invoices', {
            'user_id': str(self.resident.id),
            'apartment_id': str(self.apartment.id),
            'type': 'rent',
            'amount': '100',
            'due_date': timezone.localdate().isoformat(),
        })
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'Không có quyền truy cập')

    def test_list_invoices_filters_by_status(self):
        self.create_invoice_as_admin()
        self.create_invoice_as_admin(due_in_days=-5)
        Invoice.objects.filter(due_date__lt=timezone.localdate()).update(status=InvoiceStatus.OVERDUE)

        response = self.client.get('/api/invoices?status=overdue')

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['pagination']['total'], 1)
        self.assertEqual(body['data'][0]['status'], 'overdue')

    def test_get_invoice_owner_or_admin_only(self):
        invoice_id = self.create_invoice_as_admin().json()['id']

        self.client.force_login(self.resident)
        self.assertEqual(self.client.get(f'/api/invoices/{invoice_id}').status_code, 200)

        self.client.force_login(self.other_resident)
        response = self.client.get(f'/api/invoices/{invoice_id}')
        self.assertEqual(response.status_code, 403)

    def test_unknown_invoice_returns_404(self):
        self.client.force_login(self.admin_user)
        response = self.client.get(f'/api/invoices/{uuid4()}')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'Không tìm thấy hóa đơn')

    def test_cancel_and_refuse_manual_paid(self):
        invoice_id = self.create_invoice_as_admin().json()['id']

        response = self.client.patch(
            f'/api/invoices/{invoice_id}/status',
            data=json.dumps({'status': 'paid'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.patch(
            f'/api/invoices/{invoice_id}/status',
            data=json.dumps({'status': 'cancelled'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'cancelled')

    def test_delete_pending_invoice(self):
        invoice_id = self.create_invoice_as_admin().json()['id']
        response = self.client.delete(f'/api/invoices/{invoice_id}')
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Invoice.objects.filter(id=invoice_id).exists())

    def test_mark_overdue_endpoint_runs_sweep(self):
        self.create_invoice_as_admin(due_in_days=-1)
        self.create_invoice_as_admin(due_in_days=3)

        response = self.post_json('/api/invoices/mark-overdue')

        self.assertEqual(response.status_code, 200)
        self.assertIn('task_id', response.json())
        self.assertEqual(Invoice.objects.filter(status=InvoiceStatus.OVERDUE).count(), 1)


class PaymentFlowAPITest(BillingAPITestBase):

    def test_end_to_end_payment(self):
        invoice_id = self.create_invoice_as_admin(amount="5000000", due_in_days=7).json()['id']

        self.client.force_login(self.resident)
        response = self.post_json(f'/api/invoices/{invoice_id}/create-payment-url', {
            'payment_gateway': 'bank_transfer',
        })
        self.assertEqual(response.status_code, 200)
        session = response.json()
        code = session['transaction_code']
        self.assertRegex(code, r'^STAY-\d{8}-[0-9A-Z]{6}$')
        self.assertIn(f'txn={code}', session['payment_url'])

        txn = Transaction.objects.get(transaction_code=code)
        self.assertEqual(txn.status, TransactionStatus.PENDING)

        response = self.post_json(f'/api/invoices/{invoice_id}/generate-qr', {'transaction_code': code})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['qr_code_data_url'].startswith('data:image/png;base64,'))

        self.client.force_login(self.admin_user)
        response = self.post_json(f'/api/invoices/{invoice_id}/confirm-payment', {'transaction_code': code})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['invoice']['status'], 'paid')

        invoice = Invoice.objects.get(id=invoice_id)
        self.assertEqual(invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(invoice.paid_date)
        txn.refresh_from_db()
        self.assertEqual(txn.status, TransactionStatus.COMPLETED)
        self.assertTrue(AuditLog.objects.filter(action='CONFIRM_PAYMENT').exists())

        response = self.client.get(f'/api/invoices/payment-status/{code}')
        self.assertEqual(response.json()['invoice_status'], 'paid')

    def test_payment_url_for_paid_invoice_rejected(self):
        invoice_id = self.create_invoice_as_admin().json()['id']
        self.post_json(f'/api/invoices/{invoice_id}/confirm-payment')

        self.client.force_login(self.resident)
        response = self.post_json(f'/api/invoices/{invoice_id}/create-payment-url')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Hóa đơn đã được thanh toán')
        self.assertEqual(Transaction.objects.filter(invoice_id=invoice_id).count(), 1)

    def test_other_resident_cannot_pay(self):
        invoice_id = self.create_invoice_as_admin().json()['id']
        self.client.force_login(self.other_resident)

        response = self.post_json(f'/api/invoices/{invoice_id}/create-payment-url')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'Bạn không có quyền thanh toán hóa đơn này')

    def test_unknown_payment_status(self):
        self.client.force_login(self.resident)
        response = self.client.get('/api/invoices/payment-status/STAY-20250101-ZZZZZZ')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['error'], 'Không tìm thấy giao dịch')

    def test_payment_status_hidden_from_other_residents(self):
        invoice_id = self.create_invoice_as_admin().json()['id']
        self.client.force_login(self.resident)
        code = self.post_json(f'/api/invoices/{invoice_id}/create-payment-url').json()['transaction_code']

        self.client.force_login(self.other_resident)
        response = self.client.get(f'/api/invoices/payment-status/{code}')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'Bạn không có quyền xem giao dịch này')

        self.client.force_login(self.resident)
        response = self.client.get(f'/api/invoices/payment-status/{code}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'pending')

    def test_qr_rejects_code_of_other_invoice(self):
        first_id = self.create_invoice_as_admin().json()['id']
        second_id = self.create_invoice_as_admin(amount="100000").json()['id']
        self.client.force_login(self.resident)
        code = self.post_json(f'/api/invoices/{second_id}/create-payment-url').json()['transaction_code']

        response = self.post_json(f'/api/invoices/{first_id}/generate-qr', {'transaction_code': code})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Mã giao dịch không khớp với hóa đơn')


class PaymentCallbackAPITest(BillingAPITestBase):

    def setUp(self):
        super().setUp()
        invoice_id = self.create_invoice_as_admin(amount="5000000").json()['id']
        self.invoice = Invoice.objects.get(id=invoice_id)
        self.client.force_login(self.resident)
        code = self.post_json(f'/api/invoices/{invoice_id}/create-payment-url').json()['transaction_code']
        self.txn = Transaction.objects.get(transaction_code=code)
        self.client.logout()

    def signed_post(self, payload, signature=None):
        if signature is None:
            signature = payment_service.compute_signature(
                payload['transactionCode'], payload['amount'], payload['status'],
            )
        return self.post_json('/api/payment/callback', payload, HTTP_X_PAYMENT_SIGNATURE=signature)

    def test_success_callback_and_replay(self):
        payload = {'transactionCode': self.txn.transaction_code, 'amount': 5000000, 'status': 'SUCCESS'}

        response = self.signed_post(payload)
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['processed'])

        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)
        self.assertIsNotNone(self.invoice.paid_date)

        response = self.signed_post(payload)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['processed'])
        self.assertEqual(Transaction.objects.filter(status=TransactionStatus.COMPLETED).count(), 1)

    def test_bad_signature_rejected(self):
        payload = {'transactionCode': self.txn.transaction_code, 'amount': 5000000, 'status': 'SUCCESS'}

        response = self.signed_post(payload, signature='deadbeef')

        self.assertEqual(response.status_code, 401)
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, TransactionStatus.PENDING)
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PENDING)

    def test_amount_mismatch_rejected(self):
        payload = {'transactionCode': self.txn.transaction_code, 'amount': 1, 'status': 'SUCCESS'}

        response = self.signed_post(payload)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Số tiền không khớp với giao dịch')
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PENDING)

    def test_missing_fields(self):
        response = self.post_json('/api/payment/callback', {'status': 'SUCCESS'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Thiếu thông tin callback')

    def test_get_callback_redirects(self):
        amount = '5000000'
        signature = payment_service.compute_signature(self.txn.transaction_code, amount, 'SUCCESS')

        response = self.client.get('/api/payment/callback', {
            'transaction_code': self.txn.transaction_code,
            'amount': amount,
            'status': 'SUCCESS',
            'signature': signature,
        })

        self.assertEqual(response.status_code, 302)
        self.assertEqual(
            response['Location'],
            f"{settings.APP_URL}/payment/success?transaction_code={self.txn.transaction_code}",
        )
        self.invoice.refresh_from_db()
        self.assertEqual(self.invoice.status, InvoiceStatus.PAID)


class ResidentBillingAPITest(BillingAPITestBase):

    def test_me_invoices_and_transactions(self):
        first_id = self.create_invoice_as_admin(due_in_days=3).json()['id']
        self.create_invoice_as_admin(due_in_days=10)

        self.client.force_login(self.resident)
        self.post_json(f'/api/invoices/{first_id}/create-payment-url', {'payment_gateway': 'momo'})

        response = self.client.get('/api/me/invoices')
        self.assertEqual(response.status_code, 200)
        due_dates = [row['due_date'] for row in response.json()['data']]
        self.assertEqual(due_dates, sorted(due_dates, reverse=True))

        response = self.client.get('/api/me/transactions')
        self.assertEqual(response.status_code, 200)
        row = response.json()['data'][0]
        self.assertEqual(row['payment_gateway'], 'MOMO')
        self.assertEqual(row['status'], 'PENDING')

    def test_me_invoices_requires_login(self):
        response = self.client.get('/api/me/invoices')
        self.assertEqual(response.status_code, 401)


class FinancialAPITest(BillingAPITestBase):

    def test_stats_are_camel_case(self):
        invoice_id = self.create_invoice_as_admin(amount="1500000").json()['id']
        self.post_json(f'/api/invoices/{invoice_id}/confirm-payment')

        response = self.client.get('/api/financial/stats')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['totalInvoices'], 1)
        self.assertEqual(data['paidInvoices'], 1)
        self.assertEqual(data['paidAmount'], 1500000.0)

    def test_revenue_and_activities(self):
        invoice_id = self.create_invoice_as_admin(amount="2000000").json()['id']
        self.post_json(f'/api/invoices/{invoice_id}/confirm-payment')

        response = self.client.get('/api/financial/revenue')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['total'], 2000000.0)
        self.assertEqual(response.json()['monthly'][0]['count'], 1)

        response = self.client.get('/api/financial/activities')
        activities = response.json()['activities']
        self.assertEqual(activities[0]['type'], 'payment')
        self.assertIn('invoiceId', activities[0])

    def test_resident_cannot_view_reports(self):
        self.client.force_login(self.resident)
        self.assertEqual(self.client.get('/api/financial/stats').status_code, 403)
