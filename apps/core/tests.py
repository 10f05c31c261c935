import shutil
import tempfile
from uuid import uuid4

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, Client, SimpleTestCase, override_settings

from apps.identity.models import UserRole
from apps.apartments.models import Apartment
from .pagination import paginate
from .transform import to_snake_case, to_camel_case, to_report_payload


User = get_user_model()

# Smallest valid GIF
GIF_BYTES = (
    b'GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01\x00'
    b'\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;'
)


class TransformTest(SimpleTestCase):

    def test_snake_case_is_recursive(self):
        data = {"transactionCode": "STAY-1", "gatewayResponse": {"bankCode": "VCB"}, "items": [{"unitPrice": 1}]}
        self.assertEqual(
            to_snake_case(data),
            {"transaction_code": "STAY-1", "gateway_response": {"bank_code": "VCB"}, "items": [{"unit_price": 1}]},
        )

    def test_camel_case_leaves_values(self):
        self.assertEqual(
            to_camel_case({"total_amount": "total_amount", "monthly": [{"paid_count": 2}]}),
            {"totalAmount": "total_amount", "monthly": [{"paidCount": 2}]},
        )

    def test_snake_keys_unchanged_by_snake_case(self):
        self.assertEqual(to_snake_case({"already_snake": 1}), {"already_snake": 1})

    def test_report_payload_floats_decimals(self):
        from decimal import Decimal
        self.assertEqual(to_report_payload({"paid_amount": Decimal("10.50")}), {"paidAmount": 10.5})


class PaginationTest(TestCase):

    def setUp(self):
        org_id = uuid4()
        for i in range(12):
            Apartment.objects.create(
                org_id=org_id, apartment_number=f'P{i:02d}', building='P', floor=1, area=10, rent_price=1,
            )

    def test_pages(self):
        queryset = Apartment.objects.order_by('apartment_number')

        items, info = paginate(queryset, page=2, limit=5)
        self.assertEqual([a.apartment_number for a in items], ['P05', 'P06', 'P07', 'P08', 'P09'])
        self.assertEqual((info.total, info.total_pages), (12, 3))

        items, info = paginate(queryset, page=9, limit=5)
        self.assertEqual(items, [])

    def test_limit_is_capped(self):
        _, info = paginate(Apartment.objects.all(), page=1, limit=1000)
        self.assertEqual(info.limit, 100)


class UploadAPITest(TestCase):

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.media_root, ignore_errors=True)
        self.client = Client()
        self.user = User.objects.create_user(
            username='uploader',
            email='uploader@test.com',
            password='testpass123',
            org_id=uuid4(),
            role=UserRole.RESIDENT,
        )

    def test_upload_image(self):
        self.client.force_login(self.user)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                '/api/upload/image',
                {'image': SimpleUploadedFile('pool.gif', GIF_BYTES, content_type='image/gif')},
            )

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertRegex(data['image_url'], r'^/media/uploads/\d{4}/\d{2}/[0-9a-f]{32}\.gif$')
        self.assertEqual(data['file_type'], 'image/gif')
        self.assertEqual(data['file_size'], len(GIF_BYTES))

    def test_extension_follows_content_type(self):
        self.client.force_login(self.user)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                '/api/upload/image',
                {'image': SimpleUploadedFile('page.html', GIF_BYTES, content_type='image/png')},
            )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['image_url'].endswith('.png'))
        self.assertNotIn('.html', response.json()['image_url'])

    def test_rejects_non_image(self):
        self.client.force_login(self.user)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                '/api/upload/image',
                {'image': SimpleUploadedFile('notes.txt', b'hello', content_type='text/plain')},
            )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Chỉ chấp nhận file ảnh (JPEG, PNG, GIF, WEBP)')

    def test_rejects_large_file(self):
        self.client.force_login(self.user)
        big = SimpleUploadedFile('big.png', b'0' * (5 * 1024 * 1024 + 1), content_type='image/png')
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post('/api/upload/image', {'image': big})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Kích thước file không được vượt quá 5MB')

    def test_requires_login(self):
        response = self.client.post(
            '/api/upload/image',
            {'image': SimpleUploadedFile('pool.gif', GIF_BYTES, content_type='image/gif')},
        )
        self.assertEqual(response.status_code, 401)


class SeedDemoCommandTest(TestCase):

    def test_seed_is_idempotent(self):
        from django.core.management import call_command
        from io import StringIO
        from apps.billing.models import Invoice

        call_command('seed_demo', stdout=StringIO())
        call_command('seed_demo', stdout=StringIO())

        self.assertEqual(Apartment.objects.count(), 12)
        self.assertEqual(Apartment.objects.filter(status='occupied').count(), 2)
        self.assertEqual(Invoice.objects.count(), 4)
        self.assertTrue(User.objects.get(email='admin@sunrise.vn').is_superuser)
