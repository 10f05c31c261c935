import json
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from django.test import TestCase, Client
from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.amenities.models import Amenity, AmenityStatus
from apps.apartments.models import Apartment, ApartmentStatus
from apps.apartments.resident_service import assign_resident
from apps.billing import invoice_service
from apps.community.services import create_comment, create_post
from apps.identity.models import UserRole
from apps.maintenance import services as maintenance_service
from .services import occupancy_rate


User = get_user_model()


class DashboardTest(TestCase):

    def setUp(self):
        self.client = Client()
        self.org_id = uuid4()
        self.admin = self.make_user('admin', UserRole.ADMIN)
        self.staff = self.make_user('staff', UserRole.STAFF)
        self.resident = self.make_user('resident', UserRole.RESIDENT)

        self.apartments = [
            Apartment.objects.create(
                org_id=self.org_id,
                apartment_number=f'D10{i}',
                building='D',
                floor=1,
                area=Decimal('50'),
                rent_price=Decimal('3000000'),
            )
            for i in range(3)
        ]
        assign_resident(org_id=self.org_id, user_id=self.resident.id, apartment_id=self.apartments[0].id)
        self.resident.refresh_from_db()

    def make_user(self, name, role):
        return User.objects.create_user(
            username=name,
            email=f'{name}@test.com',
            password='testpass123',
            full_name=name.title(),
            org_id=self.org_id,
            role=role,
        )

    def test_occupancy_rate(self):
        self.assertEqual(occupancy_rate(1, 3), 33)
        self.assertEqual(occupancy_rate(2, 3), 67)
        self.assertEqual(occupancy_rate(0, 0), 0)

    def test_admin_stats(self):
        invoice_service.create_invoice(
            org_id=self.org_id,
            user_id=self.resident.id,
            apartment_id=self.apartments[0].id,
            invoice_type='rent',
            amount=Decimal('3000000'),
            due_date=timezone.localdate() + timedelta(days=5),
        )
        maintenance_service.create_request(self.resident, 'Hỏng khóa', 'Cửa chính', category='structural')

        self.client.force_login(self.admin)
        response = self.client.get('/api/dashboard/stats')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['totalUsers'], 2)
        self.assertEqual(data['totalApartments'], 3)
        self.assertEqual(data['occupiedApartments'], 1)
        self.assertEqual(data['activeResidents'], 1)
        self.assertEqual(data['occupancyRate'], 33)
        self.assertEqual(data['pendingRequests'], 1)
        self.assertEqual(data['recentInvoices'][0]['amount'], 3000000.0)
        self.assertEqual(len(data['recentRequests']), 1)

    def test_staff_dashboard(self):
        service_request = maintenance_service.create_request(self.resident, 'Đèn', 'Hỏng đèn', category='electrical')
        maintenance_service.accept_request(service_request, self.staff)

        self.client.force_login(self.staff)
        response = self.client.get('/api/dashboard/staff')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['assignedTotal'], 1)
        self.assertEqual(data['assignedByStatus']['inProgress'], 1)
        self.assertEqual(data['pendingRequests'], 0)

    def test_resident_cannot_see_admin_dashboard(self):
        self.client.force_login(self.resident)
        self.assertEqual(self.client.get('/api/dashboard/stats').status_code, 403)

    def test_public_home(self):
        Amenity.objects.create(org_id=self.org_id, name='Hồ bơi', status=AmenityStatus.ACTIVE)
        Amenity.objects.create(org_id=self.org_id, name='Phòng gym', status=AmenityStatus.MAINTENANCE)
        create_post(self.admin, 'Họp cư dân tối thứ bảy', post_type='announcement')
        create_post(self.resident, 'Góp ý bãi xe', post_type='suggestion')

        response = self.client.get(f'/api/home?org_id={self.org_id}')

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(len(data['apartments']), 2)
        self.assertTrue(all(a['status'] == ApartmentStatus.AVAILABLE for a in data['apartments']))
        self.assertEqual([a['name'] for a in data['amenities']], ['Hồ bơi'])
        self.assertEqual(len(data['posts']), 1)
        self.assertEqual(data['stats'], {'total': 3, 'available': 2, 'occupied': 1})

    def test_home_post_card_hides_comments_and_emails(self):
        post = create_post(self.resident, 'Cuối tuần đá bóng không?')
        create_comment(post, self.staff, 'Tôi tham gia, gọi số 0909000111')
        create_post(self.resident, 'Ai nhặt được chìa khóa?', is_anonymous=True)

        response = self.client.get(f'/api/home?org_id={self.org_id}')

        self.assertEqual(response.status_code, 200)
        posts = response.json()['posts']
        self.assertEqual(len(posts), 2)
        by_content = {p['content']: p for p in posts}
        card = by_content['Cuối tuần đá bóng không?']
        self.assertNotIn('comments', card)
        self.assertEqual(card['comments_count'], 1)
        self.assertEqual(card['author_name'], 'Resident')
        self.assertIsNone(by_content['Ai nhặt được chìa khóa?']['author_name'])
        body = response.content.decode()
        self.assertNotIn('resident@test.com', body)
        self.assertNotIn('0909000111', body)

    def test_home_shows_only_requested_organization(self):
        outsider = User.objects.create_user(
            username='outsider',
            email='outsider@test.com',
            password='testpass123',
            org_id=uuid4(),
        )
        create_post(outsider, 'Tin của tòa nhà khác')
        create_post(self.admin, 'Thông báo cắt nước')

        response = self.client.get(f'/api/home?org_id={self.org_id}')

        self.assertEqual([p['content'] for p in response.json()['posts']], ['Thông báo cắt nước'])

    def test_home_requires_organization(self):
        response = self.client.get('/api/home')
        self.assertEqual(response.status_code, 400)
