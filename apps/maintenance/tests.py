import json
from decimal import Decimal
from uuid import uuid4

from django.test import TestCase, Client
from django.contrib.auth import get_user_model

from apps.apartments.models import Apartment
from apps.identity.models import UserRole
from .models import ServiceRequest, RequestStatus
from . import services


User = get_user_model()


class MaintenanceTestBase(TestCase):

    def setUp(self):
        self.client = Client()
        self.org_id = uuid4()
        self.apartment = Apartment.objects.create(
            org_id=self.org_id,
            apartment_number='C303',
            building='C',
            floor=3,
            area=Decimal('45'),
            rent_price=Decimal('4000000'),
        )
        self.resident = self.make_user('resident', apartment_id=self.apartment.id)
        self.neighbour = self.make_user('neighbour')
        self.staff = self.make_user('staff', role=UserRole.STAFF)
        self.other_staff = self.make_user('staff2', role=UserRole.STAFF)
        self.admin = self.make_user('admin', role=UserRole.ADMIN)

    def make_user(self, name, role=UserRole.RESIDENT, **extra):
        return User.objects.create_user(
            username=name,
            email=f'{name}@test.com',
            password='testpass123',
            full_name=name.title(),
            org_id=self.org_id,
            role=role,
            **extra,
        )

    def make_request(self, title='Vòi nước bị rò rỉ', category='plumbing'):
        return services.create_request(self.resident, title, 'Nước chảy liên tục trong bếp', category=category)


class ServiceRequestServiceTest(MaintenanceTestBase):

    def test_resident_without_apartment_cannot_create(self):
        with self.assertRaisesMessage(ValueError, "Bạn chưa được gán căn hộ. Vui lòng liên hệ quản trị viên."):
            services.create_request(self.neighbour, 'Hỏng đèn', 'Đèn hành lang', category='electrical')

    def test_create_validates_fields(self):
        with self.assertRaisesMessage(ValueError, "Danh mục không hợp lệ"):
            self.make_request(category='garden')
        with self.assertRaises(ValueError):
            self.make_request(title='x' * 201)
        self.assertEqual(ServiceRequest.objects.count(), 0)

    def test_request_bound_to_resident_apartment(self):
        service_request = self.make_request()
        self.assertEqual(service_request.apartment_id, self.apartment.id)
        self.assertEqual(service_request.status, RequestStatus.PENDING)

    def test_accept_assigns_and_starts(self):
        service_request = self.make_request()

        accepted = services.accept_request(service_request, self.staff)

        self.assertEqual(accepted.assigned_to_id, self.staff.id)
        self.assertEqual(accepted.status, RequestStatus.IN_PROGRESS)

    def test_accept_twice_fails(self):
        service_request = self.make_request()
        services.accept_request(service_request, self.staff)

        with self.assertRaisesMessage(ValueError, "Yêu cầu này đã được nhận"):
            services.accept_request(service_request, self.other_staff)

        service_request.refresh_from_db()
        self.assertEqual(service_request.assigned_to_id, self.staff.id)

    def test_in_progress_assigns_caller_when_unassigned(self):
        service_request = self.make_request()

        updated = services.update_status(service_request, self.admin, RequestStatus.IN_PROGRESS)

        self.assertEqual(updated.assigned_to_id, self.admin.id)

    def test_invalid_status(self):
        service_request = self.make_request()
        with self.assertRaisesMessage(ValueError, "Trạng thái không hợp lệ"):
            services.update_status(service_request, self.staff, 'done')

    def test_resident_lists_only_own(self):
        self.make_request()
        ServiceRequest.objects.create(
            org_id=self.org_id,
            user=self.neighbour,
            apartment_id=self.apartment.id,
            title='Khác',
            description='Khác',
        )

        own, _ = services.list_requests(self.resident)
        everything, page_info = services.list_requests(self.staff)

        self.assertEqual(len(own), 1)
        self.assertEqual(page_info.total, 2)
        self.assertEqual(len(everything), 2)

    def test_messages_in_insertion_order(self):
        service_request = self.make_request()
        services.post_message(service_request, self.resident, 'Xin chào')
        services.post_message(service_request, self.resident, 'Khi nào có người đến?')

        messages = services.list_messages(service_request)

        self.assertEqual([m.content for m in messages], ['Xin chào', 'Khi nào có người đến?'])

    def test_message_access(self):
        service_request = self.make_request()
        self.assertTrue(services.can_message(service_request, self.resident))
        self.assertTrue(services.can_message(service_request, self.admin))
        self.assertFalse(services.can_message(service_request, self.staff))

        services.accept_request(service_request, self.staff)
        service_request.refresh_from_db()
        self.assertTrue(services.can_message(service_request, self.staff))
        self.assertFalse(services.can_message(service_request, self.neighbour))


class ServiceRequestAPITest(MaintenanceTestBase):

    def test_resident_creates_request(self):
        self.client.force_login(self.resident)
        response = self.client.post(
            '/api/service-requests',
            data=json.dumps({
                'title': 'Máy lạnh không mát',
                'description': 'Phòng ngủ chính',
                'category': 'hvac',
            }),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['apartment']['apartment_number'], 'C303')
        self.assertEqual(body['user']['email'], 'resident@test.com')

    def test_staff_accepts_via_api(self):
        service_request = self.make_request()
        self.client.force_login(self.staff)

        response = self.client.post(f'/api/service-requests/{service_request.id}/accept')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['status'], 'in_progress')

        self.client.force_login(self.other_staff)
        response = self.client.post(f'/api/service-requests/{service_request.id}/accept')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Yêu cầu này đã được nhận')

    def test_resident_cannot_update_status(self):
        service_request = self.make_request()
        self.client.force_login(self.resident)

        response = self.client.patch(
            f'/api/service-requests/{service_request.id}',
            data=json.dumps({'status': 'resolved'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 403)

    def test_neighbour_cannot_view(self):
        service_request = self.make_request()
        self.client.force_login(self.neighbour)

        response = self.client.get(f'/api/service-requests/{service_request.id}')
        self.assertEqual(response.status_code, 403)

    def test_only_admin_deletes(self):
        service_request = self.make_request()

        self.client.force_login(self.staff)
        self.assertEqual(self.client.delete(f'/api/service-requests/{service_request.id}').status_code, 403)

        self.client.force_login(self.admin)
        self.assertEqual(self.client.delete(f'/api/service-requests/{service_request.id}').status_code, 204)
        self.assertFalse(ServiceRequest.objects.filter(id=service_request.id).exists())

    def test_message_thread(self):
        service_request = self.make_request()
        self.client.force_login(self.resident)

        response = self.client.post(
            f'/api/service-requests/{service_request.id}/messages',
            data=json.dumps({'content': '  '}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            f'/api/service-requests/{service_request.id}/messages',
            data=json.dumps({'content': 'Tôi ở nhà buổi chiều'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 201)

        response = self.client.get(f'/api/service-requests/{service_request.id}/messages')
        self.assertEqual(len(response.json()), 1)
        self.assertEqual(response.json()[0]['sender']['full_name'], 'Resident')
