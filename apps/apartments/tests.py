import json
import uuid
from decimal import Decimal

from django.test import TestCase, Client

from apps.identity.models import User, UserRole
from .models import Apartment, ApartmentStatus
from .services import create_apartment, delete_apartment, list_apartments, update_apartment
from .resident_service import assign_resident, update_resident, remove_resident
from .dtos import ApartmentIn


def make_user(org_id, role=UserRole.RESIDENT, name=None):
    name = name or f"user_{uuid.uuid4().hex[:8]}"
    return User.objects.create_user(
        username=name,
        email=f"{name}@stayease.test",
        password="secret123",
        full_name=name.title(),
        org_id=org_id,
        role=role,
    )


def apartment_payload(number="A101", **overrides):
    data = dict(
        apartment_number=number,
        building="A",
        floor=1,
        area=Decimal("55.5"),
        bedrooms=2,
        bathrooms=1,
        rent_price=Decimal("5000000"),
    )
    data.update(overrides)
    return ApartmentIn(**data)


class ApartmentServiceTest(TestCase):
    def setUp(self):
        self.org_id = uuid.uuid4()

    def test_create_apartment_success(self):
        apartment = create_apartment(self.org_id, apartment_payload())
        self.assertEqual(apartment.status, ApartmentStatus.AVAILABLE)
        self.assertEqual(str(apartment), "A - A101")

    def test_duplicate_number_rejected(self):
        create_apartment(self.org_id, apartment_payload())

        with self.assertRaisesMessage(ValueError, "Số căn hộ đã tồn tại"):
            create_apartment(self.org_id, apartment_payload())
        self.assertEqual(Apartment.objects.filter(org_id=self.org_id).count(), 1)

    def test_same_number_allowed_in_other_org(self):
        create_apartment(self.org_id, apartment_payload())
        create_apartment(uuid.uuid4(), apartment_payload())
        self.assertEqual(Apartment.objects.count(), 2)

    def test_field_bounds(self):
        with self.assertRaises(ValueError):
            create_apartment(self.org_id, apartment_payload(floor=0))
        with self.assertRaises(ValueError):
            create_apartment(self.org_id, apartment_payload(area=Decimal("0")))
        with self.assertRaises(ValueError):
            create_apartment(self.org_id, apartment_payload(rent_price=Decimal("-1")))
        with self.assertRaises(ValueError):
            create_apartment(self.org_id, apartment_payload(status="sold"))

    def test_list_ordering_and_filters(self):
        create_apartment(self.org_id, apartment_payload("B201", building="B", floor=2))
        create_apartment(self.org_id, apartment_payload("A201", floor=2, rent_price=Decimal("9000000")))
        create_apartment(self.org_id, apartment_payload("A101"))

        items, page_info = list_apartments(self.org_id)
        self.assertEqual([a.apartment_number for a in items], ["A101", "A201", "B201"])
        self.assertEqual(page_info.total, 3)

        items, _ = list_apartments(self.org_id, min_price=Decimal("6000000"))
        self.assertEqual([a.apartment_number for a in items], ["A201"])

        items, _ = list_apartments(self.org_id, building="B")
        self.assertEqual([a.apartment_number for a in items], ["B201"])

    def test_pagination_past_end_is_empty(self):
        create_apartment(self.org_id, apartment_payload())
        items, page_info = list_apartments(self.org_id, page=5, limit=10)
        self.assertEqual(items, [])
        self.assertEqual(page_info.total_pages, 1)

    def test_delete_with_resident_fails(self):
        apartment = create_apartment(self.org_id, apartment_payload())
        resident = make_user(self.org_id)
        assign_resident(org_id=self.org_id, user_id=resident.id, apartment_id=apartment.id)

        with self.assertRaisesMessage(ValueError, "Không thể xóa căn hộ đang có cư dân"):
            delete_apartment(self.org_id, apartment.id)
        self.assertTrue(Apartment.objects.filter(id=apartment.id).exists())

    def test_delete_empty_apartment(self):
        apartment = create_apartment(self.org_id, apartment_payload())
        self.assertTrue(delete_apartment(self.org_id, apartment.id))
        self.assertFalse(Apartment.objects.filter(id=apartment.id).exists())


class ResidentAssignmentTest(TestCase):
    def setUp(self):
        self.org_id = uuid.uuid4()
        self.apartment = create_apartment(self.org_id, apartment_payload())
        self.user = make_user(self.org_id)

    def test_assign_marks_apartment_occupied(self):
        user = assign_resident(
            org_id=self.org_id,
            user_id=self.user.id,
            apartment_id=self.apartment.id,
            monthly_rent=Decimal("5000000"),
        )
        self.apartment.refresh_from_db()
        self.assertEqual(user.apartment_id, self.apartment.id)
        self.assertEqual(self.apartment.status, ApartmentStatus.OCCUPIED)

    def test_missing_ids(self):
        with self.assertRaisesMessage(ValueError, "Vui lòng chọn cư dân và căn hộ"):
            assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=None)

    def test_unavailable_apartment_leaves_rows_unchanged(self):
        self.apartment.status = ApartmentStatus.MAINTENANCE
        self.apartment.save()

        with self.assertRaisesMessage(ValueError, "Căn hộ không khả dụng"):
            assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=self.apartment.id)

        self.user.refresh_from_db()
        self.apartment.refresh_from_db()
        self.assertIsNone(self.user.apartment_id)
        self.assertEqual(self.apartment.status, ApartmentStatus.MAINTENANCE)

    def test_move_to_other_apartment(self):
        other = create_apartment(self.org_id, apartment_payload("A102"))
        assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=self.apartment.id)

        update_resident(self.org_id, self.user.id, {"apartment_id": other.id})

        self.apartment.refresh_from_db()
        other.refresh_from_db()
        self.user.refresh_from_db()
        self.assertEqual(self.apartment.status, ApartmentStatus.AVAILABLE)
        self.assertEqual(other.status, ApartmentStatus.OCCUPIED)
        self.assertEqual(self.user.apartment_id, other.id)

    def test_move_to_unavailable_apartment_changes_nothing(self):
        taken = create_apartment(self.org_id, apartment_payload("A102"))
        neighbour = make_user(self.org_id)
        assign_resident(org_id=self.org_id, user_id=neighbour.id, apartment_id=taken.id)
        assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=self.apartment.id)

        with self.assertRaisesMessage(ValueError, "Căn hộ không khả dụng"):
            update_resident(self.org_id, self.user.id, {"apartment_id": taken.id, "phone": "0900000000"})

        self.user.refresh_from_db()
        self.apartment.refresh_from_db()
        taken.refresh_from_db()
        self.assertEqual(self.user.apartment_id, self.apartment.id)
        self.assertEqual(self.user.phone, "")
        self.assertEqual(self.apartment.status, ApartmentStatus.OCCUPIED)
        self.assertEqual(taken.status, ApartmentStatus.OCCUPIED)
        self.assertEqual(User.objects.filter(apartment_id=taken.id).count(), 1)

    def test_occupied_apartment_status_is_locked(self):
        assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=self.apartment.id)

        for status in (ApartmentStatus.AVAILABLE, ApartmentStatus.MAINTENANCE):
            with self.assertRaisesMessage(ValueError, "Không thể đổi trạng thái căn hộ đang có cư dân"):
                update_apartment(self.org_id, self.apartment.id, {"status": status})

        # A second resident still cannot be placed in the unit
        with self.assertRaisesMessage(ValueError, "Căn hộ không khả dụng"):
            assign_resident(org_id=self.org_id, user_id=make_user(self.org_id).id, apartment_id=self.apartment.id)
        self.assertEqual(User.objects.filter(apartment_id=self.apartment.id).count(), 1)

    def test_empty_apartment_cannot_be_marked_occupied(self):
        with self.assertRaisesMessage(ValueError, "Căn hộ chỉ chuyển sang đã thuê khi gán cư dân"):
            update_apartment(self.org_id, self.apartment.id, {"status": ApartmentStatus.OCCUPIED})
        with self.assertRaisesMessage(ValueError, "Căn hộ chỉ chuyển sang đã thuê khi gán cư dân"):
            create_apartment(self.org_id, apartment_payload("A103", status=ApartmentStatus.OCCUPIED))

        updated = update_apartment(self.org_id, self.apartment.id, {"status": ApartmentStatus.MAINTENANCE, "bedrooms": 3})
        self.assertEqual(updated.status, ApartmentStatus.MAINTENANCE)
        self.assertEqual(updated.bedrooms, 3)

    def test_remove_resident_frees_apartment(self):
        assign_resident(org_id=self.org_id, user_id=self.user.id, apartment_id=self.apartment.id)

        self.assertTrue(remove_resident(self.org_id, self.user.id))

        self.apartment.refresh_from_db()
        self.assertEqual(self.apartment.status, ApartmentStatus.AVAILABLE)
        self.assertFalse(User.objects.filter(id=self.user.id).exists())


class ApartmentApiTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org_id = uuid.uuid4()
        self.admin = make_user(self.org_id, role=UserRole.ADMIN, name="admin")
        self.resident = make_user(self.org_id, name="resident")

    def test_admin_creates_apartment(self):
        self.client.force_login(self.admin)
        response = self.client.post(
            "/api/apartments",
            data=json.dumps({
                "apartment_number": "C301",
                "building": "C",
                "floor": 3,
                "area": "70",
                "rent_price": "8000000",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["apartment_number"], "C301")

    def test_duplicate_number_returns_error(self):
        create_apartment(self.org_id, apartment_payload())
        self.client.force_login(self.admin)
        response = self.client.post(
            "/api/apartments",
            data=json.dumps({
                "apartment_number": "A101",
                "building": "A",
                "floor": 1,
                "area": "50",
                "rent_price": "1000",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Số căn hộ đã tồn tại")

    def test_resident_cannot_create(self):
        self.client.force_login(self.resident)
        response = self.client.post(
            "/api/apartments",
            data=json.dumps({
                "apartment_number": "X1", "building": "X", "floor": 1, "area": "10", "rent_price": "1",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Không có quyền truy cập")

    def test_anonymous_list_rejected(self):
        response = self.client.get("/api/apartments")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Người dùng chưa đăng nhập")

    def test_list_paginated(self):
        create_apartment(self.org_id, apartment_payload())
        self.client.force_login(self.resident)
        response = self.client.get("/api/apartments?limit=5")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["data"]), 1)
        self.assertEqual(body["pagination"]["total"], 1)
        self.assertEqual(body["pagination"]["limit"], 5)

    def test_assign_resident_via_api(self):
        apartment = create_apartment(self.org_id, apartment_payload())
        self.client.force_login(self.admin)
        response = self.client.post(
            "/api/residents",
            data=json.dumps({
                "user_id": str(self.resident.id),
                "apartment_id": str(apartment.id),
                "monthly_rent": "5000000",
            }),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)

        response = self.client.get("/api/residents")
        residents = response.json()
        self.assertEqual(residents[0]["apartment"]["apartment_number"], "A101")

    def test_delete_occupied_apartment_via_api(self):
        apartment = create_apartment(self.org_id, apartment_payload())
        assign_resident(org_id=self.org_id, user_id=self.resident.id, apartment_id=apartment.id)
        self.client.force_login(self.admin)

        response = self.client.delete(f"/api/apartments/{apartment.id}")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Không thể xóa căn hộ đang có cư dân")
