import json
from decimal import Decimal

from django.test import TestCase, Client

from apps.organizations.models import Organization
from apps.identity.models import User, UserRole
from apps.apartments.models import Apartment


class MultiTenancyTest(TestCase):
    def setUp(self):
        self.client = Client()

        self.org_a = Organization.objects.create(name="Org A")
        self.admin_a = User.objects.create_user(
            username="admin_a", email="admin_a@test.com", password="pw", role=UserRole.ADMIN, org_id=self.org_a.id,
        )

        self.org_b = Organization.objects.create(name="Org B")
        self.admin_b = User.objects.create_user(
            username="admin_b", email="admin_b@test.com", password="pw", role=UserRole.ADMIN, org_id=self.org_b.id,
        )

        for org, number in ((self.org_a, "A101"), (self.org_b, "B101")):
            Apartment.objects.create(
                org_id=org.id,
                apartment_number=number,
                building=number[0],
                floor=1,
                area=Decimal("40"),
                rent_price=Decimal("3000000"),
            )

    def test_apartment_list_isolation(self):
        self.client.force_login(self.admin_a)
        response = self.client.get("/api/apartments")

        numbers = [a["apartment_number"] for a in response.json()["data"]]
        self.assertEqual(numbers, ["A101"])

    def test_foreign_apartment_not_found(self):
        foreign = Apartment.objects.get(apartment_number="B101")
        self.client.force_login(self.admin_a)

        response = self.client.get(f"/api/apartments/{foreign.id}")

        self.assertEqual(response.status_code, 404)

    def test_middleware_binds_user_org(self):
        self.client.force_login(self.admin_b)
        response = self.client.get("/api/organizations/current")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["name"], "Org B")
        self.assertEqual(response.wsgi_request.org_id, self.org_b.id)


class CurrentOrganizationTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org = Organization.objects.create(name="Sunrise", address="1 Le Loi")
        self.admin = User.objects.create_user(
            username="boss", email="boss@test.com", password="pw", role=UserRole.ADMIN, org_id=self.org.id,
        )
        self.staff = User.objects.create_user(
            username="crew", email="crew@test.com", password="pw", role=UserRole.STAFF, org_id=self.org.id,
        )

    def test_partial_update_keeps_other_fields(self):
        self.client.force_login(self.admin)
        response = self.client.put(
            "/api/organizations/current",
            data=json.dumps({"name": "Sunrise Riverside", "phone": "02838123456"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.org.refresh_from_db()
        self.assertEqual(self.org.name, "Sunrise Riverside")
        self.assertEqual(self.org.address, "1 Le Loi")

    def test_staff_cannot_manage_organization(self):
        self.client.force_login(self.staff)
        self.assertEqual(self.client.get("/api/organizations/current").status_code, 403)
