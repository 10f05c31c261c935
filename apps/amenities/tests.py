import json
import uuid

from django.test import TestCase, Client

from apps.identity.models import User, UserRole
from .models import Amenity, AmenityStatus
from .services import create_amenity, list_amenities
from .dtos import AmenityIn


class AmenityTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org_id = uuid.uuid4()
        self.admin = User.objects.create_user(
            username="admin", email="admin@stayease.test", password="pw123456",
            org_id=self.org_id, role=UserRole.ADMIN,
        )
        self.resident = User.objects.create_user(
            username="resident", email="resident@stayease.test", password="pw123456",
            org_id=self.org_id, role=UserRole.RESIDENT,
        )

    def test_create_defaults_to_active(self):
        amenity = create_amenity(self.org_id, AmenityIn(name="Gym", description="24h gym", amenity_type="facility"))
        self.assertEqual(amenity.status, AmenityStatus.ACTIVE)
        self.assertEqual(amenity.currency, "VND")

    def test_invalid_type_rejected(self):
        with self.assertRaises(ValueError):
            create_amenity(self.org_id, AmenityIn(name="Pool", description="Pool", amenity_type="spa"))

    def test_filters(self):
        create_amenity(self.org_id, AmenityIn(name="Gym", description="Gym", amenity_type="facility"))
        create_amenity(self.org_id, AmenityIn(
            name="Laundry", description="Laundry", amenity_type="service", status="inactive",
        ))

        self.assertEqual(len(list_amenities(self.org_id, amenity_type="service")), 1)
        self.assertEqual([a.name for a in list_amenities(self.org_id, status="active")], ["Gym"])

    def test_admin_crud_via_api(self):
        self.client.force_login(self.admin)
        response = self.client.post(
            "/api/amenities",
            data=json.dumps({"name": "Pool", "description": "Rooftop pool", "amenity_type": "facility"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        amenity_id = response.json()["id"]

        response = self.client.put(
            f"/api/amenities/{amenity_id}",
            data=json.dumps({"status": "maintenance"}),
            content_type="application/json",
        )
        self.assertEqual(response.json()["status"], "maintenance")

        response = self.client.delete(f"/api/amenities/{amenity_id}")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Amenity.objects.exists())

    def test_resident_cannot_create(self):
        self.client.force_login(self.resident)
        response = self.client.post(
            "/api/amenities",
            data=json.dumps({"name": "Pool", "description": "Pool", "amenity_type": "facility"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
