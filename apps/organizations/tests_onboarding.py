from django.test import TestCase, Client
from apps.organizations.models import Organization
from apps.identity.models import User, UserRole
import json


class OnboardingTests(TestCase):
    def setUp(self):
        self.client = Client()

    def onboard(self, email="admin@sunrise.vn", role="resident"):
        payload = {
            "organization": {
                "name": "Sunrise Residence",
                "address": "12 Nguyen Hue, Quan 1",
                "settings": {"bank_code": "VCB"}
            },
            "admin_user": {
                "email": email,
                "password": "StrongPassword123!",
                "full_name": "Sunrise Admin",
                "role": role  # backend enforces admin regardless
            }
        }
        return self.client.post(
            "/api/organizations/onboard",
            data=json.dumps(payload),
            content_type="application/json"
        )

    def test_onboard_organization_flow(self):
        """
        A new organization is created together with its admin user.
        """
        response = self.onboard()

        self.assertEqual(response.status_code, 200)
        data = response.json()

        self.assertIn("organization", data)
        self.assertIn("admin_user", data)

        org_id = data["organization"]["id"]
        user = User.objects.get(id=data["admin_user"]["id"])

        self.assertTrue(Organization.objects.filter(id=org_id).exists())
        self.assertEqual(user.role, UserRole.ADMIN)
        self.assertEqual(str(user.org_id), org_id)
        self.assertTrue(user.check_password("StrongPassword123!"))
        self.assertEqual(data["organization"]["settings"], {"bank_code": "VCB"})

    def test_duplicate_admin_email_rolls_back(self):
        self.assertEqual(self.onboard().status_code, 200)

        response = self.onboard()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Email đã được sử dụng")
        self.assertEqual(Organization.objects.count(), 1)

    def test_onboarded_admin_adds_staff(self):
        data = self.onboard().json()
        admin_user = User.objects.get(id=data["admin_user"]["id"])
        self.client.force_login(admin_user)

        response = self.client.post(
            "/api/users",
            data=json.dumps({
                "email": "staff@sunrise.vn",
                "password": "StaffPassword123!",
                "full_name": "Sunrise Staff",
                "role": "staff"
            }),
            content_type="application/json"
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["role"], "staff")
        self.assertEqual(response.json()["org_id"], data["organization"]["id"])
