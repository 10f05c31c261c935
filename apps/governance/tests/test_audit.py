"""
Tests for the Audit Logging system.

Covers:
1. audit_service.log_action() creates an AuditLog with correct fields
2. GET /audit-logs paginated list with filters and permission check
3. GET /audit-logs/{id} detail endpoint
4. Wiring smoke test: deleting an apartment via the API creates an AuditLog
"""
import json
from decimal import Decimal
from uuid import uuid4

from django.test import TestCase, Client
from django.contrib.auth import get_user_model

from apps.organizations.models import Organization
from apps.identity.models import UserRole
from apps.apartments.models import Apartment
from apps.governance.models import AuditLog
from apps.governance.audit_service import log_action, AuditAction


User = get_user_model()


def make_org():
    """Create a test Organization."""
    return Organization.objects.create(name=f"Test Residence {uuid4().hex[:6]}")


def make_user(org, role=UserRole.ADMIN, username=None):
    """Create a test User in the given org."""
    username = username or f"user_{uuid4().hex[:8]}"
    return User.objects.create_user(
        username=username,
        email=f"{username}@test.com",
        password="testpass123",
        org_id=org.id,
        role=role,
    )


class AuditServiceTest(TestCase):
    """Test the log_action() helper directly."""

    def setUp(self):
        self.org = make_org()
        self.user = make_user(self.org)
        self.target_id = uuid4()

    def test_log_action_creates_audit_log(self):
        log = log_action(
            org_id=self.org.id,
            action=AuditAction.CREATE_INVOICE,
            target_type="Invoice",
            target_id=self.target_id,
            target_label="INV-202601-0001",
            performed_by=self.user,
            context={"amount": "5000000.00"},
        )
        self.assertIsNotNone(log)
        self.assertEqual(log.action, AuditAction.CREATE_INVOICE)
        self.assertEqual(log.target_type, "Invoice")
        self.assertEqual(log.target_id, self.target_id)
        self.assertEqual(log.org_id, self.org.id)
        self.assertEqual(log.performed_by, self.user)
        self.assertEqual(log.context["amount"], "5000000.00")

    def test_log_action_allows_system_actor(self):
        log = log_action(
            org_id=self.org.id,
            action=AuditAction.DELETE_APARTMENT,
            target_type="Apartment",
            target_id=self.target_id,
            performed_by=None,
        )
        self.assertIsNotNone(log)
        self.assertIsNone(log.performed_by)

    def test_log_action_without_org_is_skipped(self):
        result = log_action(
            org_id=None,
            action=AuditAction.USER_LOGIN,
            target_type="User",
            target_id=self.user.id,
            performed_by=self.user,
        )
        self.assertIsNone(result)
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_log_action_with_no_context(self):
        log = log_action(
            org_id=self.org.id,
            action=AuditAction.CONFIRM_PAYMENT,
            target_type="Invoice",
            target_id=self.target_id,
            performed_by=self.user,
        )
        self.assertEqual(log.context, {})

    def test_long_label_is_truncated(self):
        log = log_action(
            org_id=self.org.id,
            action=AuditAction.DELETE_POST,
            target_type="Post",
            target_id=self.target_id,
            target_label="x" * 400,
            performed_by=self.user,
        )
        self.assertEqual(len(log.target_label), 255)


class AuditLogAPITest(TestCase):
    """Test GET /audit-logs endpoints."""

    def setUp(self):
        self.client = Client()
        self.org = make_org()
        self.other_org = make_org()

        self.admin = make_user(self.org, role=UserRole.ADMIN, username="audit_admin")
        self.staff = make_user(self.org, role=UserRole.STAFF, username="audit_staff")

        self.target_id = uuid4()

        self.log1 = AuditLog.objects.create(
            org_id=self.org.id,
            action=AuditAction.CREATE_INVOICE,
            target_type="Invoice",
            target_id=self.target_id,
            target_label="INV-1",
            performed_by=self.admin,
        )
        self.log2 = AuditLog.objects.create(
            org_id=self.org.id,
            action=AuditAction.DELETE_APARTMENT,
            target_type="Apartment",
            target_id=uuid4(),
            target_label="A101",
            performed_by=self.admin,
        )
        self.foreign_log = AuditLog.objects.create(
            org_id=self.other_org.id,
            action=AuditAction.CREATE_INVOICE,
            target_type="Invoice",
            target_id=uuid4(),
            target_label="INV-OTHER",
        )

    def test_list_requires_permission(self):
        self.client.force_login(self.staff)
        response = self.client.get("/api/audit-logs")
        self.assertEqual(response.status_code, 403)

    def test_list_requires_login(self):
        response = self.client.get("/api/audit-logs")
        self.assertEqual(response.status_code, 401)

    def test_list_returns_own_org_only(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/audit-logs")

        self.assertEqual(response.status_code, 200)
        rows = response.json()["data"]
        # force_login itself writes a USER_LOGIN row for this org
        ids = {row["id"] for row in rows if row["action"] != AuditAction.USER_LOGIN}
        self.assertEqual(ids, {str(self.log1.id), str(self.log2.id)})
        self.assertNotIn(str(self.foreign_log.id), {row["id"] for row in rows})
        self.assertEqual(
            response.json()["pagination"]["total"],
            AuditLog.objects.filter(org_id=self.org.id).count(),
        )

    def test_filter_by_action(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/audit-logs", {"action": AuditAction.DELETE_APARTMENT})

        data = response.json()["data"]
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["target_label"], "A101")
        self.assertEqual(data[0]["performed_by_name"], "audit_admin@test.com")

    def test_filter_by_target(self):
        self.client.force_login(self.admin)
        response = self.client.get("/api/audit-logs", {"target_id": str(self.target_id)})

        data = response.json()["data"]
        self.assertEqual([row["id"] for row in data], [str(self.log1.id)])
        self.assertEqual(data[0]["performed_by_id"], str(self.admin.id))

    def test_detail(self):
        self.client.force_login(self.admin)

        response = self.client.get(f"/api/audit-logs/{self.log1.id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["action"], AuditAction.CREATE_INVOICE)

        response = self.client.get(f"/api/audit-logs/{self.foreign_log.id}")
        self.assertEqual(response.status_code, 404)


class AuditWiringTest(TestCase):
    """Mutating endpoints leave a trail."""

    def test_delete_apartment_is_audited(self):
        org = make_org()
        admin = make_user(org, role=UserRole.ADMIN)
        apartment = Apartment.objects.create(
            org_id=org.id,
            apartment_number="B202",
            building="B",
            floor=2,
            area=Decimal("60"),
            rent_price=Decimal("6000000"),
        )
        client = Client()
        client.force_login(admin)

        response = client.delete(f"/api/apartments/{apartment.id}")

        self.assertEqual(response.status_code, 204)
        log = AuditLog.objects.get(action=AuditAction.DELETE_APARTMENT)
        self.assertEqual(log.target_id, apartment.id)
        self.assertEqual(log.target_label, str(apartment.id))
        self.assertEqual(log.performed_by, admin)

    def test_update_organization_is_audited(self):
        org = make_org()
        admin = make_user(org, role=UserRole.ADMIN)
        client = Client()
        client.force_login(admin)

        response = client.put(
            "/api/organizations/current",
            data=json.dumps({"name": "Renamed Residence"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.UPDATE_ORGANIZATION, target_id=org.id).exists())
