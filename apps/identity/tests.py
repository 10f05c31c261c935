import json
from decimal import Decimal

from django.test import TestCase, Client

from apps.organizations.models import Organization
from apps.apartments.models import Apartment, ApartmentStatus
from apps.governance.models import AuditLog
from apps.governance.audit_service import AuditAction
from .models import User, UserRole, UserStatus
from .permissions import get_user_permissions, Permissions
from .jwt_auth import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    create_access_token,
    create_refresh_token,
    get_user_id_from_token,
)


class RBACTest(TestCase):
    def test_admin_permissions(self):
        user = User.objects.create_user(username="admin", email="admin@test.com", password="pw", role=UserRole.ADMIN)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.BILLING_MANAGE_INVOICES, perms)
        self.assertIn(Permissions.MAINTENANCE_MANAGE, perms)
        # Admins supervise tickets but do not pick them up
        self.assertNotIn(Permissions.MAINTENANCE_ACCEPT, perms)

    def test_staff_permissions(self):
        user = User.objects.create_user(username="staff", email="staff@test.com", password="pw", role=UserRole.STAFF)
        perms = get_user_permissions(user)
        self.assertIn(Permissions.MAINTENANCE_ACCEPT, perms)
        self.assertNotIn(Permissions.BILLING_VIEW_ALL_INVOICES, perms)
        self.assertNotIn(Permissions.MAINTENANCE_MANAGE, perms)

    def test_resident_has_no_role_permissions(self):
        user = User.objects.create_user(username="res", email="res@test.com", password="pw", role=UserRole.RESIDENT)
        self.assertEqual(get_user_permissions(user), [])

    def test_inactive_user_has_no_permissions(self):
        user = User.objects.create_user(
            username="gone", email="gone@test.com", password="pw",
            role=UserRole.ADMIN, status=UserStatus.SUSPENDED,
        )
        self.assertFalse(user.is_active)
        self.assertEqual(get_user_permissions(user), [])


class JWTTest(TestCase):
    def test_token_types_are_not_interchangeable(self):
        user = User.objects.create_user(username="jwt", email="jwt@test.com", password="pw")
        access = create_access_token(user.id, None, user.role)
        refresh = create_refresh_token(user.id)

        self.assertEqual(get_user_id_from_token(access), user.id)
        self.assertEqual(get_user_id_from_token(refresh, token_type='refresh'), user.id)
        self.assertIsNone(get_user_id_from_token(refresh))
        self.assertIsNone(get_user_id_from_token("not-a-token"))


class AuthAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org = Organization.objects.create(name="Sunrise Residence")
        self.user = User.objects.create_user(
            username="an@test.com",
            email="an@test.com",
            password="secret123",
            full_name="Nguyen An",
            org_id=self.org.id,
        )

    def login(self, email="an@test.com", password="secret123"):
        return self.client.post(
            "/api/auth/login",
            data=json.dumps({"email": email, "password": password}),
            content_type="application/json",
        )

    def test_login_sets_cookies_and_audits(self):
        response = self.login(email="AN@test.com")

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.assertEqual(response.json()["user"]["email"], "an@test.com")
        self.assertIn(ACCESS_COOKIE, response.cookies)
        self.assertIn(REFRESH_COOKIE, response.cookies)
        self.assertTrue(response.cookies[ACCESS_COOKIE]["httponly"])
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.USER_LOGIN, target_id=self.user.id).exists())

    def test_cookie_authenticates_me(self):
        self.login()

        response = self.client.get("/api/me")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["full_name"], "Nguyen An")

    def test_wrong_password(self):
        response = self.login(password="nope")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Email hoặc mật khẩu không đúng")

    def test_suspended_account_cannot_login(self):
        self.user.status = UserStatus.SUSPENDED
        self.user.save()

        response = self.login()

        self.assertEqual(response.status_code, 403)

    def test_logout_clears_cookies(self):
        self.login()
        response = self.client.post("/api/auth/logout")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.cookies[ACCESS_COOKIE].value, "")
        self.assertEqual(self.client.get("/api/me").status_code, 401)

    def test_refresh_issues_new_access_token(self):
        self.login()
        del self.client.cookies[ACCESS_COOKIE]

        response = self.client.post("/api/auth/refresh")

        self.assertEqual(response.status_code, 200)
        self.assertIn(ACCESS_COOKIE, response.cookies)
        self.assertEqual(self.client.get("/api/me").status_code, 200)

    def test_refresh_without_cookie(self):
        response = self.client.post("/api/auth/refresh")
        self.assertEqual(response.status_code, 401)

    def test_register_creates_resident(self):
        response = self.client.post(
            "/api/auth/register",
            data=json.dumps({
                "email": "Binh@Test.com",
                "password": "secret123",
                "full_name": "Tran Binh",
                "org_id": str(self.org.id),
            }),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 201)
        user = User.objects.get(email="binh@test.com")
        self.assertEqual(user.role, UserRole.RESIDENT)
        self.assertEqual(user.org_id, self.org.id)
        self.assertIn(ACCESS_COOKIE, response.cookies)

    def test_register_rejects_duplicate_and_short_password(self):
        payload = {"email": "an@test.com", "password": "secret123", "full_name": "X", "org_id": str(self.org.id)}
        response = self.client.post("/api/auth/register", data=json.dumps(payload), content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Email đã được sử dụng")

        payload.update(email="new@test.com", password="123")
        response = self.client.post("/api/auth/register", data=json.dumps(payload), content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Mật khẩu phải có ít nhất 6 ký tự")


class MeAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org = Organization.objects.create(name="Sunrise Residence")
        self.user = User.objects.create_user(
            username="me", email="me@test.com", password="secret123", full_name="Me", org_id=self.org.id,
        )
        self.client.force_login(self.user)

    def test_update_profile(self):
        response = self.client.patch(
            "/api/me",
            data=json.dumps({"phone": "0901234567"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["phone"], "0901234567")
        self.assertEqual(response.json()["full_name"], "Me")

    def test_change_password(self):
        response = self.client.post(
            "/api/me/change-password",
            data=json.dumps({"current_password": "wrong", "new_password": "newsecret"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/me/change-password",
            data=json.dumps({"current_password": "secret123", "new_password": "newsecret"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("newsecret"))

    def test_apartment_requires_assignment(self):
        response = self.client.get("/api/me/apartment")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Bạn chưa được gán căn hộ")


class UserManagementAPITest(TestCase):
    def setUp(self):
        self.client = Client()
        self.org = Organization.objects.create(name="Sunrise Residence")
        self.admin = User.objects.create_user(
            username="boss", email="boss@test.com", password="secret123", org_id=self.org.id, role=UserRole.ADMIN,
        )
        self.staff = User.objects.create_user(
            username="crew", email="crew@test.com", password="secret123", org_id=self.org.id, role=UserRole.STAFF,
        )
        self.apartment = Apartment.objects.create(
            org_id=self.org.id,
            apartment_number="A101",
            building="A",
            floor=1,
            area=Decimal("50"),
            rent_price=Decimal("5000000"),
        )

    def test_admin_creates_resident_with_apartment(self):
        self.client.force_login(self.admin)

        response = self.client.post(
            "/api/users",
            data=json.dumps({
                "email": "resident@test.com",
                "password": "secret123",
                "full_name": "Le Cuong",
                "role": "resident",
                "apartment_id": str(self.apartment.id),
            }),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["apartment_id"], str(self.apartment.id))
        self.apartment.refresh_from_db()
        self.assertEqual(self.apartment.status, ApartmentStatus.OCCUPIED)
        self.assertTrue(AuditLog.objects.filter(action=AuditAction.CREATE_USER).exists())

    def test_staff_cannot_create_users(self):
        self.client.force_login(self.staff)

        response = self.client.post(
            "/api/users",
            data=json.dumps({"email": "x@test.com", "password": "secret123", "full_name": "X"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 403)

    def test_staff_can_list_users(self):
        self.client.force_login(self.staff)

        response = self.client.get("/api/users", {"role": "admin"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([u["email"] for u in response.json()], ["boss@test.com"])

    def test_users_of_other_orgs_are_hidden(self):
        outsider = User.objects.create_user(username="out", email="out@test.com", password="pw", org_id=None)
        self.client.force_login(self.admin)

        self.assertEqual(self.client.get(f"/api/users/{outsider.id}").status_code, 404)

    def test_update_rejects_unknown_role(self):
        self.client.force_login(self.admin)

        response = self.client.put(
            f"/api/users/{self.staff.id}",
            data=json.dumps({"role": "owner"}),
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Vai trò không hợp lệ")

    def test_admin_cannot_delete_self(self):
        self.client.force_login(self.admin)
        response = self.client.delete(f"/api/users/{self.admin.id}")
        self.assertEqual(response.status_code, 400)

    def test_deleting_resident_frees_apartment(self):
        resident = User.objects.create_user(
            username="tenant",
            email="tenant@test.com",
            password="pw",
            org_id=self.org.id,
            apartment_id=self.apartment.id,
        )
        Apartment.objects.filter(id=self.apartment.id).update(status=ApartmentStatus.OCCUPIED)
        self.client.force_login(self.admin)

        response = self.client.delete(f"/api/users/{resident.id}")

        self.assertEqual(response.status_code, 204)
        self.apartment.refresh_from_db()
        self.assertEqual(self.apartment.status, ApartmentStatus.AVAILABLE)
