from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from apps.accounts.application.services.identity_service import AccountIdentityService
from apps.accounts.domain.errors import PhoneInvalidError
from apps.accounts.domain.policies import validate_optional_phone
from apps.accounts.domain.roles import AccountRole, AccountStatus
from apps.accounts.models import AccountAuditLog, AccountProfile


def _make_user(email: str, *, role: str = AccountRole.USER.value, password: str = "StrongPass12345!", **profile):
    user = get_user_model().objects.create_user(username=email, email=email, password=password)
    AccountProfile.objects.create(user=user, full_name=profile.pop("full_name", "Test User"), role=role, **profile)
    return user


class AccountsAuthApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client = APIClient()

    def test_register_api_contract_and_tokens(self):
        response = self.client.post(
            "/api/auth/register/",
            data={
                "full_name": "Wanjiku Kamau",
                "phone": "0712345678",
                "email": "Wanjiku@Example.com",
                "password": "StrongPass12345!",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertTrue(payload["success"])
        self.assertIn("access", payload["data"])
        self.assertIn("refresh", payload["data"])
        self.assertEqual(payload["data"]["role"], "user")

        user = get_user_model().objects.get(pk=payload["data"]["user_id"])
        self.assertEqual(user.email, "wanjiku@example.com")
        self.assertTrue(AccountProfile.objects.filter(user=user, phone="0712345678").exists())
        self.assertTrue(
            AccountAuditLog.objects.filter(user=user, action=AccountAuditLog.ACTION_REGISTERED).exists()
        )

    def test_register_duplicate_email_conflicts(self):
        _make_user("taken@example.com")
        response = self.client.post(
            "/api/auth/register/",
            data={"full_name": "Someone", "email": "TAKEN@example.com", "password": "StrongPass12345!"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.json()["success"])
        self.assertEqual(response.json()["error"]["field"], "email")

    def test_register_rejects_invalid_phone(self):
        response = self.client.post(
            "/api/auth/register/",
            data={
                "full_name": "Someone",
                "email": "someone@example.com",
                "password": "StrongPass12345!",
                "phone": "not-a-phone",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "phone")

    def test_register_missing_fields_is_400(self):
        response = self.client.post("/api/auth/register/", data={"email": "x@example.com"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertIn("details", response.json()["error"])

    def test_login_returns_tokens_and_records_audit(self):
        user = _make_user("seller@example.com", role=AccountRole.SELLER.value)
        response = self.client.post(
            "/api/auth/login/",
            data={"email": "seller@example.com", "password": "StrongPass12345!"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["role"], "seller")
        self.assertIn("access", data)
        self.assertTrue(
            AccountAuditLog.objects.filter(user=user, action=AccountAuditLog.ACTION_LOGIN_SUCCEEDED).exists()
        )

    def test_login_wrong_password_is_401(self):
        _make_user("buyer@example.com")
        response = self.client.post(
            "/api/auth/login/",
            data={"email": "buyer@example.com", "password": "wrong-password"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)
        self.assertTrue(AccountAuditLog.objects.filter(action=AccountAuditLog.ACTION_LOGIN_FAILED).exists())

    def test_login_suspended_account_is_401(self):
        _make_user("suspended@example.com", status=AccountStatus.SUSPENDED.value)
        response = self.client.post(
            "/api/auth/login/",
            data={"email": "suspended@example.com", "password": "StrongPass12345!"},
            format="json",
        )
        self.assertEqual(response.status_code, 401)

    def test_me_requires_token_and_returns_profile(self):
        self.assertEqual(self.client.get("/api/auth/me/").status_code, 401)

        self.client.post(
            "/api/auth/register/",
            data={"full_name": "Otieno", "email": "otieno@example.com", "password": "StrongPass12345!"},
            format="json",
        )
        login = self.client.post(
            "/api/auth/login/",
            data={"email": "otieno@example.com", "password": "StrongPass12345!"},
            format="json",
        ).json()["data"]

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login['access']}")
        response = self.client.get("/api/auth/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["full_name"], "Otieno")

    def test_token_refresh(self):
        _make_user("refresh@example.com")
        tokens = self.client.post(
            "/api/auth/login/",
            data={"email": "refresh@example.com", "password": "StrongPass12345!"},
            format="json",
        ).json()["data"]
        response = self.client.post("/api/auth/token/refresh/", data={"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.json())


class AccountIdentityServiceTests(TestCase):
    def test_staff_users_are_admins(self):
        staff = get_user_model().objects.create_user(username="ops", email="ops@example.com", password="x", is_staff=True)
        self.assertEqual(AccountIdentityService.role_of(staff), AccountRole.ADMIN)
        self.assertTrue(AccountIdentityService.is_admin(staff))

    def test_user_without_profile_defaults_to_user_role(self):
        user = get_user_model().objects.create_user(username="plain", email="plain@example.com", password="x")
        self.assertEqual(AccountIdentityService.role_of(user), AccountRole.USER)
        self.assertTrue(AccountIdentityService.is_active(user))

    def test_phone_policy(self):
        self.assertEqual(validate_optional_phone(" +254 712-345-678 "), "+254712345678")
        self.assertEqual(validate_optional_phone(""), "")
        with self.assertRaises(PhoneInvalidError):
            validate_optional_phone("abc")


class EmailBackendTests(TestCase):
    def test_authenticates_by_email_case_insensitively(self):
        from django.contrib.auth import authenticate

        user = get_user_model().objects.create_user(
            username="legacy-handle", email="mixed@example.com", password="StrongPass12345!"
        )
        self.assertEqual(authenticate(email="MIXED@Example.com", password="StrongPass12345!"), user)
        self.assertEqual(authenticate(username="legacy-handle", password="StrongPass12345!"), user)
        self.assertIsNone(authenticate(email="mixed@example.com", password="nope"))
        self.assertIsNone(authenticate(email="ghost@example.com", password="StrongPass12345!"))
