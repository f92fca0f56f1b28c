from django.test import TestCase
from rest_framework.test import APIClient

from energy.authentication import create_access_token
from energy.models import User


class AuthEndpointTest(TestCase):
    """Tests for /api/auth and bearer token handling."""

    def setUp(self):
        self.client = APIClient()

    def register(self, email="new@example.com", password="secret-pass"):
        return self.client.post("/api/auth/register", {"email": email, "password": password})

    def test_register_creates_user(self):
        response = self.register()

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["email"], "new@example.com")
        user = User.objects.get(pk=response.data["id"])
        self.assertEqual(user.role, User.ROLE_USER)
        self.assertTrue(user.check_password("secret-pass"))

    def test_duplicate_email_is_rejected(self):
        self.register()

        response = self.register()

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "email already exists")

    def test_register_requires_valid_email(self):
        response = self.register(email="not-an-email")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(User.objects.count(), 0)

    def test_login_returns_usable_token(self):
        self.register()

        login = self.client.post(
            "/api/auth/login", {"email": "new@example.com", "password": "secret-pass"}
        )
        self.assertEqual(login.status_code, 200)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['token']}")
        me = self.client.get("/api/auth/me")

        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.data["email"], "new@example.com")
        self.assertEqual(me.data["role"], "user")

    def test_login_with_wrong_password(self):
        self.register()

        response = self.client.post(
            "/api/auth/login", {"email": "new@example.com", "password": "wrong"}
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["message"], "invalid credentials")

    def test_login_of_blocked_user_is_forbidden(self):
        User.objects.create_user(email="blocked@example.com", password="secret-pass", is_blocked=True)

        response = self.client.post(
            "/api/auth/login", {"email": "blocked@example.com", "password": "secret-pass"}
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["message"], "User is blocked")

    def test_missing_token_is_unauthorized(self):
        response = self.client.get("/api/appliances")

        self.assertEqual(response.status_code, 401)
        self.assertIn("message", response.data)

    def test_garbage_token_is_unauthorized(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")

        response = self.client.get("/api/auth/me")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["message"], "Invalid or expired token")

    def test_token_of_blocked_user_is_rejected(self):
        user = User.objects.create_user(email="later@example.com", password="secret-pass")
        token = create_access_token(user)
        User.objects.filter(pk=user.pk).update(is_blocked=True)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get("/api/auth/me")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["message"], "User is blocked")

    def test_token_of_deleted_user_is_rejected(self):
        user = User.objects.create_user(email="gone@example.com", password="secret-pass")
        token = create_access_token(user)
        user.delete()

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get("/api/auth/me")

        self.assertEqual(response.status_code, 401)

    def test_health_needs_no_token(self):
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True})

    def test_non_ascii_auth_scheme_is_unauthorized(self):
        self.client.credentials(HTTP_AUTHORIZATION="B\xe4rer abc")

        response = self.client.get("/api/tariffs")

        self.assertEqual(response.status_code, 401)

    def test_non_ascii_token_is_unauthorized(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer t\xe4ken")

        response = self.client.get("/api/tariffs")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["message"], "Invalid or expired token")
