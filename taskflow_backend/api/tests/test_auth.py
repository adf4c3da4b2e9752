from rest_framework import status
from rest_framework.test import APITestCase

from api.models import User

from .factories import make_user


class AuthTest(APITestCase):
    def test_health_is_public(self):
        response = self.client.get("/api/health/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_register_creates_member_and_returns_tokens(self):
        response = self.client.post(
            "/api/auth/register/",
            {"username": "carol", "email": "carol@example.com", "password": "s3cret-pass", "name": "Carol"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertEqual(response.data["user"]["username"], "carol")
        self.assertNotIn("password", response.data["user"])
        user = User.objects.get(username="carol")
        self.assertEqual(user.role, User.Role.MEMBER)
        self.assertTrue(user.check_password("s3cret-pass"))

    def test_register_rejects_duplicates(self):
        make_user("carol", email="carol@example.com")
        response = self.client.post(
            "/api/auth/register/",
            {"username": "carol", "email": "other@example.com", "password": "s3cret-pass"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("username", response.data)

        response = self.client.post(
            "/api/auth/register/",
            {"username": "caroline", "email": "carol@example.com", "password": "s3cret-pass"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("email", response.data)
        self.assertFalse(User.objects.filter(username="caroline").exists())

    def test_register_ignores_requested_role(self):
        response = self.client.post(
            "/api/auth/register/",
            {"username": "carol", "email": "carol@example.com", "password": "s3cret-pass", "role": "admin"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(username="carol").role, User.Role.MEMBER)

    def test_login_and_use_bearer_token(self):
        make_user("bob")
        response = self.client.post(
            "/api/auth/login/", {"username": "bob", "password": "testpass123"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = self.client.get("/api/users/me/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "bob")

    def test_refresh(self):
        make_user("bob")
        tokens = self.client.post(
            "/api/auth/login/", {"username": "bob", "password": "testpass123"}, format="json"
        ).data
        response = self.client.post("/api/auth/refresh/", {"refresh": tokens["refresh"]}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)

    def test_bad_credentials_are_401(self):
        make_user("bob")
        response = self.client.post("/api/auth/login/", {"username": "bob", "password": "wrong"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["detail"], "Invalid credentials.")
        self.assertNotIn("access", response.data)

    def test_garbage_token_is_401(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        response = self.client.get("/api/projects/")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
