from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient


class UserAPITests(TestCase):
    def setUp(self):
        super().setUp()
        self.User = get_user_model()
        self.admin = self.User.objects.create_user(
            username="admin",
            password="pass1234",
            role=self.User.Roles.ADMIN,
        )
        self.cashier = self.User.objects.create_user(
            username="cashier",
            password="pass1234",
            role=self.User.Roles.CASHIER,
        )
        self.client = APIClient()
        self.client.force_authenticate(self.admin)

    def test_admin_creates_user(self):
        payload = {
            "username": "agent-1",
            "password": "pass1234",
            "role": self.User.Roles.AGENT,
        }
        response = self.client.post(reverse("user-list"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = self.User.objects.get(username="agent-1")
        self.assertTrue(user.check_password("pass1234"))
        self.assertEqual(user.role, self.User.Roles.AGENT)

    def test_me_endpoint(self):
        client = APIClient()
        client.force_authenticate(self.cashier)
        response = client.get(reverse("user-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["role"], self.User.Roles.CASHIER)

    def test_access_forbidden_for_wrong_role(self):
        client = APIClient()
        client.force_authenticate(self.cashier)
        response = client.get(reverse("user-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_requests_rejected(self):
        response = APIClient().get(reverse("user-list"))
        self.assertIn(
            response.status_code,
            (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN),
        )

    def test_superuser_passes_role_checks(self):
        root = self.User.objects.create_superuser(
            username="root", password="pass1234", role=self.User.Roles.AGENT
        )
        client = APIClient()
        client.force_authenticate(root)
        response = client.get(reverse("user-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
