"""
Integration tests for the accounts API.

Endpoints under test (all under ``/api/accounts/``):
  auth/register/, auth/login/, me/, users/, users/{id}/positions/,
  roles/, positions/, departments/{id}/roles/, companies/, telegram/*
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import Company, Department, DepartmentRole
from accounts.services import ReferenceDataService, UserPositionService
from core.role_constants import SystemRoles
from reports.models import ReportCategory

User = get_user_model()


def _registration_payload(**overrides) -> dict:
    base = {
        "username": "api_citizen",
        "password": "Str0ng!Pass99",
        "password_confirm": "Str0ng!Pass99",
        "email": "api_citizen@participium.test",
        "first_name": "Ada",
        "last_name": "Citizen",
    }
    base.update(overrides)
    return base


class TestAuthFlow(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_citizen_profile(self):
        response = self.client.post(reverse("accounts:register"), _registration_payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["username"], "api_citizen")
        self.assertNotIn("password", response.data)
        roles = [p["role"]["name"] for p in response.data["positions"]]
        self.assertEqual(roles, [SystemRoles.CITIZEN])

    def test_duplicate_registration_is_409(self):
        self.client.post(reverse("accounts:register"), _registration_payload(), format="json")
        response = self.client.post(
            reverse("accounts:register"),
            _registration_payload(email="another@participium.test"),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "conflict")

    def test_mismatched_passwords_is_400(self):
        response = self.client.post(
            reverse("accounts:register"),
            _registration_payload(password_confirm="Different!Pass1"),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_with_username_or_email(self):
        self.client.post(reverse("accounts:register"), _registration_payload(), format="json")

        for identifier in ("api_citizen", "API_CITIZEN@participium.test"):
            with self.subTest(identifier=identifier):
                response = self.client.post(
                    reverse("accounts:login"),
                    {"identifier": identifier, "password": "Str0ng!Pass99"},
                    format="json",
                )
                self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
                self.assertIn("access", response.data)
                self.assertIn("refresh", response.data)
                self.assertEqual(response.data["user"]["username"], "api_citizen")

    def test_login_with_wrong_password_is_400(self):
        self.client.post(reverse("accounts:register"), _registration_payload(), format="json")
        response = self.client.post(
            reverse("accounts:login"),
            {"identifier": "api_citizen", "password": "wrong-password"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_me_requires_authentication(self):
        response = self.client.get(reverse("accounts:me"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_get_and_patch(self):
        user = UserPositionService.register_citizen(
            {k: v for k, v in _registration_payload().items() if k != "password_confirm"}
        )
        self.client.force_authenticate(user=user)

        response = self.client.patch(
            reverse("accounts:me"),
            {"first_name": "Grace", "email_notifications_enabled": False, "username": "hijack"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["first_name"], "Grace")
        self.assertFalse(response.data["email_notifications_enabled"])
        self.assertEqual(response.data["username"], "api_citizen")


class TestMunicipalityAdministration(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()
        cls.admin = UserPositionService.create_administrator({
            "username": "api_admin",
            "email": "api_admin@participium.test",
            "password": "Adm1n!Pass99",
        })
        cls.citizen = UserPositionService.register_citizen({
            "username": "api_plain_citizen",
            "email": "api_plain_citizen@participium.test",
            "password": "Str0ng!Pass99",
        })
        cls.tm_position = DepartmentRole.objects.get(
            department__name="Public Lighting", role__name=SystemRoles.TECHNICAL_MANAGER,
        )
        cls.em_position = DepartmentRole.objects.get(
            department__name="Organization", role__name=SystemRoles.EXTERNAL_MAINTAINER,
        )
        cls.company = Company.objects.create(name="Lumen", category=ReportCategory.PUBLIC_LIGHTING)

    def setUp(self):
        self.client = APIClient()
        self.client.force_authenticate(user=self.admin)

    def _staff_payload(self, username: str, **overrides) -> dict:
        payload = {
            "username": username,
            "password": "Str0ng!Pass99",
            "password_confirm": "Str0ng!Pass99",
            "email": f"{username}@participium.test",
            "first_name": "Staff",
            "last_name": "Member",
            "position_ids": [self.tm_position.pk],
        }
        payload.update(overrides)
        return payload

    def test_admin_creates_and_lists_staff(self):
        response = self.client.post(reverse("accounts:user-list"), self._staff_payload("api_tm"), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["positions"][0]["id"], self.tm_position.pk)

        response = self.client.get(reverse("accounts:user-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u["username"] for u in response.data], ["api_tm"])

    def test_external_maintainer_without_company_is_400(self):
        response = self.client.post(
            reverse("accounts:user-list"),
            self._staff_payload("api_em", position_ids=[self.em_position.pk]),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            reverse("accounts:user-list"),
            self._staff_payload("api_em", position_ids=[self.em_position.pk], company_id=self.company.pk),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["company"]["id"], self.company.pk)

    def test_non_admin_is_403(self):
        self.client.force_authenticate(user=self.citizen)
        for url in (reverse("accounts:user-list"), reverse("accounts:user-detail", args=[self.admin.pk])):
            with self.subTest(url=url):
                response = self.client.get(url)
                self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
                self.assertEqual(response.data["code"], "insufficient_rights")

    def test_assign_positions(self):
        staff = UserPositionService.create_municipality_user(
            {"username": "api_move", "email": "api_move@participium.test", "password": "Str0ng!Pass99"},
            [self.tm_position.pk],
        )
        pro = DepartmentRole.objects.get(
            department__name="Organization", role__name=SystemRoles.PUBLIC_RELATIONS_OFFICER,
        )
        response = self.client.put(
            reverse("accounts:user-positions", args=[staff.pk]),
            {"position_ids": [pro.pk]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual([p["id"] for p in response.data["positions"]], [pro.pk])

        response = self.client.put(
            reverse("accounts:user-positions", args=[self.citizen.pk]),
            {"position_ids": [pro.pk]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_positions_endpoint_cannot_grant_administrator(self):
        staff = UserPositionService.create_municipality_user(
            {"username": "api_climb", "email": "api_climb@participium.test", "password": "Str0ng!Pass99"},
            [self.tm_position.pk],
        )
        admin_position = DepartmentRole.objects.get(
            department__name="Organization", role__name=SystemRoles.ADMINISTRATOR,
        )
        response = self.client.put(
            reverse("accounts:user-positions", args=[staff.pk]),
            {"position_ids": [admin_position.pk]},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "bad_request")
        self.assertFalse(staff.has_role(SystemRoles.ADMINISTRATOR))

    def test_admin_updates_and_deletes_staff(self):
        staff = UserPositionService.create_municipality_user(
            {"username": "api_edit", "email": "api_edit@participium.test", "password": "Str0ng!Pass99"},
            [self.tm_position.pk],
        )
        detail = reverse("accounts:user-detail", args=[staff.pk])

        response = self.client.patch(
            detail, {"last_name": "Renamed", "username": "ignored"}, format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["last_name"], "Renamed")
        self.assertEqual(response.data["username"], "api_edit")

        response = self.client.patch(
            detail, {"email": "api_plain_citizen@participium.test"}, format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.delete(detail)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=staff.pk).exists())

        response = self.client.delete(detail)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_citizen_and_admin_accounts_cannot_be_edited_here(self):
        for user in (self.citizen, self.admin):
            detail = reverse("accounts:user-detail", args=[user.pk])
            with self.subTest(user=user.username):
                response = self.client.patch(detail, {"first_name": "X"}, format="json")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                response = self.client.delete(detail)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.client.force_authenticate(user=self.citizen)
        response = self.client.delete(reverse("accounts:user-detail", args=[self.admin.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_user_is_404(self):
        response = self.client.get(reverse("accounts:user-detail", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_reference_listings(self):
        roles = self.client.get(reverse("accounts:role-list")).data
        self.assertNotIn(SystemRoles.CITIZEN, [r["name"] for r in roles])

        positions = self.client.get(reverse("accounts:position-list")).data
        self.assertNotIn(SystemRoles.ADMINISTRATOR, [p["role"]["name"] for p in positions])

        lighting = Department.objects.get(name="Public Lighting")
        response = self.client.get(
            reverse("accounts:department-role-list", kwargs={"department_pk": lighting.pk})
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_companies(self):
        response = self.client.post(
            reverse("accounts:company-list"),
            {"name": "AquaFix", "category": ReportCategory.WATER_SUPPLY},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

        response = self.client.post(
            reverse("accounts:company-list"),
            {"name": "aquafix", "category": ReportCategory.WATER_SUPPLY},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        response = self.client.get(
            reverse("accounts:company-list"), {"category": ReportCategory.WATER_SUPPLY},
        )
        self.assertEqual([c["name"] for c in response.data], ["AquaFix"])

        self.client.force_authenticate(user=self.citizen)
        response = self.client.post(
            reverse("accounts:company-list"),
            {"name": "Other Co", "category": ReportCategory.WASTE},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TestTelegramEndpoints(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()
        cls.user = UserPositionService.register_citizen({
            "username": "api_tg",
            "email": "api_tg@participium.test",
            "password": "Str0ng!Pass99",
        })

    def test_code_then_link_then_unlink(self):
        client = APIClient()
        client.force_authenticate(user=self.user)
        response = client.post(reverse("accounts:telegram-code"))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        code = response.data["code"]

        bot = APIClient()
        response = bot.post(
            reverse("accounts:telegram-link"),
            {"telegram_username": "@api_tg_bot_user", "code": code},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["telegram_username"], "api_tg_bot_user")

        response = bot.post(
            reverse("accounts:telegram-link"),
            {"telegram_username": "api_tg_bot_user", "code": code},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = client.delete(reverse("accounts:telegram-code"))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.user.refresh_from_db()
        self.assertIsNone(self.user.telegram_username)
