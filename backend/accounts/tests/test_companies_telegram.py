"""
Tests for external companies and Telegram account linking.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone

from accounts.models import Company
from accounts.services import CompanyService, TelegramLinkService
from core.domain.exceptions import BadRequest, Conflict, NotFound
from reports.models import ReportCategory

User = get_user_model()


class TestCompanyService(TestCase):

    def test_create_and_list_by_category(self):
        water = CompanyService.create_company("  AquaFix  ", ReportCategory.WATER_SUPPLY)
        lumen = CompanyService.create_company("Lumen", ReportCategory.PUBLIC_LIGHTING)

        self.assertEqual(water.name, "AquaFix")
        self.assertEqual(list(CompanyService.list_companies()), [water, lumen])
        self.assertEqual(
            list(CompanyService.list_companies(ReportCategory.PUBLIC_LIGHTING)),
            [lumen],
        )

    def test_name_is_unique_case_insensitively(self):
        CompanyService.create_company("AquaFix", ReportCategory.WATER_SUPPLY)
        with self.assertRaises(Conflict):
            CompanyService.create_company("aquafix", ReportCategory.SEWER_SYSTEM)

    def test_invalid_input(self):
        with self.assertRaises(BadRequest):
            CompanyService.create_company("   ", ReportCategory.WASTE)
        with self.assertRaises(BadRequest):
            CompanyService.create_company("Potholes Inc", "Potholes")
        with self.assertRaises(BadRequest):
            CompanyService.list_companies("Potholes")
        with self.assertRaises(NotFound):
            CompanyService.get_company(999999)
        self.assertFalse(Company.objects.exists())


@override_settings(TELEGRAM_LINK_CODE_TTL_MINUTES=5)
class TestTelegramLinkService(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.alice = User.objects.create_user(
            username="tg_alice", email="tg_alice@participium.test", password="Str0ng!Pass99",
        )
        cls.bob = User.objects.create_user(
            username="tg_bob", email="tg_bob@participium.test", password="Str0ng!Pass99",
        )

    def test_generate_code_is_six_digits_with_ttl(self):
        before = timezone.now()
        code, expires_at = TelegramLinkService.generate_code(self.alice)

        self.assertRegex(code, r"^\d{6}$")
        self.assertGreaterEqual(expires_at, before + timedelta(minutes=5))
        self.alice.refresh_from_db()
        self.assertEqual(self.alice.telegram_link_code, code)

    def test_verify_links_and_consumes_code(self):
        code, _ = TelegramLinkService.generate_code(self.alice)
        user = TelegramLinkService.verify_and_link("@alice_tg", code)

        self.assertEqual(user, self.alice)
        self.assertEqual(user.telegram_username, "alice_tg")
        self.assertEqual(user.telegram_link_code, "")
        self.assertEqual(TelegramLinkService.resolve_user("alice_tg"), self.alice)

        with self.assertRaises(BadRequest):
            TelegramLinkService.verify_and_link("alice_tg", code)

    def test_bad_codes(self):
        code, _ = TelegramLinkService.generate_code(self.alice)
        wrong = "000000" if code != "000000" else "111111"
        for username, value in [("", code), ("alice_tg", "12ab56"), ("alice_tg", "123"), ("alice_tg", wrong)]:
            with self.subTest(username=username, code=value):
                with self.assertRaises(BadRequest):
                    TelegramLinkService.verify_and_link(username, value)

    def test_expired_code(self):
        code, _ = TelegramLinkService.generate_code(self.alice)
        User.objects.filter(pk=self.alice.pk).update(
            telegram_link_code_expires_at=timezone.now() - timedelta(seconds=1),
        )
        with self.assertRaises(BadRequest):
            TelegramLinkService.verify_and_link("alice_tg", code)

    def test_username_linked_elsewhere_is_conflict(self):
        User.objects.filter(pk=self.bob.pk).update(telegram_username="shared_tg")
        code, _ = TelegramLinkService.generate_code(self.alice)
        with self.assertRaises(Conflict):
            TelegramLinkService.verify_and_link("shared_tg", code)

    def test_unlink(self):
        code, _ = TelegramLinkService.generate_code(self.alice)
        TelegramLinkService.verify_and_link("alice_tg", code)
        TelegramLinkService.unlink(self.alice)

        with self.assertRaises(NotFound):
            TelegramLinkService.resolve_user("alice_tg")
