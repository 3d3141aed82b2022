"""
Smoke tests: verify that Django boots, URL routing resolves, and the
core domain helpers behave on their own.

Only the transaction helpers need a DB (``@pytest.mark.django_db``);
everything else runs without data.
"""

from __future__ import annotations

import pytest
from django.urls import resolve, reverse

from core.domain.access import AuthContext, PositionRef, apply_role_scope, require_auth, require_role
from core.domain.exceptions import Conflict, InsufficientRights, InvalidTransition, NotFound, Unauthorized


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure every app's entry points reverse and resolve."""

    EXPECTED_URLS = [
        # (url_name, expected_path)
        ("report-list",               "/api/reports/"),
        ("report-categories",         "/api/reports/categories/"),
        ("report-mappings",           "/api/reports/mappings/"),
        ("report-map",                "/api/reports/map/"),
        ("accounts:register",         "/api/accounts/auth/register/"),
        ("accounts:login",            "/api/accounts/auth/login/"),
        ("accounts:company-list",     "/api/accounts/companies/"),
        ("core:system-constants",     "/api/core/constants/"),
        ("core:notification-list",    "/api/core/notifications/"),
    ]

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_reverses(self, url_name: str, expected_path: str):
        assert reverse(url_name) == expected_path

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_resolves_to_a_view(self, url_name: str, expected_path: str):
        match = resolve(expected_path)
        assert match.func is not None

    def test_detail_routes_only_accept_numeric_ids(self):
        assert reverse("report-change-status", args=[7]) == "/api/reports/7/status/"
        assert reverse("report-photo-list", kwargs={"report_pk": 7}) == "/api/reports/7/photos/"
        assert reverse("report-assign-external", args=[7]) == "/api/reports/7/assign-external/"
        assert reverse("report-external-assigned", kwargs={"maintainer_id": 3}) == (
            "/api/reports/assigned/external/3/"
        )
        assert reverse("report-comment-detail", kwargs={"report_pk": 7, "pk": 2}) == (
            "/api/reports/7/internal-comments/2/"
        )


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

def _auth(*roles: str) -> AuthContext:
    return AuthContext(
        user_id=1,
        positions=tuple(PositionRef(department="Organization", role=r) for r in roles),
    )


class TestAccessHelpers:

    def test_require_auth_and_role(self):
        with pytest.raises(Unauthorized):
            require_auth(None)
        with pytest.raises(Unauthorized):
            require_role(None, "Citizen")
        with pytest.raises(InsufficientRights):
            require_role(_auth("Citizen"), "Administrator", "Public Relations Officer")

        auth = _auth("Citizen", "Administrator")
        assert require_role(auth, "Administrator") is auth
        assert auth.role_names == frozenset({"Citizen", "Administrator"})

    def test_apply_role_scope_first_match_wins(self):
        from unittest.mock import MagicMock

        qs = MagicMock()
        rules = [
            (("Administrator",), lambda q, a: "admin-scope"),
            ((), lambda q, a: "default-scope"),
        ]
        assert apply_role_scope(qs, _auth("Administrator"), scope_rules=rules) == "admin-scope"
        assert apply_role_scope(qs, _auth("Citizen"), scope_rules=rules) == "default-scope"

    def test_apply_role_scope_without_match(self):
        from unittest.mock import MagicMock

        qs = MagicMock()
        assert apply_role_scope(qs, _auth("Citizen"), scope_rules=[], default="all") is qs
        apply_role_scope(qs, _auth("Citizen"), scope_rules=[], default="none")
        qs.none.assert_called_once()


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:

    def test_invalid_transition_structured(self):
        err = InvalidTransition(current="Resolved", target="In Progress", reason="terminal state")
        assert "Resolved" in str(err)
        assert "In Progress" in str(err)
        assert "terminal state" in str(err)
        assert not isinstance(err, Conflict)

    def test_invalid_transition_plain_message(self):
        assert str(InvalidTransition("Cannot reopen report.")) == "Cannot reopen report."


# ════════════════════════════════════════════════════════════════════
#  Transaction Helpers
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestTransactionHelpers:

    def _report(self, create_user, reference_data):
        from reports.models import Report, ReportCategory

        return Report.objects.create(
            title="Smoke report",
            description="Used by the transaction helper tests.",
            category=ReportCategory.WASTE,
            latitude=45.0,
            longitude=7.0,
            reporter=create_user(),
        )

    def test_lock_for_update_missing_row(self):
        from django.db import transaction

        from core.domain.transactions import lock_for_update
        from reports.models import Report

        with pytest.raises(NotFound):
            with transaction.atomic():
                lock_for_update(Report, 424242)

    def test_versioned_update_bumps_version_and_detects_staleness(self, create_user, reference_data):
        from core.domain.transactions import versioned_update
        from reports.models import Report, ReportStatus

        report = self._report(create_user, reference_data)
        stale = Report.objects.get(pk=report.pk)
        before = report.updated_at

        report = versioned_update(report, status=ReportStatus.ASSIGNED)
        assert report.version == 1
        assert report.updated_at >= before

        with pytest.raises(Conflict):
            versioned_update(stale, status=ReportStatus.REJECTED)
        report.refresh_from_db()
        assert report.status == ReportStatus.ASSIGNED
