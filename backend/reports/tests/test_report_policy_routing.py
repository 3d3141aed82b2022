"""
Tests for the transition policy table and the category router.
"""

from __future__ import annotations

from django.test import SimpleTestCase, TestCase

from accounts.models import Department, Role
from accounts.services import ReferenceDataService
from core.domain.access import AuthContext, PositionRef
from core.domain.exceptions import BadRequest, InsufficientRights, Unauthorized
from core.role_constants import SystemRoles
from reports.models import CategoryRoleMapping, ReportCategory, ReportStatus
from reports.policy import TRANSITION_ROLES, TransitionPolicy, can_transition
from reports.routing import CategoryRouter


def _positions(*roles: str) -> tuple[PositionRef, ...]:
    return tuple(PositionRef(department="Any", role=role) for role in roles)


class TestTransitionPolicy(SimpleTestCase):

    def test_table_covers_every_status(self):
        self.assertEqual(set(TRANSITION_ROLES), set(ReportStatus))

    def test_allowed_roles_per_target(self):
        expected = {
            ReportStatus.ASSIGNED: {SystemRoles.PUBLIC_RELATIONS_OFFICER},
            ReportStatus.REJECTED: {SystemRoles.PUBLIC_RELATIONS_OFFICER},
            ReportStatus.IN_PROGRESS: {SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT},
            ReportStatus.SUSPENDED: {SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT},
            ReportStatus.RESOLVED: {
                SystemRoles.TECHNICAL_MANAGER,
                SystemRoles.TECHNICAL_ASSISTANT,
                SystemRoles.EXTERNAL_MAINTAINER,
            },
        }
        all_roles = [
            SystemRoles.CITIZEN,
            SystemRoles.ADMINISTRATOR,
            SystemRoles.PUBLIC_RELATIONS_OFFICER,
            SystemRoles.TECHNICAL_MANAGER,
            SystemRoles.TECHNICAL_ASSISTANT,
            SystemRoles.EXTERNAL_MAINTAINER,
        ]
        for target, allowed in expected.items():
            for role in all_roles:
                with self.subTest(target=target.value, role=role):
                    self.assertEqual(can_transition(_positions(role), target), role in allowed)

    def test_nobody_moves_a_report_back_to_pending(self):
        everyone = _positions(*{r for roles in TRANSITION_ROLES.values() for r in roles})
        self.assertFalse(can_transition(everyone, ReportStatus.PENDING_APPROVAL))

    def test_any_held_position_qualifies(self):
        positions = _positions(SystemRoles.CITIZEN, SystemRoles.TECHNICAL_ASSISTANT)
        self.assertTrue(can_transition(positions, ReportStatus.IN_PROGRESS))

    def test_empty_positions_and_unknown_status_are_denied(self):
        self.assertFalse(can_transition((), ReportStatus.RESOLVED))
        self.assertFalse(
            can_transition(_positions(SystemRoles.TECHNICAL_MANAGER), "Archived")
        )

    def test_category_does_not_change_the_answer(self):
        positions = _positions(SystemRoles.TECHNICAL_MANAGER)
        for category in ReportCategory:
            with self.subTest(category=category.value):
                self.assertTrue(can_transition(positions, ReportStatus.RESOLVED, category))

    def test_authorize_raises_by_kind(self):
        with self.assertRaises(Unauthorized):
            TransitionPolicy().authorize(None, ReportStatus.ASSIGNED)

        citizen = AuthContext(user_id=1, positions=_positions(SystemRoles.CITIZEN))
        with self.assertRaises(InsufficientRights):
            TransitionPolicy().authorize(citizen, ReportStatus.ASSIGNED)

        pro = AuthContext(user_id=2, positions=_positions(SystemRoles.PUBLIC_RELATIONS_OFFICER))
        self.assertIs(TransitionPolicy().authorize(pro, ReportStatus.REJECTED), pro)


class TestCategoryRouter(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()

    def test_mapped_categories_resolve_to_their_role(self):
        router = CategoryRouter()
        role = router.resolve_responsible_role(ReportCategory.PUBLIC_LIGHTING)
        self.assertEqual(role.name, SystemRoles.TECHNICAL_MANAGER)

        role, department = router.resolve_responsible_position(ReportCategory.PUBLIC_LIGHTING)
        self.assertEqual(department.name, "Public Lighting")

    def test_unmapped_category_resolves_to_none(self):
        router = CategoryRouter()
        self.assertIsNone(router.resolve_responsible_role(ReportCategory.OTHER))
        self.assertIsNone(router.resolve_responsible_position(ReportCategory.OTHER))

    def test_unknown_category_is_bad_request(self):
        with self.assertRaises(BadRequest):
            CategoryRouter().resolve_responsible_role("Potholes")

    def test_mappings_are_listed_in_canonical_order(self):
        categories = [category for category, _ in CategoryRouter().list_all_mappings()]
        canonical = [c for c in ReportCategory.values if c != ReportCategory.OTHER]
        self.assertEqual(categories, canonical)

    def test_cache_survives_until_invalidated(self):
        router = CategoryRouter()
        self.assertIsNone(router.resolve_responsible_role(ReportCategory.OTHER))

        pro_role = Role.objects.get(name=SystemRoles.PUBLIC_RELATIONS_OFFICER)
        CategoryRoleMapping.objects.create(
            category=ReportCategory.OTHER,
            role=pro_role,
            department=Department.objects.get(name="Organization"),
        )
        self.assertIsNone(router.resolve_responsible_role(ReportCategory.OTHER))

        router.invalidate()
        self.assertEqual(router.resolve_responsible_role(ReportCategory.OTHER), pro_role)
