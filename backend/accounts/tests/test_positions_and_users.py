"""
Tests for the position directory, the position invariants on user
accounts, and the reference-data seeding.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.models import Company, Department, DepartmentRole, Role
from accounts.services import (
    CATEGORY_ROUTING,
    PositionDirectory,
    ReferenceDataService,
    UserPositionService,
)
from core.domain.exceptions import BadRequest, Conflict, NotFound
from core.role_constants import STRUCTURAL_ROLES, SystemRoles
from reports.models import CategoryRoleMapping, Report, ReportCategory, ReportStatus

User = get_user_model()


def _user_data(username: str, **overrides) -> dict:
    data = {
        "username": username,
        "email": f"{username}@participium.test",
        "password": "Str0ng!Pass99",
        "first_name": "Test",
        "last_name": "User",
    }
    data.update(overrides)
    return data


def _position(department: str, role: str) -> DepartmentRole:
    return DepartmentRole.objects.get(department__name=department, role__name=role)


class TestReferenceData(TestCase):

    def test_seed_is_idempotent(self):
        first = ReferenceDataService.seed()
        self.assertGreater(first["roles"], 0)
        self.assertEqual(first["mappings"], len(CATEGORY_ROUTING))

        second = ReferenceDataService.seed()
        self.assertEqual(second, {"roles": 0, "departments": 0, "positions": 0, "mappings": 0})
        self.assertEqual(CategoryRoleMapping.objects.count(), len(CATEGORY_ROUTING))

    def test_other_category_stays_unmapped(self):
        ReferenceDataService.seed()
        self.assertFalse(
            CategoryRoleMapping.objects.filter(category=ReportCategory.OTHER).exists()
        )


class TestPositionDirectory(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()
        cls.directory = PositionDirectory()

    def test_municipality_roles_exclude_structural_roles(self):
        names = list(self.directory.list_municipality_roles().values_list("name", flat=True))
        self.assertEqual(names, sorted(names))
        self.assertIn(SystemRoles.PUBLIC_RELATIONS_OFFICER, names)
        for structural in STRUCTURAL_ROLES:
            self.assertNotIn(structural, names)

    def test_municipality_positions_agree_with_roles(self):
        positions = list(self.directory.list_municipality_positions())
        role_names = {p.role.name for p in positions}
        self.assertEqual(
            role_names,
            set(self.directory.list_municipality_roles().values_list("name", flat=True)),
        )
        keys = [(p.department.name, p.role.name) for p in positions]
        self.assertEqual(keys, sorted(keys))

    def test_departments_and_their_roles(self):
        departments = list(self.directory.list_departments())
        self.assertIn("Public Lighting", [d.name for d in departments])

        lighting = Department.objects.get(name="Public Lighting")
        roles = [p.role.name for p in self.directory.list_roles_by_department(lighting.pk)]
        self.assertEqual(roles, [SystemRoles.TECHNICAL_ASSISTANT, SystemRoles.TECHNICAL_MANAGER])

        organization = Department.objects.get(name="Organization")
        org_roles = {p.role.name for p in self.directory.list_roles_by_department(organization.pk)}
        self.assertNotIn(SystemRoles.CITIZEN, org_roles)

        with self.assertRaises(NotFound):
            self.directory.list_roles_by_department(999999)

    def test_find_position_and_role_validity(self):
        self.assertIsNotNone(self.directory.find_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER))
        self.assertIsNone(self.directory.find_position("Public Lighting", SystemRoles.CITIZEN))
        self.assertTrue(self.directory.is_valid_role(SystemRoles.CITIZEN))
        self.assertFalse(self.directory.is_valid_role("Mayor"))

    def test_staff_with_role_matches_role_and_department_on_the_same_position(self):
        tm_role = Role.objects.get(name=SystemRoles.TECHNICAL_MANAGER)
        lighting = Department.objects.get(name="Public Lighting")
        roads_tm = User.objects.create_user(**_user_data("dir_roads_tm"))
        # TM of Roads who is only an assistant in Public Lighting.
        roads_tm.positions.set([
            _position("Roads and Mobility", SystemRoles.TECHNICAL_MANAGER),
            _position("Public Lighting", SystemRoles.TECHNICAL_ASSISTANT),
        ])
        lighting_tm = User.objects.create_user(**_user_data("dir_lighting_tm"))
        lighting_tm.positions.set([_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER)])

        self.assertEqual(list(self.directory.staff_with_role(tm_role, lighting)), [lighting_tm])
        self.assertEqual(set(self.directory.staff_with_role(tm_role)), {roads_tm, lighting_tm})


class TestUserPositionService(TestCase):

    @classmethod
    def setUpTestData(cls):
        ReferenceDataService.seed()
        cls.company = Company.objects.create(name="Lumen Srl", category=ReportCategory.PUBLIC_LIGHTING)

    def test_register_citizen_holds_only_the_citizen_position(self):
        user = UserPositionService.register_citizen(_user_data("ups_citizen"))
        positions = list(user.positions.select_related("department", "role"))
        self.assertEqual(len(positions), 1)
        self.assertEqual(positions[0].department.name, "Organization")
        self.assertEqual(positions[0].role.name, SystemRoles.CITIZEN)
        self.assertTrue(user.check_password("Str0ng!Pass99"))

    def test_duplicate_username_or_email_is_conflict(self):
        UserPositionService.register_citizen(_user_data("ups_dupe"))
        with self.assertRaises(Conflict):
            UserPositionService.register_citizen(_user_data("ups_dupe", email="other@participium.test"))
        with self.assertRaises(Conflict):
            UserPositionService.register_citizen(
                _user_data("ups_dupe_2", email="UPS_DUPE@participium.test")
            )

    def test_create_municipality_user_with_several_positions(self):
        positions = [
            _position("Public Lighting", SystemRoles.TECHNICAL_MANAGER),
            _position("Roads and Mobility", SystemRoles.TECHNICAL_ASSISTANT),
        ]
        user = UserPositionService.create_municipality_user(
            _user_data("ups_staff"), [p.pk for p in positions],
        )
        self.assertEqual(set(user.positions.all()), set(positions))
        self.assertIsNone(user.company)

    def test_create_external_maintainer_requires_company(self):
        maintainer = _position("Organization", SystemRoles.EXTERNAL_MAINTAINER)
        with self.assertRaises(BadRequest):
            UserPositionService.create_municipality_user(_user_data("ups_em"), [maintainer.pk])

        user = UserPositionService.create_municipality_user(
            _user_data("ups_em"), [maintainer.pk], company_id=self.company.pk,
        )
        self.assertEqual(user.company, self.company)

    def test_create_municipality_user_errors(self):
        tm = _position("Public Lighting", SystemRoles.TECHNICAL_MANAGER)
        citizen = _position("Organization", SystemRoles.CITIZEN)
        admin = _position("Organization", SystemRoles.ADMINISTRATOR)
        cases = [
            ([], None, BadRequest),
            ([999999], None, NotFound),
            ([citizen.pk], None, BadRequest),
            ([admin.pk, tm.pk], None, BadRequest),
            ([tm.pk], self.company.pk, BadRequest),
            ([tm.pk], 999999, NotFound),
        ]
        for position_ids, company_id, error in cases:
            with self.subTest(position_ids=position_ids, company_id=company_id):
                with self.assertRaises(error):
                    UserPositionService.create_municipality_user(
                        _user_data("ups_bad"), position_ids, company_id,
                    )
        self.assertFalse(User.objects.filter(username="ups_bad").exists())

    def test_assign_positions_keeps_citizen_invariant(self):
        citizen = UserPositionService.register_citizen(_user_data("ups_assign_citizen"))
        tm = _position("Public Lighting", SystemRoles.TECHNICAL_MANAGER)
        citizen_position = _position("Organization", SystemRoles.CITIZEN)

        with self.assertRaises(BadRequest):
            UserPositionService.assign_positions(citizen, [tm])
        with self.assertRaises(BadRequest):
            UserPositionService.assign_positions(citizen, [citizen_position, tm])
        with self.assertRaises(BadRequest):
            UserPositionService.assign_positions(citizen, [])

    def test_assign_positions_replaces_staff_positions(self):
        staff = UserPositionService.create_municipality_user(
            _user_data("ups_assign_staff"),
            [_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER).pk],
        )
        pro = _position("Organization", SystemRoles.PUBLIC_RELATIONS_OFFICER)
        UserPositionService.assign_positions(staff, [pro])
        self.assertEqual(list(staff.positions.all()), [pro])

    def test_staff_cannot_be_given_structural_positions(self):
        tm = _position("Public Lighting", SystemRoles.TECHNICAL_MANAGER)
        staff = UserPositionService.create_municipality_user(_user_data("ups_escalate"), [tm.pk])
        admin = _position("Organization", SystemRoles.ADMINISTRATOR)
        citizen = _position("Organization", SystemRoles.CITIZEN)

        for positions in ([admin], [admin, tm], [citizen]):
            with self.subTest(positions=[str(p) for p in positions]):
                with self.assertRaises(BadRequest):
                    UserPositionService.assign_positions(staff, positions)

        self.assertEqual(staff.role_names(), [SystemRoles.TECHNICAL_MANAGER])
        self.assertFalse(staff.has_role(SystemRoles.ADMINISTRATOR))

    def test_list_municipality_users_excludes_citizens(self):
        UserPositionService.register_citizen(_user_data("ups_list_citizen"))
        staff = UserPositionService.create_municipality_user(
            _user_data("ups_list_staff"),
            [_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER).pk],
        )
        self.assertEqual(list(UserPositionService.list_municipality_users()), [staff])

    def test_update_municipality_user(self):
        staff = UserPositionService.create_municipality_user(
            _user_data("ups_edit"), [_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER).pk],
        )
        UserPositionService.register_citizen(_user_data("ups_edit_taken"))

        user = UserPositionService.update_municipality_user(
            staff.pk, {"first_name": "Renamed", "email": "ups_edit_new@participium.test"},
        )
        self.assertEqual(user.first_name, "Renamed")
        self.assertEqual(user.email, "ups_edit_new@participium.test")

        with self.assertRaises(Conflict):
            UserPositionService.update_municipality_user(
                staff.pk, {"email": "UPS_EDIT_TAKEN@participium.test"},
            )
        # Keeping one's own address is not a clash.
        UserPositionService.update_municipality_user(
            staff.pk, {"email": "ups_edit_new@participium.test"},
        )

    def test_update_or_delete_rejects_structural_accounts(self):
        citizen = UserPositionService.register_citizen(_user_data("ups_edit_citizen"))
        admin = UserPositionService.create_administrator(_user_data("ups_edit_admin"))
        for user in (citizen, admin):
            with self.subTest(user=user.username):
                with self.assertRaises(BadRequest):
                    UserPositionService.update_municipality_user(user.pk, {"first_name": "X"})
                with self.assertRaises(BadRequest):
                    UserPositionService.delete_municipality_user(user.pk)
        with self.assertRaises(NotFound):
            UserPositionService.delete_municipality_user(999999)

    def test_delete_municipality_user(self):
        staff = UserPositionService.create_municipality_user(
            _user_data("ups_delete"), [_position("Public Lighting", SystemRoles.TECHNICAL_MANAGER).pk],
        )
        citizen = UserPositionService.register_citizen(_user_data("ups_delete_reporter"))
        report = Report.objects.create(
            title="Streetlight out",
            description="The lamp at the corner has been dark for a week.",
            category=ReportCategory.PUBLIC_LIGHTING,
            status=ReportStatus.IN_PROGRESS,
            latitude=45.07,
            longitude=7.68,
            reporter=citizen,
            assignee=staff,
        )

        with self.assertRaises(Conflict):
            UserPositionService.delete_municipality_user(staff.pk)
        self.assertTrue(User.objects.filter(pk=staff.pk).exists())

        Report.objects.filter(pk=report.pk).update(status=ReportStatus.RESOLVED)
        UserPositionService.delete_municipality_user(staff.pk)

        self.assertFalse(User.objects.filter(pk=staff.pk).exists())
        report.refresh_from_db()
        self.assertIsNone(report.assignee)

    def test_create_administrator(self):
        admin = UserPositionService.create_administrator(_user_data("ups_admin"))
        self.assertTrue(admin.has_role(SystemRoles.ADMINISTRATOR))
        self.assertTrue(admin.is_staff)
