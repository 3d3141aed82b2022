"""
Accounts Service Layer.

This module is the **single source of truth** for all business logic
within the ``accounts`` app.  Views must remain *thin*: they validate
input through serializers, call a service function / method, and
return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``PositionDirectory``       : read access to roles, departments, positions.
- ``UserPositionService``     : citizen registration, staff accounts, the
                                position invariants.
- ``AuthenticationService``   : username / e-mail login + JWT issuance.
- ``CurrentUserService``      : "Me" endpoint helpers.
- ``CompanyService``          : external maintenance companies.
- ``TelegramLinkService``     : one-time codes binding a Telegram account.
- ``ReferenceDataService``    : idempotent seeding of the reference data.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Iterable

from django.conf import settings
from django.contrib.auth import authenticate as django_authenticate
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, ProtectedError, Q, QuerySet
from django.utils import timezone
from rest_framework_simplejwt.tokens import RefreshToken

from core.constants import (
    DEFAULT_TELEGRAM_LINK_CODE_TTL_MINUTES,
    ORGANIZATION_DEPARTMENT,
    TELEGRAM_LINK_CODE_LENGTH,
)
from core.domain.exceptions import BadRequest, Conflict, NotFound
from core.role_constants import STRUCTURAL_ROLES, SystemRoles, is_structural_role
from reports.models import OPEN_STATUSES, ReportCategory

from .models import Company, Department, DepartmentRole, Role

User = get_user_model()

logger = logging.getLogger(__name__)


def municipality_positions() -> QuerySet[DepartmentRole]:
    """
    Positions that may be held by municipal staff.

    Every "municipality" listing goes through this one filter so that the
    role list and the position list can never disagree about what is
    structural.
    """
    return (
        DepartmentRole.objects
        .select_related("department", "role")
        .exclude(role__name__in=STRUCTURAL_ROLES)
    )


# ═══════════════════════════════════════════════════════════════════
#  Position Directory
# ═══════════════════════════════════════════════════════════════════


class PositionDirectory:
    """
    Read-only lookups over roles, departments and positions.

    Stateless; an instance exists so that callers (the report workflow)
    can receive a substitute in tests.
    """

    def find_position(self, department: str, role: str) -> DepartmentRole | None:
        """Return the position for the given names, or ``None``."""
        return (
            DepartmentRole.objects
            .select_related("department", "role")
            .filter(department__name=department, role__name=role)
            .first()
        )

    def list_municipality_roles(self) -> QuerySet[Role]:
        """Roles held by at least one municipality position, by name."""
        return (
            Role.objects
            .filter(pk__in=municipality_positions().values("role_id"))
            .order_by("name")
        )

    def list_municipality_positions(self) -> QuerySet[DepartmentRole]:
        """Staff positions ordered by department name, then role name."""
        return municipality_positions().order_by("department__name", "role__name")

    def is_valid_role(self, name: str) -> bool:
        return Role.objects.filter(name=name).exists()

    def list_departments(self) -> QuerySet[Department]:
        """Departments with at least one staff position."""
        return (
            Department.objects
            .annotate(
                staff_positions=Count(
                    "department_roles",
                    filter=~Q(department_roles__role__name__in=STRUCTURAL_ROLES),
                )
            )
            .filter(staff_positions__gt=0)
            .order_by("name")
        )

    def list_roles_by_department(self, department_id: int) -> QuerySet[DepartmentRole]:
        """
        Staff positions of one department.

        Raises
        ------
        NotFound
            If the department does not exist.
        """
        if not Department.objects.filter(pk=department_id).exists():
            raise NotFound(f"Department with id {department_id} not found.")
        return (
            municipality_positions()
            .filter(department_id=department_id)
            .order_by("role__name")
        )

    def staff_with_role(
        self,
        role: Role,
        department: Department | None = None,
    ) -> QuerySet:
        """Active users holding ``role`` (optionally in ``department``)."""
        lookup: dict[str, Any] = {"positions__role": role}
        if department is not None:
            lookup["positions__department"] = department
        # One filter() call so both conditions apply to the same position.
        return User.objects.filter(is_active=True, **lookup).distinct()


# ═══════════════════════════════════════════════════════════════════
#  User / Position Service
# ═══════════════════════════════════════════════════════════════════


class UserPositionService:
    """
    Account creation and the rules about which positions a user may hold.

    Invariants
    ----------
    * a Citizen holds exactly one position, ``(Organization, Citizen)``;
    * staff accounts hold one or more non-structural positions;
    * External Maintainers reference the company they work for.
    """

    @staticmethod
    def _check_unique(data: dict[str, Any]) -> None:
        conflicts = []
        if User.objects.filter(username=data.get("username")).exists():
            conflicts.append("username")
        if User.objects.filter(email__iexact=data.get("email")).exists():
            conflicts.append("email")
        if conflicts:
            raise Conflict(
                f"The following field(s) already exist: {', '.join(conflicts)}."
            )

    @staticmethod
    def _create_user(data: dict[str, Any]) -> User:
        data = dict(data)
        data.pop("password_confirm", None)
        password = data.pop("password")
        try:
            return User.objects.create_user(password=password, **data)
        except IntegrityError:
            raise Conflict(
                "A user with one of the provided unique fields already exists."
            )

    @staticmethod
    def citizen_position() -> DepartmentRole:
        """
        Return the ``(Organization, Citizen)`` position, creating the
        reference rows if the database has not been seeded yet.
        """
        department, _ = Department.objects.get_or_create(name=ORGANIZATION_DEPARTMENT)
        role, _ = Role.objects.get_or_create(name=SystemRoles.CITIZEN)
        position, _ = DepartmentRole.objects.get_or_create(department=department, role=role)
        return position

    @classmethod
    def register_citizen(cls, validated_data: dict[str, Any]) -> User:
        """
        Create a citizen account bound to the single Citizen position.

        Parameters
        ----------
        validated_data : dict
            ``username``, ``email``, ``password``, ``first_name``,
            ``last_name``.

        Raises
        ------
        Conflict
            If the username or e-mail is already taken.
        """
        cls._check_unique(validated_data)
        with transaction.atomic():
            user = cls._create_user(validated_data)
            user.positions.set([cls.citizen_position()])
        logger.info("Registered citizen %s", user.username)
        return user

    @classmethod
    def create_administrator(cls, validated_data: dict[str, Any]) -> User:
        """
        Create an account holding ``(Organization, Administrator)``.

        Administrators cannot be created through the API; this is the
        bootstrap path used by ``setup_reference_data --admin``.
        """
        cls._check_unique(validated_data)
        department, _ = Department.objects.get_or_create(name=ORGANIZATION_DEPARTMENT)
        role, _ = Role.objects.get_or_create(name=SystemRoles.ADMINISTRATOR)
        position, _ = DepartmentRole.objects.get_or_create(department=department, role=role)
        with transaction.atomic():
            user = cls._create_user({**validated_data, "is_staff": True})
            user.positions.set([position])
        logger.info("Created administrator %s", user.username)
        return user

    @classmethod
    def create_municipality_user(
        cls,
        validated_data: dict[str, Any],
        position_ids: Iterable[int],
        company_id: int | None = None,
    ) -> User:
        """
        Create a staff account holding ``position_ids``.

        Raises
        ------
        Conflict
            Duplicate username or e-mail.
        NotFound
            Unknown position or company id.
        BadRequest
            No positions, a structural position, an External Maintainer
            without a company, or a company given to a non-maintainer.
        """
        position_ids = list(dict.fromkeys(position_ids))
        positions = list(
            DepartmentRole.objects
            .select_related("department", "role")
            .filter(pk__in=position_ids)
        )
        missing = set(position_ids) - {p.pk for p in positions}
        if missing:
            raise NotFound(
                f"Position(s) not found: {', '.join(str(m) for m in sorted(missing))}."
            )
        if not positions:
            raise BadRequest("A municipality user must hold at least one position.")
        cls._reject_structural(positions)

        company = None
        is_maintainer = any(
            p.role.name == SystemRoles.EXTERNAL_MAINTAINER for p in positions
        )
        if company_id is not None:
            company = Company.objects.filter(pk=company_id).first()
            if company is None:
                raise NotFound(f"Company with id {company_id} not found.")
            if not is_maintainer:
                raise BadRequest("Only External Maintainers can belong to a company.")
        elif is_maintainer:
            raise BadRequest("External Maintainers must be linked to a company.")

        cls._check_unique(validated_data)
        with transaction.atomic():
            user = cls._create_user(validated_data)
            if company is not None:
                user.company = company
                user.save(update_fields=["company"])
            user.positions.set(positions)

        logger.info(
            "Created municipality user %s with %d position(s)",
            user.username,
            len(positions),
        )
        return user

    @staticmethod
    def _reject_structural(positions: Iterable[DepartmentRole]) -> None:
        structural = [p for p in positions if is_structural_role(p.role.name)]
        if structural:
            raise BadRequest(
                f"Position '{structural[0]}' cannot be assigned to a municipality user."
            )

    @classmethod
    def assign_positions(cls, user: User, positions: Iterable[DepartmentRole]) -> User:
        """
        Replace the positions held by ``user``.

        A citizen account may only keep its ``(Organization, Citizen)``
        position; any other account may only receive staff positions.

        Raises
        ------
        BadRequest
            If the result would hold no position, would break the Citizen
            invariant, or would hand a structural position to a staff
            account.
        """
        positions = list(positions)
        if not positions:
            raise BadRequest("A user must hold at least one position.")

        citizen = [p for p in positions if p.role.name == SystemRoles.CITIZEN]
        if user.has_role(SystemRoles.CITIZEN):
            if not citizen:
                raise BadRequest("A citizen account cannot be given staff positions.")
            if len(positions) != 1:
                raise BadRequest(
                    "A citizen holds exactly one position and cannot be combined "
                    "with other positions."
                )
            if citizen[0].department.name != ORGANIZATION_DEPARTMENT:
                raise BadRequest(
                    f"The Citizen role is only valid in the "
                    f"'{ORGANIZATION_DEPARTMENT}' department."
                )
        else:
            cls._reject_structural(positions)

        user.positions.set(positions)
        logger.info(
            "User %s now holds %d position(s)", user.username, len(positions)
        )
        return user

    @staticmethod
    def list_municipality_users() -> QuerySet:
        """Users holding at least one staff position."""
        return (
            User.objects
            .filter(positions__in=municipality_positions())
            .prefetch_related("positions__department", "positions__role")
            .distinct()
            .order_by("username")
        )

    @staticmethod
    def get_user(user_id: int) -> User:
        try:
            return User.objects.prefetch_related(
                "positions__department", "positions__role"
            ).get(pk=user_id)
        except User.DoesNotExist:
            raise NotFound(f"User with id {user_id} not found.")

    @classmethod
    def _get_municipality_user(cls, user_id: int) -> User:
        user = cls.get_user(user_id)
        structural = [r for r in user.role_names() if is_structural_role(r)]
        if structural:
            raise BadRequest(
                f"User {user_id} is a {structural[0]} account, not a municipality user."
            )
        return user

    @classmethod
    def update_municipality_user(cls, user_id: int, validated_data: dict[str, Any]) -> User:
        """
        Update the name and e-mail of a staff account.

        Raises
        ------
        NotFound
            Unknown user.
        BadRequest
            The account is a Citizen or Administrator.
        Conflict
            The new e-mail belongs to another account.
        """
        user = cls._get_municipality_user(user_id)
        email = validated_data.get("email")
        if email and User.objects.filter(email__iexact=email).exclude(pk=user.pk).exists():
            raise Conflict("The following field(s) already exist: email.")

        for field, value in validated_data.items():
            setattr(user, field, value)
        if validated_data:
            user.save(update_fields=list(validated_data.keys()))
        logger.info("Updated municipality user %s (%s)", user.username, ", ".join(validated_data))
        return user

    @classmethod
    def delete_municipality_user(cls, user_id: int) -> None:
        """
        Delete a staff account.

        Raises
        ------
        NotFound
            Unknown user.
        BadRequest
            The account is a Citizen or Administrator.
        Conflict
            The user still has open reports assigned, or filed reports
            that must be kept.
        """
        user = cls._get_municipality_user(user_id)
        if user.assigned_reports.filter(status__in=OPEN_STATUSES).exists():
            raise Conflict(
                f"User {user_id} still has open reports assigned; reassign them first."
            )
        try:
            with transaction.atomic():
                user.delete()
        except ProtectedError:
            raise Conflict(f"User {user_id} has filed reports and cannot be deleted.")
        logger.info("Deleted municipality user %s", user.username)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Service
# ═══════════════════════════════════════════════════════════════════


class AuthenticationService:
    """Username / e-mail login and JWT token generation."""

    @staticmethod
    def authenticate(identifier: str, password: str) -> User | None:
        """
        Validate credentials and return the user, or ``None`` when the
        credentials are wrong or the account is inactive.

        Resolution is delegated to ``accounts.backends.IdentifierAuthBackend``.
        """
        return django_authenticate(identifier=identifier, password=password)

    @staticmethod
    def generate_tokens(user: User) -> dict[str, str]:
        """Issue a JWT access/refresh token pair for ``user``."""
        refresh = RefreshToken.for_user(user)
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


# ═══════════════════════════════════════════════════════════════════
#  Current User (Me) Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Helpers for the "Me" endpoint, the way the web client discovers who
    the logged-in user is and which positions they hold.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        """Re-fetch ``user`` with positions prefetched for serialization."""
        return (
            User.objects
            .select_related("company")
            .prefetch_related("positions__department", "positions__role")
            .get(pk=user.pk)
        )

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the caller's own profile fields.

        Only ``first_name``, ``last_name``, ``personal_photo_url`` and
        ``email_notifications_enabled`` reach this method; positions and
        the Telegram link have dedicated operations.
        """
        for field, value in validated_data.items():
            setattr(user, field, value)
        if validated_data:
            user.save(update_fields=list(validated_data.keys()))
        return CurrentUserService.get_profile(user)


# ═══════════════════════════════════════════════════════════════════
#  Company Service
# ═══════════════════════════════════════════════════════════════════


class CompanyService:
    """External maintenance companies."""

    @staticmethod
    def create_company(name: str, category: str) -> Company:
        """
        Register a company servicing ``category``.

        Raises
        ------
        BadRequest
            Empty name or unknown category.
        Conflict
            A company with the same name (case-insensitive) exists.
        """
        name = (name or "").strip()
        if not name:
            raise BadRequest("Company name is required.")
        if category not in ReportCategory.values:
            raise BadRequest(f"Invalid category '{category}'.")
        if Company.objects.filter(name__iexact=name).exists():
            raise Conflict(f"A company named '{name}' already exists.")
        try:
            company = Company.objects.create(name=name, category=category)
        except IntegrityError:
            raise Conflict(f"A company named '{name}' already exists.")
        logger.info("Created company %s for category %s", company.name, category)
        return company

    @staticmethod
    def list_companies(category: str | None = None) -> QuerySet[Company]:
        qs = Company.objects.all()
        if category:
            if category not in ReportCategory.values:
                raise BadRequest(f"Invalid category '{category}'.")
            qs = qs.filter(category=category)
        return qs.order_by("name")

    @staticmethod
    def get_company(company_id: int) -> Company:
        try:
            return Company.objects.get(pk=company_id)
        except Company.DoesNotExist:
            raise NotFound(f"Company with id {company_id} not found.")


# ═══════════════════════════════════════════════════════════════════
#  Telegram Link Service
# ═══════════════════════════════════════════════════════════════════

_CODE_RE = re.compile(rf"^\d{{{TELEGRAM_LINK_CODE_LENGTH}}}$")


class TelegramLinkService:
    """
    Binds a Telegram account to a platform account.

    The user asks the web client for a short numeric code and sends it to
    the bot; the bot collaborator calls ``verify_and_link`` with the
    Telegram username it saw.
    """

    @staticmethod
    def _ttl() -> timedelta:
        minutes = getattr(
            settings,
            "TELEGRAM_LINK_CODE_TTL_MINUTES",
            DEFAULT_TELEGRAM_LINK_CODE_TTL_MINUTES,
        )
        return timedelta(minutes=int(minutes))

    @staticmethod
    def _normalise(username: str) -> str:
        return (username or "").strip().lstrip("@")

    @classmethod
    def generate_code(cls, user: User) -> tuple[str, datetime]:
        """
        Issue a fresh code for ``user``, replacing any previous one.

        Returns
        -------
        tuple[str, datetime]
            The code and its expiry timestamp.
        """
        code = "".join(
            str(secrets.randbelow(10)) for _ in range(TELEGRAM_LINK_CODE_LENGTH)
        )
        expires_at = timezone.now() + cls._ttl()
        user.telegram_link_code = code
        user.telegram_link_code_expires_at = expires_at
        user.save(update_fields=["telegram_link_code", "telegram_link_code_expires_at"])
        return code, expires_at

    @classmethod
    def verify_and_link(cls, telegram_username: str, code: str) -> User:
        """
        Consume ``code`` and link ``telegram_username`` to its owner.

        Raises
        ------
        BadRequest
            Malformed, unknown or expired code, or empty username.
        Conflict
            The Telegram username is linked to a different account.
        """
        telegram_username = cls._normalise(telegram_username)
        if not telegram_username:
            raise BadRequest("Telegram username is required.")
        code = (code or "").strip()
        if not _CODE_RE.match(code):
            raise BadRequest(
                f"The link code must be {TELEGRAM_LINK_CODE_LENGTH} digits."
            )

        with transaction.atomic():
            user = (
                User.objects
                .select_for_update()
                .filter(
                    telegram_link_code=code,
                    telegram_link_code_expires_at__gte=timezone.now(),
                )
                .first()
            )
            if user is None:
                raise BadRequest("The link code is invalid or has expired.")

            owner = (
                User.objects
                .filter(telegram_username=telegram_username)
                .exclude(pk=user.pk)
                .first()
            )
            if owner is not None:
                raise Conflict(
                    f"Telegram account @{telegram_username} is already linked "
                    f"to another user."
                )

            user.telegram_username = telegram_username
            user.telegram_link_code = ""
            user.telegram_link_code_expires_at = None
            user.save(update_fields=[
                "telegram_username",
                "telegram_link_code",
                "telegram_link_code_expires_at",
            ])

        logger.info("Linked Telegram @%s to user %s", telegram_username, user.username)
        return user

    @classmethod
    def resolve_user(cls, telegram_username: str) -> User:
        """Return the account linked to ``telegram_username``."""
        try:
            return User.objects.get(telegram_username=cls._normalise(telegram_username))
        except User.DoesNotExist:
            raise NotFound(f"No account is linked to @{telegram_username}.")

    @staticmethod
    def unlink(user: User) -> User:
        user.telegram_username = None
        user.telegram_link_code = ""
        user.telegram_link_code_expires_at = None
        user.save(update_fields=[
            "telegram_username",
            "telegram_link_code",
            "telegram_link_code_expires_at",
        ])
        return user


# ═══════════════════════════════════════════════════════════════════
#  Reference Data
# ═══════════════════════════════════════════════════════════════════

# Department → roles available in it.
DEPARTMENT_ROLES: dict[str, tuple[str, ...]] = {
    ORGANIZATION_DEPARTMENT: (
        SystemRoles.CITIZEN,
        SystemRoles.ADMINISTRATOR,
        SystemRoles.PUBLIC_RELATIONS_OFFICER,
        SystemRoles.EXTERNAL_MAINTAINER,
    ),
    "Water and Sewer Network": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
    "Public Lighting": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
    "Roads and Mobility": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
    "Waste Management": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
    "Parks and Green Areas": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
    "Urban Planning": (SystemRoles.TECHNICAL_MANAGER, SystemRoles.TECHNICAL_ASSISTANT),
}

ROLE_DESCRIPTIONS: dict[str, str] = {
    SystemRoles.CITIZEN: "Files reports and follows their progress.",
    SystemRoles.ADMINISTRATOR: "Manages accounts, companies and reference data.",
    SystemRoles.PUBLIC_RELATIONS_OFFICER: "Reviews incoming reports; assigns or rejects them.",
    SystemRoles.TECHNICAL_MANAGER: "Leads a technical department and works its reports.",
    SystemRoles.TECHNICAL_ASSISTANT: "Works reports for a technical department.",
    SystemRoles.EXTERNAL_MAINTAINER: "Employee of an external maintenance company.",
}

# Category → (responsible role, department).  ``Other`` stays unmapped.
CATEGORY_ROUTING: dict[str, tuple[str, str]] = {
    ReportCategory.WATER_SUPPLY: (SystemRoles.TECHNICAL_MANAGER, "Water and Sewer Network"),
    ReportCategory.SEWER_SYSTEM: (SystemRoles.TECHNICAL_MANAGER, "Water and Sewer Network"),
    ReportCategory.PUBLIC_LIGHTING: (SystemRoles.TECHNICAL_MANAGER, "Public Lighting"),
    ReportCategory.ROAD_SIGNS: (SystemRoles.TECHNICAL_MANAGER, "Roads and Mobility"),
    ReportCategory.ROADS: (SystemRoles.TECHNICAL_MANAGER, "Roads and Mobility"),
    ReportCategory.WASTE: (SystemRoles.TECHNICAL_MANAGER, "Waste Management"),
    ReportCategory.GREEN_AREAS: (SystemRoles.TECHNICAL_MANAGER, "Parks and Green Areas"),
    ReportCategory.ARCHITECTURAL_BARRIERS: (SystemRoles.TECHNICAL_MANAGER, "Urban Planning"),
}


class ReferenceDataService:
    """Idempotent seeding of roles, departments, positions and routing."""

    @staticmethod
    @transaction.atomic
    def seed() -> dict[str, int]:
        """
        Create any missing reference rows; existing rows are left alone
        except for category mappings, which are reset to the table above.

        Returns
        -------
        dict[str, int]
            Number of rows created per kind.
        """
        from reports.models import CategoryRoleMapping

        created = {"roles": 0, "departments": 0, "positions": 0, "mappings": 0}

        roles: dict[str, Role] = {}
        for name, description in ROLE_DESCRIPTIONS.items():
            role, was_created = Role.objects.get_or_create(
                name=name, defaults={"description": description}
            )
            roles[name] = role
            created["roles"] += int(was_created)

        departments: dict[str, Department] = {}
        for dept_name, role_names in DEPARTMENT_ROLES.items():
            department, was_created = Department.objects.get_or_create(name=dept_name)
            departments[dept_name] = department
            created["departments"] += int(was_created)
            for role_name in role_names:
                _, was_created = DepartmentRole.objects.get_or_create(
                    department=department, role=roles[role_name]
                )
                created["positions"] += int(was_created)

        for category, (role_name, dept_name) in CATEGORY_ROUTING.items():
            _, was_created = CategoryRoleMapping.objects.update_or_create(
                category=category,
                defaults={"role": roles[role_name], "department": departments[dept_name]},
            )
            created["mappings"] += int(was_created)

        logger.info("Reference data seeded: %s", created)
        return created
