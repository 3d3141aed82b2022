"""
Accounts app models.

Defines the role / department reference data, the *position*
(``DepartmentRole``) a staff account holds, external maintenance
companies, and a custom User model that extends Django's ``AbstractUser``.

Authorization is position-based: a user holds one or more
``DepartmentRole`` rows and every workflow check is evaluated against the
roles of those positions (see ``reports.policy``).
"""

from django.contrib.auth.models import AbstractUser
from django.db import models

from reports.models import ReportCategory


class Role(models.Model):
    """
    Immutable role reference data (e.g. Citizen, Public Relations Officer,
    Technical Manager).

    Seeded by ``setup_reference_data``.  Positions and category mappings
    reference roles with ``PROTECT`` so a role can never be deleted while
    it is in use.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Role Name",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )

    class Meta:
        verbose_name = "Role"
        verbose_name_plural = "Roles"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Department(models.Model):
    """
    Municipal department.  The reserved ``Organization`` department holds
    the non-technical roles (Citizen, Administrator, ...).
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Department Name",
    )

    class Meta:
        verbose_name = "Department"
        verbose_name_plural = "Departments"
        ordering = ["name"]

    def __str__(self):
        return self.name


class DepartmentRole(models.Model):
    """
    A *position*: one (department, role) combination a user can hold.
    """

    department = models.ForeignKey(
        Department,
        on_delete=models.CASCADE,
        related_name="department_roles",
        verbose_name="Department",
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.PROTECT,
        related_name="department_roles",
        verbose_name="Role",
    )

    class Meta:
        verbose_name = "Position"
        verbose_name_plural = "Positions"
        ordering = ["department__name", "role__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["department", "role"],
                name="unique_department_role",
            ),
        ]

    def __str__(self):
        return f"{self.department.name} / {self.role.name}"


class Company(models.Model):
    """
    External maintenance company.  Each company services one report
    category; its employees hold the External Maintainer role.
    """

    name = models.CharField(
        max_length=255,
        unique=True,
        verbose_name="Company Name",
    )
    category = models.CharField(
        max_length=60,
        choices=ReportCategory.choices,
        verbose_name="Serviced Category",
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Company"
        verbose_name_plural = "Companies"
        ordering = ["name"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model for the Participium platform.

    Citizens hold exactly **one** position, ``(Organization, Citizen)``.
    Municipal staff may hold several positions across departments.
    External maintainers additionally reference their ``company``.
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    positions = models.ManyToManyField(
        DepartmentRole,
        blank=True,
        related_name="users",
        verbose_name="Positions",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="maintainers",
        verbose_name="External Company",
    )
    personal_photo_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Personal Photo URL",
    )
    email_notifications_enabled = models.BooleanField(
        default=True,
        verbose_name="E-mail Notifications Enabled",
    )

    # ── Telegram account linking ────────────────────────────────────
    telegram_username = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Telegram Username",
    )
    telegram_link_code = models.CharField(
        max_length=6,
        blank=True,
        default="",
        verbose_name="Telegram Link Code",
    )
    telegram_link_code_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Telegram Link Code Expiry",
    )

    REQUIRED_FIELDS = ["email", "first_name", "last_name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_full_name()})"

    # ── Helper predicates for role checks ────────────────────────────

    def role_names(self) -> list[str]:
        """Return the role names of every held position."""
        return [p.role.name for p in self.positions.select_related("role")]

    def department_names(self) -> list[str]:
        """Return the department names of every held position."""
        return [p.department.name for p in self.positions.select_related("department")]

    def has_role(self, role_name: str) -> bool:
        """Check whether any held position carries the given role."""
        return self.positions.filter(role__name=role_name).exists()
