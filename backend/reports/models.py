"""
Reports app models.

Covers the civic-report lifecycle: citizen submission, then
public-relations triage (assignment / rejection), technical work,
all the way to resolution.
"""

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ReportCategory(models.TextChoices):
    """
    Closed list of report subject areas.

    Declaration order is the **canonical order** used wherever categories
    are listed (category router, category endpoint).
    """

    WATER_SUPPLY = "Water Supply - Drinking Water", "Water Supply - Drinking Water"
    ARCHITECTURAL_BARRIERS = "Architectural Barriers", "Architectural Barriers"
    SEWER_SYSTEM = "Sewer System", "Sewer System"
    PUBLIC_LIGHTING = "Public Lighting", "Public Lighting"
    WASTE = "Waste", "Waste"
    ROAD_SIGNS = "Road Signs and Traffic Lights", "Road Signs and Traffic Lights"
    ROADS = "Roads and Urban Furnishings", "Roads and Urban Furnishings"
    GREEN_AREAS = "Public Green Areas and Playgrounds", "Public Green Areas and Playgrounds"
    OTHER = "Other", "Other"


class ReportStatus(models.TextChoices):
    """
    Report workflow states.  ``RESOLVED`` and ``REJECTED`` are terminal;
    see ``reports.services.ALLOWED_TRANSITIONS`` for the graph.
    """

    PENDING_APPROVAL = "Pending Approval", "Pending Approval"
    ASSIGNED = "Assigned", "Assigned"
    IN_PROGRESS = "In Progress", "In Progress"
    SUSPENDED = "Suspended", "Suspended"
    REJECTED = "Rejected", "Rejected"
    RESOLVED = "Resolved", "Resolved"


TERMINAL_STATUSES: frozenset[str] = frozenset({
    ReportStatus.RESOLVED,
    ReportStatus.REJECTED,
})

#: Statuses counted as a staff member's open workload.
OPEN_STATUSES: frozenset[str] = frozenset({
    ReportStatus.ASSIGNED,
    ReportStatus.IN_PROGRESS,
    ReportStatus.SUSPENDED,
})

#: Statuses never shown on the public map.
MAP_HIDDEN_STATUSES: frozenset[str] = frozenset({
    ReportStatus.PENDING_APPROVAL,
    ReportStatus.REJECTED,
})


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class CategoryRoleMapping(models.Model):
    """
    Routes a report category to the role responsible for it.

    At most one row per category.  ``department`` optionally narrows the
    pool of staff considered for automatic assignment.  A category without
    a row is triaged manually.
    """

    category = models.CharField(
        max_length=60,
        choices=ReportCategory.choices,
        unique=True,
        verbose_name="Category",
    )
    role = models.ForeignKey(
        "accounts.Role",
        on_delete=models.PROTECT,
        related_name="category_mappings",
        verbose_name="Responsible Role",
    )
    department = models.ForeignKey(
        "accounts.Department",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="category_mappings",
        verbose_name="Responsible Department",
    )
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Category Role Mapping"
        verbose_name_plural = "Category Role Mappings"

    def __str__(self):
        return f"{self.category} → {self.role}"


class Report(TimeStampedModel):
    """
    Central entity of the system: a civic-infrastructure report.

    * Created by a citizen in ``PENDING_APPROVAL``.
    * Mutated **only** through ``ReportWorkflowService.transition``; the
      ``version`` counter is bumped on every transition and guards
      against concurrent writers.
    * Never deleted: resolved / rejected reports remain for audit.
    """

    title = models.CharField(
        max_length=200,
        verbose_name="Title",
    )
    description = models.TextField(
        verbose_name="Description",
    )
    category = models.CharField(
        max_length=60,
        choices=ReportCategory.choices,
        verbose_name="Category",
        db_index=True,
    )
    status = models.CharField(
        max_length=30,
        choices=ReportStatus.choices,
        default=ReportStatus.PENDING_APPROVAL,
        verbose_name="Current Status",
        db_index=True,
    )
    rejection_reason = models.TextField(
        null=True,
        blank=True,
        verbose_name="Rejection Reason",
    )
    version = models.PositiveIntegerField(
        default=0,
        verbose_name="Version",
        help_text="Incremented on every status transition.",
    )

    # ── Location ────────────────────────────────────────────────────
    latitude = models.FloatField(verbose_name="Latitude")
    longitude = models.FloatField(verbose_name="Longitude")
    address = models.CharField(
        max_length=500,
        blank=True,
        default="",
        verbose_name="Address",
    )
    is_anonymous = models.BooleanField(default=False, verbose_name="Anonymous")

    # ── People & routing ────────────────────────────────────────────
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reports",
        verbose_name="Reporter",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_reports",
        verbose_name="Assignee",
    )
    external_company = models.ForeignKey(
        "accounts.Company",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reports",
        verbose_name="External Company",
    )
    responsible_role = models.ForeignKey(
        "accounts.Role",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Responsible Role",
        help_text="Resolved from the category mapping at submission time.",
    )

    class Meta:
        verbose_name = "Report"
        verbose_name_plural = "Reports"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["status", "category"], name="report_status_category_idx"),
        ]

    def __str__(self):
        return f"#{self.pk} {self.title} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ReportPhoto(models.Model):
    """
    Photo attached to a report.  Only the storage URL is kept; bytes are
    handled by the storage collaborator.
    """

    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name="photos",
        verbose_name="Report",
    )
    url = models.CharField(max_length=500, verbose_name="Storage URL or Path")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Report Photo"
        verbose_name_plural = "Report Photos"
        ordering = ["id"]

    def __str__(self):
        return self.url


class ReportComment(TimeStampedModel):
    """
    Internal note exchanged between the staff working a report.

    Never shown to the reporter.  Only the author may delete it.
    """

    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name="comments",
        verbose_name="Report",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_comments",
        verbose_name="Author",
    )
    content = models.TextField(verbose_name="Content")

    class Meta:
        verbose_name = "Report Comment"
        verbose_name_plural = "Report Comments"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Comment #{self.pk} on report #{self.report_id}"
