import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


CATEGORY_CHOICES = [
    ("Water Supply - Drinking Water", "Water Supply - Drinking Water"),
    ("Architectural Barriers", "Architectural Barriers"),
    ("Sewer System", "Sewer System"),
    ("Public Lighting", "Public Lighting"),
    ("Waste", "Waste"),
    ("Road Signs and Traffic Lights", "Road Signs and Traffic Lights"),
    ("Roads and Urban Furnishings", "Roads and Urban Furnishings"),
    ("Public Green Areas and Playgrounds", "Public Green Areas and Playgrounds"),
    ("Other", "Other"),
]

STATUS_CHOICES = [
    ("Pending Approval", "Pending Approval"),
    ("Assigned", "Assigned"),
    ("In Progress", "In Progress"),
    ("Suspended", "Suspended"),
    ("Rejected", "Rejected"),
    ("Resolved", "Resolved"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CategoryRoleMapping",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=60, unique=True, verbose_name="Category")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                (
                    "department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="category_mappings",
                        to="accounts.department",
                        verbose_name="Responsible Department",
                    ),
                ),
                (
                    "role",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="category_mappings",
                        to="accounts.role",
                        verbose_name="Responsible Role",
                    ),
                ),
            ],
            options={
                "verbose_name": "Category Role Mapping",
                "verbose_name_plural": "Category Role Mappings",
            },
        ),
        migrations.CreateModel(
            name="Report",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("title", models.CharField(max_length=200, verbose_name="Title")),
                ("description", models.TextField(verbose_name="Description")),
                ("category", models.CharField(choices=CATEGORY_CHOICES, db_index=True, max_length=60, verbose_name="Category")),
                (
                    "status",
                    models.CharField(
                        choices=STATUS_CHOICES,
                        db_index=True,
                        default="Pending Approval",
                        max_length=30,
                        verbose_name="Current Status",
                    ),
                ),
                ("rejection_reason", models.TextField(blank=True, null=True, verbose_name="Rejection Reason")),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Incremented on every status transition.",
                        verbose_name="Version",
                    ),
                ),
                ("latitude", models.FloatField(verbose_name="Latitude")),
                ("longitude", models.FloatField(verbose_name="Longitude")),
                ("address", models.CharField(blank=True, default="", max_length=500, verbose_name="Address")),
                ("is_anonymous", models.BooleanField(default=False, verbose_name="Anonymous")),
                (
                    "assignee",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="assigned_reports",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Assignee",
                    ),
                ),
                (
                    "external_company",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reports",
                        to="accounts.company",
                        verbose_name="External Company",
                    ),
                ),
                (
                    "reporter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reports",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Reporter",
                    ),
                ),
                (
                    "responsible_role",
                    models.ForeignKey(
                        blank=True,
                        help_text="Resolved from the category mapping at submission time.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="accounts.role",
                        verbose_name="Responsible Role",
                    ),
                ),
            ],
            options={
                "verbose_name": "Report",
                "verbose_name_plural": "Reports",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="report",
            index=models.Index(fields=["status", "category"], name="report_status_category_idx"),
        ),
        migrations.CreateModel(
            name="ReportPhoto",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("url", models.CharField(max_length=500, verbose_name="Storage URL or Path")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="photos",
                        to="reports.report",
                        verbose_name="Report",
                    ),
                ),
            ],
            options={
                "verbose_name": "Report Photo",
                "verbose_name_plural": "Report Photos",
                "ordering": ["id"],
            },
        ),
    ]
