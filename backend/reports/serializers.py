"""
Reports app serializers.

Request serializers only shape and type-check the payload; the bounds on
titles, descriptions, coordinates, photos and rejection reasons are
enforced by ``reports.services`` so that every entry point (API, admin,
management commands) shares them.
"""

from __future__ import annotations

from rest_framework import serializers

from accounts.serializers import CompanySerializer, RoleSerializer

from .models import Report, ReportCategory, ReportComment, ReportPhoto, ReportStatus


# ═══════════════════════════════════════════════════════════════════
#  Nested / helper serializers
# ═══════════════════════════════════════════════════════════════════


class ReportPhotoSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReportPhoto
        fields = ["id", "url", "created_at"]
        read_only_fields = fields


class UserSummarySerializer(serializers.Serializer):
    """Minimal public view of a person attached to a report."""

    id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(read_only=True)
    first_name = serializers.CharField(read_only=True)
    last_name = serializers.CharField(read_only=True)


# ═══════════════════════════════════════════════════════════════════
#  Report serializers
# ═══════════════════════════════════════════════════════════════════


class ReportSerializer(serializers.ModelSerializer):
    """
    Full representation of a report.

    The reporter is hidden (``null``) when the report was filed
    anonymously.
    """

    reporter = serializers.SerializerMethodField()
    assignee = UserSummarySerializer(read_only=True)
    external_company = CompanySerializer(read_only=True)
    responsible_role = RoleSerializer(read_only=True)
    photos = ReportPhotoSerializer(many=True, read_only=True)

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "description",
            "category",
            "status",
            "version",
            "latitude",
            "longitude",
            "address",
            "is_anonymous",
            "reporter",
            "assignee",
            "external_company",
            "responsible_role",
            "rejection_reason",
            "photos",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_reporter(self, obj: Report) -> dict | None:
        if obj.is_anonymous:
            return None
        return UserSummarySerializer(obj.reporter).data


class ReportListSerializer(serializers.ModelSerializer):
    """Compact representation for list endpoints."""

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "category",
            "status",
            "latitude",
            "longitude",
            "created_at",
        ]
        read_only_fields = fields


class ReportMapSerializer(serializers.ModelSerializer):
    """One map marker; anonymous reports carry no reporter name."""

    reporter_name = serializers.SerializerMethodField()

    class Meta:
        model = Report
        fields = [
            "id",
            "title",
            "category",
            "status",
            "latitude",
            "longitude",
            "reporter_name",
        ]
        read_only_fields = fields

    def get_reporter_name(self, obj: Report) -> str | None:
        if obj.is_anonymous:
            return None
        full_name = obj.reporter.get_full_name()
        return full_name or obj.reporter.username


class ReportCreateSerializer(serializers.Serializer):
    title = serializers.CharField(trim_whitespace=False)
    description = serializers.CharField(trim_whitespace=False)
    category = serializers.CharField()
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    address = serializers.CharField(required=False, allow_blank=True, default="")
    is_anonymous = serializers.BooleanField(required=False, default=False)
    photo_urls = serializers.ListField(
        child=serializers.CharField(allow_blank=True),
        allow_empty=True,
        help_text="Storage URLs of the already-uploaded photos (1 to 3).",
    )


class ReportStatusSerializer(serializers.Serializer):
    """
    Payload for ``POST /api/reports/{id}/status/``.

    ``reason`` is only read for ``Rejected``; ``assignee_id`` and
    ``external_company_id`` only for ``Assigned``.  ``expected_version``
    enables optimistic concurrency.
    """

    status = serializers.CharField(help_text=f"One of: {', '.join(ReportStatus.values)}.")
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    assignee_id = serializers.IntegerField(required=False, allow_null=True)
    external_company_id = serializers.IntegerField(required=False, allow_null=True)
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class CategoryMappingSerializer(serializers.Serializer):
    """One routed category with the role responsible for it."""

    category = serializers.ChoiceField(choices=ReportCategory.choices, read_only=True)
    role = RoleSerializer(read_only=True)


class AssignExternalSerializer(serializers.Serializer):
    """Payload for ``PATCH /api/reports/{id}/assign-external/``."""

    maintainer_id = serializers.IntegerField()
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


# ═══════════════════════════════════════════════════════════════════
#  Internal comments
# ═══════════════════════════════════════════════════════════════════


class ReportCommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = ReportComment
        fields = ["id", "report", "author", "content", "created_at"]
        read_only_fields = fields


class ReportCommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
