"""
Core app serializers.

**Response-only** serializers for the endpoints served by the core app.
They do **not** accept input data; filtering is handled via query
parameters validated in the view or the service layer.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  System Constants
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "In Progress", "label": "In Progress"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label.",
    )


class StatusTransitionSerializer(serializers.Serializer):
    from_status = serializers.CharField()
    to_statuses = serializers.ListField(child=serializers.CharField())


class RoleItemSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Response shape::

        {
            "report_categories": [{"value": "Waste", "label": "Waste"}, ...],
            "report_statuses": [...],
            "status_transitions": [
                {"from_status": "Assigned", "to_statuses": ["In Progress"]},
                ...
            ],
            "roles": [{"id": 1, "name": "Administrator"}, ...],
            "rejection_reason_min_length": 10,
            "rejection_reason_max_length": 500
        }
    """

    report_categories = ChoiceItemSerializer(
        many=True,
        help_text="Report categories in canonical order.",
    )
    report_statuses = ChoiceItemSerializer(
        many=True,
        help_text="All report workflow statuses.",
    )
    status_transitions = StatusTransitionSerializer(
        many=True,
        help_text="Allowed target statuses per current status.",
    )
    roles = RoleItemSerializer(many=True)
    rejection_reason_min_length = serializers.IntegerField()
    rejection_reason_max_length = serializers.IntegerField()


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and acknowledge
    notifications for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    report = serializers.PrimaryKeyRelatedField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related report (if any).",
    )
    content = serializers.CharField(
        read_only=True,
        help_text="Notification text.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )


class MarkAllReadResponseSerializer(serializers.Serializer):
    updated = serializers.IntegerField(help_text="Number of notifications marked read.")
