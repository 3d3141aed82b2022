"""
Core app services: **Service Layer**.

Contains the cross-app constants listing and the user-facing notification
operations.  Views delegate all business logic to the service classes
defined here, keeping views thin and ensuring testability.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULEBOOK                                          ║
║                                                                     ║
║  The core app is imported by every other app.  To prevent circular  ║
║  imports at module load time:                                       ║
║                                                                     ║
║  1. NEVER import models from other apps at the **module level**.    ║
║     Always import inside the method/function that needs them.       ║
║                                                                     ║
║  2. Preferred pattern:                                              ║
║       from django.apps import apps                                  ║
║       Role = apps.get_model("accounts", "Role")                     ║
║                                                                     ║
║  3. Choice/enum classes (ReportStatus, ReportCategory) live in the  ║
║     ``reports`` app's ``models.py``.  Import them lazily too.       ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.apps import apps
from django.db.models import QuerySet

from core.constants import REJECTION_REASON_MAX_LENGTH, REJECTION_REASON_MIN_LENGTH
from core.domain.exceptions import InsufficientRights, NotFound

if TYPE_CHECKING:
    from accounts.models import User

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers the report enumerations, the status graph and the role list
    into a single dict for the frontend.

    This service is **stateless**: it does not depend on the requesting
    user.  All constants are public information needed by the frontend
    to render dropdowns and labels.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from reports.models import ReportCategory, ReportStatus
        from reports.services import ALLOWED_TRANSITIONS

        Role = apps.get_model("accounts", "Role")

        to_list = SystemConstantsService._choices_to_list

        return {
            "report_categories": to_list(ReportCategory),
            "report_statuses": to_list(ReportStatus),
            "status_transitions": [
                {
                    "from_status": str(source),
                    "to_statuses": sorted(str(t) for t in targets),
                }
                for source, targets in ALLOWED_TRANSITIONS.items()
            ],
            "roles": list(Role.objects.order_by("name").values("id", "name")),
            "rejection_reason_min_length": REJECTION_REASON_MIN_LENGTH,
            "rejection_reason_max_length": REJECTION_REASON_MAX_LENGTH,
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Service
# ═══════════════════════════════════════════════════════════════════

class NotificationService:
    """
    Handles listing and marking notifications as read for a given user.

    Creation lives in ``core.domain.notifications``; this class is the
    read / acknowledge side used by the delivery collaborators.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def list_notifications(self, unread_only: bool = False) -> QuerySet:
        """Return the user's notifications, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("report")
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: int) -> Any:
        """
        Mark a single notification as read.

        Raises
        ------
        NotFound
            No notification with that id.
        InsufficientRights
            The notification belongs to someone else.
        """
        from core.models import Notification

        try:
            notification = Notification.objects.get(pk=notification_id)
        except (Notification.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Notification with id {notification_id} not found.")
        if notification.recipient_id != self.user.pk:
            raise InsufficientRights("This notification belongs to another user.")

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read"])
        return notification

    def mark_all_as_read(self) -> int:
        """Mark every unread notification of the user as read; return the count."""
        from core.models import Notification

        updated = (
            Notification.objects
            .filter(recipient=self.user, is_read=False)
            .update(is_read=True)
        )
        logger.info("Marked %d notification(s) read for user=%s", updated, self.user.pk)
        return updated
