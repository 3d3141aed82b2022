"""
core.domain.notifications: notification creation for report transitions.

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Design decisions
----------------
* **Synchronous**: rows are written in the calling thread and therefore
  inside the caller's ``transaction.atomic()`` block.  A transition that
  rolls back leaves no orphan notifications behind.
* **Delivery is out of process**: the web client, the e-mail digest and
  the Telegram bot poll ``Notification`` rows per user.  Nothing here
  talks to the network.
* **Supports multiple recipients**: pass a single ``User`` or an iterable
  of ``User`` instances; duplicates are collapsed.

Usage::

    from core.domain.notifications import ReportNotificationEmitter

    ReportNotificationEmitter().on_transition(
        report,
        from_status=ReportStatus.PENDING_APPROVAL,
        to_status=ReportStatus.ASSIGNED,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification
    from reports.models import Report

logger = logging.getLogger(__name__)

# ── Event-type → content templates ──────────────────────────────────
# Templates are formatted with ``str.format`` against the ``context`` dict.
_EVENT_TEMPLATES: dict[str, str] = {
    "report_assigned": (
        "Your report \"{title}\" has been approved and assigned to the "
        "competent office."
    ),
    "report_assigned_to_you": "Report \"{title}\" has been assigned to you.",
    "report_rejected": "Your report \"{title}\" has been rejected. Reason: {reason}",
    "report_resolved": "Your report \"{title}\" has been resolved.",
    "report_status_changed": (
        "The status of your report \"{title}\" changed from {from_status} "
        "to {to_status}."
    ),
}


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods; no instance state is needed.
    """

    @classmethod
    def render(cls, event_type: str, context: dict[str, Any] | None = None) -> str:
        """
        Render the content for ``event_type``.

        Unknown event types fall back to a humanised version of the key.
        """
        template = _EVENT_TEMPLATES.get(event_type)
        if template is None:
            return event_type.replace("_", " ").capitalize() + "."
        return template.format(**(context or {}))

    @classmethod
    def create(
        cls,
        *,
        recipients: User | Iterable[User],
        event_type: str,
        report: Report | None = None,
        context: dict[str, Any] | None = None,
    ) -> list[Notification]:
        """
        Create one unread ``Notification`` per distinct recipient.

        Parameters
        ----------
        recipients : User | Iterable[User]
            A single ``User`` or iterable of ``User`` instances.  ``None``
            entries are skipped and repeated users are notified once.
        event_type : str
            Key into ``_EVENT_TEMPLATES``.
        report : Report, optional
            Report the notification is about.
        context : dict, optional
            Values interpolated into the template.

        Returns
        -------
        list[Notification]
            The created rows, in recipient order.
        """
        from core.models import Notification  # lazy import: avoids circular deps

        if isinstance(recipients, models.Model):
            recipients = [recipients]

        unique: list[User] = []
        seen: set[int] = set()
        for recipient in recipients:
            if recipient is None or recipient.pk in seen:
                continue
            seen.add(recipient.pk)
            unique.append(recipient)

        if not unique:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s",
                event_type,
            )
            return []

        content = cls.render(event_type, context)
        notifications = [
            Notification.objects.create(
                recipient=recipient,
                report=report,
                content=content,
            )
            for recipient in unique
        ]

        logger.info(
            "Created %d notification(s) [%s] for report=%s",
            len(notifications),
            event_type,
            getattr(report, "pk", None),
        )
        return notifications


class ReportNotificationEmitter:
    """
    Decides which users hear about a report transition and persists the
    corresponding notifications.

    Rules
    -----
    * the **reporter** is told about every transition out of
      ``Pending Approval`` and about reaching a terminal state;
    * the **assignee** is told when the report enters ``Assigned``;
    * a user who is both reporter and assignee gets one notification
      per event, never two identical rows;
    * an external maintainer is told when a report is handed over to them.
    """

    def on_transition(
        self,
        report: Report,
        from_status: str,
        to_status: str,
    ) -> list[Notification]:
        from reports.models import ReportStatus, TERMINAL_STATUSES

        context = {
            "title": report.title,
            "from_status": str(from_status),
            "to_status": str(to_status),
            "reason": report.rejection_reason or "",
        }
        created: list[Notification] = []

        if from_status == ReportStatus.PENDING_APPROVAL or to_status in TERMINAL_STATUSES:
            created += NotificationService.create(
                recipients=report.reporter,
                event_type=self._reporter_event(to_status),
                report=report,
                context=context,
            )

        if (
            to_status == ReportStatus.ASSIGNED
            and report.assignee_id is not None
            and report.assignee_id != report.reporter_id
        ):
            created += NotificationService.create(
                recipients=report.assignee,
                event_type="report_assigned_to_you",
                report=report,
                context=context,
            )

        return created

    def on_external_assignment(self, report: Report) -> list[Notification]:
        """Tell the external maintainer a report was handed over to them."""
        return NotificationService.create(
            recipients=report.assignee,
            event_type="report_assigned_to_you",
            report=report,
            context={"title": report.title},
        )

    @staticmethod
    def _reporter_event(to_status: str) -> str:
        from reports.models import ReportStatus

        return {
            ReportStatus.ASSIGNED: "report_assigned",
            ReportStatus.REJECTED: "report_rejected",
            ReportStatus.RESOLVED: "report_resolved",
        }.get(to_status, "report_status_changed")
