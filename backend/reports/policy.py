"""
Authorization policy for report status transitions.

Answers one question: *may a caller holding these positions move a report
into this status?*  The answer depends only on the target status and on
the roles of the held positions; the table below is the whole policy.

┌──────────────────┬──────────────────────────────────────────────────────┐
│ Target status    │ Roles allowed                                        │
├──────────────────┼──────────────────────────────────────────────────────┤
│ Assigned         │ Public Relations Officer                             │
│ Rejected         │ Public Relations Officer                             │
│ In Progress      │ Technical Manager, Technical Assistant               │
│ Suspended        │ Technical Manager, Technical Assistant               │
│ Resolved         │ Technical Manager, Technical Assistant,              │
│                  │ External Maintainer                                  │
│ Pending Approval │ (nobody, never a target)                             │
└──────────────────┴──────────────────────────────────────────────────────┘

Department and category are part of the interface so that a future
department-scoped rule can be added without touching call sites; neither
discriminates today.
"""

from __future__ import annotations

from typing import Iterable

from core.domain.access import AuthContext, PositionRef
from core.domain.exceptions import InsufficientRights, Unauthorized
from core.role_constants import SystemRoles

from .models import ReportStatus

TRANSITION_ROLES: dict[ReportStatus, frozenset[str]] = {
    ReportStatus.PENDING_APPROVAL: frozenset(),
    ReportStatus.ASSIGNED: frozenset({SystemRoles.PUBLIC_RELATIONS_OFFICER}),
    ReportStatus.REJECTED: frozenset({SystemRoles.PUBLIC_RELATIONS_OFFICER}),
    ReportStatus.IN_PROGRESS: frozenset({
        SystemRoles.TECHNICAL_MANAGER,
        SystemRoles.TECHNICAL_ASSISTANT,
    }),
    ReportStatus.SUSPENDED: frozenset({
        SystemRoles.TECHNICAL_MANAGER,
        SystemRoles.TECHNICAL_ASSISTANT,
    }),
    ReportStatus.RESOLVED: frozenset({
        SystemRoles.TECHNICAL_MANAGER,
        SystemRoles.TECHNICAL_ASSISTANT,
        SystemRoles.EXTERNAL_MAINTAINER,
    }),
}

# A new status must be given an explicit entry.
_missing = set(ReportStatus) - set(TRANSITION_ROLES)
if _missing:
    raise RuntimeError(
        f"TRANSITION_ROLES has no entry for: {', '.join(sorted(_missing))}"
    )


def can_transition(
    positions: Iterable[PositionRef],
    target_status: str,
    category: str | None = None,
) -> bool:
    """
    Return ``True`` if any of ``positions`` may move a report into
    ``target_status``.

    Unknown statuses and an empty position list yield ``False``.
    """
    try:
        allowed = TRANSITION_ROLES[ReportStatus(target_status)]
    except ValueError:
        return False
    return any(p.role in allowed for p in positions)


class TransitionPolicy:
    """Injectable wrapper around ``can_transition``."""

    def can_transition(
        self,
        positions: Iterable[PositionRef],
        target_status: str,
        category: str | None = None,
    ) -> bool:
        return can_transition(positions, target_status, category)

    def authorize(
        self,
        auth: AuthContext | None,
        target_status: str,
        category: str | None = None,
    ) -> AuthContext:
        """
        Raise unless ``auth`` may move a report into ``target_status``.

        Raises
        ------
        Unauthorized
            If ``auth`` is ``None``.
        InsufficientRights
            If no held position qualifies.
        """
        if auth is None:
            raise Unauthorized()
        if not self.can_transition(auth.positions, target_status, category):
            raise InsufficientRights(
                f"None of your positions may move a report to '{target_status}'."
            )
        return auth
