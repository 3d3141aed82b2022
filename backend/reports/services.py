"""
Reports Service Layer.

This module is the **single source of truth** for all business logic
within the ``reports`` app.  Views must remain *thin*: they validate
input through serializers, build an ``AuthContext`` and call a service
method.

Architecture
------------
- ``ALLOWED_TRANSITIONS``       : the report state-machine graph.
- ``ReportQueryService``        : role-scoped listings, lookups and the map feed.
- ``ReportSubmissionService``   : citizen submission.
- ``ReportWorkflowService``     : the status-transition gateway and the
                                  hand-over to external maintainers.
- ``ReportCommentService``      : internal staff comments.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q, QuerySet

from accounts.models import Company
from accounts.services import PositionDirectory
from core.constants import (
    COMMENT_MAX_LENGTH,
    REJECTION_REASON_MAX_LENGTH,
    REJECTION_REASON_MIN_LENGTH,
    REPORT_DESCRIPTION_MAX_LENGTH,
    REPORT_DESCRIPTION_MIN_LENGTH,
    REPORT_MAX_PHOTOS,
    REPORT_MIN_PHOTOS,
    REPORT_TITLE_MAX_LENGTH,
    REPORT_TITLE_MIN_LENGTH,
)
from core.domain.access import (
    AuthContext,
    apply_role_scope,
    require_auth,
    require_role,
)
from core.domain.exceptions import (
    BadRequest,
    Conflict,
    InsufficientRights,
    InvalidTransition,
    NotFound,
    Unauthorized,
)
from core.domain.notifications import ReportNotificationEmitter
from core.domain.transactions import lock_for_update, versioned_update
from core.role_constants import TECHNICAL_ROLES, SystemRoles, is_structural_role

from .models import (
    MAP_HIDDEN_STATUSES,
    OPEN_STATUSES,
    Report,
    ReportCategory,
    ReportComment,
    ReportPhoto,
    ReportStatus,
)
from .policy import TransitionPolicy
from .routing import CategoryRouter

User = get_user_model()

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  State machine
# ═══════════════════════════════════════════════════════════════════

ALLOWED_TRANSITIONS: dict[ReportStatus, frozenset[ReportStatus]] = {
    ReportStatus.PENDING_APPROVAL: frozenset({ReportStatus.ASSIGNED, ReportStatus.REJECTED}),
    ReportStatus.ASSIGNED: frozenset({ReportStatus.IN_PROGRESS}),
    ReportStatus.IN_PROGRESS: frozenset({ReportStatus.RESOLVED, ReportStatus.SUSPENDED}),
    ReportStatus.SUSPENDED: frozenset({ReportStatus.IN_PROGRESS}),
    ReportStatus.RESOLVED: frozenset(),
    ReportStatus.REJECTED: frozenset(),
}

# A new status must be given an explicit entry.
_missing = set(ReportStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(
        f"ALLOWED_TRANSITIONS has no entry for: {', '.join(sorted(_missing))}"
    )


def parse_status(value: Any) -> ReportStatus:
    """Return the ``ReportStatus`` for ``value`` or raise ``BadRequest``."""
    try:
        return ReportStatus(value)
    except ValueError:
        raise BadRequest(f"Unknown report status '{value}'.")


def _parse_category(value: Any) -> ReportCategory:
    try:
        return ReportCategory(value)
    except ValueError:
        raise BadRequest(f"Invalid category '{value}'.")


def _parse_coordinate(value: Any, name: str, limit: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be a number.")
    if not (math.isfinite(number) and -limit <= number <= limit):
        raise BadRequest(f"{name} must be between {-limit:g} and {limit:g}.")
    return number


_BOUNDING_BOX_KEYS = ("min_lat", "max_lat", "min_lng", "max_lng")


def _parse_bounding_box(params: dict[str, Any]) -> tuple[float, float, float, float] | None:
    """
    Return ``(min_lat, max_lat, min_lng, max_lng)`` or ``None`` when no
    corner was given.  A partial or inverted box is a ``BadRequest``.
    """
    given = {k: params.get(k) for k in _BOUNDING_BOX_KEYS if params.get(k) not in (None, "")}
    if not given:
        return None
    if len(given) != len(_BOUNDING_BOX_KEYS):
        raise BadRequest(
            f"A bounding box needs all of: {', '.join(_BOUNDING_BOX_KEYS)}."
        )
    min_lat = _parse_coordinate(given["min_lat"], "min_lat", 90)
    max_lat = _parse_coordinate(given["max_lat"], "max_lat", 90)
    min_lng = _parse_coordinate(given["min_lng"], "min_lng", 180)
    max_lng = _parse_coordinate(given["max_lng"], "max_lng", 180)
    if min_lat > max_lat or min_lng > max_lng:
        raise BadRequest("Bounding box minimums must not exceed its maximums.")
    return min_lat, max_lat, min_lng, max_lng


# ═══════════════════════════════════════════════════════════════════
#  Report Query Service
# ═══════════════════════════════════════════════════════════════════

# Public Relations Officers triage, so they alone see unapproved reports.
REPORT_SCOPE_RULES = [
    ((SystemRoles.PUBLIC_RELATIONS_OFFICER,), lambda qs, auth: qs),
    ((), lambda qs, auth: qs.exclude(status=ReportStatus.PENDING_APPROVAL)),
]


class ReportQueryService:
    """Read-side operations over reports."""

    @staticmethod
    def _base_queryset() -> QuerySet[Report]:
        return (
            Report.objects
            .select_related("reporter", "assignee", "external_company", "responsible_role")
            .prefetch_related("photos")
        )

    @classmethod
    def list_reports(
        cls,
        auth: AuthContext | None,
        status: str | None = None,
        category: str | None = None,
    ) -> QuerySet[Report]:
        """
        List reports visible to the caller, newest first.

        Raises
        ------
        Unauthorized
            No caller.
        BadRequest
            Unknown status or category filter.
        InsufficientRights
            Filtering by ``Pending Approval`` without being a Public
            Relations Officer.
        """
        auth = require_auth(auth)
        qs = apply_role_scope(cls._base_queryset(), auth, scope_rules=REPORT_SCOPE_RULES)

        if status:
            status = parse_status(status)
            if (
                status == ReportStatus.PENDING_APPROVAL
                and not auth.has_role(SystemRoles.PUBLIC_RELATIONS_OFFICER)
            ):
                raise InsufficientRights(
                    "Only Public Relations Officers can list reports pending approval."
                )
            qs = qs.filter(status=status)
        if category:
            qs = qs.filter(category=_parse_category(category))
        return qs

    @classmethod
    def get_report(cls, report_id: int) -> Report:
        """Unscoped lookup for internal reloads; never expose directly."""
        try:
            return cls._base_queryset().get(pk=report_id)
        except Report.DoesNotExist:
            raise NotFound(f"Report with id {report_id} not found.")

    @classmethod
    def get_visible_report(cls, auth: AuthContext | None, report_id: int) -> Report:
        """
        Return report ``report_id`` if the caller may see it.

        The listing scope applies, except that a reporter always sees
        their own report.  A hidden report is reported as missing.

        Raises
        ------
        Unauthorized
            No caller.
        NotFound
            No such report, or the caller may not see it.
        """
        auth = require_auth(auth)
        scoped = apply_role_scope(cls._base_queryset(), auth, scope_rules=REPORT_SCOPE_RULES)
        report = (
            scoped.filter(pk=report_id).first()
            or cls._base_queryset().filter(pk=report_id, reporter_id=auth.user_id).first()
        )
        if report is None:
            raise NotFound(f"Report with id {report_id} not found.")
        return report

    @classmethod
    def list_assigned_reports(cls, auth: AuthContext | None) -> QuerySet[Report]:
        """Reports currently assigned to the caller."""
        auth = require_auth(auth)
        return cls._base_queryset().filter(assignee_id=auth.user_id)

    @classmethod
    def list_my_reports(cls, auth: AuthContext | None) -> QuerySet[Report]:
        """Reports filed by the caller."""
        auth = require_auth(auth)
        return cls._base_queryset().filter(reporter_id=auth.user_id)

    @classmethod
    def list_map_reports(
        cls,
        auth: AuthContext | None,
        category: str | None = None,
        bounds: dict[str, Any] | None = None,
    ) -> QuerySet[Report]:
        """
        Reports shown on the public map: everything approved and not
        rejected, optionally inside a bounding box.

        Parameters
        ----------
        bounds : dict, optional
            ``min_lat``, ``max_lat``, ``min_lng`` and ``max_lng``; all four
            or none.

        Raises
        ------
        Unauthorized
            No caller.
        BadRequest
            Unknown category, or a partial / out-of-range bounding box.
        """
        require_auth(auth)
        qs = cls._base_queryset().exclude(status__in=MAP_HIDDEN_STATUSES)
        if category:
            qs = qs.filter(category=_parse_category(category))
        box = _parse_bounding_box(bounds or {})
        if box is not None:
            min_lat, max_lat, min_lng, max_lng = box
            qs = qs.filter(
                latitude__gte=min_lat,
                latitude__lte=max_lat,
                longitude__gte=min_lng,
                longitude__lte=max_lng,
            )
        return qs

    @classmethod
    def list_external_maintainer_reports(
        cls,
        auth: AuthContext | None,
        maintainer_id: int,
        status: str | None = None,
    ) -> QuerySet[Report]:
        """
        Reports handed over to external maintainer ``maintainer_id``.

        Raises
        ------
        InsufficientRights
            Caller is neither technical staff nor a Public Relations Officer.
        NotFound
            ``maintainer_id`` is not an external maintainer.
        """
        require_role(
            auth,
            *TECHNICAL_ROLES,
            SystemRoles.PUBLIC_RELATIONS_OFFICER,
            message="Only municipality staff can list a maintainer's reports.",
        )
        maintainer = User.objects.filter(pk=maintainer_id).first()
        if maintainer is None or not maintainer.has_role(SystemRoles.EXTERNAL_MAINTAINER):
            raise NotFound(f"External maintainer with id {maintainer_id} not found.")

        qs = cls._base_queryset().filter(assignee_id=maintainer_id)
        if status:
            qs = qs.filter(status=parse_status(status))
        return qs

    @staticmethod
    def list_categories() -> list[str]:
        """Every category value in canonical order."""
        return list(ReportCategory.values)

    @classmethod
    def list_photos(cls, auth: AuthContext | None, report_id: int) -> QuerySet[ReportPhoto]:
        cls.get_visible_report(auth, report_id)
        return ReportPhoto.objects.filter(report_id=report_id)


# ═══════════════════════════════════════════════════════════════════
#  Report Submission Service
# ═══════════════════════════════════════════════════════════════════


class ReportSubmissionService:
    """Citizen report submission."""

    def __init__(self, router: CategoryRouter | None = None) -> None:
        self.router = router or CategoryRouter()

    @staticmethod
    def _validate(data: dict[str, Any], photo_urls: list[str]) -> dict[str, Any]:
        title = (data.get("title") or "").strip()
        if not REPORT_TITLE_MIN_LENGTH <= len(title) <= REPORT_TITLE_MAX_LENGTH:
            raise BadRequest(
                f"Title must be between {REPORT_TITLE_MIN_LENGTH} and "
                f"{REPORT_TITLE_MAX_LENGTH} characters."
            )

        description = (data.get("description") or "").strip()
        if not REPORT_DESCRIPTION_MIN_LENGTH <= len(description) <= REPORT_DESCRIPTION_MAX_LENGTH:
            raise BadRequest(
                f"Description must be between {REPORT_DESCRIPTION_MIN_LENGTH} and "
                f"{REPORT_DESCRIPTION_MAX_LENGTH} characters."
            )

        category = _parse_category(data.get("category"))

        latitude = _parse_coordinate(data.get("latitude"), "Latitude", 90)
        longitude = _parse_coordinate(data.get("longitude"), "Longitude", 180)

        if not REPORT_MIN_PHOTOS <= len(photo_urls) <= REPORT_MAX_PHOTOS:
            raise BadRequest(
                f"A report needs between {REPORT_MIN_PHOTOS} and "
                f"{REPORT_MAX_PHOTOS} photos."
            )
        if any(not isinstance(url, str) or not url.strip() for url in photo_urls):
            raise BadRequest("Photo URLs must be non-empty strings.")

        return {
            "title": title,
            "description": description,
            "category": category,
            "latitude": latitude,
            "longitude": longitude,
            "address": (data.get("address") or "").strip(),
            "is_anonymous": bool(data.get("is_anonymous", False)),
        }

    def submit(
        self,
        auth: AuthContext | None,
        data: dict[str, Any],
        photo_urls: Iterable[str],
    ) -> Report:
        """
        File a new report in ``Pending Approval``.

        Parameters
        ----------
        auth : AuthContext
            Must hold the Citizen role.
        data : dict
            ``title``, ``description``, ``category``, ``latitude``,
            ``longitude`` and optionally ``address`` / ``is_anonymous``.
        photo_urls : Iterable[str]
            Storage URLs of the already-uploaded photos.

        Raises
        ------
        Unauthorized
            No caller.
        InsufficientRights
            Caller is not a citizen.
        BadRequest
            Any field out of bounds.
        """
        auth = require_role(
            auth,
            SystemRoles.CITIZEN,
            message="Only citizens can submit reports.",
        )
        photo_urls = list(photo_urls)
        fields = self._validate(data, photo_urls)
        responsible_role = self.router.resolve_responsible_role(fields["category"])

        with transaction.atomic():
            report = Report.objects.create(
                reporter_id=auth.user_id,
                responsible_role=responsible_role,
                **fields,
            )
            ReportPhoto.objects.bulk_create(
                ReportPhoto(report=report, url=url.strip()) for url in photo_urls
            )

        logger.info(
            "Report %s submitted by user=%s in category %s",
            report.pk,
            auth.user_id,
            report.category,
        )
        return report


# ═══════════════════════════════════════════════════════════════════
#  Report Workflow Service
# ═══════════════════════════════════════════════════════════════════


class ReportWorkflowService:
    """
    **The central state-machine gateway.**

    Every status change of a report goes through ``transition``.  The
    collaborators (router, policy, emitter, directory) are injected so that
    each can be substituted in isolation; defaults are built when omitted.

    Design Pattern: State Machine + Command
    ----------------------------------------
    Each transition is a command ``(report, target, caller, payload)``.
    The service validates it against ``ALLOWED_TRANSITIONS`` and the
    policy, executes it under a row lock with a versioned write, and emits
    notifications inside the same database transaction.
    """

    def __init__(
        self,
        *,
        router: CategoryRouter | None = None,
        policy: TransitionPolicy | None = None,
        emitter: ReportNotificationEmitter | None = None,
        directory: PositionDirectory | None = None,
    ) -> None:
        self.router = router or CategoryRouter()
        self.policy = policy or TransitionPolicy()
        self.emitter = emitter or ReportNotificationEmitter()
        self.directory = directory or PositionDirectory()

    def transition(
        self,
        report_id: int,
        target_status: str,
        auth: AuthContext | None,
        reason: str | None = None,
        assignee_id: int | None = None,
        external_company_id: int | None = None,
        expected_version: int | None = None,
    ) -> Report:
        """
        Move report ``report_id`` into ``target_status``.

        Checks run in this order; the first failure wins:

        1. no caller → ``Unauthorized``; unknown status → ``BadRequest``;
        2. lock the row; missing → ``NotFound``; lock busy → ``Conflict``;
        3. no held position may move a report to the target → ``InsufficientRights``;
        4. ``expected_version`` differs from the stored one → ``Conflict``;
        5. target not reachable from the current status → ``InvalidTransition``;
        6. rejection without a valid reason → ``BadRequest``;
        7. assignment / company checks when entering ``Assigned``.

        Returns
        -------
        Report
            The report as stored after the transition.

        Raises
        ------
        Conflict
            Also raised when a concurrent writer bumped ``version`` first.
        """
        if auth is None:
            raise Unauthorized()
        target = parse_status(target_status)

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            self.policy.authorize(auth, target, report.category)

            if expected_version is not None and expected_version != report.version:
                raise Conflict(
                    f"Report {report_id} is at version {report.version}, "
                    f"not {expected_version}."
                )

            current = ReportStatus(report.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransition(current=current.value, target=target.value)

            changes: dict[str, Any] = {"status": target}

            if target == ReportStatus.REJECTED:
                changes["rejection_reason"] = self._clean_reason(reason)
            elif assignee_id is not None or external_company_id is not None:
                if target != ReportStatus.ASSIGNED:
                    raise BadRequest(
                        "An assignee or company can only be set when assigning a report."
                    )

            if target == ReportStatus.ASSIGNED:
                changes["assignee"] = self._resolve_assignee(report, assignee_id)
                if external_company_id is not None:
                    changes["external_company"] = self._resolve_company(
                        report, external_company_id
                    )

            report = versioned_update(report, **changes)
            self.emitter.on_transition(report, current, target)

        logger.info(
            "Report %s: %s -> %s by user=%s (version %s)",
            report.pk,
            current.value,
            target.value,
            auth.user_id,
            report.version,
        )
        return report

    def assign_external(
        self,
        report_id: int,
        auth: AuthContext | None,
        maintainer_id: int,
        expected_version: int | None = None,
    ) -> Report:
        """
        Hand an ``Assigned`` report over to an external maintainer.

        The status does not change; the maintainer becomes the assignee
        and their company the report's external company.

        Raises
        ------
        InsufficientRights
            Caller is not technical staff.
        NotFound
            Missing report or user.
        Conflict
            Row locked elsewhere or ``expected_version`` is stale.
        BadRequest
            Report not ``Assigned``, user not an external maintainer, or
            their company does not service the report's category.
        """
        auth = require_role(
            auth,
            *TECHNICAL_ROLES,
            message="Only technical staff can hand reports to external maintainers.",
        )

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            if expected_version is not None and expected_version != report.version:
                raise Conflict(
                    f"Report {report_id} is at version {report.version}, "
                    f"not {expected_version}."
                )
            if report.status != ReportStatus.ASSIGNED:
                raise BadRequest(
                    f"Only reports in '{ReportStatus.ASSIGNED}' can be handed to an "
                    f"external maintainer; report {report_id} is '{report.status}'."
                )

            maintainer = User.objects.select_related("company").filter(pk=maintainer_id).first()
            if maintainer is None:
                raise NotFound(f"User with id {maintainer_id} not found.")
            if not maintainer.is_active or not maintainer.has_role(SystemRoles.EXTERNAL_MAINTAINER):
                raise BadRequest(f"User {maintainer_id} is not an external maintainer.")
            if maintainer.company is None or maintainer.company.category != report.category:
                raise BadRequest(
                    f"The company of user {maintainer_id} does not service "
                    f"'{report.category}'."
                )

            report = versioned_update(
                report, assignee=maintainer, external_company=maintainer.company,
            )
            self.emitter.on_external_assignment(report)

        logger.info(
            "Report %s handed to external maintainer=%s by user=%s (version %s)",
            report.pk,
            maintainer_id,
            auth.user_id,
            report.version,
        )
        return report

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _clean_reason(reason: str | None) -> str:
        cleaned = (reason or "").strip()
        if not REJECTION_REASON_MIN_LENGTH <= len(cleaned) <= REJECTION_REASON_MAX_LENGTH:
            raise BadRequest(
                f"A rejection reason of {REJECTION_REASON_MIN_LENGTH} to "
                f"{REJECTION_REASON_MAX_LENGTH} characters is required."
            )
        return cleaned

    def _resolve_assignee(self, report: Report, assignee_id: int | None) -> User:
        if assignee_id is not None:
            assignee = (
                User.objects
                .filter(pk=assignee_id)
                .prefetch_related("positions__role")
                .first()
            )
            if assignee is None:
                raise NotFound(f"User with id {assignee_id} not found.")
            if not assignee.is_active or not any(
                not is_structural_role(p.role.name) for p in assignee.positions.all()
            ):
                raise BadRequest(
                    f"User {assignee_id} does not hold a staff position and "
                    f"cannot be assigned."
                )
            return assignee

        responsible = self.router.resolve_responsible_position(report.category)
        if responsible is None:
            raise BadRequest(
                f"Category '{report.category}' has no responsible role; "
                f"an assignee must be chosen manually."
            )
        role, department = responsible
        candidate = (
            self.directory.staff_with_role(role, department)
            .annotate(
                open_reports=Count(
                    "assigned_reports",
                    filter=Q(assigned_reports__status__in=OPEN_STATUSES),
                    distinct=True,
                )
            )
            .order_by("open_reports", "id")
            .first()
        )
        if candidate is None:
            raise BadRequest(
                f"No staff member holds the role '{role.name}' for category "
                f"'{report.category}'."
            )
        return candidate

    @staticmethod
    def _resolve_company(report: Report, company_id: int) -> Company:
        company = Company.objects.filter(pk=company_id).first()
        if company is None:
            raise NotFound(f"Company with id {company_id} not found.")
        if company.category != report.category:
            raise BadRequest(
                f"Company '{company.name}' services '{company.category}', "
                f"not '{report.category}'."
            )
        return company


# ═══════════════════════════════════════════════════════════════════
#  Report Comment Service
# ═══════════════════════════════════════════════════════════════════

COMMENT_ROLES: tuple[str, ...] = (
    *TECHNICAL_ROLES,
    SystemRoles.PUBLIC_RELATIONS_OFFICER,
    SystemRoles.EXTERNAL_MAINTAINER,
)


class ReportCommentService:
    """
    Internal staff comments on a report.

    Every operation requires one of ``COMMENT_ROLES`` and a report the
    caller can see; citizens never reach these notes.
    """

    @staticmethod
    def _guard(auth: AuthContext | None, report_id: int) -> tuple[AuthContext, Report]:
        auth = require_role(
            auth,
            *COMMENT_ROLES,
            message="Only municipality staff and external maintainers can use internal comments.",
        )
        return auth, ReportQueryService.get_visible_report(auth, report_id)

    @classmethod
    def list_comments(cls, auth: AuthContext | None, report_id: int) -> QuerySet[ReportComment]:
        """Comments of report ``report_id``, oldest first."""
        cls._guard(auth, report_id)
        return ReportComment.objects.filter(report_id=report_id).select_related("author")

    @classmethod
    def add_comment(cls, auth: AuthContext | None, report_id: int, content: str | None) -> ReportComment:
        """
        Attach a comment authored by the caller.

        Raises
        ------
        BadRequest
            Blank content or content longer than ``COMMENT_MAX_LENGTH``.
        """
        auth, report = cls._guard(auth, report_id)
        content = (content or "").strip()
        if not content:
            raise BadRequest("Comment content is required.")
        if len(content) > COMMENT_MAX_LENGTH:
            raise BadRequest(f"Comments are limited to {COMMENT_MAX_LENGTH} characters.")

        comment = ReportComment.objects.create(
            report=report, author_id=auth.user_id, content=content,
        )
        logger.info("Comment %s added to report %s by user=%s", comment.pk, report.pk, auth.user_id)
        return comment

    @classmethod
    def delete_comment(cls, auth: AuthContext | None, report_id: int, comment_id: int) -> None:
        """
        Delete a comment.  Only its author may do so.

        Raises
        ------
        NotFound
            No such comment on this report.
        InsufficientRights
            Caller is not the author.
        """
        auth, _ = cls._guard(auth, report_id)
        comment = ReportComment.objects.filter(pk=comment_id, report_id=report_id).first()
        if comment is None:
            raise NotFound(f"Comment with id {comment_id} not found on report {report_id}.")
        if comment.author_id != auth.user_id:
            raise InsufficientRights("You can only delete your own comments.")
        comment.delete()
        logger.info("Comment %s deleted from report %s by user=%s", comment_id, report_id, auth.user_id)
