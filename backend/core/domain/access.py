"""
core.domain.access: request identity and role-scoped selectors.

The authenticated user is turned into an ``AuthContext`` **once**, at the
request boundary (the view).  Service layers receive that immutable value
and never look at ``request.user`` or the session again.

╔══════════════════════════════════════════════════════════════════╗
║  Per-app scoping logic does NOT live here.                      ║
║  Each app's ``services.py`` owns its own scope-rules list.      ║
║  This module provides:                                          ║
║    1) ``AuthContext`` / ``build_auth_context``.                 ║
║    2) ``require_auth`` / ``require_role`` guards.               ║
║    3) ``apply_role_scope``: ordered role-keyed dispatch.        ║
╚══════════════════════════════════════════════════════════════════╝

Architecture overview
---------------------

    ┌─────────┐  AuthContext  ┌────────────────┐      ┌──────────────────┐
    │  View   │──────────────▶│  App service   │─────▶│ core.domain      │
    │ (thin)  │               │ (owns logic)   │      │   .access        │
    └─────────┘               └────────────────┘      │ (shared helpers) │
                                                      └──────────────────┘

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    REPORT_SCOPE_RULES = [
        ((SystemRoles.PUBLIC_RELATIONS_OFFICER,), lambda qs, a: qs),
        ((), lambda qs, a: qs.exclude(status=ReportStatus.PENDING_APPROVAL)),
    ]

    qs = apply_role_scope(Report.objects.all(), auth, scope_rules=REPORT_SCOPE_RULES)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

from django.db.models import QuerySet

from core.domain.exceptions import InsufficientRights, Unauthorized

if TYPE_CHECKING:
    from accounts.models import User


@dataclass(frozen=True)
class PositionRef:
    """A held position, denormalised to names for policy checks."""

    department: str
    role: str
    department_id: int | None = None
    role_id: int | None = None


@dataclass(frozen=True)
class AuthContext:
    """
    Identity of the caller for the duration of one request.

    Attributes
    ----------
    user_id : int
        Primary key of the authenticated user.
    positions : tuple[PositionRef, ...]
        Every position the user held when the request started.  An empty
        tuple is legal and simply grants nothing.
    """

    user_id: int
    positions: tuple[PositionRef, ...] = field(default_factory=tuple)

    @property
    def role_names(self) -> frozenset[str]:
        return frozenset(p.role for p in self.positions)

    def has_role(self, *role_names: str) -> bool:
        """Return ``True`` when any held position carries one of ``role_names``."""
        held = self.role_names
        return any(name in held for name in role_names)


# (allowed role names, filter_fn).  An empty role tuple matches everyone.
ScopeFilter = Callable[[QuerySet, AuthContext], QuerySet]
ScopeRule = tuple[tuple[str, ...], ScopeFilter]


def build_auth_context(user: User | None) -> AuthContext | None:
    """
    Snapshot ``user`` and its positions into an ``AuthContext``.

    Returns ``None`` for a missing or anonymous user so that the service
    layer can raise ``Unauthorized`` itself.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    positions = tuple(
        PositionRef(
            department=p.department.name,
            role=p.role.name,
            department_id=p.department_id,
            role_id=p.role_id,
        )
        for p in user.positions.select_related("department", "role")
    )
    return AuthContext(user_id=user.pk, positions=positions)


def require_auth(auth: AuthContext | None) -> AuthContext:
    """Raise ``Unauthorized`` when no identity accompanies the call."""
    if auth is None:
        raise Unauthorized()
    return auth


def require_role(
    auth: AuthContext | None,
    *role_names: str,
    message: str = "",
) -> AuthContext:
    """
    Guard that raises unless ``auth`` holds at least one of ``role_names``
    (OR-logic).

    Raises
    ------
    Unauthorized
        If ``auth`` is ``None``.
    InsufficientRights
        If no held position carries any of the roles.
    """
    auth = require_auth(auth)
    if not auth.has_role(*role_names):
        raise InsufficientRights(
            message or f"Requires one of the roles: {', '.join(role_names)}."
        )
    return auth


def apply_role_scope(
    queryset: QuerySet,
    auth: AuthContext,
    *,
    scope_rules: Iterable[ScopeRule],
    default: str = "none",
) -> QuerySet:
    """
    Apply the first scope rule whose roles intersect the caller's roles.

    Rules are checked **in order**; list them from broadest to narrowest.

    Parameters
    ----------
    queryset : QuerySet
        Base (unfiltered) queryset.
    auth : AuthContext
        The caller.
    scope_rules : Iterable[ScopeRule]
        Ordered ``(role_names, filter_fn)`` pairs.
    default : str
        ``"none"`` returns an empty queryset when nothing matches;
        ``"all"`` returns ``queryset`` unchanged.
    """
    for role_names, filter_fn in scope_rules:
        if not role_names or auth.has_role(*role_names):
            return filter_fn(queryset, auth)

    if default == "none":
        return queryset.none()
    return queryset
