"""
core.domain.exceptions: Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are **not** DRF exceptions; the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Every exception carries a stable ``kind`` (an ``ErrorKind`` member) so that
callers can branch on the kind instead of on class names or messages.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────┬──────┐
│ Domain Exception    │ kind                 │ Code │
├─────────────────────┼──────────────────────┼──────┤
│ BadRequest          │ bad_request          │ 400  │
│ Unauthorized        │ unauthorized         │ 401  │
│ InsufficientRights  │ insufficient_rights  │ 403  │
│ NotFound            │ not_found            │ 404  │
│ InvalidTransition   │ invalid_transition   │ 409  │
│ Conflict            │ conflict             │ 409  │
└─────────────────────┴──────────────────────┴──────┘

``InvalidTransition`` is a sibling of ``Conflict`` (not a
subclass): a lost race and a state-graph violation must stay distinguishable.

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current=current, target=target)
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable, machine-readable error kinds exposed to callers."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_RIGHTS = "insufficient_rights"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    CONFLICT = "conflict"


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Subclasses set ``kind``; the base class itself behaves like a
    ``BadRequest`` so an un-specialised violation still maps to 400.
    """

    kind: ErrorKind = ErrorKind.BAD_REQUEST

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class BadRequest(DomainError):
    """
    Malformed or semantically invalid input that serializers could not
    catch (e.g. missing rejection reason, unknown category).

    Maps to HTTP 400.
    """

    kind = ErrorKind.BAD_REQUEST

    def __init__(self, message: str = "The request is invalid.") -> None:
        super().__init__(message)


class Unauthorized(DomainError):
    """
    No authenticated identity accompanies the request.

    Maps to HTTP 401.
    """

    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Authentication is required.") -> None:
        super().__init__(message)


class InsufficientRights(DomainError):
    """
    The caller is authenticated but none of their positions grants the
    requested operation.

    Maps to HTTP 403.
    """

    kind = ErrorKind.INSUFFICIENT_RIGHTS

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist.

    Maps to HTTP 404.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate unique value, lost race on a concurrent
    transition, stale ``expected_version``.  Maps to HTTP 409.
    """

    kind = ErrorKind.CONFLICT

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(DomainError):
    """
    A state-machine transition that is not allowed from the current status.

    Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="Pending Approval",
            target="Resolved",
        )
    """

    kind = ErrorKind.INVALID_TRANSITION

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason
