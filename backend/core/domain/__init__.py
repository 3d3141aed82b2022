"""
core.domain: shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions carrying a stable ``ErrorKind``.
exception_handler  DRF handler mapping those exceptions to HTTP responses.
access             ``AuthContext`` and role-scoped queryset selectors.
notifications      Synchronous notification creation + report emitter.
transactions       Row locks and optimistic ``version`` writes.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.access import AuthContext, build_auth_context
    from core.domain.notifications import ReportNotificationEmitter
    from core.domain.transactions import lock_for_update, versioned_update
"""
