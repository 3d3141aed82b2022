"""
core.domain.exception_handler: DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }

Response body::

    {"detail": "<message>", "code": "<ErrorKind value>"}
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import DomainError, ErrorKind

logger = logging.getLogger(__name__)

# Error kind → HTTP status code
_STATUS_MAP: dict[ErrorKind, int] = {
    ErrorKind.BAD_REQUEST:         400,
    ErrorKind.UNAUTHORIZED:        401,
    ErrorKind.INSUFFICIENT_RIGHTS: 403,
    ErrorKind.NOT_FOUND:           404,
    ErrorKind.INVALID_TRANSITION:  409,
    ErrorKind.CONFLICT:            409,
}


def status_for(exc: DomainError) -> int:
    """Return the HTTP status code for a domain exception."""
    return _STATUS_MAP.get(exc.kind, 400)


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    """
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    if not isinstance(exc, DomainError):
        return None

    status_code = status_for(exc)
    logger.warning(
        "Domain exception [%s] in %s: %s",
        exc.kind.value,
        context.get("view", "unknown"),
        exc,
    )
    response = Response(
        {"detail": str(exc), "code": exc.kind.value},
        status=status_code,
    )
    if status_code == 401:
        response["WWW-Authenticate"] = 'Bearer realm="api"'
    return response
