"""
Category router: which role (and department) is responsible for a
report category.

Mappings are reference data, read far more often than written, so each
router instance keeps a read-through cache.  Call ``invalidate()`` after
editing ``CategoryRoleMapping`` rows in-process.
"""

from __future__ import annotations

import logging

from accounts.models import Department, Role
from core.domain.exceptions import BadRequest

from .models import CategoryRoleMapping, ReportCategory

logger = logging.getLogger(__name__)

_CANONICAL_ORDER: dict[str, int] = {
    value: index for index, value in enumerate(ReportCategory.values)
}


class CategoryRouter:
    """Read-through cache over ``CategoryRoleMapping``."""

    def __init__(self) -> None:
        self._cache: dict[str, tuple[Role, Department | None]] | None = None

    def _mappings(self) -> dict[str, tuple[Role, Department | None]]:
        if self._cache is None:
            self._cache = {
                m.category: (m.role, m.department)
                for m in CategoryRoleMapping.objects.select_related("role", "department")
            }
            logger.debug("Loaded %d category mapping(s)", len(self._cache))
        return self._cache

    def invalidate(self) -> None:
        self._cache = None

    @staticmethod
    def _check_category(category: str) -> None:
        if category not in _CANONICAL_ORDER:
            raise BadRequest(f"Invalid category '{category}'.")

    def resolve_responsible_role(self, category: str) -> Role | None:
        """
        Return the role responsible for ``category``, or ``None`` when the
        category is triaged manually.

        Raises
        ------
        BadRequest
            If ``category`` is not a known category value.
        """
        self._check_category(category)
        entry = self._mappings().get(category)
        return entry[0] if entry else None

    def resolve_responsible_position(
        self,
        category: str,
    ) -> tuple[Role, Department | None] | None:
        """Like ``resolve_responsible_role`` but also returns the department."""
        self._check_category(category)
        return self._mappings().get(category)

    def list_all_mappings(self) -> list[tuple[str, Role]]:
        """Every mapped category with its role, in canonical category order."""
        return [
            (category, role)
            for category, (role, _department) in sorted(
                self._mappings().items(),
                key=lambda item: _CANONICAL_ORDER[item[0]],
            )
        ]
