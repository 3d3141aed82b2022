"""
Role Constants: **Single Source of Truth**

Every role name referenced in code (authorization policy, position
listings, seeding command, tests) MUST use one of the constants defined
here.  Role rows themselves are reference data seeded by
``python manage.py setup_reference_data``; only the names below carry
hard-coded behaviour.

Organisation
------------
- ``SystemRoles``        : every role the workflow knows by name.
- ``STRUCTURAL_ROLES``   : roles that are never assignable staff roles and
                         are therefore hidden from every "municipality"
                         listing (role list *and* position list).
- ``TECHNICAL_ROLES``    : roles that work reports on the field and may
                         hand them over to external maintainers.
"""


class SystemRoles:
    """Role names with behaviour attached to them."""

    CITIZEN = "Citizen"
    """Files reports.  Always holds exactly one position in Organization."""

    ADMINISTRATOR = "Administrator"
    """Manages accounts, companies and reference data."""

    PUBLIC_RELATIONS_OFFICER = "Public Relations Officer"
    """Triages incoming reports: assigns or rejects them."""

    TECHNICAL_MANAGER = "Technical Manager"
    """Leads a technical department; works and closes reports."""

    TECHNICAL_ASSISTANT = "Technical Assistant"
    """Works and closes reports within a technical department."""

    EXTERNAL_MAINTAINER = "External Maintainer"
    """Employee of an external company; may resolve reports."""


STRUCTURAL_ROLES: tuple[str, ...] = (
    SystemRoles.CITIZEN,
    SystemRoles.ADMINISTRATOR,
)

TECHNICAL_ROLES: tuple[str, ...] = (
    SystemRoles.TECHNICAL_MANAGER,
    SystemRoles.TECHNICAL_ASSISTANT,
)


def is_structural_role(role_name: str) -> bool:
    """Return ``True`` for Citizen / Administrator."""
    return role_name in STRUCTURAL_ROLES