"""
Root conftest.py: shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``reference_data`` fixture seeding roles, departments and routing.
  - ``create_user`` factory fixture for creating users holding positions.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def reference_data(db):
    """Seed the built-in roles, departments, positions and category routing."""
    from accounts.services import ReferenceDataService

    return ReferenceDataService.seed()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user, reference_data):
            citizen = create_user(username="alice")
            tm = create_user(
                positions=[("Public Works", "Technical Manager")],
            )
    """
    from accounts.models import DepartmentRole, User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        positions: list[tuple[str, str]] | None = None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"
        if positions is None:
            positions = [("Organization", "Citizen")]

        user = User.objects.create_user(
            username=username,
            password=password,
            email=email,
            is_active=is_active,
            **kwargs,
        )
        user.positions.set([
            DepartmentRole.objects.get(department__name=dept, role__name=role)
            for dept, role in positions
        ])
        return user

    return _factory
