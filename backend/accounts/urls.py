"""
Accounts app URL configuration.

All routes are namespaced under ``accounts`` and designed to be included
in the project-level ``urls.py`` as::

    path('api/accounts/', include('accounts.urls')),

Endpoint Map
------------
Authentication
    POST   /auth/register/              → RegisterView (citizen)
    POST   /auth/login/                 → LoginView
    POST   /auth/token/refresh/         → TokenRefreshView (SimpleJWT)

Current User Profile ("Me")
    GET    /me/                         → MeView  (retrieve)
    PATCH  /me/                         → MeView  (partial update)

Municipality Users (Administrator)
    GET    /users/                      → MunicipalityUserViewSet.list
    POST   /users/                      → MunicipalityUserViewSet.create
    GET    /users/{id}/                 → MunicipalityUserViewSet.retrieve
    PATCH  /users/{id}/                 → MunicipalityUserViewSet.partial_update
    DELETE /users/{id}/                 → MunicipalityUserViewSet.destroy
    PUT    /users/{id}/positions/       → MunicipalityUserViewSet.positions

Reference Data
    GET    /roles/                      → RoleListView
    GET    /positions/                  → PositionListView
    GET    /departments/                → DepartmentViewSet.list
    GET    /departments/{department_pk}/roles/ → DepartmentRoleViewSet.list

Companies
    GET    /companies/                  → CompanyViewSet.list
    POST   /companies/                  → CompanyViewSet.create

Telegram
    POST   /telegram/code/              → TelegramCodeView (issue code)
    DELETE /telegram/code/              → TelegramCodeView (unlink)
    POST   /telegram/link/              → TelegramLinkView (bot callback)
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_nested.routers import NestedDefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    CompanyViewSet,
    DepartmentRoleViewSet,
    DepartmentViewSet,
    LoginView,
    MeView,
    MunicipalityUserViewSet,
    PositionListView,
    RegisterView,
    RoleListView,
    TelegramCodeView,
    TelegramLinkView,
)

app_name = "accounts"

router = DefaultRouter()
router.register(r"users", MunicipalityUserViewSet, basename="user")
router.register(r"departments", DepartmentViewSet, basename="department")
router.register(r"companies", CompanyViewSet, basename="company")

# ── Nested: /departments/{department_pk}/roles/ ─────────────────────
departments_router = NestedDefaultRouter(router, r"departments", lookup="department")
departments_router.register(r"roles", DepartmentRoleViewSet, basename="department-role")

urlpatterns = [
    # ── Authentication ───────────────────────────────────────────────
    path("auth/register/", RegisterView.as_view(), name="register"),
    path("auth/login/", LoginView.as_view(), name="login"),
    path(
        "auth/token/refresh/",
        TokenRefreshView.as_view(),
        name="token-refresh",
    ),

    # ── Current User (Me) ───────────────────────────────────────────
    path("me/", MeView.as_view(), name="me"),

    # ── Reference data ──────────────────────────────────────────────
    path("roles/", RoleListView.as_view(), name="role-list"),
    path("positions/", PositionListView.as_view(), name="position-list"),

    # ── Telegram ────────────────────────────────────────────────────
    path("telegram/code/", TelegramCodeView.as_view(), name="telegram-code"),
    path("telegram/link/", TelegramLinkView.as_view(), name="telegram-link"),

    # ── Router-registered viewsets ──────────────────────────────────
    path("", include(router.urls)),
    path("", include(departments_router.urls)),
]
