"""
Reports app URL configuration.

All routes are registered under the ``/api/`` prefix
(included from ``participium.urls``).

Route Hierarchy
---------------
  /api/reports/                          → list / create
  /api/reports/{id}/                     → retrieve

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/reports/{id}/status/         → status transition
  GET  /api/reports/assigned/            → reports assigned to the caller
  PATCH /api/reports/{id}/assign-external/ → hand over to an external maintainer
  GET  /api/reports/assigned/external/{maintainer_id}/ → a maintainer's reports
  GET  /api/reports/mine/                → reports filed by the caller
  GET  /api/reports/map/                 → map feed

  ── Reference data @actions ─────────────────────────────────────
  GET  /api/reports/categories/          → category values
  GET  /api/reports/mappings/            → category routing table

  ── Nested ──────────────────────────────────────────────────────
  GET  /api/reports/{report_pk}/photos/  → photos of a report
  GET|POST   /api/reports/{report_pk}/internal-comments/       → staff comments
  DELETE     /api/reports/{report_pk}/internal-comments/{id}/  → delete own comment
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested.routers import NestedDefaultRouter

from .views import ReportCommentViewSet, ReportPhotoViewSet, ReportViewSet

router = DefaultRouter()
router.register(prefix=r"reports", viewset=ReportViewSet, basename="report")

reports_router = NestedDefaultRouter(router, r"reports", lookup="report")
reports_router.register(r"photos", ReportPhotoViewSet, basename="report-photo")
reports_router.register(r"internal-comments", ReportCommentViewSet, basename="report-comment")

urlpatterns = router.urls + reports_router.urls
