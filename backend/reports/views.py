"""
Reports app ViewSets.

Architecture: Views are thin.  Every view method:
  1. Parses / validates input via a serializer.
  2. Builds the caller's ``AuthContext``.
  3. Delegates to the appropriate service class.
  4. Serializes the result and returns a DRF ``Response``.

No database queries, permission logic, or workflow logic lives here.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from core.domain.access import build_auth_context

from .routing import CategoryRouter
from .serializers import (
    AssignExternalSerializer,
    CategoryMappingSerializer,
    ReportCommentCreateSerializer,
    ReportCommentSerializer,
    ReportCreateSerializer,
    ReportListSerializer,
    ReportMapSerializer,
    ReportPhotoSerializer,
    ReportSerializer,
    ReportStatusSerializer,
)
from .services import (
    ReportCommentService,
    ReportQueryService,
    ReportSubmissionService,
    ReportWorkflowService,
)


class ReportViewSet(viewsets.ViewSet):
    """
    Report lifecycle endpoints.

    Standard routes (via DefaultRouter)
    ------------------------------------
    GET    /api/reports/                 → list (role-scoped, ``?status=&category=``)
    POST   /api/reports/                 → create (citizens)
    GET    /api/reports/{id}/            → retrieve

    Workflow @actions
    -----------------
    POST   /api/reports/{id}/status/     → status transition
    PATCH  /api/reports/{id}/assign-external/ → hand over to an external maintainer
    GET    /api/reports/assigned/        → reports assigned to the caller
    GET    /api/reports/assigned/external/{maintainer_id}/ → a maintainer's reports
    GET    /api/reports/mine/            → reports filed by the caller
    GET    /api/reports/map/             → approved reports, ``?category=`` and bounding box
    GET    /api/reports/categories/      → category values in canonical order
    GET    /api/reports/mappings/        → category → responsible role
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(
        summary="List reports",
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("category", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: ReportListSerializer(many=True)},
        tags=["Reports"],
    )
    def list(self, request: Request) -> Response:
        reports = ReportQueryService.list_reports(
            build_auth_context(request.user),
            status=request.query_params.get("status"),
            category=request.query_params.get("category"),
        )
        return Response(ReportListSerializer(reports, many=True).data)

    @extend_schema(
        summary="Submit a report",
        request=ReportCreateSerializer,
        responses={
            201: ReportSerializer,
            400: OpenApiResponse(description="A field is out of bounds."),
            403: OpenApiResponse(description="Caller is not a citizen."),
        },
        tags=["Reports"],
    )
    def create(self, request: Request) -> Response:
        serializer = ReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        photo_urls = data.pop("photo_urls")
        report = ReportSubmissionService().submit(
            build_auth_context(request.user), data, photo_urls,
        )
        report = ReportQueryService.get_report(report.pk)
        return Response(ReportSerializer(report).data, status=status.HTTP_201_CREATED)

    @extend_schema(summary="Retrieve a report", responses={200: ReportSerializer}, tags=["Reports"])
    def retrieve(self, request: Request, pk: str = None) -> Response:
        report = ReportQueryService.get_visible_report(build_auth_context(request.user), int(pk))
        return Response(ReportSerializer(report).data)

    # ── Workflow ─────────────────────────────────────────────────────

    @extend_schema(
        summary="Change report status",
        request=ReportStatusSerializer,
        responses={
            200: ReportSerializer,
            400: OpenApiResponse(description="Malformed transition payload."),
            403: OpenApiResponse(description="No held position allows this transition."),
            404: OpenApiResponse(description="Report, assignee or company not found."),
            409: OpenApiResponse(description="Invalid transition or stale version."),
        },
        tags=["Reports Workflow"],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request: Request, pk: str = None) -> Response:
        serializer = ReportStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        report = ReportWorkflowService().transition(
            int(pk),
            data["status"],
            build_auth_context(request.user),
            reason=data.get("reason"),
            assignee_id=data.get("assignee_id"),
            external_company_id=data.get("external_company_id"),
            expected_version=data.get("expected_version"),
        )
        report = ReportQueryService.get_report(report.pk)
        return Response(ReportSerializer(report).data)

    @extend_schema(
        summary="Hand a report to an external maintainer",
        request=AssignExternalSerializer,
        responses={
            200: ReportSerializer,
            400: OpenApiResponse(description="Report not Assigned or maintainer unsuitable."),
            403: OpenApiResponse(description="Caller is not technical staff."),
            404: OpenApiResponse(description="Report or user not found."),
            409: OpenApiResponse(description="Stale version or row busy."),
        },
        tags=["Reports Workflow"],
    )
    @action(detail=True, methods=["patch"], url_path="assign-external")
    def assign_external(self, request: Request, pk: str = None) -> Response:
        serializer = AssignExternalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = ReportWorkflowService().assign_external(
            int(pk),
            build_auth_context(request.user),
            serializer.validated_data["maintainer_id"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        report = ReportQueryService.get_report(report.pk)
        return Response(ReportSerializer(report).data)

    @extend_schema(
        summary="Reports handed to an external maintainer",
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: ReportListSerializer(many=True)},
        tags=["Reports"],
    )
    @action(detail=False, methods=["get"], url_path=r"assigned/external/(?P<maintainer_id>\d+)")
    def external_assigned(self, request: Request, maintainer_id: str = None) -> Response:
        reports = ReportQueryService.list_external_maintainer_reports(
            build_auth_context(request.user),
            int(maintainer_id),
            status=request.query_params.get("status"),
        )
        return Response(ReportListSerializer(reports, many=True).data)

    @extend_schema(
        summary="Reports on the map",
        parameters=[
            OpenApiParameter("category", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("min_lat", OpenApiTypes.FLOAT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("max_lat", OpenApiTypes.FLOAT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("min_lng", OpenApiTypes.FLOAT, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("max_lng", OpenApiTypes.FLOAT, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: ReportMapSerializer(many=True)},
        tags=["Reports"],
    )
    @action(detail=False, methods=["get"], url_path="map")
    def map(self, request: Request) -> Response:
        reports = ReportQueryService.list_map_reports(
            build_auth_context(request.user),
            category=request.query_params.get("category"),
            bounds=request.query_params,
        )
        return Response(ReportMapSerializer(reports, many=True).data)

    @extend_schema(summary="Reports assigned to me", responses={200: ReportListSerializer(many=True)}, tags=["Reports"])
    @action(detail=False, methods=["get"], url_path="assigned")
    def assigned(self, request: Request) -> Response:
        reports = ReportQueryService.list_assigned_reports(build_auth_context(request.user))
        return Response(ReportListSerializer(reports, many=True).data)

    @extend_schema(summary="Reports I filed", responses={200: ReportListSerializer(many=True)}, tags=["Reports"])
    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request: Request) -> Response:
        reports = ReportQueryService.list_my_reports(build_auth_context(request.user))
        return Response(ReportListSerializer(reports, many=True).data)

    # ── Reference data ───────────────────────────────────────────────

    @extend_schema(summary="Report categories", responses={200: OpenApiTypes.OBJECT}, tags=["Reports"])
    @action(detail=False, methods=["get"], url_path="categories")
    def categories(self, request: Request) -> Response:
        return Response(ReportQueryService.list_categories())

    @extend_schema(
        summary="Category routing",
        responses={200: CategoryMappingSerializer(many=True)},
        tags=["Reports"],
    )
    @action(detail=False, methods=["get"], url_path="mappings")
    def mappings(self, request: Request) -> Response:
        rows = [
            {"category": category, "role": role}
            for category, role in CategoryRouter().list_all_mappings()
        ]
        return Response(CategoryMappingSerializer(rows, many=True).data)


class ReportPhotoViewSet(viewsets.ViewSet):
    """GET /api/reports/{report_pk}/photos/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: ReportPhotoSerializer(many=True)}, tags=["Reports"])
    def list(self, request: Request, report_pk: str = None) -> Response:
        photos = ReportQueryService.list_photos(build_auth_context(request.user), int(report_pk))
        return Response(ReportPhotoSerializer(photos, many=True).data)


class ReportCommentViewSet(viewsets.ViewSet):
    """
    Internal staff comments on a report.

    GET    /api/reports/{report_pk}/internal-comments/       → list
    POST   /api/reports/{report_pk}/internal-comments/       → add
    DELETE /api/reports/{report_pk}/internal-comments/{id}/  → delete (author only)
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(responses={200: ReportCommentSerializer(many=True)}, tags=["Reports Comments"])
    def list(self, request: Request, report_pk: str = None) -> Response:
        comments = ReportCommentService.list_comments(build_auth_context(request.user), int(report_pk))
        return Response(ReportCommentSerializer(comments, many=True).data)

    @extend_schema(
        request=ReportCommentCreateSerializer,
        responses={201: ReportCommentSerializer},
        tags=["Reports Comments"],
    )
    def create(self, request: Request, report_pk: str = None) -> Response:
        serializer = ReportCommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = ReportCommentService.add_comment(
            build_auth_context(request.user),
            int(report_pk),
            serializer.validated_data["content"],
        )
        return Response(ReportCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={204: None}, tags=["Reports Comments"])
    def destroy(self, request: Request, report_pk: str = None, pk: str = None) -> Response:
        ReportCommentService.delete_comment(build_auth_context(request.user), int(report_pk), int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)
