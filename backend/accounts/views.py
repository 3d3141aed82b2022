"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``RegisterView``             : POST /auth/register/
- ``LoginView``                : POST /auth/login/
- ``MeView``                   : GET / PATCH /me/
- ``MunicipalityUserViewSet``  : /users/  (list, create, retrieve, update, delete, positions)
- ``RoleListView``             : GET /roles/
- ``PositionListView``         : GET /positions/
- ``DepartmentViewSet``        : GET /departments/
- ``DepartmentRoleViewSet``    : GET /departments/{department_pk}/roles/
- ``CompanyViewSet``           : /companies/  (list, create)
- ``TelegramCodeView``         : POST / DELETE /telegram/code/
- ``TelegramLinkView``         : POST /telegram/link/
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from core.domain.access import build_auth_context, require_role
from core.role_constants import SystemRoles

from .serializers import (
    AssignPositionsSerializer,
    CompanySerializer,
    CustomTokenObtainPairSerializer,
    DepartmentSerializer,
    MeUpdateSerializer,
    MunicipalityUserCreateSerializer,
    MunicipalityUserUpdateSerializer,
    PositionSerializer,
    RegisterRequestSerializer,
    RoleSerializer,
    TelegramCodeResponseSerializer,
    TelegramLinkRequestSerializer,
    TokenResponseSerializer,
    UserDetailSerializer,
    UserListSerializer,
)
from .services import (
    CompanyService,
    CurrentUserService,
    PositionDirectory,
    TelegramLinkService,
    UserPositionService,
)


def _require_admin(request: Request) -> None:
    require_role(
        build_auth_context(request.user),
        SystemRoles.ADMINISTRATOR,
        message="Only administrators can perform this action.",
    )


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class RegisterView(APIView):
    """
    POST /api/accounts/auth/register/

    Public endpoint.  Creates a citizen account holding the single
    ``(Organization, Citizen)`` position.

    Request body  → ``RegisterRequestSerializer``
    Response body → ``UserDetailSerializer`` (201 Created)
    """

    permission_classes = [AllowAny]

    @extend_schema(
        request=RegisterRequestSerializer,
        responses={
            201: UserDetailSerializer,
            409: OpenApiResponse(description="Username or e-mail already taken."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = RegisterRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserPositionService.register_citizen(serializer.validated_data)
        user = CurrentUserService.get_profile(user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates by username or e-mail plus password.

    Request body  → ``identifier`` + ``password``
    Response body → ``TokenResponseSerializer`` (200 OK)
    """

    permission_classes = [AllowAny]

    @extend_schema(
        request=CustomTokenObtainPairSerializer,
        responses={200: TokenResponseSerializer},
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)  # contains 'access' and 'refresh'
        payload["user"] = UserDetailSerializer(
            CurrentUserService.get_profile(serializer.user)
        ).data
        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET  /api/accounts/me/  → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own profile fields.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: UserDetailSerializer}, tags=["Accounts"])
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(request=MeUpdateSerializer, responses={200: UserDetailSerializer}, tags=["Accounts"])
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user,
            data=request.data,
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Municipality User Management ViewSet
# ═══════════════════════════════════════════════════════════════════


class MunicipalityUserViewSet(viewsets.ViewSet):
    """
    /api/accounts/users/

    Administrator-only management of municipal staff accounts.
    All heavy lifting is delegated to ``UserPositionService``.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(responses={200: UserListSerializer(many=True)}, tags=["Users"])
    def list(self, request: Request) -> Response:
        """GET /api/accounts/users/"""
        _require_admin(request)
        users = UserPositionService.list_municipality_users()
        return Response(UserListSerializer(users, many=True).data)

    @extend_schema(
        request=MunicipalityUserCreateSerializer,
        responses={201: UserDetailSerializer},
        tags=["Users"],
    )
    def create(self, request: Request) -> Response:
        """POST /api/accounts/users/"""
        _require_admin(request)
        serializer = MunicipalityUserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        position_ids = data.pop("position_ids")
        company_id = data.pop("company_id", None)
        user = UserPositionService.create_municipality_user(data, position_ids, company_id)
        user = CurrentUserService.get_profile(user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)

    @extend_schema(responses={200: UserDetailSerializer}, tags=["Users"])
    def retrieve(self, request: Request, pk: str = None) -> Response:
        """GET /api/accounts/users/{id}/"""
        _require_admin(request)
        user = UserPositionService.get_user(int(pk))
        return Response(UserDetailSerializer(user).data)

    @extend_schema(
        request=MunicipalityUserUpdateSerializer,
        responses={
            200: UserDetailSerializer,
            400: OpenApiResponse(description="Not a municipality user."),
            409: OpenApiResponse(description="E-mail already in use."),
        },
        tags=["Users"],
    )
    def partial_update(self, request: Request, pk: str = None) -> Response:
        """PATCH /api/accounts/users/{id}/"""
        _require_admin(request)
        serializer = MunicipalityUserUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = UserPositionService.update_municipality_user(int(pk), serializer.validated_data)
        user = CurrentUserService.get_profile(user)
        return Response(UserDetailSerializer(user).data)

    @extend_schema(
        responses={
            204: None,
            400: OpenApiResponse(description="Not a municipality user."),
            409: OpenApiResponse(description="User still has reports attached."),
        },
        tags=["Users"],
    )
    def destroy(self, request: Request, pk: str = None) -> Response:
        """DELETE /api/accounts/users/{id}/"""
        _require_admin(request)
        UserPositionService.delete_municipality_user(int(pk))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["put"], url_path="positions")
    @extend_schema(
        request=AssignPositionsSerializer,
        responses={200: UserDetailSerializer},
        tags=["Users"],
    )
    def positions(self, request: Request, pk: str = None) -> Response:
        """
        PUT /api/accounts/users/{id}/positions/

        Replace the positions held by a user.
        """
        _require_admin(request)
        user = UserPositionService.get_user(int(pk))
        serializer = AssignPositionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserPositionService.assign_positions(user, serializer.validated_data["position_ids"])
        user = CurrentUserService.get_profile(user)
        return Response(UserDetailSerializer(user).data)


# ═══════════════════════════════════════════════════════════════════
#  Reference Data Views
# ═══════════════════════════════════════════════════════════════════


class RoleListView(APIView):
    """GET /api/accounts/roles/ : roles assignable to municipal staff."""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: RoleSerializer(many=True)}, tags=["Reference Data"])
    def get(self, request: Request) -> Response:
        roles = PositionDirectory().list_municipality_roles()
        return Response(RoleSerializer(roles, many=True).data)


class PositionListView(APIView):
    """GET /api/accounts/positions/ : staff positions by department then role."""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PositionSerializer(many=True)}, tags=["Reference Data"])
    def get(self, request: Request) -> Response:
        positions = PositionDirectory().list_municipality_positions()
        return Response(PositionSerializer(positions, many=True).data)


class DepartmentViewSet(viewsets.ViewSet):
    """GET /api/accounts/departments/"""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = r"\d+"

    @extend_schema(responses={200: DepartmentSerializer(many=True)}, tags=["Reference Data"])
    def list(self, request: Request) -> Response:
        departments = PositionDirectory().list_departments()
        return Response(DepartmentSerializer(departments, many=True).data)


class DepartmentRoleViewSet(viewsets.ViewSet):
    """GET /api/accounts/departments/{department_pk}/roles/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PositionSerializer(many=True)}, tags=["Reference Data"])
    def list(self, request: Request, department_pk: str = None) -> Response:
        positions = PositionDirectory().list_roles_by_department(int(department_pk))
        return Response(PositionSerializer(positions, many=True).data)


# ═══════════════════════════════════════════════════════════════════
#  Company ViewSet
# ═══════════════════════════════════════════════════════════════════


class CompanyViewSet(viewsets.ViewSet):
    """
    /api/accounts/companies/

    Anyone authenticated may list companies (the triage screen needs
    them); only administrators may create one.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter(name="category", type=str, required=False,
                             description="Only companies servicing this category."),
        ],
        responses={200: CompanySerializer(many=True)},
        tags=["Companies"],
    )
    def list(self, request: Request) -> Response:
        companies = CompanyService.list_companies(request.query_params.get("category"))
        return Response(CompanySerializer(companies, many=True).data)

    @extend_schema(
        request=CompanySerializer,
        responses={
            201: CompanySerializer,
            409: OpenApiResponse(description="Company name already taken."),
        },
        tags=["Companies"],
    )
    def create(self, request: Request) -> Response:
        _require_admin(request)
        serializer = CompanySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        company = CompanyService.create_company(
            serializer.validated_data["name"],
            serializer.validated_data["category"],
        )
        return Response(CompanySerializer(company).data, status=status.HTTP_201_CREATED)


# ═══════════════════════════════════════════════════════════════════
#  Telegram Linking Views
# ═══════════════════════════════════════════════════════════════════


class TelegramCodeView(APIView):
    """
    POST   /api/accounts/telegram/code/ → issue a one-time link code.
    DELETE /api/accounts/telegram/code/ → unlink the Telegram account.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={201: TelegramCodeResponseSerializer}, tags=["Telegram"])
    def post(self, request: Request) -> Response:
        code, expires_at = TelegramLinkService.generate_code(request.user)
        data = TelegramCodeResponseSerializer({"code": code, "expires_at": expires_at}).data
        return Response(data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={204: None}, tags=["Telegram"])
    def delete(self, request: Request) -> Response:
        TelegramLinkService.unlink(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TelegramLinkView(APIView):
    """
    POST /api/accounts/telegram/link/

    Called by the Telegram bot with the username it saw and the code the
    user typed.  The code itself is the credential.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        request=TelegramLinkRequestSerializer,
        responses={
            200: UserDetailSerializer,
            400: OpenApiResponse(description="Malformed, unknown or expired code."),
            409: OpenApiResponse(description="Telegram account linked elsewhere."),
        },
        tags=["Telegram"],
    )
    def post(self, request: Request) -> Response:
        serializer = TelegramLinkRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = TelegramLinkService.verify_and_link(
            serializer.validated_data["telegram_username"],
            serializer.validated_data["code"],
        )
        user = CurrentUserService.get_profile(user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)
