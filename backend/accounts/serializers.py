"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here; all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.validators import UnicodeUsernameValidator
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from reports.models import ReportCategory

from .models import Company, Department, DepartmentRole, Role

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RegisterRequestSerializer(serializers.ModelSerializer):
    """
    Validates citizen self-registration data.

    Required fields: username, password, password_confirm, email,
    first_name, last_name.  The response after a successful registration
    is handled by ``UserDetailSerializer``.
    """

    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    password_confirm = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Must match 'password'.",
    )

    class Meta:
        model = User
        fields = [
            "username",
            "password",
            "password_confirm",
            "email",
            "first_name",
            "last_name",
        ]
        # Uniqueness is checked by the service layer so duplicates map to 409.
        extra_kwargs = {
            "username": {"validators": [UnicodeUsernameValidator()]},
            "email": {"required": True, "validators": []},
            "first_name": {"required": True},
            "last_name": {"required": True},
        }

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["password"] != attrs["password_confirm"]:
            raise serializers.ValidationError(
                {"password_confirm": "Passwords do not match."}
            )
        attrs.pop("password_confirm")
        return attrs


class MunicipalityUserCreateSerializer(RegisterRequestSerializer):
    """
    Administrator-side creation of a staff account.

    ``position_ids`` must reference non-structural positions;
    ``company_id`` is required for External Maintainers.
    """

    position_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=False,
        write_only=True,
        help_text="PKs of the positions (department + role) to hold.",
    )
    company_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        write_only=True,
        help_text="PK of the external company (External Maintainers only).",
    )

    class Meta(RegisterRequestSerializer.Meta):
        fields = RegisterRequestSerializer.Meta.fields + ["position_ids", "company_id"]


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via ``IdentifierAuthBackend``.
    3. Injects the held role names into the JWT access token payload.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Username or e-mail.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        token = super().get_token(user)
        token["roles"] = sorted(set(user.role_names()))
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )
        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )
        if not user.is_active:
            raise serializers.ValidationError(
                {"detail": "User account is disabled."},
                code="authentication",
            )

        refresh = self.get_token(user)
        self.user = user
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


class TokenResponseSerializer(serializers.Serializer):
    """Serializes the JWT token pair returned after successful login."""

    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = serializers.SerializerMethodField()

    def get_user(self, obj: dict) -> dict | None:
        user = obj.get("user")
        if user:
            return UserDetailSerializer(user).data
        return None


# ═══════════════════════════════════════════════════════════════════
#  Reference Data Serializers
# ═══════════════════════════════════════════════════════════════════


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "name", "description"]
        read_only_fields = fields


class DepartmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ["id", "name"]
        read_only_fields = fields


class PositionSerializer(serializers.ModelSerializer):
    """A ``DepartmentRole`` flattened to ids and names."""

    department = DepartmentSerializer(read_only=True)
    role = RoleSerializer(read_only=True)

    class Meta:
        model = DepartmentRole
        fields = ["id", "department", "role"]
        read_only_fields = fields


class CompanySerializer(serializers.ModelSerializer):
    category = serializers.ChoiceField(choices=ReportCategory.choices)

    class Meta:
        model = Company
        fields = ["id", "name", "category", "created_at"]
        read_only_fields = ["id", "created_at"]
        # Uniqueness (case-insensitive) is enforced by CompanyService.
        extra_kwargs = {"name": {"validators": []}}


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserListSerializer(serializers.ModelSerializer):
    """Compact user representation for staff listings."""

    positions = PositionSerializer(many=True, read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "is_active",
            "positions",
            "company",
        ]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in retrieve, me, and registration
    response).  ``positions`` lists every held (department, role) pair so
    the frontend can render role-specific modules.
    """

    positions = PositionSerializer(many=True, read_only=True)
    company = CompanySerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "positions",
            "company",
            "personal_photo_url",
            "email_notifications_enabled",
            "telegram_username",
        ]
        read_only_fields = fields


class AssignPositionsSerializer(serializers.Serializer):
    position_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=False,
        help_text="PKs of the positions the user will hold (replaces current ones).",
    )

    def validate_position_ids(self, value: list[int]) -> list[DepartmentRole]:
        positions = list(
            DepartmentRole.objects
            .select_related("department", "role")
            .filter(pk__in=value)
        )
        missing = set(value) - {p.pk for p in positions}
        if missing:
            raise serializers.ValidationError(
                f"The following position IDs do not exist: {sorted(missing)}"
            )
        return positions


class MunicipalityUserUpdateSerializer(serializers.ModelSerializer):
    """Administrator edit of a staff account: name and e-mail only."""

    class Meta:
        model = User
        fields = ["first_name", "last_name", "email"]
        extra_kwargs = {
            "first_name": {"required": False},
            "last_name": {"required": False},
            # Uniqueness is checked by the service against other accounts.
            "email": {"required": False, "validators": []},
        }


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Allows the authenticated user to update limited profile fields.
    Positions, company and the Telegram link cannot be self-modified here.
    """

    class Meta:
        model = User
        fields = [
            "first_name",
            "last_name",
            "personal_photo_url",
            "email_notifications_enabled",
        ]


# ═══════════════════════════════════════════════════════════════════
#  Telegram Serializers
# ═══════════════════════════════════════════════════════════════════


class TelegramCodeResponseSerializer(serializers.Serializer):
    code = serializers.CharField(read_only=True)
    expires_at = serializers.DateTimeField(read_only=True)


class TelegramLinkRequestSerializer(serializers.Serializer):
    """Sent by the Telegram bot collaborator."""

    telegram_username = serializers.CharField(max_length=100)
    code = serializers.CharField(max_length=16)
