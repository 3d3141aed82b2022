from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Company, Department, DepartmentRole, Role, User


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ("name", "description")
    search_fields = ("name",)
    ordering = ("name",)


class DepartmentRoleInline(admin.TabularInline):
    model = DepartmentRole
    extra = 0


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name",)
    search_fields = ("name",)
    inlines = [DepartmentRoleInline]


@admin.register(DepartmentRole)
class DepartmentRoleAdmin(admin.ModelAdmin):
    list_display = ("department", "role")
    list_filter = ("department", "role")


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "created_at")
    list_filter = ("category",)
    search_fields = ("name",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("username", "email", "first_name", "last_name",
                    "is_active", "company", "telegram_username")
    search_fields = ("username", "email", "telegram_username")
    list_filter = ("is_active", "is_staff", "positions__role")
    filter_horizontal = ("groups", "user_permissions", "positions")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Participium", {"fields": ("positions", "company", "personal_photo_url",
                                    "email_notifications_enabled")}),
        ("Telegram", {"fields": ("telegram_username", "telegram_link_code",
                                 "telegram_link_code_expires_at")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Participium", {"fields": ("email", "first_name", "last_name",
                                    "positions", "company")}),
    )
