from django.contrib import admin

from .models import CategoryRoleMapping, Report, ReportComment, ReportPhoto


class ReportPhotoInline(admin.TabularInline):
    model = ReportPhoto
    extra = 0
    readonly_fields = ("url", "created_at")


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "category", "reporter",
                    "assignee", "version", "created_at")
    list_filter = ("status", "category")
    search_fields = ("title", "description")
    # Status changes go through ReportWorkflowService.
    readonly_fields = ("status", "version", "rejection_reason", "assignee",
                       "external_company", "created_at", "updated_at")
    inlines = [ReportPhotoInline]


@admin.register(CategoryRoleMapping)
class CategoryRoleMappingAdmin(admin.ModelAdmin):
    list_display = ("category", "role", "department")


@admin.register(ReportComment)
class ReportCommentAdmin(admin.ModelAdmin):
    list_display = ("id", "report", "author", "created_at")
    search_fields = ("content",)
    readonly_fields = ("created_at", "updated_at")
