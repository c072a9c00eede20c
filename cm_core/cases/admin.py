# cm_core/cases/admin.py
from __future__ import annotations

from django.contrib import admin

from cm_core.cases.models import Case


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "title",
        "status",
        "priority",
        "created_by",
        "assigned_to",
        "due_date",
        "completed_at",
        "created_at",
        "updated_at",
    )
    list_filter = ("status", "priority")
    search_fields = ("id", "title", "description")
    ordering = ("-created_at",)

    # Workflow fields move only through the engine (API), never by hand.
    readonly_fields = (
        "status",
        "assigned_to",
        "completed_by",
        "completed_at",
        "closed_at",
        "version",
        "created_at",
        "updated_at",
    )

    list_select_related = ("created_by", "assigned_to")
    filter_horizontal = ("watchers",)

    fieldsets = (
        ("Case", {"fields": ("title", "description", "priority", "due_date", "metadata")}),
        ("Workflow", {"fields": ("status", "created_by", "assigned_to", "completed_by", "version")}),
        ("Watchers", {"fields": ("watchers",)}),
        ("Timing", {"fields": ("completed_at", "closed_at", "created_at", "updated_at")}),
    )
